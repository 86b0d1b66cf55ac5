"""
HealthDash -- Unified Inference Client.

Multi-backend inference abstraction used by the generative flows:
  Primary:  HF Serverless Inference API -- via huggingface_hub.
  Secondary: GenAI SDK -- Gemma models via google-genai client.
  Fallback:  Demo mode -- flows return deterministic output (no API calls).

Environment variables:
  HF_TOKEN        -- Hugging Face token (primary)
  GOOGLE_API_KEY  -- GenAI SDK key (secondary, optional)

Flows never talk to a backend directly; adding a backend means adding
one adapter function here.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re

from healthdash.core.errors import InputMissing

log = logging.getLogger(__name__)

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.+)$", re.DOTALL)

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

def _get_genai_key() -> str | None:
    return os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY") or None


def _get_hf_token() -> str | None:
    return os.environ.get("HF_TOKEN") or None


# ---------------------------------------------------------------------------
# Backend detection
# ---------------------------------------------------------------------------

def get_inference_backend() -> str:
    """Return the active inference backend name."""
    if _get_hf_token():
        return "hf_inference_api"
    if _get_genai_key():
        return "genai_sdk"
    return "demo_fallback"


# ---------------------------------------------------------------------------
# Data URIs
# ---------------------------------------------------------------------------

def decode_data_uri(data_uri: str) -> tuple[str, bytes]:
    """Split ``data:<mime>;base64,<payload>`` into (mime type, raw bytes)."""
    match = _DATA_URI_RE.match(data_uri.strip()) if data_uri else None
    if not match:
        raise InputMissing(
            "Expected a data URI of the form 'data:<mimetype>;base64,<encoded_data>'."
        )
    try:
        payload = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InputMissing(f"Invalid base64 payload in data URI: {exc}") from exc
    return match.group("mime"), payload


def encode_data_uri(payload: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"


# ---------------------------------------------------------------------------
# Text generation
# ---------------------------------------------------------------------------

def generate_text(
    prompt: str,
    model_id: str = "google/medgemma-4b-it",
    system_prompt: str | None = None,
    max_new_tokens: int = 1024,
) -> str:
    """
    Generate text from a prompt.

    Tries HF Inference API first, then GenAI SDK, then raises.
    """
    # --- Primary: HF Inference API ---
    hf_token = _get_hf_token()
    if hf_token:
        try:
            return _hf_generate_text(prompt, model_id, system_prompt, max_new_tokens, hf_token)
        except Exception as exc:
            log.warning(f"[HF] text generation failed for {model_id}: {exc} -- trying GenAI fallback")

    # --- Secondary: GenAI SDK ---
    genai_key = _get_genai_key()
    if genai_key:
        try:
            return _genai_generate_text(prompt, system_prompt, max_new_tokens, genai_key)
        except Exception as exc:
            log.warning(f"[GenAI] text generation failed: {exc}")

    raise RuntimeError("No inference backend available. Set HF_TOKEN or GOOGLE_API_KEY.")


def _genai_generate_text(
    prompt: str,
    system_prompt: str | None,
    max_new_tokens: int,
    api_key: str,
) -> str:
    """Call GenAI SDK with Gemma model."""
    from google import genai

    client = genai.Client(api_key=api_key)

    config = genai.types.GenerateContentConfig(
        system_instruction=system_prompt or "You are a careful, plain-spoken health assistant.",
        max_output_tokens=max_new_tokens,
        temperature=0.1,
    )

    response = client.models.generate_content(
        model="gemma-3-4b-it",
        contents=prompt,
        config=config,
    )
    result = response.text
    log.info(f"[GenAI] generated {len(result or '')} chars")
    return result


def _hf_generate_text(
    prompt: str,
    model_id: str,
    system_prompt: str | None,
    max_new_tokens: int,
    token: str,
) -> str:
    """Call HF Serverless Inference API."""
    from huggingface_hub import InferenceClient

    client = InferenceClient(token=token)
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})

    response = client.chat_completion(
        model=model_id,
        messages=messages,
        max_tokens=max_new_tokens,
        temperature=0.1,
    )
    result = response.choices[0].message.content
    log.info(f"[HF] {model_id} generated {len(result or '')} chars")
    return result


# ---------------------------------------------------------------------------
# Image + Text (multimodal)
# ---------------------------------------------------------------------------

def analyze_image_text(
    data_uri: str,
    prompt: str,
    model_id: str = "google/medgemma-4b-it",
    system_prompt: str | None = None,
    max_new_tokens: int = 512,
) -> str:
    """
    Run a multimodal prompt over an image given as a data URI.

    Tries HF API first, then GenAI SDK.
    """
    mime_type, image_bytes = decode_data_uri(data_uri)

    # --- Primary: HF Inference API ---
    hf_token = _get_hf_token()
    if hf_token:
        try:
            return _hf_analyze_image(
                data_uri, prompt, model_id, system_prompt, max_new_tokens, hf_token
            )
        except Exception as exc:
            log.warning(f"[HF] image analysis failed for {model_id}: {exc}")

    # --- Secondary: GenAI SDK ---
    genai_key = _get_genai_key()
    if genai_key:
        try:
            return _genai_analyze_image(
                image_bytes, mime_type, prompt, system_prompt, max_new_tokens, genai_key
            )
        except Exception as exc:
            log.warning(f"[GenAI] image analysis failed: {exc}")

    raise RuntimeError("No inference backend available for image analysis.")


def _genai_analyze_image(
    image_bytes: bytes,
    mime_type: str,
    prompt: str,
    system_prompt: str | None,
    max_new_tokens: int,
    api_key: str,
) -> str:
    """Call GenAI SDK with image + text (multimodal)."""
    from google import genai
    from google.genai import types as gtypes

    client = genai.Client(api_key=api_key)

    image_part = gtypes.Part.from_bytes(data=image_bytes, mime_type=mime_type)
    text_part = gtypes.Part.from_text(text=prompt)

    config = gtypes.GenerateContentConfig(
        system_instruction=system_prompt or "You are an expert medical image analyst.",
        max_output_tokens=max_new_tokens,
        temperature=0.1,
    )

    response = client.models.generate_content(
        model="gemma-3-4b-it",
        contents=[image_part, text_part],
        config=config,
    )
    result = response.text
    log.info(f"[GenAI] image analysis: {len(result or '')} chars")
    return result


def _hf_analyze_image(
    data_uri: str,
    prompt: str,
    model_id: str,
    system_prompt: str | None,
    max_new_tokens: int,
    token: str,
) -> str:
    """Call HF Inference API with image + text."""
    from huggingface_hub import InferenceClient

    client = InferenceClient(token=token)

    messages: list[dict] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({
        "role": "user",
        "content": [
            {"type": "image_url", "image_url": {"url": data_uri}},
            {"type": "text", "text": prompt},
        ],
    })

    response = client.chat_completion(
        model=model_id,
        messages=messages,
        max_tokens=max_new_tokens,
        temperature=0.1,
    )
    result = response.choices[0].message.content
    log.info(f"[HF] {model_id} image analysis: {len(result or '')} chars")
    return result
