"""
Human Presence Flow -- decides whether a person is visible in a camera frame.

The upstream model is asked for JSON but does not always comply. Replies
are parsed in two stages:

  1. Structured: a JSON object (optionally wrapped in a ``` fence) with a
     boolean under ``present``, ``humanDetected`` or ``personDetected``.
  2. Heuristic: if that fails, the raw text is searched for "person" or
     "human". A hit yields present=True at 0.7 confidence, otherwise
     present=False at 0.3.

The heuristic never raises, so a garbled reply still produces an answer.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from healthdash.core.config import config
from healthdash.core.errors import InputMissing
from healthdash.core.inference_client import analyze_image_text, decode_data_uri
from healthdash.core.schemas import HumanPresence
from healthdash.flows.base import BaseFlow

log = logging.getLogger(__name__)

PRESENCE_KEYS = ("present", "humanDetected", "personDetected", "detected")
HEURISTIC_KEYWORDS = ("person", "human")
HEURISTIC_HIT_CONFIDENCE = 0.7
HEURISTIC_MISS_CONFIDENCE = 0.3
FALLBACK_MESSAGE = "Could not reliably determine if a person was present from the response."

DETECT_PROMPT = (
    "Analyze this image and determine if a human person is visible in it.\n"
    "Respond with a JSON object containing:\n"
    "- present (boolean): true if a person is clearly visible, false otherwise\n"
    "- confidence (number): your confidence level from 0 to 1\n"
    "- message (string): a brief description of what you see\n\n"
    "Be strict - only return true if you can clearly see a human person."
)

DEMO_REPLY = "Demo mode: a human figure appears to be standing in the centre of the frame."


def _strip_fence(text: str) -> str:
    if "```" in text:
        text = text.split("```")[1]
        if text.startswith("json"):
            text = text[4:]
    return text.strip()


def parse_presence_reply(raw: Any) -> HumanPresence:
    """Parse a model reply, falling back to the keyword heuristic."""
    text = raw if isinstance(raw, str) else ("" if raw is None else str(raw))
    try:
        data = json.loads(_strip_fence(text))
        if not isinstance(data, dict):
            raise ValueError("reply is not a JSON object")
        present = next((data[k] for k in PRESENCE_KEYS if k in data), None)
        if not isinstance(present, bool):
            raise ValueError("no boolean presence field")
        return HumanPresence(
            present=present,
            confidence=data.get("confidence"),
            message=data.get("message") or "AI analysis completed.",
        )
    except ValueError as exc:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
        log.warning(f"Unstructured presence reply, using keyword heuristic: {exc}")

    lowered = text.lower()
    present = any(keyword in lowered for keyword in HEURISTIC_KEYWORDS)
    return HumanPresence(
        present=present,
        confidence=HEURISTIC_HIT_CONFIDENCE if present else HEURISTIC_MISS_CONFIDENCE,
        message=text.strip() or FALLBACK_MESSAGE,
    )


class HumanPresenceFlow(BaseFlow):
    """Classifies a captured frame as containing a person or not."""

    def __init__(self, backend=None):
        super().__init__(name="human_presence", model_id=config.vision_model.model_id, backend=backend)

    async def detect_human_presence(self, data_uri: str) -> HumanPresence:
        return await self.run(data_uri)

    @staticmethod
    def _validate(input_data: Any) -> str:
        if isinstance(input_data, dict):
            input_data = input_data.get("mediaDataUri") or input_data.get("media_data_uri")
        if not input_data:
            raise InputMissing("No image captured. Please try again.")
        decode_data_uri(input_data)
        return input_data

    def _demo(self, input_data: Any) -> HumanPresence:
        self._validate(input_data)
        return parse_presence_reply(DEMO_REPLY)

    def _process(self, input_data: Any) -> HumanPresence:
        data_uri = self._validate(input_data)
        backend = self._backend or analyze_image_text
        raw = backend(
            data_uri,
            DETECT_PROMPT,
            model_id=self.model_id,
            system_prompt="You are a vision system. Respond with JSON only.",
            max_new_tokens=128,
        )
        result = parse_presence_reply(raw)
        log.info(f"Human presence: {result.present} ({result.confidence})")
        return result
