"""
Medical Media Summary Flow -- summarizes the key findings of an uploaded
medical image (or a still from a video) given as a base64 data URI.
"""

from __future__ import annotations

import logging
from typing import Any

from healthdash.core.config import config
from healthdash.core.errors import InputMissing, MalformedResponse
from healthdash.core.inference_client import analyze_image_text, decode_data_uri
from healthdash.core.schemas import MediaSummary
from healthdash.flows.base import BaseFlow

log = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert medical professional specializing in summarizing medical "
    "findings from images and videos."
)

REPORT_PROMPT = (
    "Analyze the provided medical image and generate a concise summary of the key "
    "findings. Use the image as the primary source of information."
)

DEMO_SUMMARY = (
    "FINDINGS:\n"
    "No critical abnormalities detected on initial review of the uploaded media.\n\n"
    "SUMMARY:\n"
    "Preliminary analysis complete. Recommend review by a clinician together with "
    "the patient's history."
)


class MedicalMediaSummaryFlow(BaseFlow):
    """Produces a short findings summary for a medical image."""

    def __init__(self, backend=None):
        super().__init__(name="medical_media_summary", model_id=config.vision_model.model_id, backend=backend)

    async def summarize_medical_media(self, data_uri: str) -> MediaSummary:
        return await self.run(data_uri)

    @staticmethod
    def _validate(input_data: Any) -> str:
        if isinstance(input_data, dict):
            input_data = input_data.get("mediaDataUri") or input_data.get("media_data_uri")
        if not input_data:
            raise InputMissing("No image provided. Please upload an image.")
        decode_data_uri(input_data)
        return input_data

    def _demo(self, input_data: Any) -> MediaSummary:
        self._validate(input_data)
        return MediaSummary(summary_text=DEMO_SUMMARY)

    def _process(self, input_data: Any) -> MediaSummary:
        data_uri = self._validate(input_data)
        backend = self._backend or analyze_image_text
        raw = backend(
            data_uri,
            REPORT_PROMPT,
            model_id=self.model_id,
            system_prompt=SYSTEM_PROMPT,
            max_new_tokens=config.vision_model.max_new_tokens,
        )
        if not isinstance(raw, str) or not raw.strip():
            raise MalformedResponse(
                "Failed to generate summary. The AI could not process the request."
            )
        log.info(f"Media summary complete: {len(raw)} chars")
        return MediaSummary(summary_text=raw.strip())
