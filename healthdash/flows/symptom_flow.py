"""
Symptom Summary Flow -- turns a free-text symptom description into a
plain-language list of possible conditions.
"""

from __future__ import annotations

import logging
from typing import Any

from healthdash.core.config import config
from healthdash.core.errors import InputMissing, MalformedResponse
from healthdash.core.inference_client import generate_text
from healthdash.core.schemas import SymptomSummary
from healthdash.flows.base import BaseFlow

log = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an AI-powered medical chatbot designed to help users understand "
    "possible medical conditions based on their symptoms."
)

SYMPTOM_PROMPT = """Given the following symptoms:
{symptoms}

Please provide a list of possible conditions that could be causing these symptoms. \
This information is not a substitute for professional medical advice, diagnosis, or \
treatment. Always seek the advice of a qualified healthcare provider for any questions \
you may have regarding a medical condition."""

DEMO_SUMMARY = (
    "Possible conditions:\n"
    "- Common cold (viral upper respiratory infection)\n"
    "- Influenza\n"
    "- Streptococcal pharyngitis (strep throat)\n\n"
    "This is not a medical diagnosis. Please consult a healthcare professional."
)


class SymptomSummaryFlow(BaseFlow):
    """Summarizes user-described symptoms into possible conditions."""

    def __init__(self, backend=None):
        super().__init__(name="symptom_summary", model_id=config.text_model.model_id, backend=backend)

    async def summarize_symptoms(self, text: str) -> SymptomSummary:
        return await self.run(text)

    @staticmethod
    def _validate(input_data: Any) -> str:
        if isinstance(input_data, dict):
            input_data = input_data.get("symptoms", "")
        text = (input_data or "").strip()
        if not text:
            raise InputMissing("Please describe your symptoms.")
        return text

    def _demo(self, input_data: Any) -> SymptomSummary:
        self._validate(input_data)
        return SymptomSummary(summary_text=DEMO_SUMMARY)

    def _process(self, input_data: Any) -> SymptomSummary:
        symptoms = self._validate(input_data)
        backend = self._backend or generate_text
        raw = backend(
            SYMPTOM_PROMPT.format(symptoms=symptoms),
            model_id=self.model_id,
            system_prompt=SYSTEM_PROMPT,
            max_new_tokens=config.text_model.max_new_tokens,
        )
        if not isinstance(raw, str) or not raw.strip():
            raise MalformedResponse("Failed to get insights. The AI could not process the request.")
        log.info(f"Symptom summary complete: {len(raw)} chars")
        return SymptomSummary(summary_text=raw.strip())
