"""
Generative Flow Service -- the single entry point the dashboard and the API
use to reach the AI-backed flows.

  summarize_symptoms(text)            -> SymptomSummary
  summarize_medical_media(data_uri)   -> MediaSummary
  detect_human_presence(data_uri)     -> HumanPresence

Each call is one-shot: no queueing, no retry.
"""

from __future__ import annotations

import logging

from healthdash.core.inference_client import get_inference_backend
from healthdash.core.schemas import HumanPresence, MediaSummary, SymptomSummary
from healthdash.flows.human_detection_flow import HumanPresenceFlow
from healthdash.flows.report_flow import MedicalMediaSummaryFlow
from healthdash.flows.symptom_flow import SymptomSummaryFlow

log = logging.getLogger(__name__)


class FlowService:
    """Groups the three flows and reports their telemetry."""

    def __init__(
        self,
        symptoms: SymptomSummaryFlow | None = None,
        media: MedicalMediaSummaryFlow | None = None,
        presence: HumanPresenceFlow | None = None,
    ):
        self.symptoms = symptoms or SymptomSummaryFlow()
        self.media = media or MedicalMediaSummaryFlow()
        self.presence = presence or HumanPresenceFlow()

        self._flows = [self.symptoms, self.media, self.presence]

    async def summarize_symptoms(self, text: str) -> SymptomSummary:
        return await self.symptoms.summarize_symptoms(text)

    async def summarize_medical_media(self, data_uri: str) -> MediaSummary:
        return await self.media.summarize_medical_media(data_uri)

    async def detect_human_presence(self, data_uri: str) -> HumanPresence:
        return await self.presence.detect_human_presence(data_uri)

    def get_status(self) -> dict[str, bool]:
        """Flow name -> whether it will call a real backend."""
        return {f.name: not f.demo_mode for f in self._flows}

    def get_telemetry(self) -> dict:
        flows = [f.telemetry for f in self._flows]
        total_runs = sum(t["execution_count"] for t in flows)
        total_failures = sum(t["failure_count"] for t in flows)
        return {
            "inference_backend": get_inference_backend(),
            "flows": flows,
            "total_executions": total_runs,
            "total_failures": total_failures,
        }
