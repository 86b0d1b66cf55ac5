"""
Form actions: field mapping in, ``FormState`` out.

These are the server-side halves of the dashboard dialogs. They never
raise; every failure becomes ``FormState(error=...)``.
"""

from __future__ import annotations

import logging
from typing import Mapping

from healthdash.core.errors import HealthDashError, UnexpectedError
from healthdash.core.schemas import ClassificationResult, FormState
from healthdash.flows.service import FlowService

log = logging.getLogger(__name__)

SYMPTOMS_REQUIRED = "Please describe your symptoms."
SYMPTOMS_FAILED = "Failed to get insights. The AI could not process the request."
REPORT_REQUIRED = "No image provided. Please upload an image."
REPORT_FAILED = "Failed to generate summary. The AI could not process the request."
DETECT_REQUIRED = "No image captured. Please try again."

SYMPTOM_FIELDS = {"symptoms": SYMPTOMS_REQUIRED}
REPORT_FIELDS = {"mediaDataUri": REPORT_REQUIRED}
DETECT_FIELDS = {"mediaDataUri": DETECT_REQUIRED}


def _field(fields: Mapping[str, object], name: str) -> str:
    value = fields.get(name)
    return value.strip() if isinstance(value, str) else ""


def _failure(exc: Exception) -> FormState:
    if isinstance(exc, HealthDashError):
        return FormState(result=None, error=exc.message)
    log.error(f"Unexpected form action error: {exc}")
    return FormState(result=None, error=UnexpectedError().message)


async def handle_symptom_check(fields: Mapping[str, object], flows: FlowService) -> FormState:
    symptoms = _field(fields, "symptoms")
    if not symptoms:
        return FormState(result=None, error=SYMPTOMS_REQUIRED)
    try:
        summary = await flows.summarize_symptoms(symptoms)
    except Exception as exc:
        return _failure(exc)
    if not summary.summary_text:
        return FormState(result=None, error=SYMPTOMS_FAILED)
    return FormState(result=summary.summary_text, error=None)


async def handle_generate_report(fields: Mapping[str, object], flows: FlowService) -> FormState:
    data_uri = _field(fields, "mediaDataUri")
    if not data_uri:
        return FormState(result=None, error=REPORT_REQUIRED)
    try:
        summary = await flows.summarize_medical_media(data_uri)
    except Exception as exc:
        return _failure(exc)
    if not summary.summary_text:
        return FormState(result=None, error=REPORT_FAILED)
    return FormState(result=summary.summary_text, error=None)


async def handle_detect_human(fields: Mapping[str, object], flows: FlowService) -> FormState:
    data_uri = _field(fields, "mediaDataUri")
    if not data_uri:
        return FormState(result=None, error=DETECT_REQUIRED)
    try:
        presence = await flows.detect_human_presence(data_uri)
    except Exception as exc:
        return _failure(exc)
    return FormState(
        result=ClassificationResult(
            detected=presence.present,
            confidence=presence.confidence,
            message=presence.message,
        ),
        error=None,
    )
