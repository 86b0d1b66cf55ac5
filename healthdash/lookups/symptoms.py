"""
Symptom-to-diagnosis lookup against Infermedica.

The free-text symptoms go through ``/parse`` to get evidence ids, which
are then sent to ``/diagnosis`` together with sex and age.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from healthdash.core.config import config
from healthdash.core.errors import InputMissing, UpstreamUnavailable
from healthdash.core.schemas import DiagnosisResult, SymptomCheckRequest
from healthdash.lookups.http import JSON_HEADERS, LookupClient

log = logging.getLogger(__name__)

SYMPTOM_FIELDS_REQUIRED = "Symptoms, age, and gender are required"
SYMPTOM_UNAVAILABLE = "Symptom checker service temporarily unavailable"
SYMPTOM_FETCH_FAILED = "Failed to analyze symptoms. Please try again."


class SymptomDiagnosisClient(LookupClient):
    def __init__(
        self,
        http: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        app_id: Optional[str] = None,
        app_key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(http, **kwargs)
        self.base_url = (base_url or config.infermedica_api_url).rstrip("/")
        self.app_id = app_id if app_id is not None else config.infermedica_app_id
        self.app_key = app_key if app_key is not None else config.infermedica_app_key

    def _headers(self) -> dict:
        return {
            **JSON_HEADERS,
            "Content-Type": "application/json",
            "App-Id": self.app_id,
            "App-Key": self.app_key,
        }

    async def diagnose(self, request: SymptomCheckRequest) -> DiagnosisResult:
        if not request.symptoms or not request.age or not request.gender:
            raise InputMissing(SYMPTOM_FIELDS_REQUIRED)
        try:
            age = int(str(request.age).strip())
        except ValueError as exc:
            raise InputMissing("Age must be a whole number") from exc

        if not self.app_id or not self.app_key:
            log.error("Missing Infermedica API credentials")
            raise UpstreamUnavailable(SYMPTOM_UNAVAILABLE, status_code=503)

        try:
            async with self._session() as http:
                parsed = await http.post(
                    f"{self.base_url}/parse",
                    json={"text": request.symptoms},
                    headers=self._headers(),
                )
                parsed.raise_for_status()
                mentions = parsed.json()["mentions"]

                diagnosis = await http.post(
                    f"{self.base_url}/diagnosis",
                    json={
                        "sex": request.gender,
                        "age": {"value": age},
                        "evidence": [{"id": m["id"], "choice_id": "present"} for m in mentions],
                    },
                    headers=self._headers(),
                )
                diagnosis.raise_for_status()
                result = DiagnosisResult.model_validate(diagnosis.json())
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            log.error(f"Infermedica API Error: {exc}")
            raise UpstreamUnavailable(SYMPTOM_FETCH_FAILED, status_code=500) from exc

        log.info(f"Diagnosis returned {len(result.conditions)} conditions")
        return result
