"""
Drug label lookup against openFDA.

GET {FDA_API_URL}?search=openfda.brand_name:"<name>"&limit=1 and map the
first label onto ``DrugInfo``.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from healthdash.core.config import config
from healthdash.core.errors import InputMissing, NotFound, UpstreamUnavailable
from healthdash.core.schemas import DrugInfo
from healthdash.lookups.http import JSON_HEADERS, LookupClient

log = logging.getLogger(__name__)

DRUG_NAME_REQUIRED = "Drug name is required"
DRUG_NOT_FOUND = "Drug not found in FDA database"
DRUG_FETCH_FAILED = "Failed to fetch drug information. Please try again later."


def _first(value) -> Optional[str]:
    if isinstance(value, list) and value:
        return value[0] or None
    return None


def parse_label(label: dict) -> DrugInfo:
    """Map one openFDA label record onto DrugInfo, with display defaults."""
    openfda = label.get("openfda") or {}
    fields = {
        "brand_name": _first(openfda.get("brand_name")),
        "generic_name": _first(openfda.get("generic_name")),
        "purpose": _first(label.get("purpose")),
        "warnings": _first(label.get("warnings")),
        "dosage": _first(label.get("dosage_and_administration")),
        "interactions": _first(label.get("drug_interactions")),
        "side_effects": _first(label.get("adverse_reactions")),
    }
    return DrugInfo(**{k: v for k, v in fields.items() if v})


class DrugLabelClient(LookupClient):
    def __init__(self, http: Optional[httpx.AsyncClient] = None, base_url: Optional[str] = None, **kwargs):
        super().__init__(http, **kwargs)
        self.base_url = base_url or config.fda_api_url

    async def lookup(self, name: Optional[str]) -> DrugInfo:
        if not name or not name.strip():
            raise InputMissing(DRUG_NAME_REQUIRED)
        name = name.strip()

        params = {"search": f'openfda.brand_name:"{name}"', "limit": 1}
        try:
            async with self._session() as http:
                response = await http.get(self.base_url, params=params, headers=JSON_HEADERS)
            if response.status_code == 404:
                # openFDA answers 404 for a search with no matches
                raise NotFound(DRUG_NOT_FOUND)
            response.raise_for_status()
            data = response.json()
        except NotFound:
            raise
        except (httpx.HTTPError, ValueError) as exc:
            log.error(f"FDA API Error: {exc}")
            raise UpstreamUnavailable(DRUG_FETCH_FAILED, status_code=500) from exc

        results = data.get("results") if isinstance(data, dict) else None
        if not results:
            raise NotFound(DRUG_NOT_FOUND)
        info = parse_label(results[0])
        log.info(f"FDA label found for '{name}': {info.brand_name}")
        return info
