"""
Nutrition lookup against USDA FoodData Central.

Two calls: a search for the best match, then the food detail for its
nutrients. Branded foods carry ``labelNutrients``; for the rest the
values are picked out of ``foodNutrients`` by nutrient name.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from healthdash.core.config import config
from healthdash.core.errors import InputMissing, UpstreamUnavailable
from healthdash.core.schemas import NutritionFood, NutritionResponse
from healthdash.lookups.http import JSON_HEADERS, LookupClient

log = logging.getLogger(__name__)

FOOD_QUERY_REQUIRED = "Food query is required"
NUTRITION_UNAVAILABLE = "Nutrition service temporarily unavailable"
NUTRITION_FETCH_FAILED = "Failed to fetch nutrition data. Please try again."

LABEL_KEYS = {"calories": "calories", "protein": "protein", "carbs": "carbohydrates", "fat": "fat"}
NUTRIENT_NAMES = {"calories": "energy", "protein": "protein", "carbs": "carbohydrate", "fat": "fat"}


def _number(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def extract_nutrients(detail: dict) -> dict[str, float]:
    label = detail.get("labelNutrients")
    if label:
        return {
            field: _number((label.get(key) or {}).get("value"))
            for field, key in LABEL_KEYS.items()
        }

    nutrients = detail.get("foodNutrients")
    if not isinstance(nutrients, list):
        return {field: 0.0 for field in LABEL_KEYS}

    def find(name: str) -> float:
        for entry in nutrients:
            nutrient_name = ((entry or {}).get("nutrient") or {}).get("name") or ""
            if name in nutrient_name.lower():
                return _number(entry.get("amount"))
        return 0.0

    return {field: find(name) for field, name in NUTRIENT_NAMES.items()}


class NutritionClient(LookupClient):
    def __init__(
        self,
        http: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(http, **kwargs)
        self.base_url = (base_url or config.fdc_api_url).rstrip("/")
        self.api_key = api_key if api_key is not None else config.fdc_api_key

    async def search(self, query: Optional[str]) -> NutritionResponse:
        if not query or not query.strip():
            raise InputMissing(FOOD_QUERY_REQUIRED)
        if not self.api_key:
            log.error("Missing FDC_API_KEY environment variable")
            raise UpstreamUnavailable(NUTRITION_UNAVAILABLE, status_code=503)

        try:
            async with self._session() as http:
                search = await http.get(
                    f"{self.base_url}/foods/search",
                    params={"api_key": self.api_key, "query": query.strip(), "pageSize": 1},
                    headers=JSON_HEADERS,
                )
                search.raise_for_status()
                foods = (search.json() or {}).get("foods") or []
                first = foods[0] if foods else None
                if not first or not first.get("fdcId"):
                    return NutritionResponse(foods=[])

                detail_response = await http.get(
                    f"{self.base_url}/food/{first['fdcId']}",
                    params={"api_key": self.api_key},
                    headers=JSON_HEADERS,
                )
                detail_response.raise_for_status()
                detail = detail_response.json() or {}
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            log.error(f"Nutrition API Error: {exc}")
            raise UpstreamUnavailable(NUTRITION_FETCH_FAILED, status_code=500) from exc

        food = NutritionFood(
            id=int(time.time() * 1000),
            name=detail.get("description") or first.get("description") or "Unknown Food",
            serving="100 g",
            **extract_nutrients(detail),
        )
        log.info(f"FDC match for '{query}': {food.name}")
        return NutritionResponse(foods=[food])
