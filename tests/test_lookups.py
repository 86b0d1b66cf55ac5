"""
Tests for the third-party lookups (mocked HTTP) and the simulated healthcare service.
"""

from __future__ import annotations

import asyncio
import json
import random
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from healthdash.core.errors import InputMissing, NotFound, UpstreamUnavailable
from healthdash.core.schemas import (
    BloodPressureReading,
    HealthAlert,
    RiskScoreRequest,
    SymptomCheckRequest,
)
from healthdash.lookups.drugs import DRUG_FETCH_FAILED, DRUG_NOT_FOUND, DrugLabelClient, parse_label
from healthdash.lookups.healthcare import DEFAULT_RECOMMENDATION, HealthcareService, score_risk
from healthdash.lookups.nutrition import (
    NUTRITION_FETCH_FAILED,
    NUTRITION_UNAVAILABLE,
    NutritionClient,
    extract_nutrients,
)
from healthdash.lookups.symptoms import SYMPTOM_UNAVAILABLE, SymptomDiagnosisClient

ASPIRIN_LABEL = {
    "openfda": {"brand_name": ["Aspirin"], "generic_name": ["ASPIRIN"]},
    "purpose": ["Pain reliever"],
    "warnings": ["Reye's syndrome"],
    "dosage_and_administration": ["1-2 tablets every 4 hours"],
}


def _client(cls, handler, **kwargs):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return cls(http=http, **kwargs)


# ---------------------------------------------------------------------------
# openFDA
# ---------------------------------------------------------------------------

class TestDrugLabelClient:
    def test_found(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"results": [ASPIRIN_LABEL]})

        info = asyncio.run(_client(DrugLabelClient, handler).lookup("Aspirin"))
        assert info.brand_name == "Aspirin"
        assert info.generic_name == "ASPIRIN"
        assert info.dosage == "1-2 tablets every 4 hours"
        # absent sections get display defaults
        assert info.interactions == "No interactions listed"
        assert info.side_effects == "No side effects listed"
        assert seen[0].url.params["search"] == 'openfda.brand_name:"Aspirin"'
        assert seen[0].url.params["limit"] == "1"

    def test_blank_name_rejected_without_network(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(InputMissing) as err:
            asyncio.run(_client(DrugLabelClient, handler).lookup(""))
        assert err.value.status_code == 400
        assert err.value.message == "Drug name is required"

    def test_empty_results_not_found(self):
        client = _client(DrugLabelClient, lambda r: httpx.Response(200, json={"results": []}))
        with pytest.raises(NotFound) as err:
            asyncio.run(client.lookup("Zzz"))
        assert err.value.message == DRUG_NOT_FOUND

    def test_upstream_404_not_found(self):
        client = _client(DrugLabelClient, lambda r: httpx.Response(404, json={"error": {"code": "NOT_FOUND"}}))
        with pytest.raises(NotFound):
            asyncio.run(client.lookup("Zzz"))

    def test_upstream_5xx(self):
        client = _client(DrugLabelClient, lambda r: httpx.Response(503))
        with pytest.raises(UpstreamUnavailable) as err:
            asyncio.run(client.lookup("Aspirin"))
        assert err.value.status_code == 500
        assert err.value.message == DRUG_FETCH_FAILED

    def test_parse_label_defaults(self):
        info = parse_label({})
        assert info.brand_name == "N/A"
        assert info.dosage == "Consult physician"


# ---------------------------------------------------------------------------
# FoodData Central
# ---------------------------------------------------------------------------

class TestNutritionClient:
    def test_label_nutrients_preferred(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/foods/search"):
                assert request.url.params["pageSize"] == "1"
                return httpx.Response(200, json={"foods": [{"fdcId": 42, "description": "BANANA"}]})
            assert request.url.path.endswith("/food/42")
            return httpx.Response(200, json={
                "description": "Banana, raw",
                "labelNutrients": {
                    "calories": {"value": 89},
                    "protein": {"value": 1.1},
                    "carbohydrates": {"value": 22.8},
                    "fat": {"value": 0.3},
                },
            })

        response = asyncio.run(_client(NutritionClient, handler, api_key="k").search("banana"))
        food = response.foods[0]
        assert food.name == "Banana, raw"
        assert (food.calories, food.protein, food.carbs, food.fat) == (89, 1.1, 22.8, 0.3)
        assert food.serving == "100 g"

    def test_food_nutrients_matched_by_name(self):
        detail = {"foodNutrients": [
            {"nutrient": {"name": "Protein"}, "amount": 3.2},
            {"nutrient": {"name": "Energy"}, "amount": 61},
            {"nutrient": {"name": "Carbohydrate, by difference"}, "amount": 4.8},
            {"nutrient": {"name": "Total lipid (fat)"}, "amount": 3.3},
        ]}
        assert extract_nutrients(detail) == {"calories": 61, "protein": 3.2, "carbs": 4.8, "fat": 3.3}

    def test_missing_nutrients_are_zero(self):
        assert extract_nutrients({}) == {"calories": 0, "protein": 0, "carbs": 0, "fat": 0}

    def test_no_match_is_empty_list(self):
        client = _client(NutritionClient, lambda r: httpx.Response(200, json={"foods": []}), api_key="k")
        assert asyncio.run(client.search("unobtainium")).foods == []

    def test_missing_key_is_unavailable(self):
        client = _client(NutritionClient, lambda r: httpx.Response(200), api_key="")
        with pytest.raises(UpstreamUnavailable) as err:
            asyncio.run(client.search("banana"))
        assert err.value.status_code == 503
        assert err.value.message == NUTRITION_UNAVAILABLE

    def test_blank_query(self):
        client = _client(NutritionClient, lambda r: httpx.Response(200), api_key="k")
        with pytest.raises(InputMissing):
            asyncio.run(client.search(" "))

    def test_upstream_failure(self):
        client = _client(NutritionClient, lambda r: httpx.Response(500), api_key="k")
        with pytest.raises(UpstreamUnavailable) as err:
            asyncio.run(client.search("banana"))
        assert err.value.status_code == 500
        assert err.value.message == NUTRITION_FETCH_FAILED


# ---------------------------------------------------------------------------
# Infermedica
# ---------------------------------------------------------------------------

class TestSymptomDiagnosisClient:
    def test_parse_then_diagnosis(self):
        bodies = {}

        def handler(request: httpx.Request) -> httpx.Response:
            bodies[request.url.path.rsplit("/", 1)[-1]] = json.loads(request.content)
            assert request.headers["App-Id"] == "id"
            if request.url.path.endswith("/parse"):
                return httpx.Response(200, json={"mentions": [{"id": "s_21"}, {"id": "s_98"}]})
            return httpx.Response(200, json={
                "conditions": [{"id": "c_87", "common_name": "Common cold", "probability": 0.41}],
                "question": {"type": "single", "text": "Do you have a cough?"},
                "should_stop": False,
            })

        client = _client(SymptomDiagnosisClient, handler, app_id="id", app_key="key")
        result = asyncio.run(client.diagnose(SymptomCheckRequest(symptoms="headache and fever", age="30", gender="male")))
        assert result.conditions[0].common_name == "Common cold"
        assert bodies["parse"] == {"text": "headache and fever"}
        assert bodies["diagnosis"] == {
            "sex": "male",
            "age": {"value": 30},
            "evidence": [{"id": "s_21", "choice_id": "present"}, {"id": "s_98", "choice_id": "present"}],
        }
        assert result.model_dump()["should_stop"] is False

    def test_missing_fields(self):
        client = _client(SymptomDiagnosisClient, lambda r: httpx.Response(200), app_id="id", app_key="key")
        with pytest.raises(InputMissing) as err:
            asyncio.run(client.diagnose(SymptomCheckRequest(symptoms="cough", age="30")))
        assert err.value.message == "Symptoms, age, and gender are required"

    def test_missing_credentials(self):
        client = _client(SymptomDiagnosisClient, lambda r: httpx.Response(200), app_id="", app_key="")
        with pytest.raises(UpstreamUnavailable) as err:
            asyncio.run(client.diagnose(SymptomCheckRequest(symptoms="cough", age="30", gender="female")))
        assert err.value.status_code == 503
        assert err.value.message == SYMPTOM_UNAVAILABLE

    def test_malformed_parse_reply(self):
        client = _client(SymptomDiagnosisClient, lambda r: httpx.Response(200, json={}), app_id="id", app_key="key")
        with pytest.raises(UpstreamUnavailable) as err:
            asyncio.run(client.diagnose(SymptomCheckRequest(symptoms="cough", age="30", gender="female")))
        assert err.value.status_code == 500


# ---------------------------------------------------------------------------
# Simulated healthcare service
# ---------------------------------------------------------------------------

def _risk(**overrides):
    data = {
        "age": 30,
        "blood_pressure": BloodPressureReading(systolic=120, diastolic=80),
        "cholesterol": 180,
        "bmi": 22,
        "smoker": False,
        "diabetic": False,
    }
    data.update(overrides)
    return RiskScoreRequest(**data)


class TestHealthcareService:
    service = HealthcareService(latency=0, rng=random.Random(7))

    def test_interactions_order_insensitive(self):
        found = asyncio.run(self.service.check_drug_interactions(["Warfarin", "aspirin", "Ibuprofen"]))
        pairs = {(i.drug1, i.drug2, i.severity) for i in found}
        assert pairs == {("Aspirin", "Warfarin", "major"), ("Aspirin", "Ibuprofen", "moderate")}

    def test_no_interactions(self):
        assert asyncio.run(self.service.check_drug_interactions(["metformin"])) == []

    def test_condition_lookup(self):
        condition = asyncio.run(self.service.search_medical_condition("Asthma"))
        assert condition.name == "Asthma"
        assert asyncio.run(self.service.search_medical_condition("gout")) is None

    def test_medication_info(self):
        info = asyncio.run(self.service.get_medication_info("metformin"))
        assert info.generic_name == "Metformin Hydrochloride"
        assert asyncio.run(self.service.get_medication_info("unknown")) is None

    def test_wearable_ranges(self):
        data = asyncio.run(self.service.fetch_wearable_data("jane-doe"))
        assert 60 <= data.heart_rate < 90
        assert 5000 <= data.steps < 10000
        assert 95 <= data.blood_oxygen < 98
        assert data.timestamp

    def test_alert_receipt(self):
        alert = HealthAlert(
            patient_id="jane-doe", type="critical", metric="heartRate",
            value=150, threshold=120, message="Heart rate above threshold",
        )
        receipt = asyncio.run(self.service.send_health_alert(alert))
        assert receipt.success
        assert receipt.alert_id.startswith("alert-")
        assert len(receipt.alert_id.rsplit("-", 1)[1]) == 9


class TestRiskScore:
    def test_healthy_adult(self):
        score = score_risk(_risk())
        assert score.score == 0
        assert score.risk == "low"
        assert score.recommendations == [DEFAULT_RECOMMENDATION]

    def test_moderate(self):
        score = score_risk(_risk(age=50, blood_pressure=BloodPressureReading(systolic=145, diastolic=92)))
        assert score.score == 25
        assert score.risk == "moderate"
        assert len(score.recommendations) == 1

    def test_high(self):
        score = score_risk(_risk(age=70, cholesterol=250, bmi=32, smoker=True, diabetic=True))
        assert score.score == 80
        assert score.risk == "high"
        assert len(score.recommendations) == 4

    def test_boundaries_are_exclusive(self):
        score = score_risk(_risk(age=65, cholesterol=240, bmi=30))
        assert score.score == 10
