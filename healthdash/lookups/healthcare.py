"""
Simulated healthcare integrations.

Stands in for wearable, drug-database and remote-monitoring services.
Every call sleeps for a fixed artificial latency first so the dashboard
exercises its loading states; pass ``latency=0`` (or set
``SIMULATE_LATENCY=0``) to turn that off.
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
import time
from datetime import datetime, timezone
from typing import Optional

from healthdash.core.config import config
from healthdash.core.schemas import (
    AlertReceipt,
    DrugInteraction,
    HealthAlert,
    MedicalCondition,
    MedicationInfo,
    RiskScore,
    RiskScoreRequest,
    WearableData,
)

log = logging.getLogger(__name__)

# Seconds per call before any scaling
LATENCY = {
    "wearable": 1.0,
    "interactions": 0.8,
    "condition": 0.6,
    "risk": 0.5,
    "medication": 0.7,
    "alert": 0.5,
}

# Pair table, checked in either order
KNOWN_INTERACTIONS = {
    ("aspirin", "warfarin"): DrugInteraction(
        drug1="Aspirin",
        drug2="Warfarin",
        severity="major",
        description="Increased risk of bleeding. Both medications thin the blood and can cause "
                    "serious bleeding complications when taken together.",
    ),
    ("aspirin", "ibuprofen"): DrugInteraction(
        drug1="Aspirin",
        drug2="Ibuprofen",
        severity="moderate",
        description="Reduced effectiveness of aspirin. Ibuprofen may interfere with the "
                    "cardioprotective effects of aspirin.",
    ),
    ("metformin", "alcohol"): DrugInteraction(
        drug1="Metformin",
        drug2="Alcohol",
        severity="moderate",
        description="Increased risk of lactic acidosis. Excessive alcohol consumption can "
                    "increase the risk of this serious side effect.",
    ),
}

CONDITIONS = {
    "hypertension": MedicalCondition(
        name="Hypertension (High Blood Pressure)",
        description="A condition in which the force of blood against artery walls is too high.",
        symptoms=["Headaches", "Shortness of breath", "Nosebleeds", "Often asymptomatic"],
        treatments=[
            "Lifestyle modifications (diet, exercise)",
            "ACE inhibitors",
            "Diuretics",
            "Beta blockers",
        ],
        prevalence="Affects approximately 1 in 3 adults in the US",
    ),
    "diabetes": MedicalCondition(
        name="Diabetes Mellitus Type 2",
        description="A chronic condition affecting how the body processes blood sugar (glucose).",
        symptoms=[
            "Increased thirst",
            "Frequent urination",
            "Increased hunger",
            "Fatigue",
            "Blurred vision",
            "Slow-healing sores",
        ],
        treatments=["Metformin", "Insulin therapy", "Diet and exercise", "Blood sugar monitoring"],
        prevalence="Affects over 37 million Americans",
    ),
    "asthma": MedicalCondition(
        name="Asthma",
        description="A chronic respiratory condition characterized by inflammation and narrowing of airways.",
        symptoms=["Shortness of breath", "Chest tightness", "Wheezing", "Coughing"],
        treatments=[
            "Inhaled corticosteroids",
            "Bronchodilators",
            "Avoiding triggers",
            "Action plan management",
        ],
        prevalence="Affects approximately 1 in 13 people",
    ),
}

MEDICATIONS = {
    "metformin": MedicationInfo(
        name="Metformin",
        generic_name="Metformin Hydrochloride",
        brand_names=["Glucophage", "Fortamet", "Riomet"],
        purpose="Used to treat type 2 diabetes by lowering blood sugar levels",
        common_side_effects=["Nausea", "Diarrhea", "Stomach upset", "Metallic taste"],
        serious_side_effects=[
            "Lactic acidosis (rare but serious)",
            "Vitamin B12 deficiency",
            "Hypoglycemia when combined with other medications",
        ],
        warnings=[
            "Avoid excessive alcohol consumption",
            "Inform doctor before surgery or imaging tests",
            "Monitor kidney function regularly",
        ],
    ),
    "lisinopril": MedicationInfo(
        name="Lisinopril",
        generic_name="Lisinopril",
        brand_names=["Zestril", "Prinivil", "Qbrelis"],
        purpose="ACE inhibitor used to treat high blood pressure and heart failure",
        common_side_effects=["Dry cough", "Dizziness", "Headache", "Fatigue"],
        serious_side_effects=[
            "Angioedema (swelling)",
            "Hyperkalemia (high potassium)",
            "Kidney problems",
            "Severe hypotension",
        ],
        warnings=[
            "Do not use during pregnancy",
            "Monitor potassium levels",
            "Can cause dizziness when standing up quickly",
        ],
    ),
}

DEFAULT_RECOMMENDATION = "Maintain your current healthy lifestyle"


def score_risk(data: RiskScoreRequest) -> RiskScore:
    """Additive cardiovascular risk score. Pure; no latency."""
    score = 0
    recommendations: list[str] = []

    if data.age > 65:
        score += 20
    elif data.age > 45:
        score += 10

    if data.blood_pressure.systolic > 140 or data.blood_pressure.diastolic > 90:
        score += 15
        recommendations.append("Monitor blood pressure regularly and consider lifestyle modifications")

    if data.cholesterol > 240:
        score += 15
        recommendations.append("Reduce dietary cholesterol and increase physical activity")

    if data.bmi > 30:
        score += 10
        recommendations.append("Work towards a healthy weight through diet and exercise")

    if data.smoker:
        score += 20
        recommendations.append("Quit smoking - it significantly increases cardiovascular risk")

    if data.diabetic:
        score += 15
        recommendations.append("Maintain tight blood sugar control through medication and lifestyle")

    if score < 20:
        risk = "low"
    elif score < 50:
        risk = "moderate"
    else:
        risk = "high"

    return RiskScore(score=score, risk=risk, recommendations=recommendations or [DEFAULT_RECOMMENDATION])


def find_interactions(medications: list[str]) -> list[DrugInteraction]:
    found = []
    names = [m.strip().lower() for m in medications]
    for i, first in enumerate(names):
        for second in names[i + 1:]:
            hit = KNOWN_INTERACTIONS.get((first, second)) or KNOWN_INTERACTIONS.get((second, first))
            if hit:
                found.append(hit)
    return found


def _alert_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"alert-{int(time.time() * 1000)}-{suffix}"


class HealthcareService:
    """Async facade over the simulated tables above."""

    def __init__(self, latency: Optional[float] = None, rng: Optional[random.Random] = None):
        # Multiplier on LATENCY; 0 disables the sleeps
        if latency is None:
            latency = 1.0 if config.simulate_latency else 0.0
        self.latency = latency
        self._rng = rng or random.Random()

    async def _delay(self, kind: str) -> None:
        if self.latency > 0:
            await asyncio.sleep(LATENCY[kind] * self.latency)

    async def fetch_wearable_data(self, user_id: str) -> WearableData:
        await self._delay("wearable")
        rng = self._rng
        return WearableData(
            heart_rate=rng.randrange(60, 90),
            steps=rng.randrange(5000, 10000),
            blood_oxygen=rng.randrange(95, 98),
            sleep_minutes=rng.randrange(360, 480),
            active_minutes=rng.randrange(30, 90),
            calories=rng.randrange(1500, 2000),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    async def check_drug_interactions(self, medications: list[str]) -> list[DrugInteraction]:
        await self._delay("interactions")
        interactions = find_interactions(medications)
        log.info(f"Interaction check: {len(medications)} medications, {len(interactions)} interactions")
        return interactions

    async def search_medical_condition(self, name: str) -> Optional[MedicalCondition]:
        await self._delay("condition")
        return CONDITIONS.get(name.strip().lower())

    async def get_medication_info(self, name: str) -> Optional[MedicationInfo]:
        await self._delay("medication")
        return MEDICATIONS.get(name.strip().lower())

    async def calculate_health_risk_score(self, data: RiskScoreRequest) -> RiskScore:
        await self._delay("risk")
        return score_risk(data)

    async def send_health_alert(self, alert: HealthAlert) -> AlertReceipt:
        await self._delay("alert")
        log.warning(f"Health Alert [{alert.type}] {alert.patient_id}: {alert.metric}={alert.value} ({alert.message})")
        return AlertReceipt(success=True, alert_id=_alert_id())
