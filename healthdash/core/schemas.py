"""Pydantic schemas for API request/response models and dashboard records."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Flow-level schemas
# ---------------------------------------------------------------------------

class FlowResult(BaseModel):
    """Standard result envelope returned by every generative flow."""

    flow_name: str
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    processing_time_ms: float = 0.0
    model_used: str = ""


class SymptomSummary(CamelModel):
    summary_text: str


class MediaSummary(CamelModel):
    summary_text: str


class HumanPresence(CamelModel):
    """Output of the human-presence flow."""
    present: bool
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    message: str


class ClassificationResult(CamelModel):
    """What the capture dialog shows after a scan settles."""
    detected: bool
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    message: str


class FormState(BaseModel):
    """Transient ``{result, error}`` pair owned by one dialog."""
    result: Any = None
    error: Optional[str] = None


class SymptomFlowRequest(BaseModel):
    symptoms: str = ""


class MediaFlowRequest(CamelModel):
    media_data_uri: str = ""


# ---------------------------------------------------------------------------
# Third-party lookups
# ---------------------------------------------------------------------------

class DrugInfo(CamelModel):
    brand_name: str = "N/A"
    generic_name: str = "N/A"
    purpose: str = "N/A"
    warnings: str = "No warnings available"
    dosage: str = "Consult physician"
    interactions: str = "No interactions listed"
    side_effects: str = "No side effects listed"


class NutritionRequest(BaseModel):
    query: Optional[str] = None


class NutritionFood(BaseModel):
    id: int
    name: str
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    serving: str = "100 g"


class NutritionResponse(BaseModel):
    foods: list[NutritionFood] = Field(default_factory=list)


class SymptomCheckRequest(BaseModel):
    symptoms: Optional[str] = None
    age: Optional[str] = None
    gender: Optional[str] = None


class Condition(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    common_name: str = ""
    probability: float = 0.0


class DiagnosisResult(BaseModel):
    """Diagnosis payload, passed through from the upstream service."""

    model_config = ConfigDict(extra="allow")

    conditions: list[Condition] = Field(default_factory=list)
    question: Optional[dict] = None


# ---------------------------------------------------------------------------
# Dashboard records (owned by the document store)
# ---------------------------------------------------------------------------

class PatientProfile(CamelModel):
    id: str
    name: str = ""
    age: Optional[int] = None
    blood_type: str = ""


class Medication(CamelModel):
    id: str
    name: str = ""
    dosage: str = ""
    time: str = ""
    icon: str = "pill"


class MetricPoint(BaseModel):
    time: str
    value: float


class HealthMetric(CamelModel):
    id: str
    name: str = ""
    value: str = ""
    unit: str = ""
    icon: str = ""
    data: list[MetricPoint] = Field(default_factory=list)


class Appointment(CamelModel):
    id: int
    patient_name: str
    doctor_name: str
    date: str
    time: str
    type: str = ""
    phone: str = ""
    email: str = ""
    reminder24h: bool = False
    reminder1h: bool = False
    created_at: str = ""


# ---------------------------------------------------------------------------
# Simulated healthcare service
# ---------------------------------------------------------------------------

class WearableData(CamelModel):
    heart_rate: Optional[int] = None
    steps: Optional[int] = None
    blood_oxygen: Optional[int] = None
    sleep_minutes: Optional[int] = None
    active_minutes: Optional[int] = None
    calories: Optional[int] = None
    timestamp: str


class DrugInteraction(CamelModel):
    drug1: str
    drug2: str
    severity: Literal["minor", "moderate", "major"]
    description: str


class InteractionCheckRequest(BaseModel):
    medications: list[str] = Field(default_factory=list)


class MedicalCondition(BaseModel):
    name: str
    description: str
    symptoms: list[str]
    treatments: list[str]
    prevalence: str


class MedicationInfo(CamelModel):
    name: str
    generic_name: str
    brand_names: list[str]
    purpose: str
    common_side_effects: list[str]
    serious_side_effects: list[str]
    warnings: list[str]


class BloodPressureReading(BaseModel):
    systolic: float
    diastolic: float


class RiskScoreRequest(CamelModel):
    age: int
    blood_pressure: BloodPressureReading
    cholesterol: float
    bmi: float
    smoker: bool = False
    diabetic: bool = False


class RiskScore(BaseModel):
    score: int
    risk: Literal["low", "moderate", "high"]
    recommendations: list[str]


class HealthAlert(CamelModel):
    patient_id: str
    type: Literal["critical", "warning", "info"]
    metric: str
    value: float
    threshold: float
    message: str


class AlertReceipt(CamelModel):
    success: bool
    alert_id: str
