"""
HealthDash -- FastAPI backend server.

Exposes the third-party lookups (openFDA, USDA FoodData Central,
Infermedica), the simulated healthcare integrations and the three
generative flows over REST.

Every failure body is ``{"error": "<message>"}`` with the status code
carried by the raised ``HealthDashError``.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from healthdash.core.config import config
from healthdash.core.errors import HealthDashError, NotFound
from healthdash.core.inference_client import get_inference_backend
from healthdash.core.schemas import (
    AlertReceipt,
    DiagnosisResult,
    DrugInfo,
    DrugInteraction,
    HealthAlert,
    InteractionCheckRequest,
    MedicalCondition,
    MedicationInfo,
    MediaFlowRequest,
    NutritionRequest,
    NutritionResponse,
    RiskScore,
    RiskScoreRequest,
    SymptomCheckRequest,
    SymptomFlowRequest,
    WearableData,
)
from healthdash.flows.service import FlowService
from healthdash.forms.actions import handle_detect_human, handle_generate_report, handle_symptom_check
from healthdash.lookups.drugs import DrugLabelClient
from healthdash.lookups.healthcare import HealthcareService
from healthdash.lookups.nutrition import NutritionClient
from healthdash.lookups.symptoms import SymptomDiagnosisClient

logging.basicConfig(level=logging.INFO)
log = logging.getLogger(__name__)

# Global services
flow_service = FlowService()
healthcare_service = HealthcareService()


def get_flow_service() -> FlowService:
    return flow_service


def get_healthcare_service() -> HealthcareService:
    return healthcare_service


def get_drug_client() -> DrugLabelClient:
    return DrugLabelClient()


def get_nutrition_client() -> NutritionClient:
    return NutritionClient()


def get_symptom_client() -> SymptomDiagnosisClient:
    return SymptomDiagnosisClient()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Start-up / shut-down lifecycle.

    Inference backends:
      Primary:   HF Inference API (HF_TOKEN)
      Secondary: GenAI SDK (GOOGLE_API_KEY)
      Fallback:  Demo mode (canned replies)
    """
    backend = get_inference_backend()
    log.info(f"HealthDash API started | backend={backend} | store={config.store_backend}")
    if backend == "demo_fallback":
        log.warning("No HF_TOKEN or GOOGLE_API_KEY set -- flows run in demo fallback mode")
    if not config.fdc_api_key:
        log.warning("FDC_API_KEY not set -- nutrition lookups will answer 503")
    if not (config.infermedica_app_id and config.infermedica_app_key):
        log.warning("Infermedica credentials not set -- symptom diagnosis will answer 503")
    yield
    log.info("HealthDash API shutting down")


app = FastAPI(
    title="HealthDash API",
    description=(
        "Patient health dashboard backend: drug labels, nutrition, symptom "
        "diagnosis, simulated monitoring, and MedGemma-backed summaries."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HealthDashError)
async def healthdash_error_handler(request: Request, exc: HealthDashError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    log.info(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


# ---------------------------------------------------------------------------
# Health / Status
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {
        "status": "ok",
        "inference_backend": get_inference_backend(),
        "hf_token_configured": bool(os.environ.get("HF_TOKEN", "")),
    }


@app.get("/api/status")
async def api_status(flows: FlowService = Depends(get_flow_service)):
    """Detailed status for the dashboard to check connectivity and mode."""
    backend = get_inference_backend()
    return {
        "status": "online",
        "version": app.version,
        "inference_backend": backend,
        "models": {
            "symptom_summary": config.text_model.model_id,
            "media_summary": config.vision_model.model_id,
            "human_presence": config.vision_model.model_id,
        },
        "flows_live": flows.get_status(),
        "lookups": {
            "drugs": True,
            "nutrition": bool(config.fdc_api_key),
            "symptoms": bool(config.infermedica_app_id and config.infermedica_app_key),
        },
        "mode": "live" if backend != "demo_fallback" else "demo",
    }


@app.get("/api/telemetry")
async def telemetry(flows: FlowService = Depends(get_flow_service)):
    """Per-flow execution counts, failure counts and latencies."""
    return flows.get_telemetry()


# ---------------------------------------------------------------------------
# Third-party lookups
# ---------------------------------------------------------------------------

@app.get("/api/drugs", response_model=DrugInfo)
async def drug_lookup(
    name: str | None = Query(default=None),
    client: DrugLabelClient = Depends(get_drug_client),
):
    return await client.lookup(name)


@app.post("/api/nutrition", response_model=NutritionResponse)
async def nutrition_lookup(
    req: NutritionRequest | None = None,
    client: NutritionClient = Depends(get_nutrition_client),
):
    return await client.search(req.query if req else None)


@app.post("/api/symptoms", response_model=DiagnosisResult)
async def symptom_diagnosis(
    req: SymptomCheckRequest | None = None,
    client: SymptomDiagnosisClient = Depends(get_symptom_client),
):
    return await client.diagnose(req or SymptomCheckRequest())


# ---------------------------------------------------------------------------
# Simulated healthcare integrations
# ---------------------------------------------------------------------------

@app.get("/api/healthcare/wearables/{user_id}", response_model=WearableData)
async def wearable_data(user_id: str, service: HealthcareService = Depends(get_healthcare_service)):
    return await service.fetch_wearable_data(user_id)


@app.post("/api/healthcare/interactions", response_model=list[DrugInteraction])
async def drug_interactions(
    req: InteractionCheckRequest,
    service: HealthcareService = Depends(get_healthcare_service),
):
    return await service.check_drug_interactions(req.medications)


@app.get("/api/healthcare/conditions/{name}", response_model=MedicalCondition)
async def medical_condition(name: str, service: HealthcareService = Depends(get_healthcare_service)):
    condition = await service.search_medical_condition(name)
    if condition is None:
        raise NotFound("Condition not found")
    return condition


@app.get("/api/healthcare/medications/{name}", response_model=MedicationInfo)
async def medication_info(name: str, service: HealthcareService = Depends(get_healthcare_service)):
    info = await service.get_medication_info(name)
    if info is None:
        raise NotFound("Medication not found")
    return info


@app.post("/api/healthcare/risk-score", response_model=RiskScore)
async def risk_score(req: RiskScoreRequest, service: HealthcareService = Depends(get_healthcare_service)):
    return await service.calculate_health_risk_score(req)


@app.post("/api/healthcare/alerts", response_model=AlertReceipt)
async def health_alert(alert: HealthAlert, service: HealthcareService = Depends(get_healthcare_service)):
    return await service.send_health_alert(alert)


# ---------------------------------------------------------------------------
# Generative flows (form-state shaped bodies)
# ---------------------------------------------------------------------------

@app.post("/api/flows/symptoms")
async def symptom_insights(req: SymptomFlowRequest, flows: FlowService = Depends(get_flow_service)):
    state = await handle_symptom_check({"symptoms": req.symptoms}, flows)
    return state.model_dump(by_alias=True)


@app.post("/api/flows/report")
async def report_summary(req: MediaFlowRequest, flows: FlowService = Depends(get_flow_service)):
    state = await handle_generate_report({"mediaDataUri": req.media_data_uri}, flows)
    return state.model_dump(by_alias=True)


@app.post("/api/flows/detect-human")
async def detect_human(req: MediaFlowRequest, flows: FlowService = Depends(get_flow_service)):
    state = await handle_detect_human({"mediaDataUri": req.media_data_uri}, flows)
    return state.model_dump(by_alias=True)
