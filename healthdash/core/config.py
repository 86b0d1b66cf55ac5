"""HealthDash - Core configuration module."""

import os
from dataclasses import dataclass, field


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


@dataclass
class FlowModelConfig:
    """Configuration for a single generative flow backend model."""

    model_id: str
    display_name: str
    model_type: str  # "text", "multimodal"
    max_new_tokens: int = 1024


@dataclass
class CaptureConfig:
    """Capture-and-classify policy."""

    # Upper bound on the visible "scanning" state, in seconds
    scan_ceiling_seconds: float = field(
        default_factory=lambda: _env_float("SCAN_CEILING_SECONDS", 3.0)
    )
    # Lossy encoding quality for captured frames, in (0, 1]
    jpeg_quality: float = field(
        default_factory=lambda: _env_float("FRAME_JPEG_QUALITY", 0.8)
    )
    # "apply" or "discard" for classification results arriving after the ceiling
    late_result_policy: str = field(
        default_factory=lambda: os.environ.get("LATE_RESULT_POLICY", "apply")
    )


@dataclass
class AppConfig:
    """Application-wide configuration."""

    # Flow models
    text_model: FlowModelConfig = field(default_factory=lambda: FlowModelConfig(
        model_id=os.environ.get("TEXT_MODEL_ID", "google/medgemma-4b-it"),
        display_name="MedGemma 4B IT",
        model_type="text",
        max_new_tokens=1024,
    ))

    vision_model: FlowModelConfig = field(default_factory=lambda: FlowModelConfig(
        model_id=os.environ.get("VISION_MODEL_ID", "google/medgemma-4b-it"),
        display_name="MedGemma 4B IT (vision)",
        model_type="multimodal",
        max_new_tokens=512,
    ))

    # Server config
    host: str = "0.0.0.0"
    port: int = field(default_factory=lambda: int(os.environ.get("PORT", 8000)))
    debug: bool = True

    # Third-party lookups
    fda_api_url: str = field(default_factory=lambda: os.environ.get(
        "FDA_API_URL", "https://api.fda.gov/drug/label.json"))
    fdc_api_url: str = field(default_factory=lambda: os.environ.get(
        "FDC_API_URL", "https://api.nal.usda.gov/fdc/v1"))
    fdc_api_key: str = field(default_factory=lambda: os.environ.get("FDC_API_KEY", ""))
    infermedica_api_url: str = field(default_factory=lambda: os.environ.get(
        "INFERMEDICA_API_URL", "https://api.infermedica.com/v3"))
    infermedica_app_id: str = field(default_factory=lambda: os.environ.get("INFERMEDICA_APP_ID", ""))
    infermedica_app_key: str = field(default_factory=lambda: os.environ.get("INFERMEDICA_APP_KEY", ""))
    http_timeout_seconds: float = field(default_factory=lambda: _env_float("HTTP_TIMEOUT_SECONDS", 15.0))

    # Document store: "memory" or "firestore"
    store_backend: str = field(default_factory=lambda: os.environ.get("STORE_BACKEND", "memory"))
    firestore_project_id: str = field(default_factory=lambda: os.environ.get("FIRESTORE_PROJECT_ID", ""))
    patient_id: str = field(default_factory=lambda: os.environ.get("PATIENT_ID", "jane-doe"))

    # Artificial latency for the simulated healthcare service
    simulate_latency: bool = field(
        default_factory=lambda: os.environ.get("SIMULATE_LATENCY", "1") not in ("0", "false", "")
    )

    capture: CaptureConfig = field(default_factory=CaptureConfig)

    # Inference keys (from environment)
    hf_token: str = field(default_factory=lambda: os.environ.get("HF_TOKEN", ""))


# Global config singleton
config = AppConfig()
