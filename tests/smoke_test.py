"""End-to-end smoke test -- flows, lookups and simulated services against live backends."""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from PIL import Image

from healthdash.capture.frames import encode_frame
from healthdash.core.errors import HealthDashError
from healthdash.core.inference_client import get_inference_backend
from healthdash.core.schemas import BloodPressureReading, RiskScoreRequest
from healthdash.flows.service import FlowService
from healthdash.lookups.drugs import DrugLabelClient
from healthdash.lookups.healthcare import HealthcareService
from healthdash.lookups.nutrition import NutritionClient


async def main():
    print("=" * 60)
    print("HealthDash -- Smoke Test")
    print("=" * 60)

    flows = FlowService()
    print(f"\nInference backend: {get_inference_backend()}")
    for name, live in flows.get_status().items():
        icon = "[OK]" if live else "[--]"
        print(f"  {icon} {name}")

    print("\nSymptom insights...")
    summary = await flows.summarize_symptoms(
        "Sore throat, mild fever of 100.1F and a dry cough for two days."
    )
    print(f"  {summary.summary_text[:200]}...")

    frame = encode_frame(Image.new("RGB", (320, 240), (90, 90, 90)))
    print("\nHuman presence on a blank frame...")
    presence = await flows.detect_human_presence(frame)
    print(f"  present={presence.present} confidence={presence.confidence} | {presence.message[:80]}")

    print("\nopenFDA lookup (Tylenol)...")
    try:
        drug = await DrugLabelClient().lookup("Tylenol")
        print(f"  {drug.brand_name} / {drug.generic_name}: {drug.purpose[:80]}")
    except HealthDashError as exc:
        print(f"  [!!] {exc.status_code} {exc.message}")

    print("\nFoodData Central lookup (banana)...")
    try:
        foods = await NutritionClient().search("banana")
        for food in foods.foods:
            print(f"  {food.name}: {food.calories} kcal, {food.protein} g protein")
    except HealthDashError as exc:
        print(f"  [!!] {exc.status_code} {exc.message}")

    healthcare = HealthcareService(latency=0)
    risk = await healthcare.calculate_health_risk_score(RiskScoreRequest(
        age=55,
        blood_pressure=BloodPressureReading(systolic=145, diastolic=92),
        cholesterol=220,
        bmi=28,
    ))
    print(f"\nRisk score: {risk.score} ({risk.risk})")

    telemetry = flows.get_telemetry()
    print(f"\nFlow executions: {telemetry['total_executions']} | failures: {telemetry['total_failures']}")

    print(f"\n{'='*60}")
    print("SMOKE TEST COMPLETE")
    print(f"{'='*60}")


if __name__ == "__main__":
    asyncio.run(main())
