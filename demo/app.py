"""
HealthDash -- Gradio Demo Application

Patient dashboard with live cards, AI symptom insights, report
summaries, a camera human-presence check, and the drug / nutrition /
risk lookups.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import sys
import threading
from pathlib import Path

import gradio as gr
from PIL import Image

# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv
load_dotenv()

from healthdash.binding.firestore_store import open_store
from healthdash.capture.camera import CameraSession, StaticImageDevice
from healthdash.capture.frames import encode_frame
from healthdash.capture.workflow import CaptureClassifyWorkflow
from healthdash.core.errors import HealthDashError
from healthdash.core.inference_client import get_inference_backend
from healthdash.core.schemas import BloodPressureReading, RiskScoreRequest
from healthdash.dashboard.appointments import AppointmentBook, appointment_status
from healthdash.dashboard.cards import HealthMetricsCard, MedicationRemindersCard, PatientProfileCard
from healthdash.dashboard.vitals import VitalsTracker
from healthdash.flows.service import FlowService
from healthdash.forms.actions import (
    REPORT_FIELDS,
    SYMPTOM_FIELDS,
    handle_generate_report,
    handle_symptom_check,
)
from healthdash.forms.mediator import FormActionMediator
from healthdash.lookups.drugs import DrugLabelClient
from healthdash.lookups.healthcare import HealthcareService
from healthdash.lookups.nutrition import NutritionClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-28s | %(levelname)-7s | %(message)s",
)
log = logging.getLogger("healthdash.demo")

# ---------------------------------------------------------------------------
# Background event loop
# ---------------------------------------------------------------------------
# Gradio handlers are synchronous; store snapshots and flow calls all run
# on one long-lived loop so subscriptions keep delivering between clicks.

LOOP = asyncio.new_event_loop()
threading.Thread(target=LOOP.run_forever, name="healthdash-loop", daemon=True).start()


def _run(coro):
    return asyncio.run_coroutine_threadsafe(coro, LOOP).result()


store = open_store(loop=LOOP)
flows = FlowService()
healthcare = HealthcareService()
vitals = VitalsTracker()
appointments = AppointmentBook()

profile_card = PatientProfileCard(store)
medication_card = MedicationRemindersCard(store)
metrics_card = HealthMetricsCard(store)

symptom_form = FormActionMediator(functools.partial(handle_symptom_check, flows=flows), required=SYMPTOM_FIELDS)
report_form = FormActionMediator(functools.partial(handle_generate_report, flows=flows), required=REPORT_FIELDS)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

def _skeleton(card) -> str:
    if card.error:
        return f"**{card.title}**\n\n_Could not load: {card.error}_"
    return f"**{card.title}**\n\n_Loading..._"


def format_profile() -> str:
    if profile_card.loading or profile_card.error:
        return _skeleton(profile_card)
    if not profile_card.rows:
        return f"**{profile_card.title}**\n\n_No profile on file._"
    lines = [f"- **{label}:** {value}" for label, value in profile_card.rows]
    return f"**{profile_card.title}**\n\n" + "\n".join(lines)


def format_medications() -> str:
    if medication_card.loading or medication_card.error:
        return _skeleton(medication_card)
    lines = [f"{glyph} **{name}** -- {detail}" for glyph, name, detail in medication_card.rows]
    return f"**{medication_card.title}**\n\n" + ("\n\n".join(lines) or "_No medications._")


def format_metrics() -> str:
    if metrics_card.loading or metrics_card.error:
        return _skeleton(metrics_card)
    lines = [f"| {glyph} {name} | {reading} |" for glyph, name, reading in metrics_card.rows]
    return f"**{metrics_card.title}**\n\n| Metric | Latest |\n|---|---|\n" + "\n".join(lines)


def format_vitals() -> str:
    rows = [
        ("Heart Rate", vitals.heart_rate),
        ("Blood Pressure", vitals.blood_pressure),
        ("Oxygen Level", vitals.oxygen_level),
        ("Temperature", vitals.temperature),
    ]
    table = "| Vital | Value | Status |\n|---|---|---|\n" + "\n".join(
        f"| {name} | {r.value} {r.unit} | {r.status.value} |" for name, r in rows
    )
    if not vitals.history:
        return table + "\n\n_No vitals recorded yet. Start by entering your health data above._"
    history = "\n".join(f"- {h.timestamp} -- {h.type}: {h.value}" for h in vitals.history)
    return f"{table}\n\n**Recent entries**\n\n{history}"


def format_appointments() -> str:
    if not appointments.appointments:
        return "_No appointments scheduled._"
    return "\n".join(
        f"- **{a.patient_name}** with Dr. {a.doctor_name or '?'} on {a.date} {a.time} "
        f"({a.type}) -- {appointment_status(a)}"
        for a in appointments.appointments
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def refresh_dashboard():
    return format_profile(), format_medications(), format_metrics()


def record_vitals(heart_rate, systolic, diastolic, oxygen, temperature):
    if heart_rate:
        vitals.update_heart_rate(heart_rate)
    if systolic and diastolic:
        vitals.update_blood_pressure(systolic, diastolic)
    if oxygen:
        vitals.update_oxygen_level(oxygen)
    if temperature:
        vitals.update_temperature(temperature)
    return format_vitals()


def run_symptom_check(symptoms: str):
    state = _run(symptom_form.submit({"symptoms": symptoms or ""}))
    if state.error:
        return f"**Error:** {state.error}"
    return state.result


def run_report(image: Image.Image | None):
    data_uri = encode_frame(image) if image is not None else ""
    state = _run(report_form.submit({"mediaDataUri": data_uri}))
    if state.error:
        return f"**Error:** {state.error}"
    return state.result


async def _scan(image: Image.Image) -> str:
    workflow = CaptureClassifyWorkflow(
        CameraSession(StaticImageDevice(image)),
        flows.detect_human_presence,
    )
    try:
        await workflow.open()
        result = await workflow.capture()
        if result is None:
            return f"**Error:** {workflow.error}"
        verdict = "Human detected" if result.detected else "No human detected"
        confidence = f" ({result.confidence:.0%})" if result.confidence is not None else ""
        return f"**{verdict}**{confidence}\n\n{result.message}"
    finally:
        workflow.close()


def run_human_scan(image: Image.Image | None):
    if image is None:
        return "**Error:** No image captured. Please try again."
    return _run(_scan(image))


def run_drug_lookup(name: str):
    try:
        info = _run(DrugLabelClient().lookup(name))
    except HealthDashError as exc:
        return f"**Error:** {exc.message}"
    return (
        f"### {info.brand_name}\n\n*{info.generic_name}*\n\n"
        f"**Purpose:** {info.purpose}\n\n**Dosage:** {info.dosage}\n\n"
        f"**Warnings:** {info.warnings}\n\n**Interactions:** {info.interactions}\n\n"
        f"**Side effects:** {info.side_effects}"
    )


def run_nutrition_lookup(query: str):
    try:
        response = _run(NutritionClient().search(query))
    except HealthDashError as exc:
        return f"**Error:** {exc.message}"
    if not response.foods:
        return "_No foods matched._"
    food = response.foods[0]
    return (
        f"### {food.name} (per {food.serving})\n\n"
        f"| Calories | Protein | Carbs | Fat |\n|---|---|---|---|\n"
        f"| {food.calories:g} | {food.protein:g} g | {food.carbs:g} g | {food.fat:g} g |"
    )


def run_interaction_check(meds_text: str):
    meds = [m.strip() for m in (meds_text or "").replace("\n", ",").split(",") if m.strip()]
    interactions = _run(healthcare.check_drug_interactions(meds))
    if not interactions:
        return "No known interactions between the listed medications."
    return "\n\n".join(
        f"**{i.drug1} + {i.drug2}** ({i.severity.upper()}): {i.description}" for i in interactions
    )


def run_risk_score(age, systolic, diastolic, cholesterol, bmi, smoker, diabetic):
    request = RiskScoreRequest(
        age=int(age or 0),
        blood_pressure=BloodPressureReading(systolic=systolic or 0, diastolic=diastolic or 0),
        cholesterol=cholesterol or 0,
        bmi=bmi or 0,
        smoker=bool(smoker),
        diabetic=bool(diabetic),
    )
    score = _run(healthcare.calculate_health_risk_score(request))
    tips = "\n".join(f"- {r}" for r in score.recommendations)
    return f"### Risk Score: {score.score} ({score.risk})\n\n{tips}"


def add_appointment(patient, doctor, date, time_of_day, kind):
    try:
        appointments.add(patient, date, time_of_day, doctor_name=doctor, type=kind)
    except HealthDashError as exc:
        return f"**Error:** {exc.message}\n\n" + format_appointments()
    reminders = appointments.check_reminders()
    notes = "\n".join(f"> {r.message}" for r in reminders)
    return (notes + "\n\n" if notes else "") + format_appointments()


# ---------------------------------------------------------------------------
# Build the interface
# ---------------------------------------------------------------------------

THEME = gr.themes.Soft(primary_hue="teal", secondary_hue="amber", neutral_hue="slate")

DISCLAIMER = (
    "**Research Demonstration** -- HealthDash is not intended for clinical diagnosis "
    "or treatment. AI outputs require verification by qualified healthcare professionals."
)


def create_demo():
    with gr.Blocks(theme=THEME, title="HealthDash") as demo:
        gr.Markdown(f"# HealthDash\n\nInference backend: `{get_inference_backend()}`")
        gr.Markdown(DISCLAIMER)

        with gr.Tabs():

            with gr.Tab("Dashboard"):
                with gr.Row():
                    profile_md = gr.Markdown(format_profile())
                    meds_md = gr.Markdown(format_medications())
                    metrics_md = gr.Markdown(format_metrics())
                refresh_btn = gr.Button("Refresh", variant="secondary")
                refresh_btn.click(fn=refresh_dashboard, outputs=[profile_md, meds_md, metrics_md])

                gr.Markdown("### Record vitals")
                with gr.Row():
                    hr_in = gr.Number(label="Heart rate (bpm)")
                    sys_in = gr.Number(label="Systolic")
                    dia_in = gr.Number(label="Diastolic")
                    o2_in = gr.Number(label="Oxygen (%)")
                    temp_in = gr.Number(label="Temperature (°F)")
                vitals_btn = gr.Button("Save vitals", variant="primary")
                vitals_md = gr.Markdown(format_vitals())
                vitals_btn.click(fn=record_vitals, inputs=[hr_in, sys_in, dia_in, o2_in, temp_in], outputs=[vitals_md])

            with gr.Tab("Symptom Checker"):
                symptoms_in = gr.Textbox(
                    label="Describe your symptoms",
                    lines=5,
                    placeholder="e.g. I have a headache and a slight fever since yesterday.",
                )
                symptoms_btn = gr.Button("Get AI Insights", variant="primary")
                symptoms_out = gr.Markdown()
                symptoms_btn.click(fn=run_symptom_check, inputs=[symptoms_in], outputs=[symptoms_out])

            with gr.Tab("Report Summary"):
                with gr.Row():
                    with gr.Column(scale=2):
                        report_in = gr.Image(label="Medical report or image", type="pil")
                        report_btn = gr.Button("Generate Summary", variant="primary")
                    with gr.Column(scale=3):
                        report_out = gr.Markdown()
                report_btn.click(fn=run_report, inputs=[report_in], outputs=[report_out])

            with gr.Tab("Human Detection"):
                with gr.Row():
                    with gr.Column(scale=2):
                        camera_in = gr.Image(label="Camera", sources=["webcam", "upload"], type="pil")
                        scan_btn = gr.Button("Capture & Scan", variant="primary")
                    with gr.Column(scale=3):
                        scan_out = gr.Markdown()
                scan_btn.click(fn=run_human_scan, inputs=[camera_in], outputs=[scan_out])

            with gr.Tab("Lookups"):
                with gr.Row():
                    with gr.Column():
                        drug_in = gr.Textbox(label="Drug name", placeholder="Aspirin")
                        drug_btn = gr.Button("Search FDA", variant="primary")
                        drug_out = gr.Markdown()
                    with gr.Column():
                        food_in = gr.Textbox(label="Food", placeholder="banana")
                        food_btn = gr.Button("Search nutrition", variant="primary")
                        food_out = gr.Markdown()
                drug_btn.click(fn=run_drug_lookup, inputs=[drug_in], outputs=[drug_out])
                food_btn.click(fn=run_nutrition_lookup, inputs=[food_in], outputs=[food_out])

                meds_in = gr.Textbox(label="Medications (comma separated)", placeholder="aspirin, warfarin")
                meds_btn = gr.Button("Check interactions", variant="secondary")
                meds_out = gr.Markdown()
                meds_btn.click(fn=run_interaction_check, inputs=[meds_in], outputs=[meds_out])

            with gr.Tab("Risk Score"):
                with gr.Row():
                    age_in = gr.Number(label="Age", value=55)
                    r_sys_in = gr.Number(label="Systolic", value=145)
                    r_dia_in = gr.Number(label="Diastolic", value=92)
                    chol_in = gr.Number(label="Cholesterol", value=220)
                    bmi_in = gr.Number(label="BMI", value=28)
                with gr.Row():
                    smoker_in = gr.Checkbox(label="Smoker")
                    diabetic_in = gr.Checkbox(label="Diabetic")
                risk_btn = gr.Button("Calculate", variant="primary")
                risk_out = gr.Markdown()
                risk_btn.click(
                    fn=run_risk_score,
                    inputs=[age_in, r_sys_in, r_dia_in, chol_in, bmi_in, smoker_in, diabetic_in],
                    outputs=[risk_out],
                )

            with gr.Tab("Appointments"):
                with gr.Row():
                    patient_in = gr.Textbox(label="Patient name *")
                    doctor_in = gr.Textbox(label="Doctor name")
                    date_in = gr.Textbox(label="Date * (YYYY-MM-DD)")
                    time_in = gr.Textbox(label="Time * (HH:MM)")
                    kind_in = gr.Dropdown(
                        ["General Checkup", "Follow-up", "Specialist", "Lab Work"],
                        value="General Checkup",
                        label="Type",
                    )
                appt_btn = gr.Button("Schedule", variant="primary")
                appt_out = gr.Markdown(format_appointments())
                appt_btn.click(
                    fn=add_appointment,
                    inputs=[patient_in, doctor_in, date_in, time_in, kind_in],
                    outputs=[appt_out],
                )

    return demo


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    log.info("HealthDash -- starting")
    demo = create_demo()
    demo.launch(
        server_name="0.0.0.0",
        server_port=7860,
        share=False,
        show_error=True,
    )
