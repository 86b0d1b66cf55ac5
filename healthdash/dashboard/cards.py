"""
Dashboard cards backed by live store subscriptions.

Each card owns one ``SubscriptionBinder`` and turns its snapshot into
plain display rows. While the first snapshot is pending ``loading`` is
true and ``rows`` is empty, so the view draws skeletons.
"""

from __future__ import annotations

from typing import Callable, Optional

from healthdash.binding.query import collection, document
from healthdash.binding.store import DocumentStore
from healthdash.binding.subscription import SubscriptionBinder, SubscriptionResult
from healthdash.core.config import config
from healthdash.core.schemas import HealthMetric, Medication, PatientProfile
from healthdash.dashboard.icons import glyph_for

OnChange = Optional[Callable[[SubscriptionResult], None]]


class _Card:
    title = ""

    def __init__(self, binder: SubscriptionBinder):
        self.binder = binder

    @property
    def loading(self) -> bool:
        return self.binder.loading

    @property
    def error(self) -> Optional[str]:
        exc = self.binder.error
        return str(exc) if exc is not None else None

    def close(self) -> None:
        self.binder.unmount()


class PatientProfileCard(_Card):
    title = "Patient Profile"

    def __init__(self, store: Optional[DocumentStore], patient_id: Optional[str] = None, on_change: OnChange = None):
        patient_id = patient_id or config.patient_id
        super().__init__(SubscriptionBinder(
            store,
            document("patientProfiles", patient_id),
            parse=PatientProfile.model_validate,
            on_change=on_change,
        ))

    def show_patient(self, patient_id: str) -> None:
        self.binder.set_query(document("patientProfiles", patient_id))

    @property
    def profile(self) -> Optional[PatientProfile]:
        return self.binder.data

    @property
    def rows(self) -> list[tuple[str, str]]:
        profile = self.profile
        if self.loading or profile is None:
            return []
        return [
            ("Name", profile.name),
            ("Age", "" if profile.age is None else str(profile.age)),
            ("Blood Type", profile.blood_type),
        ]


class MedicationRemindersCard(_Card):
    title = "Medication Reminders"

    def __init__(self, store: Optional[DocumentStore], on_change: OnChange = None):
        super().__init__(SubscriptionBinder(
            store, collection("medications"), parse=Medication.model_validate, on_change=on_change,
        ))

    @property
    def medications(self) -> list[Medication]:
        return self.binder.data or []

    @property
    def rows(self) -> list[tuple[str, str, str]]:
        """``(glyph, name, "dosage · time")`` per medication."""
        if self.loading:
            return []
        return [(glyph_for(m.icon), m.name, f"{m.dosage} · {m.time}") for m in self.medications]


class HealthMetricsCard(_Card):
    title = "Health Metrics"

    def __init__(self, store: Optional[DocumentStore], on_change: OnChange = None):
        super().__init__(SubscriptionBinder(
            store, collection("healthMetrics"), parse=HealthMetric.model_validate, on_change=on_change,
        ))

    @property
    def metrics(self) -> list[HealthMetric]:
        return self.binder.data or []

    @property
    def rows(self) -> list[tuple[str, str, str]]:
        """``(glyph, name, "value unit")`` per metric."""
        if self.loading:
            return []
        return [(glyph_for(m.icon), m.name, f"{m.value} {m.unit}".strip()) for m in self.metrics]

    def series(self, metric_id: str) -> list[tuple[str, float]]:
        for metric in self.metrics:
            if metric.id == metric_id:
                return [(point.time, point.value) for point in metric.data]
        return []
