"""Appointment book with 24-hour and 1-hour reminder windows."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from healthdash.core.errors import InputMissing
from healthdash.core.schemas import Appointment

log = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Please fill in required fields"
INVALID_SCHEDULE_MESSAGE = "Please enter the date as YYYY-MM-DD and the time as HH:MM"

# (flag, timeframe label, lower hours, upper hours), both bounds exclusive
REMINDER_WINDOWS = (
    ("reminder24h", "24 hours", 23.5, 24.5),
    ("reminder1h", "1 hour", 0.5, 1.5),
)


@dataclass(frozen=True)
class Reminder:
    appointment_id: int
    timeframe: str
    message: str


def scheduled_at(appointment: Appointment) -> datetime:
    return datetime.fromisoformat(f"{appointment.date}T{appointment.time}")


def hours_until(appointment: Appointment, now: datetime) -> float:
    return (scheduled_at(appointment) - now).total_seconds() / 3600


def appointment_status(appointment: Appointment, now: Optional[datetime] = None) -> str:
    hours = hours_until(appointment, now or datetime.now())
    if hours < 0:
        return "Completed"
    if hours < 1:
        return "Starting Soon"
    if hours < 24:
        return "Today"
    return "Upcoming"


class AppointmentBook:
    def __init__(self):
        self.appointments: list[Appointment] = []

    def add(
        self,
        patient_name: str,
        date: str,
        time_of_day: str,
        doctor_name: str = "",
        type: str = "General Checkup",
        phone: str = "",
        email: str = "",
    ) -> Appointment:
        if not patient_name or not date or not time_of_day:
            raise InputMissing(REQUIRED_FIELDS_MESSAGE)
        appointment = Appointment(
            id=int(time.time() * 1000),
            patient_name=patient_name,
            doctor_name=doctor_name,
            date=date,
            time=time_of_day,
            type=type,
            phone=phone,
            email=email,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        try:
            scheduled_at(appointment)
        except ValueError as exc:
            raise InputMissing(INVALID_SCHEDULE_MESSAGE) from exc
        # ids are millisecond stamps; keep them unique within one book
        while any(a.id == appointment.id for a in self.appointments):
            appointment.id += 1
        self.appointments.append(appointment)
        return appointment

    def delete(self, appointment_id: int) -> bool:
        before = len(self.appointments)
        self.appointments = [a for a in self.appointments if a.id != appointment_id]
        return len(self.appointments) != before

    def check_reminders(self, now: Optional[datetime] = None) -> list[Reminder]:
        """Return reminders now due and mark them sent so each fires once."""
        now = now or datetime.now()
        due = []
        for appointment in self.appointments:
            hours = hours_until(appointment, now)
            for flag, timeframe, lower, upper in REMINDER_WINDOWS:
                if lower < hours < upper and not getattr(appointment, flag):
                    reminder = Reminder(
                        appointment_id=appointment.id,
                        timeframe=timeframe,
                        message=f"Your appointment with Dr. {appointment.doctor_name} is in {timeframe}",
                    )
                    log.info(f"Reminder sent for {appointment.patient_name}: {timeframe}")
                    setattr(appointment, flag, True)
                    due.append(reminder)
        return due
