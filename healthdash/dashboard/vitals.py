"""
Manual vitals entry: status classification plus a short history.

Thresholds:
  heart rate       <60 low, >100 high (bpm)
  blood pressure   >140 systolic or >90 diastolic high,
                   <90 systolic or <60 diastolic low (mmHg)
  oxygen           <95 low (%)
  temperature      >100.4 high, <97 low (F)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

HISTORY_LIMIT = 10


class VitalStatus(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


def classify_heart_rate(bpm: float) -> VitalStatus:
    if bpm < 60:
        return VitalStatus.LOW
    if bpm > 100:
        return VitalStatus.HIGH
    return VitalStatus.NORMAL


def classify_blood_pressure(systolic: float, diastolic: float) -> VitalStatus:
    if systolic > 140 or diastolic > 90:
        return VitalStatus.HIGH
    if systolic < 90 or diastolic < 60:
        return VitalStatus.LOW
    return VitalStatus.NORMAL


def classify_oxygen(percent: float) -> VitalStatus:
    return VitalStatus.LOW if percent < 95 else VitalStatus.NORMAL


def classify_temperature(fahrenheit: float) -> VitalStatus:
    if fahrenheit > 100.4:
        return VitalStatus.HIGH
    if fahrenheit < 97:
        return VitalStatus.LOW
    return VitalStatus.NORMAL


@dataclass
class VitalReading:
    value: str
    unit: str
    status: VitalStatus = VitalStatus.NORMAL


@dataclass
class HistoryEntry:
    id: int
    type: str
    value: str
    timestamp: str


@dataclass
class VitalsTracker:
    heart_rate: VitalReading = field(default_factory=lambda: VitalReading("0", "bpm"))
    blood_pressure: VitalReading = field(default_factory=lambda: VitalReading("0/0", "mmHg"))
    oxygen_level: VitalReading = field(default_factory=lambda: VitalReading("0", "%"))
    temperature: VitalReading = field(default_factory=lambda: VitalReading("0", "°F"))
    history: list[HistoryEntry] = field(default_factory=list)

    def _record(self, kind: str, value: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.now()
        entry = HistoryEntry(
            id=int(time.time() * 1000),
            type=kind,
            value=value,
            timestamp=now.strftime("%Y-%m-%d %H:%M:%S"),
        )
        self.history = [entry, *self.history[:HISTORY_LIMIT - 1]]

    def update_heart_rate(self, bpm: float) -> VitalStatus:
        status = classify_heart_rate(bpm)
        self.heart_rate = VitalReading(f"{bpm:g}", "bpm", status)
        self._record("Heart Rate", f"{bpm:g} bpm")
        return status

    def update_blood_pressure(self, systolic: float, diastolic: float) -> VitalStatus:
        status = classify_blood_pressure(systolic, diastolic)
        self.blood_pressure = VitalReading(f"{systolic:g}/{diastolic:g}", "mmHg", status)
        self._record("Blood Pressure", f"{systolic:g}/{diastolic:g} mmHg")
        return status

    def update_oxygen_level(self, percent: float) -> VitalStatus:
        status = classify_oxygen(percent)
        self.oxygen_level = VitalReading(f"{percent:g}", "%", status)
        self._record("Oxygen Level", f"{percent:g}%")
        return status

    def update_temperature(self, fahrenheit: float) -> VitalStatus:
        status = classify_temperature(fahrenheit)
        self.temperature = VitalReading(f"{fahrenheit:g}", "°F", status)
        self._record("Temperature", f"{fahrenheit:g}°F")
        return status
