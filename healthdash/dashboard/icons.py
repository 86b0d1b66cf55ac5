"""Icon tags stored on records, mapped to the glyphs the dashboard draws."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class MedicationIcon(str, Enum):
    PILL = "pill"
    CAPSULE = "capsule"
    SYRINGE = "syringe"
    DROPS = "drops"


class MetricIcon(str, Enum):
    HEART = "heart"
    ACTIVITY = "activity"
    DROPLET = "droplet"
    THERMOMETER = "thermometer"
    WIND = "wind"


PILL_GLYPH = "💊"

GLYPHS = {
    MedicationIcon.PILL: PILL_GLYPH,
    MedicationIcon.CAPSULE: "💊",
    MedicationIcon.SYRINGE: "💉",
    MedicationIcon.DROPS: "💧",
    MetricIcon.HEART: "❤️",
    MetricIcon.ACTIVITY: "📈",
    MetricIcon.DROPLET: "🩸",
    MetricIcon.THERMOMETER: "🌡️",
    MetricIcon.WIND: "🫁",
}


def _parse(tag: Optional[str]):
    for enum_cls in (MedicationIcon, MetricIcon):
        try:
            return enum_cls(tag)
        except ValueError:
            continue
    return None


def glyph_for(tag: Optional[str]) -> str:
    """Unknown or missing tags fall back to the pill glyph."""
    return GLYPHS.get(_parse(tag), PILL_GLYPH)
