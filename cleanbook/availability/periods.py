"""
Mapping between half-day periods and the clock times stored on reservations.

New reservations always store the configured canonical time (``09:00`` or
``14:00`` by default). Older rows carry other encodings, so reading is
tolerant: seconds suffixes, French display labels, the bare period name,
and anything else whose leading hour can be read.
"""

import re
from typing import Optional

from cleanbook.config import settings
from cleanbook.schemas.cart_schema import Period

NOON = 12

_LEGACY_MORNING = {"09:00", "09:00:00", "matin (09h00 - 12h00)", "morning", "matin"}
_LEGACY_AFTERNOON = {
    "14:00", "14:00:00", "après-midi (14h00 - 17h00)", "afternoon", "après-midi",
}
_HOUR_PATTERN = re.compile(r"(\d{1,2})\s*[:hH]")


def time_for_period(period: Period) -> str:
    """Canonical clock time written for a period."""
    if period == Period.MORNING:
        return settings.schedule.morning_time
    return settings.schedule.afternoon_time


def label_for_period(period: Period) -> str:
    """Human-readable hour range, e.g. ``09h00-12h00``."""
    if period == Period.MORNING:
        return settings.schedule.morning_label
    return settings.schedule.afternoon_label


def _leading_hour(value: str) -> Optional[int]:
    match = _HOUR_PATTERN.search(value)
    if match:
        return int(match.group(1))
    if value[:2].isdigit():
        return int(value[:2])
    if value[:1].isdigit():
        return int(value[:1])
    return None


def period_from_time(value: Optional[str]) -> Period:
    """Infer the period of a stored ``scheduled_time``.

    Known encodings are matched exactly; otherwise the first hour found
    decides (before noon is morning). Unreadable values count as afternoon.
    """
    raw = (value or "").strip()
    lowered = raw.lower()
    if raw in (settings.schedule.morning_time,) or lowered in _LEGACY_MORNING:
        return Period.MORNING
    if raw in (settings.schedule.afternoon_time,) or lowered in _LEGACY_AFTERNOON:
        return Period.AFTERNOON
    if lowered.startswith(("matin", "morning")):
        return Period.MORNING
    hour = _leading_hour(raw)
    if hour is not None and hour < NOON:
        return Period.MORNING
    return Period.AFTERNOON
