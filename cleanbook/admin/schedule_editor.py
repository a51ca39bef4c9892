"""
Staff editor for per-(date, period) availability overrides.

Toggles accumulate as pending overrides in memory and reach the backend
only on ``save``. A failed save keeps them so staff can retry; leaving
without saving drops them.
"""

import logging
from datetime import date, timedelta
from typing import Callable, Optional

from pydantic import ValidationError

from cleanbook.backend.base import Backend, BackendError
from cleanbook.schemas.cart_schema import Period
from cleanbook.schemas.reservation_schema import AdminScheduleSlot, OperationResult

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7

SlotKey = tuple[date, Period]


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


class AdminScheduleEditor:
    """Batched editor over the ``admin_schedule`` table."""

    def __init__(self, backend: Backend, today: Callable[[], date] = date.today) -> None:
        self._backend = backend
        self._today = today
        self._saved: dict[SlotKey, AdminScheduleSlot] = {}
        self._pending: dict[SlotKey, bool] = {}
        self.week_of: date = week_start(today())

    # ------------------------------------------------------------------ #
    # Loading and reading
    # ------------------------------------------------------------------ #

    def load(self) -> OperationResult:
        """Fetch the canonical overrides. Pending toggles are kept."""
        try:
            rows = self._backend.fetch_admin_schedule()
        except BackendError as exc:
            logger.error("Admin schedule load failed: %s", exc)
            return {"success": False, "error": str(exc)}

        saved: dict[SlotKey, AdminScheduleSlot] = {}
        for row in rows:
            try:
                slot = AdminScheduleSlot.model_validate(row)
            except ValidationError:
                logger.warning("Skipping malformed admin schedule row: %s", row)
                continue
            saved[(slot.date, slot.period)] = slot
        self._saved = saved
        logger.debug("Admin schedule loaded: %d override(s)", len(saved))
        return {"success": True, "count": len(saved)}

    def saved_availability(self, day: date, period: Period) -> bool:
        slot = self._saved.get((day, period))
        return slot.is_available if slot else True

    def is_available(self, day: date, period: Period) -> bool:
        """Availability as staff currently see it, pending toggles included."""
        if (day, period) in self._pending:
            return self._pending[(day, period)]
        return self.saved_availability(day, period)

    def is_pending(self, day: date, period: Period) -> bool:
        return (day, period) in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self._pending)

    # ------------------------------------------------------------------ #
    # Editing
    # ------------------------------------------------------------------ #

    def toggle(self, day: date, period: Period) -> bool:
        """Flip the slot relative to what staff see now. Returns the new value."""
        value = not self.is_available(day, period)
        self._pending[(day, period)] = value
        logger.debug("Pending override %s %s -> %s", day, period.value, value)
        return value

    def set_availability(self, day: date, period: Period, available: bool) -> None:
        self._pending[(day, period)] = available

    def discard(self) -> None:
        self._pending.clear()

    def save(self) -> OperationResult:
        """Upsert every pending override in one batch, then reload."""
        if not self._pending:
            return {"success": True, "count": 0}

        rows = [
            {"date": day.isoformat(), "period": period.value, "is_available": available}
            for (day, period), available in sorted(
                self._pending.items(), key=lambda kv: (kv[0][0], kv[0][1].value)
            )
        ]
        try:
            self._backend.upsert_admin_schedule(rows)
        except BackendError as exc:
            logger.error("Admin schedule save failed, %d change(s) kept: %s", len(rows), exc)
            return {"success": False, "error": str(exc)}

        self._pending.clear()
        logger.info("Admin schedule saved: %d override(s)", len(rows))
        self.load()
        return {"success": True, "count": len(rows)}

    # ------------------------------------------------------------------ #
    # Week view
    # ------------------------------------------------------------------ #

    def week_days(self) -> list[date]:
        return [self.week_of + timedelta(days=i) for i in range(DAYS_PER_WEEK)]

    def next_week(self) -> None:
        self.week_of += timedelta(days=DAYS_PER_WEEK)

    def previous_week(self) -> None:
        self.week_of -= timedelta(days=DAYS_PER_WEEK)

    def current_week(self) -> None:
        self.week_of = week_start(self._today())

    def week_grid(self, day: Optional[date] = None) -> list[tuple[date, dict[Period, bool]]]:
        """Rows of (day, {period: available}) for the displayed week."""
        if day is not None:
            self.week_of = week_start(day)
        return [
            (d, {p: self.is_available(d, p) for p in Period})
            for d in self.week_days()
        ]
