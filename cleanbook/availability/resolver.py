"""
Availability resolver: is a (date, period) bookable right now?

A slot is available when no active reservation holds it and the admin
schedule does not close it. Both facts come from one cached snapshot
that is replaced wholesale by each refresh. Refreshes are triggered by
polling, by change events and on demand; whichever lands last wins.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from cleanbook.availability.periods import period_from_time
from cleanbook.backend.base import ADMIN_SCHEDULE, RESERVATIONS, Backend, BackendError, Row
from cleanbook.config import settings
from cleanbook.schemas.cart_schema import Period

logger = logging.getLogger(__name__)

SUNDAY = 6

SlotKey = tuple[str, Period]


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """Reserved slots and admin overrides as of one fetch."""

    reserved: frozenset[SlotKey] = frozenset()
    admin: dict[SlotKey, bool] = field(default_factory=dict)
    fetched_at: Optional[datetime] = None


@dataclass(frozen=True)
class AvailableSlot:
    date: date
    period: Period
    is_available: bool


def _key(day: date, period: Period) -> SlotKey:
    return (day.isoformat(), period)


def reserved_slots_from_rows(rows: list[Row]) -> frozenset[SlotKey]:
    """Slot keys held by the given non-cancelled reservation rows."""
    return frozenset(
        (str(row["scheduled_date"]), period_from_time(row.get("scheduled_time")))
        for row in rows
        if row.get("status") != "cancelled"
    )


def admin_overrides_from_rows(rows: list[Row]) -> dict[SlotKey, bool]:
    overrides: dict[SlotKey, bool] = {}
    for row in rows:
        try:
            period = Period(row["period"])
        except (KeyError, ValueError):
            logger.warning("Ignoring admin schedule row with bad period: %s", row)
            continue
        overrides[(str(row["date"]), period)] = bool(row.get("is_available", True))
    return overrides


class AvailabilityResolver:
    """Answers slot availability questions from a refreshed snapshot."""

    def __init__(
        self,
        backend: Backend,
        today: Callable[[], date] = date.today,
        window_days: Optional[int] = None,
        horizon_days: Optional[int] = None,
    ) -> None:
        self._backend = backend
        self._today = today
        self.window_days = window_days or settings.schedule.booking_window_days
        self.horizon_days = horizon_days or settings.schedule.booking_horizon_days
        self._snapshot = AvailabilitySnapshot()
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def snapshot(self) -> AvailabilitySnapshot:
        return self._snapshot

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def refresh(self) -> None:
        """Re-fetch both reserved slots and admin overrides."""
        self.refresh_reservations()
        self.refresh_admin_schedule()

    def refresh_reservations(self) -> None:
        start = self._today()
        end = start + timedelta(days=self.horizon_days)
        try:
            rows = self._backend.fetch_active_reservations(start, end)
        except BackendError as exc:
            logger.error("Reserved slots refresh failed, keeping last snapshot: %s", exc)
            return
        reserved = reserved_slots_from_rows(rows)
        self._snapshot = AvailabilitySnapshot(
            reserved=reserved,
            admin=self._snapshot.admin,
            fetched_at=datetime.now(timezone.utc),
        )
        logger.debug("Reserved slots refreshed: %d", len(reserved))

    def refresh_admin_schedule(self) -> None:
        try:
            rows = self._backend.fetch_admin_schedule()
        except BackendError as exc:
            logger.error("Admin schedule refresh failed, keeping last snapshot: %s", exc)
            return
        admin = admin_overrides_from_rows(rows)
        self._snapshot = AvailabilitySnapshot(
            reserved=self._snapshot.reserved,
            admin=admin,
            fetched_at=datetime.now(timezone.utc),
        )
        logger.debug("Admin schedule refreshed: %d override(s)", len(admin))

    def start(self) -> None:
        """Load the snapshot and follow change events on both tables."""
        self.refresh()
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self._backend.subscribe(RESERVATIONS, lambda _: self.refresh_reservations()),
            self._backend.subscribe(ADMIN_SCHEDULE, lambda _: self.refresh_admin_schedule()),
        ]

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def poll(
        self,
        interval: Optional[float] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Refresh on a fixed interval until stop_event is set."""
        interval = interval or settings.schedule.poll_interval_sec
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set():
            await asyncio.to_thread(self.refresh)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def is_reserved(self, day: date, period: Period) -> bool:
        return _key(day, period) in self._snapshot.reserved

    def admin_allows(self, day: date, period: Period) -> bool:
        """Admin override for the slot; open when no override exists."""
        return self._snapshot.admin.get(_key(day, period), True)

    def is_available(self, day: date, period: Period) -> bool:
        if self.is_reserved(day, period):
            logger.debug("Slot %s %s reserved", day, period.value)
            return False
        if not self.admin_allows(day, period):
            logger.debug("Slot %s %s closed by admin", day, period.value)
            return False
        return True

    def is_date_selectable(self, day: date) -> bool:
        """Whether the calendar lets a customer pick this date at all.

        No same-day or Sunday bookings, nothing in the past and nothing
        beyond the booking horizon.
        """
        today = self._today()
        if day <= today or day.weekday() == SUNDAY:
            return False
        return day <= today + timedelta(days=self.horizon_days)

    def available_periods(self, day: date) -> list[Period]:
        if not self.is_date_selectable(day):
            return []
        return [p for p in Period if self.is_available(day, p)]

    def get_available_slots(self) -> list[AvailableSlot]:
        """Both periods of every selectable day in the booking window."""
        today = self._today()
        slots: list[AvailableSlot] = []
        for offset in range(1, self.window_days + 1):
            day = today + timedelta(days=offset)
            if day.weekday() == SUNDAY:
                continue
            for period in Period:
                slots.append(AvailableSlot(day, period, self.is_available(day, period)))
        return slots
