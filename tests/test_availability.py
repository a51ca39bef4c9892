"""Tests for period normalization and the availability resolver."""

import asyncio
from datetime import date, timedelta

import pytest

from cleanbook.availability.periods import label_for_period, period_from_time, time_for_period
from cleanbook.availability.resolver import (
    AvailabilityResolver,
    admin_overrides_from_rows,
    reserved_slots_from_rows,
)
from cleanbook.backend.base import ADMIN_SCHEDULE, BackendError
from cleanbook.backend.memory import InMemoryBackend
from cleanbook.config import settings
from cleanbook.schemas.cart_schema import Period
from tests.conftest import SUNDAY, TODAY, TUESDAY, make_reservation_row

MORNING = Period.MORNING
AFTERNOON = Period.AFTERNOON


class TestPeriodFromTime:
    @pytest.mark.parametrize("value", [
        "09:00", "09:00:00", "Matin (09h00 - 12h00)", "morning", "10:30", "8h", "07:45:00",
    ])
    def test_morning_encodings(self, value):
        assert period_from_time(value) == MORNING

    @pytest.mark.parametrize("value", [
        "14:00", "14:00:00", "Après-midi (14h00 - 17h00)", "afternoon", "12:00", "16h30",
    ])
    def test_afternoon_encodings(self, value):
        assert period_from_time(value) == AFTERNOON

    @pytest.mark.parametrize("value", [None, "", "sometime"])
    def test_unreadable_counts_as_afternoon(self, value):
        assert period_from_time(value) == AFTERNOON

    def test_canonical_times_round_trip(self):
        for period in Period:
            assert period_from_time(time_for_period(period)) == period

    def test_labels(self):
        assert label_for_period(MORNING) == settings.schedule.morning_label
        assert label_for_period(AFTERNOON) == settings.schedule.afternoon_label


class TestRowParsing:
    def test_reserved_slots_skip_cancelled(self):
        rows = [
            make_reservation_row(TUESDAY, "09:00"),
            make_reservation_row(TUESDAY, "14:00", status="cancelled"),
        ]
        assert reserved_slots_from_rows(rows) == frozenset({("2025-03-04", MORNING)})

    def test_admin_rows_with_bad_period_are_ignored(self):
        rows = [
            {"date": "2025-03-04", "period": "morning", "is_available": False},
            {"date": "2025-03-04", "period": "evening", "is_available": False},
        ]
        assert admin_overrides_from_rows(rows) == {("2025-03-04", MORNING): False}


class TestIsAvailable:
    def test_default_open(self, resolver):
        resolver.refresh()
        assert resolver.is_available(TUESDAY, MORNING)
        assert resolver.is_available(TUESDAY, AFTERNOON)

    def test_reserved_slot_is_unavailable(self, backend, resolver):
        backend.insert_reservation(make_reservation_row(TUESDAY, "09:00"))
        backend.upsert_admin_schedule(
            [{"date": "2025-03-04", "period": "morning", "is_available": True}]
        )
        resolver.refresh()
        assert resolver.is_reserved(TUESDAY, MORNING)
        assert not resolver.is_available(TUESDAY, MORNING)
        assert resolver.is_available(TUESDAY, AFTERNOON)

    def test_legacy_reservation_time_blocks(self, backend, resolver):
        backend.insert_reservation(make_reservation_row(TUESDAY, "Après-midi (14h00 - 17h00)"))
        resolver.refresh()
        assert not resolver.is_available(TUESDAY, AFTERNOON)

    def test_cancelled_reservation_frees_slot(self, backend, resolver):
        backend.insert_reservation(make_reservation_row(TUESDAY, "09:00", status="cancelled"))
        resolver.refresh()
        assert resolver.is_available(TUESDAY, MORNING)

    def test_admin_closed_slot(self, backend, resolver):
        backend.upsert_admin_schedule(
            [{"date": "2025-03-04", "period": "afternoon", "is_available": False}]
        )
        resolver.refresh()
        assert not resolver.admin_allows(TUESDAY, AFTERNOON)
        assert not resolver.is_available(TUESDAY, AFTERNOON)
        assert resolver.is_available(TUESDAY, MORNING)

    def test_reservation_beyond_horizon_not_fetched(self, backend, resolver):
        far = TODAY + timedelta(days=resolver.horizon_days + 1)
        backend.insert_reservation(make_reservation_row(far, "09:00"))
        resolver.refresh()
        assert not resolver.is_reserved(far, MORNING)


class TestSelectableDates:
    def test_today_is_excluded(self, resolver):
        assert not resolver.is_date_selectable(TODAY)

    def test_past_is_excluded(self, resolver):
        assert not resolver.is_date_selectable(TODAY - timedelta(days=2))

    def test_sunday_is_excluded(self, resolver):
        assert not resolver.is_date_selectable(SUNDAY)

    def test_tomorrow_is_selectable(self, resolver):
        assert resolver.is_date_selectable(TUESDAY)

    def test_horizon(self, resolver):
        last = TODAY + timedelta(days=resolver.horizon_days)
        while last.weekday() == 6:
            last -= timedelta(days=1)
        assert resolver.is_date_selectable(last)
        assert not resolver.is_date_selectable(TODAY + timedelta(days=resolver.horizon_days + 1))

    def test_available_periods_for_unselectable_date(self, resolver):
        assert resolver.available_periods(SUNDAY) == []


class TestAvailableSlots:
    def test_window_skips_today_and_sundays(self, backend):
        resolver = AvailabilityResolver(backend, today=lambda: TODAY, window_days=14)
        resolver.refresh()
        slots = resolver.get_available_slots()
        days = sorted({s.date for s in slots})
        assert TODAY not in days
        assert date(2025, 3, 9) not in days
        assert date(2025, 3, 16) not in days
        assert days[0] == TUESDAY
        assert days[-1] == date(2025, 3, 17)
        assert len(slots) == 24

    def test_slots_reflect_availability(self, backend, resolver):
        backend.insert_reservation(make_reservation_row(TUESDAY, "14:00"))
        resolver.refresh()
        first_day = [s for s in resolver.get_available_slots() if s.date == TUESDAY]
        assert [(s.period, s.is_available) for s in first_day] == [
            (MORNING, True), (AFTERNOON, False),
        ]


class TestRefresh:
    def test_change_events_refresh_snapshot(self, backend, resolver):
        resolver.start()
        backend.insert_reservation(make_reservation_row(TUESDAY, "09:00"))
        assert resolver.is_reserved(TUESDAY, MORNING)
        backend.upsert_admin_schedule(
            [{"date": "2025-03-04", "period": "afternoon", "is_available": False}]
        )
        assert not resolver.admin_allows(TUESDAY, AFTERNOON)
        resolver.stop()

    def test_stop_unsubscribes(self, backend, resolver):
        resolver.start()
        resolver.stop()
        backend.insert_reservation(make_reservation_row(TUESDAY, "09:00"))
        assert not resolver.is_reserved(TUESDAY, MORNING)

    def test_start_twice_subscribes_once(self, backend, resolver):
        resolver.start()
        resolver.start()
        assert len(resolver._unsubscribers) == 2
        resolver.stop()

    def test_failed_refresh_keeps_last_snapshot(self, resolver, backend):
        backend.insert_reservation(make_reservation_row(TUESDAY, "09:00"))
        resolver.refresh()

        def fail(*args, **kwargs):
            raise BackendError("unreachable")

        backend.fetch_active_reservations = fail
        backend.fetch_admin_schedule = fail
        resolver.refresh()
        assert resolver.is_reserved(TUESDAY, MORNING)

    def test_snapshot_is_replaced_not_merged(self, backend, resolver):
        row = backend.insert_reservation(make_reservation_row(TUESDAY, "09:00"))
        resolver.refresh()
        backend.update_reservation(row["id"], {"status": "cancelled"})
        resolver.refresh()
        assert not resolver.is_reserved(TUESDAY, MORNING)
        assert resolver.snapshot.fetched_at is not None

    @pytest.mark.asyncio
    async def test_poll_refreshes_until_stopped(self, backend, resolver):
        backend.insert_reservation(make_reservation_row(TUESDAY, "14:00"))
        stop = asyncio.Event()
        task = asyncio.create_task(resolver.poll(interval=0.01, stop_event=stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1)
        assert resolver.is_reserved(TUESDAY, AFTERNOON)
