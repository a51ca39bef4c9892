"""
In-process stand-in for the hosted tables.

Behaves like the hosted store for everything the booking core relies on:
generated ids and timestamps, ordering, upsert on (date, period), change
events on every write, and a uniqueness rule on active reservations per
(date, period) that plays the role of the database constraint. Used by
the test suite and the console demo.
"""

import copy
import logging
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Callable, Optional

from cleanbook.availability.periods import period_from_time
from cleanbook.backend.base import (
    ADMIN_SCHEDULE,
    CART_ITEMS,
    CARTS,
    RESERVATIONS,
    BackendError,
    ChangeFeed,
    ChangeListener,
    Row,
    SlotConflictError,
)

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryBackend:
    """Thread-safe dict-backed implementation of the Backend protocol."""

    def __init__(self, enforce_unique_slots: bool = True) -> None:
        self.enforce_unique_slots = enforce_unique_slots
        self._tables: dict[str, list[Row]] = {
            RESERVATIONS: [],
            ADMIN_SCHEDULE: [],
            CARTS: [],
            CART_ITEMS: [],
        }
        self._lock = threading.Lock()
        self._feed = ChangeFeed()

    # ------------------------------------------------------------------ #
    # Reservations
    # ------------------------------------------------------------------ #

    def fetch_active_reservations(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[Row]:
        low = start.isoformat() if start else None
        high = end.isoformat() if end else None
        with self._lock:
            rows = [
                r for r in self._tables[RESERVATIONS]
                if r.get("status") != "cancelled"
                and (low is None or r["scheduled_date"] >= low)
                and (high is None or r["scheduled_date"] <= high)
            ]
            return copy.deepcopy(rows)

    def list_reservations(self) -> list[Row]:
        with self._lock:
            rows = sorted(
                self._tables[RESERVATIONS],
                key=lambda r: r.get("created_at") or "",
                reverse=True,
            )
            return copy.deepcopy(rows)

    def get_reservation(self, reservation_id: str) -> Optional[Row]:
        with self._lock:
            row = self._find(RESERVATIONS, reservation_id)
            return copy.deepcopy(row) if row else None

    def insert_reservation(self, row: Row) -> Row:
        with self._lock:
            if self.enforce_unique_slots and self._slot_taken(row):
                raise SlotConflictError(
                    f"Slot {row.get('scheduled_date')} {row.get('scheduled_time')} "
                    "already holds an active reservation",
                    status_code=409,
                )
            stamp = _now_iso()
            record = {
                **copy.deepcopy(row),
                "id": str(uuid.uuid4()),
                "created_at": stamp,
                "updated_at": stamp,
            }
            record.setdefault("status", "pending")
            record.setdefault("payment_status", "pending")
            self._tables[RESERVATIONS].append(record)
            result = copy.deepcopy(record)
        logger.debug("Reservation row inserted: %s", result["id"])
        self._feed.publish(RESERVATIONS, "INSERT", result)
        return result

    def update_reservation(self, reservation_id: str, changes: Row) -> Row:
        with self._lock:
            record = self._find(RESERVATIONS, reservation_id)
            if record is None:
                raise BackendError(f"Reservation {reservation_id} not found", 404)
            record.update(copy.deepcopy(changes))
            record["updated_at"] = _now_iso()
            result = copy.deepcopy(record)
        self._feed.publish(RESERVATIONS, "UPDATE", result)
        return result

    def delete_reservation(self, reservation_id: str) -> None:
        with self._lock:
            record = self._find(RESERVATIONS, reservation_id)
            if record is None:
                raise BackendError(f"Reservation {reservation_id} not found", 404)
            self._tables[RESERVATIONS].remove(record)
        self._feed.publish(RESERVATIONS, "DELETE", {"id": reservation_id})

    # ------------------------------------------------------------------ #
    # Admin schedule
    # ------------------------------------------------------------------ #

    def fetch_admin_schedule(self) -> list[Row]:
        with self._lock:
            rows = sorted(self._tables[ADMIN_SCHEDULE], key=lambda r: r["date"])
            return copy.deepcopy(rows)

    def upsert_admin_schedule(self, rows: list[Row]) -> list[Row]:
        saved: list[Row] = []
        with self._lock:
            table = self._tables[ADMIN_SCHEDULE]
            for row in rows:
                existing = next(
                    (s for s in table
                     if s["date"] == row["date"] and s["period"] == row["period"]),
                    None,
                )
                if existing is None:
                    existing = {"id": str(uuid.uuid4()), "created_at": _now_iso()}
                    table.append(existing)
                existing.update(
                    date=row["date"], period=row["period"],
                    is_available=bool(row["is_available"]),
                )
                saved.append(copy.deepcopy(existing))
        for record in saved:
            self._feed.publish(ADMIN_SCHEDULE, "UPSERT", record)
        return saved

    # ------------------------------------------------------------------ #
    # Cart mirror
    # ------------------------------------------------------------------ #

    def insert_cart(self, row: Row) -> Row:
        record = {**copy.deepcopy(row), "id": str(uuid.uuid4()), "created_at": _now_iso()}
        with self._lock:
            self._tables[CARTS].append(record)
        return copy.deepcopy(record)

    def insert_cart_items(self, rows: list[Row]) -> list[Row]:
        records = [{**copy.deepcopy(r), "id": str(uuid.uuid4())} for r in rows]
        with self._lock:
            self._tables[CART_ITEMS].extend(records)
        return copy.deepcopy(records)

    # ------------------------------------------------------------------ #
    # Change feed and helpers
    # ------------------------------------------------------------------ #

    def subscribe(self, table: str, listener: ChangeListener) -> Callable[[], None]:
        return self._feed.subscribe(table, listener)

    def seed(self, table: str, rows: list[Row]) -> None:
        """Load rows verbatim (ids and timestamps included), without events."""
        with self._lock:
            self._tables[table].extend(copy.deepcopy(rows))

    def rows(self, table: str) -> list[Row]:
        """Snapshot of a raw table, for inspection in tests and the demo."""
        with self._lock:
            return copy.deepcopy(self._tables[table])

    def _find(self, table: str, row_id: str) -> Optional[Row]:
        return next((r for r in self._tables[table] if r.get("id") == row_id), None)

    def _slot_taken(self, row: Row) -> bool:
        period = period_from_time(row.get("scheduled_time"))
        return any(
            r["scheduled_date"] == row.get("scheduled_date")
            and r.get("status") != "cancelled"
            and period_from_time(r.get("scheduled_time")) == period
            for r in self._tables[RESERVATIONS]
        )
