"""
Contract for the hosted relational backend.

Tables: ``reservations``, ``admin_schedule``, ``carts`` and ``cart_items``.
Rows travel as plain JSON-compatible dicts (dates as ``YYYY-MM-DD``
strings) exactly as the hosted API returns them. Implementations raise
BackendError on any failure; callers above the cart store and the admin
screens convert those into result dicts.
"""

import logging
from datetime import date
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Row = dict[str, Any]
ChangeListener = Callable[[Row], None]

RESERVATIONS = "reservations"
ADMIN_SCHEDULE = "admin_schedule"
CARTS = "carts"
CART_ITEMS = "cart_items"


class BackendError(Exception):
    """Raised when a backend read or write fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SlotConflictError(BackendError):
    """Raised when the store already holds an active reservation for the slot."""


class Backend(Protocol):
    """Operations the booking core and the back office rely on."""

    def fetch_active_reservations(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[Row]:
        """Non-cancelled reservations scheduled between start and end, inclusive."""
        ...

    def list_reservations(self) -> list[Row]:
        """Every reservation, newest first."""
        ...

    def get_reservation(self, reservation_id: str) -> Optional[Row]:
        ...

    def insert_reservation(self, row: Row) -> Row:
        ...

    def update_reservation(self, reservation_id: str, changes: Row) -> Row:
        ...

    def delete_reservation(self, reservation_id: str) -> None:
        ...

    def fetch_admin_schedule(self) -> list[Row]:
        """All availability overrides ordered by date."""
        ...

    def upsert_admin_schedule(self, rows: list[Row]) -> list[Row]:
        """Insert or replace overrides keyed by (date, period)."""
        ...

    def insert_cart(self, row: Row) -> Row:
        ...

    def insert_cart_items(self, rows: list[Row]) -> list[Row]:
        ...

    def subscribe(self, table: str, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener for a table. Returns an unsubscribe callable."""
        ...


class ChangeFeed:
    """Fan-out of table change events to subscribed listeners.

    A listener that raises is logged and skipped; the write that
    produced the event has already succeeded.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[ChangeListener]] = {}

    def subscribe(self, table: str, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.setdefault(table, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(table, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def publish(self, table: str, event: str, record: Optional[Row]) -> None:
        payload = {"table": table, "event": event, "record": record}
        for listener in list(self._listeners.get(table, [])):
            try:
                listener(payload)
            except Exception:
                logger.exception("Change listener failed for %s %s", table, event)
