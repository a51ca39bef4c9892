"""
In-app alerts for the back office.

Each reservation inserted by any client shows up as an unread
"Nouvelle réservation de <client>" entry, newest first, until the staff
marks it read or clears the list.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from cleanbook.backend.base import RESERVATIONS, Backend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminNotification:
    id: str
    reservation_id: str
    message: str
    reservation: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    is_read: bool = False


def notification_for(record: dict[str, Any]) -> AdminNotification:
    reservation_id = str(record.get("id", ""))
    return AdminNotification(
        id=f"notif-{reservation_id}",
        reservation_id=reservation_id,
        message=f"Nouvelle réservation de {record.get('client_name') or 'client inconnu'}",
        reservation=dict(record),
    )


class NotificationCenter:
    """Collects new-reservation alerts from the backend change feed.

    Change events may arrive from a worker thread, so the list is
    guarded by a lock.
    """

    def __init__(
        self,
        backend: Backend,
        on_new: Optional[Callable[[AdminNotification], None]] = None,
    ) -> None:
        self._backend = backend
        self._on_new = on_new
        self._items: list[AdminNotification] = []
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._backend.subscribe(RESERVATIONS, self._on_change)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, payload: dict[str, Any]) -> None:
        if payload.get("event") != "INSERT":
            return
        notification = notification_for(payload.get("record") or {})
        with self._lock:
            self._items.insert(0, notification)
        logger.info("%s (%s)", notification.message, notification.reservation_id)
        if self._on_new is not None:
            self._on_new(notification)

    @property
    def notifications(self) -> list[AdminNotification]:
        with self._lock:
            return list(self._items)

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for n in self._items if not n.is_read)

    def mark_as_read(self, notification_id: str) -> bool:
        """Mark one entry read. Returns False when it is unknown or already read."""
        with self._lock:
            for index, item in enumerate(self._items):
                if item.id == notification_id:
                    if item.is_read:
                        return False
                    self._items[index] = replace(item, is_read=True)
                    return True
        return False

    def clear_all(self) -> None:
        with self._lock:
            self._items.clear()
