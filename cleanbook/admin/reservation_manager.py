"""
Back-office view over the ``reservations`` table.

Lists reservations with their per-service breakdown, filters and
categorizes them for the two admin tabs, applies status changes and
computes the dashboard figures. Every mutation returns an
OperationResult instead of raising.
"""

import logging
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from cleanbook.backend.base import Backend, BackendError, Row
from cleanbook.schemas.reservation_schema import (
    OperationResult,
    PaymentStatus,
    Reservation,
    ReservationStats,
    ReservationStatus,
)

logger = logging.getLogger(__name__)

CONFIRMED_TAB_STATUSES = {
    ReservationStatus.CONFIRMED,
    ReservationStatus.IN_PROGRESS,
    ReservationStatus.COMPLETED,
}


class ReservedService(BaseModel):
    service_id: str
    service_name: str
    service_icon: str = ""
    form_data: dict[str, Any] = Field(default_factory=dict)
    estimated_price: float = 0


class ReservationDetail(Reservation):
    """Reservation with its services pulled out of ``service_details``."""
    services: list[ReservedService] = Field(default_factory=list)
    total_services: int = 0
    is_multi_service: bool = False


def extract_services(details: Optional[dict[str, Any]]) -> list[ReservedService]:
    entries = (details or {}).get("services") or []
    return [
        ReservedService(
            service_id=str(entry.get("id", "")),
            service_name=str(entry.get("name", "")),
            form_data=entry.get("formData") or {},
            estimated_price=entry.get("estimatedPrice") or 0,
        )
        for entry in entries
        if isinstance(entry, dict)
    ]


def to_detail(row: Row) -> ReservationDetail:
    services = extract_services(row.get("service_details"))
    return ReservationDetail.model_validate({
        **row,
        "services": services,
        "total_services": len(services),
        "is_multi_service": len(services) > 1,
    })


class ReservationManager:
    """Admin reservation list with mutations and statistics."""

    def __init__(self, backend: Backend) -> None:
        self._backend = backend
        self._reservations: list[ReservationDetail] = []
        self.error: Optional[str] = None

    @property
    def reservations(self) -> list[ReservationDetail]:
        return list(self._reservations)

    def refresh(self) -> OperationResult:
        """Reload every reservation, newest first."""
        try:
            rows = self._backend.list_reservations()
        except BackendError as exc:
            self.error = str(exc)
            logger.error("Reservation list failed: %s", exc)
            return {"success": False, "error": self.error}

        details = []
        for row in rows:
            try:
                details.append(to_detail(row))
            except ValidationError as exc:
                logger.warning("Skipping unreadable reservation %s: %s", row.get("id"), exc)
        self._reservations = details
        self.error = None
        return {"success": True, "count": len(details)}

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get(self, reservation_id: str) -> Optional[ReservationDetail]:
        return next((r for r in self._reservations if r.id == reservation_id), None)

    def by_status(self, status: str) -> list[ReservationDetail]:
        return [r for r in self._reservations if r.status == status]

    def search(
        self, term: str, reservations: Optional[list[ReservationDetail]] = None
    ) -> list[ReservationDetail]:
        """Case-insensitive match on client name, email, city or service type."""
        pool = self._reservations if reservations is None else reservations
        needle = (term or "").strip().lower()
        if not needle:
            return list(pool)
        return [
            r for r in pool
            if any(
                needle in (value or "").lower()
                for value in (r.client_name, r.client_email, r.city, r.service_type)
            )
        ]

    def new_reservations(self, term: str = "") -> list[ReservationDetail]:
        """Pending reservations, most recently created first."""
        pending = sorted(
            self.by_status(ReservationStatus.PENDING),
            key=lambda r: r.created_at.timestamp() if r.created_at else 0,
            reverse=True,
        )
        return self.search(term, pending)

    def confirmed_reservations(self, term: str = "") -> list[ReservationDetail]:
        """Accepted work, earliest intervention first."""
        accepted = sorted(
            (r for r in self._reservations if r.status in CONFIRMED_TAB_STATUSES),
            key=lambda r: r.scheduled_date,
        )
        return self.search(term, accepted)

    def stats(self, today: Optional[date] = None) -> ReservationStats:
        """Dashboard figures. Revenue counts completed reservations only."""
        today = today or date.today()
        reservations = self._reservations
        completed = [r for r in reservations if r.status == ReservationStatus.COMPLETED]
        total_revenue = sum(r.estimated_price or 0 for r in completed)
        monthly_revenue = sum(
            r.estimated_price or 0
            for r in completed
            if r.created_at
            and r.created_at.year == today.year
            and r.created_at.month == today.month
        )
        return {
            "total": len(reservations),
            "pending": len(self.by_status(ReservationStatus.PENDING)),
            "confirmed": len(self.by_status(ReservationStatus.CONFIRMED)),
            "completed": len(completed),
            "cancelled": len(self.by_status(ReservationStatus.CANCELLED)),
            "total_revenue": total_revenue,
            "monthly_revenue": monthly_revenue,
            "average_price": total_revenue / len(completed) if completed else 0,
        }

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def update_status(self, reservation_id: str, status: str) -> OperationResult:
        try:
            new_status = ReservationStatus(status)
        except ValueError:
            return {"success": False, "error": f"Statut inconnu: {status}"}
        return self._update(reservation_id, {"status": new_status.value})

    def update_payment_status(
        self, reservation_id: str, payment_status: str
    ) -> OperationResult:
        try:
            new_status = PaymentStatus(payment_status)
        except ValueError:
            return {"success": False, "error": f"Statut de paiement inconnu: {payment_status}"}
        return self._update(reservation_id, {"payment_status": new_status.value})

    def delete(self, reservation_id: str) -> OperationResult:
        try:
            self._backend.delete_reservation(reservation_id)
        except BackendError as exc:
            logger.error("Reservation %s delete failed: %s", reservation_id, exc)
            return {"success": False, "error": str(exc)}
        self._reservations = [r for r in self._reservations if r.id != reservation_id]
        logger.info("Reservation deleted: %s", reservation_id)
        return {"success": True}

    def _update(self, reservation_id: str, changes: Row) -> OperationResult:
        try:
            row = self._backend.update_reservation(reservation_id, changes)
        except BackendError as exc:
            logger.error("Reservation %s update failed: %s", reservation_id, exc)
            return {"success": False, "error": str(exc)}

        updated = to_detail(row)
        self._reservations = [
            updated if r.id == reservation_id else r for r in self._reservations
        ]
        logger.info("Reservation %s updated: %s", reservation_id, changes)
        return {"success": True}
