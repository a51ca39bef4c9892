"""Backend row models and the result shapes returned across components."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, TypedDict

from pydantic import BaseModel, Field

from cleanbook.schemas.cart_schema import Period


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class Reservation(BaseModel):
    """Authoritative reservation row. Only admins change it after creation."""
    id: str
    client_name: str
    client_email: str
    client_phone: str
    address: str
    city: str = ""
    postcode: str = ""
    coordinates: Optional[list[float]] = None
    service_type: str
    service_details: dict[str, Any] = Field(default_factory=dict)
    scheduled_date: date
    scheduled_time: str
    duration_minutes: int = 120
    estimated_price: float = 0
    final_price: Optional[float] = None
    status: ReservationStatus = ReservationStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    notes: Optional[str] = ""
    internal_notes: Optional[str] = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AdminScheduleSlot(BaseModel):
    """Explicit availability override for one (date, period).

    Absence of a row means the slot is open.
    """
    id: Optional[str] = None
    date: date
    period: Period
    is_available: bool
    created_at: Optional[datetime] = None


class SubmissionResult(TypedDict, total=False):
    """Result from CartStore.submit."""

    success: bool
    reservation_id: str
    error: str
    conflict: bool


class OperationResult(TypedDict, total=False):
    """Result from admin mutations and schedule saves."""

    success: bool
    error: str
    count: int


class ReservationStats(TypedDict):
    """Back-office summary figures."""

    total: int
    pending: int
    confirmed: int
    completed: int
    cancelled: int
    total_revenue: float
    monthly_revenue: float
    average_price: float
