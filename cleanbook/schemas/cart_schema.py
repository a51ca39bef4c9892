"""Cart data models: the pre-commit staging area for one reservation."""

from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Period(str, Enum):
    """Half-day unit of schedulable capacity."""
    MORNING = "morning"
    AFTERNOON = "afternoon"


class ServiceRef(BaseModel):
    """Catalog entry as embedded in a cart item."""
    id: str
    name: str
    icon: str = ""
    description: str = ""


class AddressRef(BaseModel):
    """Address chosen from a geocoding suggestion. Replaced, never edited."""
    id: str
    place_name: str
    center: Optional[tuple[float, float]] = None  # (lon, lat)
    address: str = ""
    city: str = ""
    postcode: str = ""

    @property
    def street(self) -> str:
        return self.address or self.place_name


class ContactInfo(BaseModel):
    """Customer contact details collected on the last wizard step."""
    name: str
    email: str
    phone: str


class CartItem(BaseModel):
    """One configured service in the cart. estimated_price == 0 means on quote."""
    id: str
    service: ServiceRef
    form_data: dict[str, Any] = Field(default_factory=dict)
    estimated_price: float = 0
    timestamp: int = 0


class Cart(BaseModel):
    """In-progress multi-service order.

    ``total_price`` is derived by the cart store and recomputed on every
    mutation and on reload; stored values are never trusted.
    """
    id: str = ""
    session_id: str
    items: list[CartItem] = Field(default_factory=list)
    total_price: float = 0
    address: Optional[AddressRef] = None
    contact_info: Optional[ContactInfo] = None

    def is_blank(self) -> bool:
        return not self.items and self.address is None and self.contact_info is None


class ScheduleSelection(BaseModel):
    """The single (date, period) chosen in the wizard."""
    date: date
    period: Period
