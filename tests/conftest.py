"""Shared test fixtures and helpers."""

from datetime import date
from typing import Any, Optional

import pytest

from cleanbook.availability.resolver import AvailabilityResolver
from cleanbook.backend.memory import InMemoryBackend
from cleanbook.cart.storage import MemoryStorage
from cleanbook.cart.store import CartStore
from cleanbook.catalog.services import get_service
from cleanbook.config import NotificationConfig
from cleanbook.integrations.notifications import Notifier
from cleanbook.schemas.cart_schema import AddressRef, ContactInfo, ServiceRef
from cleanbook.wizard.booking_wizard import BookingWizard

# Monday; tomorrow is a Tuesday and the next Sunday is 2025-03-09.
TODAY = date(2025, 3, 3)
TUESDAY = date(2025, 3, 4)
SUNDAY = date(2025, 3, 9)


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(backend, storage):
    return CartStore(backend, storage)


@pytest.fixture
def resolver(backend):
    return AvailabilityResolver(backend, today=lambda: TODAY)


@pytest.fixture
def silent_notifier():
    return Notifier(NotificationConfig(url=""))


@pytest.fixture
def wizard(store, resolver, silent_notifier):
    return BookingWizard(store, resolver, silent_notifier)


@pytest.fixture
def sion_address():
    return make_address()


@pytest.fixture
def contact():
    return ContactInfo(name="Ana Dupont", email="ana.dupont@example.ch", phone="079 123 45 67")


def service(service_id: str) -> ServiceRef:
    ref = get_service(service_id)
    assert ref is not None, service_id
    return ref


def make_address(city: str = "Sion", postcode: str = "1950") -> AddressRef:
    return AddressRef(
        id="address.123",
        place_name=f"Rue du Rhône 12, {postcode} {city}, Suisse",
        center=(7.3603, 46.2044),
        address="Rue du Rhône 12",
        city=city,
        postcode=postcode,
    )


def make_reservation_row(
    day: date,
    time: str = "09:00",
    status: str = "pending",
    reservation_id: Optional[str] = None,
    **overrides: Any,
) -> dict[str, Any]:
    """A reservations row in the shape the hosted table returns."""
    row = {
        "client_name": "Jean Martin",
        "client_email": "jean.martin@example.ch",
        "client_phone": "0791112233",
        "address": "Avenue de la Gare 5",
        "city": "Sion",
        "postcode": "1950",
        "service_type": "Nettoyage canapé",
        "service_details": {"services": []},
        "scheduled_date": day.isoformat(),
        "scheduled_time": time,
        "duration_minutes": 120,
        "estimated_price": 140,
        "status": status,
        "payment_status": "pending",
    }
    if reservation_id is not None:
        row["id"] = reservation_id
    row.update(overrides)
    return row
