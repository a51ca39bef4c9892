"""
Cart store: the single mutable staging area for an in-progress order.

Every mutation recomputes the total and re-serializes the whole cart to
key/value storage. Nothing reaches the backend until ``submit``, which
re-checks the chosen slot, mirrors the cart, and writes one reservation
aggregating all items.

Usage:
    store = CartStore(backend, MemoryStorage())
    store.add_item(get_service("nettoyage-canape"), {"numberOfSeats": "3"}, 140)
    store.set_address(address)
    store.set_contact_info(ContactInfo(name="Ana", email="a@b.ch", phone="0791234567"))
    result = store.submit(ScheduleSelection(date=day, period=Period.MORNING))
"""

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from cleanbook.availability.periods import period_from_time, time_for_period
from cleanbook.backend.base import Backend, BackendError, Row, SlotConflictError
from cleanbook.cart.storage import KeyValueStorage
from cleanbook.catalog.services import is_quote_only
from cleanbook.config import settings
from cleanbook.logging_context import get_session_logger, set_session_id
from cleanbook.schemas.cart_schema import (
    AddressRef,
    Cart,
    CartItem,
    ContactInfo,
    ScheduleSelection,
    ServiceRef,
)
from cleanbook.schemas.reservation_schema import SubmissionResult
from cleanbook.utils import new_token, now_ms

logger = get_session_logger(__name__)

DEFAULT_ITEM_PRICE = 100

EMPTY_CART_ERROR = "Panier vide"
MISSING_ADDRESS_ERROR = "Adresse manquante"
MISSING_CONTACT_ERROR = "Informations de contact manquantes"
SLOT_TAKEN_ERROR = (
    "Ce créneau vient d'être réservé par quelqu'un d'autre. "
    "Veuillez en choisir un autre."
)


def calculate_total_price(items: list[CartItem]) -> float:
    """Sum of item prices, quote-only services excluded."""
    return sum(
        item.estimated_price for item in items if not is_quote_only(item.service.id)
    )


def _new_cart() -> Cart:
    return Cart(session_id=new_token("session"))


def _coordinates(address: AddressRef) -> Optional[list[float]]:
    return list(address.center) if address.center else None


class CartStore:
    """Owns the cart, its durability and its conversion into a reservation."""

    def __init__(
        self,
        backend: Backend,
        storage: KeyValueStorage,
        storage_key: Optional[str] = None,
    ) -> None:
        self._backend = backend
        self._storage = storage
        self._key = storage_key or settings.storage.cart_key
        self._cart = self._load()
        set_session_id(self._cart.session_id)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    @property
    def cart(self) -> Cart:
        """Copy of the current cart; mutate through the store only."""
        return self._cart.model_copy(deep=True)

    @property
    def items(self) -> list[CartItem]:
        return [item.model_copy(deep=True) for item in self._cart.items]

    @property
    def total_price(self) -> float:
        return self._cart.total_price

    @property
    def session_id(self) -> str:
        return self._cart.session_id

    @property
    def address(self) -> Optional[AddressRef]:
        return self._cart.address

    @property
    def contact_info(self) -> Optional[ContactInfo]:
        return self._cart.contact_info

    def item_count(self) -> int:
        return len(self._cart.items)

    def has_quote_only_items(self) -> bool:
        return any(is_quote_only(item.service.id) for item in self._cart.items)

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def add_item(
        self,
        service: ServiceRef,
        form_data: Optional[dict[str, Any]] = None,
        price: float = DEFAULT_ITEM_PRICE,
    ) -> str:
        """Append a configured service and return the new item id.

        Form completeness is not checked here; the wizard validates
        before calling.
        """
        item = CartItem(
            id=new_token("item"),
            service=service,
            form_data=dict(form_data or {}),
            estimated_price=price,
            timestamp=now_ms(),
        )
        self._cart.items.append(item)
        self._commit()
        logger.info("Item added: %s (%s)", service.id, price)
        return item.id

    def remove_item(self, item_id: str) -> None:
        """Remove an item by id. Unknown ids are ignored."""
        before = len(self._cart.items)
        self._cart.items = [i for i in self._cart.items if i.id != item_id]
        if len(self._cart.items) == before:
            logger.debug("Remove ignored, no item %s", item_id)
            return
        self._commit()
        logger.info("Item removed: %s", item_id)

    def update_item(
        self,
        item_id: str,
        form_data: Optional[dict[str, Any]] = None,
        price: Optional[float] = None,
    ) -> bool:
        """Replace an item's options and/or price. Returns False if not found."""
        for item in self._cart.items:
            if item.id == item_id:
                if form_data is not None:
                    item.form_data = dict(form_data)
                if price is not None:
                    item.estimated_price = price
                self._commit()
                return True
        return False

    def set_address(self, address: Optional[AddressRef]) -> None:
        self._cart.address = address
        self._commit()

    def set_contact_info(self, contact: Optional[ContactInfo]) -> None:
        self._cart.contact_info = contact
        self._commit()

    def clear(self) -> None:
        """Start over with an empty cart and a new session id."""
        self._cart = _new_cart()
        self._storage.remove_item(self._key)
        set_session_id(self._cart.session_id)
        logger.info("Cart cleared")

    def reload(self) -> None:
        """Re-read the cart from storage, e.g. after another writer saved it."""
        self._cart = self._load()
        set_session_id(self._cart.session_id)

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    def submit(self, selection: ScheduleSelection, notes: str = "") -> SubmissionResult:
        """Turn the cart into one pending reservation for the selected slot.

        The cart itself is left untouched; the caller clears it once the
        customer has seen the confirmation.
        """
        cart = self._cart
        if not cart.items:
            return {"success": False, "error": EMPTY_CART_ERROR}
        if cart.address is None:
            return {"success": False, "error": MISSING_ADDRESS_ERROR}
        if cart.contact_info is None:
            return {"success": False, "error": MISSING_CONTACT_ERROR}

        try:
            if self._slot_taken(selection):
                logger.warning(
                    "Slot %s %s taken before submission",
                    selection.date, selection.period.value,
                )
                return {"success": False, "conflict": True, "error": SLOT_TAKEN_ERROR}

            self._mirror_cart()
            saved = self._backend.insert_reservation(
                self._reservation_row(selection, notes)
            )
        except SlotConflictError:
            logger.warning(
                "Slot %s %s lost to a concurrent booking",
                selection.date, selection.period.value,
            )
            return {"success": False, "conflict": True, "error": SLOT_TAKEN_ERROR}
        except BackendError as exc:
            logger.error("Reservation submission failed: %s", exc)
            return {"success": False, "error": str(exc) or "Erreur inconnue"}

        logger.info(
            "Reservation created: %s for %s %s (%d item(s), %.2f)",
            saved["id"], selection.date, selection.period.value,
            len(cart.items), cart.total_price,
        )
        return {"success": True, "reservation_id": saved["id"]}

    def _slot_taken(self, selection: ScheduleSelection) -> bool:
        rows = self._backend.fetch_active_reservations(selection.date, selection.date)
        return any(
            period_from_time(row.get("scheduled_time")) == selection.period
            for row in rows
        )

    def _mirror_cart(self) -> None:
        """Copy the cart into carts/cart_items. Failure does not block booking."""
        cart = self._cart
        address = cart.address
        contact = cart.contact_info
        try:
            saved = self._backend.insert_cart({
                "session_id": cart.session_id,
                "client_name": contact.name if contact else "",
                "client_email": contact.email if contact else "",
                "client_phone": contact.phone if contact else "",
                "address": address.street if address else "",
                "city": address.city if address else "",
                "postcode": address.postcode if address else "",
                "coordinates": _coordinates(address) if address else None,
            })
            self._backend.insert_cart_items([
                {
                    "cart_id": saved["id"],
                    "service_id": item.service.id,
                    "service_name": item.service.name,
                    "service_icon": item.service.icon,
                    "form_data": item.form_data,
                    "estimated_price": item.estimated_price,
                }
                for item in cart.items
            ])
        except BackendError as exc:
            logger.warning("Cart mirror write failed: %s", exc)

    def _reservation_row(self, selection: ScheduleSelection, notes: str) -> Row:
        cart = self._cart
        address = cart.address
        contact = cart.contact_info
        assert address is not None and contact is not None

        details: dict[str, Any] = {
            "services": [
                {
                    "id": item.service.id,
                    "name": item.service.name,
                    "formData": item.form_data,
                    "estimatedPrice": item.estimated_price,
                }
                for item in cart.items
            ],
        }
        # Older readers look for the first item's options at the root.
        for key, value in cart.items[0].form_data.items():
            details.setdefault(key, value)

        created = datetime.now().strftime("%d.%m.%Y %H:%M:%S")
        return {
            "client_name": contact.name,
            "client_email": contact.email,
            "client_phone": contact.phone,
            "address": address.street,
            "city": address.city,
            "postcode": address.postcode,
            "coordinates": _coordinates(address),
            "service_type": ", ".join(item.service.name for item in cart.items),
            "service_details": details,
            "scheduled_date": selection.date.isoformat(),
            "scheduled_time": time_for_period(selection.period),
            "duration_minutes": settings.schedule.slot_duration_minutes,
            "estimated_price": cart.total_price,
            "status": "pending",
            "payment_status": "pending",
            "notes": notes,
            "internal_notes": f"Réservation créée via panier le {created}",
        }

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def _commit(self) -> None:
        self._cart.total_price = calculate_total_price(self._cart.items)
        if self._cart.is_blank():
            self._storage.remove_item(self._key)
        else:
            self._storage.set_item(self._key, self._cart.model_dump_json())

    def _load(self) -> Cart:
        try:
            raw = self._storage.get_item(self._key)
            if not raw:
                return _new_cart()
            cart = Cart.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            logger.warning("Discarding unreadable stored cart: %s", exc)
            self._storage.remove_item(self._key)
            return _new_cart()
        cart.total_price = calculate_total_price(cart.items)
        if not cart.session_id:
            cart.session_id = new_token("session")
        logger.debug("Cart restored with %d item(s)", len(cart.items))
        return cart
