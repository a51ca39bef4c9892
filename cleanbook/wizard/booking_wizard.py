"""
Booking wizard: drives the cart store and the availability resolver
through the four booking steps and performs the final submission.

User-facing problems never raise out of the wizard. They are turned into
``Notice`` entries (the toast equivalent) and the wizard stays where it
is, so the customer can fix the input and retry without retyping.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from cleanbook.availability.periods import label_for_period
from cleanbook.availability.resolver import AvailabilityResolver
from cleanbook.cart.store import CartStore
from cleanbook.catalog.pricing import calculate_price, format_service_name, is_form_valid
from cleanbook.catalog.services import get_service, is_quote_only
from cleanbook.integrations.notifications import Notifier, build_confirmation_message
from cleanbook.logging_context import get_session_logger
from cleanbook.schemas.cart_schema import AddressRef, ContactInfo, Period, ScheduleSelection
from cleanbook.schemas.reservation_schema import SubmissionResult
from cleanbook.wizard.contact_form import validate_contact
from cleanbook.wizard.state_machine import (
    IncompleteStepError,
    InvalidTransitionError,
    WizardStateMachine,
    WizardStep,
    WizardTrigger,
)

logger = get_session_logger(__name__)

UNEXPECTED_ERROR = "Une erreur inattendue s'est produite."
SUBMISSION_IN_PROGRESS = "Soumission déjà en cours"
MISSING_SLOT_ERROR = "Aucun créneau sélectionné"
NOT_ON_CONTACT_STEP = "La réservation se valide depuis l'étape contact"


@dataclass
class Notice:
    """Non-blocking message shown to the customer."""
    title: str
    description: str = ""
    variant: str = "default"  # "default" | "destructive"


@dataclass(frozen=True)
class RecapLine:
    name: str
    price: float
    on_quote: bool


@dataclass(frozen=True)
class Recap:
    """What the success overlay shows once the reservation exists."""
    reservation_id: str
    address: str
    services: list[RecapLine]
    date: date
    period: Period
    period_label: str
    total_price: float
    contact_name: str = ""
    has_quote_items: bool = False


@dataclass
class WizardState:
    """Snapshot for rendering: where we are and what is selected."""
    step: WizardStep
    is_open: bool
    selected_date: Optional[date]
    selected_slot: Optional[ScheduleSelection]
    item_count: int
    total_price: float
    is_submitting: bool
    notices: list[Notice] = field(default_factory=list)


class BookingWizard:
    """Four-step booking flow over a cart store and an availability resolver."""

    def __init__(
        self,
        store: CartStore,
        resolver: AvailabilityResolver,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.notifier = notifier or Notifier()
        self.selected_date: Optional[date] = None
        self.selected_slot: Optional[ScheduleSelection] = None
        self.notices: list[Notice] = []
        self.recap: Optional[Recap] = None
        self.is_open = True
        self._submitting = False
        self._machine = WizardStateMachine(lambda: (self.store.cart, self.selected_slot))

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #

    @property
    def current_step(self) -> WizardStep:
        return self._machine.current_step

    @property
    def state_machine(self) -> WizardStateMachine:
        return self._machine

    @property
    def is_submitting(self) -> bool:
        return self._submitting

    def can_proceed_to(self, step: WizardStep) -> bool:
        return self._machine.can_proceed_to(step)

    def snapshot(self) -> WizardState:
        return WizardState(
            step=self.current_step,
            is_open=self.is_open,
            selected_date=self.selected_date,
            selected_slot=self.selected_slot,
            item_count=self.store.item_count(),
            total_price=self.store.total_price,
            is_submitting=self._submitting,
            notices=list(self.notices),
        )

    def _notify(self, title: str, description: str = "", variant: str = "default") -> None:
        self.notices.append(Notice(title, description, variant))

    def take_notices(self) -> list[Notice]:
        """Pop pending notices for display."""
        notices, self.notices = self.notices, []
        return notices

    # ------------------------------------------------------------------ #
    # Navigation
    # ------------------------------------------------------------------ #

    def open(self) -> None:
        self.is_open = True

    def next_step(self) -> bool:
        """Advance one step. An unmet precondition leaves the step unchanged."""
        try:
            self._machine.transition(WizardTrigger.NEXT)
        except IncompleteStepError:
            self._notify(
                "Étape incomplète",
                "Veuillez compléter les informations requises.",
                "destructive",
            )
            return False
        except InvalidTransitionError:
            return False
        if self.current_step == WizardStep.SCHEDULE:
            self.resolver.refresh()
        return True

    def previous_step(self) -> bool:
        try:
            self._machine.transition(WizardTrigger.BACK)
        except InvalidTransitionError:
            return False
        return True

    # ------------------------------------------------------------------ #
    # Services step
    # ------------------------------------------------------------------ #

    def add_service(
        self, service_id: str, form_data: Optional[dict[str, Any]] = None
    ) -> Optional[str]:
        """Price a configured service and put it in the cart.

        Returns the new cart item id, or None when the service is unknown
        or its form lacks a required option.
        """
        service = get_service(service_id)
        if service is None:
            self._notify("Service inconnu", service_id, "destructive")
            return None
        form = form_data or {}
        if not is_form_valid(service.id, form):
            self._notify(
                "Formulaire incomplet",
                f"Veuillez compléter les options de « {service.name} ».",
                "destructive",
            )
            return None
        return self.store.add_item(service, form, calculate_price(service.id, form))

    def remove_item(self, item_id: str) -> None:
        self.store.remove_item(item_id)

    # ------------------------------------------------------------------ #
    # Address step
    # ------------------------------------------------------------------ #

    def set_address(self, address: AddressRef) -> None:
        self.store.set_address(address)

    # ------------------------------------------------------------------ #
    # Schedule step
    # ------------------------------------------------------------------ #

    def pick_date(self, day: date) -> list[Period]:
        """Select a calendar date and return its bookable periods.

        Picking a date re-fetches availability so the answer is as fresh
        as the backend allows.
        """
        if not self.resolver.is_date_selectable(day):
            self._notify(
                "Date indisponible",
                "Les réservations ne sont possibles ni le jour même ni le dimanche.",
                "destructive",
            )
            return []
        self.selected_date = day
        self.resolver.refresh()
        return self.resolver.available_periods(day)

    def select_slot(self, period: Period, day: Optional[date] = None) -> bool:
        day = day or self.selected_date
        if day is None:
            self._notify("Aucune date", "Veuillez d'abord choisir une date.", "destructive")
            return False
        if not self.resolver.is_date_selectable(day) or not self.resolver.is_available(day, period):
            self._notify(
                "Créneau indisponible",
                "Ce créneau est déjà réservé. Veuillez en choisir un autre.",
                "destructive",
            )
            return False
        self.selected_date = day
        self.selected_slot = ScheduleSelection(date=day, period=period)
        logger.debug("Slot selected: %s %s", day, period.value)
        return True

    # ------------------------------------------------------------------ #
    # Contact step and submission
    # ------------------------------------------------------------------ #

    async def submit(
        self, contact: Optional[ContactInfo] = None, notes: str = ""
    ) -> SubmissionResult:
        """Validate contact details and create the reservation.

        On success the wizard moves to the success overlay with a recap
        and sends the notification. On any failure the wizard stays on the
        contact step with cart and inputs intact.
        """
        if self._submitting:
            return {"success": False, "error": SUBMISSION_IN_PROGRESS}
        if self.current_step != WizardStep.CONTACT:
            return {"success": False, "error": NOT_ON_CONTACT_STEP}

        slot = self.selected_slot
        if slot is None:
            self._notify(
                "Créneau manquant",
                "Veuillez sélectionner un créneau horaire.",
                "destructive",
            )
            return {"success": False, "error": MISSING_SLOT_ERROR}

        contact = contact or self.store.contact_info
        errors = validate_contact(contact) if contact else {"contact": "missing"}
        if errors:
            description = "; ".join(errors.values())
            self._notify("Informations de contact invalides", description, "destructive")
            return {"success": False, "error": description}

        self._submitting = True
        try:
            self.store.set_contact_info(contact)
            result = await asyncio.to_thread(self.store.submit, slot, notes)
        finally:
            self._submitting = False

        if not result.get("success"):
            if result.get("conflict"):
                self.resolver.refresh_reservations()
                self._notify("Créneau indisponible", result.get("error", ""), "destructive")
            else:
                self._notify("Erreur", result.get("error") or UNEXPECTED_ERROR, "destructive")
            return result

        self.recap = self._build_recap(result["reservation_id"], slot, contact)
        self._machine.transition(WizardTrigger.SUBMITTED)
        self._notify("Réservation créée", "Votre réservation multi-services a été confirmée.")
        await self.notifier.send(
            build_confirmation_message(
                contact.name, slot.date, slot.period, self.store.item_count()
            )
        )
        return result

    def _build_recap(
        self, reservation_id: str, slot: ScheduleSelection, contact: ContactInfo
    ) -> Recap:
        cart = self.store.cart
        lines = [
            RecapLine(
                name=format_service_name(item.service.name, item.form_data),
                price=item.estimated_price,
                on_quote=is_quote_only(item.service.id),
            )
            for item in cart.items
        ]
        return Recap(
            reservation_id=reservation_id,
            address=cart.address.place_name if cart.address else "",
            services=lines,
            date=slot.date,
            period=slot.period,
            period_label=label_for_period(slot.period),
            total_price=cart.total_price,
            contact_name=contact.name,
            has_quote_items=any(line.on_quote for line in lines),
        )

    # ------------------------------------------------------------------ #
    # Leaving the flow
    # ------------------------------------------------------------------ #

    def start_new_reservation(self) -> None:
        """From the success overlay: empty cart, back to the first step."""
        self.store.clear()
        self._reset_selection()
        self._machine.transition(WizardTrigger.RESTART)

    def close(self) -> None:
        """Close the wizard.

        After a successful booking the cart is cleared. Mid-flow the cart
        is kept and the next opening starts again from the services step.
        """
        if self.current_step == WizardStep.SUCCESS:
            self.store.clear()
            self._reset_selection()
        self._machine.transition(WizardTrigger.RESTART)
        self.is_open = False

    def _reset_selection(self) -> None:
        self.selected_date = None
        self.selected_slot = None
        self.recap = None
