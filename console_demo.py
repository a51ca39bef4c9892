"""
Offline console demo: runs the booking flow without any backend.

Uses the real cart store, availability resolver, wizard state machine
and admin schedule editor over the in-memory backend. Address search
uses the local town list and no notification is sent.

Usage:
    python console_demo.py
    python console_demo.py --scenario a
    python console_demo.py --scenario c
"""

import argparse
import asyncio
from datetime import date, timedelta
from typing import Optional

from cleanbook.admin.schedule_editor import AdminScheduleEditor
from cleanbook.availability.periods import label_for_period
from cleanbook.availability.resolver import AvailabilityResolver
from cleanbook.backend.memory import InMemoryBackend
from cleanbook.cart.storage import MemoryStorage
from cleanbook.cart.store import CartStore
from cleanbook.catalog.pricing import get_form_fields
from cleanbook.catalog.services import get_all_services, is_quote_only
from cleanbook.config import NotificationConfig, settings
from cleanbook.integrations.geocoding import Geocoder, fallback_suggestions
from cleanbook.integrations.notifications import Notifier
from cleanbook.schemas.cart_schema import ContactInfo, Period
from cleanbook.wizard.booking_wizard import BookingWizard
from cleanbook.wizard.state_machine import WizardStep

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

TUESDAY = 1
DEMO_CONTACT = ContactInfo(name="Ana Dupont", email="ana.dupont@example.ch", phone="079 123 45 67")


def _next_weekday(start: date, weekday: int) -> date:
    day = start + timedelta(days=1)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    return day


class ConsoleSession:
    """Drives one booking wizard (and the admin editor) in the terminal."""

    def __init__(self, backend: Optional[InMemoryBackend] = None) -> None:
        self.backend = backend or InMemoryBackend()
        self.store = CartStore(self.backend, MemoryStorage())
        self.resolver = AvailabilityResolver(self.backend)
        self.wizard = BookingWizard(
            self.store, self.resolver, Notifier(NotificationConfig(url=""))
        )
        self.geocoder = Geocoder()

    def say(self, text: str) -> None:
        print(f"{GREEN}{BOLD}[Réservation]{RESET} {GREEN}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def _flush_notices(self) -> None:
        for notice in self.wizard.take_notices():
            colour = RED if notice.variant == "destructive" else YELLOW
            print(f"{colour}  [{notice.title}] {notice.description}{RESET}")

    def _banner(self, title: str) -> None:
        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{BOLD}  Business: {settings.business.name}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

    def _footer(self, title: str) -> None:
        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  {title}{RESET}")
        print(f"{DIM}  Step trace: {' -> '.join(self.wizard.state_machine.get_state_trace())}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def _show_cart(self) -> None:
        for item in self.store.items:
            price = "sur devis" if is_quote_only(item.service.id) else f"{item.estimated_price:.0f} {settings.business.currency}"
            self.system_log(f"{item.service.name}: {price}")
        self.system_log(f"Total: {self.store.total_price:.0f} {settings.business.currency}")

    def _next(self) -> bool:
        ok = self.wizard.next_step()
        self._flush_notices()
        self.system_log(f"Step: {self.wizard.current_step.value}")
        return ok

    def _submit(self, contact: ContactInfo) -> bool:
        result = asyncio.run(self.wizard.submit(contact))
        self._flush_notices()
        if result.get("success"):
            recap = self.wizard.recap
            self.say(f"Réservation {result['reservation_id']} confirmée.")
            if recap:
                self.system_log(f"{recap.address} - {recap.date} {recap.period_label}")
                for line in recap.services:
                    self.system_log(f"  {line.name}")
        return bool(result.get("success"))

    # ------------------------------------------------------------------ #
    # Scripted scenarios
    # ------------------------------------------------------------------ #

    def _fill_cart_and_address(self) -> None:
        self.wizard.add_service("nettoyage-canape", {"numberOfSeats": "3"})
        self.wizard.add_service("nettoyage-matelas", {"matressSize": "140-160"})
        self._show_cart()
        self._next()
        address = fallback_suggestions("Sion")[0].to_address()
        self.wizard.set_address(address)
        self.say(f"Adresse: {address.place_name}")
        self._next()

    def _first_open_date(self) -> date:
        for slot in self.resolver.get_available_slots():
            if slot.is_available and self.resolver.is_available(slot.date, Period.AFTERNOON):
                return slot.date
        raise RuntimeError("No open date in the booking window")

    def scenario_a(self) -> None:
        self._fill_cart_and_address()
        day = self._first_open_date()
        periods = self.wizard.pick_date(day)
        self.say(f"{day}: {', '.join(label_for_period(p) for p in periods)}")
        self.wizard.select_slot(Period.MORNING)
        self._next()
        self._submit(DEMO_CONTACT)
        self.wizard.close()
        self.system_log(f"Cart items after close: {self.store.item_count()}")

    def scenario_b(self) -> None:
        self._fill_cart_and_address()
        day = self._first_open_date()
        self.wizard.pick_date(day)
        self.wizard.select_slot(Period.MORNING)
        self._next()

        # Another customer takes the morning in the meantime.
        self.backend.insert_reservation({
            "client_name": "Autre client", "client_email": "autre@example.ch",
            "client_phone": "0790000000", "address": "Rue du Rhône 1",
            "service_type": "Nettoyage vitres", "scheduled_date": day.isoformat(),
            "scheduled_time": settings.schedule.morning_time, "status": "pending",
        })
        self.system_log(f"Concurrent booking stored for {day} morning")

        if not self._submit(DEMO_CONTACT):
            self.say("Le matin n'est plus libre, on passe à l'après-midi.")
            self.wizard.previous_step()
            self.wizard.select_slot(Period.AFTERNOON, day)
            self._flush_notices()
            self._next()
            self._submit(DEMO_CONTACT)
        self.wizard.close()

    def scenario_c(self) -> None:
        today = date.today()
        tuesday = _next_weekday(today, TUESDAY)
        editor = AdminScheduleEditor(self.backend)
        editor.load()
        editor.toggle(tuesday, Period.MORNING)
        self.system_log(f"Admin pending changes: {editor.pending_count}")
        result = editor.save()
        self.system_log(f"Admin save: {result}")

        self.resolver.start()
        for period in Period:
            state = "ouvert" if self.resolver.is_available(tuesday, period) else "fermé"
            self.say(f"{tuesday} {label_for_period(period)}: {state}")
        self.resolver.stop()

    SCENARIOS = {"a": scenario_a, "b": scenario_b, "c": scenario_c}

    def run_scenario(self, scenario: str) -> None:
        handler = self.SCENARIOS.get(scenario)
        if handler is None:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return
        self._banner(f"CLEANBOOK - Scenario: {scenario}")
        handler(self)
        self._footer(f"Scenario '{scenario}' complete.")

    # ------------------------------------------------------------------ #
    # Interactive mode
    # ------------------------------------------------------------------ #

    def _ask(self, prompt: str) -> str:
        value = input(f"{BLUE}{prompt} {RESET}").strip()
        if value.lower() in ("quit", "exit", "q"):
            raise KeyboardInterrupt
        return value

    def _services_step(self) -> None:
        services = get_all_services()
        for index, service in enumerate(services, 1):
            print(f"  {index:2}. {service.name}")
        while True:
            choice = self._ask("Service n° (vide pour continuer):")
            if not choice:
                if self._next():
                    return
                continue
            if not choice.isdigit() or not 1 <= int(choice) <= len(services):
                continue
            service = services[int(choice) - 1]
            form = {}
            for form_field in get_form_fields(service.id):
                hint = f" {list(form_field.choices)}" if form_field.choices else ""
                value = self._ask(f"  {form_field.label}{hint}:")
                if value:
                    form[form_field.name] = value
            self.wizard.add_service(service.id, form)
            self._flush_notices()
            self._show_cart()

    def _address_step(self) -> None:
        while True:
            query = self._ask("Adresse:")
            suggestions = asyncio.run(self.geocoder.search(query))
            if not suggestions:
                self.say("Aucune adresse trouvée.")
                continue
            for index, suggestion in enumerate(suggestions, 1):
                print(f"  {index}. {suggestion.place_name}")
            choice = self._ask("Choix:")
            if choice.isdigit() and 1 <= int(choice) <= len(suggestions):
                self.wizard.set_address(suggestions[int(choice) - 1].to_address())
                if self._next():
                    return

    def _schedule_step(self) -> None:
        for slot in self.resolver.get_available_slots():
            mark = f"{GREEN}libre{RESET}" if slot.is_available else f"{RED}pris{RESET}"
            print(f"  {slot.date} {label_for_period(slot.period):12} {mark}")
        while True:
            raw = self._ask("Date (AAAA-MM-JJ):")
            try:
                day = date.fromisoformat(raw)
            except ValueError:
                continue
            periods = self.wizard.pick_date(day)
            self._flush_notices()
            if not periods:
                continue
            period = Period.MORNING if self._ask("Matin ou après-midi? [m/a]:").lower().startswith("m") else Period.AFTERNOON
            if self.wizard.select_slot(period) and self._next():
                return
            self._flush_notices()

    def _contact_step(self) -> None:
        while self.wizard.current_step == WizardStep.CONTACT:
            contact = ContactInfo(
                name=self._ask("Nom:"),
                email=self._ask("E-mail:"),
                phone=self._ask("Téléphone:"),
            )
            self._submit(contact)

    def run(self) -> None:
        self._banner("CLEANBOOK - Console Demo (type 'quit' to exit)")
        steps = {
            WizardStep.SERVICES: self._services_step,
            WizardStep.ADDRESS: self._address_step,
            WizardStep.SCHEDULE: self._schedule_step,
            WizardStep.CONTACT: self._contact_step,
        }
        self.resolver.start()
        try:
            while self.wizard.current_step != WizardStep.SUCCESS:
                steps[self.wizard.current_step]()
        except (KeyboardInterrupt, EOFError):
            print(f"\n{DIM}Session ended.{RESET}")
            return
        finally:
            self.resolver.stop()
        self.wizard.close()
        self._footer("Booking complete.")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline booking console demo")
    parser.add_argument(
        "--scenario",
        choices=["a", "b", "c"],
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args(argv)

    session = ConsoleSession()
    if args.scenario:
        session.run_scenario(args.scenario)
    else:
        session.run()


if __name__ == "__main__":
    main()
