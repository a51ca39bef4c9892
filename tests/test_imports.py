"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""


class TestPackageImports:
    def test_backend_package(self):
        from cleanbook.backend import Backend, BackendError, InMemoryBackend, SlotConflictError
        assert issubclass(SlotConflictError, BackendError)
        assert Backend is not None
        assert InMemoryBackend().fetch_admin_schedule() == []

    def test_rest_backend(self):
        from cleanbook.backend.rest import RestBackend
        assert RestBackend is not None

    def test_realtime_listener(self):
        from cleanbook.backend import RealtimeListener
        assert RealtimeListener is not None

    def test_availability_package(self):
        from cleanbook.availability import (
            AvailabilityResolver,
            AvailableSlot,
            label_for_period,
            period_from_time,
            time_for_period,
        )
        from cleanbook.schemas.cart_schema import Period
        assert period_from_time(time_for_period(Period.AFTERNOON)) == Period.AFTERNOON
        assert label_for_period(Period.MORNING)
        assert AvailabilityResolver is not None and AvailableSlot is not None

    def test_cart_package(self):
        from cleanbook.cart import CartStore, JsonFileStorage, MemoryStorage, calculate_total_price
        assert calculate_total_price([]) == 0
        assert CartStore is not None and JsonFileStorage is not None
        assert "x" not in MemoryStorage()

    def test_wizard_package(self):
        from cleanbook.wizard import BookingWizard, WizardStateMachine, WizardStep
        assert WizardStep.CONTACT == "contact"
        assert BookingWizard is not None and WizardStateMachine is not None

    def test_integrations_package(self):
        from cleanbook.integrations import (
            Geocoder,
            GeocodingSuggestion,
            Notifier,
            build_confirmation_message,
        )
        assert callable(build_confirmation_message)
        assert Geocoder is not None and GeocodingSuggestion is not None and Notifier is not None

    def test_admin_package(self):
        from cleanbook.admin import AdminScheduleEditor, ReservationDetail, ReservationManager
        assert issubclass(ReservationDetail, object)
        assert AdminScheduleEditor is not None and ReservationManager is not None

    def test_admin_notifications(self):
        from cleanbook.admin import AdminNotification, NotificationCenter
        assert AdminNotification is not None and NotificationCenter is not None


class TestEntryPoints:
    def test_console_session_wiring(self):
        from console_demo import ConsoleSession
        session = ConsoleSession()
        assert session.wizard.store is session.store
        assert session.resolver is session.wizard.resolver
        assert not session.wizard.notifier.enabled

    def test_main_parser(self):
        import main
        assert callable(main.main)
