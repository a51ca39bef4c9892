from cleanbook.wizard.booking_wizard import BookingWizard, Notice, Recap
from cleanbook.wizard.contact_form import ContactForm, validate_contact
from cleanbook.wizard.state_machine import (
    IncompleteStepError,
    InvalidTransitionError,
    WizardStateMachine,
    WizardStep,
    WizardTrigger,
    can_proceed_to_step,
)

__all__ = [
    "BookingWizard",
    "ContactForm",
    "IncompleteStepError",
    "InvalidTransitionError",
    "Notice",
    "Recap",
    "WizardStateMachine",
    "WizardStep",
    "WizardTrigger",
    "can_proceed_to_step",
    "validate_contact",
]
