"""
Linear state machine for the booking wizard.

Four steps in a fixed order (services -> address -> schedule -> contact)
plus a terminal success overlay. Moving forward is gated by what the
cart and the slot selection already hold; moving back is always allowed.

Usage:
    sm = WizardStateMachine(lambda: (store.cart, selected_slot))
    sm.transition(WizardTrigger.NEXT)   # raises IncompleteStepError if empty
    assert sm.current_step == WizardStep.ADDRESS
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from cleanbook.schemas.cart_schema import Cart, ScheduleSelection

logger = logging.getLogger(__name__)


class WizardStep(str, Enum):
    """Steps of the booking flow, in display order."""
    SERVICES = "services"
    ADDRESS = "address"
    SCHEDULE = "schedule"
    CONTACT = "contact"
    SUCCESS = "success"


class WizardTrigger(str, Enum):
    """User actions that move the wizard."""
    NEXT = "next"
    BACK = "back"
    SUBMITTED = "submitted"
    RESTART = "restart"


STEP_ORDER: list[WizardStep] = [
    WizardStep.SERVICES,
    WizardStep.ADDRESS,
    WizardStep.SCHEDULE,
    WizardStep.CONTACT,
]

ProgressSource = Callable[[], tuple[Cart, Optional[ScheduleSelection]]]


def can_proceed_to_step(
    step: WizardStep, cart: Cart, slot: Optional[ScheduleSelection] = None
) -> bool:
    """Whether everything a step depends on is already filled in."""
    has_items = len(cart.items) > 0
    has_address = cart.address is not None
    if step == WizardStep.SERVICES:
        return True
    if step == WizardStep.ADDRESS:
        return has_items
    if step == WizardStep.SCHEDULE:
        return has_items and has_address
    if step == WizardStep.CONTACT:
        return has_items and has_address and slot is not None
    return False


@dataclass
class Transition:
    """A single valid step transition."""
    from_step: WizardStep
    to_step: WizardStep
    trigger: WizardTrigger
    gated: bool = False


@dataclass
class StepEntry:
    """Recorded history entry for a step visit."""
    step: WizardStep
    entered_at: datetime
    trigger: Optional[WizardTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when an action is not valid from the current step."""


class IncompleteStepError(InvalidTransitionError):
    """Raised when moving forward before the target step's inputs exist."""

    def __init__(self, target: WizardStep) -> None:
        super().__init__(f"Cannot proceed to '{target.value}': step incomplete")
        self.target = target


def _linear_transitions() -> list[Transition]:
    transitions: list[Transition] = []
    for current, following in zip(STEP_ORDER, STEP_ORDER[1:]):
        transitions.append(Transition(current, following, WizardTrigger.NEXT, gated=True))
        transitions.append(Transition(following, current, WizardTrigger.BACK))
    return transitions


class WizardStateMachine:
    """
    Strictly linear step controller.

    Gated transitions consult ``can_proceed_to_step`` against a fresh
    read of the cart and slot each time; nothing is cached here.
    """

    TRANSITIONS: list[Transition] = _linear_transitions() + [
        Transition(WizardStep.CONTACT, WizardStep.SUCCESS, WizardTrigger.SUBMITTED),
    ] + [
        Transition(step, WizardStep.SERVICES, WizardTrigger.RESTART)
        for step in STEP_ORDER + [WizardStep.SUCCESS]
    ]

    def __init__(self, progress: ProgressSource) -> None:
        self._progress = progress
        self._current_step = WizardStep.SERVICES
        self._history: list[StepEntry] = [
            StepEntry(step=WizardStep.SERVICES, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_step(self) -> WizardStep:
        return self._current_step

    def can_proceed_to(self, step: WizardStep) -> bool:
        cart, slot = self._progress()
        return can_proceed_to_step(step, cart, slot)

    def transition(self, trigger: WizardTrigger) -> WizardStep:
        """
        Execute a step transition.

        Raises:
            IncompleteStepError: NEXT while the target step's inputs are missing.
            InvalidTransitionError: No transition for this trigger here.
        """
        for t in self.TRANSITIONS:
            if t.from_step != self._current_step or t.trigger != trigger:
                continue
            if t.gated and not self.can_proceed_to(t.to_step):
                logger.debug(
                    "Blocked %s -> %s: step incomplete",
                    self._current_step.value, t.to_step.value,
                )
                raise IncompleteStepError(t.to_step)

            old_step = self._current_step
            self._current_step = t.to_step
            self._history.append(StepEntry(
                step=self._current_step,
                entered_at=datetime.now(timezone.utc),
                trigger=trigger,
            ))
            logger.debug(
                "Step transition: %s -> %s (trigger: %s)",
                old_step.value, self._current_step.value, trigger.value,
            )
            return self._current_step

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_step.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[WizardTrigger]:
        """Return all triggers defined from the current step."""
        return [t.trigger for t in self.TRANSITIONS if t.from_step == self._current_step]

    def get_history(self) -> list[StepEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of step names visited."""
        return [entry.step.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_step == WizardStep.SUCCESS
