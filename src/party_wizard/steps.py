"""Wizard step identity and ordering.

The wizard walks a strictly linear sequence::

    party-info -> guests -> menu -> timeline -> complete

``complete`` is terminal and is never a session's ``current_step``; it is the
``next_step`` of a timeline confirmation and is reached through the finalize
collaborator.
"""

from __future__ import annotations

from enum import Enum

from .exceptions import ValidationError


class WizardStep(str, Enum):
    """Steps of the party wizard."""

    PARTY_INFO = "party-info"
    GUESTS = "guests"
    MENU = "menu"
    TIMELINE = "timeline"
    COMPLETE = "complete"

    @property
    def index(self) -> int:
        return STEP_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is WizardStep.COMPLETE


STEP_ORDER: tuple[WizardStep, ...] = (
    WizardStep.PARTY_INFO,
    WizardStep.GUESTS,
    WizardStep.MENU,
    WizardStep.TIMELINE,
    WizardStep.COMPLETE,
)

# Steps a session can sit on; excludes the terminal marker.
SESSION_STEPS: tuple[WizardStep, ...] = STEP_ORDER[:-1]

CONFIRM_TOOLS: dict[WizardStep, str] = {
    WizardStep.PARTY_INFO: "confirmPartyInfo",
    WizardStep.GUESTS: "confirmGuestList",
    WizardStep.MENU: "confirmMenu",
    WizardStep.TIMELINE: "confirmTimeline",
}

REVISION_TOOL_INSTRUCTIONS: dict[WizardStep, str] = {
    WizardStep.PARTY_INFO: (
        "Call confirmPartyInfo with the updated party details."
    ),
    WizardStep.GUESTS: (
        "Use addGuest or removeGuest to apply the changes, "
        "then call confirmGuestList."
    ),
    WizardStep.MENU: (
        "Use addExistingRecipe, extractRecipeFromUrl, generateRecipeIdea, "
        "or removeMenuItem to apply the changes, then call confirmMenu."
    ),
    WizardStep.TIMELINE: (
        "Use adjustTimeline to apply the changes, then call confirmTimeline."
    ),
}


def parse_step(value: str | WizardStep) -> WizardStep:
    """Parse a step identifier.

    Args:
        value: Step name such as ``"menu"`` or a WizardStep

    Returns:
        The matching WizardStep

    Raises:
        ValidationError: If the value names no known step
    """
    if isinstance(value, WizardStep):
        return value
    try:
        return WizardStep(value)
    except ValueError as e:
        raise ValidationError(
            f"Unknown wizard step: {value!r}",
            context={"step": value, "valid": [s.value for s in STEP_ORDER]},
        ) from e


def step_index(step: WizardStep) -> int:
    return step.index


def next_step(step: WizardStep) -> WizardStep:
    """Return the step that follows ``step``.

    Raises:
        ValidationError: If ``step`` is the terminal step
    """
    if step.is_terminal:
        raise ValidationError("The complete step has no successor")
    return STEP_ORDER[step.index + 1]


def confirm_tool_for(step: WizardStep) -> str:
    """Return the name of the single confirm tool owned by ``step``."""
    try:
        return CONFIRM_TOOLS[step]
    except KeyError as e:
        raise ValidationError(f"Step {step.value} has no confirm tool") from e
