"""Guest-list step tools."""

from __future__ import annotations

import logging
from typing import Any

from ..models import Guest
from .base import (
    ACTION_AWAITING_CONFIRMATION,
    ACTION_UPDATE_GUEST_LIST,
    ToolResult,
    WizardTool,
)
from .context import TurnContext

logger = logging.getLogger(__name__)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def summarize_guest_list(guests: list[Guest]) -> str:
    if not guests:
        return "No guests added yet (you can add them later)"
    names = ", ".join(g.display_name for g in guests[:3])
    more = "..." if len(guests) > 3 else ""
    return f"{_plural(len(guests), 'guest')}: {names}{more}"


class AddGuestTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="addGuest",
            description=(
                "Add a guest to the party. Requires an email or a phone number; "
                "the name is optional."
            ),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Guest's name"},
                "email": {"type": "string", "description": "Guest's email address"},
                "phone": {"type": "string", "description": "Guest's phone number"},
            },
        }

    async def execute(
        self,
        context: TurnContext,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
    ) -> ToolResult:
        email = (email or "").strip() or None
        phone = (phone or "").strip() or None
        if not email and not phone:
            return ToolResult.fail("Either email or phone is required to add a guest.")

        guest = Guest(name=(name or "").strip() or None, email=email, phone=phone)
        context.session.guest_list.append(guest)
        await context.persist()

        return ToolResult.ok(
            f"Added {guest.display_name} to the guest list.",
            action=ACTION_UPDATE_GUEST_LIST,
            guestList=[g.to_dict() for g in context.session.guest_list],
        )


class RemoveGuestTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="removeGuest",
            description="Remove a guest from the list by their zero-based index.",
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "index": {
                    "type": "integer",
                    "description": "Zero-based position in the guest list",
                },
            },
            "required": ["index"],
        }

    async def execute(self, context: TurnContext, index: int) -> ToolResult:
        guests = context.session.guest_list
        if not isinstance(index, int) or index < 0 or index >= len(guests):
            return ToolResult.fail("Invalid guest index")

        removed = guests.pop(index)
        await context.persist()

        return ToolResult.ok(
            f"Removed {removed.display_name} from the guest list.",
            action=ACTION_UPDATE_GUEST_LIST,
            guestList=[g.to_dict() for g in guests],
        )


class ConfirmGuestListTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="confirmGuestList",
            description=(
                "Finalize the guest list and show the user a confirmation dialog. "
                "Only call this when the user says they are done adding guests."
            ),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, context: TurnContext) -> ToolResult:
        guests = context.session.guest_list
        summary = summarize_guest_list(guests)
        request = await context.request_confirmation(
            summary, {"guestList": [g.to_dict() for g in guests]}
        )
        return ToolResult.ok(
            "Please confirm the guest list above.",
            action=ACTION_AWAITING_CONFIRMATION,
            requestId=request.id,
            summary=summary,
        )


def guest_tools() -> list[WizardTool]:
    return [AddGuestTool(), RemoveGuestTool(), ConfirmGuestListTool()]
