"""Party-info step tools."""

from __future__ import annotations

import logging
from typing import Any

from ..dates import format_party_datetime, parse_party_datetime
from ..models import PartyInfo
from .base import ACTION_AWAITING_CONFIRMATION, ToolResult, WizardTool
from .context import TurnContext

logger = logging.getLogger(__name__)


def summarize_party_info(party_info: PartyInfo) -> str:
    summary = f"Party: {party_info.name} on {format_party_datetime(party_info.date_time)}"
    if party_info.location:
        summary += f" at {party_info.location}"
    return summary


class ConfirmPartyInfoTool(WizardTool):
    """Saves the party details and asks the user to confirm them."""

    def __init__(self) -> None:
        super().__init__(
            name="confirmPartyInfo",
            description=(
                "Save the party details and show the user a confirmation dialog. "
                "Call this once you know the party name and date/time."
            ),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Name of the party"},
                "dateTime": {
                    "type": "string",
                    "description": "Date and time, ISO 8601 (e.g. 2024-03-15T19:00:00)",
                },
                "location": {"type": "string", "description": "Where it is held"},
                "description": {
                    "type": "string",
                    "description": "Occasion or details for the invitation",
                },
                "allowContributions": {
                    "type": "boolean",
                    "description": "Whether guests may bring dishes or drinks",
                },
            },
            "required": ["name", "dateTime"],
        }

    async def execute(
        self,
        context: TurnContext,
        name: str,
        dateTime: str,
        location: str | None = None,
        description: str | None = None,
        allowContributions: bool | None = None,
    ) -> ToolResult:
        if not name.strip():
            return ToolResult.fail("A party name is required.")

        date_time, guessed = parse_party_datetime(dateTime, context.now)
        party_info = PartyInfo(
            name=name.strip(),
            date_time=date_time,
            location=location or None,
            description=description or None,
            allow_contributions=bool(allowContributions),
        )
        context.session.party_info = party_info

        summary = summarize_party_info(party_info)
        request = await context.request_confirmation(
            summary, {"partyInfo": party_info.to_dict()}
        )

        return ToolResult.ok(
            "Please confirm the party details above.",
            action=ACTION_AWAITING_CONFIRMATION,
            requestId=request.id,
            summary=summary,
            date_was_guessed=guessed,
        )


def party_info_tools() -> list[WizardTool]:
    return [ConfirmPartyInfoTool()]
