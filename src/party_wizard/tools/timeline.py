"""Timeline step tools."""

from __future__ import annotations

import logging
from typing import Any

from ..exceptions import ExtractionError
from ..models import TimelineTask
from .base import (
    ACTION_AWAITING_CONFIRMATION,
    ACTION_UPDATE_TIMELINE,
    ToolResult,
    WizardTool,
)
from .context import TurnContext

logger = logging.getLogger(__name__)


def summarize_timeline(timeline: list[TimelineTask] | None) -> str:
    tasks = timeline or []
    if not tasks:
        return "No timeline tasks created"
    phases = sum(1 for t in tasks if t.is_phase_start)
    return (
        f"{len(tasks)} task{'' if len(tasks) == 1 else 's'} across "
        f"{phases} phase{'' if phases == 1 else 's'}"
    )


async def generate_timeline(
    context: TurnContext,
    message_template: str = "Created {count} tasks for your cooking timeline.",
) -> list[TimelineTask]:
    """Generate a timeline for the working session, persist it, and announce it.

    Args:
        context: Turn-scoped working state; must hold party info
        message_template: Announcement text, formatted with the task ``count``

    Raises:
        ExtractionError: If generation fails
    """
    session = context.session
    assert session.party_info is not None
    timeline = await context.services.timelines.generate(
        session.party_info, session.menu_plan, guest_count=len(session.guest_list)
    )
    session.timeline = timeline
    await context.persist()
    await context.writer.write_data(
        "timeline-generated",
        {
            "timeline": [t.to_dict() for t in timeline],
            "message": message_template.format(count=len(timeline)),
        },
    )
    return timeline


class GenerateTimelineTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="generateTimeline",
            description="Create a cooking schedule for the party based on the menu.",
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, context: TurnContext) -> ToolResult:
        if context.session.party_info is None:
            return ToolResult.fail("No party info available")

        try:
            timeline = await generate_timeline(context)
        except ExtractionError as e:
            logger.warning("Timeline generation failed: %s", e)
            return ToolResult.fail(f"Could not create a timeline: {e}")

        return ToolResult.ok(
            f"Created {len(timeline)} tasks for your cooking timeline.",
            action=ACTION_UPDATE_TIMELINE,
            timeline=[t.to_dict() for t in timeline],
        )


class AdjustTimelineTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="adjustTimeline",
            description=(
                "Modify the cooking timeline based on user feedback: change "
                "timing, add, remove, or reorganize tasks."
            ),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "changes": {
                    "type": "string",
                    "description": (
                        "What to change, e.g. 'move salad prep to 2pm' or "
                        "'add 30 min buffer before guests arrive'"
                    ),
                },
            },
            "required": ["changes"],
        }

    async def execute(self, context: TurnContext, changes: str) -> ToolResult:
        current = context.session.timeline or []
        try:
            timeline = await context.services.timelines.adjust(current, changes)
        except ExtractionError as e:
            logger.warning("Timeline adjustment failed: %s", e)
            return ToolResult.fail(f"Could not adjust the timeline: {e}")

        context.session.timeline = timeline
        await context.persist()

        return ToolResult.ok(
            "Timeline updated based on your feedback.",
            action=ACTION_UPDATE_TIMELINE,
            timeline=[t.to_dict() for t in timeline],
        )


class ConfirmTimelineTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="confirmTimeline",
            description=(
                "Finalize the timeline and show the user a confirmation dialog. "
                "Approval creates the party."
            ),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, context: TurnContext) -> ToolResult:
        timeline = context.session.timeline or []
        summary = summarize_timeline(timeline)
        request = await context.request_confirmation(
            summary, {"timeline": [t.to_dict() for t in timeline]}
        )
        return ToolResult.ok(
            "Please confirm the timeline above to create your party.",
            action=ACTION_AWAITING_CONFIRMATION,
            requestId=request.id,
            summary=summary,
        )


def timeline_tools() -> list[WizardTool]:
    return [GenerateTimelineTool(), AdjustTimelineTool(), ConfirmTimelineTool()]
