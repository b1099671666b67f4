"""Cooking timeline generation and adjustment."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..dates import format_party_datetime
from ..exceptions import ExtractionError, ModelError, ValidationError
from ..llm.base import AsyncLLMProvider, LLMMessage
from ..models import MenuPlan, PartyInfo, TimelineTask
from .recipes import parse_json_object

logger = logging.getLogger(__name__)

TASK_JSON_INSTRUCTIONS = """Respond with a JSON object {"tasks": [...]} where each task has:
- recipeId (string or null)
- description (string)
- daysBeforeParty (integer, 0 = day of party, 1 = day before, etc.)
- scheduledTime (24h "HH:MM", like "09:00")
- durationMinutes (integer, realistic estimate)
- isPhaseStart (true for major milestones: shopping, cooking start, final prep)
- phaseDescription (friendly reminder message for phase starts, otherwise null)"""

GENERATE_PROMPT = """Create a cooking timeline for a party.

PARTY DETAILS:
- Serving time: {serving_time}
- Guests: {guest_count}
- Menu items: {menu_items}

Create a practical timeline that includes:
1. Grocery shopping (1-2 days before)
2. Any advance prep (day before)
3. Day-of cooking tasks with specific times
4. Final prep before guests arrive

Keep it manageable - don't overwhelm with too many tasks."""

ADJUST_PROMPT = """Adjust this cooking timeline based on the user's request.

Current timeline:
{timeline}

Requested changes: {changes}

Return the updated timeline with all tasks (keep unchanged tasks as-is, modify or add/remove as needed)."""


def _task_to_prompt(task: TimelineTask) -> dict[str, Any]:
    return {
        "recipeId": task.recipe_id,
        "description": task.description,
        "daysBeforeParty": task.days_before_party,
        "scheduledTime": task.scheduled_time,
        "durationMinutes": task.duration_minutes,
        "isPhaseStart": task.is_phase_start,
        "phaseDescription": task.phase_description,
    }


def tasks_from_payload(data: Any) -> list[TimelineTask]:
    """Build timeline tasks from the model's ``{"tasks": [...]}`` payload.

    Raises:
        ExtractionError: If the payload is not a task list or a task is invalid
    """
    tasks = data.get("tasks") if isinstance(data, dict) else data
    if not isinstance(tasks, list):
        raise ExtractionError("Timeline response has no task list")

    result = []
    for raw in tasks:
        if not isinstance(raw, dict):
            raise ExtractionError("Timeline task is not an object")
        try:
            result.append(
                TimelineTask(
                    recipe_id=raw.get("recipeId"),
                    description=str(raw["description"]),
                    days_before_party=int(raw.get("daysBeforeParty", 0)),
                    scheduled_time=str(raw["scheduledTime"]),
                    duration_minutes=int(raw["durationMinutes"]),
                    is_phase_start=bool(raw.get("isPhaseStart", False)),
                    phase_description=raw.get("phaseDescription") or None,
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ExtractionError(f"Malformed timeline task: {e}", context={"task": raw}) from e
        except ValidationError as e:
            raise ExtractionError(str(e), context={**e.context, "task": raw}) from e
    return result


class TimelineGenerator:
    """Creates and revises cooking timelines with a language model.

    Args:
        provider: Model used to produce timelines (JSON output)
    """

    def __init__(self, provider: AsyncLLMProvider):
        self.provider = provider

    async def _complete(self, prompt: str) -> list[TimelineTask]:
        messages = [
            LLMMessage(role="system", content=TASK_JSON_INSTRUCTIONS),
            LLMMessage(role="user", content=prompt),
        ]
        try:
            response = await self.provider.complete(messages, response_format="json")
        except ModelError as e:
            raise ExtractionError(f"Timeline generation failed: {e}") from e
        return tasks_from_payload(parse_json_object(response.content))

    async def generate(
        self,
        party_info: PartyInfo,
        menu_plan: MenuPlan | None,
        guest_count: int = 0,
    ) -> list[TimelineTask]:
        """Create a timeline working backwards from the party time."""
        menu_items = menu_plan.recipe_names if menu_plan else []
        prompt = GENERATE_PROMPT.format(
            serving_time=format_party_datetime(party_info.date_time),
            guest_count=guest_count or "unknown",
            menu_items=(
                ", ".join(menu_items)
                if menu_items
                else "No specific menu - create a general party prep timeline"
            ),
        )
        tasks = await self._complete(prompt)
        logger.info("Generated %d timeline tasks for %r", len(tasks), party_info.name)
        return tasks

    async def adjust(
        self, current: list[TimelineTask], changes: str
    ) -> list[TimelineTask]:
        """Regenerate the full task list with ``changes`` applied.

        Tasks the model returns unchanged keep their recipe link.
        """
        prompt = ADJUST_PROMPT.format(
            timeline=json.dumps([_task_to_prompt(t) for t in current], indent=2),
            changes=changes,
        )
        tasks = await self._complete(prompt)

        recipe_links = {t.description: t.recipe_id for t in current if t.recipe_id}
        for task in tasks:
            if task.recipe_id is None and task.description in recipe_links:
                task.recipe_id = recipe_links[task.description]
        return tasks
