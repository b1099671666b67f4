"""Per-step system instructions.

Instructions are built as an :class:`InstructionSet` (the step's base
instructions plus an optional :class:`RevisionContext`) and rendered to text
once, when the model request is constructed. Templates are Jinja2.
"""

from __future__ import annotations

from dataclasses import dataclass

import jinja2

from .dates import format_party_datetime
from .models import WizardSession
from .recipes import RecipeSummary
from .steps import REVISION_TOOL_INSTRUCTIONS, WizardStep, confirm_tool_for

_env = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
)

_OUTPUT_RULES = """<output-rules>
IMPORTANT: Always include a brief, friendly text response with every message - even when calling tools.
Never send a response that only contains tool calls without any text.
</output-rules>"""

_CONFIRMATION_FLOW = """<confirmation-flow>
When you call {{ confirm_tool }}, the user sees a dialog with "Confirm" and "Make Changes" buttons.
If they click "Make Changes" and provide feedback:
1. {{ revise_hint }}
2. IMMEDIATELY call {{ confirm_tool }} again
3. Do NOT ask whether it is correct now - just call the tool right away
</confirmation-flow>"""

STEP_TEMPLATES: dict[WizardStep, str] = {
    WizardStep.PARTY_INFO: """<task-context>
You are a friendly party planning assistant helping the user plan their party details.
Your job is to gather party information through natural conversation.
Today is {{ today }}.
</task-context>

<tone>
Be conversational, warm, and enthusiastic. Keep responses concise but engaging.
Ask one or two things at a time to keep the flow natural.
</tone>

<information-to-gather>
Required:
- Party name: What's the event called?
- Date and time: When is it happening?

Optional:
- Location: Where will it be held?
- Description: What's the occasion? Any special details for the invitation?
- Allow contributions: Can guests bring dishes or drinks?
</information-to-gather>

{% if party %}
<current-state>
Saved so far: "{{ party.name }}" on {{ party.when }}{% if party.location %} at {{ party.location }}{% endif %}
</current-state>

{% endif %}
<available-tools>
- confirmPartyInfo: Save the party details and show confirmation dialog
</available-tools>

<rules>
- Start by asking about the occasion or event name
- Be flexible with natural language dates ("next Saturday", "March 15th at 6pm") and pass dateTime as ISO 8601
- If the date/time is ambiguous, ask for clarification
- If the user provides multiple pieces of info at once, acknowledge them all
- When you have the required info (name + date/time), call confirmPartyInfo even if optional fields are missing
</rules>
""",
    WizardStep.GUESTS: """<task-context>
You are a friendly party planning assistant helping the user build their guest list.
{% if party %}
Party: "{{ party.name }}" on {{ party.when }}
{% endif %}
</task-context>

<tone>
Be conversational, warm, and enthusiastic. Keep responses concise.
</tone>

<current-state>
{% if guests %}
Current guest list:
{% for guest in guests %}
{{ loop.index0 }}. {{ guest.label }}
{% endfor %}
{% else %}
No guests added yet.
{% endif %}
</current-state>

<available-tools>
- addGuest: Add a guest to the list (requires email OR phone, name is optional)
- removeGuest: Remove a guest by index (the number shown in the list above)
- confirmGuestList: Finalize the list and proceed to menu planning
</available-tools>

<rules>
- When user provides guest info: call addGuest, then ASK if there are more guests
- When user wants to remove someone: call removeGuest
- ONLY call confirmGuestList when user explicitly says they're done ("that's it", "no more", "done")
- Do NOT call confirmGuestList right after adding guests - wait for the user to say they're done
- Each guest needs at least an email OR phone number; names are helpful but optional
- It's okay to have an empty list - they can add guests later
</rules>
""",
    WizardStep.MENU: """<task-context>
You are a friendly party planning assistant helping the user plan their party menu.
{% if party %}
Party: "{{ party.name }}"
{% endif %}
{% if guests %}
Guest count: {{ guests | length }}
{% endif %}
</task-context>

<tone>
Be conversational and enthusiastic about food. Ask about preferences and dietary needs.
Offer suggestions when helpful but follow the user's lead.
</tone>

<current-state>
{% if menu_items %}
Current menu:
{% for item in menu_items %}
- {{ item }}
{% endfor %}
{% else %}
Menu is empty.
{% endif %}
</current-state>

<user-recipes>
{% if user_recipes %}
Available from their library ({{ recipe_count }} recipes):
{% for recipe in user_recipes %}
- {{ recipe.name }} (ID: {{ recipe.id }})
{% endfor %}
{% if recipe_count > user_recipes | length %}
... and {{ recipe_count - user_recipes | length }} more
{% endif %}
{% else %}
No recipes in their library yet.
{% endif %}
</user-recipes>

<available-tools>
- addExistingRecipe: Add a recipe from their library by ID
- extractRecipeFromUrl: Import a recipe from a URL the user provides
- generateRecipeIdea: Create a new recipe based on a description
- removeMenuItem: Remove something from the menu
- confirmMenu: Finalize the menu and proceed
</available-tools>

<rules>
- IMPORTANT: Only extract recipes from URLs or images in the user's CURRENT message, not from conversation history
- If the user says they're about to send something, acknowledge and WAIT
- Ask about dietary restrictions before making suggestions
- Suggest a balanced menu (appetizer, main, sides, dessert) if they want ideas
- It's okay to have an empty menu - they can add recipes later
- Call confirmMenu when they're satisfied or want to skip
</rules>
""",
    WizardStep.TIMELINE: """<task-context>
You are a friendly party planning assistant helping create a cooking timeline.
{% if party %}
Party: "{{ party.name }}" on {{ party.when }}
{% endif %}
</task-context>

<tone>
Be helpful and practical. Focus on making the cooking process stress-free.
</tone>

<current-state>
{% if menu_items %}
Menu items: {{ menu_items | join(", ") }}
{% else %}
No menu items planned.
{% endif %}
{% if timeline_count is not none %}
Timeline: {{ timeline_count }} tasks scheduled.
{% endif %}
</current-state>

<available-tools>
- generateTimeline: Create a cooking schedule based on the menu
- adjustTimeline: Modify the timeline based on user feedback
- confirmTimeline: Finalize and proceed to create the party
</available-tools>

<rules>
- Work backwards from party time
- Consider prep that can be done days ahead (marinating, baking)
- Schedule oven tasks to avoid conflicts
- Mark major milestones as phase starts (these trigger reminders)
- If there's no menu, suggest they go back to add dishes OR create a simple hosting timeline
</rules>
""",
}

_REVISE_HINTS: dict[WizardStep, str] = {
    WizardStep.PARTY_INFO: "Incorporate their changes",
    WizardStep.GUESTS: "Make the requested changes (add/remove guests)",
    WizardStep.MENU: "Make the requested changes (add/remove items)",
    WizardStep.TIMELINE: "Use adjustTimeline to make the changes",
}

REVISION_TEMPLATE = """<revision-context>
The user reviewed your previous summary and asked for changes.
Previous summary: {{ previous_summary }}
User feedback: {{ feedback }}

{{ tool_instructions }}
You MUST call {{ confirm_tool }} in this response. Do not reply conversationally without calling it.
</revision-context>"""


@dataclass
class RevisionContext:
    """Feedback from a "Make Changes" decision."""

    feedback: str
    previous_summary: str


@dataclass
class InstructionSet:
    """Structured system instructions for one model request.

    Attributes:
        step: Step the instructions are for
        base: Rendered base instructions for the step
        revision: Revision context, present only when re-running after feedback
    """

    step: WizardStep
    base: str
    revision: RevisionContext | None = None

    @property
    def forced_tool(self) -> str | None:
        """Tool the model's first call must be, when revising."""
        return confirm_tool_for(self.step) if self.revision else None

    def with_revision(self, revision: RevisionContext) -> InstructionSet:
        return InstructionSet(step=self.step, base=self.base, revision=revision)

    def render(self) -> str:
        sections = [self.base.strip()]
        if self.revision is not None:
            sections.append(
                _env.from_string(REVISION_TEMPLATE).render(
                    previous_summary=self.revision.previous_summary,
                    feedback=self.revision.feedback,
                    tool_instructions=REVISION_TOOL_INSTRUCTIONS[self.step],
                    confirm_tool=confirm_tool_for(self.step),
                )
            )
        return "\n\n".join(sections)


def build_instructions(
    session: WizardSession,
    user_recipes: list[RecipeSummary] | None = None,
    recipe_limit: int = 10,
    today: str = "",
) -> InstructionSet:
    """Render the base instructions for the session's current step.

    Args:
        session: Working session (supplies party, guests, menu, timeline)
        user_recipes: The user's library, listed in the menu step
        recipe_limit: Maximum library recipes to list
        today: Current date text for the party-info step

    Returns:
        Instructions without revision context
    """
    step = session.current_step
    party = None
    if session.party_info is not None:
        party = {
            "name": session.party_info.name,
            "when": format_party_datetime(session.party_info.date_time),
            "location": session.party_info.location,
        }
    recipes = user_recipes or []
    menu_plan = session.menu_plan
    menu_items: list[str] = []
    if menu_plan is not None:
        menu_items = [r.name for r in menu_plan.existing_recipes] + [
            f"{r.name} (new)" if step is WizardStep.MENU else r.name
            for r in menu_plan.new_recipes
        ]

    body = _env.from_string(STEP_TEMPLATES[step]).render(
        today=today,
        party=party,
        guests=[
            {"label": f"{g.name or 'Guest'} ({g.email or g.phone})"}
            for g in session.guest_list
        ],
        menu_items=menu_items,
        user_recipes=recipes[:recipe_limit],
        recipe_count=len(recipes),
        timeline_count=None if session.timeline is None else len(session.timeline),
    )
    flow = _env.from_string(_CONFIRMATION_FLOW).render(
        confirm_tool=confirm_tool_for(step), revise_hint=_REVISE_HINTS[step]
    )
    return InstructionSet(step=step, base="\n\n".join([body.strip(), flow, _OUTPUT_RULES]))
