"""Per-step tool sets.

Each session step owns a fixed set of tools; :func:`build_step_registry`
returns the registry for one step and nothing else, so tools from other steps
are never exposed to the model.
"""

from __future__ import annotations

from typing import Callable

from ..steps import SESSION_STEPS, WizardStep, confirm_tool_for
from .base import ToolResult, WizardTool
from .context import TurnContext, WizardServices
from .guests import guest_tools
from .menu import menu_tools
from .party_info import party_info_tools
from .registry import ToolRegistry
from .timeline import timeline_tools

STEP_TOOLSETS: dict[WizardStep, Callable[[], list[WizardTool]]] = {
    WizardStep.PARTY_INFO: party_info_tools,
    WizardStep.GUESTS: guest_tools,
    WizardStep.MENU: menu_tools,
    WizardStep.TIMELINE: timeline_tools,
}

if set(STEP_TOOLSETS) != set(SESSION_STEPS):
    raise RuntimeError("Every session step needs a tool set")


def build_step_registry(step: WizardStep) -> ToolRegistry:
    """Create the tool registry for ``step``.

    Raises:
        KeyError: If ``step`` is the terminal step, which has no tools
    """
    registry = ToolRegistry()
    registry.register_many(STEP_TOOLSETS[step]())
    # The confirm tool must be present; the model loop stops on it.
    assert registry.has_tool(confirm_tool_for(step))
    return registry


__all__ = [
    "STEP_TOOLSETS",
    "ToolRegistry",
    "ToolResult",
    "TurnContext",
    "WizardServices",
    "WizardTool",
    "build_step_registry",
]
