"""Tool registry for a single wizard step.

Each step owns one registry; only the current step's registry is exposed to
the model, so a tool from another step can never be called.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..exceptions import NotFoundError, ValidationError
from .base import ToolResult, WizardTool

if TYPE_CHECKING:
    from .context import TurnContext

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of the tools callable during one step.

    Example:
        ```python
        registry = ToolRegistry()
        registry.register_many([AddGuestTool(), RemoveGuestTool()])

        registry.has_tool("addGuest")
        # True
        functions = registry.to_function_definitions()
        result = await registry.execute_tool("addGuest", context, {"email": "a@b.com"})
        ```
    """

    def __init__(self) -> None:
        self._tools: dict[str, WizardTool] = {}

    def register_tool(self, tool: WizardTool) -> None:
        """Register a tool.

        Raises:
            ValidationError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            raise ValidationError(
                f"Tool '{tool.name}' already registered", context={"tool": tool.name}
            )
        self._tools[tool.name] = tool

    def register_many(self, tools: list[WizardTool]) -> None:
        for tool in tools:
            self.register_tool(tool)

    def get_tool(self, name: str) -> WizardTool:
        """Get a tool by name.

        Raises:
            NotFoundError: If no tool has that name
        """
        try:
            return self._tools[name]
        except KeyError as e:
            raise NotFoundError(
                f"Tool '{name}' not found",
                context={"tool": name, "available": self.get_tool_names()},
            ) from e

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_tool_names(self) -> list[str]:
        return list(self._tools)

    def to_function_definitions(self) -> list[dict[str, Any]]:
        return [tool.to_function_definition() for tool in self._tools.values()]

    async def execute_tool(
        self,
        name: str,
        context: TurnContext,
        parameters: dict[str, Any],
    ) -> ToolResult:
        """Validate parameters and run a tool.

        Unknown tools and missing parameters become failed results so the
        model can correct itself within the same turn.

        Args:
            name: Tool name chosen by the model
            context: Turn-scoped working state
            parameters: Arguments chosen by the model

        Returns:
            The tool's result
        """
        if name not in self._tools:
            logger.warning("Model called unavailable tool %s", name)
            return ToolResult.fail(
                f"Tool '{name}' is not available in this step. "
                f"Available tools: {', '.join(self.get_tool_names())}"
            )

        tool = self._tools[name]
        error = tool.validate_parameters(parameters)
        if error:
            return ToolResult.fail(error)

        logger.debug("Executing tool %s with %s", name, parameters)
        result = await tool.execute(context, **tool.clean_parameters(parameters))
        logger.debug("Tool %s finished: success=%s", name, result.success)
        return result

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"ToolRegistry(tools={self.get_tool_names()})"
