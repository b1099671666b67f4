"""Base tool abstraction for wizard tools.

A wizard tool is a function the model may call during a turn. It receives
the turn-scoped :class:`~party_wizard.tools.context.TurnContext`, mutates the
working session held there, persists the change, and returns a
:class:`ToolResult`.

Example:
    ```python
    class RemoveGuestTool(WizardTool):
        def __init__(self):
            super().__init__(
                name="removeGuest",
                description="Remove a guest from the list by index",
            )

        @property
        def schema(self) -> dict[str, Any]:
            return {
                "type": "object",
                "properties": {"index": {"type": "integer"}},
                "required": ["index"],
            }

        async def execute(self, context: TurnContext, index: int) -> ToolResult:
            ...
    ```
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .context import TurnContext

ACTION_UPDATE_GUEST_LIST = "updateGuestList"
ACTION_UPDATE_MENU_PLAN = "updateMenuPlan"
ACTION_UPDATE_TIMELINE = "updateTimeline"
ACTION_AWAITING_CONFIRMATION = "awaitingConfirmation"


_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


def _check_value(name: str, value: Any, prop: dict[str, Any]) -> str | None:
    """Check one argument against its property schema."""
    expected = prop.get("type")
    allowed = _JSON_TYPES.get(expected) if isinstance(expected, str) else None
    if allowed is not None:
        # bool is an int subclass; JSON keeps them apart.
        if isinstance(value, bool) and expected != "boolean":
            return f"Parameter '{name}' must be of type {expected}"
        if not isinstance(value, allowed):
            return f"Parameter '{name}' must be of type {expected}"

    if "enum" in prop and value not in prop["enum"]:
        options = ", ".join(str(v) for v in prop["enum"])
        return f"Invalid {name} '{value}'. Use one of: {options}"

    items = prop.get("items")
    if expected == "array" and isinstance(items, dict):
        for item in value:
            error = _check_value(f"{name}[]", item, items)
            if error:
                return error
    return None


@dataclass
class ToolResult:
    """Structured outcome of a tool call.

    ``action`` tells the presentation layer which part of the session to
    refetch; the orchestrator does not act on it.

    Attributes:
        success: Whether the tool did what was asked
        message: Human-readable outcome, shown to the model
        action: Presentation hint (``updateGuestList``, ``updateMenuPlan``, ...)
        error: Failure description when ``success`` is False
        payload: Extra fields merged into the result
    """

    success: bool
    message: str = ""
    action: str | None = None
    error: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, action: str | None = None, **payload: Any) -> ToolResult:
        return cls(success=True, message=message, action=action, payload=payload)

    @classmethod
    def fail(cls, error: str, **payload: Any) -> ToolResult:
        return cls(success=False, message=error, error=error, payload=payload)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.action:
            result["action"] = self.action
        if self.error:
            result["error"] = self.error
        result.update(self.payload)
        return result


class WizardTool(ABC):
    """Abstract base class for model-callable wizard tools.

    Args:
        name: Tool name exposed to the model
        description: What the tool does, shown to the model
        mutates: Whether the tool changes session state
    """

    def __init__(self, name: str, description: str, mutates: bool = True):
        self.name = name
        self.description = description
        self.mutates = mutates

    @property
    @abstractmethod
    def schema(self) -> dict[str, Any]:
        """JSON schema for the tool's parameters."""
        ...

    @abstractmethod
    async def execute(self, context: TurnContext, **kwargs: Any) -> ToolResult:
        """Run the tool against the turn's working state.

        Args:
            context: Turn-scoped working state, stores, and event writer
            **kwargs: Parameters matching :attr:`schema`

        Returns:
            The tool's structured result
        """
        ...

    def to_function_definition(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.schema,
        }

    def validate_parameters(self, params: dict[str, Any]) -> str | None:
        """Check required parameters and the type of every supplied one.

        ``None`` for an optional parameter counts as not supplied.

        Returns:
            An error message, or None when the parameters are usable
        """
        schema = self.schema
        missing = [p for p in schema.get("required", []) if params.get(p) is None]
        if missing:
            return f"Missing required parameter(s): {', '.join(missing)}"

        properties = schema.get("properties", {})
        for name, value in params.items():
            if name not in properties or value is None:
                continue
            error = _check_value(name, value, properties[name])
            if error:
                return error
        return None

    def clean_parameters(self, params: dict[str, Any]) -> dict[str, Any]:
        known = self.schema.get("properties", {})
        return {k: v for k, v in params.items() if k in known}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
