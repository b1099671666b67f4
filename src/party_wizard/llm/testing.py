"""Builders for scripted model responses, for use with EchoProvider.

Example:
    ```python
    from party_wizard.llm.providers.echo import EchoProvider
    from party_wizard.llm.testing import text_response, tool_call_response

    provider = EchoProvider()
    provider.set_responses([
        tool_call_response("confirmGuestList", {}),
        text_response("Here's your guest list!"),
    ])
    ```
"""

from __future__ import annotations

import json
import uuid
from typing import Any

from .base import LLMResponse, ToolCall


def text_response(
    content: str,
    *,
    model: str = "test-model",
    finish_reason: str = "stop",
) -> LLMResponse:
    """Create a plain text response."""
    return LLMResponse(content=content, model=model, finish_reason=finish_reason)


def tool_call_response(
    tool_name: str,
    arguments: dict[str, Any] | None = None,
    *,
    tool_id: str | None = None,
    content: str = "",
    model: str = "test-model",
    additional_tools: list[tuple[str, dict[str, Any]]] | None = None,
) -> LLMResponse:
    """Create a response carrying one or more tool calls.

    Args:
        tool_name: Name of the tool to call
        arguments: Arguments to pass (default: {})
        tool_id: Call id (auto-generated if not provided)
        content: Text alongside the tool call
        model: Model identifier
        additional_tools: More calls as ``(name, args)`` tuples

    Returns:
        LLMResponse with tool_calls populated
    """
    tools = [
        ToolCall(
            name=tool_name,
            parameters=arguments or {},
            id=tool_id or f"tc-{uuid.uuid4().hex[:8]}",
        )
    ]
    for name, args in additional_tools or []:
        tools.append(ToolCall(name=name, parameters=args, id=f"tc-{uuid.uuid4().hex[:8]}"))

    return LLMResponse(
        content=content,
        model=model,
        finish_reason="tool_calls",
        tool_calls=tools,
    )


def extraction_response(data: Any, *, model: str = "test-model") -> LLMResponse:
    """Create a response whose content is ``data`` encoded as JSON."""
    return LLMResponse(content=json.dumps(data), model=model, finish_reason="stop")


def silent_response(finish_reason: str = "stop", *, model: str = "test-model") -> LLMResponse:
    """Create a response with no text and no tool calls."""
    return LLMResponse(content="", model=model, finish_reason=finish_reason)
