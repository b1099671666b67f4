"""Echo provider for testing.

Returns scripted responses in order, falling back to echoing the last user
message once the script runs out. Every call is recorded for assertions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from ..base import AsyncLLMProvider, LLMConfig, LLMMessage, LLMResponse


@dataclass
class RecordedCall:
    messages: list[LLMMessage]
    tools: list[dict[str, Any]] | None
    tool_choice: str | None
    response_format: str | None


class EchoProvider(AsyncLLMProvider):
    """Deterministic provider that never touches the network.

    Example:
        ```python
        from party_wizard.llm.testing import text_response, tool_call_response

        provider = EchoProvider({"provider": "echo", "model": "test"})
        provider.set_responses([
            tool_call_response("addGuest", {"email": "cara@test.com"}),
            text_response("Added Cara!"),
        ])
        ```
    """

    def __init__(self, config: LLMConfig | dict[str, Any] | None = None):
        super().__init__(config or {"provider": "echo", "model": "echo-model"})
        self.echo_prefix = self.config.options.get("echo_prefix", "Echo: ")
        self._responses: list[LLMResponse] = []
        self._patterns: list[tuple[re.Pattern[str], LLMResponse]] = []
        self.calls: list[RecordedCall] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def set_responses(self, responses: list[LLMResponse]) -> None:
        self._responses = list(responses)

    def add_response(self, response: LLMResponse) -> None:
        self._responses.append(response)

    def add_pattern_response(self, pattern: str, response: LLMResponse) -> None:
        """Answer with ``response`` when the last user message matches ``pattern``."""
        self._patterns.append((re.compile(pattern, re.IGNORECASE), response))

    @property
    def remaining(self) -> int:
        return len(self._responses)

    async def complete(
        self,
        messages: list[LLMMessage],
        *,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | None = None,
        response_format: str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        if not self._is_initialized:
            await self.initialize()

        self.calls.append(
            RecordedCall(
                messages=list(messages),
                tools=tools,
                tool_choice=tool_choice,
                response_format=response_format,
            )
        )

        if self._responses:
            return self._responses.pop(0)

        user_messages = [m for m in messages if m.role == "user"]
        last = user_messages[-1].content if user_messages else ""
        for pattern, response in self._patterns:
            if pattern.search(last):
                return response

        return LLMResponse(
            content=self.echo_prefix + (last or "(no user message)"),
            model=self.config.model,
            finish_reason="stop",
        )
