"""Language model abstraction used by the wizard.

The wizard treats the model as a black box: given messages and tool
definitions it returns text and/or tool calls. Providers implement
:class:`AsyncLLMProvider`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..exceptions import ConfigurationError


@dataclass
class ToolCall:
    """A tool invocation requested by the model.

    Attributes:
        name: Name of the tool to call
        parameters: Arguments for the tool
        id: Provider-assigned call id, echoed back with the tool result
    """

    name: str
    parameters: dict[str, Any]
    id: str | None = None


@dataclass
class LLMMessage:
    """A message in the model-facing conversation.

    Attributes:
        role: ``system``, ``user``, ``assistant``, or ``tool``
        content: Text content
        tool_calls: Tool calls made by an assistant message
        tool_call_id: For ``tool`` messages, the call this result answers
        images: Inline images for vision input as ``(mime_type, base64)`` pairs
        metadata: Free-form extra data

    Example:
        ```python
        LLMMessage(role="user", content="Add Lucas, lucas@example.com")
        LLMMessage(
            role="tool",
            content='{"success": true, "message": "Added Lucas to the guest list."}',
            tool_call_id="call_1",
        )
        ```
    """

    role: str
    content: str
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    images: list[tuple[str, str]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMResponse:
    """Response from a model call.

    Attributes:
        content: Generated text (may be empty)
        model: Model that produced the response
        finish_reason: ``stop``, ``length``, ``tool_calls``, ``content_filter``, ...
        usage: Token usage counts
        tool_calls: Tool calls requested by the model
    """

    content: str
    model: str
    finish_reason: str | None = None
    usage: dict[str, int] | None = None
    tool_calls: list[ToolCall] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class LLMConfig:
    """Provider configuration.

    Attributes:
        provider: Provider name (``openai``, ``echo``)
        model: Model identifier
        api_key: API key (falls back to the provider's environment variable)
        api_base: Custom endpoint
        temperature: Sampling temperature
        max_tokens: Completion token cap
        timeout: Request timeout in seconds
        options: Provider-specific options
    """

    provider: str
    model: str
    api_key: str | None = None
    api_base: str | None = None
    temperature: float = 0.7
    max_tokens: int | None = None
    timeout: float = 60.0
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> LLMConfig:
        known = {
            "provider", "model", "api_key", "api_base",
            "temperature", "max_tokens", "timeout", "options",
        }
        extra = {k: v for k, v in config_dict.items() if k not in known}
        base = {k: v for k, v in config_dict.items() if k in known}
        if "provider" not in base or "model" not in base:
            raise ConfigurationError(
                "LLM config requires 'provider' and 'model'",
                context={"keys": sorted(config_dict)},
            )
        options = {**base.pop("options", {}), **extra}
        return cls(**base, options=options)


def normalize_llm_config(config: LLMConfig | dict[str, Any]) -> LLMConfig:
    if isinstance(config, LLMConfig):
        return config
    return LLMConfig.from_dict(config)


class AsyncLLMProvider(ABC):
    """Base class for async model providers."""

    def __init__(self, config: LLMConfig | dict[str, Any]):
        self.config = normalize_llm_config(config)
        self._client: Any = None
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    async def initialize(self) -> None:
        self._is_initialized = True

    async def close(self) -> None:
        self._is_initialized = False

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        *,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | None = None,
        response_format: str | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a response.

        Args:
            messages: Conversation, system message first
            tools: Function definitions the model may call
            tool_choice: Name of a tool the model must call, or None for auto
            response_format: ``"json"`` to request a JSON object
            **kwargs: Provider-specific overrides

        Returns:
            The model's response
        """
        ...

    async def __aenter__(self) -> AsyncLLMProvider:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
