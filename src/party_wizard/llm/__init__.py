"""Model provider abstraction and implementations."""

from __future__ import annotations

from typing import Any

from ..exceptions import ConfigurationError
from .base import AsyncLLMProvider, LLMConfig, LLMMessage, LLMResponse, ToolCall, normalize_llm_config
from .providers.echo import EchoProvider


def create_provider(config: LLMConfig | dict[str, Any]) -> AsyncLLMProvider:
    """Create a provider from configuration.

    Args:
        config: Provider configuration; ``provider`` selects the implementation

    Returns:
        An uninitialized provider

    Raises:
        ConfigurationError: If the provider name is unknown
    """
    llm_config = normalize_llm_config(config)
    if llm_config.provider == "echo":
        return EchoProvider(llm_config)
    if llm_config.provider == "openai":
        from .providers.openai import OpenAIProvider

        return OpenAIProvider(llm_config)
    raise ConfigurationError(
        f"Unknown LLM provider: {llm_config.provider}",
        context={"provider": llm_config.provider},
    )


__all__ = [
    "AsyncLLMProvider",
    "EchoProvider",
    "LLMConfig",
    "LLMMessage",
    "LLMResponse",
    "ToolCall",
    "create_provider",
]
