"""OpenAI provider implementation."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import openai

from ...exceptions import ConfigurationError, ModelError
from ..base import AsyncLLMProvider, LLMConfig, LLMMessage, LLMResponse, ToolCall

logger = logging.getLogger(__name__)


class OpenAIAdapter:
    """Adapter between wizard message types and the OpenAI chat API format."""

    def adapt_messages(self, messages: list[LLMMessage]) -> list[dict[str, Any]]:
        adapted = []
        for msg in messages:
            if msg.role == "tool":
                adapted.append(
                    {
                        "role": "tool",
                        "tool_call_id": msg.tool_call_id,
                        "content": msg.content,
                    }
                )
                continue

            message: dict[str, Any] = {"role": msg.role}
            if msg.images:
                content: list[dict[str, Any]] = []
                if msg.content:
                    content.append({"type": "text", "text": msg.content})
                for mime_type, b64 in msg.images:
                    content.append(
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{b64}"},
                        }
                    )
                message["content"] = content
            else:
                message["content"] = msg.content or None

            if msg.tool_calls:
                message["tool_calls"] = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.parameters),
                        },
                    }
                    for tc in msg.tool_calls
                ]
            adapted.append(message)
        return adapted

    def adapt_response(self, response: Any) -> LLMResponse:
        choice = response.choices[0]
        message = choice.message

        tool_calls = None
        if getattr(message, "tool_calls", None):
            tool_calls = []
            for tc in message.tool_calls:
                try:
                    arguments = json.loads(tc.function.arguments or "{}")
                except json.JSONDecodeError:
                    logger.warning(
                        "Model sent malformed arguments for %s: %r",
                        tc.function.name,
                        tc.function.arguments,
                    )
                    arguments = {}
                tool_calls.append(
                    ToolCall(name=tc.function.name, parameters=arguments, id=tc.id)
                )

        return LLMResponse(
            content=message.content or "",
            model=response.model,
            finish_reason=choice.finish_reason,
            usage={
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
            if response.usage
            else None,
            tool_calls=tool_calls,
        )

    def adapt_config(self, config: LLMConfig) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": config.model,
            "temperature": config.temperature,
        }
        if config.max_tokens:
            params["max_tokens"] = config.max_tokens
        return params


class OpenAIProvider(AsyncLLMProvider):
    """OpenAI chat completions provider with tool calling and vision input."""

    def __init__(self, config: LLMConfig | dict[str, Any]):
        super().__init__(config)
        self.adapter = OpenAIAdapter()

    async def initialize(self) -> None:
        api_key = self.config.api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("OpenAI API key not provided")

        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            base_url=self.config.api_base,
            timeout=self.config.timeout,
        )
        self._is_initialized = True

    async def close(self) -> None:
        if self._client:
            await self._client.close()
        self._is_initialized = False

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

        params = self.adapter.adapt_config(self.config)
        if tools:
            params["tools"] = [{"type": "function", "function": t} for t in tools]
            if tool_choice:
                params["tool_choice"] = {
                    "type": "function",
                    "function": {"name": tool_choice},
                }
        if response_format == "json":
            params["response_format"] = {"type": "json_object"}
        params.update(kwargs)

        try:
            response = await self._client.chat.completions.create(
                messages=self.adapter.adapt_messages(messages),
                **params,
            )
        except openai.OpenAIError as e:
            raise ModelError(
                f"OpenAI request failed: {e}",
                context={"model": self.config.model},
            ) from e

        return self.adapter.adapt_response(response)
