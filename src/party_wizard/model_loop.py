"""Tool-calling loop between the model and the current step's tools.

One pass of the loop: call the model with the step instructions, the step
transcript and the user's message; stream any text it returns; run the
tools it asks for one after another, feeding each result back; repeat until
the model stops calling tools, the step's confirm tool has run, or the
step budget is spent.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from .config import WizardSettings
from .exceptions import ModelError, ValidationError
from .history import is_silent_completion, silent_completion_fallback
from .llm.base import AsyncLLMProvider, LLMMessage, LLMResponse, ToolCall
from .prompts import InstructionSet
from .tools.base import ToolResult
from .tools.context import TurnContext
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

SILENT_RETRY_INSTRUCTION = (
    "Your previous response was empty. Reply to the user with a short helpful message."
)


@dataclass
class ModelLoopResult:
    """Outcome of one model loop pass.

    Attributes:
        text: All text written to the user during the pass
        tool_call_count: Tools executed
        steps: Model calls made, including a silent-completion retry
        finish_reason: Finish reason of the last model call
        confirmation_requested: Whether the step's confirm tool ran
        fallback_used: Whether a silent-completion fallback message was written
    """

    text: str = ""
    tool_call_count: int = 0
    steps: int = 0
    finish_reason: str | None = None
    confirmation_requested: bool = False
    fallback_used: bool = False


class ModelLoop:
    """Runs the model against one step's tool registry.

    Args:
        provider: Chat model
        settings: Loop budget and silent-completion behavior
    """

    def __init__(self, provider: AsyncLLMProvider, settings: WizardSettings | None = None):
        self.provider = provider
        self.settings = settings or WizardSettings()

    async def run(
        self,
        context: TurnContext,
        registry: ToolRegistry,
        instructions: InstructionSet,
        history: list[LLMMessage],
        user_message: LLMMessage | None = None,
    ) -> ModelLoopResult:
        """Run the loop for one turn.

        Args:
            context: Turn-scoped working state; tools mutate it in place
            registry: Tools of the current step
            instructions: System instructions; a revision pins the first call
                to the step's confirm tool
            history: Prior model-facing messages for the step
            user_message: The user's message for this turn, if it has content

        Returns:
            Summary of what happened

        Raises:
            ModelError: If a model call fails
        """
        messages = [LLMMessage(role="system", content=instructions.render()), *history]
        if user_message is not None:
            messages.append(user_message)

        tools = registry.to_function_definitions()
        result = ModelLoopResult()
        texts: list[str] = []

        for step_number in range(self.settings.max_tool_steps):
            tool_choice = instructions.forced_tool if step_number == 0 else None
            response = await self._complete(context, messages, tools, tool_choice)
            result.steps += 1
            result.finish_reason = response.finish_reason

            if response.content:
                texts.append(response.content)
                await context.writer.write_text(response.content)

            tool_calls = self._with_ids(response.tool_calls or [])
            if not tool_calls:
                break

            messages.append(
                LLMMessage(
                    role="assistant", content=response.content or "", tool_calls=tool_calls
                )
            )
            for call in tool_calls:
                tool_result = await self._run_tool(context, registry, call)
                result.tool_call_count += 1
                messages.append(
                    LLMMessage(
                        role="tool",
                        content=json.dumps(tool_result.to_dict()),
                        tool_call_id=call.id,
                    )
                )
                if context.confirmation_requested:
                    break

            if context.confirmation_requested:
                logger.debug(
                    "Confirm tool ran in step %s; ending tool loop", context.step.value
                )
                break
        else:
            logger.warning(
                "Tool step budget of %d exhausted in session %s (step %s)",
                self.settings.max_tool_steps,
                context.session.id,
                context.step.value,
            )

        result.confirmation_requested = context.confirmation_requested
        result.text = "".join(texts)

        if is_silent_completion(result.text, result.tool_call_count):
            await self._recover_silent_completion(context, messages, result)
        return result

    async def _complete(
        self,
        context: TurnContext,
        messages: list[LLMMessage],
        tools: list[dict[str, Any]] | None,
        tool_choice: str | None,
    ) -> LLMResponse:
        try:
            return await self.provider.complete(
                messages, tools=tools or None, tool_choice=tool_choice
            )
        except ModelError:
            logger.error(
                "Model call failed in session %s (step %s)",
                context.session.id,
                context.step.value,
                exc_info=True,
            )
            raise

    @staticmethod
    def _with_ids(tool_calls: list[ToolCall]) -> list[ToolCall]:
        for call in tool_calls:
            if not call.id:
                call.id = f"call_{uuid.uuid4().hex[:12]}"
        return tool_calls

    async def _run_tool(
        self, context: TurnContext, registry: ToolRegistry, call: ToolCall
    ) -> ToolResult:
        arguments = call.parameters or {}
        assert call.id is not None
        await context.writer.write_tool_call(call.id, call.name, arguments)
        try:
            tool_result = await registry.execute_tool(call.name, context, arguments)
        except ValidationError as e:
            # Bad argument values that slipped past the schema check
            logger.warning("Tool %s rejected its input: %s", call.name, e)
            tool_result = ToolResult.fail(str(e))
        output = tool_result.to_dict()
        await context.writer.write_tool_result(call.id, call.name, arguments, output)
        return tool_result

    async def _recover_silent_completion(
        self,
        context: TurnContext,
        messages: list[LLMMessage],
        result: ModelLoopResult,
    ) -> None:
        logger.warning(
            "Silent completion in session %s (step %s, finish reason %s)",
            context.session.id,
            context.step.value,
            result.finish_reason,
        )

        if self.settings.silent_completion_retry:
            retry_messages = [
                *messages,
                LLMMessage(role="system", content=SILENT_RETRY_INSTRUCTION),
            ]
            response = await self._complete(context, retry_messages, None, None)
            result.steps += 1
            result.finish_reason = response.finish_reason or result.finish_reason
            if response.content and response.content.strip():
                result.text = response.content
                await context.writer.write_text(response.content)
                return

        fallback = silent_completion_fallback(result.finish_reason)
        result.text = fallback
        result.fallback_used = True
        await context.writer.write_text(fallback)
