"""Step lifecycle hooks.

:class:`StepHooks` runs callbacks around approved step transitions. The
orchestrator uses it to generate the initial timeline the moment the
timeline step is entered; applications can register their own callbacks
for auditing or notifications.

Example:
    ```python
    from party_wizard.hooks import StepHooks
    from party_wizard.steps import WizardStep

    hooks = StepHooks()

    # Global hooks (apply to every step)
    hooks.on_exit(lambda step, ctx: print(f"Leaving {step.value}"))

    # Step-specific hook
    hooks.on_enter(notify_guests_step, step=WizardStep.GUESTS)

    # Completion hook, invoked after the party is created
    hooks.on_complete(lambda session: print(session.party_id))
    ```
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from .steps import WizardStep, parse_step

if TYPE_CHECKING:
    from .models import WizardSession
    from .tools.context import TurnContext

logger = logging.getLogger(__name__)


StepCallback = Callable[[WizardStep, "TurnContext"], Union[None, Awaitable[None]]]
CompleteCallback = Callable[["WizardSession"], Union[None, Awaitable[None]]]
ErrorCallback = Callable[
    [WizardStep, "TurnContext", Exception], Union[None, Awaitable[None]]
]


def resolve_callback(func_ref: str) -> Callable[..., Any]:
    """Resolve ``"module.path:function"`` (or dotted form) to a callable.

    Raises:
        ValueError: If the reference is empty or malformed
        ImportError: If the module cannot be imported
        AttributeError: If the function is not found
    """
    func_ref = (func_ref or "").strip()
    if not func_ref:
        raise ValueError("Empty function reference")

    if ":" in func_ref:
        module_path, _, func_name = func_ref.partition(":")
    else:
        module_path, _, func_name = func_ref.rpartition(".")
    if not module_path or not func_name:
        raise ValueError(
            f"Invalid function reference '{func_ref}'. "
            "Expected 'module.path:function_name'"
        )

    module = importlib.import_module(module_path)
    func = getattr(module, func_name)
    if not callable(func):
        raise ValueError(f"'{func_ref}' is not callable")
    return func


@dataclass
class _HookRegistration:
    """Internal registration for a hook callback."""

    callback: Callable[..., Any]
    step: WizardStep | None = None  # None means global (all steps)

    def applies_to(self, step: WizardStep) -> bool:
        return self.step is None or self.step is step


class StepHooks:
    """Callbacks invoked around step transitions.

    - **on_enter**: after the session has moved to a new step
    - **on_exit**: before the session leaves a step
    - **on_complete**: after the party is created
    - **on_error**: when an enter or exit hook raises

    Callbacks may be plain functions or coroutines. Enter and exit hooks
    receive ``(step, context)`` and may mutate ``context.session``.
    """

    def __init__(self) -> None:
        self._enter_hooks: list[_HookRegistration] = []
        self._exit_hooks: list[_HookRegistration] = []
        self._complete_hooks: list[CompleteCallback] = []
        self._error_hooks: list[ErrorCallback] = []

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> StepHooks:
        """Create hooks from a configuration dict.

        Example config:
            ```yaml
            hooks:
              on_enter:
                - function: "myapp.hooks:announce_step"
                - function: "myapp.hooks:prefill_guests"
                  step: guests
              on_complete:
                - "myapp.hooks:send_invitations"
            ```

        Entries that fail to load are logged and skipped.
        """
        hooks = cls()

        for hook_config in config.get("on_enter", []):
            callback = cls._load_callback(hook_config)
            if callback:
                hooks.on_enter(callback, step=cls._config_step(hook_config))

        for hook_config in config.get("on_exit", []):
            callback = cls._load_callback(hook_config)
            if callback:
                hooks.on_exit(callback, step=cls._config_step(hook_config))

        for hook_ref in config.get("on_complete", []):
            callback = cls._load_callback(hook_ref)
            if callback:
                hooks.on_complete(callback)

        for hook_ref in config.get("on_error", []):
            callback = cls._load_callback(hook_ref)
            if callback:
                hooks.on_error(callback)

        return hooks

    @staticmethod
    def _config_step(hook_config: dict[str, Any] | str) -> WizardStep | None:
        if isinstance(hook_config, dict) and hook_config.get("step"):
            return parse_step(hook_config["step"])
        return None

    @staticmethod
    def _load_callback(hook_config: dict[str, Any] | str) -> Callable[..., Any] | None:
        if isinstance(hook_config, str):
            func_ref = hook_config
        elif isinstance(hook_config, dict):
            func_ref = hook_config.get("function", "")
        else:
            logger.warning("Invalid hook config type: %s", type(hook_config))
            return None

        if not func_ref:
            return None

        try:
            return resolve_callback(func_ref)
        except (ValueError, ImportError, AttributeError) as e:
            logger.warning("Failed to load hook function '%s': %s", func_ref, e)
            return None

    def on_enter(self, callback: StepCallback, step: WizardStep | None = None) -> StepHooks:
        """Register a callback for step entry.

        Args:
            callback: Function(step, context) -> None or awaitable
            step: Optional step to limit the hook to

        Returns:
            Self for method chaining
        """
        self._enter_hooks.append(_HookRegistration(callback=callback, step=step))
        return self

    def on_exit(self, callback: StepCallback, step: WizardStep | None = None) -> StepHooks:
        """Register a callback for step exit.

        Args:
            callback: Function(step, context) -> None or awaitable
            step: Optional step to limit the hook to

        Returns:
            Self for method chaining
        """
        self._exit_hooks.append(_HookRegistration(callback=callback, step=step))
        return self

    def on_complete(self, callback: CompleteCallback) -> StepHooks:
        self._complete_hooks.append(callback)
        return self

    def on_error(self, callback: ErrorCallback) -> StepHooks:
        self._error_hooks.append(callback)
        return self

    async def trigger_enter(self, step: WizardStep, context: TurnContext) -> None:
        """Invoke enter hooks registered for ``step`` or globally.

        Raises:
            Exception: Re-raises any exception from a hook after the error
                hooks have run
        """
        for registration in self._enter_hooks:
            if registration.applies_to(step):
                try:
                    await self._invoke_callback(registration.callback, step, context)
                except Exception as e:
                    await self._handle_error(step, context, e)
                    raise

    async def trigger_exit(self, step: WizardStep, context: TurnContext) -> None:
        """Invoke exit hooks registered for ``step`` or globally.

        Raises:
            Exception: Re-raises any exception from a hook after the error
                hooks have run
        """
        for registration in self._exit_hooks:
            if registration.applies_to(step):
                try:
                    await self._invoke_callback(registration.callback, step, context)
                except Exception as e:
                    await self._handle_error(step, context, e)
                    raise

    async def trigger_complete(self, session: WizardSession) -> None:
        for callback in self._complete_hooks:
            await self._invoke_callback(callback, session)

    async def _invoke_callback(self, callback: Callable[..., Any], *args: Any) -> None:
        result = callback(*args)
        if asyncio.iscoroutine(result):
            await result

    async def _handle_error(
        self, step: WizardStep, context: TurnContext, error: Exception
    ) -> None:
        logger.error("Hook error in step %s: %s", step.value, error)
        for callback in self._error_hooks:
            try:
                await self._invoke_callback(callback, step, context, error)
            except Exception:
                # Error handlers must not raise over the original error
                logger.exception("Error in hook error handler")

    def clear(self) -> None:
        self._enter_hooks.clear()
        self._exit_hooks.clear()
        self._complete_hooks.clear()
        self._error_hooks.clear()

    @property
    def hook_count(self) -> dict[str, int]:
        return {
            "enter": len(self._enter_hooks),
            "exit": len(self._exit_hooks),
            "complete": len(self._complete_hooks),
            "error": len(self._error_hooks),
        }
