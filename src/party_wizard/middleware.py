"""Turn middleware for the wizard orchestrator."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .orchestrator import ChatTurn, TurnResult

logger = logging.getLogger(__name__)


class TurnMiddleware(ABC):
    """Hooks around every chat turn.

    - before_turn: Called once the turn has been validated, before any state changes
    - after_turn: Called after the assistant message is persisted
    - on_error: Called when the turn fails

    Example:
        ```python
        class AuditMiddleware(TurnMiddleware):
            async def before_turn(self, turn: ChatTurn, user_id: str) -> None:
                audit.record("turn", user_id, turn.session_id)

            async def after_turn(
                self, turn: ChatTurn, user_id: str, result: TurnResult
            ) -> None:
                audit.record("reply", user_id, result.handled_by)

            async def on_error(
                self, error: Exception, turn: ChatTurn, user_id: str
            ) -> None:
                audit.record("error", user_id, str(error))
        ```
    """

    @abstractmethod
    async def before_turn(self, turn: ChatTurn, user_id: str) -> None:
        ...

    @abstractmethod
    async def after_turn(self, turn: ChatTurn, user_id: str, result: TurnResult) -> None:
        ...

    @abstractmethod
    async def on_error(self, error: Exception, turn: ChatTurn, user_id: str) -> None:
        ...


class LoggingMiddleware(TurnMiddleware):
    """Logs every turn for monitoring and debugging.

    Attributes:
        log_level: Logging level to use (default: INFO)
        json_format: Whether to output logs as JSON lines

    Example:
        ```python
        orchestrator = WizardOrchestrator(
            provider, services, middleware=[LoggingMiddleware(json_format=True)]
        )
        ```
    """

    def __init__(self, log_level: str = "INFO", json_format: bool = False):
        self.log_level = log_level
        self.json_format = json_format
        self._logger = logging.getLogger(f"{__name__}.TurnLogger")
        self._logger.setLevel(getattr(logging, log_level.upper()))

    def _emit(self, level: int, label: str, log_data: dict[str, Any], **kwargs: Any) -> None:
        if self.json_format:
            self._logger.log(level, json.dumps(log_data), **kwargs)
        else:
            self._logger.log(level, "%s: %s", label, log_data, **kwargs)

    async def before_turn(self, turn: ChatTurn, user_id: str) -> None:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": "turn_start",
            "user_id": user_id,
            "session_id": turn.session_id,
            "part_count": len(turn.parts),
            "decision": turn.decision.type if turn.decision else None,
        }
        self._emit(logging.INFO, "Turn started", log_data)
        self._logger.debug("Turn text: %s", turn.text[:200])

    async def after_turn(self, turn: ChatTurn, user_id: str, result: TurnResult) -> None:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": "turn_end",
            "user_id": user_id,
            "session_id": result.session_id,
            "step": result.step.value,
            "handled_by": result.handled_by,
            "tool_calls": result.tool_call_count,
            "confirmation_request_id": result.confirmation_request_id,
            "elapsed_ms": round(result.elapsed_ms, 1),
        }
        self._emit(logging.INFO, "Turn finished", log_data)

    async def on_error(self, error: Exception, turn: ChatTurn, user_id: str) -> None:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": "turn_error",
            "user_id": user_id,
            "session_id": turn.session_id,
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
        self._emit(logging.ERROR, "Turn failed", log_data, exc_info=error)
