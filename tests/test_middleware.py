"""Tests for turn middleware."""

import json
import logging

import pytest

from party_wizard.middleware import LoggingMiddleware, TurnMiddleware
from party_wizard.orchestrator import ChatTurn, TurnResult
from party_wizard.protocol import ConfirmationDecision
from party_wizard.steps import WizardStep

TURN_LOGGER = "party_wizard.middleware.TurnLogger"


@pytest.fixture
def turn():
    return ChatTurn(
        session_id="s1",
        parts=[{"type": "text", "text": "Add Lucas"}],
        decision=ConfirmationDecision(request_id="confirm-1", type="approve"),
    )


@pytest.fixture
def result():
    return TurnResult(
        session_id="s1",
        step=WizardStep.MENU,
        handled_by="approve",
        tool_call_count=0,
        elapsed_ms=12.34,
    )


class TestTurnMiddleware:
    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            TurnMiddleware()


class TestLoggingMiddleware:
    """Tests for LoggingMiddleware."""

    @pytest.mark.asyncio
    async def test_logs_turn_lifecycle(self, caplog, turn, result):
        middleware = LoggingMiddleware()
        with caplog.at_level(logging.INFO, logger=TURN_LOGGER):
            await middleware.before_turn(turn, "u1")
            await middleware.after_turn(turn, "u1", result)

        assert "Turn started" in caplog.text
        assert "'decision': 'approve'" in caplog.text
        assert "Turn finished" in caplog.text
        assert "'handled_by': 'approve'" in caplog.text

    @pytest.mark.asyncio
    async def test_json_format(self, caplog, turn, result):
        middleware = LoggingMiddleware(json_format=True)
        with caplog.at_level(logging.INFO, logger=TURN_LOGGER):
            await middleware.after_turn(turn, "u1", result)

        record = json.loads(caplog.records[-1].getMessage())
        assert record["event"] == "turn_end"
        assert record["step"] == "menu"
        assert record["elapsed_ms"] == 12.3

    @pytest.mark.asyncio
    async def test_logs_errors(self, caplog, turn):
        middleware = LoggingMiddleware()
        with caplog.at_level(logging.ERROR, logger=TURN_LOGGER):
            await middleware.on_error(ValueError("bad"), turn, "u1")

        assert "Turn failed" in caplog.text
        assert caplog.records[-1].exc_info is not None

    def test_log_level(self):
        middleware = LoggingMiddleware(log_level="warning")
        assert middleware._logger.level == logging.WARNING
