"""FastAPI application for the party wizard.

Routes:

- ``GET /health``
- ``GET /party-wizard/session``: active session (created if needed) with
  its transcript grouped by step
- ``GET /party-wizard/session/{session_id}``
- ``POST /party-wizard/session/new``: abandon the active session and start over
- ``PUT /party-wizard/session/{session_id}/step``: navigate to a reached step
- ``POST /party-wizard/chat``: one chat turn, streamed as NDJSON events
- ``POST /party-wizard/complete``: create the party

The caller is identified by the ``X-User-Id`` header.

Example:
    ```bash
    uvicorn party_wizard.api.app:create_app --factory
    ```
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ..config import WizardSettings
from ..events import QueueEventSink, WizardEvent
from ..models import WizardSession
from ..orchestrator import ChatTurn, PreparedTurn, WizardOrchestrator
from ..protocol import pending_request
from ..sessions import SessionService
from .dependencies import (
    OrchestratorDep,
    SessionServiceDep,
    UserIdDep,
    WizardRuntime,
    get_runtime,
    init_runtime,
    reset_runtime,
)
from .exceptions import register_exception_handlers

logger = logging.getLogger(__name__)

TURN_FAILED_MESSAGE = "Something went wrong while answering. Your progress has been saved."

# Strong references to turns still running, including ones whose client left.
_running_turns: set[asyncio.Task[None]] = set()


class ChatMessageBody(BaseModel):
    role: str
    parts: list[dict[str, Any]] = Field(default_factory=list)


class ChatRequest(BaseModel):
    sessionId: str
    message: ChatMessageBody
    confirmationDecision: dict[str, Any] | None = None


class StepChangeRequest(BaseModel):
    step: str


class CompleteRequest(BaseModel):
    sessionId: str


def session_payload(session: WizardSession) -> dict[str, Any]:
    """Client view of a session. Payload values are in their storage form."""
    pending = pending_request(session.confirmation)
    return {
        "id": session.id,
        "currentStep": session.current_step.value,
        "furthestStepIndex": session.furthest_step_index,
        "status": session.status.value,
        "partyId": session.party_id,
        "partyInfo": session.party_info.to_dict() if session.party_info else None,
        "guestList": [g.to_dict() for g in session.guest_list],
        "menuPlan": session.menu_plan.to_dict() if session.menu_plan else None,
        "timeline": (
            None if session.timeline is None else [t.to_dict() for t in session.timeline]
        ),
        "pendingConfirmation": pending.to_dict() if pending else None,
        "createdAt": session.created_at.isoformat(),
        "updatedAt": session.updated_at.isoformat(),
    }


async def _session_with_messages(
    sessions: SessionService, session: WizardSession
) -> dict[str, Any]:
    return {
        "session": session_payload(session),
        "messages": await sessions.messages_by_step(session.id),
    }


async def stream_turn(
    orchestrator: WizardOrchestrator, prepared: PreparedTurn
) -> AsyncIterator[str]:
    """Run a validated turn in the background and yield its events as NDJSON lines.

    The turn runs to completion even if the client stops reading, so every
    tool side effect is persisted.
    """
    sink = QueueEventSink()

    async def produce() -> None:
        try:
            await orchestrator.run_turn(prepared, sink)
        except Exception as e:
            logger.error(
                "Turn failed for session %s: %s", prepared.session.id, e, exc_info=True
            )
            await sink.emit(
                WizardEvent(
                    "error",
                    {"errorText": TURN_FAILED_MESSAGE, "errorType": type(e).__name__},
                )
            )
        finally:
            await sink.close()

    task = asyncio.create_task(produce())
    _running_turns.add(task)
    task.add_done_callback(_running_turns.discard)
    try:
        async for event in sink:
            yield json.dumps(event.to_dict()) + "\n"
    finally:
        # A disconnect cancels this generator, never the turn itself.
        await asyncio.shield(task)


def create_app(
    settings: WizardSettings | None = None,
    runtime: WizardRuntime | None = None,
) -> FastAPI:
    """Create the wizard application.

    Args:
        settings: Used to build a runtime at startup when ``runtime`` is not given
        runtime: Ready-made runtime, installed immediately (useful in tests)

    Returns:
        Configured FastAPI app
    """
    if runtime is not None:
        init_runtime(runtime)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if runtime is not None:
            yield
            return
        owned = init_runtime(await WizardRuntime.create(settings or WizardSettings.load()))
        try:
            yield
        finally:
            await owned.close()
            reset_runtime()

    app = FastAPI(title="Party Wizard", version="0.1.0", lifespan=lifespan)
    register_exception_handlers(app)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        get_runtime()
        return {"status": "ok"}

    @app.get("/party-wizard/session")
    async def current_session(sessions: SessionServiceDep, user_id: UserIdDep) -> dict[str, Any]:
        session = await sessions.get_or_create_active(user_id)
        return await _session_with_messages(sessions, session)

    @app.get("/party-wizard/session/{session_id}")
    async def get_session(
        session_id: str, sessions: SessionServiceDep, user_id: UserIdDep
    ) -> dict[str, Any]:
        session = await sessions.get_session(session_id, user_id)
        return await _session_with_messages(sessions, session)

    @app.post("/party-wizard/session/new")
    async def new_session(sessions: SessionServiceDep, user_id: UserIdDep) -> dict[str, Any]:
        session = await sessions.start_new(user_id)
        return await _session_with_messages(sessions, session)

    @app.put("/party-wizard/session/{session_id}/step")
    async def change_step(
        session_id: str,
        body: StepChangeRequest,
        sessions: SessionServiceDep,
        user_id: UserIdDep,
    ) -> dict[str, Any]:
        session = await sessions.change_step(session_id, user_id, body.step)
        return {"session": session_payload(session)}

    @app.post("/party-wizard/chat")
    async def chat(
        body: ChatRequest, orchestrator: OrchestratorDep, user_id: UserIdDep
    ) -> StreamingResponse:
        turn = ChatTurn.from_dict(body.model_dump())
        # Rejections surface as error responses before the stream starts.
        prepared = await orchestrator.prepare_turn(turn, user_id)
        return StreamingResponse(
            stream_turn(orchestrator, prepared), media_type="application/x-ndjson"
        )

    @app.post("/party-wizard/complete")
    async def complete(
        body: CompleteRequest, sessions: SessionServiceDep, user_id: UserIdDep
    ) -> dict[str, Any]:
        party_id = await sessions.finalize(body.sessionId, user_id)
        return {"partyId": party_id}

    return app
