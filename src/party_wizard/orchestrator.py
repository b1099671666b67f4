"""Per-turn entry point of the party wizard.

:class:`WizardOrchestrator` takes one chat turn and:

1. validates it (user role, owned active session, a decision that matches
   the pending confirmation) before touching any state
2. stores the user's message, images stripped
3. answers it in exactly one way:

   - approve: advance the step (or create the party at the timeline step)
     without calling the model
   - revise: rerun the model with revision context, its first call pinned
     to the step's confirm tool
   - menu image/URL: the workflow branch selector's fast path
   - otherwise: the model loop over the current step's tools

4. stores the assistant message and finishes the stream

Example:
    ```python
    orchestrator = WizardOrchestrator(provider, services, sessions=sessions)
    sink = ListEventSink()
    turn = ChatTurn.from_dict({
        "sessionId": session.id,
        "message": {"role": "user", "parts": [{"type": "text", "text": "Hi!"}]},
    })
    result = await orchestrator.handle_turn(turn, user_id="u1", sink=sink)
    ```
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from .branching import WorkflowBranchSelector
from .config import WizardSettings
from .events import EventSink, StreamWriter
from .exceptions import ExtractionError, ProtocolError, ValidationError
from .history import (
    has_renderable_parts,
    image_mime_type,
    image_payload,
    is_image_part,
    strip_data_url,
    strip_for_storage,
    to_model_messages,
)
from .hooks import StepHooks
from .llm.base import AsyncLLMProvider, LLMMessage
from .middleware import TurnMiddleware
from .model_loop import ModelLoop
from .models import TransitionRecord, WizardMessage, WizardSession, data_part, utcnow
from .prompts import RevisionContext, build_instructions
from .protocol import (
    Approved,
    ConfirmationDecision,
    ConfirmationRequest,
    Revised,
    match_pending,
)
from .sessions import SessionService
from .steps import WizardStep
from .tools import build_step_registry
from .tools.context import TurnContext, WizardServices
from .tools.timeline import generate_timeline

logger = logging.getLogger(__name__)

TIMELINE_INTRO = "Gathering all the party details to create your cooking timeline..."
TIMELINE_READY = (
    "I've created {count} tasks for your cooking timeline. Review the schedule "
    "below and let me know if you'd like any adjustments!"
)
TIMELINE_FAILED = (
    "I couldn't create the timeline automatically. "
    "Ask me to generate it whenever you're ready."
)


@dataclass
class ChatTurn:
    """One incoming chat request.

    Attributes:
        session_id: Target session
        role: Message role; only ``user`` is accepted
        parts: Message parts as sent by the client, images included
        decision: Answer to the pending confirmation, if any
    """

    session_id: str
    role: str = "user"
    parts: list[dict[str, Any]] = field(default_factory=list)
    decision: ConfirmationDecision | None = None

    @property
    def text(self) -> str:
        return " ".join(
            p.get("text", "") for p in self.parts if p.get("type") == "text"
        ).strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatTurn:
        """Parse the wire form ``{sessionId, message: {role, parts}, confirmationDecision?}``.

        Raises:
            ValidationError: If required fields are missing or malformed
        """
        session_id = data.get("sessionId")
        if not session_id or not isinstance(session_id, str):
            raise ValidationError("sessionId is required")
        message = data.get("message")
        if not isinstance(message, dict):
            raise ValidationError("message is required")
        parts = message.get("parts") or []
        if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
            raise ValidationError("message.parts must be a list of objects")

        decision = None
        if data.get("confirmationDecision") is not None:
            decision = ConfirmationDecision.from_dict(data["confirmationDecision"])

        return cls(
            session_id=session_id,
            role=str(message.get("role", "")),
            parts=parts,
            decision=decision,
        )


@dataclass
class TurnResult:
    """What a turn did.

    Attributes:
        session_id: Session the turn ran against
        step: Session step after the turn
        handled_by: ``approve``, ``revise``, ``branch``, or ``model``
        message_id: Persisted assistant message, if one was stored
        text: Text written to the user
        tool_call_count: Tools executed by the model loop
        confirmation_request_id: Confirmation requested during the turn
        party_id: Created party, when the turn finalized the session
        elapsed_ms: Wall time spent on the turn
    """

    session_id: str
    step: WizardStep
    handled_by: str
    message_id: str | None = None
    text: str = ""
    tool_call_count: int = 0
    confirmation_request_id: str | None = None
    party_id: str | None = None
    elapsed_ms: float = 0.0


@dataclass
class PreparedTurn:
    """A turn that passed validation, with the session it was checked against."""

    turn: ChatTurn
    user_id: str
    session: WizardSession
    request: ConfirmationRequest | None = None


class WizardOrchestrator:
    """Ties sessions, tools, the model and the confirmation protocol together.

    Args:
        provider: Chat model for the tool loop
        services: Tool collaborators (store, recipes, extraction, timelines)
        settings: Engine settings
        sessions: Session service; built from ``services.store`` if omitted
        hooks: Step lifecycle hooks; timeline auto-generation is registered
            on them
        middleware: Called around every turn
        branch_selector: Menu fast paths
        clock: Returns the reference time for a turn
    """

    def __init__(
        self,
        provider: AsyncLLMProvider,
        services: WizardServices,
        settings: WizardSettings | None = None,
        sessions: SessionService | None = None,
        hooks: StepHooks | None = None,
        middleware: list[TurnMiddleware] | None = None,
        branch_selector: WorkflowBranchSelector | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.services = services
        self.settings = settings or WizardSettings()
        self.hooks = hooks or (sessions.hooks if sessions else StepHooks())
        self.sessions = sessions or SessionService(services.store, hooks=self.hooks)
        self.middleware = list(middleware or [])
        self.branch_selector = branch_selector or WorkflowBranchSelector()
        self.model_loop = ModelLoop(provider, self.settings)
        self.clock = clock

        self.hooks.on_enter(self._auto_generate_timeline, step=WizardStep.TIMELINE)

    async def prepare_turn(self, turn: ChatTurn, user_id: str) -> PreparedTurn:
        """Validate a turn against the session without touching any state.

        Raises:
            ProtocolError: Non-user role, inactive session, or a decision that
                does not match the pending confirmation
            NotFoundError: If the session is not the user's
        """
        if turn.role != "user":
            raise ProtocolError(
                "Only user messages can be sent", context={"role": turn.role}
            )

        session = await self.sessions.get_session(turn.session_id, user_id)
        if not session.is_active:
            raise ProtocolError(
                "Session is no longer active",
                context={"session_id": session.id, "status": session.status.value},
            )

        request = None
        if turn.decision is not None:
            request = match_pending(session.confirmation, turn.decision, session.current_step)
        return PreparedTurn(turn=turn, user_id=user_id, session=session, request=request)

    async def run_turn(self, prepared: PreparedTurn, sink: EventSink) -> TurnResult:
        """Process a validated turn, streaming events to ``sink``.

        Raises:
            ModelError: If a model call fails; state persisted by earlier tool
                calls in the turn is kept
        """
        started = time.perf_counter()
        turn, user_id = prepared.turn, prepared.user_id
        for middleware in self.middleware:
            await middleware.before_turn(turn, user_id)

        try:
            result = await self._process(turn, prepared.session, prepared.request, sink)
        except Exception as e:
            for middleware in self.middleware:
                await middleware.on_error(e, turn, user_id)
            raise

        result.elapsed_ms = (time.perf_counter() - started) * 1000
        for middleware in self.middleware:
            await middleware.after_turn(turn, user_id, result)
        return result

    async def handle_turn(self, turn: ChatTurn, user_id: str, sink: EventSink) -> TurnResult:
        """Validate and process one chat turn.

        Args:
            turn: The incoming request
            user_id: Authenticated caller
            sink: Receives streamed events

        Returns:
            Summary of the turn

        Raises:
            ProtocolError: If the turn is rejected; nothing is mutated
            NotFoundError: If the session is not the user's
            ModelError: If a model call fails
        """
        return await self.run_turn(await self.prepare_turn(turn, user_id), sink)

    async def _process(
        self,
        turn: ChatTurn,
        session: WizardSession,
        request: ConfirmationRequest | None,
        sink: EventSink,
    ) -> TurnResult:
        step = session.current_step
        store = self.services.store
        writer = StreamWriter(sink)
        context = TurnContext(
            session=session, services=self.services, writer=writer, now=self.clock()
        )

        # Read the transcript before the new message joins it.
        history = to_model_messages(await store.list_messages(session.id, step))

        stored_parts = strip_for_storage(turn.parts)
        if turn.decision is not None:
            stored_parts.append(
                data_part("step-confirmation-decision", turn.decision.to_dict())
            )
        await store.append_message(
            WizardMessage(session_id=session.id, step=step, role="user", parts=stored_parts)
        )

        result = TurnResult(session_id=session.id, step=step, handled_by="model")
        finish_reason: str | None = "stop"

        if request is not None and turn.decision is not None and turn.decision.is_approval:
            result.handled_by = "approve"
            await self._approve(context, request)
            result.party_id = session.party_id
        else:
            if request is not None and turn.decision is not None:
                result.handled_by = "revise"
                revision = await self._revise(context, request, turn.decision, turn.text)
            else:
                revision = None

            if revision is None and await self.branch_selector.try_handle(
                context, turn.parts
            ):
                result.handled_by = "branch"
            else:
                instructions = build_instructions(
                    session,
                    user_recipes=await self._user_recipes(context),
                    recipe_limit=self.settings.user_recipe_prompt_limit,
                    today=context.now.strftime("%A, %B %d, %Y"),
                )
                if revision is not None:
                    instructions = instructions.with_revision(revision)
                loop_result = await self.model_loop.run(
                    context,
                    build_step_registry(step),
                    instructions,
                    history,
                    self._user_llm_message(turn, revision),
                )
                result.tool_call_count = loop_result.tool_call_count
                finish_reason = loop_result.finish_reason

        if context.confirmation_request is not None:
            result.confirmation_request_id = context.confirmation_request.id

        if has_renderable_parts(writer.parts):
            message = WizardMessage(
                id=writer.message_id,
                session_id=session.id,
                step=step,
                role="assistant",
                parts=writer.parts,
            )
            await store.append_message(message)
            result.message_id = message.id

        await writer.finish(finish_reason)
        result.step = session.current_step
        result.text = "".join(p["text"] for p in writer.parts if p["type"] == "text")
        return result

    async def _approve(self, context: TurnContext, request: ConfirmationRequest) -> None:
        session = context.session
        from_step = session.current_step
        target = request.next_step

        session.confirmation = Approved(request=request)
        session.transitions.append(
            TransitionRecord(from_step=from_step, to_step=target, request_id=request.id)
        )
        await self.hooks.trigger_exit(from_step, context)

        if target is WizardStep.COMPLETE:
            await self.sessions.complete(session)
        else:
            session.current_step = target
            session.reach(target)
            await context.persist()

        logger.info(
            "Session %s confirmed %s -> %s (%s)",
            session.id,
            from_step.value,
            target.value,
            request.id,
        )
        await context.writer.write_data(
            "step-confirmed",
            {"requestId": request.id, "step": from_step.value, "nextStep": target.value},
        )

        if target is not WizardStep.COMPLETE:
            await self.hooks.trigger_enter(target, context)

    async def _revise(
        self,
        context: TurnContext,
        request: ConfirmationRequest,
        decision: ConfirmationDecision,
        turn_text: str = "",
    ) -> RevisionContext:
        feedback = decision.feedback or ""
        if not feedback.strip():
            feedback = turn_text
        context.session.confirmation = Revised(request=request, feedback=feedback)
        await context.persist()
        logger.info(
            "Session %s revising %s (%s)",
            context.session.id,
            context.step.value,
            request.id,
        )
        return RevisionContext(feedback=feedback, previous_summary=request.summary)

    async def _user_recipes(self, context: TurnContext) -> list[Any]:
        if context.step is not WizardStep.MENU:
            return []
        return await self.services.recipes.list_recipes(context.user_id)

    @staticmethod
    def _user_llm_message(
        turn: ChatTurn, revision: RevisionContext | None
    ) -> LLMMessage | None:
        images = [
            (image_mime_type(p), strip_data_url(image_payload(p)))
            for p in turn.parts
            if is_image_part(p) and image_payload(p)
        ]
        text = turn.text or (revision.feedback if revision else "")
        if not text and not images:
            return None
        return LLMMessage(role="user", content=text, images=images)

    async def _auto_generate_timeline(self, step: WizardStep, context: TurnContext) -> None:
        """Create the initial timeline as soon as the timeline step is entered."""
        session = context.session
        if session.party_info is None:
            logger.debug("No party info on session %s; skipping timeline", session.id)
            return

        writer = StreamWriter(context.writer.sink)
        timeline_context = TurnContext(
            session=session,
            services=context.services,
            writer=writer,
            now=context.now,
            metadata=context.metadata,
        )
        await writer.write_text(TIMELINE_INTRO)
        try:
            timeline = await generate_timeline(timeline_context, TIMELINE_READY)
        except ExtractionError as e:
            logger.error(
                "Timeline auto-generation failed for session %s: %s", session.id, e
            )
            session.timeline = []
            await timeline_context.persist()
            await writer.write_text("\n\n" + TIMELINE_FAILED)
        else:
            await writer.write_text("\n\n" + TIMELINE_READY.format(count=len(timeline)))

        await self.services.store.append_message(
            WizardMessage(
                id=writer.message_id,
                session_id=session.id,
                step=step,
                role="assistant",
                parts=writer.parts,
            )
        )
