"""Session lifecycle: lookup, start-over, navigation and finalize.

Forward progress through the wizard only happens by approving a
confirmation (see :mod:`party_wizard.orchestrator`). This service covers
everything else a client does with a session.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from .exceptions import ConfigurationError, NotFoundError, ValidationError
from .hooks import StepHooks
from .models import SessionStatus, WizardSession, new_id, utcnow
from .serialization import session_to_record
from .steps import SESSION_STEPS, WizardStep, parse_step
from .storage.base import SessionStore

logger = logging.getLogger(__name__)


class PartyFinalizer(Protocol):
    """Creates the real party from a completed wizard session."""

    async def finalize(self, session: WizardSession) -> str:
        """Create the party and return its id."""
        ...


class InMemoryPartyFinalizer:
    """Finalizer that keeps a snapshot of every created party."""

    def __init__(self) -> None:
        self.parties: dict[str, dict[str, Any]] = {}

    async def finalize(self, session: WizardSession) -> str:
        if session.party_info is None:
            raise ValidationError(
                "Cannot create a party without party details",
                context={"session_id": session.id},
            )
        party_id = new_id()
        self.parties[party_id] = session_to_record(session)
        return party_id


class SessionService:
    """Session operations used by the HTTP layer and the orchestrator.

    Args:
        store: Session persistence
        finalizer: Creates the party on completion; required for finalize
        hooks: Lifecycle hooks; completion hooks run after finalize
    """

    def __init__(
        self,
        store: SessionStore,
        finalizer: PartyFinalizer | None = None,
        hooks: StepHooks | None = None,
    ):
        self.store = store
        self.finalizer = finalizer
        self.hooks = hooks or StepHooks()

    async def get_or_create_active(self, user_id: str) -> WizardSession:
        session = await self.store.get_active_session(user_id)
        if session is None:
            session = await self.store.create_session(user_id)
            logger.info("Created wizard session %s for user %s", session.id, user_id)
        return session

    async def get_session(self, session_id: str, user_id: str) -> WizardSession:
        """Load a session owned by ``user_id``.

        Raises:
            NotFoundError: If it does not exist or belongs to someone else
        """
        session = await self.store.get_session(session_id)
        if session is None or session.user_id != user_id:
            raise NotFoundError(
                "Session not found", context={"session_id": session_id}
            )
        return session

    async def start_new(self, user_id: str) -> WizardSession:
        """Abandon the user's active session, if any, and start a fresh one."""
        session = await self.store.create_session(user_id)
        logger.info("Started new wizard session %s for user %s", session.id, user_id)
        return session

    async def change_step(
        self, session_id: str, user_id: str, step: str | WizardStep
    ) -> WizardSession:
        """Move the session to a step it has already reached.

        Used for navigating back (and returning forward) without losing the
        furthest-step mark. Any pending confirmation is discarded, since it
        belongs to the step being left.

        Raises:
            NotFoundError: If the session is not the user's
            ValidationError: If the step is unknown, terminal, or not yet reached,
                or the session is no longer active
        """
        target = parse_step(step)
        session = await self.get_session(session_id, user_id)
        if not session.is_active:
            raise ValidationError(
                "Session is no longer active",
                context={"session_id": session_id, "status": session.status.value},
            )
        if target not in SESSION_STEPS:
            raise ValidationError(
                "Cannot navigate to the complete step", context={"step": target.value}
            )
        if target.index > session.furthest_step_index:
            raise ValidationError(
                f"Step {target.value} has not been reached yet",
                context={
                    "step": target.value,
                    "furthest_step_index": session.furthest_step_index,
                },
            )

        previous = session.current_step
        session.current_step = target
        session.confirmation = None
        session.updated_at = utcnow()
        await self.store.save_session(session)
        logger.info(
            "Session %s moved from %s to %s", session.id, previous.value, target.value
        )
        return session

    async def complete(self, session: WizardSession) -> str:
        """Finalize a working session in place and persist it.

        Args:
            session: Active session, mutated to ``completed``

        Returns:
            The created party's id

        Raises:
            ConfigurationError: If no finalizer is configured
        """
        if self.finalizer is None:
            raise ConfigurationError("No party finalizer configured")

        try:
            party_id = await self.finalizer.finalize(session)
        except Exception:
            logger.error("Finalize failed for session %s", session.id, exc_info=True)
            raise

        session.party_id = party_id
        session.status = SessionStatus.COMPLETED
        session.reach(WizardStep.COMPLETE)
        session.updated_at = utcnow()
        await self.store.save_session(session)
        logger.info("Session %s completed as party %s", session.id, party_id)
        await self.hooks.trigger_complete(session)
        return party_id

    async def finalize(self, session_id: str, user_id: str) -> str:
        """Create the party for the user's session.

        Raises:
            NotFoundError: If the session is not the user's
            ValidationError: If the session is no longer active
        """
        session = await self.get_session(session_id, user_id)
        if not session.is_active:
            raise ValidationError(
                "Session is no longer active",
                context={"session_id": session_id, "status": session.status.value},
            )
        return await self.complete(session)

    async def messages_by_step(self, session_id: str) -> dict[str, list[dict[str, Any]]]:
        """Return the transcript grouped by step, each message in storage form."""
        grouped: dict[str, list[dict[str, Any]]] = {s.value: [] for s in SESSION_STEPS}
        for message in await self.store.list_messages(session_id):
            grouped.setdefault(message.step.value, []).append(message.to_dict())
        return grouped
