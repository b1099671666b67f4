"""In-memory session store.

Rows are kept in their storage form, so every read returns a fresh runtime
object and callers never share mutable state with the store.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any

from ..exceptions import StorageError
from ..models import SessionStatus, WizardMessage, WizardSession, utcnow
from ..serialization import session_from_record, session_to_record
from ..steps import WizardStep
from .base import SessionStore

logger = logging.getLogger(__name__)


class AsyncMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: dict[str, dict[str, Any]] = {}
        self._messages: list[dict[str, Any]] = []
        self._lock = asyncio.Lock()

    async def get_session(self, session_id: str) -> WizardSession | None:
        record = self._sessions.get(session_id)
        return None if record is None else session_from_record(copy.deepcopy(record))

    async def get_active_session(self, user_id: str) -> WizardSession | None:
        for record in self._sessions.values():
            if record["user_id"] == user_id and record["status"] == SessionStatus.ACTIVE.value:
                return session_from_record(copy.deepcopy(record))
        return None

    async def create_session(self, user_id: str) -> WizardSession:
        async with self._lock:
            now = utcnow().isoformat()
            for record in self._sessions.values():
                if (
                    record["user_id"] == user_id
                    and record["status"] == SessionStatus.ACTIVE.value
                ):
                    record["status"] = SessionStatus.ABANDONED.value
                    record["updated_at"] = now
                    logger.info("Abandoned session %s", record["id"])
            session = WizardSession(user_id=user_id)
            self._sessions[session.id] = copy.deepcopy(session_to_record(session))
        return session

    async def save_session(self, session: WizardSession) -> None:
        if session.id not in self._sessions:
            raise StorageError(
                f"Session {session.id} does not exist", context={"session_id": session.id}
            )
        self._sessions[session.id] = copy.deepcopy(session_to_record(session))

    async def append_message(self, message: WizardMessage) -> None:
        self._messages.append(copy.deepcopy(message.to_dict()))

    async def list_messages(
        self, session_id: str, step: WizardStep | None = None
    ) -> list[WizardMessage]:
        records = [
            r
            for r in self._messages
            if r["session_id"] == session_id and (step is None or r["step"] == step.value)
        ]
        # Stable sort keeps insertion order for equal timestamps.
        records.sort(key=lambda r: r["created_at"])
        return [WizardMessage.from_dict(copy.deepcopy(r)) for r in records]
