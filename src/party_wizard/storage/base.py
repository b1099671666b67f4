"""Persistence interface for wizard sessions and transcripts.

Sessions are stored as rows holding the four payload columns plus step,
furthest-step, status, and confirmation state. Messages are keyed by
``(session_id, step)`` and ordered by creation time. Sessions are never
deleted; they change status instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import WizardMessage, WizardSession
from ..steps import WizardStep


class SessionStore(ABC):
    """Async store for sessions and their step transcripts."""

    async def initialize(self) -> None:
        """Prepare the backend (connections, schema)."""

    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def get_session(self, session_id: str) -> WizardSession | None:
        ...

    @abstractmethod
    async def get_active_session(self, user_id: str) -> WizardSession | None:
        ...

    @abstractmethod
    async def create_session(self, user_id: str) -> WizardSession:
        """Create an active session, marking any prior active one abandoned.

        Exactly one active session exists per user after this returns.
        """
        ...

    @abstractmethod
    async def save_session(self, session: WizardSession) -> None:
        """Write every column of ``session``.

        Raises:
            StorageError: If the session does not exist
        """
        ...

    @abstractmethod
    async def append_message(self, message: WizardMessage) -> None:
        ...

    @abstractmethod
    async def list_messages(
        self, session_id: str, step: WizardStep | None = None
    ) -> list[WizardMessage]:
        """Return the transcript, oldest first, optionally for one step."""
        ...

    async def __aenter__(self) -> SessionStore:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
