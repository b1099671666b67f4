"""Turn-scoped working state passed to every tool.

A :class:`TurnContext` lives for exactly one chat turn. Tools mutate the
session it holds in place, so a later tool call in the same turn sees the
effect of an earlier one, and call :meth:`TurnContext.persist` after each
mutation so nothing already reported to the user can be lost.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ..models import WizardSession, utcnow
from ..protocol import ConfirmationRequest, Pending
from ..steps import WizardStep, next_step

if TYPE_CHECKING:
    from ..events import StreamWriter
    from ..extraction.fetcher import PageFetcher
    from ..extraction.recipes import RecipeExtractor
    from ..extraction.timeline import TimelineGenerator
    from ..recipes import RecipeLibrary
    from ..storage.base import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class WizardServices:
    """External collaborators tools depend on.

    Attributes:
        store: Session and transcript persistence
        recipes: The user's recipe library
        extractor: Recipe extraction from images, page text, and descriptions
        fetcher: Fetches recipe pages
        timelines: Cooking timeline generation and adjustment
    """

    store: SessionStore
    recipes: RecipeLibrary
    extractor: RecipeExtractor
    fetcher: PageFetcher
    timelines: TimelineGenerator


@dataclass
class TurnContext:
    """Mutable state for one in-flight turn.

    Attributes:
        session: Working copy of the session, mutated in place by tools
        services: External collaborators
        writer: Event writer for the assistant message being produced
        now: Reference time for the turn (date parsing, summaries)
        confirmation_request: Set when the step's confirm tool has run
        metadata: Free-form per-turn data
    """

    session: WizardSession
    services: WizardServices
    writer: StreamWriter
    now: datetime = field(default_factory=utcnow)
    confirmation_request: ConfirmationRequest | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> str:
        return self.session.user_id

    @property
    def step(self) -> WizardStep:
        return self.session.current_step

    @property
    def confirmation_requested(self) -> bool:
        return self.confirmation_request is not None

    async def persist(self) -> None:
        """Write the working session to the store."""
        self.session.updated_at = utcnow()
        await self.services.store.save_session(self.session)

    async def request_confirmation(
        self, summary: str, data: dict[str, Any]
    ) -> ConfirmationRequest:
        """Persist the step's data and emit a confirmation request.

        The stream carries the full request; the transcript keeps only its id,
        and the session holds the request as the pending confirmation state.

        Args:
            summary: Human-readable summary shown in the confirmation dialog
            data: Snapshot of the step's finalized values

        Returns:
            The new pending request
        """
        request = ConfirmationRequest(
            step=self.step,
            next_step=next_step(self.step),
            summary=summary,
            data=data,
        )
        self.session.confirmation = Pending(request=request)
        await self.persist()
        await self.writer.write_data(
            "step-confirmation-request",
            {"request": request.to_dict()},
            stored={"requestId": request.id},
        )
        self.confirmation_request = request
        logger.info(
            "Confirmation requested for step %s in session %s (%s)",
            self.step.value,
            self.session.id,
            request.id,
        )
        return request
