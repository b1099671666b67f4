"""Runtime wiring and FastAPI dependency injection.

A :class:`WizardRuntime` holds everything the routes need. It is kept in a
singleton container so the app factory, the lifespan handler and tests can
all install or replace it.

Example:
    ```python
    runtime = await WizardRuntime.create(WizardSettings.load("wizard.yaml"))
    init_runtime(runtime)

    @app.get("/party-wizard/session")
    async def current_session(sessions: SessionServiceDep, user_id: UserIdDep):
        return await sessions.get_or_create_active(user_id)
    ```
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Annotated, Any

from fastapi import Depends, Header

from ..config import WizardSettings
from ..extraction.fetcher import PageFetcher
from ..extraction.recipes import RecipeExtractor
from ..extraction.timeline import TimelineGenerator
from ..hooks import StepHooks
from ..llm import create_provider
from ..llm.base import AsyncLLMProvider
from ..middleware import LoggingMiddleware
from ..orchestrator import WizardOrchestrator
from ..recipes import InMemoryRecipeLibrary, RecipeLibrary
from ..sessions import InMemoryPartyFinalizer, PartyFinalizer, SessionService
from ..storage import create_store
from ..tools.context import WizardServices
from .exceptions import MissingUserError

logger = logging.getLogger(__name__)


def llm_config_for(settings: WizardSettings, model: str) -> dict[str, Any]:
    """Provider config for ``model``; ``settings.llm`` supplies everything else."""
    config = {"provider": "openai", **settings.llm}
    config["model"] = model
    return config


@dataclass
class WizardRuntime:
    """Everything the HTTP routes depend on."""

    settings: WizardSettings
    orchestrator: WizardOrchestrator
    sessions: SessionService
    services: WizardServices
    providers: list[AsyncLLMProvider] = field(default_factory=list)

    @classmethod
    async def create(
        cls,
        settings: WizardSettings | None = None,
        *,
        chat_provider: AsyncLLMProvider | None = None,
        extraction_provider: AsyncLLMProvider | None = None,
        recipes: RecipeLibrary | None = None,
        finalizer: PartyFinalizer | None = None,
    ) -> WizardRuntime:
        """Build and initialize a runtime from settings.

        Providers, the recipe library and the finalizer can be supplied to
        replace the defaults built from settings.
        """
        settings = settings or WizardSettings()
        store = create_store(settings.database_path)
        await store.initialize()

        chat = chat_provider or create_provider(llm_config_for(settings, settings.chat_model))
        extraction = extraction_provider or create_provider(
            llm_config_for(settings, settings.extraction_model)
        )
        providers = [chat] if extraction is chat else [chat, extraction]
        for provider in providers:
            await provider.initialize()

        services = WizardServices(
            store=store,
            recipes=recipes or InMemoryRecipeLibrary(),
            extractor=RecipeExtractor(extraction),
            fetcher=PageFetcher(
                timeout=settings.fetch_timeout_seconds, max_chars=settings.max_page_chars
            ),
            timelines=TimelineGenerator(extraction),
        )
        hooks = StepHooks.from_config(settings.hooks)
        sessions = SessionService(
            store, finalizer=finalizer or InMemoryPartyFinalizer(), hooks=hooks
        )
        orchestrator = WizardOrchestrator(
            chat,
            services,
            settings=settings,
            sessions=sessions,
            hooks=hooks,
            middleware=[LoggingMiddleware(json_format=settings.log_json)],
        )
        logger.info("Wizard runtime ready (database: %s)", settings.database_path or "memory")
        return cls(
            settings=settings,
            orchestrator=orchestrator,
            sessions=sessions,
            services=services,
            providers=providers,
        )

    async def close(self) -> None:
        await self.services.fetcher.close()
        for provider in self.providers:
            await provider.close()
        await self.services.store.close()


class _RuntimeSingleton:
    """Singleton container for the WizardRuntime instance."""

    _instance: WizardRuntime | None = None

    @classmethod
    def get(cls) -> WizardRuntime:
        if cls._instance is None:
            raise RuntimeError("Wizard runtime not initialized. Call init_runtime() first.")
        return cls._instance

    @classmethod
    def init(cls, runtime: WizardRuntime) -> WizardRuntime:
        cls._instance = runtime
        logger.info("Initialized wizard runtime singleton")
        return runtime

    @classmethod
    def reset(cls) -> None:
        cls._instance = None
        logger.info("Reset wizard runtime singleton")


def get_runtime() -> WizardRuntime:
    return _RuntimeSingleton.get()


def init_runtime(runtime: WizardRuntime) -> WizardRuntime:
    return _RuntimeSingleton.init(runtime)


def reset_runtime() -> None:
    """Reset the runtime singleton. Useful for testing."""
    _RuntimeSingleton.reset()


def _get_orchestrator() -> WizardOrchestrator:
    return get_runtime().orchestrator


def _get_sessions() -> SessionService:
    return get_runtime().sessions


def _get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    if not x_user_id or not x_user_id.strip():
        raise MissingUserError()
    return x_user_id.strip()


OrchestratorDep = Annotated[WizardOrchestrator, Depends(_get_orchestrator)]
SessionServiceDep = Annotated[SessionService, Depends(_get_sessions)]
UserIdDep = Annotated[str, Depends(_get_user_id)]
