"""Shared fixtures for party wizard tests.

The chat model is the scripted :class:`EchoProvider`; page fetching, recipe
extraction and timeline generation use the fakes in ``tests.fixtures.fakes``.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from party_wizard.events import ListEventSink, StreamWriter
from party_wizard.llm.providers.echo import EchoProvider
from party_wizard.models import WizardSession
from party_wizard.orchestrator import WizardOrchestrator
from party_wizard.recipes import InMemoryRecipeLibrary
from party_wizard.sessions import InMemoryPartyFinalizer, SessionService
from party_wizard.storage.memory import AsyncMemorySessionStore
from party_wizard.tools.context import TurnContext, WizardServices
from tests.fixtures.fakes import (
    NOW,
    USER_ID,
    FakePageFetcher,
    FakeRecipeExtractor,
    FakeTimelineGenerator,
)


@pytest.fixture
def provider() -> EchoProvider:
    return EchoProvider({"provider": "echo", "model": "test-model"})


@pytest_asyncio.fixture
async def store():
    store = AsyncMemorySessionStore()
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def recipes() -> InMemoryRecipeLibrary:
    library = InMemoryRecipeLibrary()
    library.add_recipe(USER_ID, "r-lasagna", "Grandma's Lasagna")
    library.add_recipe("someone-else", "r-secret", "Secret Stew")
    return library


@pytest.fixture
def fetcher() -> FakePageFetcher:
    return FakePageFetcher()


@pytest.fixture
def extractor() -> FakeRecipeExtractor:
    return FakeRecipeExtractor()


@pytest.fixture
def timelines() -> FakeTimelineGenerator:
    return FakeTimelineGenerator()


@pytest.fixture
def services(store, recipes, extractor, fetcher, timelines) -> WizardServices:
    return WizardServices(
        store=store,
        recipes=recipes,
        extractor=extractor,  # type: ignore[arg-type]
        fetcher=fetcher,  # type: ignore[arg-type]
        timelines=timelines,  # type: ignore[arg-type]
    )


@pytest.fixture
def sink() -> ListEventSink:
    return ListEventSink()


@pytest_asyncio.fixture
async def session(store) -> WizardSession:
    return await store.create_session(USER_ID)


@pytest.fixture
def context(session, services, sink) -> TurnContext:
    return TurnContext(
        session=session, services=services, writer=StreamWriter(sink), now=NOW
    )


@pytest.fixture
def finalizer() -> InMemoryPartyFinalizer:
    return InMemoryPartyFinalizer()


@pytest.fixture
def session_service(store, finalizer) -> SessionService:
    return SessionService(store, finalizer=finalizer)


@pytest.fixture
def orchestrator(provider, services, session_service) -> WizardOrchestrator:
    return WizardOrchestrator(
        provider, services, sessions=session_service, clock=lambda: NOW
    )
