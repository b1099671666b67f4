"""Tests for the HTTP surface, driven through httpx's ASGI transport."""

import asyncio
import json

import anyio
import httpx
import pytest
import pytest_asyncio

from party_wizard.api import WizardRuntime, create_app, reset_runtime, stream_turn
from party_wizard.config import WizardSettings
from party_wizard.llm.providers.echo import EchoProvider
from party_wizard.llm.testing import text_response, tool_call_response
from party_wizard.orchestrator import ChatTurn, WizardOrchestrator
from party_wizard.recipes import InMemoryRecipeLibrary
from party_wizard.sessions import InMemoryPartyFinalizer
from party_wizard.steps import WizardStep
from tests.fixtures.fakes import USER_ID, approve, make_party, turn_data

HEADERS = {"X-User-Id": USER_ID}


@pytest_asyncio.fixture
async def runtime():
    chat = EchoProvider({"provider": "echo", "model": "chat-model"})
    runtime = await WizardRuntime.create(
        WizardSettings(),
        chat_provider=chat,
        extraction_provider=EchoProvider({"provider": "echo", "model": "extract-model"}),
        recipes=InMemoryRecipeLibrary(),
        finalizer=InMemoryPartyFinalizer(),
    )
    yield runtime
    await runtime.close()
    reset_runtime()


@pytest_asyncio.fixture
async def client(runtime):
    transport = httpx.ASGITransport(app=create_app(runtime=runtime))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def ndjson(response):
    return [json.loads(line) for line in response.text.splitlines() if line.strip()]


async def current_session(client):
    response = await client.get("/party-wizard/session", headers=HEADERS)
    assert response.status_code == 200
    return response.json()["session"]


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestSessionRoutes:
    @pytest.mark.asyncio
    async def test_user_header_required(self, client):
        response = await client.get("/party-wizard/session")
        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "MissingUserError"
        assert set(body) == {"error", "message", "detail", "timestamp"}

    @pytest.mark.asyncio
    async def test_current_session_created_once(self, client):
        first = await client.get("/party-wizard/session", headers=HEADERS)
        second = await client.get("/party-wizard/session", headers=HEADERS)

        payload = first.json()
        assert payload["session"]["currentStep"] == "party-info"
        assert payload["session"]["furthestStepIndex"] == 0
        assert payload["session"]["timeline"] is None
        assert payload["session"]["pendingConfirmation"] is None
        assert set(payload["messages"]) == {"party-info", "guests", "menu", "timeline"}
        assert second.json()["session"]["id"] == payload["session"]["id"]

    @pytest.mark.asyncio
    async def test_get_by_id(self, client):
        session = await current_session(client)
        response = await client.get(f"/party-wizard/session/{session['id']}", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["session"]["id"] == session["id"]

    @pytest.mark.asyncio
    async def test_other_users_session_not_found(self, client):
        session = await current_session(client)
        response = await client.get(
            f"/party-wizard/session/{session['id']}", headers={"X-User-Id": "intruder"}
        )
        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    @pytest.mark.asyncio
    async def test_new_session_abandons_old(self, client):
        old = await current_session(client)
        response = await client.post("/party-wizard/session/new", headers=HEADERS)
        new = response.json()["session"]

        assert new["id"] != old["id"]
        old_view = await client.get(f"/party-wizard/session/{old['id']}", headers=HEADERS)
        assert old_view.json()["session"]["status"] == "abandoned"

    @pytest.mark.asyncio
    async def test_step_not_reached(self, client):
        session = await current_session(client)
        response = await client.put(
            f"/party-wizard/session/{session['id']}/step",
            json={"step": "menu"},
            headers=HEADERS,
        )
        assert response.status_code == 422
        assert response.json()["detail"]["step"] == "menu"

    @pytest.mark.asyncio
    async def test_step_change(self, client, runtime):
        session = await current_session(client)
        stored = await runtime.services.store.get_session(session["id"])
        stored.current_step = WizardStep.GUESTS
        stored.reach(WizardStep.GUESTS)
        await runtime.services.store.save_session(stored)

        response = await client.put(
            f"/party-wizard/session/{session['id']}/step",
            json={"step": "party-info"},
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["session"]["currentStep"] == "party-info"
        assert response.json()["session"]["furthestStepIndex"] == 1


class TestChatRoute:
    @pytest.mark.asyncio
    async def test_streams_events(self, client):
        session = await current_session(client)
        response = await client.post(
            "/party-wizard/chat", json=turn_data(session["id"], "Hello"), headers=HEADERS
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        events = ndjson(response)
        assert [e["type"] for e in events] == ["text-start", "text-delta", "text-end", "finish"]
        assert events[1]["delta"] == "Echo: Hello"

        view = await client.get("/party-wizard/session", headers=HEADERS)
        transcript = view.json()["messages"]["party-info"]
        assert [m["role"] for m in transcript] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_confirmation_round_trip(self, client, runtime):
        session = await current_session(client)
        runtime.orchestrator.model_loop.provider.set_responses(
            [
                tool_call_response(
                    "confirmPartyInfo",
                    {"name": "Game Night", "dateTime": "2030-06-01T18:30:00"},
                )
            ]
        )
        response = await client.post(
            "/party-wizard/chat", json=turn_data(session["id"], "Game night"), headers=HEADERS
        )
        request = next(
            e for e in ndjson(response) if e["type"] == "data-step-confirmation-request"
        )["data"]["request"]

        view = await current_session(client)
        assert view["pendingConfirmation"]["id"] == request["id"]
        assert view["partyInfo"]["name"] == "Game Night"

        response = await client.post(
            "/party-wizard/chat",
            json=turn_data(session["id"], decision=approve(request["id"])),
            headers=HEADERS,
        )
        assert "data-step-confirmed" in [e["type"] for e in ndjson(response)]
        view = await current_session(client)
        assert view["currentStep"] == "guests"
        assert view["pendingConfirmation"] is None

    @pytest.mark.asyncio
    async def test_stale_decision_rejected_before_stream(self, client):
        session = await current_session(client)
        response = await client.post(
            "/party-wizard/chat",
            json=turn_data(session["id"], decision=approve("confirm-stale")),
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ProtocolError"

    @pytest.mark.asyncio
    async def test_malformed_decision_rejected(self, client, runtime):
        session = await current_session(client)
        body = turn_data(session["id"], decision={"requestId": "r", "decision": "approve"})
        response = await client.post("/party-wizard/chat", json=body, headers=HEADERS)

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"
        assert await runtime.services.store.list_messages(session["id"]) == []

    @pytest.mark.asyncio
    async def test_assistant_role_rejected(self, client):
        session = await current_session(client)
        response = await client.post(
            "/party-wizard/chat",
            json=turn_data(session["id"], "hi", role="assistant"),
            headers=HEADERS,
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_session(self, client):
        response = await client.post(
            "/party-wizard/chat", json=turn_data("missing", "Hello"), headers=HEADERS
        )
        assert response.status_code == 404


class TestCompleteRoute:
    @pytest.mark.asyncio
    async def test_complete(self, client, runtime):
        session = await current_session(client)
        stored = await runtime.services.store.get_session(session["id"])
        stored.party_info = make_party()
        await runtime.services.store.save_session(stored)

        response = await client.post(
            "/party-wizard/complete", json={"sessionId": session["id"]}, headers=HEADERS
        )
        assert response.status_code == 200
        party_id = response.json()["partyId"]

        view = await client.get(f"/party-wizard/session/{session['id']}", headers=HEADERS)
        assert view.json()["session"]["status"] == "completed"
        assert view.json()["session"]["partyId"] == party_id

        again = await client.post(
            "/party-wizard/complete", json={"sessionId": session["id"]}, headers=HEADERS
        )
        assert again.status_code == 422

    @pytest.mark.asyncio
    async def test_complete_requires_party_info(self, client):
        session = await current_session(client)
        response = await client.post(
            "/party-wizard/complete", json={"sessionId": session["id"]}, headers=HEADERS
        )
        assert response.status_code == 422


class GatedProvider(EchoProvider):
    """Echo provider whose calls wait until ``release`` is set."""

    def __init__(self):
        super().__init__({"provider": "echo", "model": "gated-model"})
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def complete(self, messages, **kwargs):
        self.started.set()
        await self.release.wait()
        return await super().complete(messages, **kwargs)


class TestStreamDisconnect:
    @pytest.mark.asyncio
    async def test_turn_finishes_after_client_leaves(
        self, services, session_service, session, store
    ):
        provider = GatedProvider()
        provider.set_responses(
            [
                tool_call_response(
                    "confirmPartyInfo",
                    {"name": "Game Night", "dateTime": "2030-06-01T18:30:00"},
                ),
            ]
        )
        orchestrator = WizardOrchestrator(provider, services, sessions=session_service)
        prepared = await orchestrator.prepare_turn(
            ChatTurn.from_dict(turn_data(session.id, "Game night")), USER_ID
        )
        received = []

        async def consume(scope):
            with scope:
                async for line in stream_turn(orchestrator, prepared):
                    received.append(line)

        # Starlette cancels a disconnected response through an anyio scope.
        scope = anyio.CancelScope()
        consumer = asyncio.create_task(consume(scope))
        await asyncio.wait_for(provider.started.wait(), timeout=2)
        scope.cancel()
        await asyncio.wait_for(consumer, timeout=2)
        assert scope.cancelled_caught

        provider.release.set()
        for _ in range(200):
            messages = await store.list_messages(session.id)
            if any(m.role == "assistant" for m in messages):
                break
            await asyncio.sleep(0.01)

        saved = await store.get_session(session.id)
        assert saved.party_info is not None
        assert saved.party_info.name == "Game Night"
        assert [m.role for m in await store.list_messages(session.id)] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_events_stream_as_lines(self, services, session_service, session):
        provider = EchoProvider({"provider": "echo", "model": "chat-model"})
        provider.set_responses([text_response("Hello there")])
        orchestrator = WizardOrchestrator(provider, services, sessions=session_service)
        prepared = await orchestrator.prepare_turn(
            ChatTurn.from_dict(turn_data(session.id, "Hi")), USER_ID
        )

        lines = [line async for line in stream_turn(orchestrator, prepared)]

        assert all(line.endswith("\n") for line in lines)
        assert json.loads(lines[-1])["type"] == "finish"
