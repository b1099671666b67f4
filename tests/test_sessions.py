"""Tests for session lifecycle operations."""

import pytest

from party_wizard.exceptions import ConfigurationError, NotFoundError, ValidationError
from party_wizard.models import SessionStatus
from party_wizard.protocol import ConfirmationRequest, Pending
from party_wizard.sessions import SessionService
from party_wizard.steps import WizardStep
from party_wizard.models import WizardMessage
from tests.fixtures.fakes import USER_ID, make_party


class TestSessionLookup:
    """Tests for finding and starting sessions."""

    @pytest.mark.asyncio
    async def test_get_or_create_active(self, session_service):
        first = await session_service.get_or_create_active(USER_ID)
        again = await session_service.get_or_create_active(USER_ID)
        assert first.id == again.id
        assert first.current_step is WizardStep.PARTY_INFO

    @pytest.mark.asyncio
    async def test_start_new_abandons_previous(self, session_service, store):
        old = await session_service.get_or_create_active(USER_ID)
        new = await session_service.start_new(USER_ID)

        assert new.id != old.id
        assert (await store.get_session(old.id)).status is SessionStatus.ABANDONED
        assert (await store.get_active_session(USER_ID)).id == new.id

    @pytest.mark.asyncio
    async def test_other_users_session_not_found(self, session_service, session):
        with pytest.raises(NotFoundError, match="Session not found"):
            await session_service.get_session(session.id, "intruder")

    @pytest.mark.asyncio
    async def test_missing_session_not_found(self, session_service):
        with pytest.raises(NotFoundError):
            await session_service.get_session("nope", USER_ID)


class TestChangeStep:
    """Tests for navigating between reached steps."""

    @pytest.mark.asyncio
    async def test_navigate_back_keeps_furthest(self, session_service, session, store):
        session.current_step = WizardStep.MENU
        session.reach(WizardStep.MENU)
        await store.save_session(session)

        moved = await session_service.change_step(session.id, USER_ID, "party-info")
        assert moved.current_step is WizardStep.PARTY_INFO
        assert moved.furthest_step_index == 2

        forward = await session_service.change_step(session.id, USER_ID, "menu")
        assert forward.current_step is WizardStep.MENU

    @pytest.mark.asyncio
    async def test_unreached_step_rejected(self, session_service, session):
        with pytest.raises(ValidationError, match="has not been reached yet"):
            await session_service.change_step(session.id, USER_ID, "timeline")

    @pytest.mark.asyncio
    async def test_complete_rejected(self, session_service, session):
        with pytest.raises(ValidationError, match="complete step"):
            await session_service.change_step(session.id, USER_ID, "complete")

    @pytest.mark.asyncio
    async def test_unknown_step_rejected(self, session_service, session):
        with pytest.raises(ValidationError):
            await session_service.change_step(session.id, USER_ID, "dessert")

    @pytest.mark.asyncio
    async def test_pending_confirmation_discarded(self, session_service, session, store):
        session.current_step = WizardStep.GUESTS
        session.reach(WizardStep.GUESTS)
        session.confirmation = Pending(
            request=ConfirmationRequest(
                step=WizardStep.GUESTS, next_step=WizardStep.MENU, summary="1 guest: a"
            )
        )
        await store.save_session(session)

        moved = await session_service.change_step(session.id, USER_ID, WizardStep.PARTY_INFO)
        assert moved.confirmation is None
        assert (await store.get_session(session.id)).confirmation is None

    @pytest.mark.asyncio
    async def test_inactive_session_rejected(self, session_service, session):
        await session_service.start_new(USER_ID)
        with pytest.raises(ValidationError, match="no longer active"):
            await session_service.change_step(session.id, USER_ID, "party-info")


class TestFinalize:
    """Tests for creating the party."""

    @pytest.mark.asyncio
    async def test_finalize(self, session_service, session, store, finalizer):
        completed = []
        session_service.hooks.on_complete(lambda s: completed.append(s.party_id))
        session.current_step = WizardStep.TIMELINE
        session.reach(WizardStep.TIMELINE)
        session.party_info = make_party()
        await store.save_session(session)

        party_id = await session_service.finalize(session.id, USER_ID)

        saved = await store.get_session(session.id)
        assert saved.party_id == party_id
        assert saved.status is SessionStatus.COMPLETED
        assert saved.current_step is WizardStep.TIMELINE
        assert saved.furthest_step_index == WizardStep.COMPLETE.index
        assert finalizer.parties[party_id]["party_info"]["name"] == "Sarah's 30th"
        assert completed == [party_id]

    @pytest.mark.asyncio
    async def test_finalize_twice_rejected(self, session_service, session, store):
        session.party_info = make_party()
        await store.save_session(session)
        await session_service.finalize(session.id, USER_ID)
        with pytest.raises(ValidationError):
            await session_service.finalize(session.id, USER_ID)

    @pytest.mark.asyncio
    async def test_finalize_without_party_info(self, session_service, session, store):
        with pytest.raises(ValidationError):
            await session_service.finalize(session.id, USER_ID)
        assert (await store.get_session(session.id)).status is SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_no_finalizer_configured(self, store, session):
        with pytest.raises(ConfigurationError):
            await SessionService(store).finalize(session.id, USER_ID)


class TestMessagesByStep:
    @pytest.mark.asyncio
    async def test_grouped_transcript(self, session_service, session, store):
        await store.append_message(
            WizardMessage(
                session_id=session.id,
                step=WizardStep.GUESTS,
                role="user",
                parts=[{"type": "text", "text": "Add Ana"}],
            )
        )
        grouped = await session_service.messages_by_step(session.id)
        assert set(grouped) == {"party-info", "guests", "menu", "timeline"}
        assert grouped["party-info"] == []
        assert grouped["guests"][0]["parts"][0]["text"] == "Add Ana"
