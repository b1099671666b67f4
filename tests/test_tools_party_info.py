"""Tests for the party-info step tools."""

import pytest

from party_wizard.protocol import Pending
from party_wizard.steps import WizardStep
from party_wizard.tools import build_step_registry


@pytest.fixture
def registry():
    return build_step_registry(WizardStep.PARTY_INFO)


class TestConfirmPartyInfo:
    """Tests for confirmPartyInfo."""

    @pytest.mark.asyncio
    async def test_saves_party_and_requests_confirmation(self, registry, context, store, sink):
        """Sarah's 30th produces a pending request pointing at the guests step."""
        result = await registry.execute_tool(
            "confirmPartyInfo",
            context,
            {
                "name": "Sarah's 30th",
                "dateTime": "2024-03-15T19:00:00",
                "location": "My apartment",
            },
        )

        assert result.success
        assert result.payload["date_was_guessed"] is False
        summary = result.payload["summary"]
        assert "Sarah's 30th" in summary
        assert "March 15, 2024" in summary
        assert "My apartment" in summary

        request = context.confirmation_request
        assert request is not None
        assert request.next_step is WizardStep.GUESTS
        assert result.payload["requestId"] == request.id

        saved = await store.get_session(context.session.id)
        assert saved.party_info.name == "Sarah's 30th"
        assert isinstance(saved.confirmation, Pending)
        assert saved.confirmation.request.id == request.id

        events = sink.of_type("data-step-confirmation-request")
        assert events[0].data["data"]["request"]["nextStep"] == "guests"
        # The transcript keeps only the id.
        assert context.writer.parts[-1] == {
            "type": "data-step-confirmation-request",
            "data": {"requestId": request.id},
        }

    @pytest.mark.asyncio
    async def test_missing_date_is_a_failed_result(self, registry, context):
        result = await registry.execute_tool("confirmPartyInfo", context, {"name": "Brunch"})
        assert not result.success
        assert "dateTime" in result.error
        assert context.session.party_info is None
        assert not context.confirmation_requested

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, registry, context):
        result = await registry.execute_tool(
            "confirmPartyInfo", context, {"name": "  ", "dateTime": "2024-03-15T19:00:00"}
        )
        assert not result.success
        assert not context.confirmation_requested

    @pytest.mark.asyncio
    async def test_unparseable_date_is_guessed(self, registry, context):
        result = await registry.execute_tool(
            "confirmPartyInfo", context, {"name": "Game night", "dateTime": "sometime soon"}
        )
        assert result.success
        assert result.payload["date_was_guessed"] is True
        assert context.session.party_info.date_time.day == 8

    @pytest.mark.asyncio
    async def test_other_step_tools_are_unavailable(self, registry, context):
        result = await registry.execute_tool("addGuest", context, {"email": "a@b.com"})
        assert not result.success
        assert "not available" in result.error
        assert context.session.guest_list == []
