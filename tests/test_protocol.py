"""Tests for the confirmation protocol."""

import pytest

from party_wizard.exceptions import ProtocolError, ValidationError
from party_wizard.protocol import (
    Approved,
    ConfirmationDecision,
    ConfirmationRequest,
    Pending,
    Revised,
    confirmation_state_from_dict,
    match_pending,
    pending_request,
)
from party_wizard.steps import WizardStep


def _request(step=WizardStep.GUESTS, next_step=WizardStep.MENU, **kwargs):
    return ConfirmationRequest(step=step, next_step=next_step, summary="2 guests: a, b", **kwargs)


class TestConfirmationRequest:
    """Tests for ConfirmationRequest."""

    def test_ids_are_unique(self):
        assert _request().id != _request().id

    def test_wire_form_uses_camel_case(self):
        request = _request(data={"guestList": []})
        wire = request.to_dict()
        assert wire["nextStep"] == "menu"
        assert wire["step"] == "guests"
        assert ConfirmationRequest.from_dict(wire) == request


class TestConfirmationDecision:
    """Tests for ConfirmationDecision parsing and validation."""

    def test_parse_approve(self):
        decision = ConfirmationDecision.from_dict(
            {"requestId": "confirm-1", "decision": {"type": "approve"}}
        )
        assert decision.is_approval
        assert decision.request_id == "confirm-1"
        assert decision.to_dict() == {"requestId": "confirm-1", "decision": {"type": "approve"}}

    def test_parse_revise(self):
        decision = ConfirmationDecision.from_dict(
            {"requestId": "confirm-1", "decision": {"type": "revise", "feedback": "6pm"}}
        )
        assert not decision.is_approval
        assert decision.to_dict()["decision"] == {"type": "revise", "feedback": "6pm"}

    @pytest.mark.parametrize("feedback", ["", None])
    def test_revise_without_feedback(self, feedback):
        decision = ConfirmationDecision.from_dict(
            {"requestId": "confirm-1", "decision": {"type": "revise", "feedback": feedback}}
        )
        assert decision.feedback == ""
        assert decision.to_dict()["decision"] == {"type": "revise", "feedback": ""}

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            ConfirmationDecision.from_dict({"requestId": "c", "decision": {"type": "maybe"}})

    @pytest.mark.parametrize(
        "data",
        [
            "approve",
            {"requestId": "r", "decision": "approve"},
            {"requestId": "r", "decision": ["approve"]},
            {"requestId": 7, "decision": {"type": "approve"}},
            {"decision": {"type": "approve"}},
            {"requestId": "r", "decision": {"type": "revise", "feedback": 3}},
        ],
    )
    def test_malformed_shape(self, data):
        with pytest.raises(ValidationError):
            ConfirmationDecision.from_dict(data)


class TestConfirmationState:
    """Tests for the Pending / Approved / Revised states."""

    @pytest.mark.parametrize(
        "state",
        [
            Pending(request=_request()),
            Approved(request=_request()),
            Revised(request=_request(), feedback="add Dana"),
        ],
    )
    def test_storage_round_trip(self, state):
        assert confirmation_state_from_dict(state.to_dict()) == state

    def test_none_state(self):
        assert confirmation_state_from_dict(None) is None

    def test_pending_request_only_for_pending(self):
        request = _request()
        assert pending_request(Pending(request=request)) is request
        assert pending_request(Approved(request=request)) is None
        assert pending_request(None) is None


class TestMatchPending:
    """Tests for resolving a decision against the pending request."""

    def test_match(self):
        request = _request()
        decision = ConfirmationDecision(request_id=request.id, type="approve")
        assert match_pending(Pending(request=request), decision, WizardStep.GUESTS) is request

    def test_nothing_pending(self):
        decision = ConfirmationDecision(request_id="confirm-x", type="approve")
        with pytest.raises(ProtocolError, match="No confirmation request is pending"):
            match_pending(None, decision, WizardStep.GUESTS)

    def test_already_approved_is_stale(self):
        """Replaying an approval after it was applied is rejected."""
        request = _request()
        decision = ConfirmationDecision(request_id=request.id, type="approve")
        with pytest.raises(ProtocolError):
            match_pending(Approved(request=request), decision, WizardStep.MENU)

    def test_stale_id(self):
        decision = ConfirmationDecision(request_id="confirm-old", type="approve")
        with pytest.raises(ProtocolError) as exc_info:
            match_pending(Pending(request=_request()), decision, WizardStep.GUESTS)
        assert exc_info.value.context["request_id"] == "confirm-old"

    def test_wrong_step(self):
        request = _request()
        decision = ConfirmationDecision(request_id=request.id, type="approve")
        with pytest.raises(ProtocolError, match="different step"):
            match_pending(Pending(request=request), decision, WizardStep.MENU)
