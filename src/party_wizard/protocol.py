"""Human-in-the-loop confirmation protocol.

A step's confirm tool produces a :class:`ConfirmationRequest`. The user then
answers with a :class:`ConfirmationDecision` on the next turn. The session
records where the negotiation stands as one of three states:

- :class:`Pending` - a request is waiting for a decision
- :class:`Approved` - the request was approved and the step advanced
- :class:`Revised` - the user asked for changes; the model is re-run

Wire forms (``to_dict``) use the camelCase field names of the chat protocol.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Union

from .exceptions import ProtocolError, ValidationError
from .steps import WizardStep, parse_step


@dataclass
class ConfirmationRequest:
    """A snapshot of a step's finalized data awaiting the user's decision."""

    step: WizardStep
    next_step: WizardStep
    summary: str
    data: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"confirm-{uuid.uuid4().hex[:12]}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "step": self.step.value,
            "nextStep": self.next_step.value,
            "summary": self.summary,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfirmationRequest:
        return cls(
            id=data["id"],
            step=parse_step(data["step"]),
            next_step=parse_step(data["nextStep"]),
            summary=data["summary"],
            data=dict(data.get("data") or {}),
        )


@dataclass
class ConfirmationDecision:
    """The user's answer to a pending confirmation request.

    Example:
        ```python
        ConfirmationDecision.from_dict(
            {"requestId": "confirm-1a2b", "decision": {"type": "approve"}}
        )
        ConfirmationDecision.from_dict(
            {
                "requestId": "confirm-1a2b",
                "decision": {"type": "revise", "feedback": "Make it 6pm"},
            }
        )
        ```
    """

    request_id: str
    type: Literal["approve", "revise"]
    feedback: str | None = None

    def __post_init__(self) -> None:
        if self.type not in ("approve", "revise"):
            raise ValidationError(
                f"Unknown confirmation decision: {self.type}",
                context={"type": self.type},
            )
        # Empty feedback is allowed; the turn's own text is used instead.
        if self.type == "revise" and self.feedback is None:
            self.feedback = ""

    @property
    def is_approval(self) -> bool:
        return self.type == "approve"

    def to_dict(self) -> dict[str, Any]:
        decision: dict[str, Any] = {"type": self.type}
        if self.type == "revise":
            decision["feedback"] = self.feedback
        return {"requestId": self.request_id, "decision": decision}

    @classmethod
    def from_dict(cls, data: Any) -> ConfirmationDecision:
        """Parse ``{requestId, decision: {type, feedback?}}``.

        Raises:
            ValidationError: If the shape or field types are wrong
        """
        if not isinstance(data, dict):
            raise ValidationError("confirmationDecision must be an object")
        request_id = data.get("requestId")
        if not isinstance(request_id, str) or not request_id:
            raise ValidationError("confirmationDecision.requestId must be a non-empty string")
        decision = data.get("decision")
        if not isinstance(decision, dict):
            raise ValidationError(
                "confirmationDecision.decision must be an object",
                context={"decision": repr(decision)},
            )
        feedback = decision.get("feedback")
        if feedback is not None and not isinstance(feedback, str):
            raise ValidationError("confirmationDecision.decision.feedback must be a string")
        return cls(
            request_id=request_id,
            type=decision.get("type", ""),
            feedback=feedback,
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Pending:
    request: ConfirmationRequest
    status: Literal["pending"] = "pending"

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "request": self.request.to_dict()}


@dataclass
class Approved:
    request: ConfirmationRequest
    decided_at: datetime = field(default_factory=_now)
    status: Literal["approved"] = "approved"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "request": self.request.to_dict(),
            "decided_at": self.decided_at.isoformat(),
        }


@dataclass
class Revised:
    request: ConfirmationRequest
    feedback: str
    decided_at: datetime = field(default_factory=_now)
    status: Literal["revised"] = "revised"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "request": self.request.to_dict(),
            "feedback": self.feedback,
            "decided_at": self.decided_at.isoformat(),
        }


ConfirmationState = Union[Pending, Approved, Revised]


def confirmation_state_from_dict(data: dict[str, Any] | None) -> ConfirmationState | None:
    """Rebuild a confirmation state from its storage form."""
    if data is None:
        return None
    request = ConfirmationRequest.from_dict(data["request"])
    status = data.get("status")
    if status == "pending":
        return Pending(request=request)
    if status == "approved":
        return Approved(
            request=request, decided_at=datetime.fromisoformat(data["decided_at"])
        )
    if status == "revised":
        return Revised(
            request=request,
            feedback=data["feedback"],
            decided_at=datetime.fromisoformat(data["decided_at"]),
        )
    raise ValidationError(f"Unknown confirmation status: {status}")


def pending_request(state: ConfirmationState | None) -> ConfirmationRequest | None:
    """Return the request awaiting a decision, if any."""
    if isinstance(state, Pending):
        return state.request
    return None


def match_pending(
    state: ConfirmationState | None,
    decision: ConfirmationDecision,
    current_step: WizardStep,
) -> ConfirmationRequest:
    """Resolve a decision against the pending request.

    Args:
        state: The session's confirmation state
        decision: The incoming decision
        current_step: The session's current step

    Returns:
        The pending request the decision refers to

    Raises:
        ProtocolError: If nothing is pending, or the decision is stale
    """
    request = pending_request(state)
    if request is None:
        raise ProtocolError(
            "No confirmation request is pending",
            context={"request_id": decision.request_id},
        )
    if request.id != decision.request_id:
        raise ProtocolError(
            "Confirmation decision does not match the pending request",
            context={"request_id": decision.request_id, "pending_id": request.id},
        )
    if request.step is not current_step:
        raise ProtocolError(
            "Pending confirmation belongs to a different step",
            context={"request_step": request.step.value, "current_step": current_step.value},
        )
    return request
