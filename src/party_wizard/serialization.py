"""Conversion between runtime payloads and their storage forms.

The session row stores four payload columns (party info, guest list, menu
plan, timeline) as JSON-safe structures. Every write goes through a
``serialize_*`` function and every read through the matching
``deserialize_*``; ``serialize(deserialize(x)) == x`` holds for every valid
storage value, including ``None`` and empty lists.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .models import (
    Guest,
    MenuPlan,
    PartyInfo,
    SessionStatus,
    TimelineTask,
    TransitionRecord,
    WizardSession,
)
from .protocol import confirmation_state_from_dict
from .steps import parse_step


def serialize_party_info(party_info: PartyInfo | None) -> dict[str, Any] | None:
    return None if party_info is None else party_info.to_dict()


def deserialize_party_info(data: dict[str, Any] | None) -> PartyInfo | None:
    return None if data is None else PartyInfo.from_dict(data)


def serialize_guest_list(guests: list[Guest] | None) -> list[dict[str, Any]]:
    return [g.to_dict() for g in guests or []]


def deserialize_guest_list(data: list[dict[str, Any]] | None) -> list[Guest]:
    return [Guest.from_dict(g) for g in data or []]


def serialize_menu_plan(menu_plan: MenuPlan | None) -> dict[str, Any] | None:
    return None if menu_plan is None else menu_plan.to_dict()


def deserialize_menu_plan(data: dict[str, Any] | None) -> MenuPlan | None:
    return None if data is None else MenuPlan.from_dict(data)


def serialize_timeline(
    timeline: list[TimelineTask] | None,
) -> list[dict[str, Any]] | None:
    return None if timeline is None else [t.to_dict() for t in timeline]


def deserialize_timeline(
    data: list[dict[str, Any]] | None,
) -> list[TimelineTask] | None:
    return None if data is None else [TimelineTask.from_dict(t) for t in data]


def session_to_record(session: WizardSession) -> dict[str, Any]:
    """Flatten a session into its storage row."""
    return {
        "id": session.id,
        "user_id": session.user_id,
        "current_step": session.current_step.value,
        "furthest_step_index": session.furthest_step_index,
        "party_info": serialize_party_info(session.party_info),
        "guest_list": serialize_guest_list(session.guest_list),
        "menu_plan": serialize_menu_plan(session.menu_plan),
        "timeline": serialize_timeline(session.timeline),
        "status": session.status.value,
        "party_id": session.party_id,
        "confirmation": (
            None if session.confirmation is None else session.confirmation.to_dict()
        ),
        "transitions": [t.to_dict() for t in session.transitions],
        "created_at": session.created_at.isoformat(),
        "updated_at": session.updated_at.isoformat(),
    }


def session_from_record(record: dict[str, Any]) -> WizardSession:
    """Rebuild a session from its storage row."""
    return WizardSession(
        id=record["id"],
        user_id=record["user_id"],
        current_step=parse_step(record["current_step"]),
        furthest_step_index=int(record["furthest_step_index"]),
        party_info=deserialize_party_info(record.get("party_info")),
        guest_list=deserialize_guest_list(record.get("guest_list")),
        menu_plan=deserialize_menu_plan(record.get("menu_plan")),
        timeline=deserialize_timeline(record.get("timeline")),
        status=SessionStatus(record["status"]),
        party_id=record.get("party_id"),
        confirmation=confirmation_state_from_dict(record.get("confirmation")),
        transitions=[
            TransitionRecord.from_dict(t) for t in record.get("transitions") or []
        ],
        created_at=datetime.fromisoformat(record["created_at"]),
        updated_at=datetime.fromisoformat(record["updated_at"]),
    )
