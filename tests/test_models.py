"""Tests for the runtime data model and its storage forms."""

from datetime import datetime

import pytest

from party_wizard.exceptions import ValidationError
from party_wizard.models import (
    ExistingRecipeRef,
    Guest,
    MenuPlan,
    NewRecipe,
    SessionStatus,
    TimelineTask,
    TransitionRecord,
    WizardMessage,
    WizardSession,
)
from party_wizard.protocol import ConfirmationRequest, Pending
from party_wizard.serialization import (
    deserialize_guest_list,
    deserialize_menu_plan,
    deserialize_party_info,
    deserialize_timeline,
    serialize_guest_list,
    serialize_menu_plan,
    serialize_party_info,
    serialize_timeline,
    session_from_record,
    session_to_record,
)
from party_wizard.steps import WizardStep
from tests.fixtures.fakes import make_party, make_recipe, make_task


class TestRecipeValidation:
    """Tests for NewRecipe field validation."""

    def test_source_type_checked(self):
        with pytest.raises(ValidationError):
            NewRecipe(name="Soup", source_type="fax")

    def test_course_checked(self):
        with pytest.raises(ValidationError):
            NewRecipe(name="Soup", source_type="ai", course="brunch")


class TestTimelineTaskValidation:
    """Tests for TimelineTask invariants."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"days_before_party": -1},
            {"duration_minutes": 0},
            {"scheduled_time": "7pm"},
            {"scheduled_time": "24:00"},
        ],
    )
    def test_invalid_tasks(self, overrides):
        with pytest.raises(ValidationError):
            make_task("Prep", **overrides)

    def test_valid_task(self):
        task = make_task("Prep", scheduled_time="09:30", days_before_party=2)
        assert task.days_before_party == 2


class TestPayloadSerialization:
    """Tests for the four session payload columns."""

    def test_party_info(self):
        party = make_party()
        stored = serialize_party_info(party)
        assert stored["date_time"] == "2024-03-15T19:00:00"
        assert deserialize_party_info(stored) == party
        assert serialize_party_info(deserialize_party_info(stored)) == stored

    def test_absent_values(self):
        """None and empty lists survive unchanged."""
        assert serialize_party_info(None) is None
        assert deserialize_party_info(None) is None
        assert serialize_menu_plan(None) is None
        assert serialize_timeline(None) is None
        assert deserialize_timeline(None) is None
        assert serialize_timeline([]) == []
        assert deserialize_timeline([]) == []
        assert serialize_guest_list([]) == []
        assert deserialize_guest_list(None) == []

    def test_guest_list(self):
        stored = serialize_guest_list([Guest(name="Lucas", email="lucas@example.com")])
        assert serialize_guest_list(deserialize_guest_list(stored)) == stored

    def test_menu_plan(self):
        recipe = make_recipe()
        recipe.source_type = "url"
        recipe.source_url = "https://example.com/caprese"
        plan = MenuPlan(
            existing_recipes=[ExistingRecipeRef(recipe_id="r1", name="Lasagna", course="main")],
            new_recipes=[recipe],
            processed_urls=["https://example.com/caprese"],
            dietary_restrictions=["vegetarian"],
            ambition_level="moderate",
        )
        stored = serialize_menu_plan(plan)
        assert deserialize_menu_plan(stored) == plan
        assert serialize_menu_plan(deserialize_menu_plan(stored)) == stored

    def test_timeline(self):
        stored = serialize_timeline([make_task("Prep", recipe_id="r1", is_phase_start=True)])
        assert serialize_timeline(deserialize_timeline(stored)) == stored


class TestSessionRecord:
    """Tests for whole-session storage rows."""

    def test_round_trip(self):
        request = ConfirmationRequest(
            step=WizardStep.MENU, next_step=WizardStep.TIMELINE, summary="1 recipe: Soup"
        )
        session = WizardSession(
            user_id="u1",
            current_step=WizardStep.MENU,
            furthest_step_index=2,
            party_info=make_party(),
            guest_list=[Guest(email="a@b.com")],
            menu_plan=MenuPlan(),
            timeline=[],
            confirmation=Pending(request=request),
            transitions=[
                TransitionRecord(
                    from_step=WizardStep.GUESTS, to_step=WizardStep.MENU, request_id="c1"
                )
            ],
        )
        record = session_to_record(session)
        restored = session_from_record(record)
        assert restored == session
        assert session_to_record(restored) == record

    def test_reach_is_monotonic(self):
        session = WizardSession(user_id="u1")
        session.reach(WizardStep.MENU)
        session.reach(WizardStep.GUESTS)
        assert session.furthest_step_index == 2

    def test_defaults(self):
        session = WizardSession(user_id="u1")
        assert session.current_step is WizardStep.PARTY_INFO
        assert session.status is SessionStatus.ACTIVE
        assert session.timeline is None


class TestWizardMessage:
    def test_text_joins_text_parts(self):
        message = WizardMessage(
            session_id="s1",
            step=WizardStep.GUESTS,
            role="assistant",
            parts=[
                {"type": "text", "text": "Hello "},
                {"type": "data-step-confirmed", "data": {}},
                {"type": "text", "text": "there"},
            ],
        )
        assert message.text == "Hello there"

    def test_round_trip(self):
        message = WizardMessage(
            session_id="s1", step=WizardStep.MENU, role="user", parts=[{"type": "text", "text": "hi"}]
        )
        assert WizardMessage.from_dict(message.to_dict()) == message

    def test_guest_display_name(self):
        assert Guest(name="Ana", email="a@b.com").display_name == "Ana"
        assert Guest(phone="555-0100").display_name == "555-0100"


def test_party_info_keeps_naive_local_time():
    party = make_party()
    assert party.date_time == datetime(2024, 3, 15, 19, 0)
    assert party.date_time.tzinfo is None
