"""Tests for the timeline step tools."""

import pytest

from party_wizard.steps import WizardStep
from party_wizard.tools import build_step_registry
from party_wizard.tools.timeline import summarize_timeline
from tests.fixtures.fakes import make_party, make_task


@pytest.fixture
def registry():
    return build_step_registry(WizardStep.TIMELINE)


@pytest.fixture
def timeline_context(context):
    context.session.current_step = WizardStep.TIMELINE
    context.session.reach(WizardStep.TIMELINE)
    context.session.party_info = make_party()
    return context


class TestGenerateTimeline:
    @pytest.mark.asyncio
    async def test_generate(self, registry, timeline_context, store, sink):
        result = await registry.execute_tool("generateTimeline", timeline_context, {})
        assert result.success
        assert result.message == "Created 2 tasks for your cooking timeline."
        saved = await store.get_session(timeline_context.session.id)
        assert len(saved.timeline) == 2
        assert sink.of_type("data-timeline-generated")

    @pytest.mark.asyncio
    async def test_requires_party_info(self, registry, timeline_context):
        timeline_context.session.party_info = None
        result = await registry.execute_tool("generateTimeline", timeline_context, {})
        assert not result.success
        assert result.error == "No party info available"

    @pytest.mark.asyncio
    async def test_generation_failure(self, registry, timeline_context, timelines):
        timelines.fail = True
        result = await registry.execute_tool("generateTimeline", timeline_context, {})
        assert not result.success
        assert timeline_context.session.timeline is None


class TestAdjustTimeline:
    """Tests for adjustTimeline."""

    @pytest.mark.asyncio
    async def test_remove_shopping_task(self, registry, timeline_context, store):
        """The shopping task is dropped and the other task is left as it was."""
        prep = make_task("Prep salad", scheduled_time="17:00", duration_minutes=20, recipe_id="r1")
        timeline_context.session.timeline = [
            make_task("Shop for ingredients", days_before_party=1, scheduled_time="10:00"),
            prep,
        ]

        result = await registry.execute_tool(
            "adjustTimeline", timeline_context, {"changes": "remove grocery shopping task"}
        )

        assert result.success
        assert result.action == "updateTimeline"
        assert result.payload["timeline"] == [prep.to_dict()]
        saved = await store.get_session(timeline_context.session.id)
        assert saved.timeline == [prep]

    @pytest.mark.asyncio
    async def test_failure_keeps_timeline(self, registry, timeline_context, timelines):
        timeline_context.session.timeline = [make_task("Prep salad")]
        timelines.fail = True
        result = await registry.execute_tool(
            "adjustTimeline", timeline_context, {"changes": "later"}
        )
        assert not result.success
        assert len(timeline_context.session.timeline) == 1


class TestConfirmTimeline:
    @pytest.mark.asyncio
    async def test_confirm_points_at_complete(self, registry, timeline_context):
        timeline_context.session.timeline = [make_task("Prep", is_phase_start=True)]
        result = await registry.execute_tool("confirmTimeline", timeline_context, {})
        assert result.success
        request = timeline_context.confirmation_request
        assert request.next_step is WizardStep.COMPLETE
        assert request.summary == "1 task across 1 phase"

    def test_summary(self):
        assert summarize_timeline(None) == "No timeline tasks created"
        tasks = [make_task("a", is_phase_start=True), make_task("b"), make_task("c")]
        assert summarize_timeline(tasks) == "3 tasks across 1 phase"
