"""Tests for the menu step tools."""

import pytest

from party_wizard.steps import WizardStep
from party_wizard.tools import build_step_registry
from party_wizard.tools.menu import DUPLICATE_URL_MESSAGE, summarize_menu
from party_wizard.models import ExistingRecipeRef, MenuPlan
from tests.fixtures.fakes import make_recipe

URL = "https://example.com/caprese"


@pytest.fixture
def registry():
    return build_step_registry(WizardStep.MENU)


@pytest.fixture
def menu_context(context):
    context.session.current_step = WizardStep.MENU
    context.session.reach(WizardStep.MENU)
    return context


class TestAddExistingRecipe:
    """Tests for addExistingRecipe."""

    @pytest.mark.asyncio
    async def test_add_owned_recipe(self, registry, menu_context):
        result = await registry.execute_tool(
            "addExistingRecipe",
            menu_context,
            {"recipeId": "r-lasagna", "course": "main", "scaledServings": 8},
        )
        assert result.success
        assert result.action == "updateMenuPlan"
        assert menu_context.session.menu_plan.existing_recipes == [
            ExistingRecipeRef(
                recipe_id="r-lasagna", name="Grandma's Lasagna", course="main", scaled_servings=8
            )
        ]

    @pytest.mark.asyncio
    async def test_other_users_recipe_not_found(self, registry, menu_context):
        result = await registry.execute_tool(
            "addExistingRecipe", menu_context, {"recipeId": "r-secret"}
        )
        assert not result.success
        assert result.error == "Recipe not found"

    @pytest.mark.asyncio
    async def test_invalid_course(self, registry, menu_context):
        result = await registry.execute_tool(
            "addExistingRecipe", menu_context, {"recipeId": "r-lasagna", "course": "brunch"}
        )
        assert not result.success
        assert menu_context.session.menu_plan is None


class TestExtractRecipeFromUrl:
    """Tests for extractRecipeFromUrl."""

    @pytest.mark.asyncio
    async def test_import(self, registry, menu_context, fetcher, extractor, sink):
        fetcher.pages[URL] = "Caprese salad: tomatoes, mozzarella, basil"
        extractor.queue(make_recipe())

        result = await registry.execute_tool(
            "extractRecipeFromUrl", menu_context, {"url": URL, "course": "appetizer"}
        )

        assert result.success
        plan = menu_context.session.menu_plan
        assert plan.new_recipes[0].source_type == "url"
        assert plan.new_recipes[0].source_url == URL
        assert plan.new_recipes[0].course == "appetizer"
        assert plan.processed_urls == [URL]
        event = sink.of_type("data-recipe-extracted")[0]
        assert event.data["data"]["recipe"]["name"] == "Caprese Salad"

    @pytest.mark.asyncio
    async def test_same_url_twice(self, registry, menu_context, fetcher, extractor):
        """The second import of a URL fails and leaves the menu unchanged."""
        fetcher.pages[URL] = "Caprese salad"
        extractor.queue(make_recipe(), make_recipe())

        first = await registry.execute_tool("extractRecipeFromUrl", menu_context, {"url": URL})
        second = await registry.execute_tool("extractRecipeFromUrl", menu_context, {"url": URL})

        assert first.success
        assert not second.success
        assert second.error == DUPLICATE_URL_MESSAGE
        assert "already" in second.error
        assert len(menu_context.session.menu_plan.new_recipes) == 1
        assert fetcher.fetched == [URL]

    @pytest.mark.asyncio
    async def test_fetch_failure(self, registry, menu_context):
        result = await registry.execute_tool(
            "extractRecipeFromUrl", menu_context, {"url": "https://example.com/missing"}
        )
        assert not result.success
        assert "Failed to fetch" in result.error
        assert menu_context.session.menu_plan.processed_urls == []

    @pytest.mark.asyncio
    async def test_not_a_url(self, registry, menu_context, fetcher):
        result = await registry.execute_tool(
            "extractRecipeFromUrl", menu_context, {"url": "grandma's cookbook"}
        )
        assert not result.success
        assert fetcher.fetched == []


class TestGenerateRecipeIdea:
    @pytest.mark.asyncio
    async def test_generate(self, registry, menu_context, extractor):
        extractor.queue(make_recipe("Lemon Tart"))
        result = await registry.execute_tool(
            "generateRecipeIdea",
            menu_context,
            {"description": "a bright lemon tart", "course": "dessert"},
        )
        assert result.success
        assert 'I created "Lemon Tart"' in result.message
        recipe = menu_context.session.menu_plan.new_recipes[0]
        assert recipe.source_type == "ai"
        assert recipe.course == "dessert"
        assert extractor.calls == [("idea", "a bright lemon tart")]

    @pytest.mark.asyncio
    async def test_generation_failure(self, registry, menu_context):
        result = await registry.execute_tool(
            "generateRecipeIdea", menu_context, {"description": "???"}
        )
        assert not result.success
        assert menu_context.session.menu_plan is None


class TestRemoveMenuItem:
    """Tests for removeMenuItem."""

    @pytest.mark.asyncio
    async def test_removal_retracts_url(self, registry, menu_context, fetcher, extractor):
        """A removed URL recipe can be imported again."""
        fetcher.pages[URL] = "Caprese salad"
        extractor.queue(make_recipe(), make_recipe())
        await registry.execute_tool("extractRecipeFromUrl", menu_context, {"url": URL})

        removed = await registry.execute_tool(
            "removeMenuItem", menu_context, {"index": 0, "isNewRecipe": True}
        )
        assert removed.success
        assert menu_context.session.menu_plan.processed_urls == []

        again = await registry.execute_tool("extractRecipeFromUrl", menu_context, {"url": URL})
        assert again.success
        assert len(menu_context.session.menu_plan.new_recipes) == 1

    @pytest.mark.asyncio
    async def test_remove_existing_recipe(self, registry, menu_context):
        menu_context.session.menu_plan = MenuPlan(
            existing_recipes=[ExistingRecipeRef(recipe_id="r-lasagna", name="Lasagna")]
        )
        result = await registry.execute_tool(
            "removeMenuItem", menu_context, {"index": 0, "isNewRecipe": False}
        )
        assert result.success
        assert menu_context.session.menu_plan.existing_recipes == []

    @pytest.mark.asyncio
    async def test_invalid_index(self, registry, menu_context):
        result = await registry.execute_tool(
            "removeMenuItem", menu_context, {"index": 3, "isNewRecipe": True}
        )
        assert not result.success
        assert result.error == "Invalid index"


class TestConfirmMenu:
    """Tests for confirmMenu."""

    @pytest.mark.asyncio
    async def test_confirm_empty_menu(self, registry, menu_context):
        result = await registry.execute_tool(
            "confirmMenu",
            menu_context,
            {"dietaryRestrictions": ["vegetarian"], "ambitionLevel": "simple"},
        )
        assert result.success
        request = menu_context.confirmation_request
        assert request.next_step is WizardStep.TIMELINE
        assert request.summary == "No recipes added yet"
        assert request.data["menuPlan"]["dietary_restrictions"] == ["vegetarian"]
        assert menu_context.session.menu_plan.ambition_level == "simple"

    @pytest.mark.asyncio
    async def test_invalid_ambition(self, registry, menu_context):
        result = await registry.execute_tool(
            "confirmMenu", menu_context, {"ambitionLevel": "heroic"}
        )
        assert not result.success
        assert not menu_context.confirmation_requested

    def test_summary(self):
        plan = MenuPlan(
            existing_recipes=[ExistingRecipeRef(recipe_id="r1", name="Lasagna")],
            new_recipes=[make_recipe("Salad"), make_recipe("Tart"), make_recipe("Punch")],
        )
        assert summarize_menu(plan) == "4 recipes: Lasagna, Salad, Tart..."
