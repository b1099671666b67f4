"""Menu step tools.

Imported and generated recipes go through :func:`absorb_recipe`, which is
also used by the workflow branch selector so both paths keep the dedup lists
consistent with ``new_recipes``.
"""

from __future__ import annotations

import logging
from typing import Any

from ..exceptions import ExtractionError
from ..extraction.dedup import URL_PATTERN, DedupTracker
from ..models import AMBITION_LEVELS, COURSES, ExistingRecipeRef, MenuPlan, NewRecipe
from .base import (
    ACTION_AWAITING_CONFIRMATION,
    ACTION_UPDATE_MENU_PLAN,
    ToolResult,
    WizardTool,
)
from .context import TurnContext

logger = logging.getLogger(__name__)

DUPLICATE_URL_MESSAGE = "This recipe URL has already been added to the menu."
DUPLICATE_IMAGE_MESSAGE = "This image has already been added to the menu."

_COURSE_PROPERTY = {
    "type": "string",
    "enum": list(COURSES),
    "description": "Which course the dish belongs to",
}


def summarize_menu(menu_plan: MenuPlan | None) -> str:
    names = menu_plan.recipe_names if menu_plan else []
    if not names:
        return "No recipes added yet"
    count = len(names)
    more = "..." if count > 3 else ""
    return f"{count} recipe{'' if count == 1 else 's'}: {', '.join(names[:3])}{more}"


def describe_recipe(recipe: NewRecipe) -> str:
    return f"{len(recipe.ingredients)} ingredients and {len(recipe.instructions)} steps."


async def absorb_recipe(context: TurnContext, recipe: NewRecipe, message: str) -> None:
    """Add a recipe to the working menu, record its source, persist, and announce it."""
    DedupTracker(context.session.ensure_menu_plan()).add_recipe(recipe)
    await context.persist()
    await context.writer.write_data(
        "recipe-extracted", {"recipe": recipe.to_dict(), "message": message}
    )
    logger.info(
        "Added %s recipe %r to menu of session %s",
        recipe.source_type,
        recipe.name,
        context.session.id,
    )


def _course_error(course: str | None) -> ToolResult | None:
    if course is not None and course not in COURSES:
        return ToolResult.fail(f"Invalid course '{course}'. Use one of: {', '.join(COURSES)}")
    return None


class AddExistingRecipeTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="addExistingRecipe",
            description="Add a recipe from the user's library to the menu by its ID.",
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "recipeId": {"type": "string", "description": "Library recipe ID"},
                "course": _COURSE_PROPERTY,
                "scaledServings": {
                    "type": "integer",
                    "description": "Servings to scale the recipe to",
                },
            },
            "required": ["recipeId"],
        }

    async def execute(
        self,
        context: TurnContext,
        recipeId: str,
        course: str | None = None,
        scaledServings: int | None = None,
    ) -> ToolResult:
        if error := _course_error(course):
            return error

        recipe = await context.services.recipes.get_recipe(recipeId, context.user_id)
        if recipe is None:
            return ToolResult.fail("Recipe not found")

        menu_plan = context.session.ensure_menu_plan()
        menu_plan.existing_recipes.append(
            ExistingRecipeRef(
                recipe_id=recipe.id,
                name=recipe.name,
                course=course,
                scaled_servings=scaledServings,
            )
        )
        await context.persist()

        return ToolResult.ok(
            f'Added "{recipe.name}" to the menu.',
            action=ACTION_UPDATE_MENU_PLAN,
            menuPlan=menu_plan.to_dict(),
        )


class ExtractRecipeFromUrlTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="extractRecipeFromUrl",
            description=(
                "Import a recipe from a URL in the user's current message and "
                "add it to the menu."
            ),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "Recipe page URL"},
                "course": _COURSE_PROPERTY,
            },
            "required": ["url"],
        }

    async def execute(
        self, context: TurnContext, url: str, course: str | None = None
    ) -> ToolResult:
        if error := _course_error(course):
            return error
        if not URL_PATTERN.fullmatch(url.strip()):
            return ToolResult.fail("That does not look like a valid http(s) URL.")

        url = url.strip()
        tracker = DedupTracker(context.session.ensure_menu_plan())
        if tracker.has_url(url):
            return ToolResult.fail(DUPLICATE_URL_MESSAGE)

        try:
            content = await context.services.fetcher.fetch_text(url)
            recipe = await context.services.extractor.extract_from_page(content)
        except ExtractionError as e:
            logger.warning("URL import failed for %s: %s", url, e)
            return ToolResult.fail(str(e))

        recipe.source_url = url
        recipe.course = course
        message = (
            f'I imported "{recipe.name}" from that URL and added it to the menu! '
            f"{describe_recipe(recipe)}"
        )
        await absorb_recipe(context, recipe, message)

        return ToolResult.ok(
            message,
            action=ACTION_UPDATE_MENU_PLAN,
            menuPlan=context.session.ensure_menu_plan().to_dict(),
            recipe=recipe.to_dict(),
        )


class GenerateRecipeIdeaTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="generateRecipeIdea",
            description=(
                "Create a new recipe from a description of a dish and add it to "
                "the menu."
            ),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "description": {
                    "type": "string",
                    "description": "The dish to create, e.g. 'simple caprese salad'",
                },
                "course": _COURSE_PROPERTY,
            },
            "required": ["description"],
        }

    async def execute(
        self, context: TurnContext, description: str, course: str | None = None
    ) -> ToolResult:
        if error := _course_error(course):
            return error

        try:
            recipe = await context.services.extractor.generate_idea(description)
        except ExtractionError as e:
            logger.warning("Recipe generation failed for %r: %s", description, e)
            return ToolResult.fail(f"Could not create that recipe: {e}")

        recipe.course = course
        message = (
            f'I created "{recipe.name}" for you and added it to the menu! '
            f"{describe_recipe(recipe)}"
        )
        await absorb_recipe(context, recipe, message)

        return ToolResult.ok(
            message,
            action=ACTION_UPDATE_MENU_PLAN,
            menuPlan=context.session.ensure_menu_plan().to_dict(),
            recipe=recipe.to_dict(),
        )


class RemoveMenuItemTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="removeMenuItem",
            description=(
                "Remove a dish from the menu. Use isNewRecipe=true for imported or "
                "generated recipes, false for recipes from the user's library."
            ),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "index": {
                    "type": "integer",
                    "description": "Zero-based position within the chosen list",
                },
                "isNewRecipe": {
                    "type": "boolean",
                    "description": "True for new recipes, false for library recipes",
                },
            },
            "required": ["index", "isNewRecipe"],
        }

    async def execute(
        self, context: TurnContext, index: int, isNewRecipe: bool
    ) -> ToolResult:
        menu_plan = context.session.ensure_menu_plan()
        items: list[Any] = (
            menu_plan.new_recipes if isNewRecipe else menu_plan.existing_recipes
        )
        if not isinstance(index, int) or index < 0 or index >= len(items):
            return ToolResult.fail("Invalid index")

        if isNewRecipe:
            removed_name = DedupTracker(menu_plan).remove_recipe(index).name
        else:
            removed_name = menu_plan.existing_recipes.pop(index).name
        await context.persist()

        return ToolResult.ok(
            f'Removed "{removed_name}" from the menu.',
            action=ACTION_UPDATE_MENU_PLAN,
            menuPlan=menu_plan.to_dict(),
        )


class ConfirmMenuTool(WizardTool):
    def __init__(self) -> None:
        super().__init__(
            name="confirmMenu",
            description=(
                "Finalize the menu and show the user a confirmation dialog. "
                "An empty menu is allowed."
            ),
        )

    @property
    def schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "dietaryRestrictions": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Dietary needs to respect, e.g. vegetarian",
                },
                "ambitionLevel": {
                    "type": "string",
                    "enum": list(AMBITION_LEVELS),
                    "description": "How elaborate the cooking should be",
                },
            },
        }

    async def execute(
        self,
        context: TurnContext,
        dietaryRestrictions: list[str] | None = None,
        ambitionLevel: str | None = None,
    ) -> ToolResult:
        if ambitionLevel is not None and ambitionLevel not in AMBITION_LEVELS:
            return ToolResult.fail(
                f"Invalid ambition level '{ambitionLevel}'. "
                f"Use one of: {', '.join(AMBITION_LEVELS)}"
            )

        menu_plan = context.session.ensure_menu_plan()
        if dietaryRestrictions is not None:
            menu_plan.dietary_restrictions = [str(r) for r in dietaryRestrictions]
        if ambitionLevel is not None:
            menu_plan.ambition_level = ambitionLevel

        summary = summarize_menu(menu_plan)
        request = await context.request_confirmation(
            summary, {"menuPlan": menu_plan.to_dict()}
        )
        return ToolResult.ok(
            "Please confirm the menu above.",
            action=ACTION_AWAITING_CONFIRMATION,
            requestId=request.id,
            summary=summary,
        )


def menu_tools() -> list[WizardTool]:
    return [
        AddExistingRecipeTool(),
        ExtractRecipeFromUrlTool(),
        GenerateRecipeIdeaTool(),
        RemoveMenuItemTool(),
        ConfirmMenuTool(),
    ]
