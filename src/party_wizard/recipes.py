"""The user's recipe library, as seen by the wizard.

Recipe CRUD is owned elsewhere; the wizard only needs to list a user's
recipes for the menu prompt and to look one up with an ownership check.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class RecipeSummary:
    id: str
    name: str
    description: str | None = None


class RecipeLibrary(ABC):
    """Read access to users' saved recipes."""

    @abstractmethod
    async def get_recipe(self, recipe_id: str, user_id: str) -> RecipeSummary | None:
        """Return the recipe if it exists and belongs to ``user_id``."""
        ...

    @abstractmethod
    async def list_recipes(self, user_id: str) -> list[RecipeSummary]:
        ...


class InMemoryRecipeLibrary(RecipeLibrary):
    """Dictionary-backed library for tests and local runs."""

    def __init__(self) -> None:
        self._recipes: dict[str, tuple[str, RecipeSummary]] = {}

    def add_recipe(
        self,
        user_id: str,
        recipe_id: str,
        name: str,
        description: str | None = None,
    ) -> RecipeSummary:
        recipe = RecipeSummary(id=recipe_id, name=name, description=description)
        self._recipes[recipe_id] = (user_id, recipe)
        return recipe

    async def get_recipe(self, recipe_id: str, user_id: str) -> RecipeSummary | None:
        entry = self._recipes.get(recipe_id)
        if entry is None or entry[0] != user_id:
            return None
        return entry[1]

    async def list_recipes(self, user_id: str) -> list[RecipeSummary]:
        return [recipe for owner, recipe in self._recipes.values() if owner == user_id]
