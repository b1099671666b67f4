"""Duplicate suppression for menu imports.

The menu plan's ``processed_urls`` and ``processed_image_hashes`` lists record
every external resource already absorbed into ``new_recipes``. Every recipe
with a ``source_url`` has that URL in ``processed_urls`` and every recipe with
an ``image_hash`` has that hash in ``processed_image_hashes``; removing a
recipe retracts its entry.
"""

from __future__ import annotations

import re

from ..models import MenuPlan, NewRecipe

URL_PATTERN = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+")
_TRAILING_PUNCTUATION = ")]}>.,!?;:'\""


def find_url(text: str) -> str | None:
    """Return the first http(s) URL in ``text`` without trailing punctuation."""
    match = URL_PATTERN.search(text or "")
    if match is None:
        return None
    url = match.group(0).rstrip(_TRAILING_PUNCTUATION)
    return url or None


class DedupTracker:
    """View over a menu plan's dedup lists.

    Args:
        menu_plan: The working menu plan; mutated in place
    """

    def __init__(self, menu_plan: MenuPlan):
        self.menu_plan = menu_plan

    def has_url(self, url: str) -> bool:
        return url in self.menu_plan.processed_urls

    def has_image(self, image_hash: str) -> bool:
        return image_hash in self.menu_plan.processed_image_hashes

    def record(self, recipe: NewRecipe) -> None:
        """Record the recipe's source so it cannot be imported twice."""
        if recipe.source_url and not self.has_url(recipe.source_url):
            self.menu_plan.processed_urls.append(recipe.source_url)
        if recipe.image_hash and not self.has_image(recipe.image_hash):
            self.menu_plan.processed_image_hashes.append(recipe.image_hash)

    def retract(self, recipe: NewRecipe) -> None:
        """Forget the recipe's source so it may be imported again."""
        if recipe.source_url and self.has_url(recipe.source_url):
            self.menu_plan.processed_urls.remove(recipe.source_url)
        if recipe.image_hash and self.has_image(recipe.image_hash):
            self.menu_plan.processed_image_hashes.remove(recipe.image_hash)

    def add_recipe(self, recipe: NewRecipe) -> None:
        self.menu_plan.new_recipes.append(recipe)
        self.record(recipe)

    def remove_recipe(self, index: int) -> NewRecipe:
        recipe = self.menu_plan.new_recipes.pop(index)
        self.retract(recipe)
        return recipe
