"""Recipe extraction and generation backed by a language model.

Three entry points share one JSON contract:

- :meth:`RecipeExtractor.extract_from_image` - vision extraction from a photo
- :meth:`RecipeExtractor.extract_from_page` - extraction from fetched page text
- :meth:`RecipeExtractor.generate_idea` - a new recipe from a description

The model is asked for a JSON object shaped like::

    {
      "name": "Lemon Tart",
      "description": "...",
      "ingredients": [{"amount": "2", "unit": "cups", "ingredient": "flour", "notes": null}],
      "instructions": [{"step": 1, "description": "..."}],
      "prepTimeMinutes": 20,
      "cookTimeMinutes": 35,
      "servings": 8,
      "tags": ["dessert"]
    }

Anything that cannot be turned into a :class:`~party_wizard.models.NewRecipe`
raises :class:`~party_wizard.exceptions.ExtractionError`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from ..exceptions import ExtractionError, ModelError, ValidationError
from ..llm.base import AsyncLLMProvider, LLMMessage
from ..models import Ingredient, Instruction, NewRecipe

logger = logging.getLogger(__name__)

RECIPE_JSON_INSTRUCTIONS = """Respond with a single JSON object with these fields:
- name (string)
- description (string or null)
- ingredients (array of objects with amount, unit, ingredient, notes; amount and unit may be null)
- instructions (array of objects with step (number) and description)
- prepTimeMinutes, cookTimeMinutes, servings (numbers or null)
- tags (array of strings, e.g. vegetarian, gluten-free)
If there is no recipe in the input, respond with {"error": "no recipe found"}."""

IMAGE_PROMPT = (
    "Extract the recipe shown in this image. Parse ingredients with "
    "amount/unit/name separated."
)

PAGE_PROMPT = (
    "Extract the recipe from this webpage. Parse ingredients with "
    "amount/unit/name separated.\n\n{content}"
)

IDEA_PROMPT = """Create a detailed recipe for: {description}

Include:
- A clear, appetizing name
- Complete ingredient list with amounts
- Step-by-step instructions
- Prep and cook times
- Number of servings

Make the recipe practical and achievable for a home cook."""


def parse_json_object(content: str) -> Any:
    """Parse model output as JSON, tolerating a surrounding code fence."""
    text = content.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionError(
            f"Model returned invalid JSON: {e}", context={"content": content[:200]}
        ) from e


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def recipe_from_payload(data: Any, source_type: str) -> NewRecipe:
    """Build a NewRecipe from the model's JSON payload.

    Args:
        data: Decoded JSON from the model
        source_type: ``url``, ``photo``, or ``ai``

    Returns:
        The recipe

    Raises:
        ExtractionError: If the payload holds no usable recipe
    """
    if not isinstance(data, dict) or data.get("error") or not data.get("name"):
        raise ExtractionError("No recipe found", context={"payload": str(data)[:200]})

    ingredients = []
    for item in data.get("ingredients") or []:
        if isinstance(item, str):
            ingredients.append(Ingredient(ingredient=item))
        elif isinstance(item, dict) and item.get("ingredient"):
            ingredients.append(Ingredient.from_dict(item))

    instructions = []
    for position, item in enumerate(data.get("instructions") or [], start=1):
        if isinstance(item, str):
            instructions.append(Instruction(step=position, description=item))
        elif isinstance(item, dict) and item.get("description"):
            instructions.append(
                Instruction(
                    step=_optional_int(item.get("step")) or position,
                    description=str(item["description"]),
                )
            )

    try:
        return NewRecipe(
            name=str(data["name"]).strip(),
            source_type=source_type,
            description=data.get("description"),
            ingredients=ingredients,
            instructions=instructions,
            prep_time_minutes=_optional_int(data.get("prepTimeMinutes")),
            cook_time_minutes=_optional_int(data.get("cookTimeMinutes")),
            servings=_optional_int(data.get("servings")),
            tags=[str(t) for t in data.get("tags") or []],
        )
    except ValidationError as e:
        raise ExtractionError(str(e), context=e.context) from e


class RecipeExtractor:
    """Turns images, page text, and descriptions into recipes.

    Args:
        provider: Model used for extraction (must support JSON output; vision
            for images)
    """

    def __init__(self, provider: AsyncLLMProvider):
        self.provider = provider

    async def _extract(self, message: LLMMessage, source_type: str) -> NewRecipe:
        messages = [
            LLMMessage(role="system", content=RECIPE_JSON_INSTRUCTIONS),
            message,
        ]
        try:
            response = await self.provider.complete(messages, response_format="json")
        except ModelError as e:
            raise ExtractionError(f"Recipe extraction failed: {e}") from e

        recipe = recipe_from_payload(parse_json_object(response.content), source_type)
        logger.debug(
            "Extracted recipe %r (%d ingredients, %d steps) from %s",
            recipe.name,
            len(recipe.ingredients),
            len(recipe.instructions),
            source_type,
        )
        return recipe

    async def extract_from_image(self, image_base64: str, mime_type: str) -> NewRecipe:
        return await self._extract(
            LLMMessage(role="user", content=IMAGE_PROMPT, images=[(mime_type, image_base64)]),
            "photo",
        )

    async def extract_from_page(self, content: str) -> NewRecipe:
        if not content.strip():
            raise ExtractionError("Could not extract content from URL")
        return await self._extract(
            LLMMessage(role="user", content=PAGE_PROMPT.format(content=content)),
            "url",
        )

    async def generate_idea(self, description: str) -> NewRecipe:
        return await self._extract(
            LLMMessage(role="user", content=IDEA_PROMPT.format(description=description)),
            "ai",
        )
