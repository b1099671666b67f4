"""Deterministic shortcuts for the menu step.

An image or a URL in the user's message is an unambiguous "add this recipe"
request, so :class:`WorkflowBranchSelector` handles it directly instead of
asking the model to choose an extraction tool. Duplicates are answered
without any extraction. When extraction fails the selector declines and the
turn continues in the model loop.
"""

from __future__ import annotations

import logging
from typing import Any

from .exceptions import ExtractionError
from .extraction.dedup import DedupTracker, find_url
from .history import hash_image_data, image_mime_type, image_payload, is_image_part, strip_data_url
from .steps import WizardStep
from .tools.context import TurnContext
from .tools.menu import (
    DUPLICATE_IMAGE_MESSAGE,
    DUPLICATE_URL_MESSAGE,
    absorb_recipe,
    describe_recipe,
)

logger = logging.getLogger(__name__)

FOLLOW_UP = "What else would you like to add, or are you ready to finalize the menu?"


def message_text(parts: list[dict[str, Any]]) -> str:
    return " ".join(p.get("text", "") for p in parts if p.get("type") == "text").strip()


class WorkflowBranchSelector:
    """Image and URL fast paths for the menu step."""

    async def try_handle(self, context: TurnContext, parts: list[dict[str, Any]]) -> bool:
        """Handle the user's message directly if it carries an image or a URL.

        Args:
            context: Turn-scoped working state
            parts: Parts of the incoming user message, images included

        Returns:
            True if the turn was answered; False to continue with the model loop
        """
        if context.step is not WizardStep.MENU:
            return False

        image = next((p for p in parts if is_image_part(p) and image_payload(p)), None)
        if image is not None:
            return await self._handle_image(context, image)

        url = find_url(message_text(parts))
        if url is not None:
            return await self._handle_url(context, url)

        return False

    async def _handle_image(self, context: TurnContext, part: dict[str, Any]) -> bool:
        payload = image_payload(part)
        image_hash = hash_image_data(payload)
        tracker = DedupTracker(context.session.ensure_menu_plan())
        if tracker.has_image(image_hash):
            logger.debug("Image %s already on the menu", image_hash[:12])
            await context.writer.write_text(DUPLICATE_IMAGE_MESSAGE)
            return True

        logger.debug("Image detected; extracting recipe directly")
        try:
            recipe = await context.services.extractor.extract_from_image(
                strip_data_url(payload), image_mime_type(part)
            )
        except ExtractionError as e:
            logger.warning("Image extraction failed, continuing with the model: %s", e)
            return False

        recipe.source_type = "photo"
        recipe.image_hash = image_hash
        message = (
            f'I extracted "{recipe.name}" from your image and added it to the menu! '
            f"{describe_recipe(recipe)}\n\n{FOLLOW_UP}"
        )
        await absorb_recipe(context, recipe, message)
        await context.writer.write_text(message)
        return True

    async def _handle_url(self, context: TurnContext, url: str) -> bool:
        tracker = DedupTracker(context.session.ensure_menu_plan())
        if tracker.has_url(url):
            logger.debug("URL %s already on the menu", url)
            await context.writer.write_text(DUPLICATE_URL_MESSAGE)
            return True

        logger.debug("URL detected; extracting recipe from %s", url)
        try:
            content = await context.services.fetcher.fetch_text(url)
            recipe = await context.services.extractor.extract_from_page(content)
        except ExtractionError as e:
            logger.warning("URL extraction failed for %s, continuing with the model: %s", url, e)
            return False

        recipe.source_type = "url"
        recipe.source_url = url
        message = (
            f'I imported "{recipe.name}" from that URL and added it to the menu! '
            f"{describe_recipe(recipe)}\n\n{FOLLOW_UP}"
        )
        await absorb_recipe(context, recipe, message)
        await context.writer.write_text(message)
        return True
