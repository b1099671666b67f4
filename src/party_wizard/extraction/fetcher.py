"""Fetching recipe pages and reducing them to readable text."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp
import bs4

from ..exceptions import ExtractionError

logger = logging.getLogger(__name__)

# Elements that never carry recipe text.
_NOISE_TAGS = ("script", "style", "noscript", "nav", "footer", "header", "svg", "form")


def html_to_text(html: str, max_chars: int) -> str:
    """Reduce an HTML page to its visible text.

    JSON-LD blocks are kept because recipe sites publish structured recipe
    data there.

    Args:
        html: Raw page markup
        max_chars: Truncation limit for the returned text

    Returns:
        Whitespace-normalized text
    """
    soup = bs4.BeautifulSoup(html, "html.parser")
    structured = [
        tag.get_text()
        for tag in soup.find_all("script", attrs={"type": "application/ld+json"})
    ]
    for tag in soup.find_all(_NOISE_TAGS):
        tag.decompose()
    body = " ".join(soup.get_text(separator=" ").split())
    text = "\n\n".join([*(s.strip() for s in structured if s.strip()), body])
    return text[:max_chars]


class PageFetcher:
    """Fetches recipe pages over HTTP.

    Args:
        timeout: Total request timeout in seconds
        max_chars: Extracted text is truncated to this length
    """

    def __init__(self, timeout: float = 15.0, max_chars: int = 20000):
        self.timeout = timeout
        self.max_chars = max_chars
        self._session: aiohttp.ClientSession | None = None

    async def initialize(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    "User-Agent": "party-wizard/0.1 (+recipe import)",
                    "Accept": "text/html,application/xhtml+xml",
                },
            )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch_text(self, url: str) -> str:
        """Fetch ``url`` and return its readable text.

        Raises:
            ExtractionError: On network errors, HTTP errors, or an empty page
        """
        await self.initialize()
        assert self._session is not None
        try:
            async with self._session.get(url) as response:
                if response.status >= 400:
                    raise ExtractionError(
                        f"Failed to fetch URL content (HTTP {response.status})",
                        context={"url": url, "status": response.status},
                    )
                html = await response.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExtractionError(
                f"Failed to fetch URL content: {e}", context={"url": url}
            ) from e

        text = html_to_text(html, self.max_chars)
        if not text.strip():
            raise ExtractionError(
                "Could not extract content from URL", context={"url": url}
            )
        logger.debug("Fetched %s (%d chars of text)", url, len(text))
        return text

    async def __aenter__(self) -> PageFetcher:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
