"""Recipe extraction, page fetching, dedup bookkeeping, and timeline generation."""

from .dedup import DedupTracker, find_url
from .fetcher import PageFetcher
from .recipes import RecipeExtractor
from .timeline import TimelineGenerator

__all__ = [
    "DedupTracker",
    "PageFetcher",
    "RecipeExtractor",
    "TimelineGenerator",
    "find_url",
]
