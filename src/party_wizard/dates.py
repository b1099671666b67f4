"""Lenient parsing and display of party dates."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

FALLBACK_DAYS = 7

# Tried with the current year appended, for inputs like "March 15 7pm".
_YEARLESS_FORMATS = (
    "%B %d %I%p %Y",
    "%B %d %I:%M%p %Y",
    "%B %d %H:%M %Y",
    "%B %d %Y",
    "%b %d %I%p %Y",
    "%b %d %I:%M%p %Y",
    "%b %d %H:%M %Y",
    "%b %d %Y",
    "%A %B %d %I%p %Y",
    "%A %B %d %I:%M%p %Y",
    "%A %B %d %Y",
    "%m/%d %I%p %Y",
    "%m/%d %I:%M%p %Y",
    "%m/%d %H:%M %Y",
    "%m/%d %Y",
)

_ORDINAL = re.compile(r"(\d+)(st|nd|rd|th)\b", re.IGNORECASE)
_MERIDIEM_GAP = re.compile(r"(\d)\s+(am|pm)\b", re.IGNORECASE)


def _normalize(text: str) -> str:
    text = text.strip().replace(",", " ")
    text = re.sub(r"\bat\b", " ", text, flags=re.IGNORECASE)
    text = _ORDINAL.sub(r"\1", text)
    text = _MERIDIEM_GAP.sub(r"\1\2", text)
    return " ".join(text.split())


def parse_party_datetime(text: str, now: datetime) -> tuple[datetime, bool]:
    """Parse a party date and time as leniently as possible.

    ISO 8601 is tried first, then common month/day formats with the current
    year appended. If nothing matches, the party is placed one week from
    ``now`` and the fallback is logged.

    Args:
        text: Date/time as given by the model
        now: Reference time

    Returns:
        Tuple of the parsed datetime and whether it was a fallback guess
    """
    candidate = text.strip()
    try:
        return datetime.fromisoformat(candidate.replace("Z", "+00:00")), False
    except ValueError:
        pass

    normalized = _normalize(candidate)
    with_year = f"{normalized} {now.year}"
    for fmt in _YEARLESS_FORMATS:
        try:
            return datetime.strptime(with_year, fmt), False
        except ValueError:
            continue

    fallback = (now + timedelta(days=FALLBACK_DAYS)).replace(second=0, microsecond=0)
    logger.warning(
        "Could not parse party date %r; using %s instead", text, fallback.isoformat()
    )
    return fallback, True


def format_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {meridiem}"


def format_party_datetime(value: datetime) -> str:
    """Format as ``Friday, March 15, 2024 at 7:00 PM``."""
    return (
        f"{value.strftime('%A')}, {value.strftime('%B')} {value.day}, {value.year}"
        f" at {format_time(value)}"
    )
