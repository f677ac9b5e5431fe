"""Conversions from provider field formats into catalog values.

Every helper is pure. Parse failures are resolved through explicit fallback
policies so callers (and tests) can pick the behaviour they need.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

MIN_RATING = 0.0
MAX_RATING = 10.0
DEFAULT_GENRE = "Unknown"

_RATING_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)", re.ASCII)

_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y/%m/%d",
    "%b/%d/%Y",
    "%B/%d/%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %B %Y",
    "%Y-%m",
    "%Y",
)


class DateFallback(str, Enum):
    """What to do when a provider date cannot be parsed."""

    USE_NOW = "use_now"
    RAISE = "raise"


class RatingFallback(str, Enum):
    """What to do when a provider rating cannot be parsed."""

    KEEP_DEFAULT = "keep_default"
    RAISE = "raise"


def parse_start_date(
    value: str | None,
    *,
    now: datetime,
    on_failure: DateFallback = DateFallback.USE_NOW,
) -> datetime:
    """Parse a provider date string, falling back to ``now`` by default."""

    text = (value or "").strip()
    if text:
        parsed = _parse_date_text(text)
        if parsed is not None:
            return parsed
    if on_failure is DateFallback.RAISE:
        raise ValueError(f"Unrecognised date value: {value!r}")
    return now


def _parse_date_text(text: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is not None:
        # Catalog timestamps are naive UTC.
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def clamp_rating(value: float) -> float:
    """Clamp a rating into the catalog's 0-10 range."""

    return max(MIN_RATING, min(MAX_RATING, value))


def parse_rating(
    value: str | float | None,
    *,
    default: float | None = None,
    on_failure: RatingFallback = RatingFallback.KEEP_DEFAULT,
) -> float | None:
    """Return the clamped rating, or ``default`` when ``value`` is not a number."""

    number: float | None = None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if math.isfinite(value):
            number = float(value)
    elif isinstance(value, str) and _RATING_RE.fullmatch(value.strip()):
        number = float(value.strip())
    if number is None:
        if on_failure is RatingFallback.RAISE:
            raise ValueError(f"Unrecognised rating value: {value!r}")
        return default
    return clamp_rating(number)


def default_genres(genres: Iterable[str] | None) -> list[str]:
    """Return the cleaned genre list, or a single placeholder when empty."""

    cleaned: list[str] = []
    for genre in genres or ():
        name = str(genre).strip()
        if name and name not in cleaned:
            cleaned.append(name)
    if not cleaned:
        return [DEFAULT_GENRE]
    return cleaned
