"""Canonical event model and feed entry normalization - Pure functions.

This module turns one raw feed entry (as produced by the feed parser)
into a typed CanonicalEvent. All functions are pure with no side effects.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from src.core.categories import Category


UNKNOWN_TITLE = "Unknown Earthquake"
UNKNOWN_MAGNITUDE = "N/A"

# "M 4.8 - ...", "M4.8", "Magnitude 4.8"
MAGNITUDE_PATTERN = re.compile(r"M(?:agnitude)?\s*(\d+\.\d+)", re.IGNORECASE)

# Raw keys tried in order for each field
_UPDATED_KEYS = ("updated", "pubDate", "published")
_GEO_POINT_KEYS = ("georss:point", "georss_point")


@dataclass(frozen=True)
class CanonicalEvent:
    """Normalized view of the most recent entry in a category feed.

    Attributes:
        category: Feed category the entry came from
        title: Entry title
        magnitude: Magnitude as text, "N/A" if it could not be resolved
        updated: Update timestamp as published by the feed
        link: Event page URL (may be empty)
    """
    category: Category
    title: str
    magnitude: str
    updated: str
    link: str = ""

    @property
    def event_id(self) -> str:
        """Composite key used for duplicate suppression within a cycle."""
        return f"{self.title}_{self.updated}"


def _href(value: Any) -> str:
    """Extract an href from a bare string or a link object."""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        if value.get("href"):
            return str(value["href"])
        # Attributes nested under "$"
        attrs = value.get("$")
        if isinstance(attrs, Mapping) and attrs.get("href"):
            return str(attrs["href"])
    return ""


def extract_link(entry: Mapping[str, Any]) -> str:
    """Find the first usable link in an entry.

    Pure function. Tolerates the link field being a string, a single
    link object or a list of link objects, and falls back to the
    parser's "links" list.

    Args:
        entry: Raw feed entry

    Returns:
        Link URL or empty string
    """
    for key in ("link", "links"):
        value = entry.get(key)
        if not value:
            continue

        if isinstance(value, Sequence) and not isinstance(value, str):
            for item in value:
                href = _href(item)
                if href:
                    return href
            continue

        href = _href(value)
        if href:
            return href

    return ""


def extract_updated(entry: Mapping[str, Any], now: datetime | None = None) -> str:
    """Get the entry's update time, falling back to publish time, then now.

    Pure function (given now).
    """
    for key in _UPDATED_KEYS:
        value = entry.get(key)
        if value:
            return str(value)

    now = now or datetime.now(timezone.utc)
    return now.isoformat()


def extract_magnitude(entry: Mapping[str, Any]) -> str:
    """Resolve the magnitude of an entry.

    Pure function. Tries, in order:
    1. Third space-delimited component of a geo point
    2. An explicit magnitude field
    3. "M 4.8" / "Magnitude 4.8" in the title

    Args:
        entry: Raw feed entry

    Returns:
        Magnitude as text, or "N/A"
    """
    for key in _GEO_POINT_KEYS:
        point = entry.get(key)
        if isinstance(point, str):
            parts = point.split()
            if len(parts) > 2:
                return parts[2]

    magnitude = entry.get("magnitude")
    if magnitude not in (None, ""):
        return str(magnitude)

    title = entry.get("title")
    if isinstance(title, str):
        match = MAGNITUDE_PATTERN.search(title)
        if match:
            return match.group(1)

    return UNKNOWN_MAGNITUDE


def normalize_entry(
    entry: Mapping[str, Any],
    category: Category,
    now: datetime | None = None,
) -> CanonicalEvent:
    """Build a CanonicalEvent from a raw feed entry.

    Pure function (given now).

    Args:
        entry: Raw feed entry
        category: Category the entry was fetched for
        now: Fetch time, used when the entry has no timestamp

    Returns:
        CanonicalEvent
    """
    title = entry.get("title") or UNKNOWN_TITLE

    return CanonicalEvent(
        category=category,
        title=str(title),
        magnitude=extract_magnitude(entry),
        updated=extract_updated(entry, now),
        link=extract_link(entry),
    )


def latest_event(
    entries: Sequence[Mapping[str, Any]],
    category: Category,
    now: datetime | None = None,
) -> CanonicalEvent | None:
    """Normalize the most recent entry of a feed.

    Pure function. Feeds list entries newest first; only the first one
    is considered per category per cycle.

    Returns:
        CanonicalEvent, or None if the feed has no entries
    """
    if not entries:
        return None
    return normalize_entry(entries[0], category, now)
