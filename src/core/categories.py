"""Feed categories - Pure data.

The five USGS summary feeds subscribers can opt into. The enum order is
the order categories are processed in every cycle.
"""

from enum import Enum


# USGS real-time summary feeds (Atom)
USGS_FEED_BASE = "https://earthquake.usgs.gov/earthquakes/feed/v1.0/summary"


class Category(str, Enum):
    """Magnitude-based feed class a subscriber can toggle independently."""

    SIGNIFICANT = "significant"
    M4PLUS = "m4plus"
    M2PLUS = "m2plus"
    M1PLUS = "m1plus"
    ALL = "all"


FEED_FILES: dict[Category, str] = {
    Category.SIGNIFICANT: "significant_hour.atom",
    Category.M4PLUS: "4.5_hour.atom",
    Category.M2PLUS: "2.5_hour.atom",
    Category.M1PLUS: "1.0_hour.atom",
    Category.ALL: "all_hour.atom",
}

DISPLAY_NAMES: dict[Category, str] = {
    Category.SIGNIFICANT: "Significant Earthquake",
    Category.M4PLUS: "M4.5+ Earthquake",
    Category.M2PLUS: "M2.5+ Earthquake",
    Category.M1PLUS: "M1.0+ Earthquake",
    Category.ALL: "All Earthquakes",
}

# Labels for the inline toggle keyboard
BUTTON_LABELS: dict[Category, str] = {
    Category.SIGNIFICANT: "Significant (M6.0+)",
    Category.M4PLUS: "Strong (M4.5+)",
    Category.M2PLUS: "Moderate (M2.5+)",
    Category.M1PLUS: "Minor (M1.0+)",
    Category.ALL: "All Events",
}

# Phrases used in status and toggle replies
DESCRIPTIONS: dict[Category, str] = {
    Category.SIGNIFICANT: "significant earthquakes",
    Category.M4PLUS: "earthquakes of magnitude 4.5+",
    Category.M2PLUS: "earthquakes of magnitude 2.5+",
    Category.M1PLUS: "earthquakes of magnitude 1.0+",
    Category.ALL: "all earthquakes",
}


def feed_url(category: Category, base_url: str = USGS_FEED_BASE) -> str:
    """Build the feed URL for a category.

    Pure function.

    Args:
        category: Feed category
        base_url: Base URL the feed files live under

    Returns:
        Full feed URL
    """
    return f"{base_url.rstrip('/')}/{FEED_FILES[category]}"


def parse_category(value: str) -> Category | None:
    """Look up a category by its identifier, or None if unknown."""
    try:
        return Category(value)
    except ValueError:
        return None
