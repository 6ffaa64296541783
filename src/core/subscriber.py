"""Subscriber models and preference logic - Pure functions.

This module defines the subscriber record and all rules for building,
merging and (de)serializing preferences. Reading and writing the
subscribers file is handled by the imperative shell (subscriber store).
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from src.core.categories import Category


# Preferences for an identity that first appears through a toggle or an
# explicit upsert without all keys
NEW_SUBSCRIBER_DEFAULTS: dict[Category, bool] = {
    Category.SIGNIFICANT: True,
    Category.M4PLUS: True,
    Category.M2PLUS: False,
    Category.M1PLUS: False,
    Category.ALL: False,
}

# Keys accepted as the identity field when reading persisted records
_IDENTITY_KEYS = ("chat_id", "chatId", "identity")


def all_enabled() -> dict[Category, bool]:
    """Preferences with every category turned on."""
    return {category: True for category in Category}


def all_disabled() -> dict[Category, bool]:
    """Preferences with every category turned off."""
    return {category: False for category in Category}


@dataclass
class Subscriber:
    """A chat that receives earthquake notifications.

    Attributes:
        chat_id: Opaque chat identifier
        preferences: Category -> enabled, total over all categories
    """
    chat_id: str
    preferences: dict[Category, bool] = field(default_factory=all_disabled)

    def wants(self, category: Category) -> bool:
        """Returns True if this subscriber opted into the category."""
        return self.preferences.get(category, False)


def normalize_preferences(raw: Mapping[Any, Any] | None) -> dict[Category, bool]:
    """Build a total preference mapping from partial or untrusted data.

    Pure function. Missing or non-boolean values become False.

    Args:
        raw: Mapping keyed by Category or category identifier

    Returns:
        Mapping with every category present
    """
    raw = raw or {}
    result = {}
    for category in Category:
        value = raw.get(category, raw.get(category.value, False))
        result[category] = value if isinstance(value, bool) else False
    return result


def merge_preferences(
    current: Mapping[Category, bool],
    updates: Mapping[Category, bool],
) -> dict[Category, bool]:
    """Apply preference updates; categories not in updates are untouched.

    Pure function.
    """
    merged = dict(current)
    for category, value in updates.items():
        merged[Category(category)] = bool(value)
    return merged


def new_subscriber_preferences(
    overrides: Mapping[Category, bool] | None = None,
) -> dict[Category, bool]:
    """Preferences for a brand new subscriber.

    Pure function. Starts from NEW_SUBSCRIBER_DEFAULTS and applies overrides.
    """
    return merge_preferences(NEW_SUBSCRIBER_DEFAULTS, overrides or {})


def is_legacy_format(data: Any) -> bool:
    """Check if persisted data is the legacy flat list of chat IDs.

    Pure function. An empty list is not considered legacy.
    """
    return (
        isinstance(data, list)
        and len(data) > 0
        and all(isinstance(item, (str, int)) for item in data)
    )


def migrate_legacy(chat_ids: Iterable[Any]) -> list[Subscriber]:
    """Upgrade legacy chat IDs to subscribers with every category enabled.

    Pure function.
    """
    return dedupe_subscribers(
        Subscriber(chat_id=str(chat_id), preferences=all_enabled())
        for chat_id in chat_ids
    )


def _identity(record: Mapping[str, Any]) -> str | None:
    for key in _IDENTITY_KEYS:
        value = record.get(key)
        if value is not None and value != "":
            return str(value)
    return None


def parse_subscriber(record: Any) -> Subscriber | None:
    """Parse a single persisted record, or None if it has no identity.

    Pure function.
    """
    if not isinstance(record, Mapping):
        return None

    chat_id = _identity(record)
    if chat_id is None:
        return None

    preferences = record.get("preferences")
    if not isinstance(preferences, Mapping):
        preferences = {}

    return Subscriber(
        chat_id=chat_id,
        preferences=normalize_preferences(preferences),
    )


def dedupe_subscribers(subscribers: Iterable[Subscriber]) -> list[Subscriber]:
    """Drop repeated chat IDs, keeping the first occurrence and its order.

    Pure function.
    """
    seen: set[str] = set()
    result = []
    for subscriber in subscribers:
        if subscriber.chat_id in seen:
            continue
        seen.add(subscriber.chat_id)
        result.append(subscriber)
    return result


def parse_subscribers(data: Any) -> tuple[list[Subscriber], bool]:
    """Parse the persisted subscriber document.

    Pure function.

    Args:
        data: Decoded JSON document

    Returns:
        Tuple of (subscribers, migrated). migrated is True when the data
        was in the legacy flat-list shape and must be rewritten.

    Raises:
        ValueError: If the document is not a list
    """
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of subscribers, got {type(data).__name__}")

    if is_legacy_format(data):
        return migrate_legacy(data), True

    parsed = (parse_subscriber(record) for record in data)
    return dedupe_subscribers(s for s in parsed if s is not None), False


def serialize_subscriber(subscriber: Subscriber) -> dict[str, Any]:
    """Convert a subscriber to its persisted form.

    Pure function.
    """
    return {
        "chat_id": subscriber.chat_id,
        "preferences": {
            category.value: subscriber.wants(category)
            for category in Category
        },
    }


def serialize_subscribers(subscribers: Iterable[Subscriber]) -> list[dict[str, Any]]:
    """Convert subscribers to the persisted document, preserving order."""
    return [serialize_subscriber(s) for s in subscribers]


def subscribers_for_category(
    subscribers: Iterable[Subscriber],
    category: Category,
) -> list[Subscriber]:
    """Select subscribers who opted into a category.

    Pure function.
    """
    return [s for s in subscribers if s.wants(category)]
