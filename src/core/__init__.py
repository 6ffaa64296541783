"""Functional Core - Pure functions with no side effects.

This module contains all business logic as pure functions:
- Feed categories
- Subscriber preferences
- Feed entry normalization
- Cycle-scoped deduplication
- Message formatting
- Chat command parsing

All functions here are deterministic and have no I/O.
"""

from src.core.categories import Category, feed_url
from src.core.subscriber import Subscriber, parse_subscribers, subscribers_for_category
from src.core.event import CanonicalEvent, normalize_entry, latest_event
from src.core.dedup import DispatchTracker
from src.core.formatter import format_event_message
from src.core.commands import Command, parse_message, parse_callback

__all__ = [
    # Categories
    "Category",
    "feed_url",
    # Subscribers
    "Subscriber",
    "parse_subscribers",
    "subscribers_for_category",
    # Events
    "CanonicalEvent",
    "normalize_entry",
    "latest_event",
    # Dedup
    "DispatchTracker",
    # Formatter
    "format_event_message",
    # Commands
    "Command",
    "parse_message",
    "parse_callback",
]
