"""Subscriber Store - Imperative Shell.

This module persists subscriber preferences to a JSON file. The whole
file is rewritten on every mutation; there are no partial updates.

All I/O is contained here; preference rules are in the core module.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Mapping

from src.core.categories import Category
from src.core.subscriber import (
    Subscriber,
    all_enabled,
    merge_preferences,
    new_subscriber_preferences,
    parse_subscriber,
    parse_subscribers,
    serialize_subscribers,
)


logger = logging.getLogger(__name__)


# Default location of the subscribers file
DEFAULT_PATH = "data/subscribers.json"


class SubscriberStore:
    """Owns the subscriber collection and its file.

    This is part of the imperative shell - it handles file I/O.

    File structure:
    [
        {
            "chat_id": "12345",
            "preferences": {"significant": true, "m4plus": true, ...}
        },
        ...
    ]

    Mutations are synchronous, so under cooperative scheduling no other
    coroutine observes a half-applied change. Concurrent writers still
    race on the file itself (last write wins).
    """

    def __init__(
        self,
        path: str | Path = DEFAULT_PATH,
        default_chat_id: str = "",
        on_change: Callable[[int], None] | None = None,
    ) -> None:
        """Initialize subscriber store.

        Args:
            path: JSON file to persist subscribers to
            default_chat_id: Chat subscribed to everything on first run
            on_change: Called with the subscriber count after each mutation
        """
        self.path = Path(path)
        self.default_chat_id = default_chat_id
        self.on_change = on_change
        self._subscribers: list[Subscriber] = []

    @property
    def subscribers(self) -> list[Subscriber]:
        """Snapshot of subscribers in insertion order."""
        return list(self._subscribers)

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, chat_id: object) -> bool:
        return self.find(str(chat_id)) is not None

    def _default_subscribers(self) -> list[Subscriber]:
        if not self.default_chat_id:
            logger.warning("No default chat configured, starting with no subscribers")
            return []
        return [Subscriber(chat_id=self.default_chat_id, preferences=all_enabled())]

    def load(self) -> list[Subscriber]:
        """Load subscribers from disk.

        This method performs file I/O.

        - Missing file: start with the default subscriber and persist it.
        - Legacy flat list of chat IDs: migrate and persist immediately.
        - Unreadable or invalid file: fall back to the default subscriber
          without overwriting the file.

        Returns:
            Loaded subscribers
        """
        logger.info("Loading subscribers from %s", self.path)

        if not self.path.exists():
            self._subscribers = self._default_subscribers()
            self.persist()
            logger.info("Created new subscribers file with the default subscriber")
            return self.subscribers

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            subscribers, migrated = parse_subscribers(data)
        except (OSError, ValueError) as e:
            logger.error("Error loading subscribers, starting with default: %s", str(e))
            self._subscribers = self._default_subscribers()
            return self.subscribers

        if not migrated:
            for record in data:
                if parse_subscriber(record) is None:
                    logger.warning("Skipping subscriber record without a chat ID: %r", record)

        self._subscribers = subscribers

        if migrated:
            logger.info("Migrating subscribers from legacy format to preferences format")
            self.persist()

        logger.info("Loaded %d subscribers from storage", len(self._subscribers))
        return self.subscribers

    def persist(self) -> bool:
        """Write the full subscriber list to disk.

        This method performs file I/O. The file is replaced atomically.

        Returns:
            True if the write was successful
        """
        data = serialize_subscribers(self._subscribers)
        saved = False

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                os.unlink(tmp_path)
                raise

            logger.info("Saved %d subscribers to storage", len(data))
            saved = True

        except OSError as e:
            logger.error("Error saving subscribers: %s", str(e))

        if self.on_change is not None:
            self.on_change(len(self._subscribers))

        return saved

    def find(self, chat_id: str) -> Subscriber | None:
        """Look up a subscriber by chat ID without mutating anything."""
        for subscriber in self._subscribers:
            if subscriber.chat_id == chat_id:
                return subscriber
        return None

    def upsert(
        self,
        chat_id: str,
        preferences: Mapping[Category, bool] | None = None,
    ) -> Subscriber:
        """Add a subscriber or update an existing one's preferences.

        Existing subscribers get only the given keys merged in. New
        subscribers start from the new-subscriber defaults with the given
        keys applied. Always persists.

        Args:
            chat_id: Chat identifier
            preferences: Partial preferences to apply

        Returns:
            The stored subscriber
        """
        updates = preferences or {}
        existing = self.find(chat_id)

        if existing is not None:
            subscriber = Subscriber(
                chat_id=chat_id,
                preferences=merge_preferences(existing.preferences, updates),
            )
            index = self._subscribers.index(existing)
            self._subscribers[index] = subscriber
        else:
            subscriber = Subscriber(
                chat_id=chat_id,
                preferences=new_subscriber_preferences(updates),
            )
            self._subscribers.append(subscriber)
            logger.info("Added subscriber %s", chat_id)

        self.persist()
        return subscriber

    def remove(self, chat_id: str) -> bool:
        """Delete a subscriber entirely. Always persists.

        Returns:
            True if the subscriber existed
        """
        before = len(self._subscribers)
        self._subscribers = [s for s in self._subscribers if s.chat_id != chat_id]
        removed = len(self._subscribers) < before

        if removed:
            logger.info("Removed subscriber %s", chat_id)

        self.persist()
        return removed
