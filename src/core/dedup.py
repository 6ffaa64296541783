"""Deduplication logic - Cycle-scoped dispatch tracking.

This module tracks which events have been delivered to which chats
during a single reconciliation cycle. A fresh tracker is created for
every cycle; nothing here is persisted.
"""

from src.core.event import CanonicalEvent


class DispatchTracker:
    """Per-cycle record of event IDs already sent to each chat.

    Guarantees that within one cycle the same event is never delivered
    twice to the same chat, even when several categories resolve to the
    same underlying event.
    """

    def __init__(self) -> None:
        self._sent: dict[str, set[str]] = {}

    def should_send(self, chat_id: str, event_id: str) -> bool:
        """Returns True if event_id has not been sent to chat_id yet."""
        return event_id not in self._sent.get(chat_id, set())

    def mark_sent(self, chat_id: str, event_id: str) -> None:
        """Record a successful delivery."""
        self._sent.setdefault(chat_id, set()).add(event_id)

    def sent_ids(self, chat_id: str) -> frozenset[str]:
        """Event IDs delivered to a chat so far in this cycle."""
        return frozenset(self._sent.get(chat_id, set()))

    @property
    def total_sent(self) -> int:
        """Number of deliveries recorded across all chats."""
        return sum(len(ids) for ids in self._sent.values())


def pending_recipients(
    chat_ids: list[str],
    event: CanonicalEvent,
    tracker: DispatchTracker,
) -> tuple[list[str], list[str]]:
    """Split recipients into those still due the event and duplicates.

    Pure function (reads tracker only).

    Args:
        chat_ids: Candidate recipients, in order
        event: Event about to be dispatched
        tracker: Current cycle's tracker

    Returns:
        Tuple of (chat IDs to send to, chat IDs already sent this event)
    """
    due = []
    duplicates = []
    for chat_id in chat_ids:
        if tracker.should_send(chat_id, event.event_id):
            due.append(chat_id)
        else:
            duplicates.append(chat_id)
    return due, duplicates
