"""Orchestrator - Wires Functional Core and Imperative Shell.

This module runs the reconciliation cycle: fetch the latest entry of
each category feed, normalize it, and deliver it to the subscribers who
opted into that category without sending any event twice to the same
chat in one cycle.

Shell clients are blocking; they run in worker threads via
asyncio.to_thread so cycles interleave cooperatively on one event loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from src.core.categories import Category, feed_url
from src.core.config import Config
from src.core.dedup import DispatchTracker, pending_recipients
from src.core.event import CanonicalEvent, latest_event
from src.core.formatter import PARSE_MODE, format_event_message
from src.core.subscriber import Subscriber, subscribers_for_category
from src.shell.feed_client import FeedClient
from src.shell.subscriber_store import SubscriberStore
from src.shell.telegram_client import TelegramClient


logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Result of delivering one event to one chat.

    Attributes:
        chat_id: Recipient chat
        event: The event that was sent
        success: Whether the message was delivered
        error: Error message if failed
    """
    chat_id: str
    event: CanonicalEvent
    success: bool
    error: str | None = None


@dataclass
class CycleResult:
    """Result of a complete reconciliation cycle.

    Attributes:
        categories_checked: Categories whose feed was fetched
        events_found: Categories that yielded an event
        messages_sent: Successful deliveries
        messages_failed: Failed deliveries
        duplicates_skipped: Deliveries suppressed by the dispatch tracker
        errors: Per-category fetch/parse errors
    """
    categories_checked: int = 0
    events_found: int = 0
    messages_sent: list[DispatchResult] = field(default_factory=list)
    messages_failed: list[DispatchResult] = field(default_factory=list)
    duplicates_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Returns True if every category and delivery succeeded."""
        return not self.errors and not self.messages_failed

    @property
    def summary(self) -> str:
        """Human-readable summary of the cycle."""
        return (
            f"Checked {self.categories_checked} categories, "
            f"{self.events_found} events, "
            f"{len(self.messages_sent)} messages sent, "
            f"{len(self.messages_failed)} failed, "
            f"{self.duplicates_skipped} duplicates skipped"
        )


class Orchestrator:
    """Coordinates feed reconciliation and notification dispatch.

    This class wires together:
    - Subscriber store (who wants which category)
    - Feed client (fetches and parses category feeds)
    - Core functions (normalization, dedup, formatting)
    - Telegram client (delivers messages)
    """

    def __init__(
        self,
        config: Config,
        store: SubscriberStore,
        feed_client: FeedClient | None = None,
        telegram_client: TelegramClient | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            config: Application configuration
            store: Loaded subscriber store
            feed_client: Feed client (created if not provided)
            telegram_client: Telegram client (created if not provided)
        """
        self.config = config
        self.store = store
        self.feed_client = feed_client or FeedClient(
            timeout=config.request_timeout_seconds,
        )
        self.telegram_client = telegram_client or TelegramClient(
            config.telegram_bot_token,
            timeout=config.request_timeout_seconds,
        )

    def _categories_for(self, chat_id: str | None) -> list[Category]:
        """Categories worth fetching this cycle.

        Scoped requests skip categories the chat has not opted into, and
        everything for unknown chats.
        """
        if chat_id is None:
            return list(Category)

        subscriber = self.store.find(chat_id)
        if subscriber is None:
            logger.debug("Skipping all categories for unknown chat %s", chat_id)
            return []

        categories = []
        for category in Category:
            if subscriber.wants(category):
                categories.append(category)
            else:
                logger.debug(
                    "Skipping %s for %s - not subscribed to this category",
                    category.value,
                    chat_id,
                )
        return categories

    def _recipients(self, category: Category, chat_id: str | None) -> list[Subscriber]:
        """Subscribers who should receive this category's event."""
        if chat_id is None:
            return subscribers_for_category(self.store.subscribers, category)

        subscriber = self.store.find(chat_id)
        if subscriber is None or not subscriber.wants(category):
            return []
        return [subscriber]

    async def _fetch_category(self, category: Category) -> CanonicalEvent | None:
        """Fetch a category feed and normalize its most recent entry.

        Raises:
            Exception: Any fetch or parse failure, isolated by the caller
        """
        url = feed_url(category, self.config.feed_base_url)
        logger.debug("Processing feed: %s", category.value)

        entries = await asyncio.to_thread(self.feed_client.fetch_entries, url)
        event = latest_event(entries, category)

        if event is None:
            logger.debug("No earthquake entries found for %s", category.value)
        return event

    async def _send(self, chat_id: str, event: CanonicalEvent, text: str) -> DispatchResult:
        response = await asyncio.to_thread(
            self.telegram_client.send_message,
            chat_id,
            text,
            parse_mode=PARSE_MODE,
        )
        return DispatchResult(
            chat_id=chat_id,
            event=event,
            success=response.success,
            error=response.error,
        )

    async def _dispatch(
        self,
        event: CanonicalEvent,
        tracker: DispatchTracker,
        result: CycleResult,
        chat_id: str | None = None,
    ) -> None:
        """Deliver an event to every eligible chat not yet sent it.

        Deliveries are settled independently: one chat's failure never
        blocks the others, and failures are not retried this cycle.
        """
        candidates = [s.chat_id for s in self._recipients(event.category, chat_id)]
        due, duplicates = pending_recipients(candidates, event, tracker)

        for duplicate in duplicates:
            logger.debug(
                "Skipping duplicate earthquake %s for chat %s",
                event.event_id,
                duplicate,
            )
        result.duplicates_skipped += len(duplicates)

        if not due:
            return

        text = format_event_message(event)
        outcomes = await asyncio.gather(
            *(self._send(recipient, event, text) for recipient in due),
            return_exceptions=True,
        )

        for recipient, outcome in zip(due, outcomes):
            if isinstance(outcome, BaseException):
                outcome = DispatchResult(
                    chat_id=recipient,
                    event=event,
                    success=False,
                    error=str(outcome) or type(outcome).__name__,
                )

            if outcome.success:
                tracker.mark_sent(recipient, event.event_id)
                result.messages_sent.append(outcome)
                logger.info("Sent %s notification to %s", event.category.value, recipient)
            else:
                result.messages_failed.append(outcome)
                logger.error(
                    "Failed to send %s notification to %s: %s",
                    event.category.value,
                    recipient,
                    outcome.error,
                )

    async def process(self, chat_id: str | None = None) -> CycleResult:
        """Run one reconciliation cycle.

        This is the main entry point that:
        1. Selects the categories to check (all, or a chat's preferences)
        2. Fetches and normalizes each category feed independently
        3. Dispatches each category's event in category order
        4. Suppresses repeat deliveries with a cycle-scoped tracker

        Args:
            chat_id: Restrict the cycle to one chat (on-demand request)

        Returns:
            CycleResult with details of what happened

        Raises:
            Exception: Unexpected failures outside per-category and
                per-delivery isolation
        """
        logger.info("Fetching earthquake data...")

        result = CycleResult()
        tracker = DispatchTracker()

        try:
            categories = self._categories_for(chat_id)
            result.categories_checked = len(categories)

            outcomes = await asyncio.gather(
                *(self._fetch_category(c) for c in categories),
                return_exceptions=True,
            )

            for category, outcome in zip(categories, outcomes):
                if isinstance(outcome, BaseException):
                    error_msg = f"Error processing {category.value} feed: {outcome}"
                    logger.error(error_msg)
                    result.errors.append(error_msg)
                    continue

                if outcome is None:
                    continue

                result.events_found += 1
                await self._dispatch(outcome, tracker, result, chat_id)

        except Exception:
            logger.exception("Error in reconciliation cycle")
            raise

        logger.info("Completed: %s", result.summary)
        return result
