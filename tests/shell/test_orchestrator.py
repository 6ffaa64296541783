"""Tests for the Orchestrator module.

Tests the coordination between functional core and imperative shell.
Uses mocks for the feed and Telegram clients and a real subscriber
store on a temporary file.
"""

import asyncio
from unittest.mock import Mock

import pytest
import requests

from src.core.categories import Category, feed_url
from src.core.config import Config
from src.core.subscriber import all_disabled, all_enabled
from src.orchestrator import CycleResult, DispatchResult, Orchestrator
from src.shell.subscriber_store import SubscriberStore
from src.shell.telegram_client import TelegramResponse


BIG_ONE = {
    "title": "M 6.1 - 20km S of Example",
    "updated": "2024-03-01T11:58:07.123Z",
    "link": "https://earthquake.usgs.gov/earthquakes/eventpage/us6000abcd",
}

SMALL_ONE = {
    "title": "M 1.3 - 5km E of Example",
    "updated": "2024-03-01T11:59:40.000Z",
    "link": "https://earthquake.usgs.gov/earthquakes/eventpage/ci4000xyz",
}


def _feeds(mapping):
    """Build a fetch_entries side effect from category -> entries/exception."""
    by_url = {feed_url(category): value for category, value in mapping.items()}

    def fetch_entries(url):
        value = by_url.get(url, [])
        if isinstance(value, Exception):
            raise value
        return value

    return fetch_entries


@pytest.fixture
def config():
    """Minimal configuration."""
    return Config(telegram_bot_token="123:abc")


@pytest.fixture
def store(tmp_path):
    """Empty, loaded subscriber store."""
    store = SubscriberStore(tmp_path / "subscribers.json")
    store.load()
    return store


@pytest.fixture
def feed_client():
    """Feed client with every feed empty."""
    client = Mock()
    client.fetch_entries.side_effect = _feeds({})
    return client


@pytest.fixture
def telegram_client():
    """Telegram client whose sends always succeed."""
    client = Mock()
    client.send_message.return_value = TelegramResponse(success=True, status_code=200)
    return client


@pytest.fixture
def orchestrator(config, store, feed_client, telegram_client):
    """Orchestrator wired to mocks."""
    return Orchestrator(
        config,
        store,
        feed_client=feed_client,
        telegram_client=telegram_client,
    )


def _sent_to(telegram_client):
    return [call.args[0] for call in telegram_client.send_message.call_args_list]


class TestCycleResult:
    """Tests for CycleResult."""

    def test_success_when_clean(self):
        """No errors and no failures is a success."""
        assert CycleResult().success is True

    def test_failure_makes_partial(self):
        """Any failed delivery marks the cycle unsuccessful."""
        result = CycleResult(messages_failed=[Mock(spec=DispatchResult)])
        assert result.success is False

    def test_summary(self):
        """Summary includes the counters."""
        result = CycleResult(categories_checked=5, events_found=2, duplicates_skipped=1)
        assert result.summary == (
            "Checked 5 categories, 2 events, 0 messages sent, 0 failed, 1 duplicates skipped"
        )


class TestBroadcastCycle:
    """Tests for process() without a chat scope."""

    def test_fetches_every_category(self, orchestrator, feed_client):
        """Broadcast cycles check all five feeds."""
        result = asyncio.run(orchestrator.process())

        assert result.categories_checked == 5
        assert feed_client.fetch_entries.call_count == 5

    def test_sends_to_opted_in_subscribers(self, orchestrator, store, feed_client, telegram_client):
        """Only subscribers who want the category receive it."""
        store.upsert("a", all_enabled())
        store.upsert("b", all_disabled())
        feed_client.fetch_entries.side_effect = _feeds({Category.M1PLUS: [SMALL_ONE]})

        result = asyncio.run(orchestrator.process())

        assert _sent_to(telegram_client) == ["a"]
        assert result.events_found == 1
        assert len(result.messages_sent) == 1
        assert result.success is True

    def test_same_event_in_two_categories_sent_once(
        self, orchestrator, store, feed_client, telegram_client,
    ):
        """Category overlap never double-notifies a chat."""
        store.upsert("a", all_enabled())
        feed_client.fetch_entries.side_effect = _feeds({
            Category.SIGNIFICANT: [BIG_ONE],
            Category.M4PLUS: [BIG_ONE],
            Category.ALL: [BIG_ONE],
        })

        result = asyncio.run(orchestrator.process())

        assert telegram_client.send_message.call_count == 1
        assert result.events_found == 3
        assert result.duplicates_skipped == 2

    def test_first_category_in_order_wins(self, orchestrator, store, feed_client, telegram_client):
        """The duplicate is attributed to the earliest category."""
        store.upsert("a", all_enabled())
        feed_client.fetch_entries.side_effect = _feeds({
            Category.SIGNIFICANT: [BIG_ONE],
            Category.M4PLUS: [BIG_ONE],
        })

        result = asyncio.run(orchestrator.process())

        assert result.messages_sent[0].event.category is Category.SIGNIFICANT
        text = telegram_client.send_message.call_args.args[1]
        assert "*Category:* Significant Earthquake" in text

    def test_only_latest_entry_is_dispatched(self, orchestrator, store, feed_client, telegram_client):
        """Older entries in the feed are ignored."""
        store.upsert("a", {Category.ALL: True})
        feed_client.fetch_entries.side_effect = _feeds({Category.ALL: [SMALL_ONE, BIG_ONE]})

        asyncio.run(orchestrator.process())

        assert telegram_client.send_message.call_count == 1
        assert "M 1.3" in telegram_client.send_message.call_args.args[1]

    def test_message_uses_markdown(self, orchestrator, store, feed_client, telegram_client):
        """Alerts are sent with Markdown parse mode."""
        store.upsert("a", all_enabled())
        feed_client.fetch_entries.side_effect = _feeds({Category.SIGNIFICANT: [BIG_ONE]})

        asyncio.run(orchestrator.process())

        assert telegram_client.send_message.call_args.kwargs == {"parse_mode": "Markdown"}

    def test_empty_feed_sends_nothing(self, orchestrator, store, telegram_client):
        """Zero entries is not an error."""
        store.upsert("a", all_enabled())

        result = asyncio.run(orchestrator.process())

        telegram_client.send_message.assert_not_called()
        assert result.events_found == 0
        assert result.errors == []

    def test_send_failure_is_isolated(self, orchestrator, store, feed_client, telegram_client):
        """One chat failing does not stop the others."""
        store.upsert("x", all_enabled())
        store.upsert("y", all_enabled())
        feed_client.fetch_entries.side_effect = _feeds({Category.SIGNIFICANT: [BIG_ONE]})

        def send(chat_id, text, parse_mode=None):
            if chat_id == "x":
                return TelegramResponse(success=False, status_code=403, error="blocked")
            return TelegramResponse(success=True, status_code=200)

        telegram_client.send_message.side_effect = send

        result = asyncio.run(orchestrator.process())

        assert [r.chat_id for r in result.messages_sent] == ["y"]
        assert [r.chat_id for r in result.messages_failed] == ["x"]
        assert result.messages_failed[0].error == "blocked"
        assert result.success is False

    def test_send_exception_is_isolated(self, orchestrator, store, feed_client, telegram_client):
        """Exceptions from a send become failed results."""
        store.upsert("x", all_enabled())
        store.upsert("y", all_enabled())
        feed_client.fetch_entries.side_effect = _feeds({Category.SIGNIFICANT: [BIG_ONE]})

        def send(chat_id, text, parse_mode=None):
            if chat_id == "x":
                raise RuntimeError("boom")
            return TelegramResponse(success=True, status_code=200)

        telegram_client.send_message.side_effect = send

        result = asyncio.run(orchestrator.process())

        assert [r.chat_id for r in result.messages_sent] == ["y"]
        assert result.messages_failed[0].error == "boom"

    def test_failed_send_is_not_marked(self, orchestrator, store, feed_client, telegram_client):
        """A failed delivery may be attempted again by a later category."""
        store.upsert("x", all_enabled())
        feed_client.fetch_entries.side_effect = _feeds({
            Category.SIGNIFICANT: [BIG_ONE],
            Category.M4PLUS: [BIG_ONE],
        })
        telegram_client.send_message.side_effect = [
            TelegramResponse(success=False, status_code=500, error="oops"),
            TelegramResponse(success=True, status_code=200),
        ]

        result = asyncio.run(orchestrator.process())

        assert telegram_client.send_message.call_count == 2
        assert len(result.messages_sent) == 1
        assert result.duplicates_skipped == 0

    def test_fetch_error_is_isolated(self, orchestrator, store, feed_client, telegram_client):
        """A broken feed does not stop other categories."""
        store.upsert("a", all_enabled())
        feed_client.fetch_entries.side_effect = _feeds({
            Category.SIGNIFICANT: requests.ConnectionError("down"),
            Category.M1PLUS: [SMALL_ONE],
        })

        result = asyncio.run(orchestrator.process())

        assert result.errors == ["Error processing significant feed: down"]
        assert len(result.messages_sent) == 1
        assert result.success is False

    def test_new_cycle_forgets_previous_sends(self, orchestrator, store, feed_client, telegram_client):
        """Deduplication does not carry over between cycles."""
        store.upsert("a", all_enabled())
        feed_client.fetch_entries.side_effect = _feeds({Category.SIGNIFICANT: [BIG_ONE]})

        asyncio.run(orchestrator.process())
        asyncio.run(orchestrator.process())

        assert telegram_client.send_message.call_count == 2


class TestScopedCycle:
    """Tests for process(chat_id)."""

    def test_unknown_chat_fetches_nothing(self, orchestrator, feed_client, telegram_client):
        """Unknown chats get nothing and trigger no fetches."""
        result = asyncio.run(orchestrator.process("nobody"))

        feed_client.fetch_entries.assert_not_called()
        telegram_client.send_message.assert_not_called()
        assert result.categories_checked == 0

    def test_skips_unwanted_categories(self, orchestrator, store, feed_client):
        """Only opted-in categories are fetched."""
        store.upsert("a", {
            Category.SIGNIFICANT: False,
            Category.M4PLUS: False,
            Category.M2PLUS: True,
        })

        result = asyncio.run(orchestrator.process("a"))

        urls = [call.args[0] for call in feed_client.fetch_entries.call_args_list]
        assert urls == [feed_url(Category.M2PLUS)]
        assert result.categories_checked == 1

    def test_sends_only_to_requesting_chat(self, orchestrator, store, feed_client, telegram_client):
        """Other subscribers are not notified by someone else's request."""
        store.upsert("a", all_enabled())
        store.upsert("b", all_enabled())
        feed_client.fetch_entries.side_effect = _feeds({Category.SIGNIFICANT: [BIG_ONE]})

        asyncio.run(orchestrator.process("a"))

        assert _sent_to(telegram_client) == ["a"]

    def test_custom_feed_base_url(self, store, feed_client, telegram_client):
        """Feeds are fetched under the configured base URL."""
        config = Config(telegram_bot_token="t", feed_base_url="http://localhost:9000/feeds/")
        store.upsert("a", {Category.SIGNIFICANT: True, Category.M4PLUS: False})
        orchestrator = Orchestrator(
            config,
            store,
            feed_client=feed_client,
            telegram_client=telegram_client,
        )

        asyncio.run(orchestrator.process("a"))

        feed_client.fetch_entries.assert_called_once_with(
            "http://localhost:9000/feeds/significant_hour.atom"
        )
