"""Chat Command Handler - Handles incoming Telegram updates.

Turns user commands, menu buttons and inline toggles into subscriber
store changes and replies. Part of the imperative shell - it performs
chat I/O through the Telegram client.
"""

import asyncio
import logging
from typing import Any

from src.core.categories import Category
from src.core.commands import Action, Command, parse_callback, parse_message
from src.core.formatter import (
    CUSTOMIZE_TEXT,
    LATEST_DONE_TEXT,
    LATEST_FAILED_TEXT,
    LATEST_FETCHING_TEXT,
    PARSE_MODE,
    SUBSCRIBED_TEXT,
    customize_keyboard,
    format_latest_requires_subscription,
    format_not_subscribed,
    format_status,
    format_toggle_ack,
    format_toggle_reply,
    format_unsubscribed,
    format_welcome,
    main_keyboard,
)
from src.core.subscriber import Subscriber, all_enabled
from src.orchestrator import Orchestrator
from src.shell.subscriber_store import SubscriberStore
from src.shell.telegram_client import TelegramClient


logger = logging.getLogger(__name__)


# Seconds to wait before polling again after getUpdates fails
POLL_RETRY_DELAY = 5


class CommandHandler:
    """Dispatches chat commands to store updates and replies."""

    def __init__(
        self,
        store: SubscriberStore,
        telegram_client: TelegramClient,
        orchestrator: Orchestrator,
        interval_minutes: int = 60,
    ) -> None:
        self.store = store
        self.telegram_client = telegram_client
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes
        self._tasks: set[asyncio.Task] = set()

    async def _reply(
        self,
        chat_id: str,
        text: str,
        command: Command | None = None,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> None:
        if reply_markup is None and command is not None and command.from_menu:
            reply_markup = main_keyboard()

        response = await asyncio.to_thread(
            self.telegram_client.send_message,
            chat_id,
            text,
            parse_mode=parse_mode,
            reply_markup=reply_markup,
        )
        if not response.success:
            logger.warning("Failed to reply to chat %s: %s", chat_id, response.error)

    def _toggle(self, chat_id: str, category: Category) -> Subscriber:
        """Flip one category; unknown chats are created with defaults."""
        current = self.store.find(chat_id)
        enabled = not (current.wants(category) if current else False)
        return self.store.upsert(chat_id, {category: enabled})

    async def handle_command(self, chat_id: str, command: Command) -> None:
        """Execute a parsed message command for a chat."""
        logger.info("Handling %s from chat %s", command.action.value, chat_id)

        if command.action is Action.START:
            await self._reply(
                chat_id,
                format_welcome(self.interval_minutes),
                parse_mode=PARSE_MODE,
                reply_markup=main_keyboard(),
            )

        elif command.action is Action.SUBSCRIBE:
            self.store.upsert(chat_id, all_enabled())
            await self._reply(chat_id, SUBSCRIBED_TEXT, command)

        elif command.action is Action.CUSTOMIZE:
            subscriber = self.store.find(chat_id)
            preferences = subscriber.preferences if subscriber else {}
            await self._reply(
                chat_id,
                CUSTOMIZE_TEXT,
                parse_mode=PARSE_MODE,
                reply_markup=customize_keyboard(preferences),
            )

        elif command.action is Action.STATUS:
            subscriber = self.store.find(chat_id)
            if subscriber is None:
                text = format_not_subscribed(command.from_menu)
            else:
                text = format_status(subscriber.preferences, command.from_menu)
            await self._reply(chat_id, text, command)

        elif command.action is Action.LATEST:
            await self._latest(chat_id, command)

        elif command.action is Action.UNSUBSCRIBE:
            self.store.remove(chat_id)
            await self._reply(chat_id, format_unsubscribed(command.from_menu), command)

        elif command.action is Action.TOGGLE and command.category is not None:
            subscriber = self._toggle(chat_id, command.category)
            enabled = subscriber.wants(command.category)
            await self._reply(chat_id, format_toggle_reply(command.category, enabled), command)

    async def _latest(self, chat_id: str, command: Command) -> None:
        """Run an on-demand cycle scoped to one chat."""
        if self.store.find(chat_id) is None:
            await self._reply(
                chat_id,
                format_latest_requires_subscription(command.from_menu),
                command,
            )
            return

        await self._reply(chat_id, LATEST_FETCHING_TEXT, command)

        try:
            await self.orchestrator.process(chat_id)
        except Exception as e:
            logger.error("On-demand fetch failed for chat %s: %s", chat_id, str(e))
            await self._reply(chat_id, LATEST_FAILED_TEXT, command)
            return

        await self._reply(chat_id, LATEST_DONE_TEXT, command)

    async def handle_callback(self, callback_query: dict[str, Any]) -> None:
        """Handle an inline keyboard toggle press."""
        message = callback_query.get("message") or {}
        chat_id = (message.get("chat") or {}).get("id")
        message_id = message.get("message_id")

        if chat_id is None or message_id is None:
            return

        command = parse_callback(callback_query.get("data"))
        if command is None or command.category is None:
            return

        chat_id = str(chat_id)
        subscriber = self._toggle(chat_id, command.category)
        enabled = subscriber.wants(command.category)

        await asyncio.to_thread(
            self.telegram_client.edit_message_text,
            chat_id,
            message_id,
            CUSTOMIZE_TEXT,
            parse_mode=PARSE_MODE,
            reply_markup=customize_keyboard(subscriber.preferences),
        )
        await asyncio.to_thread(
            self.telegram_client.answer_callback_query,
            callback_query.get("id", ""),
            format_toggle_ack(command.category, enabled),
        )

    async def handle_update(self, update: dict[str, Any]) -> None:
        """Route one Bot API update."""
        if "callback_query" in update:
            await self.handle_callback(update["callback_query"])
            return

        message = update.get("message")
        if not message:
            return

        command = parse_message(message.get("text"))
        chat_id = (message.get("chat") or {}).get("id")
        if command is None or chat_id is None:
            return

        await self.handle_command(str(chat_id), command)

    async def run_polling(self, poll_timeout: int = 30) -> None:
        """Long-poll for updates forever.

        Each update is handled in its own task so a slow on-demand fetch
        does not hold up other chats. Failures are logged, never fatal.
        """
        offset = None
        logger.info("Bot is now listening for commands...")

        while True:
            response = await asyncio.to_thread(
                self.telegram_client.get_updates,
                offset,
                poll_timeout,
            )
            if not response.success:
                await asyncio.sleep(POLL_RETRY_DELAY)
                continue

            for update in response.result or []:
                offset = update["update_id"] + 1
                task = asyncio.create_task(self.handle_update(update))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                task.add_done_callback(_log_task_failure)


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Error handling update: %s", error, exc_info=error)
