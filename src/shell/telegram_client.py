"""Telegram Bot API Client - Imperative Shell.

This module handles HTTP communication with the Telegram Bot API.
All I/O is contained here; message formatting is in the core module.
"""

import logging
from dataclasses import dataclass
from typing import Any

import requests


logger = logging.getLogger(__name__)


# Telegram Bot API base URL
TELEGRAM_API_BASE = "https://api.telegram.org"

# Default timeout for API requests (seconds)
DEFAULT_TIMEOUT = 10


@dataclass
class TelegramResponse:
    """Response from the Bot API.

    Attributes:
        success: Whether the call succeeded ("ok": true)
        status_code: HTTP status code (0 if no response)
        error: Error description if failed
        result: Decoded "result" field on success
    """
    success: bool
    status_code: int
    error: str | None = None
    result: Any = None


class TelegramClient:
    """Client for the Telegram Bot API.

    This is part of the imperative shell - it handles HTTP I/O.
    """

    def __init__(
        self,
        bot_token: str,
        timeout: int = DEFAULT_TIMEOUT,
        base_url: str = TELEGRAM_API_BASE,
    ) -> None:
        """Initialize Telegram client.

        Args:
            bot_token: Bot API token
            timeout: Request timeout in seconds
            base_url: Bot API base URL
        """
        self.bot_token = bot_token
        self.timeout = timeout
        self.base_url = base_url

    def _endpoint(self, method: str) -> str:
        return f"{self.base_url}/bot{self.bot_token}/{method}"

    def _call(
        self,
        method: str,
        payload: dict[str, Any],
        timeout: float | None = None,
    ) -> TelegramResponse:
        """Call a Bot API method.

        This method performs HTTP I/O.

        Args:
            method: Bot API method name (e.g. "sendMessage")
            payload: JSON parameters
            timeout: Override for the request timeout

        Returns:
            TelegramResponse indicating success or failure
        """
        try:
            response = requests.post(
                self._endpoint(method),
                json=payload,
                timeout=timeout or self.timeout,
            )
        except requests.Timeout:
            logger.error("Telegram %s request timed out", method)
            return TelegramResponse(
                success=False,
                status_code=0,
                error="Request timed out",
            )
        except requests.RequestException as e:
            logger.error("Telegram %s request failed: %s", method, str(e))
            return TelegramResponse(
                success=False,
                status_code=0,
                error=str(e),
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code == 200 and body.get("ok"):
            return TelegramResponse(
                success=True,
                status_code=response.status_code,
                result=body.get("result"),
            )

        error_text = body.get("description") or response.text
        logger.warning(
            "Telegram %s returned error: %d - %s",
            method,
            response.status_code,
            error_text,
        )
        return TelegramResponse(
            success=False,
            status_code=response.status_code,
            error=error_text,
        )

    def send_message(
        self,
        chat_id: str,
        text: str,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> TelegramResponse:
        """Send a text message to a chat.

        Args:
            chat_id: Target chat
            text: Message text
            parse_mode: "Markdown", "HTML" or None for plain text
            reply_markup: Keyboard markup to attach

        Returns:
            TelegramResponse indicating success or failure
        """
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup

        response = self._call("sendMessage", payload)
        if response.success:
            logger.debug("Message sent to chat %s", chat_id)
        return response

    def edit_message_text(
        self,
        chat_id: str,
        message_id: int,
        text: str,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> TelegramResponse:
        """Replace the text (and keyboard) of a previously sent message."""
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup

        return self._call("editMessageText", payload)

    def answer_callback_query(
        self,
        callback_query_id: str,
        text: str | None = None,
    ) -> TelegramResponse:
        """Acknowledge an inline keyboard press."""
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text

        return self._call("answerCallbackQuery", payload)

    def get_updates(
        self,
        offset: int | None = None,
        timeout: int = 30,
    ) -> TelegramResponse:
        """Long-poll for incoming updates.

        Args:
            offset: First update ID to return
            timeout: Seconds the server may hold the request open

        Returns:
            TelegramResponse whose result is a list of update dicts
        """
        payload: dict[str, Any] = {
            "timeout": timeout,
            "allowed_updates": ["message", "callback_query"],
        }
        if offset is not None:
            payload["offset"] = offset

        # HTTP timeout must outlast the long-poll window
        return self._call("getUpdates", payload, timeout=timeout + self.timeout)
