"""Message formatting - Pure functions.

This module formats events and subscriber state into Telegram messages
and keyboards. All functions are pure with no side effects.

Messages use Telegram's legacy Markdown parse mode.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Mapping

from src.core.categories import (
    BUTTON_LABELS,
    DESCRIPTIONS,
    DISPLAY_NAMES,
    Category,
)
from src.core.event import CanonicalEvent


PARSE_MODE = "Markdown"

# Persistent bottom menu buttons
BUTTON_SUBSCRIBE = "🔔 Subscribe"
BUTTON_CUSTOMIZE = "⚙️ Customize"
BUTTON_STATUS = "📊 Status"
BUTTON_LATEST = "🔄 Latest"
BUTTON_UNSUBSCRIBE = "🔕 Unsubscribe"

TOGGLE_PREFIX = "toggle_"

CUSTOMIZE_TEXT = (
    "*🎛 Customize Your Earthquake Notifications*\n\n"
    "Tap each button to toggle notifications for that magnitude level. "
    "Your current settings are shown below:\n\n"
    "✅ = Enabled  |  ⭕️ = Disabled"
)

SUBSCRIBED_TEXT = (
    "✅ You've successfully subscribed to all earthquake notifications! "
    "You'll receive alerts for new earthquakes."
)

LATEST_FETCHING_TEXT = "Fetching the latest earthquake data based on your preferences..."
LATEST_DONE_TEXT = "✅ Latest earthquake data has been sent for your subscribed categories."
LATEST_FAILED_TEXT = (
    "❌ Sorry, there was an error fetching the latest earthquake data. "
    "Please try again later."
)

# Characters with special meaning in legacy Markdown
_MARKDOWN_SPECIAL = ("_", "*", "`", "[")


def escape_markdown(text: str) -> str:
    """Escape text for Telegram legacy Markdown.

    Pure function.
    """
    for char in _MARKDOWN_SPECIAL:
        text = text.replace(char, f"\\{char}")
    return text


def _command_hint(command: str, from_menu: bool) -> str:
    """Refer to an action by its menu button or its slash command."""
    return command.capitalize() if from_menu else f"/{command}"


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO 8601 or RFC 822 timestamp, or None if neither.

    Pure function. Naive timestamps are assumed to be UTC.
    """
    parsed = None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError, IndexError):
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_updated_time(updated: str) -> str:
    """Format an event's update time for humans.

    Pure function. Unparseable values are returned unchanged.
    """
    parsed = parse_timestamp(updated)
    if parsed is None:
        return updated
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_event_message(event: CanonicalEvent) -> str:
    """Format an event as an alert message.

    Pure function.

    Args:
        event: Event to format

    Returns:
        Markdown message text
    """
    lines = [
        "🚨 *Earthquake Alert* 🚨",
        f"*Category:* {DISPLAY_NAMES[event.category]}",
        f"*Title:* {escape_markdown(event.title)}",
        f"*Magnitude:* {escape_markdown(event.magnitude)}",
        f"*Updated:* {escape_markdown(format_updated_time(event.updated))}",
        f"*Link:* {escape_markdown(event.link)}",
    ]
    return "\n".join(lines)


def format_welcome(interval_minutes: int) -> str:
    """Welcome text for /start."""
    return (
        "Welcome to EarthBoundBot! 🌍\n\n"
        "I'm your real-time earthquake monitoring companion, providing reliable "
        "notifications directly from the USGS (United States Geological Survey).\n\n"
        "🔔 *Available Options:*\n"
        "• Subscribe - Get notifications for all earthquakes\n"
        "• Customize - Choose which magnitude levels to monitor:\n"
        "  - Significant events (typically M6.0+)\n"
        "  - M4.5+ (moderate to large)\n"
        "  - M2.5+ (minor earthquakes)\n"
        "  - M1.0+ (very minor)\n"
        "  - All detected events\n"
        "• Status - View your current notification settings\n"
        "• Latest - Get the most recent earthquake data\n"
        "• Unsubscribe - Stop all notifications\n\n"
        f"🔄 Updates occur every {interval_minutes} minutes with fresh data from USGS.\n\n"
        "Use the menu buttons below to get started! 👇"
    )


def format_unsubscribed(from_menu: bool = False) -> str:
    """Confirmation sent after unsubscribing."""
    how = "using the Subscribe button" if from_menu else "with /subscribe"
    return (
        "🔕 You've unsubscribed from earthquake notifications. "
        f"You can subscribe again anytime {how}."
    )


def format_not_subscribed(from_menu: bool = False) -> str:
    """Status reply for an unknown chat."""
    return (
        "❌ You are not subscribed to any earthquake notifications. "
        f"Use {_command_hint('subscribe', from_menu)} to start receiving updates."
    )


def format_latest_requires_subscription(from_menu: bool = False) -> str:
    """Reply to a latest request from an unknown chat."""
    return (
        "❌ You must be subscribed to receive earthquake data. "
        f"Use {_command_hint('subscribe', from_menu)} first."
    )


def format_status(preferences: Mapping[Category, bool], from_menu: bool = False) -> str:
    """Summarize a subscriber's preferences.

    Pure function.
    """
    lines = ["Your subscription status:", ""]
    for category in Category:
        emoji = "✅" if preferences.get(category, False) else "❌"
        description = DESCRIPTIONS[category]
        lines.append(f"{emoji} {description[0].upper()}{description[1:]}")
    lines.append("")
    lines.append(f"Use {_command_hint('customize', from_menu)} to change your preferences.")
    return "\n".join(lines)


def format_toggle_reply(category: Category, enabled: bool) -> str:
    """Reply to a slash-command toggle."""
    if enabled:
        return f"✅ You will now receive notifications for {DESCRIPTIONS[category]}."
    return f"❌ You will no longer receive notifications for {DESCRIPTIONS[category]}."


def format_toggle_ack(category: Category, enabled: bool) -> str:
    """Callback answer shown after an inline toggle."""
    state = "enabled" if enabled else "disabled"
    return f"{DISPLAY_NAMES[category]} notifications {state}"


def main_keyboard() -> dict[str, Any]:
    """Persistent bottom menu.

    Pure function.
    """
    return {
        "keyboard": [
            [{"text": BUTTON_SUBSCRIBE}, {"text": BUTTON_CUSTOMIZE}],
            [{"text": BUTTON_STATUS}, {"text": BUTTON_LATEST}],
            [{"text": BUTTON_UNSUBSCRIBE}],
        ],
        "resize_keyboard": True,
        "one_time_keyboard": False,
    }


def customize_keyboard(preferences: Mapping[Category, bool]) -> dict[str, Any]:
    """Inline keyboard with one toggle button per category.

    Pure function.

    Args:
        preferences: Current preferences (missing categories shown disabled)

    Returns:
        Telegram inline keyboard markup
    """
    rows = []
    for category in Category:
        emoji = "✅" if preferences.get(category, False) else "⭕️"
        rows.append([{
            "text": f"{emoji} {BUTTON_LABELS[category]}",
            "callback_data": f"{TOGGLE_PREFIX}{category.value}",
        }])
    return {"inline_keyboard": rows}
