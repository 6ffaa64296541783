"""Chat command parsing - Pure functions.

Maps incoming message text and callback data to bot actions. Slash
commands and menu buttons resolve to the same action so each action is
handled in exactly one place.
"""

from dataclasses import dataclass
from enum import Enum

from src.core.categories import Category, parse_category
from src.core.formatter import (
    BUTTON_CUSTOMIZE,
    BUTTON_LATEST,
    BUTTON_STATUS,
    BUTTON_SUBSCRIBE,
    BUTTON_UNSUBSCRIBE,
    TOGGLE_PREFIX,
)


class Action(str, Enum):
    """What the user asked the bot to do."""

    START = "start"
    SUBSCRIBE = "subscribe"
    CUSTOMIZE = "customize"
    STATUS = "status"
    LATEST = "latest"
    UNSUBSCRIBE = "unsubscribe"
    TOGGLE = "toggle"


@dataclass(frozen=True)
class Command:
    """A parsed user request.

    Attributes:
        action: Requested action
        category: Category to toggle (TOGGLE only)
        from_menu: True if sent via the persistent menu keyboard
    """
    action: Action
    category: Category | None = None
    from_menu: bool = False


MENU_BUTTONS: dict[str, Action] = {
    BUTTON_SUBSCRIBE: Action.SUBSCRIBE,
    BUTTON_CUSTOMIZE: Action.CUSTOMIZE,
    BUTTON_STATUS: Action.STATUS,
    BUTTON_LATEST: Action.LATEST,
    BUTTON_UNSUBSCRIBE: Action.UNSUBSCRIBE,
}

SLASH_COMMANDS: dict[str, Action] = {
    action.value: action
    for action in Action
    if action is not Action.TOGGLE
}


def parse_message(text: str | None) -> Command | None:
    """Parse message text into a command.

    Pure function. Slash commands match on the first token only, with an
    optional @BotName suffix, so "/unsubscribe" never reads as "/subscribe".

    Args:
        text: Raw message text

    Returns:
        Command, or None if the text is not a recognized command
    """
    if not text:
        return None

    text = text.strip()

    if text in MENU_BUTTONS:
        return Command(action=MENU_BUTTONS[text], from_menu=True)

    if not text.startswith("/"):
        return None

    name = text.split()[0][1:].split("@", 1)[0].lower()

    if name in SLASH_COMMANDS:
        return Command(action=SLASH_COMMANDS[name])

    category = parse_category(name)
    if category is not None:
        return Command(action=Action.TOGGLE, category=category)

    return None


def parse_callback(data: str | None) -> Command | None:
    """Parse inline keyboard callback data ("toggle_<category>").

    Pure function.
    """
    if not data or not data.startswith(TOGGLE_PREFIX):
        return None

    category = parse_category(data[len(TOGGLE_PREFIX):])
    if category is None:
        return None

    return Command(action=Action.TOGGLE, category=category)
