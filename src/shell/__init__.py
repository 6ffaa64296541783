"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- USGS feed client (HTTP)
- Telegram Bot API client (HTTP)
- Subscriber store (file)
- Health check server (HTTP)
- Configuration loading (environment/files/secrets)

Keep this layer thin and simple. All business logic should be in core.
"""

from src.shell.feed_client import FeedClient
from src.shell.telegram_client import TelegramClient
from src.shell.subscriber_store import SubscriberStore
from src.shell.health_server import HealthMetrics
from src.shell.config_loader import load_config

__all__ = [
    "FeedClient",
    "TelegramClient",
    "SubscriberStore",
    "HealthMetrics",
    "load_config",
]
