"""Configuration Loader - Imperative Shell.

This module handles loading configuration from YAML files and
environment variables. All I/O is contained here.

The Config model is defined in src/core/config.py to avoid information
leakage between layers.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from src.core.config import Config
from src.shell.secret_manager_client import (
    ENV_PLACEHOLDER,
    SECRET_PLACEHOLDER,
    SecretManagerClient,
    SecretManagerConfig,
)


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "config/config.yaml"


def _get_secret_manager_client() -> Optional[SecretManagerClient]:
    """Create a Secret Manager client when a GCP project is known.

    Returns None otherwise (e.g., local development).
    """
    project_id = os.environ.get("GCP_PROJECT") or os.environ.get("GOOGLE_CLOUD_PROJECT")
    if project_id:
        return SecretManagerClient(SecretManagerConfig(project_id=project_id))
    return None


def _resolve_value(value: Any, secret_client: Optional[SecretManagerClient] = None) -> Any:
    """Resolve a value that may contain secret or env var placeholders.

    Args:
        value: Value to resolve (may contain ${...} placeholders)
        secret_client: Client for resolving secrets

    Returns:
        Resolved value
    """
    if not isinstance(value, str):
        return value

    if secret_client:
        return secret_client.resolve(value)

    # No secret client - only handle env vars
    match = ENV_PLACEHOLDER.match(value)
    if match:
        env_value = os.environ.get(match.group(1))
        if env_value:
            return env_value
        logger.warning("Environment variable %s not set", match.group(1))

    return value


def _is_placeholder(value: str) -> bool:
    return bool(ENV_PLACEHOLDER.match(value) or SECRET_PLACEHOLDER.match(value))


def _as_str(value: Any, default: str) -> str:
    """Text setting; empty YAML values and unresolved placeholders are unset."""
    if value is None:
        return default
    text = str(value)
    if _is_placeholder(text):
        logger.warning("Unresolved placeholder %s, using default", text)
        return default
    return text


def _as_int(value: Any, default: int) -> int:
    if value is None or (isinstance(value, str) and _is_placeholder(value)):
        return default
    return int(value)


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Load configuration from a dictionary.

    Only placeholder expansion has side effects.

    Args:
        data: Configuration dictionary

    Returns:
        Parsed Config object
    """
    secret_client = _get_secret_manager_client()
    defaults = Config()

    def get(key: str, default: Any) -> Any:
        return _resolve_value(data.get(key, default), secret_client)

    return Config(
        telegram_bot_token=_as_str(
            get("telegram_bot_token", None), defaults.telegram_bot_token
        ),
        default_chat_id=_as_str(get("default_chat_id", None), defaults.default_chat_id),
        health_port=_as_int(get("health_port", None), defaults.health_port),
        notification_interval_minutes=_as_int(
            get("notification_interval_minutes", None),
            defaults.notification_interval_minutes,
        ),
        subscribers_path=_as_str(get("subscribers_path", None), defaults.subscribers_path),
        feed_base_url=_as_str(get("feed_base_url", None), defaults.feed_base_url),
        request_timeout_seconds=_as_int(
            get("request_timeout_seconds", None),
            defaults.request_timeout_seconds,
        ),
        poll_updates=_as_bool(get("poll_updates", None), defaults.poll_updates),
    )


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from a YAML file.

    This method performs file I/O. Falls back to environment variables
    when the file does not exist.

    Args:
        config_path: Path to YAML config file.
                    If None, uses CONFIG_PATH env var or default.

    Returns:
        Parsed Config object

    Raises:
        yaml.YAMLError: If config file is invalid YAML
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH)

    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        logger.info("Config file not found: %s, using environment", path)
        return load_config_from_env()

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        logger.warning("Config file is empty, using environment")
        return load_config_from_env()

    config = load_config_from_dict(data)

    logger.info(
        "Loaded config: interval %d min, subscribers at %s",
        config.notification_interval_minutes,
        config.subscribers_path,
    )

    return config


def load_config_from_env() -> Config:
    """Load configuration from environment variables.

    Environment variables:
        TELEGRAM_BOT_TOKEN: Bot API token
        TELEGRAM_BOT_TOKEN_SECRET: Secret Manager name tried before TELEGRAM_BOT_TOKEN
        TELEGRAM_CHAT_ID: Default chat subscribed on first run
        PORT: Health check server port
        NOTIFICATION_INTERVAL: Minutes between scheduled cycles
        SUBSCRIBERS_FILE: Path of the subscribers JSON file
        FEED_BASE_URL: Base URL of the category feeds
        REQUEST_TIMEOUT: HTTP timeout in seconds
        POLL_UPDATES: Set to "false" to disable chat command polling

    Returns:
        Config object from environment
    """
    defaults = Config()
    bot_token = None

    secret_name = os.environ.get("TELEGRAM_BOT_TOKEN_SECRET")
    if secret_name:
        secret_client = _get_secret_manager_client()
        if secret_client:
            bot_token = secret_client.get_secret(secret_name)
            if bot_token:
                logger.info("Using Telegram bot token from Secret Manager")

    if not bot_token:
        bot_token = os.environ.get("TELEGRAM_BOT_TOKEN", "")

    if not bot_token:
        logger.warning("TELEGRAM_BOT_TOKEN not set and no secret found")

    return Config(
        telegram_bot_token=bot_token,
        default_chat_id=os.environ.get("TELEGRAM_CHAT_ID", defaults.default_chat_id),
        health_port=int(os.environ.get("PORT", defaults.health_port)),
        notification_interval_minutes=int(
            os.environ.get("NOTIFICATION_INTERVAL", defaults.notification_interval_minutes)
        ),
        subscribers_path=os.environ.get("SUBSCRIBERS_FILE", defaults.subscribers_path),
        feed_base_url=os.environ.get("FEED_BASE_URL", defaults.feed_base_url),
        request_timeout_seconds=int(
            os.environ.get("REQUEST_TIMEOUT", defaults.request_timeout_seconds)
        ),
        poll_updates=_as_bool(os.environ.get("POLL_UPDATES"), defaults.poll_updates),
    )
