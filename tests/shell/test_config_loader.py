"""Tests for the Configuration Loader module.

Tests configuration loading from YAML files and environment variables.
"""

import os
from unittest.mock import Mock, patch

import pytest

from src.core.categories import USGS_FEED_BASE
from src.shell.config_loader import (
    _as_bool,
    _get_secret_manager_client,
    _resolve_value,
    load_config,
    load_config_from_dict,
    load_config_from_env,
)
from src.shell.subscriber_store import SubscriberStore


class TestResolveValue:
    """Tests for _resolve_value function."""

    def test_returns_non_string_unchanged(self):
        """Non-string values are returned unchanged."""
        assert _resolve_value(123) == 123
        assert _resolve_value(None) is None
        assert _resolve_value(True) is True

    def test_returns_plain_string_unchanged(self):
        """Plain strings without placeholders are returned unchanged."""
        assert _resolve_value("hello") == "hello"

    def test_resolves_env_var_placeholder(self):
        """Resolves ${VAR} placeholders from environment."""
        with patch.dict(os.environ, {"TEST_VAR": "test_value"}):
            assert _resolve_value("${TEST_VAR}") == "test_value"

    def test_returns_placeholder_if_env_var_not_set(self):
        """Returns original placeholder if env var not set."""
        with patch.dict(os.environ, {}, clear=True):
            assert _resolve_value("${UNDEFINED_VAR}") == "${UNDEFINED_VAR}"

    def test_uses_secret_client_when_provided(self):
        """Uses secret client for resolution when provided."""
        mock_client = Mock()
        mock_client.resolve.return_value = "secret_value"

        result = _resolve_value("${secret:bot-token}", mock_client)

        assert result == "secret_value"
        mock_client.resolve.assert_called_once_with("${secret:bot-token}")


class TestAsBool:
    """Tests for _as_bool function."""

    @pytest.mark.parametrize("value,expected", [
        ("true", True),
        ("1", True),
        ("Yes", True),
        ("false", False),
        ("0", False),
        (False, False),
        (True, True),
    ])
    def test_values(self, value, expected):
        """Common spellings are understood."""
        assert _as_bool(value, default=not expected) is expected

    def test_none_uses_default(self):
        """Missing values fall back to the default."""
        assert _as_bool(None, default=True) is True


class TestGetSecretManagerClient:
    """Tests for _get_secret_manager_client function."""

    def test_none_without_project(self):
        """No project means no Secret Manager."""
        with patch.dict(os.environ, {}, clear=True):
            assert _get_secret_manager_client() is None

    def test_client_with_project(self):
        """A known project gets a client for that project."""
        with patch.dict(os.environ, {"GOOGLE_CLOUD_PROJECT": "my-project"}, clear=True):
            client = _get_secret_manager_client()

        assert client is not None
        assert client.config.project_id == "my-project"


class TestLoadConfigFromDict:
    """Tests for load_config_from_dict function."""

    def test_defaults(self):
        """Empty data gives default settings."""
        with patch.dict(os.environ, {}, clear=True):
            config = load_config_from_dict({})

        assert config.health_port == 8080
        assert config.notification_interval_minutes == 60
        assert config.subscribers_path == "data/subscribers.json"
        assert config.feed_base_url == USGS_FEED_BASE
        assert config.poll_updates is True

    def test_values_and_placeholders(self):
        """Values are read and placeholders expanded."""
        data = {
            "telegram_bot_token": "${BOT_TOKEN}",
            "default_chat_id": 12345,
            "health_port": "9090",
            "notification_interval_minutes": 15,
            "poll_updates": "false",
        }
        with patch.dict(os.environ, {"BOT_TOKEN": "123:abc"}, clear=True):
            config = load_config_from_dict(data)

        assert config.telegram_bot_token == "123:abc"
        assert config.default_chat_id == "12345"
        assert config.health_port == 9090
        assert config.notification_interval_minutes == 15
        assert config.poll_updates is False

    def test_unresolved_placeholder_is_unset(self):
        """A placeholder whose variable is missing does not become a value."""
        data = {"default_chat_id": "${TELEGRAM_CHAT_ID}", "health_port": "${PORT}"}
        with patch.dict(os.environ, {}, clear=True):
            config = load_config_from_dict(data)

        assert config.default_chat_id == ""
        assert config.health_port == 8080

    def test_empty_values_use_defaults(self):
        """Keys present with no value behave like missing keys."""
        data = {"default_chat_id": None, "subscribers_path": None, "health_port": None}
        with patch.dict(os.environ, {}, clear=True):
            config = load_config_from_dict(data)

        assert config.default_chat_id == ""
        assert config.subscribers_path == "data/subscribers.json"
        assert config.health_port == 8080


class TestLoadConfigFromEnv:
    """Tests for load_config_from_env function."""

    def test_reads_environment(self):
        """Every setting has an environment variable."""
        env = {
            "TELEGRAM_BOT_TOKEN": "123:abc",
            "TELEGRAM_CHAT_ID": "42",
            "PORT": "3000",
            "NOTIFICATION_INTERVAL": "5",
            "SUBSCRIBERS_FILE": "/tmp/subs.json",
            "FEED_BASE_URL": "http://localhost:9000/feeds",
            "REQUEST_TIMEOUT": "12",
            "POLL_UPDATES": "no",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config_from_env()

        assert config.telegram_bot_token == "123:abc"
        assert config.default_chat_id == "42"
        assert config.health_port == 3000
        assert config.notification_interval_minutes == 5
        assert config.subscribers_path == "/tmp/subs.json"
        assert config.feed_base_url == "http://localhost:9000/feeds"
        assert config.request_timeout_seconds == 12
        assert config.poll_updates is False

    def test_missing_token_is_empty(self):
        """A missing token is left for validation to report."""
        with patch.dict(os.environ, {}, clear=True):
            config = load_config_from_env()

        assert config.telegram_bot_token == ""
        assert config.default_chat_id == ""

    def test_secret_manager_token_preferred(self):
        """A named secret wins over the plain variable."""
        env = {
            "TELEGRAM_BOT_TOKEN_SECRET": "bot-token",
            "TELEGRAM_BOT_TOKEN": "plain",
            "GCP_PROJECT": "my-project",
        }
        mock_client = Mock()
        mock_client.get_secret.return_value = "from-secret"

        with patch.dict(os.environ, env, clear=True):
            with patch(
                "src.shell.config_loader._get_secret_manager_client",
                return_value=mock_client,
            ):
                config = load_config_from_env()

        assert config.telegram_bot_token == "from-secret"
        mock_client.get_secret.assert_called_once_with("bot-token")

    def test_secret_unavailable_falls_back(self):
        """Falls back to TELEGRAM_BOT_TOKEN if the secret is missing."""
        env = {"TELEGRAM_BOT_TOKEN_SECRET": "bot-token", "TELEGRAM_BOT_TOKEN": "plain"}
        mock_client = Mock()
        mock_client.get_secret.return_value = None

        with patch.dict(os.environ, env, clear=True):
            with patch(
                "src.shell.config_loader._get_secret_manager_client",
                return_value=mock_client,
            ):
                config = load_config_from_env()

        assert config.telegram_bot_token == "plain"


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_yaml(self, tmp_path):
        """Reads settings from a YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "telegram_bot_token: '123:abc'\n"
            "default_chat_id: '42'\n"
            "notification_interval_minutes: 15\n"
        )

        with patch.dict(os.environ, {}, clear=True):
            config = load_config(path)

        assert config.telegram_bot_token == "123:abc"
        assert config.default_chat_id == "42"
        assert config.notification_interval_minutes == 15

    def test_missing_file_uses_environment(self, tmp_path):
        """No file means environment-only configuration."""
        env = {"TELEGRAM_BOT_TOKEN": "from-env"}
        with patch.dict(os.environ, env, clear=True):
            config = load_config(tmp_path / "missing.yaml")

        assert config.telegram_bot_token == "from-env"

    def test_empty_file_uses_environment(self, tmp_path):
        """An empty file is treated like a missing one."""
        path = tmp_path / "config.yaml"
        path.write_text("")

        with patch.dict(os.environ, {"TELEGRAM_CHAT_ID": "7"}, clear=True):
            config = load_config(path)

        assert config.default_chat_id == "7"

    def test_config_path_env(self, tmp_path):
        """CONFIG_PATH selects the file when no path is given."""
        path = tmp_path / "custom.yaml"
        path.write_text("health_port: 9999\n")

        with patch.dict(os.environ, {"CONFIG_PATH": str(path)}, clear=True):
            config = load_config()

        assert config.health_port == 9999

    def test_example_config_without_chat_starts_empty(self, tmp_path):
        """Unset chat id in YAML leaves the subscriber store empty."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "telegram_bot_token: ${TELEGRAM_BOT_TOKEN}\n"
            "default_chat_id: ${TELEGRAM_CHAT_ID}\n"
        )

        with patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": "123:abc"}, clear=True):
            config = load_config(path)

        store = SubscriberStore(
            tmp_path / "subscribers.json",
            default_chat_id=config.default_chat_id,
        )
        assert store.load() == []

    def test_blank_chat_id_in_yaml(self, tmp_path):
        """A bare "default_chat_id:" is not the chat "None"."""
        path = tmp_path / "config.yaml"
        path.write_text("default_chat_id:\n")

        with patch.dict(os.environ, {}, clear=True):
            config = load_config(path)

        assert config.default_chat_id == ""
