"""Secret Manager Client - Imperative Shell.

Reads credentials such as the Telegram bot token from Google Cloud
Secret Manager. All secret I/O is contained here.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

from google.cloud import secretmanager


logger = logging.getLogger(__name__)


# ${secret:NAME} or ${secret:NAME:VERSION}
SECRET_PLACEHOLDER = re.compile(r"^\$\{secret:([^:}]+)(?::([^}]+))?\}$")

# ${VAR}
ENV_PLACEHOLDER = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


@dataclass
class SecretManagerConfig:
    """Configuration for Secret Manager client.

    Attributes:
        project_id: GCP project ID
    """
    project_id: Optional[str] = None


class SecretManagerClient:
    """Client for reading secrets from Google Cloud Secret Manager.

    This is part of the imperative shell - it handles secret I/O.
    """

    def __init__(self, config: Optional[SecretManagerConfig] = None) -> None:
        """Initialize Secret Manager client.

        Args:
            config: Secret Manager configuration
        """
        self.config = config or SecretManagerConfig()
        self._client: Optional[secretmanager.SecretManagerServiceClient] = None

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy initialization of Secret Manager client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def get_secret(self, secret_name: str, version: str = "latest") -> Optional[str]:
        """Fetch a secret value.

        This method performs I/O.

        Args:
            secret_name: Name of the secret (not the full resource path)
            version: Version of the secret

        Returns:
            Secret value, or None if unavailable
        """
        if not self.config.project_id:
            logger.error("No project ID configured for Secret Manager")
            return None

        name = f"projects/{self.config.project_id}/secrets/{secret_name}/versions/{version}"

        try:
            logger.info("Fetching secret: %s", secret_name)
            response = self.client.access_secret_version(request={"name": name})
            return response.payload.data.decode("UTF-8")
        except Exception as e:
            logger.error("Failed to fetch secret %s: %s", secret_name, str(e))
            return None

    def resolve(self, value: str) -> str:
        """Resolve a ${secret:NAME} or ${VAR} placeholder.

        Values that are not placeholders, and placeholders that cannot be
        resolved, are returned unchanged.

        Args:
            value: Configuration value

        Returns:
            Resolved value
        """
        match = SECRET_PLACEHOLDER.match(value)
        if match:
            secret = self.get_secret(match.group(1), match.group(2) or "latest")
            return secret if secret is not None else value

        match = ENV_PLACEHOLDER.match(value)
        if match:
            env_value = os.environ.get(match.group(1))
            if env_value:
                return env_value
            logger.warning("Environment variable %s not set", match.group(1))

        return value
