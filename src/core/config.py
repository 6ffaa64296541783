"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field

from src.core.categories import USGS_FEED_BASE


@dataclass
class Config:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.

    Attributes:
        telegram_bot_token: Bot API credential
        default_chat_id: Chat subscribed on first run
        health_port: Port for the health/metrics HTTP server
        notification_interval_minutes: Minutes between scheduled cycles
        subscribers_path: JSON file holding subscriber preferences
        feed_base_url: Base URL of the category feeds
        request_timeout_seconds: Timeout for feed and chat HTTP calls
        poll_updates: Whether to long-poll Telegram for chat commands
    """
    telegram_bot_token: str = ""
    default_chat_id: str = ""
    health_port: int = 8080
    notification_interval_minutes: int = 60
    subscribers_path: str = "data/subscribers.json"
    feed_base_url: str = USGS_FEED_BASE
    request_timeout_seconds: int = 30
    poll_updates: bool = True

    @property
    def schedule_expression(self) -> str:
        """Crontab expression for the notification interval."""
        return build_cron_expression(self.notification_interval_minutes)


def build_cron_expression(minutes: int) -> str:
    """Build an "every N minutes" crontab expression.

    Pure function.

    Args:
        minutes: Interval in minutes. 1-59, or a whole number of hours up to 24.

    Returns:
        Five-field crontab expression

    Raises:
        ValueError: If the interval cannot be expressed as a crontab step
    """
    if 1 <= minutes <= 59:
        return f"*/{minutes} * * * *"

    if minutes >= 60 and minutes % 60 == 0 and minutes // 60 <= 24:
        hours = minutes // 60
        if hours == 24:
            return "0 0 * * *"
        return f"0 */{hours} * * *"

    raise ValueError(
        f"Notification interval {minutes} must be 1-59 minutes "
        "or a whole number of hours up to 24"
    )


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


def validate_config(config: Config) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    if not config.telegram_bot_token or config.telegram_bot_token.startswith("${"):
        errors.append(ValidationError(
            field="telegram_bot_token",
            message="Telegram bot token not set (or still contains placeholder)",
        ))

    if config.default_chat_id.startswith("${"):
        errors.append(ValidationError(
            field="default_chat_id",
            message="Default chat still contains an unresolved placeholder",
        ))
    elif not config.default_chat_id:
        errors.append(ValidationError(
            field="default_chat_id",
            message="No default chat configured; first run starts with no subscribers",
            severity="warning",
        ))

    if not 1 <= config.health_port <= 65535:
        errors.append(ValidationError(
            field="health_port",
            message=f"Port {config.health_port} out of range [1, 65535]",
        ))

    try:
        build_cron_expression(config.notification_interval_minutes)
    except ValueError as e:
        errors.append(ValidationError(
            field="notification_interval_minutes",
            message=str(e),
        ))

    if config.request_timeout_seconds <= 0:
        errors.append(ValidationError(
            field="request_timeout_seconds",
            message=f"Timeout must be positive, got {config.request_timeout_seconds}",
        ))

    has_critical = any(e.severity == "error" for e in errors)

    return ValidationResult(
        valid=not has_critical,
        errors=errors,
    )
