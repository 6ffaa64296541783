"""Service Entry Points.

Two ways to run the notifier:

- earthquake_notifier: HTTP Cloud Function; runs one broadcast cycle per
  request (triggered by Cloud Scheduler or any HTTP client).
- run: long-running service; schedules cycles every N minutes, serves
  health checks and answers chat commands.
"""

import asyncio
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any

import functions_framework
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from dotenv import load_dotenv
from flask import Request

from src.command_handler import CommandHandler
from src.core.config import Config, validate_config
from src.orchestrator import Orchestrator
from src.shell.config_loader import load_config
from src.shell.health_server import HealthMetrics, start_health_server
from src.shell.subscriber_store import SubscriberStore
from src.shell.telegram_client import TelegramClient


# Environment variables set by Cloud Run, Cloud Functions and App Engine
GCP_ENV_MARKERS = ("K_SERVICE", "FUNCTION_NAME", "GAE_SERVICE")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Rotated copies get a .YYYY-MM-DD suffix
LOG_FILE_NAME = "earthquake-notifier.log"


class CloudLoggingFormatter(logging.Formatter):
    """One JSON object per line, as understood by Cloud Logging."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "logger": record.name,
        }
        if record.exc_info:
            entry["stack"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging() -> None:
    """Configure the root logger from LOG_LEVEL.

    When LOG_DIR is set, records are also written to a file there that
    rolls over at midnight UTC.
    """
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, log_level, logging.INFO)
    text_formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    if any(os.environ.get(marker) for marker in GCP_ENV_MARKERS):
        console.setFormatter(CloudLoggingFormatter())
    else:
        console.setFormatter(text_formatter)
    handlers: list[logging.Handler] = [console]

    log_dir = os.environ.get("LOG_DIR")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            Path(log_dir) / LOG_FILE_NAME,
            when="midnight",
            utc=True,
            encoding="utf-8",
        )
        file_handler.setFormatter(text_formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)


configure_logging()
logger = logging.getLogger(__name__)


def _build_orchestrator(
    config: Config,
    metrics: HealthMetrics | None = None,
) -> Orchestrator:
    """Load subscribers and wire the orchestrator."""
    store = SubscriberStore(
        config.subscribers_path,
        default_chat_id=config.default_chat_id,
        on_change=metrics.update_subscriber_count if metrics else None,
    )
    store.load()
    if metrics:
        metrics.update_subscriber_count(len(store))
    return Orchestrator(config, store)


@functions_framework.http
def earthquake_notifier(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function entry point.

    Runs one complete broadcast cycle.

    Args:
        request: Flask request object (not used, but required by framework)

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    logger.info("Starting earthquake notification cycle")

    try:
        config = load_config()
        orchestrator = _build_orchestrator(config)
        result = asyncio.run(orchestrator.process())

        response = {
            "status": "success" if result.success else "partial_failure",
            "summary": result.summary,
            "categories_checked": result.categories_checked,
            "events_found": result.events_found,
            "messages_sent": len(result.messages_sent),
            "messages_failed": len(result.messages_failed),
        }
        if result.errors:
            response["errors"] = result.errors

        status_code = 200 if result.success else 207  # 207 = Multi-Status
        return response, status_code

    except Exception as e:
        logger.exception("Unexpected error in earthquake notifier")
        return {
            "status": "error",
            "message": str(e),
        }, 500


async def _scheduled_cycle(orchestrator: Orchestrator) -> None:
    """Scheduled cycles are silent on success and only log on failure."""
    try:
        await orchestrator.process()
    except Exception:
        logger.exception("Scheduled earthquake cycle failed")


async def serve(config: Config) -> None:
    """Run the long-lived notifier service.

    Starts the health server, schedules cycles, runs one cycle
    immediately, then listens for chat commands.
    """
    metrics = HealthMetrics()
    orchestrator = _build_orchestrator(config, metrics)
    start_health_server(metrics, config.health_port)

    scheduler = AsyncIOScheduler(timezone=timezone.utc)
    scheduler.add_job(
        _scheduled_cycle,
        CronTrigger.from_crontab(config.schedule_expression, timezone=timezone.utc),
        args=[orchestrator],
        id="fetch_and_notify",
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()

    logger.info(
        "Earthquake notification service started. Scheduled to run every %d minutes.",
        config.notification_interval_minutes,
    )

    try:
        await _scheduled_cycle(orchestrator)

        if config.poll_updates:
            handler = CommandHandler(
                orchestrator.store,
                orchestrator.telegram_client,
                orchestrator,
                interval_minutes=config.notification_interval_minutes,
            )
            await handler.run_polling()
        else:
            await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)


def run() -> None:
    """Console entry point for the long-running service."""
    load_dotenv()
    config = load_config()

    validation = validate_config(config)
    for warning in validation.warnings:
        logger.warning("Config %s: %s", warning.field, warning.message)
    if not validation.valid:
        for error in validation.critical_errors:
            logger.error("Config %s: %s", error.field, error.message)
        sys.exit(1)

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    run()
