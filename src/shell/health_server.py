"""Health Check Server - Imperative Shell.

Serves /health and /metrics for container monitoring. Runs a small
Flask app on a background thread next to the asyncio service.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from typing import Any

import psutil
from flask import Flask, jsonify
from werkzeug.serving import make_server


logger = logging.getLogger(__name__)


def _package_version() -> str:
    try:
        return version("earthquake-notifier")
    except PackageNotFoundError:
        return "1.0.0"


def memory_usage() -> dict[str, float]:
    """Resident and virtual memory of this process, in MiB."""
    info = psutil.Process().memory_info()
    return {
        "rss": round(info.rss / 1024 / 1024, 2),
        "vms": round(info.vms / 1024 / 1024, 2),
    }


class HealthMetrics:
    """Process-level metrics reported by the health endpoints."""

    def __init__(self) -> None:
        self.started_at = time.monotonic()
        self.subscriber_count = 0
        self.version = _package_version()

    def update_subscriber_count(self, count: int) -> None:
        """Record the current subscriber count (store change callback)."""
        self.subscriber_count = count
        logger.debug("Updated subscriber count: %d", count)

    def snapshot(self, include_subscribers: bool = False) -> dict[str, Any]:
        """Current metrics as a JSON-ready dict."""
        data: dict[str, Any] = {
            "status": "ok",
            "uptime": round(time.monotonic() - self.started_at, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": self.version,
            "memory": memory_usage(),
        }
        if include_subscribers:
            data["subscribers"] = self.subscriber_count
        return data


def create_app(metrics: HealthMetrics) -> Flask:
    """Build the Flask app serving health and metrics routes."""
    app = Flask(__name__)

    @app.get("/health")
    def health():
        logger.debug("Health check requested")
        return jsonify(metrics.snapshot())

    @app.get("/metrics")
    def metrics_route():
        logger.debug("Metrics requested")
        return jsonify(metrics.snapshot(include_subscribers=True))

    return app


def start_health_server(
    metrics: HealthMetrics,
    port: int,
    host: str = "0.0.0.0",
) -> threading.Thread:
    """Serve the health app on a daemon thread.

    This function performs network I/O.

    Args:
        metrics: Metrics to expose
        port: Port to listen on
        host: Interface to bind

    Returns:
        The running server thread
    """
    server = make_server(host, port, create_app(metrics))
    thread = threading.Thread(
        target=server.serve_forever,
        name="health-server",
        daemon=True,
    )
    thread.start()
    logger.info("Health check server running on port %d", port)
    return thread
