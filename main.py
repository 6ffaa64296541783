"""Service Entry Point - Root Module.

This is the root-level entry point for Google Cloud Functions and for
running the long-lived service with `python main.py`.
It imports from the src package.
"""

from src.main import (
    earthquake_notifier,
    run,
)

__all__ = [
    "earthquake_notifier",
    "run",
]


if __name__ == "__main__":
    run()
