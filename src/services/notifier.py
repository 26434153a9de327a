"""
Notification delivery boundary.

The scan decides WHAT to remind about; a sink decides HOW it reaches the
user (system notification, toast, chat message). Delivery is
fire-and-forget: a sink that fails must not undo the scan.
"""

from typing import Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """Anything that can show a title and a body to the user."""

    def __call__(self, title: str, body: str) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: writes each notification to the structured log."""

    def __init__(self):
        self.delivered: list[tuple[str, str]] = []

    def __call__(self, title: str, body: str) -> None:
        self.delivered.append((title, body))
        logger.info("notification_delivered", title=title, body=body)


__all__ = ["LoggingNotificationSink", "NotificationSink"]
