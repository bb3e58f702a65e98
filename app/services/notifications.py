"""Fire-and-forget side effects of session transitions.

A sink may play a tone, vibrate, show a toast or push a message. Whatever it
does, a failing sink must never fail the transition that triggered it, so
callers go through :func:`notify_safely`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class SessionEvent(str, Enum):
    STARTED = "started"
    PAUSED = "paused"
    RESUMED = "resumed"
    COMPLETED = "completed"
    REST_EXPIRED = "rest_expired"


class NotificationSink(Protocol):
    def notify(self, event: SessionEvent, payload: dict[str, Any]) -> None: ...


class LoggingNotificationSink:
    """Default sink: records each event in the application log."""

    def notify(self, event: SessionEvent, payload: dict[str, Any]) -> None:
        logger.info("event=%s %s", event.value, payload)


def notify_safely(sink: NotificationSink | None, event: SessionEvent, payload: dict[str, Any]) -> None:
    if sink is None:
        return
    try:
        sink.notify(event, payload)
    except Exception:
        logger.warning("Notification sink failed for %s", event.value, exc_info=True)
