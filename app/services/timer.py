"""Timers anchored to reference instants.

Nothing here counts ticks. Every running timer stores the instant it is
measured from, and each read recomputes ``now - reference`` from the clock.
A timer read after the device slept for an hour is therefore already
correct; there are no missed ticks to make up.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from app.core.clock import Clock
from app.core.config import settings
from app.services.notifications import NotificationSink, SessionEvent, notify_safely

logger = logging.getLogger(__name__)

ZERO = timedelta(0)

# Rest lengths offered in the timer screen, in seconds
REST_PRESETS = (30, 45, 60, 90, 120, 180)


def format_duration(value: timedelta) -> str:
    """Render as ``MM:SS``; minutes keep growing past 59."""
    total = max(0, int(value.total_seconds()))
    mins, secs = divmod(total, 60)
    return f"{mins:02d}:{secs:02d}"


class TimerEngine:
    def __init__(self, clock: Clock):
        self.clock = clock

    def start_count_up(self) -> datetime:
        return self.clock.now()

    def elapsed(self, reference: datetime) -> timedelta:
        return max(ZERO, self.clock.now() - reference)

    def start_count_down(self, duration: timedelta) -> datetime:
        return self.clock.now()

    def remaining(self, reference: datetime, duration: timedelta) -> timedelta:
        return max(ZERO, duration - (self.clock.now() - reference))

    def pause_count_down(self, reference: datetime, duration: timedelta) -> timedelta:
        return self.remaining(reference, duration)

    def resume_count_down(self, duration: timedelta, remaining_at_pause: timedelta) -> datetime:
        # Shift the reference so the time spent paused does not count.
        return self.clock.now() - (duration - remaining_at_pause)


class CountdownTimer:
    """Rest timer.

    On the first :meth:`tick` that sees zero remaining, ``on_expire`` runs and
    ``notifier`` receives a ``rest_expired`` event. Neither fires again until
    the timer is started or reset. Without a ``duration`` the timer uses
    ``DEFAULT_REST_SECONDS``.
    """

    def __init__(
        self,
        engine: TimerEngine,
        duration: Optional[timedelta] = None,
        on_expire: Optional[Callable[[], None]] = None,
        notifier: Optional[NotificationSink] = None,
    ):
        self.engine = engine
        if duration is None:
            duration = timedelta(seconds=settings.DEFAULT_REST_SECONDS)
        self.duration = duration
        self.on_expire = on_expire
        self.notifier = notifier
        self.reference: Optional[datetime] = None
        self.paused_remaining: Optional[timedelta] = None
        self.expired = False

    @property
    def is_running(self) -> bool:
        return self.reference is not None and self.paused_remaining is None and not self.expired

    def start(self, duration: Optional[timedelta] = None) -> None:
        if duration is not None:
            self.duration = duration
        self.reference = self.engine.start_count_down(self.duration)
        self.paused_remaining = None
        self.expired = False

    def pause(self) -> None:
        if not self.is_running:
            return
        self.paused_remaining = self.engine.pause_count_down(self.reference, self.duration)

    def resume(self) -> None:
        if self.paused_remaining is None or self.expired:
            return
        self.reference = self.engine.resume_count_down(self.duration, self.paused_remaining)
        self.paused_remaining = None

    def reset(self) -> None:
        self.reference = None
        self.paused_remaining = None
        self.expired = False

    def remaining(self) -> timedelta:
        if self.reference is None:
            return self.duration
        if self.paused_remaining is not None:
            return self.paused_remaining
        return self.engine.remaining(self.reference, self.duration)

    @property
    def progress(self) -> float:
        if self.duration <= ZERO:
            return 1.0
        return 1.0 - self.remaining() / self.duration

    def tick(self) -> timedelta:
        left = self.remaining()
        if left == ZERO and self.is_running:
            self.expired = True
            if self.on_expire is not None:
                try:
                    self.on_expire()
                except Exception:
                    logger.warning("Rest timer expiry callback failed", exc_info=True)
            notify_safely(
                self.notifier,
                SessionEvent.REST_EXPIRED,
                {"duration_seconds": int(self.duration.total_seconds())},
            )
        return left


class Stopwatch:
    """Count-up timer for a set or a whole workout, with pause support."""

    def __init__(self, engine: TimerEngine):
        self.engine = engine
        self.reference: Optional[datetime] = None
        self.paused_elapsed: Optional[timedelta] = None

    @property
    def is_running(self) -> bool:
        return self.reference is not None and self.paused_elapsed is None

    def start(self) -> None:
        self.reference = self.engine.start_count_up()
        self.paused_elapsed = None

    def pause(self) -> None:
        if self.is_running:
            self.paused_elapsed = self.engine.elapsed(self.reference)

    def resume(self) -> None:
        if self.paused_elapsed is None:
            return
        self.reference = self.engine.clock.now() - self.paused_elapsed
        self.paused_elapsed = None

    def stop(self) -> timedelta:
        total = self.elapsed()
        self.reference = None
        self.paused_elapsed = None
        return total

    def elapsed(self) -> timedelta:
        if self.reference is None:
            return ZERO
        if self.paused_elapsed is not None:
            return self.paused_elapsed
        return self.engine.elapsed(self.reference)
