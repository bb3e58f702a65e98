"""Shared enums for models and API."""

from enum import Enum


class WorkoutType(str, Enum):
    """The three rotating programs."""

    A = "A"
    B = "B"
    C = "C"


class SessionStatus(str, Enum):
    """Session lifecycle states."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"  # terminal


OPEN_STATUSES = (SessionStatus.ACTIVE.value, SessionStatus.PAUSED.value)
