"""Errors raised by the session core.

Routers never see SQLAlchemy exceptions: the lifecycle manager converts
them into ``PersistenceError`` and ``app.main`` maps every
``WorkoutAppError`` onto an HTTP response.
"""

from typing import Optional


class WorkoutAppError(Exception):
    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthRequired(WorkoutAppError):
    status_code = 401
    default_message = "You must sign in to track workouts"


class NotFound(WorkoutAppError):
    status_code = 404
    default_message = "Session not found"


class InvalidState(WorkoutAppError):
    status_code = 409
    default_message = "Session cannot make that transition"


class OperationInProgress(InvalidState):
    default_message = "Another operation on this session is still running"


class PersistenceError(WorkoutAppError):
    status_code = 503
    default_message = "Could not save the workout"


class Unskippable(WorkoutAppError):
    status_code = 400
    default_message = "There is no next exercise to skip past"


class QueueExhausted(WorkoutAppError):
    status_code = 400
    default_message = "No exercises left in this session"
