"""Workout session lifecycle.

State machine::

    (none) -> active -> {paused <-> active} -> completed

``SessionLifecycleManager`` is the only code that changes a session's
status. It keeps at most one non-deleted session Active per owner. Within a
process, ``start`` and ``resume`` for one owner never overlap. Each first
commits a "pause everyone else" write and only then activates its target.
The activating write itself refuses to run while another session of the
owner is Active, which covers other processes. If a later step fails, the
earlier sessions stay paused, which is always a safe place to leave them.

Two tabs or devices for the same user are expected. Each call reconciles
whatever the other left behind rather than trying to prevent it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Iterable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from app.core.clock import Clock, SystemClock
from app.core.errors import AuthRequired, InvalidState, NotFound, OperationInProgress, PersistenceError
from app.models.enums import SessionStatus, WorkoutType
from app.models.workout_exercise import WorkoutExercise
from app.models.workout_session import WorkoutSession
from app.services.notifications import NotificationSink, SessionEvent, notify_safely
from app.services.store import SessionStore
from app.services.templates import ExerciseSnapshot

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Sessions averaged by average_duration
AVERAGE_WINDOW = 10


def duration_minutes(session: WorkoutSession) -> Optional[int]:
    if session.ended_at is None:
        return None
    return round((session.ended_at - session.started_at).total_seconds() / 60)


def _workout_type(value) -> WorkoutType:
    try:
        return WorkoutType(value)
    except ValueError as exc:
        raise InvalidState(f"Unknown workout type {value!r}") from exc


class SessionLifecycleManager:
    def __init__(
        self,
        store: SessionStore,
        clock: Optional[Clock] = None,
        notifier: Optional[NotificationSink] = None,
        orphan_grace: timedelta = timedelta(0),
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.notifier = notifier
        self.orphan_grace = orphan_grace
        self._busy: set[tuple[str, int]] = set()

    # -- plumbing --------------------------------------------------------

    @staticmethod
    def _require_owner(owner: Optional[int]) -> int:
        if owner is None:
            raise AuthRequired()
        return owner

    @asynccontextmanager
    async def _exclusive(self, kind: str, key: int):
        token = (kind, key)
        if token in self._busy:
            raise OperationInProgress()
        self._busy.add(token)
        try:
            yield
        finally:
            self._busy.discard(token)

    async def _store(self, op: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except SQLAlchemyError as exc:
            logger.exception("Session store failed during %s", op)
            raise PersistenceError() from exc

    async def _load(self, owner: int, session_id: int) -> WorkoutSession:
        session = await self._store("load", self.store.get(owner, session_id))
        if session is None:
            raise NotFound()
        return session

    def _emit(self, event: SessionEvent, session_id: int, **extra) -> None:
        notify_safely(self.notifier, event, {"session_id": session_id, **extra})

    # -- transitions -----------------------------------------------------

    async def start(
        self,
        owner: Optional[int],
        workout_type: WorkoutType,
        title: str,
        exercises: Sequence[ExerciseSnapshot],
    ) -> int:
        owner = self._require_owner(owner)
        workout_type = _workout_type(workout_type)

        async with self._exclusive("owner", owner):
            now = self.clock.now()
            paused = await self._store("start", self.store.pause_active(owner, now))
            if paused:
                logger.info("Paused %d open session(s) of user %s before start", paused, owner)

            session = await self._store(
                "start",
                self.store.create(owner, workout_type.value, title, now, exercises),
            )
            if session is None:
                # Another process activated a session after our pause
                raise InvalidState("Another workout became active")

        logger.info(
            "User %s started session %s (%s, %d exercises)",
            owner, session.id, workout_type.value, len(exercises),
        )
        self._emit(SessionEvent.STARTED, session.id, workout_type=workout_type.value)
        return session.id

    async def resume(self, owner: Optional[int], session_id: int) -> int:
        owner = self._require_owner(owner)

        async with self._exclusive("owner", owner), self._exclusive("session", session_id):
            session = await self._load(owner, session_id)
            if session.status == SessionStatus.COMPLETED.value:
                raise InvalidState("A completed workout cannot be resumed")

            now = self.clock.now()
            await self._store("resume", self.store.pause_active(owner, now, exclude_id=session_id))
            activated = await self._store("resume", self.store.activate(owner, session_id, now))
            if not activated:
                # Completed, deleted or outraced by another activation since the load
                raise InvalidState("Workout is no longer resumable")

        logger.info("User %s resumed session %s", owner, session_id)
        self._emit(SessionEvent.RESUMED, session_id)
        return session_id

    async def pause(self, owner: Optional[int], session_id: int) -> WorkoutSession:
        owner = self._require_owner(owner)

        async with self._exclusive("session", session_id):
            session = await self._load(owner, session_id)
            if session.status == SessionStatus.COMPLETED.value:
                raise InvalidState("A completed workout cannot be paused")
            if session.status == SessionStatus.PAUSED.value:
                return session

            changed = await self._store(
                "pause", self.store.mark_paused(owner, session_id, self.clock.now())
            )
            session = await self._store(
                "pause", self.store.get(owner, session_id, include_deleted=True)
            )
            if not changed and (
                session is None
                or session.deleted_at is not None
                or session.status != SessionStatus.PAUSED.value
            ):
                raise InvalidState("Workout is no longer open")

        if changed:
            logger.info("User %s paused session %s", owner, session_id)
            self._emit(SessionEvent.PAUSED, session_id)
        return session

    async def complete(
        self,
        owner: Optional[int],
        session_id: int,
        completed_orders: Iterable[int],
    ) -> WorkoutSession:
        owner = self._require_owner(owner)
        orders = set(completed_orders)

        async with self._exclusive("session", session_id):
            session = await self._load(owner, session_id)
            if session.status == SessionStatus.COMPLETED.value:
                raise InvalidState("Workout is already completed")

            done = await self._store(
                "complete",
                self.store.complete(owner, session_id, self.clock.now(), orders),
            )
            if not done:
                raise InvalidState("Workout is no longer open")
            session = await self._load(owner, session_id)

        logger.info(
            "User %s completed session %s (%d exercises done)", owner, session_id, len(orders)
        )
        self._emit(
            SessionEvent.COMPLETED,
            session_id,
            duration_minutes=duration_minutes(session),
        )
        return session

    async def find_resumable(self, owner: Optional[int]) -> Optional[WorkoutSession]:
        """Most recently paused session, else an orphaned Active one.

        An Active session nobody has heartbeated within ``orphan_grace`` is
        assumed to belong to a client that died. Every such session is
        paused, and the newest of them is offered for resumption.
        """
        owner = self._require_owner(owner)

        paused = await self._store("find_resumable", self.store.latest_paused(owner))
        if paused is not None:
            return paused

        active = await self._store("find_resumable", self.store.active_sessions(owner))
        now = self.clock.now()
        orphans = [
            s for s in active
            if s.last_seen_at is None or s.last_seen_at <= now - self.orphan_grace
        ]
        if not orphans:
            return None

        for orphan in orphans:
            if await self._store("find_resumable", self.store.mark_paused(owner, orphan.id, now)):
                logger.info("Auto-paused orphaned session %s of user %s", orphan.id, owner)
        return await self._store("find_resumable", self.store.get(owner, orphans[0].id))

    async def heartbeat(self, owner: Optional[int], session_id: int) -> None:
        owner = self._require_owner(owner)
        session = await self._load(owner, session_id)
        if session.status != SessionStatus.ACTIVE.value:
            raise InvalidState("Only an active workout sends heartbeats")
        await self._store("heartbeat", self.store.touch(owner, session_id, self.clock.now()))

    # -- reads and edits -------------------------------------------------

    async def get(self, owner: Optional[int], session_id: int) -> WorkoutSession:
        return await self._load(self._require_owner(owner), session_id)

    async def exercises(self, owner: Optional[int], session_id: int) -> list[WorkoutExercise]:
        session = await self.get(owner, session_id)
        return await self._store("exercises", self.store.list_exercises(session.id))

    async def update_exercise_weight(
        self, owner: Optional[int], session_id: int, order_index: int, weight: Optional[str]
    ) -> None:
        session = await self.get(owner, session_id)
        if session.status == SessionStatus.COMPLETED.value:
            raise InvalidState("A completed workout cannot be edited")
        updated = await self._store(
            "update_exercise_weight",
            self.store.set_exercise_weight(session_id, order_index, weight),
        )
        if not updated:
            raise NotFound("Exercise not found in this workout")

    async def history(self, owner: Optional[int], limit: int = 50) -> list[WorkoutSession]:
        owner = self._require_owner(owner)
        return await self._store("history", self.store.completed_sessions(owner, limit=limit))

    async def average_duration(
        self, owner: Optional[int], workout_type: WorkoutType
    ) -> Optional[int]:
        owner = self._require_owner(owner)
        recent = await self._store(
            "average_duration",
            self.store.completed_sessions(
                owner, limit=AVERAGE_WINDOW, workout_type=_workout_type(workout_type).value
            ),
        )
        minutes = [m for m in (duration_minutes(s) for s in recent) if m is not None]
        if not minutes:
            return None
        return round(sum(minutes) / len(minutes))

    # -- trash -----------------------------------------------------------

    async def soft_delete(self, owner: Optional[int], session_id: int) -> None:
        owner = self._require_owner(owner)
        async with self._exclusive("session", session_id):
            deleted = await self._store(
                "soft_delete", self.store.soft_delete(owner, session_id, self.clock.now())
            )
        if not deleted:
            raise NotFound()
        logger.info("User %s moved session %s to trash", owner, session_id)

    async def list_deleted(self, owner: Optional[int]) -> list[WorkoutSession]:
        owner = self._require_owner(owner)
        return await self._store("list_deleted", self.store.deleted_sessions(owner))

    async def restore(self, owner: Optional[int], session_id: int) -> WorkoutSession:
        owner = self._require_owner(owner)
        async with self._exclusive("session", session_id):
            session = await self._store(
                "restore", self.store.restore(owner, session_id, self.clock.now())
            )
        if session is None:
            raise NotFound("Session is not in the trash")
        logger.info("User %s restored session %s", owner, session_id)
        return session

    async def purge(self, owner: Optional[int], session_id: int) -> None:
        owner = self._require_owner(owner)
        async with self._exclusive("session", session_id):
            purged = await self._store("purge", self.store.purge(owner, session_id))
        if not purged:
            raise NotFound("Session is not in the trash")
        logger.info("User %s permanently deleted session %s", owner, session_id)
