"""Persistence of workout sessions and their exercise snapshots.

Every method opens and commits its own transaction. The lifecycle manager
relies on that to order its writes: a "pause the others" commit is durable
before the "activate this one" write is attempted.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from app.models.enums import OPEN_STATUSES, SessionStatus
from app.models.workout_exercise import WorkoutExercise
from app.models.workout_session import WorkoutSession
from app.services.templates import ExerciseSnapshot

ACTIVE = SessionStatus.ACTIVE.value
PAUSED = SessionStatus.PAUSED.value
COMPLETED = SessionStatus.COMPLETED.value


def _another_active(owner_id: int, session_id: int):
    other = aliased(WorkoutSession)
    return exists().where(
        other.user_id == owner_id,
        other.status == ACTIVE,
        other.deleted_at.is_(None),
        other.id != session_id,
    )


class SessionStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    # -- reads -----------------------------------------------------------

    async def get(
        self, owner_id: int, session_id: int, *, include_deleted: bool = False
    ) -> Optional[WorkoutSession]:
        stmt = select(WorkoutSession).where(
            WorkoutSession.id == session_id,
            WorkoutSession.user_id == owner_id,
        )
        if not include_deleted:
            stmt = stmt.where(WorkoutSession.deleted_at.is_(None))
        async with self._sessionmaker() as db:
            res = await db.execute(stmt)
            return res.scalar_one_or_none()

    async def list_exercises(self, session_id: int) -> list[WorkoutExercise]:
        async with self._sessionmaker() as db:
            res = await db.execute(
                select(WorkoutExercise)
                .where(WorkoutExercise.session_id == session_id)
                .order_by(WorkoutExercise.order_index.asc())
            )
            return list(res.scalars().all())

    async def latest_paused(self, owner_id: int) -> Optional[WorkoutSession]:
        async with self._sessionmaker() as db:
            res = await db.execute(
                select(WorkoutSession)
                .where(
                    WorkoutSession.user_id == owner_id,
                    WorkoutSession.status == PAUSED,
                    WorkoutSession.deleted_at.is_(None),
                )
                .order_by(WorkoutSession.paused_at.desc(), WorkoutSession.id.desc())
                .limit(1)
            )
            return res.scalar_one_or_none()

    async def active_sessions(self, owner_id: int) -> list[WorkoutSession]:
        """Open Active sessions of the owner, newest first."""
        async with self._sessionmaker() as db:
            res = await db.execute(
                select(WorkoutSession)
                .where(
                    WorkoutSession.user_id == owner_id,
                    WorkoutSession.status == ACTIVE,
                    WorkoutSession.deleted_at.is_(None),
                )
                .order_by(WorkoutSession.started_at.desc(), WorkoutSession.id.desc())
            )
            return list(res.scalars().all())

    async def completed_sessions(
        self, owner_id: int, *, limit: int, workout_type: Optional[str] = None
    ) -> list[WorkoutSession]:
        stmt = (
            select(WorkoutSession)
            .where(
                WorkoutSession.user_id == owner_id,
                WorkoutSession.status == COMPLETED,
                WorkoutSession.ended_at.is_not(None),
                WorkoutSession.deleted_at.is_(None),
            )
            .order_by(WorkoutSession.started_at.desc(), WorkoutSession.id.desc())
            .limit(limit)
        )
        if workout_type is not None:
            stmt = stmt.where(WorkoutSession.workout_type == workout_type)
        async with self._sessionmaker() as db:
            res = await db.execute(stmt)
            return list(res.scalars().all())

    async def deleted_sessions(self, owner_id: int) -> list[WorkoutSession]:
        async with self._sessionmaker() as db:
            res = await db.execute(
                select(WorkoutSession)
                .where(
                    WorkoutSession.user_id == owner_id,
                    WorkoutSession.deleted_at.is_not(None),
                )
                .order_by(WorkoutSession.deleted_at.desc())
            )
            return list(res.scalars().all())

    # -- writes ----------------------------------------------------------

    async def pause_active(
        self, owner_id: int, at: datetime, *, exclude_id: Optional[int] = None
    ) -> int:
        """Pause every open Active session of the owner; returns how many."""
        stmt = (
            update(WorkoutSession)
            .where(
                WorkoutSession.user_id == owner_id,
                WorkoutSession.status == ACTIVE,
                WorkoutSession.deleted_at.is_(None),
            )
            .values(status=PAUSED, paused_at=at)
            .execution_options(synchronize_session=False)
        )
        if exclude_id is not None:
            stmt = stmt.where(WorkoutSession.id != exclude_id)
        async with self._sessionmaker() as db:
            res = await db.execute(stmt)
            await db.commit()
            return res.rowcount or 0

    async def create(
        self,
        owner_id: int,
        workout_type: str,
        title: str,
        started_at: datetime,
        exercises: Sequence[ExerciseSnapshot],
    ) -> Optional[WorkoutSession]:
        """Insert an Active session with its exercises in one transaction.

        Returns None, writing nothing, when another session of the owner is
        Active by the time the rows are in place.
        """
        async with self._sessionmaker() as db:
            session = WorkoutSession(
                user_id=owner_id,
                workout_type=workout_type,
                title=title,
                status=ACTIVE,
                started_at=started_at,
                last_seen_at=started_at,
            )
            db.add(session)
            await db.flush()

            db.add_all(
                [
                    WorkoutExercise(
                        session_id=session.id,
                        order_index=i,
                        name=ex.name,
                        target_muscle=ex.target_muscle,
                        machine_number=ex.machine_number,
                        seat_height=ex.seat_height,
                        sets=ex.sets,
                        reps=ex.reps,
                        weight=ex.weight,
                        completed=False,
                    )
                    for i, ex in enumerate(exercises)
                ]
            )
            await db.flush()

            # Checked after our own insert so it runs under the write lock
            if await db.scalar(select(_another_active(owner_id, session.id))):
                await db.rollback()
                return None

            await db.commit()
            return session

    async def activate(self, owner_id: int, session_id: int, at: datetime) -> bool:
        """Compare-and-set to Active.

        False if the row is no longer resumable or another session of the
        owner is Active.
        """
        async with self._sessionmaker() as db:
            res = await db.execute(
                update(WorkoutSession)
                .where(
                    WorkoutSession.id == session_id,
                    WorkoutSession.user_id == owner_id,
                    WorkoutSession.status.in_(OPEN_STATUSES),
                    WorkoutSession.deleted_at.is_(None),
                    ~_another_active(owner_id, session_id),
                )
                .values(status=ACTIVE, paused_at=None, last_seen_at=at)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return bool(res.rowcount)

    async def mark_paused(self, owner_id: int, session_id: int, at: datetime) -> bool:
        async with self._sessionmaker() as db:
            res = await db.execute(
                update(WorkoutSession)
                .where(
                    WorkoutSession.id == session_id,
                    WorkoutSession.user_id == owner_id,
                    WorkoutSession.status == ACTIVE,
                    WorkoutSession.deleted_at.is_(None),
                )
                .values(status=PAUSED, paused_at=at)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return bool(res.rowcount)

    async def touch(self, owner_id: int, session_id: int, at: datetime) -> bool:
        async with self._sessionmaker() as db:
            res = await db.execute(
                update(WorkoutSession)
                .where(
                    WorkoutSession.id == session_id,
                    WorkoutSession.user_id == owner_id,
                    WorkoutSession.status == ACTIVE,
                    WorkoutSession.deleted_at.is_(None),
                )
                .values(last_seen_at=at)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return bool(res.rowcount)

    async def complete(
        self, owner_id: int, session_id: int, at: datetime, completed_orders: Iterable[int]
    ) -> bool:
        orders = sorted(set(completed_orders))
        async with self._sessionmaker() as db:
            async with db.begin():
                res = await db.execute(
                    update(WorkoutSession)
                    .where(
                        WorkoutSession.id == session_id,
                        WorkoutSession.user_id == owner_id,
                        WorkoutSession.status.in_(OPEN_STATUSES),
                        WorkoutSession.deleted_at.is_(None),
                    )
                    .values(status=COMPLETED, ended_at=at, paused_at=None)
                    .execution_options(synchronize_session=False)
                )
                if not res.rowcount:
                    return False

                await db.execute(
                    update(WorkoutExercise)
                    .where(WorkoutExercise.session_id == session_id)
                    .values(completed=False)
                    .execution_options(synchronize_session=False)
                )
                if orders:
                    await db.execute(
                        update(WorkoutExercise)
                        .where(
                            WorkoutExercise.session_id == session_id,
                            WorkoutExercise.order_index.in_(orders),
                        )
                        .values(completed=True)
                        .execution_options(synchronize_session=False)
                    )
            return True

    async def set_exercise_weight(self, session_id: int, order_index: int, weight: Optional[str]) -> bool:
        async with self._sessionmaker() as db:
            res = await db.execute(
                update(WorkoutExercise)
                .where(
                    WorkoutExercise.session_id == session_id,
                    WorkoutExercise.order_index == order_index,
                )
                .values(weight=weight)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return bool(res.rowcount)

    async def soft_delete(self, owner_id: int, session_id: int, at: datetime) -> bool:
        async with self._sessionmaker() as db:
            res = await db.execute(
                update(WorkoutSession)
                .where(
                    WorkoutSession.id == session_id,
                    WorkoutSession.user_id == owner_id,
                    WorkoutSession.deleted_at.is_(None),
                )
                .values(deleted_at=at)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return bool(res.rowcount)

    async def restore(self, owner_id: int, session_id: int, at: datetime) -> Optional[WorkoutSession]:
        async with self._sessionmaker() as db:
            async with db.begin():
                res = await db.execute(
                    select(WorkoutSession).where(
                        WorkoutSession.id == session_id,
                        WorkoutSession.user_id == owner_id,
                        WorkoutSession.deleted_at.is_not(None),
                    )
                )
                session = res.scalar_one_or_none()
                if session is None:
                    return None
                session.deleted_at = None
                # A restored open session comes back paused, never alongside
                # whatever is active now.
                if session.status == ACTIVE:
                    session.status = PAUSED
                    session.paused_at = at
            return session

    async def purge(self, owner_id: int, session_id: int) -> bool:
        async with self._sessionmaker() as db:
            async with db.begin():
                res = await db.execute(
                    select(WorkoutSession.id).where(
                        WorkoutSession.id == session_id,
                        WorkoutSession.user_id == owner_id,
                        WorkoutSession.deleted_at.is_not(None),
                    )
                )
                if res.scalar_one_or_none() is None:
                    return False

                # Exercises first; SQLite does not enforce the cascade by default
                await db.execute(delete(WorkoutExercise).where(WorkoutExercise.session_id == session_id))
                await db.execute(delete(WorkoutSession).where(WorkoutSession.id == session_id))
            return True
