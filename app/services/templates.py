from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.enums import WorkoutType
from app.models.exercise_template import ExerciseTemplate


@dataclass(frozen=True)
class ExerciseSnapshot:
    """Copy of a template as it stood when a session started."""

    name: str
    target_muscle: str = ""
    sets: str = ""
    reps: str = ""
    weight: Optional[str] = None
    machine_number: Optional[str] = None
    seat_height: Optional[str] = None

    @classmethod
    def from_template(cls, tpl: ExerciseTemplate) -> "ExerciseSnapshot":
        return cls(
            name=tpl.name,
            target_muscle=tpl.target_muscle,
            sets=tpl.sets or "",
            reps=tpl.reps or "",
            weight=tpl.weight,
            machine_number=tpl.machine_number,
            seat_height=tpl.seat_height,
        )


class ExerciseTemplateProvider:
    """Read side of the template catalog, as the session core sees it."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def list_for(self, owner_id: int, workout_type: WorkoutType) -> list[ExerciseTemplate]:
        async with self._sessionmaker() as db:
            res = await db.execute(
                select(ExerciseTemplate)
                .where(
                    ExerciseTemplate.user_id == owner_id,
                    ExerciseTemplate.workout_type == WorkoutType(workout_type).value,
                )
                .order_by(ExerciseTemplate.exercise_order.asc(), ExerciseTemplate.id.asc())
            )
            return list(res.scalars().all())

    async def snapshot(self, owner_id: int, workout_type: WorkoutType) -> list[ExerciseSnapshot]:
        return [ExerciseSnapshot.from_template(t) for t in await self.list_for(owner_id, workout_type)]
