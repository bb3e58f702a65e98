from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.deps import get_current_user
from app.models.enums import WorkoutType
from app.models.exercise_template import ExerciseTemplate
from app.models.user import User
from app.schemas.exercises import ExerciseTemplateCreate, ExerciseTemplateOut, ExerciseTemplateUpdate

router = APIRouter(prefix="/exercises", tags=["exercises"])


def _template_out(t: ExerciseTemplate) -> ExerciseTemplateOut:
    return ExerciseTemplateOut(
        id=t.id,
        workout_type=t.workout_type,
        exercise_order=t.exercise_order,
        name=t.name,
        target_muscle=t.target_muscle,
        machine_number=t.machine_number,
        seat_height=t.seat_height,
        sets=t.sets,
        reps=t.reps,
        weight=t.weight,
    )


async def _get_owned(db: AsyncSession, template_id: int, user_id: int) -> ExerciseTemplate:
    res = await db.execute(
        select(ExerciseTemplate).where(
            ExerciseTemplate.id == template_id,
            ExerciseTemplate.user_id == user_id,
        )
    )
    tpl = res.scalar_one_or_none()
    if not tpl:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exercise not found")
    return tpl


@router.get("", response_model=list[ExerciseTemplateOut])
async def list_exercises(
    workout_type: WorkoutType | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(ExerciseTemplate).where(ExerciseTemplate.user_id == user.id)
    if workout_type is not None:
        stmt = stmt.where(ExerciseTemplate.workout_type == workout_type.value)

    res = await db.execute(
        stmt.order_by(
            ExerciseTemplate.workout_type.asc(),
            ExerciseTemplate.exercise_order.asc(),
            ExerciseTemplate.id.asc(),
        )
    )
    return [_template_out(t) for t in res.scalars().all()]


@router.post("", response_model=ExerciseTemplateOut, status_code=201)
async def create_exercise(
    payload: ExerciseTemplateCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    # New exercises go to the end of their program
    res = await db.execute(
        select(func.max(ExerciseTemplate.exercise_order)).where(
            ExerciseTemplate.user_id == user.id,
            ExerciseTemplate.workout_type == payload.workout_type.value,
        )
    )
    last = res.scalar_one_or_none()
    next_order = 0 if last is None else last + 1

    data = payload.model_dump()
    data["workout_type"] = payload.workout_type.value
    tpl = ExerciseTemplate(user_id=user.id, exercise_order=next_order, **data)
    db.add(tpl)
    await db.commit()
    await db.refresh(tpl)

    return _template_out(tpl)


@router.patch("/{template_id}", response_model=ExerciseTemplateOut)
async def update_exercise(
    template_id: int,
    payload: ExerciseTemplateUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tpl = await _get_owned(db, template_id, user.id)

    data = payload.model_dump(exclude_unset=True)
    for k, v in data.items():
        setattr(tpl, k, v)

    await db.commit()
    await db.refresh(tpl)

    return _template_out(tpl)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exercise(
    template_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tpl = await _get_owned(db, template_id, user.id)

    await db.delete(tpl)
    await db.commit()
    return
