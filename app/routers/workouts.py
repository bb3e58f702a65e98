from fastapi import APIRouter, Depends, Query

from app.core.deps import get_current_user, get_lifecycle, get_template_provider
from app.models.enums import SessionStatus, WorkoutType
from app.models.user import User
from app.models.workout_exercise import WorkoutExercise
from app.models.workout_session import WorkoutSession
from app.schemas.workouts import (
    CompleteSessionIn,
    SessionExerciseOut,
    SessionOut,
    StartSessionIn,
    UpdateWeightIn,
)
from app.services.lifecycle import SessionLifecycleManager, duration_minutes
from app.services.templates import ExerciseSnapshot, ExerciseTemplateProvider
from app.services.timer import TimerEngine


router = APIRouter(prefix="/workouts", tags=["workouts"])


def _session_out(session: WorkoutSession, lifecycle: SessionLifecycleManager) -> SessionOut:
    elapsed = None
    if session.status != SessionStatus.COMPLETED.value:
        # Time since start, read off the clock rather than accumulated
        elapsed = int(TimerEngine(lifecycle.clock).elapsed(session.started_at).total_seconds())

    return SessionOut(
        id=session.id,
        workout_type=session.workout_type,
        title=session.title,
        status=session.status,
        started_at=session.started_at,
        paused_at=session.paused_at,
        ended_at=session.ended_at,
        deleted_at=session.deleted_at,
        elapsed_seconds=elapsed,
        duration_minutes=duration_minutes(session),
    )


def _exercise_out(e: WorkoutExercise) -> SessionExerciseOut:
    return SessionExerciseOut(
        order_index=e.order_index,
        name=e.name,
        target_muscle=e.target_muscle,
        machine_number=e.machine_number,
        seat_height=e.seat_height,
        sets=e.sets,
        reps=e.reps,
        weight=e.weight,
        completed=e.completed,
    )


@router.post("/session/start", status_code=201)
async def start_session(
    payload: StartSessionIn,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
    templates: ExerciseTemplateProvider = Depends(get_template_provider),
):
    if payload.exercises is None:
        exercises = await templates.snapshot(user.id, payload.workout_type)
    else:
        exercises = [ExerciseSnapshot(**e.model_dump()) for e in payload.exercises]

    title = payload.title or f"Workout {payload.workout_type.value}"
    session_id = await lifecycle.start(user.id, payload.workout_type, title, exercises)
    session = await lifecycle.get(user.id, session_id)

    return {
        "started": True,
        "session": _session_out(session, lifecycle),
        "exercises_count": len(exercises),
    }


@router.get("/session/resumable")
async def get_resumable_session(
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    session = await lifecycle.find_resumable(user.id)
    if not session:
        return {"resumable": False, "session": None}

    return {"resumable": True, "session": _session_out(session, lifecycle)}


@router.post("/session/{session_id}/pause")
async def pause_session(
    session_id: int,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    session = await lifecycle.pause(user.id, session_id)
    return {"session": _session_out(session, lifecycle)}


@router.post("/session/{session_id}/resume")
async def resume_session(
    session_id: int,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    await lifecycle.resume(user.id, session_id)
    session = await lifecycle.get(user.id, session_id)
    return {"session": _session_out(session, lifecycle)}


@router.post("/session/{session_id}/heartbeat", status_code=204)
async def session_heartbeat(
    session_id: int,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    await lifecycle.heartbeat(user.id, session_id)


@router.post("/session/{session_id}/complete")
async def complete_session(
    session_id: int,
    payload: CompleteSessionIn,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    session = await lifecycle.complete(user.id, session_id, payload.completed_orders)
    exercises = await lifecycle.exercises(user.id, session_id)

    return {
        "finished": True,
        "session": _session_out(session, lifecycle),
        "summary": {
            "exercises_count": len(exercises),
            "completed_count": sum(1 for e in exercises if e.completed),
            "duration_minutes": duration_minutes(session),
        },
    }


@router.get("/session/{session_id}")
async def get_session_full_by_id(
    session_id: int,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    session = await lifecycle.get(user.id, session_id)
    exercises = await lifecycle.exercises(user.id, session_id)

    return {
        "session": _session_out(session, lifecycle),
        "exercises": [_exercise_out(e) for e in exercises],
    }


@router.patch("/session/{session_id}/exercise/{order_index}/weight", status_code=204)
async def update_exercise_weight(
    session_id: int,
    order_index: int,
    payload: UpdateWeightIn,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    await lifecycle.update_exercise_weight(user.id, session_id, order_index, payload.weight)


@router.get("/history")
async def workout_history(
    limit: int = 50,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    limit = max(1, min(limit, 100))
    sessions = await lifecycle.history(user.id, limit=limit)

    return {
        "items": [_session_out(s, lifecycle) for s in sessions],
        "limit": limit,
    }


@router.get("/history/average-duration")
async def average_workout_duration(
    workout_type: WorkoutType = Query(...),
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    minutes = await lifecycle.average_duration(user.id, workout_type)
    return {"workout_type": workout_type, "average_minutes": minutes}


@router.delete("/session/{session_id}", status_code=204)
async def delete_session(
    session_id: int,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    await lifecycle.soft_delete(user.id, session_id)


@router.get("/trash")
async def list_trash(
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    sessions = await lifecycle.list_deleted(user.id)
    return {"items": [_session_out(s, lifecycle) for s in sessions]}


@router.post("/trash/{session_id}/restore")
async def restore_session(
    session_id: int,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    session = await lifecycle.restore(user.id, session_id)
    return {"restored": True, "session": _session_out(session, lifecycle)}


@router.delete("/trash/{session_id}", status_code=204)
async def purge_session(
    session_id: int,
    user: User = Depends(get_current_user),
    lifecycle: SessionLifecycleManager = Depends(get_lifecycle),
):
    await lifecycle.purge(user.id, session_id)
