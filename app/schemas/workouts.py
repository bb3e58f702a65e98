from datetime import datetime
from pydantic import BaseModel, Field

from app.models.enums import WorkoutType

class ExerciseSnapshotIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    target_muscle: str = ""
    sets: str = ""
    reps: str = ""
    weight: str | None = None
    machine_number: str | None = None
    seat_height: str | None = None

class StartSessionIn(BaseModel):
    workout_type: WorkoutType
    title: str | None = Field(default=None, max_length=100)
    # Omitted: snapshot the user's templates for this program
    exercises: list[ExerciseSnapshotIn] | None = None

class CompleteSessionIn(BaseModel):
    completed_orders: list[int] = Field(default_factory=list)

class UpdateWeightIn(BaseModel):
    weight: str | None = Field(default=None, max_length=20)

class SessionExerciseOut(BaseModel):
    order_index: int
    name: str
    target_muscle: str
    machine_number: str | None = None
    seat_height: str | None = None
    sets: str
    reps: str
    weight: str | None = None
    completed: bool

class SessionOut(BaseModel):
    id: int
    workout_type: WorkoutType
    title: str
    status: str
    started_at: datetime
    paused_at: datetime | None = None
    ended_at: datetime | None = None
    deleted_at: datetime | None = None
    elapsed_seconds: int | None = None
    duration_minutes: int | None = None
