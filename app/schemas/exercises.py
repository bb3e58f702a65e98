from pydantic import BaseModel, Field

from app.models.enums import WorkoutType

class ExerciseTemplateCreate(BaseModel):
    workout_type: WorkoutType
    name: str = Field(min_length=1, max_length=120)
    target_muscle: str = ""
    machine_number: str | None = None
    seat_height: str | None = None
    sets: str = ""
    reps: str = ""
    weight: str | None = None

class ExerciseTemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    target_muscle: str | None = None
    machine_number: str | None = None
    seat_height: str | None = None
    sets: str | None = None
    reps: str | None = None
    weight: str | None = None
    exercise_order: int | None = Field(default=None, ge=0)

class ExerciseTemplateOut(BaseModel):
    id: int
    workout_type: WorkoutType
    exercise_order: int
    name: str
    target_muscle: str
    machine_number: str | None = None
    seat_height: str | None = None
    sets: str
    reps: str
    weight: str | None = None
