from __future__ import annotations

from datetime import datetime
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class WorkoutExercise(Base):
    """Snapshot of one exercise template, taken when the session started."""

    __tablename__ = "workout_exercises"
    __table_args__ = (
        UniqueConstraint("session_id", "order_index", name="uq_workout_exercises_session_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("workout_sessions.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    # Position at session start. Completion is keyed on this, not on display order.
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    name: Mapped[str] = mapped_column(String(120), nullable=False)  # e.g. Bench Press
    target_muscle: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    machine_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    seat_height: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Kept as text: templates hold values like "8-12"
    sets: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    reps: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    weight: Mapped[str | None] = mapped_column(String(20), nullable=True)

    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
