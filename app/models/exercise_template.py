from __future__ import annotations

from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class ExerciseTemplate(Base):
    __tablename__ = "exercise_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    workout_type: Mapped[str] = mapped_column(String(1), nullable=False, index=True)
    exercise_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target_muscle: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    machine_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    seat_height: Mapped[str | None] = mapped_column(String(20), nullable=True)
    sets: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    reps: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    weight: Mapped[str | None] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
