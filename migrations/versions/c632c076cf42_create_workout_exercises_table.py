"""create workout_exercises table

Revision ID: c632c076cf42
Revises: d2e2414bdfdd
Create Date: 2026-01-22

"""
from alembic import op
import sqlalchemy as sa


revision = "c632c076cf42"
down_revision = "d2e2414bdfdd"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "workout_exercises",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "session_id",
            sa.Integer(),
            sa.ForeignKey("workout_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_muscle", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("machine_number", sa.String(length=20), nullable=True),
        sa.Column("seat_height", sa.String(length=20), nullable=True),
        sa.Column("sets", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("reps", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("weight", sa.String(length=20), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("session_id", "order_index", name="uq_workout_exercises_session_order"),
    )
    op.create_index(
        op.f("ix_workout_exercises_session_id"),
        "workout_exercises",
        ["session_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_workout_exercises_session_id"), table_name="workout_exercises")
    op.drop_table("workout_exercises")
