"""create exercise_templates table

Revision ID: d460c425a92a
Revises: 765e165a8d44
Create Date: 2026-01-20 18:44:43.958148
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "d460c425a92a"
down_revision: Union[str, Sequence[str], None] = "765e165a8d44"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "exercise_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("workout_type", sa.String(length=1), nullable=False),
        sa.Column("exercise_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("target_muscle", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("machine_number", sa.String(length=20), nullable=True),
        sa.Column("seat_height", sa.String(length=20), nullable=True),
        sa.Column("sets", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("reps", sa.String(length=20), nullable=False, server_default=""),
        sa.Column("weight", sa.String(length=20), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            ondelete="CASCADE",
        ),
    )

    op.create_index("ix_exercise_templates_user_id", "exercise_templates", ["user_id"])
    op.create_index("ix_exercise_templates_workout_type", "exercise_templates", ["workout_type"])


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS ix_exercise_templates_workout_type")
    op.execute("DROP INDEX IF EXISTS ix_exercise_templates_user_id")
    op.execute("DROP TABLE IF EXISTS exercise_templates")
