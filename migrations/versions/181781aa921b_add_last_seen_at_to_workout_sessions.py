"""add last_seen_at to workout_sessions

Revision ID: 181781aa921b
Revises: c632c076cf42
Create Date: 2026-01-23 21:20:02.351297

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '181781aa921b'
down_revision: Union[str, Sequence[str], None] = 'c632c076cf42'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Use batch mode for SQLite
    with op.batch_alter_table('workout_sessions', schema=None) as batch_op:
        batch_op.add_column(
            sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=True)
        )


def downgrade() -> None:
    """Downgrade schema."""
    # Use batch mode for SQLite
    with op.batch_alter_table('workout_sessions', schema=None) as batch_op:
        batch_op.drop_column('last_seen_at')
