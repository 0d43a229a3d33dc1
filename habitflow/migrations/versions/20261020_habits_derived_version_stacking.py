"""add derived_version and stacked_after_id to habits_habit

Revision ID: 20261020_habits_derived_version_stacking
Revises: 20261019_habits_initial
Create Date: 2026-10-20
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261020_habits_derived_version_stacking"
down_revision = "20261019_habits_initial"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("habits_habit") as batch_op:
        batch_op.add_column(
            sa.Column("derived_version", sa.Integer(), nullable=False, server_default="0")
        )
        batch_op.add_column(sa.Column("stacked_after_id", sa.Integer(), nullable=True))
        batch_op.create_index("ix_habits_habit_stacked_after_id", ["stacked_after_id"])


def downgrade():
    with op.batch_alter_table("habits_habit") as batch_op:
        batch_op.drop_index("ix_habits_habit_stacked_after_id")
        batch_op.drop_column("stacked_after_id")
        batch_op.drop_column("derived_version")
