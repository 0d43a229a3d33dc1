"""add habits, pause window, completion record and milestone tables

Revision ID: 20261019_habits_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_habits_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "habits_habit",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, index=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String(length=64)),
        sa.Column("color", sa.String(length=7), nullable=False, server_default="#0ea5e9"),
        sa.Column("icon", sa.String(length=32)),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("frequency", sa.String(length=16), nullable=False, server_default="DAILY"),
        sa.Column("habit_type", sa.String(length=16), nullable=False, server_default="BOOLEAN"),
        sa.Column("target_value", sa.Float()),
        sa.Column("unit", sa.String(length=32)),
        sa.Column("days_of_week", sa.String(length=16)),
        sa.Column("times_per_week", sa.Integer()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_completions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_completed_at", sa.Date()),
        sa.Column("created_on", sa.Date(), nullable=False, server_default=sa.func.current_date()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
        ),
    )
    op.create_index("ux_habits_habit_user_name", "habits_habit", ["user_id", "name"], unique=True)
    op.create_index("ix_habits_habit_user_sort", "habits_habit", ["user_id", "sort_order"])

    op.create_table(
        "habits_pause_window",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "habit_id",
            sa.Integer(),
            sa.ForeignKey("habits_habit.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("reason", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_habits_pause_habit_start", "habits_pause_window", ["habit_id", "start_date"]
    )

    op.create_table(
        "habits_completion_record",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, index=True),
        sa.Column(
            "habit_id",
            sa.Integer(),
            sa.ForeignKey("habits_habit.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("value", sa.Float()),
        sa.Column("notes", sa.String(length=500)),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
        ),
        sa.UniqueConstraint("habit_id", "day", name="ux_habits_record_habit_day"),
    )
    op.create_index("ix_habits_record_user_day", "habits_completion_record", ["user_id", "day"])

    op.create_table(
        "habits_milestone",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), index=True),
        sa.Column(
            "habit_id",
            sa.Integer(),
            sa.ForeignKey("habits_habit.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        sa.Column("achieved_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("habit_id", "type", "value", name="ux_habits_milestone_habit_type_value"),
    )
    op.create_index(
        "ix_habits_milestone_user_achieved", "habits_milestone", ["user_id", "achieved_at"]
    )


def downgrade():
    op.drop_index("ix_habits_milestone_user_achieved", table_name="habits_milestone")
    op.drop_table("habits_milestone")
    op.drop_index("ix_habits_record_user_day", table_name="habits_completion_record")
    op.drop_table("habits_completion_record")
    op.drop_index("ix_habits_pause_habit_start", table_name="habits_pause_window")
    op.drop_table("habits_pause_window")
    op.drop_index("ix_habits_habit_user_sort", table_name="habits_habit")
    op.drop_index("ux_habits_habit_user_name", table_name="habits_habit")
    op.drop_table("habits_habit")
