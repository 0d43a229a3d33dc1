"""Schema guardrails for the habits migration."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic import command
from alembic.config import Config as AlembicConfig
from sqlalchemy.exc import IntegrityError

from habitflow.domains.habits.models.habit_models import Habit
from habitflow.extensions import db

pytestmark = pytest.mark.integration

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"
HABIT_TABLES = {"habits_habit", "habits_pause_window", "habits_completion_record", "habits_milestone"}


def _alembic_config(url: str) -> AlembicConfig:
    config = AlembicConfig()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", url)
    return config


def test_upgrade_and_downgrade_round_trip(tmp_path):
    """Upgrading creates every habits table; downgrading drops them again."""
    url = f"sqlite:///{tmp_path / 'habits.db'}"
    config = _alembic_config(url)

    command.upgrade(config, "head")
    engine = sa.create_engine(url)
    try:
        inspector = sa.inspect(engine)
        assert HABIT_TABLES <= set(inspector.get_table_names())
        constraints = {c["name"] for c in inspector.get_unique_constraints("habits_completion_record")}
        assert "ux_habits_record_habit_day" in constraints
        columns = {c["name"] for c in inspector.get_columns("habits_habit")}
        assert {"derived_version", "stacked_after_id"} <= columns
    finally:
        engine.dispose()

    command.downgrade(config, "base")
    engine = sa.create_engine(url)
    try:
        assert not HABIT_TABLES & set(sa.inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_completion_record_is_unique_per_habit_and_day(app):
    """A second row for the same habit and day must be rejected by the database."""
    habit = Habit(user_id=1, name="Read", created_on=date(2024, 3, 20))
    db.session.add(habit)
    db.session.commit()

    insert_stmt = sa.text(
        """
        INSERT INTO habits_completion_record
            (user_id, habit_id, day, completed, created_at, updated_at)
        VALUES
            (1, :habit_id, '2024-03-20', 1, '2024-03-20 12:00:00', '2024-03-20 12:00:00')
        """
    ).bindparams(habit_id=habit.id)
    with db.session.begin_nested():
        db.session.execute(insert_stmt)
        db.session.flush()
        with pytest.raises(IntegrityError):
            db.session.execute(insert_stmt)
            db.session.flush()
