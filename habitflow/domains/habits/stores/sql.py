"""SQLAlchemy-backed stores over the ``habits_*`` tables."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from habitflow.core.utils.timestamps import utcnow
from habitflow.domains.habits.engine.types import (
    CompletionEntry,
    HabitConfig,
    MilestoneRecord,
    MilestoneType,
    StreakSnapshot,
)
from habitflow.domains.habits.models.habit_models import (
    CompletionRecord,
    Habit,
    Milestone,
    PauseWindow,
)
from habitflow.extensions import db

logger = logging.getLogger(__name__)


class SqlLedgerStore:
    def _row(self, habit_id: int, day: date) -> Optional[CompletionRecord]:
        return CompletionRecord.query.filter_by(habit_id=habit_id, day=day).first()

    def upsert(self, entry: CompletionEntry) -> CompletionEntry:
        """Insert or fully replace the record for ``(habit_id, day)`` in one transaction."""
        for attempt in range(2):
            row = self._row(entry.habit_id, entry.day)
            if row is None:
                row = CompletionRecord(habit_id=entry.habit_id, day=entry.day, user_id=entry.user_id)
                db.session.add(row)
            row.user_id = entry.user_id
            row.completed = entry.completed
            row.value = entry.value
            row.notes = entry.notes
            row.updated_at = utcnow()
            try:
                db.session.commit()
                return row.to_entry()
            except IntegrityError:
                # Another writer inserted the same key first; replace its row instead.
                db.session.rollback()
                if attempt:
                    raise
        raise RuntimeError("unreachable")

    def delete(self, habit_id: int, day: date) -> bool:
        deleted = CompletionRecord.query.filter_by(habit_id=habit_id, day=day).delete()
        db.session.commit()
        return bool(deleted)

    def get(self, habit_id: int, day: date) -> Optional[CompletionEntry]:
        row = self._row(habit_id, day)
        return row.to_entry() if row is not None else None

    def query(
        self,
        habit_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[CompletionEntry]:
        query = CompletionRecord.query.filter(CompletionRecord.habit_id == habit_id)
        if start is not None:
            query = query.filter(CompletionRecord.day >= start)
        if end is not None:
            query = query.filter(CompletionRecord.day <= end)
        query = query.order_by(CompletionRecord.day.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [row.to_entry() for row in query.all()]

    def query_user(
        self, user_id: int, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[CompletionEntry]:
        query = CompletionRecord.query.filter(CompletionRecord.user_id == user_id)
        if start is not None:
            query = query.filter(CompletionRecord.day >= start)
        if end is not None:
            query = query.filter(CompletionRecord.day <= end)
        query = query.order_by(CompletionRecord.day.desc(), CompletionRecord.habit_id.desc())
        return [row.to_entry() for row in query.all()]


class SqlHabitStore:
    def get(self, habit_id: int) -> Optional[HabitConfig]:
        # Refresh from the row so derived fields written by other sessions are seen.
        habit = db.session.get(Habit, habit_id, populate_existing=True)
        return habit.to_config() if habit is not None else None

    def list_for_user(self, user_id: int, include_archived: bool = True) -> List[HabitConfig]:
        query = Habit.query.filter(Habit.user_id == user_id).populate_existing()
        if not include_archived:
            query = query.filter(Habit.is_archived.is_(False))
        return [habit.to_config() for habit in query.order_by(Habit.sort_order, Habit.id).all()]

    def find_by_name(self, user_id: int, name: str) -> Optional[HabitConfig]:
        habit = Habit.query.filter_by(user_id=user_id, name=name).first()
        return habit.to_config() if habit is not None else None

    def add(self, config: HabitConfig) -> HabitConfig:
        habit = Habit(user_id=config.user_id, created_on=config.created_on or date.today())
        habit.apply_config(config)
        _replace_windows(habit, config)
        db.session.add(habit)
        db.session.commit()
        return habit.to_config()

    def save(self, config: HabitConfig) -> HabitConfig:
        habit = db.session.get(Habit, config.id, populate_existing=True)
        if habit is None:
            raise KeyError(config.id)
        habit.apply_config(config)
        _replace_windows(habit, config)
        db.session.commit()
        return habit.to_config()

    def update_derived_fields(
        self, habit_id: int, snapshot: StreakSnapshot, expected_version: Optional[int] = None
    ) -> bool:
        stmt = update(Habit).where(Habit.id == habit_id)
        if expected_version is not None:
            stmt = stmt.where(Habit.derived_version == expected_version)
        stmt = stmt.values(
            current_streak=snapshot.current_streak,
            longest_streak=snapshot.longest_streak,
            total_completions=snapshot.total_completions,
            last_completed_at=snapshot.last_completed_at,
            derived_version=Habit.derived_version + 1,
        )
        result = db.session.execute(stmt.execution_options(synchronize_session="fetch"))
        db.session.commit()
        return result.rowcount == 1

    def delete(self, habit_id: int) -> bool:
        habit = db.session.get(Habit, habit_id)
        if habit is None:
            return False
        db.session.delete(habit)
        db.session.commit()
        return True


def _replace_windows(habit: Habit, config: HabitConfig) -> None:
    current = [(w.start_date, w.end_date, w.reason) for w in habit.pause_windows]
    wanted = [(w.start, w.end, w.reason) for w in config.pause_windows]
    if current == wanted:
        return
    habit.pause_windows = [
        PauseWindow(start_date=start, end_date=end, reason=reason) for start, end, reason in wanted
    ]


class SqlMilestoneStore:
    def exists(self, habit_id: int, kind: MilestoneType, value: int) -> bool:
        return (
            Milestone.query.filter_by(habit_id=habit_id, type=kind.value, value=value).first()
            is not None
        )

    def create(self, milestone: MilestoneRecord) -> Optional[MilestoneRecord]:
        row = Milestone(
            habit_id=milestone.habit_id,
            user_id=milestone.user_id,
            type=milestone.type.value,
            value=milestone.value,
            achieved_at=milestone.achieved_at,
        )
        db.session.add(row)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.info(
                "Milestone already recorded habit_id=%s type=%s value=%s",
                milestone.habit_id,
                milestone.type.value,
                milestone.value,
            )
            return None
        return row.to_record()

    def list(self, user_id: int, habit_id: Optional[int] = None) -> List[MilestoneRecord]:
        query = Milestone.query.filter(Milestone.user_id == user_id)
        if habit_id is not None:
            query = query.filter(Milestone.habit_id == habit_id)
        query = query.order_by(Milestone.achieved_at.desc(), Milestone.id.desc())
        return [row.to_record() for row in query.all()]


__all__ = ["SqlLedgerStore", "SqlHabitStore", "SqlMilestoneStore"]
