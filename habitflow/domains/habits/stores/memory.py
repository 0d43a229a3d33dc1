"""Thread-safe in-memory stores, used by the unit tests and for embedding the engine."""

from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import date
from threading import Lock
from typing import Dict, List, Optional, Tuple

from habitflow.domains.habits.engine.types import (
    CompletionEntry,
    HabitConfig,
    MilestoneRecord,
    MilestoneType,
    StreakSnapshot,
)


class InMemoryLedgerStore:
    def __init__(self) -> None:
        self._records: Dict[Tuple[int, date], CompletionEntry] = {}
        self._lock = Lock()

    def upsert(self, entry: CompletionEntry) -> CompletionEntry:
        with self._lock:
            self._records[(entry.habit_id, entry.day)] = entry
        return entry

    def delete(self, habit_id: int, day: date) -> bool:
        with self._lock:
            return self._records.pop((habit_id, day), None) is not None

    def delete_habit(self, habit_id: int) -> None:
        with self._lock:
            for key in [key for key in self._records if key[0] == habit_id]:
                del self._records[key]

    def get(self, habit_id: int, day: date) -> Optional[CompletionEntry]:
        with self._lock:
            return self._records.get((habit_id, day))

    def query(
        self,
        habit_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[CompletionEntry]:
        with self._lock:
            rows = [entry for (hid, _), entry in self._records.items() if hid == habit_id]
        rows = [
            entry
            for entry in rows
            if (start is None or entry.day >= start) and (end is None or entry.day <= end)
        ]
        rows.sort(key=lambda entry: entry.day, reverse=True)
        rows = rows[offset:]
        return rows[:limit] if limit is not None else rows

    def query_user(
        self, user_id: int, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[CompletionEntry]:
        with self._lock:
            rows = [entry for entry in self._records.values() if entry.user_id == user_id]
        return sorted(
            (
                entry
                for entry in rows
                if (start is None or entry.day >= start) and (end is None or entry.day <= end)
            ),
            key=lambda entry: (entry.day, entry.habit_id),
            reverse=True,
        )


class InMemoryHabitStore:
    def __init__(
        self,
        ledger: Optional[InMemoryLedgerStore] = None,
        milestones: Optional["InMemoryMilestoneStore"] = None,
    ) -> None:
        self._habits: Dict[int, HabitConfig] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()
        self._ledger = ledger
        self._milestones = milestones

    def get(self, habit_id: int) -> Optional[HabitConfig]:
        with self._lock:
            return self._habits.get(habit_id)

    def list_for_user(self, user_id: int, include_archived: bool = True) -> List[HabitConfig]:
        with self._lock:
            habits = [h for h in self._habits.values() if h.user_id == user_id]
        if not include_archived:
            habits = [h for h in habits if not h.is_archived]
        return sorted(habits, key=lambda h: (h.sort_order, h.id))

    def find_by_name(self, user_id: int, name: str) -> Optional[HabitConfig]:
        with self._lock:
            for habit in self._habits.values():
                if habit.user_id == user_id and habit.name == name:
                    return habit
        return None

    def add(self, habit: HabitConfig) -> HabitConfig:
        with self._lock:
            stored = replace(habit, id=next(self._ids))
            self._habits[stored.id] = stored
        return stored

    def save(self, habit: HabitConfig) -> HabitConfig:
        with self._lock:
            existing = self._habits[habit.id]
            stored = replace(habit.with_streak(existing.streak), derived_version=existing.derived_version)
            self._habits[habit.id] = stored
        return stored

    def update_derived_fields(
        self, habit_id: int, snapshot: StreakSnapshot, expected_version: Optional[int] = None
    ) -> bool:
        with self._lock:
            habit = self._habits.get(habit_id)
            if habit is None:
                return False
            if expected_version is not None and habit.derived_version != expected_version:
                return False
            self._habits[habit_id] = replace(
                habit.with_streak(snapshot), derived_version=habit.derived_version + 1
            )
        return True

    def delete(self, habit_id: int) -> bool:
        with self._lock:
            removed = self._habits.pop(habit_id, None) is not None
        if removed and self._ledger is not None:
            self._ledger.delete_habit(habit_id)
        if removed and self._milestones is not None:
            self._milestones.delete_habit(habit_id)
        return removed


class InMemoryMilestoneStore:
    def __init__(self) -> None:
        self._milestones: Dict[Tuple[int, MilestoneType, int], MilestoneRecord] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()

    def exists(self, habit_id: int, kind: MilestoneType, value: int) -> bool:
        with self._lock:
            return (habit_id, kind, value) in self._milestones

    def create(self, milestone: MilestoneRecord) -> Optional[MilestoneRecord]:
        key = (milestone.habit_id, milestone.type, milestone.value)
        with self._lock:
            if key in self._milestones:
                return None
            stored = replace(milestone, id=next(self._ids))
            self._milestones[key] = stored
        return stored

    def list(self, user_id: int, habit_id: Optional[int] = None) -> List[MilestoneRecord]:
        with self._lock:
            rows = [
                m
                for m in self._milestones.values()
                if m.user_id == user_id and (habit_id is None or m.habit_id == habit_id)
            ]
        return sorted(rows, key=lambda m: (m.achieved_at, m.id or 0), reverse=True)

    def delete_habit(self, habit_id: int) -> None:
        with self._lock:
            for key in [key for key in self._milestones if key[0] == habit_id]:
                del self._milestones[key]


__all__ = ["InMemoryLedgerStore", "InMemoryHabitStore", "InMemoryMilestoneStore"]
