"""In-memory index of a user's ledger used by the aggregation and insight engines."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from habitflow.domains.habits.engine.schedule import (
    DAY,
    granularity,
    is_due,
    is_scheduled,
    iter_days,
    iter_periods,
    period_is_paused,
    period_target,
)
from habitflow.domains.habits.engine.streaks import effective_habit, qualifying_days, recompute
from habitflow.domains.habits.engine.types import CompletionEntry, HabitConfig, StreakSnapshot


class LedgerIndex:
    """Per-habit records and qualifying days, keyed by habit id.

    Habits are held in their effective form (schedule start moved back to the
    first qualifying day when check-ins were backdated) so every view agrees
    with the streak calculator about what was due.
    """

    def __init__(self, habits: Iterable[HabitConfig], entries: Iterable[CompletionEntry]) -> None:
        by_habit: Dict[int, List[CompletionEntry]] = {}
        for entry in entries:
            by_habit.setdefault(entry.habit_id, []).append(entry)

        self._habits: Dict[int, HabitConfig] = {}
        self._records: Dict[int, Dict[date, CompletionEntry]] = {}
        self._qualifying: Dict[int, FrozenSet[date]] = {}
        for habit in habits:
            records = by_habit.get(habit.id, [])
            days = qualifying_days(habit, records)
            self._habits[habit.id] = effective_habit(habit, days)
            self._records[habit.id] = {record.day: record for record in records}
            self._qualifying[habit.id] = days

    @property
    def habits(self) -> List[HabitConfig]:
        return list(self._habits.values())

    def habit(self, habit_id: int) -> HabitConfig:
        return self._habits[habit_id]

    def select(self, habit_id: Optional[int] = None) -> List[HabitConfig]:
        if habit_id is None:
            return self.habits
        habit = self._habits.get(habit_id)
        return [habit] if habit is not None else []

    def records(self, habit_id: int) -> List[CompletionEntry]:
        """Records newest first."""
        return sorted(self._records.get(habit_id, {}).values(), key=lambda r: r.day, reverse=True)

    def record(self, habit_id: int, day: date) -> Optional[CompletionEntry]:
        return self._records.get(habit_id, {}).get(day)

    def qualifying(self, habit_id: int) -> FrozenSet[date]:
        return self._qualifying.get(habit_id, frozenset())

    def is_done(self, habit_id: int, day: date) -> bool:
        return day in self.qualifying(habit_id)

    def is_due(self, habit_id: int, day: date) -> bool:
        return is_due(self._habits[habit_id], day, self.qualifying(habit_id))

    def is_scheduled(self, habit_id: int, day: date) -> bool:
        return is_scheduled(self._habits[habit_id], day)

    def day_status(self, habit_id: int, day: date) -> tuple:
        """``(due, completed)`` for one habit on one calendar day."""
        due = self.is_due(habit_id, day)
        return due, due and self.is_done(habit_id, day)

    def done_between(self, habit_id: int, start: date, end: date) -> int:
        return sum(1 for day in self.qualifying(habit_id) if start <= day <= end)

    def period_units(self, habit_id: int, start: date, end: date, today: date) -> tuple:
        """``(target, completed)`` over the period units of a week/month habit in a window.

        Units that have not started yet, or that fall entirely before the
        habit's start or inside a pause, contribute nothing.
        """
        habit = self._habits[habit_id]
        target = completed = 0
        for unit_start, unit_end in iter_periods(habit, start, min(end, today)):
            window_start = max(unit_start, habit.created_on or unit_start)
            window_end = min(unit_end, today)
            if window_start > window_end:
                continue
            if not any(is_scheduled(habit, day) for day in iter_days(window_start, window_end)):
                continue
            quota = period_target(habit)
            target += quota
            completed += min(self.done_between(habit_id, unit_start, unit_end), quota)
        return target, completed

    def is_day_granular(self, habit_id: int) -> bool:
        return granularity(self._habits[habit_id]) == DAY

    def snapshot(self, habit_id: int, as_of: date) -> StreakSnapshot:
        """Streak snapshot recomputed as if ``as_of`` were today."""
        records = [r for r in self._records.get(habit_id, {}).values() if r.day <= as_of]
        return recompute(self._habits[habit_id], records, as_of)

    def recent_occurrences(self, habit_id: int, today: date, count: int) -> Sequence[bool]:
        """Outcomes of the last ``count`` due occurrences (or periods), newest first.

        Today is only included once it qualifies; the running period likewise
        until its quota is met.
        """
        habit = self._habits[habit_id]
        done = self.qualifying(habit_id)
        outcomes: List[bool] = []
        start = habit.created_on or today
        if granularity(habit) == DAY:
            cursor = today
            while cursor >= start and len(outcomes) < count:
                if is_scheduled(habit, cursor):
                    hit = cursor in done
                    if hit or cursor != today:
                        outcomes.append(hit)
                cursor -= timedelta(days=1)
            return outcomes

        periods = list(iter_periods(habit, start, today))
        quota = period_target(habit)
        for index, (unit_start, unit_end) in enumerate(reversed(periods)):
            if len(outcomes) >= count:
                break
            met = self.done_between(habit_id, unit_start, unit_end) >= quota
            if index == 0 and not met:
                continue
            if not met and period_is_paused(habit, unit_start, unit_end):
                continue
            outcomes.append(met)
        return outcomes


__all__ = ["LedgerIndex"]
