"""Streak calculation from ledger records.

The calculator is a pure function of the habit configuration, the habit's
completion records and "today"; cached streak fields on the habit are never
read here, which makes recompute-from-scratch the source of truth.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from typing import AbstractSet, FrozenSet, Iterable, Optional, Tuple

from habitflow.domains.habits.engine.schedule import (
    DAY,
    granularity,
    is_scheduled,
    iter_days,
    period_bounds,
    period_is_paused,
    period_target,
    previous_period,
    next_period,
)
from habitflow.domains.habits.engine.types import (
    CompletionEntry,
    HabitConfig,
    StreakSnapshot,
    is_qualifying_completion,
)


def qualifying_days(habit: HabitConfig, records: Iterable[CompletionEntry]) -> FrozenSet[date]:
    return frozenset(
        record.day
        for record in records
        if record.habit_id == habit.id and is_qualifying_completion(habit, record)
    )


def effective_habit(habit: HabitConfig, days: AbstractSet[date]) -> HabitConfig:
    """Move the schedule start back to the first recorded day when check-ins were backdated."""
    if not days:
        return habit
    first = min(days)
    if habit.created_on is None or first < habit.created_on:
        return replace(habit, created_on=first)
    return habit


def recompute(
    habit: HabitConfig, records: Iterable[CompletionEntry], today: date
) -> StreakSnapshot:
    """Recompute ``current/longest/total/last`` for one habit."""
    days = qualifying_days(habit, records)
    if not days:
        return StreakSnapshot()
    effective = effective_habit(habit, days)
    past = frozenset(day for day in days if day <= today)
    if granularity(effective) == DAY:
        current, longest = _day_streaks(effective, past, today)
    else:
        current, longest = _period_streaks(effective, past, today)
    return StreakSnapshot(
        current_streak=current,
        longest_streak=max(longest, current),
        total_completions=len(days),
        last_completed_at=max(days),
    )


def _day_streaks(habit: HabitConfig, days: FrozenSet[date], today: date) -> Tuple[int, int]:
    start = habit.created_on or (min(days) if days else today)

    current = 0
    cursor = today
    while cursor >= start:
        if is_scheduled(habit, cursor):
            if cursor in days:
                current += 1
            elif cursor != today:
                break
            # today not yet checked in is pending, not a miss
        cursor -= timedelta(days=1)

    longest = 0
    run = 0
    for day in iter_days(start, today):
        if not is_scheduled(habit, day):
            continue
        if day in days:
            run += 1
            longest = max(longest, run)
        elif day != today:
            run = 0
    return current, longest


def _period_state(
    habit: HabitConfig, days: FrozenSet[date], start: date, end: date
) -> Optional[bool]:
    """True when the period met its quota, False when missed, None when skipped."""
    done = sum(1 for day in days if start <= day <= end)
    if done >= period_target(habit):
        return True
    if period_is_paused(habit, start, end):
        return None
    return False


def _period_streaks(habit: HabitConfig, days: FrozenSet[date], today: date) -> Tuple[int, int]:
    first_day = habit.created_on or (min(days) if days else today)
    first_start, _ = period_bounds(habit, first_day)
    current_start, current_end = period_bounds(habit, today)

    current = 0
    start, end = current_start, current_end
    while start >= first_start:
        state = _period_state(habit, days, start, end)
        if state:
            current += 1
        elif state is False and start != current_start:
            break
        # the running period is pending until its quota is met
        start, end = previous_period(habit, start)

    longest = 0
    run = 0
    start, end = first_start, period_bounds(habit, first_start)[1]
    while start <= current_start:
        state = _period_state(habit, days, start, end)
        if state:
            run += 1
            longest = max(longest, run)
        elif state is False and start != current_start:
            run = 0
        start, end = next_period(habit, start)
    return current, longest


__all__ = ["qualifying_days", "effective_habit", "recompute"]
