"""Schedule resolution: which calendar days (or periods) a habit is due on.

Habits are resolved at one of three granularities:

* ``day``   -- DAILY habits and WEEKLY habits pinned to ``days_of_week``.
* ``week``  -- WEEKLY habits with only a ``times_per_week`` quota; the
  Monday-start week is one unit whose target is the quota.
* ``month`` -- MONTHLY habits; the calendar month is one unit with target 1.

All comparisons are whole-day; no time-of-day component is ever involved.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import AbstractSet, Iterator, Tuple

from habitflow.domains.habits.engine.types import Frequency, HabitConfig

DAY = "day"
WEEK = "week"
MONTH = "month"

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def iter_days(start: date, end: date) -> Iterator[date]:
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_end(day: date) -> date:
    return week_start(day) + timedelta(days=6)


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def granularity(habit: HabitConfig) -> str:
    if habit.frequency == Frequency.DAILY:
        return DAY
    if habit.frequency == Frequency.WEEKLY:
        return DAY if habit.days_of_week else WEEK
    if habit.frequency == Frequency.MONTHLY:
        return MONTH
    raise ValueError(f"unsupported frequency: {habit.frequency!r}")


def period_bounds(habit: HabitConfig, day: date) -> Tuple[date, date]:
    unit = granularity(habit)
    if unit == WEEK:
        return week_start(day), week_end(day)
    if unit == MONTH:
        return month_start(day), month_end(day)
    return day, day


def previous_period(habit: HabitConfig, start: date) -> Tuple[date, date]:
    """Bounds of the period immediately before the one starting at ``start``."""
    return period_bounds(habit, start - timedelta(days=1))


def next_period(habit: HabitConfig, start: date) -> Tuple[date, date]:
    _, end = period_bounds(habit, start)
    return period_bounds(habit, end + timedelta(days=1))


def iter_periods(habit: HabitConfig, start: date, end: date) -> Iterator[Tuple[date, date]]:
    """Periods overlapping ``[start, end]``, oldest first."""
    bounds = period_bounds(habit, start)
    while bounds[0] <= end:
        yield bounds
        bounds = next_period(habit, bounds[0])


def period_target(habit: HabitConfig) -> int:
    if granularity(habit) == WEEK:
        return max(int(habit.times_per_week or 1), 1)
    return 1


def days_per_occurrence(habit: HabitConfig) -> float:
    """Average calendar days between two due occurrences (or periods)."""
    unit = granularity(habit)
    if unit == MONTH:
        return 30.0
    if unit == WEEK:
        return 7.0
    if habit.frequency == Frequency.WEEKLY:
        return 7.0 / len(habit.days_of_week)
    return 1.0


def is_scheduled(habit: HabitConfig, day: date) -> bool:
    """Calendar-level schedule check, ignoring quotas.

    Day-granular habits match on weekday; period habits are open every day
    the user may choose to act. Days before the habit starts or inside a
    pause window are never scheduled.
    """
    if habit.created_on is not None and day < habit.created_on:
        return False
    if habit.is_paused_on(day):
        return False
    if granularity(habit) != DAY:
        return True
    if habit.frequency == Frequency.DAILY:
        return True
    return day.isoweekday() in habit.days_of_week


def is_due(habit: HabitConfig, day: date, completed_days: AbstractSet[date] = frozenset()) -> bool:
    """Whether ``habit`` requires action on ``day``.

    For week- and month-granular habits, ``completed_days`` holds the habit's
    qualifying days: the habit stays due on each day of the period until the
    quota has been met on earlier days.
    """
    if not is_scheduled(habit, day):
        return False
    if granularity(habit) == DAY:
        return True
    start, _ = period_bounds(habit, day)
    done_before = sum(1 for done in completed_days if start <= done < day)
    return done_before < period_target(habit)


def due_days(habit: HabitConfig, start: date, end: date) -> Iterator[date]:
    """Due occurrences of a day-granular habit inside ``[start, end]``."""
    for day in iter_days(start, end):
        if is_scheduled(habit, day):
            yield day


def period_is_paused(habit: HabitConfig, start: date, end: date) -> bool:
    return any(habit.is_paused_on(day) for day in iter_days(start, end))


__all__ = [
    "DAY",
    "WEEK",
    "MONTH",
    "WEEKDAY_NAMES",
    "iter_days",
    "week_start",
    "week_end",
    "month_start",
    "month_end",
    "granularity",
    "period_bounds",
    "previous_period",
    "next_period",
    "iter_periods",
    "period_target",
    "days_per_occurrence",
    "is_scheduled",
    "is_due",
    "due_days",
    "period_is_paused",
]
