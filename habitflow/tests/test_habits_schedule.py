"""Tests for schedule resolution: due days, periods and pauses."""

from datetime import date, timedelta

import pytest

pytestmark = pytest.mark.unit

from habitflow.domains.habits.engine.schedule import (
    DAY,
    MONTH,
    WEEK,
    days_per_occurrence,
    due_days,
    granularity,
    is_due,
    is_scheduled,
    period_bounds,
    period_target,
)
from habitflow.domains.habits.engine.types import Frequency, HabitConfig, PauseWindow

WEDNESDAY = date(2024, 3, 20)
MONDAY = date(2024, 3, 18)


def _habit(**overrides) -> HabitConfig:
    fields = {"id": 1, "user_id": 1, "name": "Read", "created_on": date(2024, 1, 1)}
    fields.update(overrides)
    return HabitConfig(**fields)


class TestGranularity:
    """Habits resolve to day, week or month units."""

    def test_daily_is_day_granular(self):
        assert granularity(_habit()) == DAY

    def test_weekly_with_days_is_day_granular(self):
        habit = _habit(frequency=Frequency.WEEKLY, days_of_week=frozenset({1, 3}))
        assert granularity(habit) == DAY
        assert days_per_occurrence(habit) == pytest.approx(3.5)

    def test_weekly_quota_is_week_granular(self):
        habit = _habit(frequency=Frequency.WEEKLY, times_per_week=3)
        assert granularity(habit) == WEEK
        assert period_target(habit) == 3
        assert period_bounds(habit, WEDNESDAY) == (MONDAY, MONDAY + timedelta(days=6))

    def test_monthly_is_month_granular(self):
        habit = _habit(frequency=Frequency.MONTHLY)
        assert granularity(habit) == MONTH
        assert period_target(habit) == 1
        assert period_bounds(habit, date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))


class TestIsDue:
    """Day-level due checks."""

    def test_daily_due_every_day_from_creation(self):
        habit = _habit(created_on=WEDNESDAY)
        assert is_due(habit, WEDNESDAY)
        assert is_due(habit, WEDNESDAY + timedelta(days=1))
        assert not is_due(habit, WEDNESDAY - timedelta(days=1))

    def test_weekly_days_match_iso_weekday(self):
        habit = _habit(frequency=Frequency.WEEKLY, days_of_week=frozenset({1, 5}))
        assert is_due(habit, MONDAY)
        assert not is_due(habit, WEDNESDAY)
        assert is_due(habit, date(2024, 3, 22))
        assert list(due_days(habit, MONDAY, MONDAY + timedelta(days=6))) == [
            MONDAY,
            date(2024, 3, 22),
        ]

    def test_pause_window_days_are_not_due(self):
        habit = _habit(pause_windows=(PauseWindow(MONDAY, WEDNESDAY),))
        assert not is_due(habit, MONDAY)
        assert not is_due(habit, WEDNESDAY)
        assert is_due(habit, WEDNESDAY + timedelta(days=1))
        assert not is_scheduled(habit, MONDAY)

    def test_open_ended_pause_covers_the_future(self):
        habit = _habit(pause_windows=(PauseWindow(MONDAY),))
        assert not is_due(habit, MONDAY + timedelta(days=300))

    def test_weekly_quota_stays_due_until_met(self):
        habit = _habit(frequency=Frequency.WEEKLY, times_per_week=2)
        done = frozenset({MONDAY})
        assert is_due(habit, WEDNESDAY, done)
        done = frozenset({MONDAY, MONDAY + timedelta(days=1)})
        assert not is_due(habit, WEDNESDAY, done)
        # the next week starts fresh
        assert is_due(habit, MONDAY + timedelta(days=7), done)

    def test_monthly_due_until_first_completion(self):
        habit = _habit(frequency=Frequency.MONTHLY)
        done = frozenset({date(2024, 3, 5)})
        assert is_due(habit, date(2024, 3, 5), done)
        assert not is_due(habit, date(2024, 3, 6), done)
        assert is_due(habit, date(2024, 4, 1), done)
