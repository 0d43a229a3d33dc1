"""Milestone detection: crossing rule and permanence."""

from datetime import datetime

import pytest

pytestmark = pytest.mark.unit

from habitflow.domains.habits.engine.milestones import (
    DEFAULT_STREAK_MILESTONES,
    crossed_thresholds,
    detect,
    next_threshold,
)
from habitflow.domains.habits.engine.types import MilestoneType
from habitflow.domains.habits.stores import InMemoryMilestoneStore

NOW = datetime(2024, 3, 20, 12, 0)


class TestCrossedThresholds:
    def test_single_crossing(self):
        assert crossed_thresholds(6, 7, DEFAULT_STREAK_MILESTONES) == [7]

    def test_jump_fires_every_threshold_in_between(self):
        assert crossed_thresholds(5, 15, DEFAULT_STREAK_MILESTONES) == [7, 14]

    def test_no_crossing_on_decrease_or_equal(self):
        assert crossed_thresholds(10, 3, DEFAULT_STREAK_MILESTONES) == []
        assert crossed_thresholds(7, 7, DEFAULT_STREAK_MILESTONES) == []

    def test_reaching_exactly_from_below_only(self):
        assert crossed_thresholds(7, 8, DEFAULT_STREAK_MILESTONES) == []

    def test_next_threshold_skips_earned(self):
        assert next_threshold(3, DEFAULT_STREAK_MILESTONES) == 7
        assert next_threshold(3, DEFAULT_STREAK_MILESTONES, earned={7, 14}) == 21
        assert next_threshold(2000, DEFAULT_STREAK_MILESTONES) is None


class TestDetect:
    """Milestones are created once per (habit, type, value)."""

    def test_creates_records_for_crossed_thresholds(self):
        store = InMemoryMilestoneStore()
        created = detect(store, 1, 6, 14, now=NOW, user_id=1)
        assert [m.value for m in created] == [7, 14]
        assert all(m.type == MilestoneType.STREAK for m in created)
        assert all(m.achieved_at == NOW for m in created)

    def test_rebuilt_streak_does_not_duplicate(self):
        store = InMemoryMilestoneStore()
        detect(store, 1, 6, 7, now=NOW, user_id=1)
        # streak broke and was rebuilt
        again = detect(store, 1, 6, 7, now=NOW, user_id=1)
        assert again == []
        assert len(store.list(1)) == 1

    def test_completion_milestones_are_a_separate_type(self):
        store = InMemoryMilestoneStore()
        detect(store, 1, 6, 7, now=NOW, user_id=1)
        created = detect(
            store, 1, 9, 10, now=NOW, thresholds=(10, 25), kind=MilestoneType.COMPLETIONS, user_id=1
        )
        assert [(m.type, m.value) for m in created] == [(MilestoneType.COMPLETIONS, 10)]

    def test_milestones_are_per_habit(self):
        store = InMemoryMilestoneStore()
        detect(store, 1, 6, 7, now=NOW, user_id=1)
        assert [m.value for m in detect(store, 2, 6, 7, now=NOW, user_id=1)] == [7]
        assert [m.habit_id for m in store.list(1, habit_id=2)] == [2]
