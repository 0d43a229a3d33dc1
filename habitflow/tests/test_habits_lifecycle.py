"""Habit lifecycle: validation, edits, archive, pause and ordering."""

from datetime import date, timedelta

import pytest

pytestmark = pytest.mark.unit

from habitflow.core.errors import ConflictError, DuplicateError, InvalidInputError, NotFoundError
from habitflow.domains.habits.engine.types import Frequency, HabitType
from habitflow.domains.habits.events import HABITS_HABIT_CREATED, HABITS_HABIT_DELETED
from habitflow.domains.habits.services import habit_to_dict
from habitflow.domains.habits.services.lifecycle import DEFAULT_CATEGORIES

TODAY = date(2024, 3, 20)
USER_ID = 1


class TestCreate:
    def test_defaults(self, runtime):
        habit = runtime.habits.create(USER_ID, name="  Read  ")
        assert habit.id == 1
        assert habit.name == "Read"
        assert habit.frequency == Frequency.DAILY
        assert habit.habit_type == HabitType.BOOLEAN
        assert habit.color == "#0ea5e9"
        assert habit.created_on == TODAY
        assert habit.sort_order == 0

    def test_sort_order_appends(self, runtime):
        runtime.habits.create(USER_ID, name="Read")
        second = runtime.habits.create(USER_ID, name="Walk")
        assert second.sort_order == 1

    def test_duplicate_name_is_rejected(self, runtime):
        runtime.habits.create(USER_ID, name="Read")
        with pytest.raises(DuplicateError):
            runtime.habits.create(USER_ID, name="Read")
        # other users may reuse the name
        assert runtime.habits.create(USER_ID + 1, name="Read").user_id == USER_ID + 1

    @pytest.mark.parametrize(
        "fields, field",
        [
            ({"name": ""}, "name"),
            ({"name": "x" * 101}, "name"),
            ({"name": "Water", "habit_type": "NUMERIC", "unit": "glasses"}, "target_value"),
            ({"name": "Water", "habit_type": "NUMERIC", "target_value": 8}, "unit"),
            ({"name": "Read", "target_value": 3}, "target_value"),
            ({"name": "Gym", "frequency": "WEEKLY"}, "frequency"),
            ({"name": "Gym", "frequency": "WEEKLY", "days_of_week": [0, 8]}, "days_of_week"),
            ({"name": "Gym", "days_of_week": [1]}, "frequency"),
            ({"name": "Read", "color": "blue"}, "color"),
        ],
    )
    def test_invalid_configuration(self, runtime, fields, field):
        with pytest.raises(InvalidInputError) as exc:
            runtime.habits.create(USER_ID, **fields)
        assert field in exc.value.details
        assert runtime.habits.list(USER_ID, include_archived=True) == []

    def test_publishes_created_event(self, runtime):
        seen = []
        runtime.ledger.bus.subscribe(HABITS_HABIT_CREATED, seen.append)
        habit = runtime.habits.create(USER_ID, name="Read")
        assert seen[0].payload["habit_id"] == habit.id
        assert seen[0].user_id == USER_ID


class TestUpdate:
    def test_switch_to_boolean_clears_target(self, runtime):
        habit = runtime.habits.create(
            USER_ID, name="Water", habit_type="NUMERIC", target_value=8, unit="glasses"
        )
        updated = runtime.habits.update(USER_ID, habit.id, habit_type="BOOLEAN")
        assert updated.target_value is None
        assert updated.unit is None

    def test_switch_to_daily_clears_weekly_fields(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Gym", frequency="WEEKLY", times_per_week=3)
        updated = runtime.habits.update(USER_ID, habit.id, frequency="DAILY")
        assert updated.times_per_week is None
        assert updated.days_of_week == frozenset()

    def test_schedule_change_recomputes_streak(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Gym")
        for offset in (-2, 0):
            runtime.ledger.check_in(USER_ID, habit.id, day=TODAY + timedelta(days=offset))
        assert runtime.habits.get(USER_ID, habit.id).current_streak == 1

        # Monday and Wednesday only: the Tuesday gap no longer breaks the run.
        updated = runtime.habits.update(
            USER_ID, habit.id, frequency="WEEKLY", days_of_week=[1, 3]
        )
        assert updated.current_streak == 2

    def test_rename_to_existing_name_conflicts(self, runtime):
        runtime.habits.create(USER_ID, name="Read")
        habit = runtime.habits.create(USER_ID, name="Walk")
        with pytest.raises(DuplicateError):
            runtime.habits.update(USER_ID, habit.id, name="Read")

    def test_foreign_habit_is_not_found(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Read")
        with pytest.raises(NotFoundError):
            runtime.habits.update(USER_ID + 1, habit.id, name="Mine")


class TestArchive:
    def test_archive_hides_from_default_list(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Read")
        archived = runtime.habits.archive(USER_ID, habit.id)
        assert archived.is_archived
        assert runtime.habits.list(USER_ID) == []
        assert [h.id for h in runtime.habits.list(USER_ID, include_archived=True)] == [habit.id]

    def test_archive_is_idempotent(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Read")
        runtime.habits.archive(USER_ID, habit.id)
        assert runtime.habits.archive(USER_ID, habit.id).is_archived

    def test_unarchive_requires_archived(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Read")
        with pytest.raises(ConflictError):
            runtime.habits.unarchive(USER_ID, habit.id)


class TestPause:
    def test_pause_and_serialize(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Read")
        until = TODAY + timedelta(days=5)
        paused = runtime.habits.pause(USER_ID, habit.id, paused_until=until, reason="travel")
        data = habit_to_dict(paused, TODAY)
        assert data["is_paused"] is True
        assert data["paused_until"] == until.isoformat()
        assert data["pause_windows"] == [
            {"start": TODAY.isoformat(), "end": until.isoformat(), "reason": "travel"}
        ]

    def test_pausing_again_extends_the_window(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Read")
        runtime.habits.pause(USER_ID, habit.id, paused_until=TODAY + timedelta(days=2))
        paused = runtime.habits.pause(USER_ID, habit.id, paused_until=TODAY + timedelta(days=9))
        assert len(paused.pause_windows) == 1
        assert paused.pause_windows[0].end == TODAY + timedelta(days=9)

    def test_past_pause_end_is_rejected(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Read")
        with pytest.raises(InvalidInputError):
            runtime.habits.pause(USER_ID, habit.id, paused_until=TODAY - timedelta(days=1))

    def test_archived_habit_cannot_pause(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Read")
        runtime.habits.archive(USER_ID, habit.id)
        with pytest.raises(ConflictError):
            runtime.habits.pause(USER_ID, habit.id)

    def test_resume_closes_window_at_yesterday(self, runtime, clock):
        habit = runtime.habits.create(USER_ID, name="Read")
        runtime.habits.pause(USER_ID, habit.id)
        clock.advance(3)
        resumed = runtime.habits.resume(USER_ID, habit.id)
        (window,) = resumed.pause_windows
        assert window.start == TODAY
        assert window.end == TODAY + timedelta(days=2)
        assert not resumed.is_paused_on(clock.today())


class TestDeleteAndReorder:
    def test_delete_removes_records_and_milestones(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Read")
        for offset in range(-6, 1):
            runtime.ledger.check_in(USER_ID, habit.id, day=TODAY + timedelta(days=offset))
        seen = []
        runtime.ledger.bus.subscribe(HABITS_HABIT_DELETED, seen.append)

        runtime.habits.delete(USER_ID, habit.id)

        assert seen and seen[0].payload["habit_id"] == habit.id
        assert runtime.ledger.milestones.list(USER_ID) == []
        assert runtime.ledger.ledger.query(habit.id) == []
        with pytest.raises(NotFoundError):
            runtime.habits.get(USER_ID, habit.id)

    def test_reorder(self, runtime):
        first = runtime.habits.create(USER_ID, name="Read")
        second = runtime.habits.create(USER_ID, name="Walk")
        third = runtime.habits.create(USER_ID, name="Stretch")
        ordered = runtime.habits.reorder(USER_ID, [third.id, first.id, second.id])
        assert [h.name for h in ordered] == ["Stretch", "Read", "Walk"]
        assert [h.sort_order for h in ordered] == [0, 1, 2]


class TestStacking:
    """Habits can be chained after one another without loops."""

    def test_stack_and_unstack(self, runtime):
        anchor = runtime.habits.create(USER_ID, name="Coffee")
        habit = runtime.habits.create(USER_ID, name="Journal")
        stacked = runtime.habits.stack(USER_ID, habit.id, anchor.id)
        assert stacked.stacked_after_id == anchor.id
        assert habit_to_dict(stacked)["stacked_after_id"] == anchor.id

        assert runtime.habits.stack(USER_ID, habit.id, None).stacked_after_id is None

    def test_stacking_after_itself_is_invalid(self, runtime):
        habit = runtime.habits.create(USER_ID, name="Journal")
        with pytest.raises(InvalidInputError):
            runtime.habits.stack(USER_ID, habit.id, habit.id)

    def test_circular_chain_conflicts(self, runtime):
        first = runtime.habits.create(USER_ID, name="Coffee")
        second = runtime.habits.create(USER_ID, name="Journal")
        third = runtime.habits.create(USER_ID, name="Stretch")
        runtime.habits.stack(USER_ID, second.id, first.id)
        runtime.habits.stack(USER_ID, third.id, second.id)
        with pytest.raises(ConflictError):
            runtime.habits.stack(USER_ID, first.id, third.id)
        assert runtime.habits.get(USER_ID, first.id).stacked_after_id is None

    def test_foreign_target_is_not_found(self, runtime):
        foreign = runtime.habits.create(USER_ID + 1, name="Coffee")
        habit = runtime.habits.create(USER_ID, name="Journal")
        with pytest.raises(NotFoundError):
            runtime.habits.stack(USER_ID, habit.id, foreign.id)

    def test_delete_unstacks_dependents(self, runtime):
        anchor = runtime.habits.create(USER_ID, name="Coffee")
        habit = runtime.habits.create(USER_ID, name="Journal")
        runtime.habits.stack(USER_ID, habit.id, anchor.id)
        runtime.habits.delete(USER_ID, anchor.id)
        assert runtime.habits.get(USER_ID, habit.id).stacked_after_id is None


class TestCategories:
    def test_counts_unarchived_habits_and_lists_defaults(self, runtime):
        runtime.habits.create(USER_ID, name="Run", category="Fitness")
        runtime.habits.create(USER_ID, name="Lift", category="Fitness")
        runtime.habits.create(USER_ID, name="Read", category="Learning")
        archived = runtime.habits.create(USER_ID, name="Swim", category="Sport")
        runtime.habits.archive(USER_ID, archived.id)
        runtime.habits.create(USER_ID, name="Nap")

        result = runtime.habits.categories(USER_ID)
        assert result["categories"] == [
            {"name": "Fitness", "habit_count": 2},
            {"name": "Learning", "habit_count": 1},
        ]
        assert result["default_categories"] == list(DEFAULT_CATEGORIES)
        assert "Other" in result["default_categories"]
