"""Completion ledger behaviour over in-memory stores."""

from datetime import date, timedelta
from threading import Thread

import pytest

pytestmark = pytest.mark.unit

from habitflow.core.errors import InvalidInputError, NotFoundError
from habitflow.domains.habits.engine.streaks import recompute
from habitflow.domains.habits.engine.types import MilestoneType, StreakSnapshot
from habitflow.domains.habits.events import HABITS_CHECKIN_RECORDED, HABITS_MILESTONE_ACHIEVED
from habitflow.domains.habits.services.analytics import MAX_CACHED_VIEWS_PER_USER
from habitflow.domains.habits.services.ledger import KeyedLocks

TODAY = date(2024, 3, 20)
USER_ID = 1


def _day(offset: int) -> date:
    return TODAY + timedelta(days=offset)


def _create(runtime, name="Meditate", **fields):
    return runtime.habits.create(USER_ID, name=name, **fields)


class TestCheckIn:
    """Check-ins upsert one record per habit and day."""

    def test_check_in_today_starts_streak(self, runtime):
        habit = _create(runtime)
        result = runtime.ledger.check_in(USER_ID, habit.id)
        assert result.record.day == TODAY
        assert result.record.completed is True
        assert result.streak.current_streak == 1
        assert runtime.habits.get(USER_ID, habit.id).current_streak == 1

    def test_repeat_check_in_replaces_record(self, runtime):
        habit = _create(runtime)
        runtime.ledger.check_in(USER_ID, habit.id, notes="first")
        result = runtime.ledger.check_in(USER_ID, habit.id, notes="second")
        records = runtime.ledger.history(USER_ID, habit.id).to_list()
        assert len(records) == 1
        assert records[0].notes == "second"
        assert result.streak.total_completions == 1

    def test_identical_check_in_is_idempotent(self, runtime):
        habit = _create(runtime)
        first = runtime.ledger.check_in(USER_ID, habit.id, notes="done")
        second = runtime.ledger.check_in(USER_ID, habit.id, notes="done")
        assert second.streak == first.streak
        assert second.record == first.record
        assert second.milestones == []
        assert runtime.ledger.history(USER_ID, habit.id).to_list() == [first.record]
        assert runtime.habits.get(USER_ID, habit.id).streak == first.streak

    def test_future_date_is_rejected(self, runtime):
        habit = _create(runtime)
        with pytest.raises(InvalidInputError):
            runtime.ledger.check_in(USER_ID, habit.id, day=_day(1))
        assert runtime.ledger.history(USER_ID, habit.id).to_list() == []

    def test_unknown_or_foreign_habit_is_not_found(self, runtime):
        habit = _create(runtime)
        with pytest.raises(NotFoundError):
            runtime.ledger.check_in(USER_ID, 999)
        with pytest.raises(NotFoundError):
            runtime.ledger.check_in(USER_ID + 1, habit.id)

    def test_numeric_habit_needs_a_value(self, runtime):
        habit = _create(runtime, name="Water", habit_type="NUMERIC", target_value=8, unit="glasses")
        with pytest.raises(InvalidInputError) as exc:
            runtime.ledger.check_in(USER_ID, habit.id)
        assert "value" in exc.value.details

    def test_numeric_completion_follows_target(self, runtime):
        habit = _create(runtime, name="Water", habit_type="NUMERIC", target_value=8, unit="glasses")
        short = runtime.ledger.check_in(USER_ID, habit.id, value=5)
        assert short.record.completed is False
        assert short.streak.current_streak == 0

        met = runtime.ledger.check_in(USER_ID, habit.id, value=9)
        assert met.record.completed is True
        assert met.streak.current_streak == 1

    def test_numeric_flag_is_derived_from_value(self, runtime):
        habit = _create(runtime, name="Water", habit_type="NUMERIC", target_value=8, unit="glasses")
        claimed = runtime.ledger.check_in(USER_ID, habit.id, value=5, completed=True)
        assert claimed.record.completed is False
        assert claimed.streak.current_streak == 0

        denied = runtime.ledger.check_in(USER_ID, habit.id, value=9, completed=False)
        assert denied.record.completed is True
        assert denied.streak.current_streak == 1

    def test_negative_value_is_rejected(self, runtime):
        habit = _create(runtime, name="Run", habit_type="DURATION", target_value=20, unit="min")
        with pytest.raises(InvalidInputError):
            runtime.ledger.check_in(USER_ID, habit.id, value=-1)

    def test_backdated_check_ins_build_streak_and_milestone(self, runtime):
        habit = _create(runtime)
        seen = []
        runtime.ledger.bus.subscribe(HABITS_MILESTONE_ACHIEVED, seen.append)

        results = [runtime.ledger.check_in(USER_ID, habit.id, day=_day(offset)) for offset in range(-6, 1)]

        assert results[-1].streak.current_streak == 7
        assert [(m.type, m.value) for m in results[-1].milestones] == [(MilestoneType.STREAK, 7)]
        assert [event.payload["value"] for event in seen] == [7]
        assert [m.value for m in runtime.ledger.list_milestones(USER_ID, habit.id)] == [7]

    def test_check_in_publishes_event(self, runtime):
        habit = _create(runtime)
        seen = []
        runtime.ledger.bus.subscribe(HABITS_CHECKIN_RECORDED, seen.append)
        runtime.ledger.check_in(USER_ID, habit.id)
        assert len(seen) == 1
        assert seen[0].payload["habit_id"] == habit.id
        assert seen[0].payload["current_streak"] == 1


class TestUndo:
    def test_undo_reverts_streak(self, runtime):
        habit = _create(runtime)
        runtime.ledger.check_in(USER_ID, habit.id, day=_day(-1))
        runtime.ledger.check_in(USER_ID, habit.id)
        streak = runtime.ledger.undo(USER_ID, habit.id)
        assert streak.current_streak == 1
        assert streak.total_completions == 1

    def test_undo_without_record_is_a_no_op(self, runtime):
        habit = _create(runtime)
        streak = runtime.ledger.undo(USER_ID, habit.id, day=_day(-3))
        assert streak.current_streak == 0
        assert streak.total_completions == 0


class TestProjection:
    def test_cached_fields_match_a_fresh_recompute(self, runtime):
        habit = _create(runtime)
        for offset in (-9, -8, -7, -5, -4, -3, -2, -1, 0):
            runtime.ledger.check_in(USER_ID, habit.id, day=_day(offset))
        runtime.ledger.undo(USER_ID, habit.id, day=_day(-4))
        runtime.ledger.check_in(USER_ID, habit.id, day=_day(-6))

        cached = runtime.habits.get(USER_ID, habit.id)
        fresh = recompute(cached, runtime.ledger.ledger.query(habit.id), TODAY)
        assert cached.streak == fresh
        assert cached.current_streak <= cached.longest_streak
        assert (fresh.current_streak, fresh.longest_streak) == (4, 5)


class TestFrozenHabits:
    """Archived and paused habits keep their cached streak fields."""

    def test_pause_freezes_then_resume_recomputes(self, runtime):
        habit = _create(runtime)
        runtime.ledger.check_in(USER_ID, habit.id, day=_day(-1))
        runtime.ledger.check_in(USER_ID, habit.id)
        runtime.habits.pause(USER_ID, habit.id)

        result = runtime.ledger.check_in(USER_ID, habit.id, day=_day(-2))
        assert result.streak.current_streak == 2

        resumed = runtime.habits.resume(USER_ID, habit.id)
        assert resumed.pause_windows == ()
        assert resumed.current_streak == 3

    def test_archive_freezes_until_unarchived(self, runtime, clock):
        habit = _create(runtime)
        runtime.ledger.check_in(USER_ID, habit.id)
        runtime.habits.archive(USER_ID, habit.id)

        clock.advance(3)
        assert runtime.ledger.refresh(habit.id)[0].current_streak == 1

        habit = runtime.habits.unarchive(USER_ID, habit.id)
        assert habit.current_streak == 0
        assert habit.longest_streak == 1


class TestHistory:
    def test_history_is_newest_first_and_restartable(self, runtime):
        habit = _create(runtime)
        for offset in (-4, -2, 0):
            runtime.ledger.check_in(USER_ID, habit.id, day=_day(offset))
        view = runtime.ledger.history(USER_ID, habit.id, page_size=2)

        assert [entry.day for entry in view] == [_day(0), _day(-2), _day(-4)]
        runtime.ledger.check_in(USER_ID, habit.id, day=_day(-1))
        assert [entry.day for entry in view] == [_day(0), _day(-1), _day(-2), _day(-4)]

    def test_history_range_and_limit(self, runtime):
        habit = _create(runtime)
        for offset in range(-5, 1):
            runtime.ledger.check_in(USER_ID, habit.id, day=_day(offset))
        view = runtime.ledger.history(USER_ID, habit.id, start=_day(-4), end=_day(-1), limit=3)
        assert [entry.day for entry in view] == [_day(-1), _day(-2), _day(-3)]

    def test_inverted_range_is_rejected(self, runtime):
        habit = _create(runtime)
        with pytest.raises(InvalidInputError):
            runtime.ledger.history(USER_ID, habit.id, start=_day(0), end=_day(-1))


class TestConcurrentWriters:
    """Parallel check-ins never lose a record or leave stale derived fields."""

    @staticmethod
    def _run_all(*targets):
        errors = []

        def guarded(target):
            def run():
                try:
                    target()
                except Exception as exc:
                    errors.append(exc)

            return run

        threads = [Thread(target=guarded(target)) for target in targets]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert errors == []

    def test_same_day_keeps_exactly_one_record(self, runtime):
        habit = _create(runtime)
        notes = [f"writer {i}" for i in range(4)]
        self._run_all(
            *[lambda note=note: runtime.ledger.check_in(USER_ID, habit.id, notes=note) for note in notes]
        )

        records = runtime.ledger.history(USER_ID, habit.id).to_list()
        assert len(records) == 1
        assert records[0].notes in notes
        cached = runtime.habits.get(USER_ID, habit.id)
        assert (cached.current_streak, cached.total_completions) == (1, 1)

    def test_backfilled_days_are_all_counted(self, runtime):
        habit = _create(runtime)
        self._run_all(
            *[
                lambda offset=offset: runtime.ledger.check_in(USER_ID, habit.id, day=_day(offset))
                for offset in range(-3, 1)
            ]
        )

        cached = runtime.habits.get(USER_ID, habit.id)
        assert cached.streak == recompute(cached, runtime.ledger.ledger.query(habit.id), TODAY)
        assert (cached.current_streak, cached.total_completions) == (4, 4)

    def test_recompute_from_stale_records_is_retried(self, runtime, monkeypatch):
        habit = _create(runtime)
        runtime.ledger.check_in(USER_ID, habit.id, day=_day(-1))
        store = runtime.ledger.ledger
        original = store.query
        interleaved = []

        def query(habit_id, *args, **kwargs):
            rows = original(habit_id, *args, **kwargs)
            if not interleaved:
                # Another writer lands after these rows were read.
                interleaved.append(True)
                runtime.ledger.check_in(USER_ID, habit.id, day=_day(-2))
            return rows

        monkeypatch.setattr(store, "query", query)
        result = runtime.ledger.check_in(USER_ID, habit.id)

        assert interleaved
        assert result.streak.current_streak == 3
        assert runtime.habits.get(USER_ID, habit.id).current_streak == 3

    def test_stale_version_write_is_rejected(self, runtime):
        habit = _create(runtime)
        store = runtime.ledger.habits
        snapshot = StreakSnapshot(1, 1, 1, TODAY)
        assert store.update_derived_fields(habit.id, snapshot, expected_version=habit.derived_version)
        assert not store.update_derived_fields(
            habit.id, StreakSnapshot(), expected_version=habit.derived_version
        )
        stored = store.get(habit.id)
        assert stored.streak == snapshot
        assert stored.derived_version == habit.derived_version + 1


class TestKeyedLocks:
    def test_locks_are_dropped_after_release(self):
        locks = KeyedLocks()
        with locks.hold(("habit", 1)):
            with locks.hold(("habit", 2)):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_same_key_serializes(self):
        locks = KeyedLocks()
        order = []

        def worker(tag):
            with locks.hold("k"):
                order.append((tag, "in"))
                order.append((tag, "out"))

        threads = [Thread(target=worker, args=(i,)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for i in range(0, len(order), 2):
            assert order[i][0] == order[i + 1][0]
        assert len(locks) == 0


class TestAnalyticsCache:
    def test_check_in_invalidates_cached_views(self, runtime):
        habit = _create(runtime)
        before = runtime.analytics.overview(USER_ID)
        assert runtime.analytics.cached_keys(USER_ID)

        runtime.ledger.check_in(USER_ID, habit.id)
        assert runtime.analytics.cached_keys(USER_ID) == []
        after = runtime.analytics.overview(USER_ID)
        assert after != before

    def test_other_users_cache_survives(self, runtime):
        habit = _create(runtime)
        runtime.analytics.overview(USER_ID + 1)
        runtime.ledger.check_in(USER_ID, habit.id)
        assert runtime.analytics.cached_keys(USER_ID + 1)

    def test_view_computed_across_a_write_is_not_kept(self, runtime, monkeypatch):
        habit = _create(runtime)
        store = runtime.analytics.ledger
        original = store.query_user
        interleaved = []

        def query_user(user_id, *args, **kwargs):
            rows = original(user_id, *args, **kwargs)
            if not interleaved:
                # The check-in commits after the view read its rows.
                interleaved.append(True)
                runtime.ledger.check_in(USER_ID, habit.id)
            return rows

        monkeypatch.setattr(store, "query_user", query_user)

        assert runtime.analytics.today(USER_ID)["completed"] == 0
        assert runtime.analytics.cached_keys(USER_ID) == []
        assert runtime.analytics.today(USER_ID)["completed"] == 1

    def test_views_from_an_earlier_day_are_dropped(self, runtime, clock):
        runtime.analytics.overview(USER_ID)
        clock.advance(1)
        runtime.analytics.today(USER_ID)
        assert runtime.analytics.cached_keys(USER_ID) == [("today", _day(1))]

    def test_cached_views_per_user_are_bounded(self, runtime):
        for offset in range(MAX_CACHED_VIEWS_PER_USER + 5):
            runtime.analytics.for_date(USER_ID, _day(-offset))
        keys = runtime.analytics.cached_keys(USER_ID)
        assert len(keys) == MAX_CACHED_VIEWS_PER_USER
        assert ("for_date", _day(0), TODAY) not in keys
        assert ("for_date", _day(-MAX_CACHED_VIEWS_PER_USER - 4), TODAY) in keys
