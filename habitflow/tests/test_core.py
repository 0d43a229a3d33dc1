"""Shared plumbing: errors, event bus, pagination and engine settings."""

from datetime import datetime, timedelta, timezone

import pytest

pytestmark = pytest.mark.unit

from habitflow.core.errors import ComputationCancelled, DuplicateError, NotFoundError
from habitflow.core.events.event_bus import DomainEvent, EventBus
from habitflow.core.utils.pagination import paginate
from habitflow.core.utils.timestamps import utcnow
from habitflow.domains.habits.engine.cancellation import CancellationToken
from habitflow.domains.habits.engine.settings import EngineSettings


class TestErrors:
    def test_errors_keep_a_stable_code(self):
        exc = NotFoundError("habit", 3)
        assert str(exc) == "not_found"
        assert exc.status_code == 404
        assert exc.to_dict() == {"ok": False, "error": "not_found", "message": "habit 3 not found"}

    def test_duplicate_is_a_conflict(self):
        exc = DuplicateError("taken", details={"name": "Read"})
        assert exc.status_code == 409
        assert exc.to_dict()["details"] == {"name": "Read"}


class TestEventBus:
    def test_publish_reaches_subscribers_until_unsubscribed(self):
        bus = EventBus()
        seen = []
        bus.subscribe("habits.habit.created", seen.append)
        bus.subscribe("habits.habit.created", seen.append)  # duplicate registration ignored
        bus.publish(DomainEvent("habits.habit.created", {"habit_id": 1}, user_id=1))
        assert len(seen) == 1

        bus.unsubscribe("habits.habit.created", seen.append)
        bus.publish(DomainEvent("habits.habit.created", {"habit_id": 2}, user_id=1))
        assert len(seen) == 1


class TestPagination:
    def test_pages(self):
        page = paginate(list(range(45)), page=3, per_page=20)
        assert page["items"] == list(range(40, 45))
        assert page["total"] == 45

    def test_per_page_is_capped(self):
        assert paginate(list(range(300)), per_page=1000)["per_page"] == 100


class TestCancellation:
    def test_explicit_cancel(self):
        token = CancellationToken()
        assert not token.cancelled
        token.cancel()
        with pytest.raises(ComputationCancelled):
            token.raise_if_cancelled()

    def test_elapsed_deadline_cancels(self):
        token = CancellationToken(timeout=-1)
        assert token.cancelled


class TestSettings:
    def test_from_config_overrides_defaults(self):
        settings = EngineSettings.from_config(
            {"STREAK_MILESTONES": (3, 5), "CORRELATION_MIN_SAMPLES": "7"}
        )
        assert settings.streak_milestones == (3, 5)
        assert settings.correlation_min_samples == 7
        assert settings.completion_milestones == EngineSettings().completion_milestones


class TestTimestamps:
    def test_utcnow_is_naive_utc(self):
        now = utcnow()
        assert now.tzinfo is None
        reference = datetime.now(timezone.utc).replace(tzinfo=None)
        assert abs(reference - now) < timedelta(seconds=5)
