"""Analytics service: builds the ledger index per request and caches views per user."""

from __future__ import annotations

import logging
from datetime import date
from threading import Lock
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from habitflow.core.errors import InvalidInputError, NotFoundError
from habitflow.core.events.event_bus import DomainEvent, EventBus, event_bus
from habitflow.core.utils.pagination import paginate
from habitflow.domains.habits.engine import aggregation, insights
from habitflow.domains.habits.engine.cancellation import CancellationToken
from habitflow.domains.habits.engine.index import LedgerIndex
from habitflow.domains.habits.engine.settings import DEFAULT_SETTINGS, EngineSettings
from habitflow.domains.habits.engine.streaks import recompute
from habitflow.domains.habits.engine.types import HabitConfig, MilestoneType
from habitflow.domains.habits.events import EVENT_CATALOG
from habitflow.domains.habits.stores.base import Clock, HabitStore, LedgerStore, MilestoneStore

logger = logging.getLogger(__name__)

MAX_CACHED_VIEWS_PER_USER = 64


class AnalyticsService:
    """Read side of the engine.

    Views are cached per user and dropped whenever a habits event for that
    user is published. Insight queries are always computed on demand.
    """

    def __init__(
        self,
        habits: HabitStore,
        ledger: LedgerStore,
        milestones: MilestoneStore,
        clock: Clock,
        settings: EngineSettings = DEFAULT_SETTINGS,
        bus: EventBus = event_bus,
        cache_enabled: bool = True,
    ) -> None:
        self.habits = habits
        self.ledger = ledger
        self.milestones = milestones
        self.clock = clock
        self.settings = settings
        self.bus = bus
        self.cache_enabled = cache_enabled
        self._cache: Dict[int, Dict[Hashable, Any]] = {}
        self._generations: Dict[int, int] = {}
        self._lock = Lock()
        for event_type in EVENT_CATALOG:
            bus.subscribe(event_type, self.invalidate_event)

    def close(self) -> None:
        for event_type in EVENT_CATALOG:
            self.bus.unsubscribe(event_type, self.invalidate_event)

    # Cache

    def invalidate_event(self, event: DomainEvent) -> None:
        user_id = event.user_id if event.user_id is not None else event.payload.get("user_id")
        if user_id is not None:
            self.invalidate(int(user_id))

    def invalidate(self, user_id: int) -> None:
        with self._lock:
            self._cache.pop(user_id, None)
            self._generations[user_id] = self._generations.get(user_id, 0) + 1

    def cached_keys(self, user_id: int) -> List[Hashable]:
        with self._lock:
            return list(self._cache.get(user_id, {}))

    def _cached(self, user_id: int, key: Tuple, compute: Callable[[], Any]) -> Any:
        """Serve ``key`` from the user's cache, computing and storing it on a miss.

        A result is stored only if no invalidation for the user happened while
        it was computed; otherwise it may predate a committed write.
        """
        if not self.cache_enabled:
            return compute()
        today = self.clock.today()
        key = key + (today,)
        with self._lock:
            bucket = self._cache.get(user_id)
            if bucket is not None and key in bucket:
                return bucket[key]
            generation = self._generations.get(user_id, 0)
        value = compute()
        with self._lock:
            if self._generations.get(user_id, 0) != generation:
                return value
            bucket = self._cache.setdefault(user_id, {})
            for stale in [cached for cached in bucket if cached[-1] != today]:
                del bucket[stale]
            bucket[key] = value
            while len(bucket) > MAX_CACHED_VIEWS_PER_USER:
                del bucket[next(iter(bucket))]
        return value

    # Index

    def token(self) -> CancellationToken:
        timeout = self.settings.analytics_timeout_seconds
        # Non-positive disables the deadline.
        return CancellationToken(timeout=timeout if timeout > 0 else None)

    def _index(self, user_id: int, include_archived: bool = False) -> Tuple[List[HabitConfig], LedgerIndex]:
        """Tracked habits with streaks recomputed for today, and their ledger index."""
        today = self.clock.today()
        habits = self.habits.list_for_user(user_id, include_archived=include_archived)
        if not include_archived:
            habits = [habit for habit in habits if habit.is_active]
        entries = self.ledger.query_user(user_id)
        by_habit: Dict[int, list] = {}
        for entry in entries:
            by_habit.setdefault(entry.habit_id, []).append(entry)
        fresh = []
        for habit in habits:
            if not habit.is_frozen(today):
                habit = habit.with_streak(recompute(habit, by_habit.get(habit.id, []), today))
            fresh.append(habit)
        index = LedgerIndex(fresh, entries)
        return index.habits, index

    def _owned(self, user_id: int, habit_id: int) -> HabitConfig:
        habit = self.habits.get(habit_id)
        if habit is None or habit.user_id != user_id:
            raise NotFoundError("habit", habit_id)
        return habit

    # Aggregations

    def overview(self, user_id: int) -> dict:
        def compute() -> dict:
            today = self.clock.today()
            everything = self.habits.list_for_user(user_id, include_archived=True)
            habits, index = self._index(user_id)
            result = aggregation.overview(habits, index, today)
            result["archived_habits"] = sum(1 for habit in everything if habit.is_archived)
            return result

        return self._cached(user_id, ("overview",), compute)

    def weekly(self, user_id: int, anchor: Optional[date] = None) -> dict:
        today = self.clock.today()
        anchor = anchor or today

        def compute() -> dict:
            habits, index = self._index(user_id)
            return aggregation.weekly_view(habits, index, anchor, today)

        return self._cached(user_id, ("weekly", anchor), compute)

    def monthly(self, user_id: int, year: Optional[int] = None, month: Optional[int] = None) -> dict:
        today = self.clock.today()
        year, month = year or today.year, month or today.month

        def compute() -> dict:
            habits, index = self._index(user_id)
            return aggregation.monthly_view(habits, index, year, month, today)

        return self._cached(user_id, ("monthly", year, month), compute)

    def calendar(self, user_id: int, year: Optional[int] = None, month: Optional[int] = None) -> dict:
        today = self.clock.today()
        year, month = year or today.year, month or today.month

        def compute() -> dict:
            habits, index = self._index(user_id)
            return aggregation.calendar_view(habits, index, year, month, today)

        return self._cached(user_id, ("calendar", year, month), compute)

    def heatmap(self, user_id: int, year: Optional[int] = None, habit_id: Optional[int] = None) -> dict:
        today = self.clock.today()
        year = year or today.year
        if habit_id is not None:
            self._owned(user_id, habit_id)

        def compute() -> dict:
            habits, index = self._index(user_id, include_archived=habit_id is not None)
            return aggregation.heatmap(
                habits,
                index,
                year,
                today,
                habit_id=habit_id,
                token=self.token(),
                boundaries=self.settings.heatmap_level_boundaries,
            )

        return self._cached(user_id, ("heatmap", year, habit_id), compute)

    def categories(self, user_id: int) -> dict:
        def compute() -> dict:
            habits, index = self._index(user_id)
            return aggregation.category_breakdown(habits, index, self.clock.today())

        return self._cached(user_id, ("categories",), compute)

    def week_comparison(self, user_id: int) -> dict:
        def compute() -> dict:
            habits, index = self._index(user_id)
            return aggregation.week_comparison(
                habits, index, self.clock.today(), self.settings.week_trend_min_change
            )

        return self._cached(user_id, ("week_comparison",), compute)

    def monthly_trend(self, user_id: int) -> dict:
        def compute() -> dict:
            habits, index = self._index(user_id)
            return aggregation.monthly_trend(habits, index, self.clock.today())

        return self._cached(user_id, ("monthly_trend",), compute)

    def habit_stats(self, user_id: int, habit_id: int) -> dict:
        self._owned(user_id, habit_id)

        def compute() -> dict:
            habits, index = self._index(user_id, include_archived=True)
            habit = next(h for h in habits if h.id == habit_id)
            return aggregation.habit_stats(
                habit, index, self.clock.today(), self.milestones.list(user_id, habit_id)
            )

        return self._cached(user_id, ("habit_stats", habit_id), compute)

    def streaks(self, user_id: int, page: int = 1, per_page: int = 20) -> dict:
        def compute() -> List[dict]:
            habits, _ = self._index(user_id)
            return aggregation.streak_leaderboard(habits)

        return paginate(self._cached(user_id, ("streaks",), compute), page, per_page)

    def today(self, user_id: int) -> dict:
        def compute() -> dict:
            habits, index = self._index(user_id)
            return aggregation.today_list(habits, index, self.clock.today())

        return self._cached(user_id, ("today",), compute)

    def for_date(self, user_id: int, day: date) -> dict:
        today = self.clock.today()
        if day > today:
            raise InvalidInputError("date cannot be in the future", details={"date": day.isoformat()})

        def compute() -> dict:
            habits, index = self._index(user_id)
            items = aggregation.habits_for_date(habits, index, day)
            due = [item for item in items if item["due"]]
            completed = sum(1 for item in due if item["completed"])
            return {
                "date": day.isoformat(),
                "habits": items,
                "due": len(due),
                "completed": completed,
                "percentage": aggregation.rate(completed, len(due)),
            }

        return self._cached(user_id, ("for_date", day), compute)

    # Insights (never cached)

    def productivity(self, user_id: int) -> dict:
        habits, index = self._index(user_id)
        return insights.productivity_score(habits, index, self.clock.today(), self.settings)

    def day_of_week(self, user_id: int) -> dict:
        habits, index = self._index(user_id)
        return insights.day_of_week_performance(
            habits, index, self.clock.today(), self.settings.day_of_week_lookback_days
        )

    def correlations(self, user_id: int, page: int = 1, per_page: int = 20) -> dict:
        habits, index = self._index(user_id)
        results = insights.correlations(habits, index, self.clock.today(), self.settings, self.token())
        return paginate(results, page, per_page)

    def predictions(self, user_id: int, page: int = 1, per_page: int = 20) -> dict:
        habits, index = self._index(user_id)
        earned: Dict[int, set] = {}
        for milestone in self.milestones.list(user_id):
            if milestone.type == MilestoneType.STREAK:
                earned.setdefault(milestone.habit_id, set()).add(milestone.value)
        results = insights.milestone_predictions(habits, index, earned, self.clock.today(), self.settings)
        return paginate(results, page, per_page)

    def insight_summary(self, user_id: int) -> dict:
        habits, index = self._index(user_id)
        return insights.insight_summary(habits, index, self.clock.today(), self.settings)


__all__ = ["AnalyticsService"]
