"""Completion ledger: check-in, undo and history.

Store calls run outside any lock: the stores make each upsert, delete and
milestone insert atomic on their own. Only the in-memory streak recomputation
is serialized per habit, and its result is written back with a compare-and-set
on the habit's ``derived_version``.
"""

from __future__ import annotations

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from threading import Lock
from typing import Dict, Hashable, Iterator, List, Optional, Tuple

from habitflow.core.errors import ConflictError, InvalidInputError, NotFoundError
from habitflow.core.events.event_bus import DomainEvent, EventBus, event_bus
from habitflow.domains.habits.engine import milestones as milestone_detector
from habitflow.domains.habits.engine.settings import DEFAULT_SETTINGS, EngineSettings
from habitflow.domains.habits.engine.streaks import recompute
from habitflow.domains.habits.engine.types import (
    CompletionEntry,
    HabitConfig,
    HabitType,
    MilestoneRecord,
    MilestoneType,
    StreakSnapshot,
)
from habitflow.domains.habits.events import (
    HABITS_CHECKIN_RECORDED,
    HABITS_CHECKIN_UNDONE,
    HABITS_MILESTONE_ACHIEVED,
)
from habitflow.domains.habits.stores.base import Clock, HabitStore, LedgerStore, MilestoneStore

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500
MAX_REFRESH_ATTEMPTS = 5


class KeyedLocks:
    """One mutex per key, created on demand and dropped once nobody holds it."""

    def __init__(self) -> None:
        self._locks: Dict[Hashable, List] = {}
        self._guard = Lock()

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


@dataclass(frozen=True)
class CheckInResult:
    record: CompletionEntry
    streak: StreakSnapshot
    milestones: List[MilestoneRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "record": self.record.to_dict(),
            "streak": self.streak.to_dict(),
            "milestones": [m.to_dict() for m in self.milestones],
        }


class HistoryView:
    """Lazy, restartable view of a habit's records, newest first.

    Every iteration pages through the store from the top, so a second pass
    sees writes made after the first one.
    """

    def __init__(
        self,
        store: LedgerStore,
        habit_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
        page_size: int = 50,
    ) -> None:
        self._store = store
        self.habit_id = habit_id
        self.start = start
        self.end = end
        self.limit = limit
        self.page_size = max(int(page_size), 1)

    def __iter__(self) -> Iterator[CompletionEntry]:
        offset = 0
        yielded = 0
        while self.limit is None or yielded < self.limit:
            size = self.page_size
            if self.limit is not None:
                size = min(size, self.limit - yielded)
            page = self._store.query(self.habit_id, self.start, self.end, limit=size, offset=offset)
            for entry in page:
                yield entry
            yielded += len(page)
            if len(page) < size:
                return
            offset += len(page)

    def to_list(self) -> List[CompletionEntry]:
        return list(self)


class CompletionLedger:
    def __init__(
        self,
        habits: HabitStore,
        ledger: LedgerStore,
        milestones: MilestoneStore,
        clock: Clock,
        settings: EngineSettings = DEFAULT_SETTINGS,
        bus: EventBus = event_bus,
    ) -> None:
        self.habits = habits
        self.ledger = ledger
        self.milestones = milestones
        self.clock = clock
        self.settings = settings
        self.bus = bus
        self.locks = KeyedLocks()

    def _owned_habit(self, user_id: int, habit_id: int) -> HabitConfig:
        habit = self.habits.get(habit_id)
        if habit is None or habit.user_id != user_id:
            raise NotFoundError("habit", habit_id)
        return habit

    def _resolve_day(self, day: Optional[date]) -> date:
        today = self.clock.today()
        if day is None:
            return today
        if day > today:
            raise InvalidInputError(
                "date cannot be in the future", details={"date": day.isoformat()}
            )
        return day

    def _build_entry(
        self,
        habit: HabitConfig,
        user_id: int,
        day: date,
        completed: Optional[bool],
        value: Optional[float],
        notes: Optional[str],
    ) -> CompletionEntry:
        errors = {}
        if value is not None:
            value = float(value)
            if not math.isfinite(value) or value < 0:
                errors["value"] = "must be a finite, non-negative number"
        if notes is not None:
            notes = notes.strip() or None
            if notes and len(notes) > MAX_NOTES_LENGTH:
                errors["notes"] = f"must be at most {MAX_NOTES_LENGTH} characters"
        # Numeric and duration habits never trust a caller-supplied flag.
        if habit.habit_type != HabitType.BOOLEAN:
            if value is None:
                errors["value"] = "required for numeric and duration habits"
            elif habit.target_value is not None:
                completed = value >= habit.target_value
            else:
                completed = value > 0
        if errors:
            raise InvalidInputError("invalid check-in", details=errors)
        return CompletionEntry(
            habit_id=habit.id,
            day=day,
            completed=True if completed is None else bool(completed),
            value=value,
            notes=notes,
            user_id=user_id,
        )

    def check_in(
        self,
        user_id: int,
        habit_id: int,
        day: Optional[date] = None,
        completed: Optional[bool] = None,
        value: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> CheckInResult:
        habit = self._owned_habit(user_id, habit_id)
        day = self._resolve_day(day)
        entry = self._build_entry(habit, user_id, day, completed, value, notes)

        record = self.ledger.upsert(entry)
        streak, milestones = self.refresh(habit_id)

        logger.info(
            "Check-in recorded habit_id=%s day=%s completed=%s streak=%s",
            habit_id,
            day.isoformat(),
            record.completed,
            streak.current_streak,
        )
        self.bus.publish(
            DomainEvent(
                HABITS_CHECKIN_RECORDED,
                {
                    "habit_id": habit_id,
                    "user_id": user_id,
                    "day": day.isoformat(),
                    "completed": record.completed,
                    "value": record.value,
                    "current_streak": streak.current_streak,
                    "longest_streak": streak.longest_streak,
                },
                user_id=user_id,
            )
        )
        return CheckInResult(record=record, streak=streak, milestones=milestones)

    def undo(self, user_id: int, habit_id: int, day: Optional[date] = None) -> StreakSnapshot:
        """Remove the record for ``day``; an absent record is a no-op."""
        self._owned_habit(user_id, habit_id)
        day = day or self.clock.today()
        removed = self.ledger.delete(habit_id, day)
        streak, _ = self.refresh(habit_id)

        logger.info(
            "Check-in undone habit_id=%s day=%s removed=%s", habit_id, day.isoformat(), removed
        )
        self.bus.publish(
            DomainEvent(
                HABITS_CHECKIN_UNDONE,
                {
                    "habit_id": habit_id,
                    "user_id": user_id,
                    "day": day.isoformat(),
                    "current_streak": streak.current_streak,
                },
                user_id=user_id,
            )
        )
        return streak

    def history(
        self,
        user_id: int,
        habit_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
        page_size: int = 50,
    ) -> HistoryView:
        self._owned_habit(user_id, habit_id)
        if start is not None and end is not None and start > end:
            raise InvalidInputError("start must not be after end")
        return HistoryView(self.ledger, habit_id, start, end, limit, page_size)

    def refresh(self, habit_id: int) -> Tuple[StreakSnapshot, List[MilestoneRecord]]:
        """Recompute and persist one habit's derived fields, then detect milestones.

        Frozen habits (archived, or paused today) keep their cached fields. When
        another writer updates the derived fields between our read and our write,
        the habit and its records are read again and the recompute is retried.
        """
        today = self.clock.today()
        for _ in range(MAX_REFRESH_ATTEMPTS):
            habit = self.habits.get(habit_id)
            if habit is None:
                raise NotFoundError("habit", habit_id)
            if habit.is_frozen(today):
                return habit.streak, []
            records = self.ledger.query(habit_id)
            with self.locks.hold(("habit", habit_id)):
                snapshot = recompute(habit, records, today)
            if self.habits.update_derived_fields(
                habit_id, snapshot, expected_version=habit.derived_version
            ):
                break
            logger.debug("Derived fields of habit_id=%s changed concurrently, retrying", habit_id)
        else:
            logger.warning("Giving up refresh of habit_id=%s after concurrent updates", habit_id)
            raise ConflictError("habit was updated concurrently, retry the request")
        achieved = self._detect(habit, snapshot)
        for milestone in achieved:
            self.bus.publish(
                DomainEvent(
                    HABITS_MILESTONE_ACHIEVED,
                    {
                        "habit_id": habit_id,
                        "user_id": habit.user_id,
                        "type": milestone.type.value,
                        "value": milestone.value,
                        "achieved_at": milestone.achieved_at.isoformat(),
                    },
                    user_id=habit.user_id,
                )
            )
        return snapshot, achieved

    def _detect(self, habit: HabitConfig, snapshot: StreakSnapshot) -> List[MilestoneRecord]:
        now = self.clock.now()
        achieved = milestone_detector.detect(
            self.milestones,
            habit.id,
            habit.current_streak,
            snapshot.current_streak,
            now=now,
            thresholds=self.settings.streak_milestones,
            kind=MilestoneType.STREAK,
            user_id=habit.user_id,
        )
        achieved += milestone_detector.detect(
            self.milestones,
            habit.id,
            habit.total_completions,
            snapshot.total_completions,
            now=now,
            thresholds=self.settings.completion_milestones,
            kind=MilestoneType.COMPLETIONS,
            user_id=habit.user_id,
        )
        return achieved

    def list_milestones(self, user_id: int, habit_id: Optional[int] = None) -> List[MilestoneRecord]:
        if habit_id is not None:
            self._owned_habit(user_id, habit_id)
        return self.milestones.list(user_id, habit_id)


__all__ = ["KeyedLocks", "CheckInResult", "HistoryView", "CompletionLedger"]
