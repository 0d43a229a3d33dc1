"""Store and clock interfaces the ledger and services are written against."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import List, Optional, Protocol
from zoneinfo import ZoneInfo

from habitflow.core.utils.timestamps import utcnow
from habitflow.domains.habits.engine.types import (
    CompletionEntry,
    HabitConfig,
    MilestoneRecord,
    MilestoneType,
    StreakSnapshot,
)


class Clock(Protocol):
    def today(self) -> date: ...

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock; "today" is the calendar date at the configured day boundary."""

    def __init__(self, tz_name: str = "UTC") -> None:
        self.tz = ZoneInfo(tz_name)

    def today(self) -> date:
        return datetime.now(self.tz).date()

    def now(self) -> datetime:
        return utcnow()


class FixedClock:
    def __init__(self, day: date, now: Optional[datetime] = None) -> None:
        self.day = day
        self._now = now

    def today(self) -> date:
        return self.day

    def now(self) -> datetime:
        if self._now is not None:
            return self._now
        return datetime(self.day.year, self.day.month, self.day.day, 12, 0, 0)

    def set(self, day: date) -> None:
        self.day = day
        self._now = None

    def advance(self, days: int = 1) -> date:
        self.set(self.day + timedelta(days=days))
        return self.day


class LedgerStore(Protocol):
    def upsert(self, entry: CompletionEntry) -> CompletionEntry: ...

    def delete(self, habit_id: int, day: date) -> bool: ...

    def get(self, habit_id: int, day: date) -> Optional[CompletionEntry]: ...

    def query(
        self,
        habit_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[CompletionEntry]:
        """Records of one habit, newest first."""
        ...

    def query_user(
        self, user_id: int, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[CompletionEntry]: ...


class HabitStore(Protocol):
    def get(self, habit_id: int) -> Optional[HabitConfig]: ...

    def list_for_user(self, user_id: int, include_archived: bool = True) -> List[HabitConfig]: ...

    def find_by_name(self, user_id: int, name: str) -> Optional[HabitConfig]: ...

    def add(self, habit: HabitConfig) -> HabitConfig: ...

    def save(self, habit: HabitConfig) -> HabitConfig:
        """Persist editable fields and pause windows; derived fields are untouched."""
        ...

    def update_derived_fields(
        self, habit_id: int, snapshot: StreakSnapshot, expected_version: Optional[int] = None
    ) -> bool:
        """Write the derived fields and bump ``derived_version``.

        With ``expected_version`` the write is a compare-and-set: it is skipped
        (returning ``False``) when the stored version has moved on.
        """
        ...

    def delete(self, habit_id: int) -> bool: ...


class MilestoneStore(Protocol):
    def exists(self, habit_id: int, kind: MilestoneType, value: int) -> bool: ...

    def create(self, milestone: MilestoneRecord) -> Optional[MilestoneRecord]:
        """Returns ``None`` when the milestone already exists."""
        ...

    def list(self, user_id: int, habit_id: Optional[int] = None) -> List[MilestoneRecord]:
        """Newest first."""
        ...


__all__ = [
    "Clock",
    "SystemClock",
    "FixedClock",
    "LedgerStore",
    "HabitStore",
    "MilestoneStore",
]
