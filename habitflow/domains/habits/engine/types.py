"""Value types shared by the streak and analytics engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from habitflow.core.utils.timestamps import utcnow


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class HabitType(str, Enum):
    BOOLEAN = "BOOLEAN"
    NUMERIC = "NUMERIC"
    DURATION = "DURATION"


class MilestoneType(str, Enum):
    STREAK = "STREAK"
    COMPLETIONS = "COMPLETIONS"


@dataclass(frozen=True)
class PauseWindow:
    start: date
    end: Optional[date] = None
    reason: Optional[str] = None

    def covers(self, day: date) -> bool:
        return self.start <= day and (self.end is None or day <= self.end)


@dataclass(frozen=True)
class StreakSnapshot:
    current_streak: int = 0
    longest_streak: int = 0
    total_completions: int = 0
    last_completed_at: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "total_completions": self.total_completions,
            "last_completed_at": (
                self.last_completed_at.isoformat() if self.last_completed_at else None
            ),
        }


@dataclass(frozen=True)
class HabitConfig:
    """Engine view of a habit: schedule, qualification rule and cached streak fields."""

    id: int
    user_id: int
    name: str
    description: Optional[str] = None
    frequency: Frequency = Frequency.DAILY
    habit_type: HabitType = HabitType.BOOLEAN
    target_value: Optional[float] = None
    unit: Optional[str] = None
    days_of_week: FrozenSet[int] = frozenset()
    times_per_week: Optional[int] = None
    category: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    sort_order: int = 0
    stacked_after_id: Optional[int] = None
    created_on: Optional[date] = None
    is_active: bool = True
    is_archived: bool = False
    pause_windows: Tuple[PauseWindow, ...] = ()
    current_streak: int = 0
    longest_streak: int = 0
    total_completions: int = 0
    last_completed_at: Optional[date] = None
    # Bumped on every write of the derived fields.
    derived_version: int = 0

    def is_paused_on(self, day: date) -> bool:
        return any(window.covers(day) for window in self.pause_windows)

    def active_pause(self, day: date) -> Optional[PauseWindow]:
        for window in self.pause_windows:
            if window.covers(day):
                return window
        return None

    def is_frozen(self, today: date) -> bool:
        """Archived or currently paused habits keep their derived fields as-is."""
        return self.is_archived or self.is_paused_on(today)

    @property
    def is_tracked(self) -> bool:
        return self.is_active and not self.is_archived

    @property
    def streak(self) -> StreakSnapshot:
        return StreakSnapshot(
            current_streak=self.current_streak,
            longest_streak=self.longest_streak,
            total_completions=self.total_completions,
            last_completed_at=self.last_completed_at,
        )

    def with_streak(self, snapshot: StreakSnapshot) -> "HabitConfig":
        return replace(
            self,
            current_streak=snapshot.current_streak,
            longest_streak=snapshot.longest_streak,
            total_completions=snapshot.total_completions,
            last_completed_at=snapshot.last_completed_at,
        )


@dataclass(frozen=True)
class CompletionEntry:
    habit_id: int
    day: date
    completed: bool = True
    value: Optional[float] = None
    notes: Optional[str] = None
    user_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "habit_id": self.habit_id,
            "date": self.day.isoformat(),
            "completed": self.completed,
            "value": self.value,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class MilestoneRecord:
    habit_id: int
    type: MilestoneType
    value: int
    achieved_at: datetime = field(default_factory=utcnow)
    user_id: Optional[int] = None
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "habit_id": self.habit_id,
            "type": self.type.value,
            "value": self.value,
            "achieved_at": self.achieved_at.isoformat(),
        }


# Qualification rules, one per habit type.


def _flag_rule(habit: HabitConfig, record: CompletionEntry) -> bool:
    return bool(record.completed)


def _target_rule(habit: HabitConfig, record: CompletionEntry) -> bool:
    if record.value is None or not math.isfinite(record.value):
        return False
    if habit.target_value is None:
        # No target configured: any recorded amount counts.
        return record.value > 0
    return record.value >= habit.target_value


_QUALIFIERS: Dict[HabitType, Callable[[HabitConfig, CompletionEntry], bool]] = {
    HabitType.BOOLEAN: _flag_rule,
    HabitType.NUMERIC: _target_rule,
    HabitType.DURATION: _target_rule,
}


def is_qualifying_completion(habit: HabitConfig, record: CompletionEntry) -> bool:
    """Whether ``record`` counts toward streaks and completion rates.

    BOOLEAN habits trust the ``completed`` flag. NUMERIC and DURATION habits
    qualify only when ``value >= target_value``; the stored flag is ignored.
    """
    return _QUALIFIERS[habit.habit_type](habit, record)


__all__ = [
    "Frequency",
    "HabitType",
    "MilestoneType",
    "PauseWindow",
    "StreakSnapshot",
    "HabitConfig",
    "CompletionEntry",
    "MilestoneRecord",
    "is_qualifying_completion",
]
