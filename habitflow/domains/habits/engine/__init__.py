"""Habit completion and streak analytics engine (pure functions over value types)."""

from habitflow.domains.habits.engine.cancellation import CancellationToken
from habitflow.domains.habits.engine.index import LedgerIndex
from habitflow.domains.habits.engine.milestones import detect
from habitflow.domains.habits.engine.schedule import granularity, is_due, is_scheduled
from habitflow.domains.habits.engine.settings import DEFAULT_SETTINGS, EngineSettings
from habitflow.domains.habits.engine.streaks import recompute
from habitflow.domains.habits.engine.types import (
    CompletionEntry,
    Frequency,
    HabitConfig,
    HabitType,
    MilestoneRecord,
    MilestoneType,
    PauseWindow,
    StreakSnapshot,
    is_qualifying_completion,
)

__all__ = [
    "CancellationToken",
    "CompletionEntry",
    "DEFAULT_SETTINGS",
    "EngineSettings",
    "Frequency",
    "HabitConfig",
    "HabitType",
    "LedgerIndex",
    "MilestoneRecord",
    "MilestoneType",
    "PauseWindow",
    "StreakSnapshot",
    "detect",
    "granularity",
    "is_due",
    "is_qualifying_completion",
    "is_scheduled",
    "recompute",
]
