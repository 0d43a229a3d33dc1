"""Persistence seams for the habits engine."""

from habitflow.domains.habits.stores.base import (
    Clock,
    FixedClock,
    HabitStore,
    LedgerStore,
    MilestoneStore,
    SystemClock,
)
from habitflow.domains.habits.stores.memory import (
    InMemoryHabitStore,
    InMemoryLedgerStore,
    InMemoryMilestoneStore,
)

__all__ = [
    "Clock",
    "FixedClock",
    "HabitStore",
    "LedgerStore",
    "MilestoneStore",
    "SystemClock",
    "InMemoryHabitStore",
    "InMemoryLedgerStore",
    "InMemoryMilestoneStore",
]
