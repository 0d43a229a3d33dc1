"""Habit services wiring: stores, ledger, lifecycle and analytics bound to one app."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import Flask, current_app

from habitflow.core.events.event_bus import EventBus, event_bus
from habitflow.domains.habits.engine.settings import EngineSettings
from habitflow.domains.habits.services.analytics import AnalyticsService
from habitflow.domains.habits.services.ledger import CheckInResult, CompletionLedger, HistoryView
from habitflow.domains.habits.services.lifecycle import HabitService, habit_to_dict, validate_habit
from habitflow.domains.habits.stores.base import Clock, HabitStore, LedgerStore, MilestoneStore, SystemClock

EXTENSION_KEY = "habitflow.habits"


@dataclass
class HabitsRuntime:
    clock: Clock
    settings: EngineSettings
    ledger: CompletionLedger
    habits: HabitService
    analytics: AnalyticsService

    def close(self) -> None:
        self.analytics.close()


def build_runtime(
    habit_store: HabitStore,
    ledger_store: LedgerStore,
    milestone_store: MilestoneStore,
    clock: Clock,
    settings: Optional[EngineSettings] = None,
    bus: EventBus = event_bus,
    cache_enabled: bool = True,
) -> HabitsRuntime:
    settings = settings or EngineSettings()
    ledger = CompletionLedger(habit_store, ledger_store, milestone_store, clock, settings, bus)
    return HabitsRuntime(
        clock=clock,
        settings=settings,
        ledger=ledger,
        habits=HabitService(habit_store, ledger, clock, bus),
        analytics=AnalyticsService(
            habit_store, ledger_store, milestone_store, clock, settings, bus, cache_enabled
        ),
    )


def init_habits(app: Flask, clock: Optional[Clock] = None) -> HabitsRuntime:
    """Bind SQL-backed habit services to ``app``."""
    from habitflow.domains.habits.stores.sql import SqlHabitStore, SqlLedgerStore, SqlMilestoneStore

    runtime = build_runtime(
        SqlHabitStore(),
        SqlLedgerStore(),
        SqlMilestoneStore(),
        clock or SystemClock(app.config.get("DAY_BOUNDARY_TZ", "UTC")),
        EngineSettings.from_config(app.config),
        cache_enabled=app.config.get("ANALYTICS_CACHE_ENABLED", True),
    )
    app.extensions[EXTENSION_KEY] = runtime
    return runtime


def get_runtime() -> HabitsRuntime:
    return current_app.extensions[EXTENSION_KEY]


__all__ = [
    "HabitsRuntime",
    "build_runtime",
    "init_habits",
    "get_runtime",
    "CheckInResult",
    "CompletionLedger",
    "HistoryView",
    "HabitService",
    "AnalyticsService",
    "habit_to_dict",
    "validate_habit",
]
