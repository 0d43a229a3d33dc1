"""Engine tunables resolved from application config."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Tuple

from habitflow.domains.habits.engine.milestones import (
    DEFAULT_COMPLETION_MILESTONES,
    DEFAULT_STREAK_MILESTONES,
)


@dataclass(frozen=True)
class EngineSettings:
    streak_milestones: Tuple[int, ...] = DEFAULT_STREAK_MILESTONES
    completion_milestones: Tuple[int, ...] = DEFAULT_COMPLETION_MILESTONES
    heatmap_level_boundaries: Tuple[int, ...] = (1, 3, 5, 8)
    week_trend_min_change: int = 5
    consistency_window_days: int = 14
    completion_window_days: int = 30
    streak_score_horizon: int = 30
    score_trend_min_change: int = 5
    day_of_week_lookback_days: int = 90
    correlation_min_samples: int = 14
    correlation_lookback_days: int = 60
    correlation_max_habits: int = 20
    risk_window_occurrences: int = 14
    min_prediction_rate: float = 0.1
    attention_after_days: int = 3
    analytics_timeout_seconds: float = 10.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "EngineSettings":
        defaults = cls()
        return cls(
            streak_milestones=tuple(config.get("STREAK_MILESTONES", defaults.streak_milestones)),
            completion_milestones=tuple(
                config.get("COMPLETION_MILESTONES", defaults.completion_milestones)
            ),
            heatmap_level_boundaries=tuple(
                config.get("HEATMAP_LEVEL_BOUNDARIES", defaults.heatmap_level_boundaries)
            ),
            week_trend_min_change=int(
                config.get("WEEK_TREND_MIN_CHANGE", defaults.week_trend_min_change)
            ),
            correlation_min_samples=int(
                config.get("CORRELATION_MIN_SAMPLES", defaults.correlation_min_samples)
            ),
            correlation_lookback_days=int(
                config.get("CORRELATION_LOOKBACK_DAYS", defaults.correlation_lookback_days)
            ),
            correlation_max_habits=int(
                config.get("CORRELATION_MAX_HABITS", defaults.correlation_max_habits)
            ),
            analytics_timeout_seconds=float(
                config.get("ANALYTICS_TIMEOUT_SECONDS", defaults.analytics_timeout_seconds)
            ),
        )


DEFAULT_SETTINGS = EngineSettings()

__all__ = ["EngineSettings", "DEFAULT_SETTINGS"]
