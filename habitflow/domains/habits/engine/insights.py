"""Read-only insight computations: score, weekday patterns, correlations, predictions."""

from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from itertools import combinations
from typing import AbstractSet, List, Mapping, Optional, Sequence

import numpy as np

from habitflow.domains.habits.engine.aggregation import habit_window, rate, window_summary
from habitflow.domains.habits.engine.cancellation import CancellationToken, check
from habitflow.domains.habits.engine.index import LedgerIndex
from habitflow.domains.habits.engine.milestones import next_threshold
from habitflow.domains.habits.engine.schedule import (
    WEEKDAY_NAMES,
    days_per_occurrence,
    iter_days,
)
from habitflow.domains.habits.engine.settings import DEFAULT_SETTINGS, EngineSettings
from habitflow.domains.habits.engine.types import HabitConfig

logger = logging.getLogger(__name__)

SCORE_WEIGHTS = {"consistency": 40, "streaks": 30, "completion": 30}
GRADE_THRESHOLDS = ((90, "A"), (75, "B"), (60, "C"), (40, "D"))


def _half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def grade_for(score: int) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


# Productivity score


def _score_as_of(
    habits: Sequence[HabitConfig], index: LedgerIndex, as_of: date, settings: EngineSettings
) -> dict:
    consistency_window = window_summary(
        habits, index, as_of - timedelta(days=settings.consistency_window_days - 1), as_of, as_of
    )
    completion_window = window_summary(
        habits, index, as_of - timedelta(days=settings.completion_window_days - 1), as_of, as_of
    )

    snapshots = [index.snapshot(habit.id, as_of) for habit in habits]
    with_history = [snap for snap in snapshots if snap.longest_streak > 0]
    if with_history:
        ratio = sum(snap.current_streak / snap.longest_streak for snap in with_history) / len(with_history)
        best_current = max(snap.current_streak for snap in with_history)
        horizon = min(1.0, best_current / float(settings.streak_score_horizon))
        streaks = _half_up(100 * (0.5 * ratio + 0.5 * horizon))
    else:
        streaks = 0

    components = {
        "consistency": consistency_window["rate"],
        "streaks": streaks,
        "completion": completion_window["rate"],
    }
    total = _half_up(sum(components[key] * weight for key, weight in SCORE_WEIGHTS.items()) / 100.0)
    return {
        "score": max(0, min(100, total)),
        "components": components,
        "has_data": bool(consistency_window["total"] or completion_window["total"]),
    }


def productivity_score(
    habits: Sequence[HabitConfig],
    index: LedgerIndex,
    today: date,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> dict:
    """Weighted 0-100 score with a letter grade and a trend against 30 days earlier."""
    current = _score_as_of(habits, index, today, settings)
    previous = _score_as_of(
        habits, index, today - timedelta(days=settings.completion_window_days), settings
    )

    if not previous["has_data"]:
        trend = "stable"
    elif current["score"] - previous["score"] > settings.score_trend_min_change:
        trend = "improving"
    elif previous["score"] - current["score"] > settings.score_trend_min_change:
        trend = "declining"
    else:
        trend = "stable"

    return {
        "score": current["score"],
        "grade": grade_for(current["score"]),
        "components": current["components"],
        "weights": dict(SCORE_WEIGHTS),
        "previous_score": previous["score"] if previous["has_data"] else None,
        "trend": trend,
    }


# Day-of-week performance


def day_of_week_performance(
    habits: Sequence[HabitConfig],
    index: LedgerIndex,
    today: date,
    lookback_days: int = DEFAULT_SETTINGS.day_of_week_lookback_days,
) -> dict:
    """Completion rate per ISO weekday for day-granular habits.

    Today only counts once it qualifies, so an unfinished day does not drag
    its weekday down.
    """
    start = today - timedelta(days=lookback_days - 1)
    due = [0] * 7
    completed = [0] * 7
    per_habit: List[dict] = []

    for habit in habits:
        if not index.is_day_granular(habit.id):
            continue
        done = index.qualifying(habit.id)
        habit_due = habit_done = 0
        for day in iter_days(start, today):
            if not index.is_scheduled(habit.id, day):
                continue
            hit = day in done
            if day == today and not hit:
                continue
            due[day.weekday()] += 1
            habit_due += 1
            if hit:
                completed[day.weekday()] += 1
                habit_done += 1
        if habit_due:
            per_habit.append(
                {"habit_id": habit.id, "name": habit.name, "completion_rate": rate(habit_done, habit_due)}
            )

    days = [
        {
            "day": WEEKDAY_NAMES[i],
            "day_number": i + 1,
            "due": due[i],
            "completed": completed[i],
            "completion_rate": rate(completed[i], due[i]),
        }
        for i in range(7)
    ]
    with_dues = [entry for entry in days if entry["due"] > 0]
    best = max(with_dues, key=lambda d: (d["completion_rate"], -d["day_number"]), default=None)
    worst = min(with_dues, key=lambda d: (d["completion_rate"], d["day_number"]), default=None)
    ranked = sorted(per_habit, key=lambda h: (-h["completion_rate"], h["habit_id"]))
    return {
        "days": days,
        "best_day": best["day"] if best else None,
        "worst_day": worst["day"] if worst else None,
        "most_consistent_habit": ranked[0] if ranked else None,
        "least_consistent_habit": ranked[-1] if len(ranked) > 1 else None,
    }


# Correlations


def _strength(coefficient: float) -> str:
    magnitude = abs(coefficient)
    if magnitude < 0.3:
        return "weak"
    if magnitude < 0.6:
        return "moderate"
    return "strong"


def correlations(
    habits: Sequence[HabitConfig],
    index: LedgerIndex,
    today: date,
    settings: EngineSettings = DEFAULT_SETTINGS,
    token: Optional[CancellationToken] = None,
) -> List[dict]:
    """Pearson correlation of daily outcomes for every habit pair.

    Each pair is sampled over the days in the lookback window (ending
    yesterday) on which both habits were scheduled. Pairs with too few
    samples or a constant series carry no signal and are left out.
    """
    candidates = sorted(habits, key=lambda h: (-len(index.qualifying(h.id)), h.id))
    candidates = candidates[: settings.correlation_max_habits]
    window = list(
        iter_days(today - timedelta(days=settings.correlation_lookback_days), today - timedelta(days=1))
    )

    results = []
    for first, second in combinations(candidates, 2):
        check(token)
        first_done, second_done = index.qualifying(first.id), index.qualifying(second.id)
        xs, ys = [], []
        for day in window:
            if index.is_scheduled(first.id, day) and index.is_scheduled(second.id, day):
                xs.append(1.0 if day in first_done else 0.0)
                ys.append(1.0 if day in second_done else 0.0)
        if len(xs) < settings.correlation_min_samples:
            continue
        x, y = np.asarray(xs), np.asarray(ys)
        if np.std(x) == 0 or np.std(y) == 0:
            continue
        coefficient = float(np.corrcoef(x, y)[0, 1])
        if not math.isfinite(coefficient):
            continue
        coefficient = round(coefficient, 2)
        strength = _strength(coefficient)
        direction = "together" if coefficient >= 0 else "opposing"
        verb = "tend to happen together" if direction == "together" else "rarely happen on the same day"
        results.append(
            {
                "habit_a": {"id": first.id, "name": first.name},
                "habit_b": {"id": second.id, "name": second.name},
                "coefficient": coefficient,
                "strength": strength,
                "direction": direction,
                "samples": len(xs),
                "description": f"{first.name} and {second.name} {verb} ({strength}).",
            }
        )
    logger.debug("Correlated %d habit(s), %d pair(s) kept", len(candidates), len(results))
    results.sort(key=lambda r: (-abs(r["coefficient"]), r["habit_a"]["id"], r["habit_b"]["id"]))
    return results


# Milestone predictions


def milestone_predictions(
    habits: Sequence[HabitConfig],
    index: LedgerIndex,
    earned: Mapping[int, AbstractSet[int]],
    today: date,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> List[dict]:
    """Estimated days to each running streak's next milestone, with a break risk."""
    predictions = []
    for habit in habits:
        if habit.current_streak <= 0 or habit.is_frozen(today):
            continue
        current = habit.current_streak
        target = next_threshold(current, settings.streak_milestones, earned.get(habit.id, ()))
        if target is None:
            target = current + 30
        remaining = target - current

        outcomes = index.recent_occurrences(habit.id, today, settings.risk_window_occurrences)
        hits = sum(1 for outcome in outcomes if outcome)
        misses = len(outcomes) - hits
        recent_rate = hits / len(outcomes) if outcomes else 0.0
        predicted = int(
            math.ceil(remaining / max(recent_rate, settings.min_prediction_rate) * days_per_occurrence(habit))
        )

        risk_reason = None
        if misses >= 4:
            risk = "high"
            risk_reason = f"missed {misses} of the last {len(outcomes)} occurrences"
        elif misses >= 2:
            risk = "medium"
            risk_reason = f"missed {misses} of the last {len(outcomes)} occurrences"
        else:
            risk = "low"
            if not all(outcomes[:3]):
                risk = "medium"
                risk_reason = "missed one of the last 3 occurrences"

        predictions.append(
            {
                "habit_id": habit.id,
                "name": habit.name,
                "current_streak": current,
                "next_milestone": target,
                "remaining": remaining,
                "recent_rate": _half_up(recent_rate * 100),
                "predicted_days_to_milestone": predicted,
                "predicted_date": (today + timedelta(days=predicted)).isoformat(),
                "risk": risk,
                "risk_reason": risk_reason,
            }
        )
    predictions.sort(key=lambda p: (p["predicted_days_to_milestone"], p["habit_id"]))
    return predictions


# Summary


def needs_attention(habits: Sequence[HabitConfig], index: LedgerIndex, today: date, days: int = 3) -> List[dict]:
    """Running habits with no qualifying completion in the last ``days`` days."""
    cutoff = today - timedelta(days=days)
    flagged = []
    for habit in habits:
        if habit.is_paused_on(today):
            continue
        if habit.created_on is not None and habit.created_on > cutoff:
            continue
        done = index.qualifying(habit.id)
        last = max((day for day in done if day <= today), default=None)
        if last is None or last < cutoff:
            flagged.append(
                {
                    "habit_id": habit.id,
                    "name": habit.name,
                    "last_completed_at": last.isoformat() if last else None,
                    "days_since": (today - last).days if last else None,
                }
            )
    return flagged


def insight_summary(
    habits: Sequence[HabitConfig],
    index: LedgerIndex,
    today: date,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> dict:
    weekdays = day_of_week_performance(habits, index, today, settings.day_of_week_lookback_days)
    attention = needs_attention(habits, index, today, settings.attention_after_days)
    top = max(habits, key=lambda h: (h.current_streak, -h.id), default=None)
    top_habit = (
        {"habit_id": top.id, "name": top.name, "current_streak": top.current_streak}
        if top is not None and top.current_streak > 0
        else None
    )

    suggestions = []
    if weekdays["worst_day"] and weekdays["worst_day"] != weekdays["best_day"]:
        suggestions.append(
            f"{weekdays['worst_day']} is your weakest day; plan your habits for it the night before."
        )
    if attention:
        names = ", ".join(item["name"] for item in attention[:3])
        suggestions.append(f"Pick {names} back up today to restart momentum.")
    if top_habit and top_habit["current_streak"] >= 7:
        suggestions.append(f"Keep {top_habit['name']} going: {top_habit['current_streak']} in a row so far.")
    month_due, month_done = 0, 0
    for habit in habits:
        due, done = habit_window(index, habit.id, today - timedelta(days=29), today, today)
        month_due += due
        month_done += done
    if month_due and rate(month_done, month_due) < 50:
        suggestions.append("Fewer habits done consistently beat many done occasionally; consider pausing one.")

    return {
        "best_day": weekdays["best_day"],
        "worst_day": weekdays["worst_day"],
        "top_habit": top_habit,
        "needs_attention": attention,
        "suggestions": suggestions,
    }


__all__ = [
    "SCORE_WEIGHTS",
    "grade_for",
    "productivity_score",
    "day_of_week_performance",
    "correlations",
    "milestone_predictions",
    "needs_attention",
    "insight_summary",
]
