"""Calendar, heatmap and summary views over a user's ledger.

Every function here is pure: it takes the user's habits (already reduced to
the tracked ones where that matters), a :class:`LedgerIndex` and an explicit
``today``. Rates are integer percentages rounded half-up and are 0 whenever
nothing was due.
"""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from habitflow.domains.habits.engine.cancellation import CancellationToken, check
from habitflow.domains.habits.engine.index import LedgerIndex
from habitflow.domains.habits.engine.schedule import (
    DAY,
    WEEKDAY_NAMES,
    granularity,
    iter_days,
    month_end,
    period_bounds,
    period_target,
    week_end,
    week_start,
)
from habitflow.domains.habits.engine.settings import DEFAULT_SETTINGS
from habitflow.domains.habits.engine.types import HabitConfig, HabitType, MilestoneRecord

UNCATEGORIZED = "Uncategorized"
MAX_HEATMAP_LEVEL = 4


def rate(completed: int, due: int) -> int:
    if due <= 0:
        return 0
    return int(math.floor(completed * 100.0 / due + 0.5))


def heatmap_level(count: int, boundaries: Sequence[int] = DEFAULT_SETTINGS.heatmap_level_boundaries) -> int:
    if count <= 0:
        return 0
    level = sum(1 for boundary in boundaries if count >= boundary)
    return min(max(level, 1), MAX_HEATMAP_LEVEL)


def habit_brief(habit: HabitConfig) -> dict:
    return {
        "id": habit.id,
        "name": habit.name,
        "category": habit.category or UNCATEGORIZED,
        "color": habit.color,
        "icon": habit.icon,
        "frequency": habit.frequency.value,
        "habit_type": habit.habit_type.value,
        "target_value": habit.target_value,
        "unit": habit.unit,
        "current_streak": habit.current_streak,
        "longest_streak": habit.longest_streak,
    }


# Window helpers


def habit_window(index: LedgerIndex, habit_id: int, start: date, end: date, today: date) -> Tuple[int, int]:
    """``(due, completed)`` units for one habit over ``[start, min(end, today)]``."""
    end = min(end, today)
    if start > end:
        return 0, 0
    if not index.is_day_granular(habit_id):
        return index.period_units(habit_id, start, end, today)
    due = completed = 0
    done = index.qualifying(habit_id)
    for day in iter_days(start, end):
        if index.is_scheduled(habit_id, day):
            due += 1
            if day in done:
                completed += 1
    return due, completed


def window_summary(habits: Iterable[HabitConfig], index: LedgerIndex, start: date, end: date, today: date) -> dict:
    total = completed = 0
    unit_total = unit_completed = 0
    for habit in habits:
        due, done = habit_window(index, habit.id, start, end, today)
        if index.is_day_granular(habit.id):
            total += due
            completed += done
        else:
            unit_total += due
            unit_completed += done
    return {
        "total": total + unit_total,
        "completed": completed + unit_completed,
        "rate": rate(completed + unit_completed, total + unit_total),
        "period_units": {"total": unit_total, "completed": unit_completed},
    }


def day_cell(habits: Iterable[HabitConfig], index: LedgerIndex, day: date) -> dict:
    entries = []
    due_count = completed_count = 0
    for habit in habits:
        due, completed = index.day_status(habit.id, day)
        if not due:
            continue
        due_count += 1
        completed_count += int(completed)
        entries.append(
            {"habit_id": habit.id, "name": habit.name, "color": habit.color, "completed": completed}
        )
    return {
        "date": day.isoformat(),
        "weekday": WEEKDAY_NAMES[day.weekday()],
        "due": due_count,
        "completed": completed_count,
        "percentage": rate(completed_count, due_count),
        "habits": entries,
    }


# Calendar views


def weekly_view(habits: Sequence[HabitConfig], index: LedgerIndex, anchor: date, today: date) -> dict:
    start, end = week_start(anchor), week_end(anchor)
    days = [day_cell(habits, index, day) for day in iter_days(start, min(end, today))]
    return {
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
        "days": days,
        "summary": window_summary(habits, index, start, end, today),
    }


def monthly_view(habits: Sequence[HabitConfig], index: LedgerIndex, year: int, month: int, today: date) -> dict:
    first = date(year, month, 1)
    last = month_end(first)
    clipped = min(last, today)
    days = [day_cell(habits, index, day) for day in iter_days(first, clipped)]

    weeks = []
    cursor = week_start(first)
    while first <= clipped and cursor <= clipped:
        lo, hi = max(cursor, first), min(cursor + timedelta(days=6), clipped)
        cells = [cell for cell in days if lo.isoformat() <= cell["date"] <= hi.isoformat()]
        due = sum(cell["due"] for cell in cells)
        completed = sum(cell["completed"] for cell in cells)
        weeks.append(
            {
                "week_start": lo.isoformat(),
                "week_end": hi.isoformat(),
                "due": due,
                "completed": completed,
                "rate": rate(completed, due),
            }
        )
        cursor += timedelta(days=7)

    return {
        "year": year,
        "month": month,
        "days": days,
        "weeks": weeks,
        "summary": window_summary(habits, index, first, last, today),
    }


def calendar_view(habits: Sequence[HabitConfig], index: LedgerIndex, year: int, month: int, today: date) -> dict:
    """Full month grid; future days are listed but carry no due/completed counts."""
    first = date(year, month, 1)
    days = []
    for day in iter_days(first, month_end(first)):
        if day > today:
            days.append({"date": day.isoformat(), "is_future": True, "due": 0, "completed": 0, "records": []})
            continue
        cell = day_cell(habits, index, day)
        records = []
        for habit in habits:
            record = index.record(habit.id, day)
            if record is not None:
                entry = record.to_dict()
                entry["qualifying"] = index.is_done(habit.id, day)
                records.append(entry)
        days.append(
            {
                "date": cell["date"],
                "is_future": False,
                "due": cell["due"],
                "completed": cell["completed"],
                "records": records,
            }
        )
    return {"year": year, "month": month, "days": days}


def heatmap(
    habits: Sequence[HabitConfig],
    index: LedgerIndex,
    year: int,
    today: date,
    habit_id: Optional[int] = None,
    token: Optional[CancellationToken] = None,
    boundaries: Sequence[int] = DEFAULT_SETTINGS.heatmap_level_boundaries,
) -> dict:
    """One cell per day from Jan 1 to ``min(Dec 31, today)``."""
    selected = [habit for habit in habits if habit_id is None or habit.id == habit_id]
    cells = []
    for day in iter_days(date(year, 1, 1), min(date(year, 12, 31), today)):
        check(token)
        count = sum(1 for habit in selected if index.is_done(habit.id, day))
        total = sum(1 for habit in selected if index.is_due(habit.id, day))
        cells.append(
            {
                "date": day.isoformat(),
                "count": count,
                "total": total,
                "level": heatmap_level(count, boundaries),
            }
        )
    return {
        "year": year,
        "habit_id": habit_id,
        "days": cells,
        "total_completions": sum(cell["count"] for cell in cells),
        "active_days": sum(1 for cell in cells if cell["count"] > 0),
    }


# Summaries


def category_breakdown(habits: Sequence[HabitConfig], index: LedgerIndex, today: date, lookback_days: int = 30) -> dict:
    start = today - timedelta(days=lookback_days - 1)
    categories: Dict[str, dict] = {}
    habit_rates = []
    for habit in habits:
        due, completed = habit_window(index, habit.id, start, today, today)
        name = habit.category or UNCATEGORIZED
        bucket = categories.setdefault(
            name, {"name": name, "color": habit.color, "habit_count": 0, "completed": 0, "due": 0}
        )
        bucket["habit_count"] += 1
        bucket["completed"] += completed
        bucket["due"] += due
        habit_rates.append(
            {
                "habit_id": habit.id,
                "name": habit.name,
                "category": name,
                "due": due,
                "completed": completed,
                "completion_rate": rate(completed, due),
            }
        )
    for bucket in categories.values():
        bucket["completion_rate"] = rate(bucket["completed"], bucket["due"])
    return {
        "categories": sorted(categories.values(), key=lambda c: (-c["completion_rate"], c["name"])),
        "habit_rates": sorted(habit_rates, key=lambda h: (-h["completion_rate"], h["name"])),
    }


def week_comparison(
    habits: Sequence[HabitConfig],
    index: LedgerIndex,
    today: date,
    min_change: int = DEFAULT_SETTINGS.week_trend_min_change,
) -> dict:
    this_start = week_start(today)
    last_start = this_start - timedelta(days=7)
    last_end = this_start - timedelta(days=1)
    this_week = window_summary(habits, index, this_start, today, today)
    last_week = window_summary(habits, index, last_start, last_end, today)
    change = this_week["rate"] - last_week["rate"]
    if change >= min_change:
        trend = "up"
    elif change <= -min_change:
        trend = "down"
    else:
        trend = "same"
    this_week.update(start=this_start.isoformat(), end=today.isoformat())
    last_week.update(start=last_start.isoformat(), end=last_end.isoformat())
    return {"this_week": this_week, "last_week": last_week, "change": change, "trend": trend}


def monthly_trend(habits: Sequence[HabitConfig], index: LedgerIndex, today: date, days: int = 30) -> dict:
    points = []
    for day in iter_days(today - timedelta(days=days - 1), today):
        cell = day_cell(habits, index, day)
        points.append(
            {"date": cell["date"], "due": cell["due"], "completed": cell["completed"], "rate": cell["percentage"]}
        )
    active = [point["rate"] for point in points if point["due"] > 0]
    average = int(math.floor(sum(active) / len(active) + 0.5)) if active else 0
    return {"days": points, "average": average}


def habit_stats(
    habit: HabitConfig,
    index: LedgerIndex,
    today: date,
    milestones: Iterable[MilestoneRecord] = (),
    recent_limit: int = 10,
    weeks: int = 8,
) -> dict:
    start = today - timedelta(days=29)
    due, completed = habit_window(index, habit.id, start, today, today)

    average_value = None
    if habit.habit_type in (HabitType.NUMERIC, HabitType.DURATION):
        values = [r.value for r in index.records(habit.id) if r.value is not None]
        if values:
            average_value = round(sum(values) / len(values), 2)

    weekly_trend = []
    current_week = week_start(today)
    for offset in range(weeks - 1, -1, -1):
        lo = current_week - timedelta(days=7 * offset)
        hi = lo + timedelta(days=6)
        w_due, w_completed = habit_window(index, habit.id, lo, hi, today)
        weekly_trend.append(
            {
                "week_start": lo.isoformat(),
                "due": w_due,
                "completed": w_completed,
                "rate": rate(w_completed, w_due),
            }
        )

    return {
        "habit": habit_brief(habit),
        "streak": habit.streak.to_dict(),
        "completion_rate": rate(completed, due),
        "due": due,
        "completed": completed,
        "average_value": average_value,
        "weekly_trend": weekly_trend,
        "recent_records": [r.to_dict() for r in index.records(habit.id)[:recent_limit]],
        "milestones": [m.to_dict() for m in sorted(milestones, key=lambda m: m.achieved_at, reverse=True)],
    }


def overview(habits: Sequence[HabitConfig], index: LedgerIndex, today: date) -> dict:
    """Dashboard counters; ``habits`` is every non-deleted habit of the user."""
    tracked = [habit for habit in habits if habit.is_tracked]
    running = [habit for habit in tracked if not habit.is_paused_on(today)]
    today_cell = day_cell(tracked, index, today)

    best = max(tracked, key=lambda h: (h.current_streak, -h.id), default=None)
    longest = max(tracked, key=lambda h: (h.longest_streak, -h.id), default=None)
    week = window_summary(tracked, index, today - timedelta(days=6), today, today)
    month = window_summary(tracked, index, today - timedelta(days=29), today, today)
    return {
        "total_habits": len(tracked),
        "active_habits": len(running),
        "paused_habits": len(tracked) - len(running),
        "archived_habits": sum(1 for habit in habits if habit.is_archived),
        "today": {
            "due": today_cell["due"],
            "completed": today_cell["completed"],
            "rate": today_cell["percentage"],
        },
        "best_current_streak": (
            {"habit_id": best.id, "name": best.name, "value": best.current_streak}
            if best is not None and best.current_streak > 0
            else None
        ),
        "longest_streak": (
            {"habit_id": longest.id, "name": longest.name, "value": longest.longest_streak}
            if longest is not None and longest.longest_streak > 0
            else None
        ),
        "total_completions": sum(habit.total_completions for habit in tracked),
        "weekly_average": week["rate"],
        "monthly_rate": month["rate"],
    }


def streak_leaderboard(habits: Sequence[HabitConfig]) -> List[dict]:
    ranked = sorted(
        (habit for habit in habits if habit.is_tracked),
        key=lambda h: (-h.current_streak, -h.longest_streak, h.name),
    )
    return [
        {
            "rank": position,
            "habit_id": habit.id,
            "name": habit.name,
            "color": habit.color,
            "icon": habit.icon,
            "current_streak": habit.current_streak,
            "longest_streak": habit.longest_streak,
            "last_completed_at": habit.last_completed_at.isoformat() if habit.last_completed_at else None,
        }
        for position, habit in enumerate(ranked, start=1)
    ]


# Day lists


def habits_for_date(habits: Sequence[HabitConfig], index: LedgerIndex, day: date) -> List[dict]:
    """Habits due on ``day`` (or completed on it), with their completion state."""
    items = []
    for habit in habits:
        due = index.is_due(habit.id, day)
        done = index.is_done(habit.id, day)
        if not (due or done):
            continue
        record = index.record(habit.id, day)
        item = habit_brief(habit)
        item.update(
            due=due,
            completed=done,
            paused=habit.is_paused_on(day),
            record=record.to_dict() if record is not None else None,
        )
        if granularity(habit) != DAY:
            start, end = period_bounds(habit, day)
            item["period"] = {
                "start": start.isoformat(),
                "end": end.isoformat(),
                "done": index.done_between(habit.id, start, end),
                "target": period_target(habit),
            }
        items.append(item)
    return items


def today_list(habits: Sequence[HabitConfig], index: LedgerIndex, today: date) -> dict:
    items = habits_for_date(habits, index, today)
    due = [item for item in items if item["due"]]
    completed = sum(1 for item in due if item["completed"])
    return {
        "date": today.isoformat(),
        "habits": items,
        "due": len(due),
        "completed": completed,
        "percentage": rate(completed, len(due)),
    }


__all__ = [
    "UNCATEGORIZED",
    "rate",
    "heatmap_level",
    "habit_brief",
    "habit_window",
    "window_summary",
    "day_cell",
    "weekly_view",
    "monthly_view",
    "calendar_view",
    "heatmap",
    "category_breakdown",
    "week_comparison",
    "monthly_trend",
    "habit_stats",
    "overview",
    "streak_leaderboard",
    "habits_for_date",
    "today_list",
]
