"""Habit services: CRUD, archive, pause/resume and ordering with domain events."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from habitflow.core.errors import ConflictError, DuplicateError, InvalidInputError, NotFoundError
from habitflow.core.events.event_bus import DomainEvent, EventBus, event_bus
from habitflow.domains.habits.engine.types import (
    Frequency,
    HabitConfig,
    HabitType,
    PauseWindow,
)
from habitflow.domains.habits.events import (
    HABITS_HABIT_ARCHIVED,
    HABITS_HABIT_CREATED,
    HABITS_HABIT_DELETED,
    HABITS_HABIT_PAUSED,
    HABITS_HABIT_RESUMED,
    HABITS_HABIT_UNARCHIVED,
    HABITS_HABIT_UPDATED,
)
from habitflow.domains.habits.services.ledger import CompletionLedger
from habitflow.domains.habits.stores.base import Clock, HabitStore

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#0ea5e9"
DEFAULT_CATEGORIES = (
    "Health",
    "Fitness",
    "Productivity",
    "Learning",
    "Mindfulness",
    "Finance",
    "Social",
    "Creative",
    "Other",
)
MAX_NAME_LENGTH = 100
_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")

EDITABLE_FIELDS = (
    "name",
    "description",
    "category",
    "color",
    "icon",
    "frequency",
    "habit_type",
    "target_value",
    "unit",
    "days_of_week",
    "times_per_week",
    "sort_order",
    "is_active",
)
# Fields whose change alters which days are due or which records qualify.
SCHEDULE_FIELDS = {"frequency", "habit_type", "target_value", "days_of_week", "times_per_week"}


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def validate_habit(habit: HabitConfig) -> None:
    """Reject schedule and measurement combinations the engine cannot resolve."""
    errors: Dict[str, str] = {}
    if not habit.name:
        errors["name"] = "required"
    elif len(habit.name) > MAX_NAME_LENGTH:
        errors["name"] = f"must be at most {MAX_NAME_LENGTH} characters"
    if habit.color and not _COLOR_RE.match(habit.color):
        errors["color"] = "must be a hex color like #0ea5e9"

    if habit.habit_type in (HabitType.NUMERIC, HabitType.DURATION):
        if habit.target_value is None:
            errors["target_value"] = "required for numeric and duration habits"
        elif habit.target_value <= 0:
            errors["target_value"] = "must be positive"
        if not habit.unit:
            errors["unit"] = "required for numeric and duration habits"
    elif habit.target_value is not None or habit.unit:
        errors["target_value"] = "not allowed for boolean habits"

    if any(day < 1 or day > 7 for day in habit.days_of_week):
        errors["days_of_week"] = "days must be between 1 (Monday) and 7 (Sunday)"
    if habit.times_per_week is not None and not 1 <= habit.times_per_week <= 7:
        errors["times_per_week"] = "must be between 1 and 7"
    if habit.frequency == Frequency.WEEKLY:
        if not habit.days_of_week and habit.times_per_week is None:
            errors["frequency"] = "weekly habits need days_of_week or times_per_week"
    elif habit.days_of_week or habit.times_per_week is not None:
        errors["frequency"] = "days_of_week and times_per_week apply to weekly habits only"

    if errors:
        raise InvalidInputError("invalid habit", details=errors)


def habit_to_dict(habit: HabitConfig, today: date) -> dict:
    active_pause = habit.active_pause(today)
    return {
        "id": habit.id,
        "name": habit.name,
        "description": habit.description,
        "category": habit.category,
        "color": habit.color,
        "icon": habit.icon,
        "sort_order": habit.sort_order,
        "stacked_after_id": habit.stacked_after_id,
        "frequency": habit.frequency.value,
        "habit_type": habit.habit_type.value,
        "target_value": habit.target_value,
        "unit": habit.unit,
        "days_of_week": sorted(habit.days_of_week),
        "times_per_week": habit.times_per_week,
        "is_active": habit.is_active,
        "is_archived": habit.is_archived,
        "is_paused": active_pause is not None,
        "paused_until": (
            active_pause.end.isoformat() if active_pause is not None and active_pause.end else None
        ),
        "pause_windows": [
            {
                "start": window.start.isoformat(),
                "end": window.end.isoformat() if window.end else None,
                "reason": window.reason,
            }
            for window in habit.pause_windows
        ],
        "created_on": habit.created_on.isoformat() if habit.created_on else None,
        **habit.streak.to_dict(),
    }


class HabitService:
    def __init__(
        self,
        habits: HabitStore,
        ledger: CompletionLedger,
        clock: Clock,
        bus: EventBus = event_bus,
    ) -> None:
        self.habits = habits
        self.ledger = ledger
        self.clock = clock
        self.bus = bus

    def _publish(self, event_type: str, habit: HabitConfig, **extra: Any) -> None:
        payload = {"habit_id": habit.id, "user_id": habit.user_id}
        payload.update(extra)
        self.bus.publish(DomainEvent(event_type, payload, user_id=habit.user_id))

    def get(self, user_id: int, habit_id: int) -> HabitConfig:
        habit = self.habits.get(habit_id)
        if habit is None or habit.user_id != user_id:
            raise NotFoundError("habit", habit_id)
        return habit

    def list(self, user_id: int, include_archived: bool = False) -> List[HabitConfig]:
        return self.habits.list_for_user(user_id, include_archived=include_archived)

    def create(self, user_id: int, **fields: Any) -> HabitConfig:
        name = _clean(fields.get("name")) or ""
        if name and self.habits.find_by_name(user_id, name) is not None:
            raise DuplicateError("a habit with this name already exists", details={"name": name})

        sort_order = fields.get("sort_order")
        if sort_order is None:
            sort_order = len(self.habits.list_for_user(user_id, include_archived=True))
        habit = HabitConfig(
            id=0,
            user_id=user_id,
            name=name,
            description=_clean(fields.get("description")),
            category=_clean(fields.get("category")),
            color=fields.get("color") or DEFAULT_COLOR,
            icon=_clean(fields.get("icon")),
            sort_order=sort_order,
            frequency=Frequency(fields.get("frequency") or Frequency.DAILY),
            habit_type=HabitType(fields.get("habit_type") or HabitType.BOOLEAN),
            target_value=fields.get("target_value"),
            unit=_clean(fields.get("unit")),
            days_of_week=frozenset(fields.get("days_of_week") or ()),
            times_per_week=fields.get("times_per_week"),
            created_on=self.clock.today(),
        )
        validate_habit(habit)
        habit = self.habits.add(habit)

        logger.info("Habit created habit_id=%s user_id=%s", habit.id, user_id)
        self._publish(
            HABITS_HABIT_CREATED,
            habit,
            name=habit.name,
            frequency=habit.frequency.value,
            habit_type=habit.habit_type.value,
            created_at=self.clock.now().isoformat(),
        )
        return habit

    def update(self, user_id: int, habit_id: int, **fields: Any) -> HabitConfig:
        habit = self.get(user_id, habit_id)
        changes: Dict[str, Any] = {}
        for key in EDITABLE_FIELDS:
            if key not in fields:
                continue
            value = fields[key]
            if key in ("name", "description", "category", "icon", "unit"):
                value = _clean(value)
            elif key == "frequency" and value is not None:
                value = Frequency(value)
            elif key == "habit_type" and value is not None:
                value = HabitType(value)
            elif key == "days_of_week":
                value = frozenset(value or ())
            elif key in ("color", "sort_order", "is_active") and value is None:
                continue
            changes[key] = value

        if changes.get("habit_type") == HabitType.BOOLEAN:
            changes.setdefault("target_value", None)
            changes.setdefault("unit", None)
        if changes.get("frequency") in (Frequency.DAILY, Frequency.MONTHLY):
            changes.setdefault("days_of_week", frozenset())
            changes.setdefault("times_per_week", None)
        if "name" in changes and changes["name"] != habit.name:
            other = self.habits.find_by_name(user_id, changes["name"] or "")
            if other is not None and other.id != habit.id:
                raise DuplicateError(
                    "a habit with this name already exists", details={"name": changes["name"]}
                )

        updated = replace(habit, **changes)
        validate_habit(updated)
        updated = self.habits.save(updated)
        if SCHEDULE_FIELDS & set(changes):
            self.ledger.refresh(habit_id)
            updated = self.habits.get(habit_id)

        logger.info("Habit updated habit_id=%s fields=%s", habit_id, sorted(changes))
        self._publish(
            HABITS_HABIT_UPDATED,
            updated,
            fields={key: _jsonable(value) for key, value in changes.items()},
        )
        return updated

    def archive(self, user_id: int, habit_id: int) -> HabitConfig:
        habit = self.get(user_id, habit_id)
        if habit.is_archived:
            return habit
        # Freeze derived fields as of today.
        self.ledger.refresh(habit_id)
        habit = self.habits.save(replace(self.habits.get(habit_id), is_archived=True))
        logger.info("Habit archived habit_id=%s", habit_id)
        self._publish(HABITS_HABIT_ARCHIVED, habit)
        return habit

    def unarchive(self, user_id: int, habit_id: int) -> HabitConfig:
        habit = self.get(user_id, habit_id)
        if not habit.is_archived:
            raise ConflictError("habit is not archived")
        self.habits.save(replace(habit, is_archived=False))
        self.ledger.refresh(habit_id)
        habit = self.habits.get(habit_id)
        logger.info("Habit unarchived habit_id=%s", habit_id)
        self._publish(HABITS_HABIT_UNARCHIVED, habit)
        return habit

    def pause(
        self,
        user_id: int,
        habit_id: int,
        paused_until: Optional[date] = None,
        reason: Optional[str] = None,
    ) -> HabitConfig:
        habit = self.get(user_id, habit_id)
        today = self.clock.today()
        if habit.is_archived:
            raise ConflictError("archived habits cannot be paused")
        if paused_until is not None and paused_until < today:
            raise InvalidInputError(
                "paused_until cannot be in the past",
                details={"paused_until": paused_until.isoformat()},
            )
        reason = _clean(reason)

        if not habit.is_paused_on(today):
            self.ledger.refresh(habit_id)
            habit = self.habits.get(habit_id)
        windows = []
        extended = False
        for window in habit.pause_windows:
            if window.covers(today):
                window = PauseWindow(window.start, paused_until, reason or window.reason)
                extended = True
            windows.append(window)
        if not extended:
            windows.append(PauseWindow(today, paused_until, reason))
        habit = self.habits.save(replace(habit, pause_windows=tuple(windows)))

        logger.info("Habit paused habit_id=%s until=%s", habit_id, paused_until)
        self._publish(
            HABITS_HABIT_PAUSED,
            habit,
            paused_until=paused_until.isoformat() if paused_until else None,
            reason=reason,
        )
        return habit

    def resume(self, user_id: int, habit_id: int) -> HabitConfig:
        """Close open and future pause windows at yesterday, then recompute."""
        habit = self.get(user_id, habit_id)
        today = self.clock.today()
        yesterday = today - timedelta(days=1)
        windows = []
        for window in habit.pause_windows:
            if window.end is not None and window.end < today:
                windows.append(window)
            elif window.start <= yesterday:
                windows.append(PauseWindow(window.start, yesterday, window.reason))
            # windows starting today or later are dropped entirely
        self.habits.save(replace(habit, pause_windows=tuple(windows)))
        self.ledger.refresh(habit_id)
        habit = self.habits.get(habit_id)

        logger.info("Habit resumed habit_id=%s", habit_id)
        self._publish(HABITS_HABIT_RESUMED, habit)
        return habit

    def delete(self, user_id: int, habit_id: int) -> None:
        habit = self.get(user_id, habit_id)
        for other in self.habits.list_for_user(user_id, include_archived=True):
            if other.stacked_after_id == habit_id:
                self.habits.save(replace(other, stacked_after_id=None))
        self.habits.delete(habit_id)
        logger.info("Habit deleted habit_id=%s", habit_id)
        self._publish(HABITS_HABIT_DELETED, habit)

    def stack(self, user_id: int, habit_id: int, after_habit_id: Optional[int]) -> HabitConfig:
        """Chain ``habit_id`` after another habit, or unstack it with ``None``."""
        habit = self.get(user_id, habit_id)
        if after_habit_id is not None:
            if after_habit_id == habit_id:
                raise InvalidInputError(
                    "a habit cannot be stacked after itself",
                    details={"after_habit_id": after_habit_id},
                )
            # Walk the chain above the target; meeting this habit would close a loop.
            cursor: Optional[HabitConfig] = self.get(user_id, after_habit_id)
            seen = set()
            while cursor is not None and cursor.stacked_after_id is not None:
                if cursor.stacked_after_id == habit_id:
                    raise ConflictError("cannot create circular habit stacking")
                if cursor.id in seen:
                    break
                seen.add(cursor.id)
                cursor = self.habits.get(cursor.stacked_after_id)
        if habit.stacked_after_id == after_habit_id:
            return habit
        habit = self.habits.save(replace(habit, stacked_after_id=after_habit_id))

        logger.info("Habit stacked habit_id=%s after=%s", habit_id, after_habit_id)
        self._publish(HABITS_HABIT_UPDATED, habit, fields={"stacked_after_id": after_habit_id})
        return habit

    def categories(self, user_id: int) -> dict:
        """Categories in use by the user's unarchived habits, plus the defaults."""
        counts: Dict[str, int] = {}
        for habit in self.habits.list_for_user(user_id, include_archived=False):
            if habit.category:
                counts[habit.category] = counts.get(habit.category, 0) + 1
        return {
            "categories": [
                {"name": name, "habit_count": count} for name, count in sorted(counts.items())
            ],
            "default_categories": list(DEFAULT_CATEGORIES),
        }

    def reorder(self, user_id: int, habit_ids: Iterable[int]) -> List[HabitConfig]:
        ordered = [self.get(user_id, habit_id) for habit_id in habit_ids]
        for position, habit in enumerate(ordered):
            if habit.sort_order == position:
                continue
            habit = self.habits.save(replace(habit, sort_order=position))
            self._publish(HABITS_HABIT_UPDATED, habit, fields={"sort_order": position})
        return self.list(user_id, include_archived=True)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (Frequency, HabitType)):
        return value.value
    if isinstance(value, frozenset):
        return sorted(value)
    return value


__all__ = ["HabitService", "validate_habit", "habit_to_dict", "DEFAULT_COLOR", "DEFAULT_CATEGORIES"]
