"""Habits models with prefixed tables."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy.orm import Mapped, mapped_column, relationship

from habitflow.core.utils.timestamps import utcnow
from habitflow.domains.habits.engine.types import (
    CompletionEntry,
    Frequency,
    HabitConfig,
    HabitType,
    MilestoneRecord,
    MilestoneType,
    PauseWindow as PauseWindowValue,
)
from habitflow.extensions import db


def _encode_days(days) -> str | None:
    if not days:
        return None
    return ",".join(str(day) for day in sorted(days))


def _decode_days(raw: str | None) -> frozenset:
    if not raw:
        return frozenset()
    return frozenset(int(part) for part in raw.split(",") if part)


class Habit(db.Model):
    __tablename__ = "habits_habit"
    __table_args__ = (
        db.Index("ux_habits_habit_user_name", "user_id", "name", unique=True),
        db.Index("ix_habits_habit_user_sort", "user_id", "sort_order"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(index=True, nullable=False)
    name: Mapped[str] = mapped_column(db.String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(db.Text)
    category: Mapped[str | None] = mapped_column(db.String(64))
    color: Mapped[str] = mapped_column(db.String(7), nullable=False, default="#0ea5e9")
    icon: Mapped[str | None] = mapped_column(db.String(32))
    sort_order: Mapped[int] = mapped_column(default=0, nullable=False)
    # Habit this one is chained after; cleared when that habit is deleted.
    stacked_after_id: Mapped[int | None] = mapped_column(index=True)
    frequency: Mapped[str] = mapped_column(db.String(16), nullable=False, default=Frequency.DAILY.value)
    habit_type: Mapped[str] = mapped_column(db.String(16), nullable=False, default=HabitType.BOOLEAN.value)
    target_value: Mapped[float | None] = mapped_column(db.Float)
    unit: Mapped[str | None] = mapped_column(db.String(32))
    days_of_week: Mapped[str | None] = mapped_column(db.String(16))
    times_per_week: Mapped[int | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    is_archived: Mapped[bool] = mapped_column(default=False)
    current_streak: Mapped[int] = mapped_column(default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(default=0, nullable=False)
    total_completions: Mapped[int] = mapped_column(default=0, nullable=False)
    last_completed_at: Mapped[date | None] = mapped_column(db.Date)
    derived_version: Mapped[int] = mapped_column(default=0, nullable=False)
    created_on: Mapped[date] = mapped_column(db.Date, default=date.today, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    pause_windows: Mapped[list["PauseWindow"]] = relationship(
        "PauseWindow",
        back_populates="habit",
        cascade="all, delete-orphan",
        order_by="PauseWindow.start_date",
        lazy="selectin",
    )
    records: Mapped[list["CompletionRecord"]] = relationship(
        "CompletionRecord",
        back_populates="habit",
        cascade="all, delete-orphan",
    )
    milestones: Mapped[list["Milestone"]] = relationship(
        "Milestone",
        back_populates="habit",
        cascade="all, delete-orphan",
    )

    def to_config(self) -> HabitConfig:
        return HabitConfig(
            id=self.id,
            user_id=self.user_id,
            name=self.name,
            description=self.description,
            frequency=Frequency(self.frequency),
            habit_type=HabitType(self.habit_type),
            target_value=self.target_value,
            unit=self.unit,
            days_of_week=_decode_days(self.days_of_week),
            times_per_week=self.times_per_week,
            category=self.category,
            color=self.color,
            icon=self.icon,
            sort_order=self.sort_order or 0,
            stacked_after_id=self.stacked_after_id,
            created_on=self.created_on,
            is_active=bool(self.is_active),
            is_archived=bool(self.is_archived),
            pause_windows=tuple(window.to_value() for window in self.pause_windows),
            current_streak=self.current_streak or 0,
            longest_streak=self.longest_streak or 0,
            total_completions=self.total_completions or 0,
            last_completed_at=self.last_completed_at,
            derived_version=self.derived_version or 0,
        )

    def apply_config(self, config: HabitConfig) -> None:
        """Copy editable fields from an engine habit onto the row."""
        self.name = config.name
        self.description = config.description
        self.sort_order = config.sort_order
        self.stacked_after_id = config.stacked_after_id
        self.frequency = config.frequency.value
        self.habit_type = config.habit_type.value
        self.target_value = config.target_value
        self.unit = config.unit
        self.days_of_week = _encode_days(config.days_of_week)
        self.times_per_week = config.times_per_week
        self.category = config.category
        self.color = config.color or self.color
        self.icon = config.icon
        self.is_active = config.is_active
        self.is_archived = config.is_archived


class PauseWindow(db.Model):
    __tablename__ = "habits_pause_window"
    __table_args__ = (db.Index("ix_habits_pause_habit_start", "habit_id", "start_date"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    habit_id: Mapped[int] = mapped_column(
        db.ForeignKey("habits_habit.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(db.Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(db.Date)
    reason: Mapped[str | None] = mapped_column(db.String(255))
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    habit: Mapped[Habit] = relationship("Habit", back_populates="pause_windows")

    def to_value(self) -> PauseWindowValue:
        return PauseWindowValue(start=self.start_date, end=self.end_date, reason=self.reason)


class CompletionRecord(db.Model):
    __tablename__ = "habits_completion_record"
    __table_args__ = (
        db.UniqueConstraint("habit_id", "day", name="ux_habits_record_habit_day"),
        db.Index("ix_habits_record_user_day", "user_id", "day"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(index=True, nullable=False)
    habit_id: Mapped[int] = mapped_column(
        db.ForeignKey("habits_habit.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    day: Mapped[date] = mapped_column(db.Date, nullable=False)
    completed: Mapped[bool] = mapped_column(default=True, nullable=False)
    value: Mapped[float | None] = mapped_column(db.Float)
    notes: Mapped[str | None] = mapped_column(db.String(500))
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    habit: Mapped[Habit] = relationship("Habit", back_populates="records")

    def to_entry(self) -> CompletionEntry:
        return CompletionEntry(
            habit_id=self.habit_id,
            day=self.day,
            completed=bool(self.completed),
            value=self.value,
            notes=self.notes,
            user_id=self.user_id,
        )


class Milestone(db.Model):
    __tablename__ = "habits_milestone"
    __table_args__ = (
        db.UniqueConstraint("habit_id", "type", "value", name="ux_habits_milestone_habit_type_value"),
        db.Index("ix_habits_milestone_user_achieved", "user_id", "achieved_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int | None] = mapped_column(index=True)
    habit_id: Mapped[int] = mapped_column(
        db.ForeignKey("habits_habit.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    type: Mapped[str] = mapped_column(db.String(16), nullable=False)
    value: Mapped[int] = mapped_column(nullable=False)
    achieved_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    habit: Mapped[Habit] = relationship("Habit", back_populates="milestones")

    def to_record(self) -> MilestoneRecord:
        return MilestoneRecord(
            id=self.id,
            habit_id=self.habit_id,
            type=MilestoneType(self.type),
            value=self.value,
            achieved_at=self.achieved_at,
            user_id=self.user_id,
        )
