"""Habit and tracking DTOs and schemas."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from habitflow.domains.habits.engine.types import Frequency, HabitType

COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
DEFAULT_COLOR = "#0ea5e9"


class HabitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=4096)
    category: Optional[str] = Field(default=None, max_length=64)
    color: str = Field(default=DEFAULT_COLOR, pattern=COLOR_PATTERN)
    icon: Optional[str] = Field(default=None, max_length=32)
    frequency: Frequency = Frequency.DAILY
    habit_type: HabitType = HabitType.BOOLEAN
    target_value: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, max_length=32)
    days_of_week: Optional[List[int]] = None
    times_per_week: Optional[int] = Field(default=None, ge=1, le=7)
    sort_order: Optional[int] = Field(default=None, ge=0)


class HabitUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=4096)
    category: Optional[str] = Field(default=None, max_length=64)
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    icon: Optional[str] = Field(default=None, max_length=32)
    frequency: Optional[Frequency] = None
    habit_type: Optional[HabitType] = None
    target_value: Optional[float] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, max_length=32)
    days_of_week: Optional[List[int]] = None
    times_per_week: Optional[int] = Field(default=None, ge=1, le=7)
    sort_order: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class PauseRequest(BaseModel):
    paused_until: Optional[dt.date] = None
    reason: Optional[str] = Field(default=None, max_length=255)


class ReorderRequest(BaseModel):
    habit_ids: List[int] = Field(min_length=1)


class StackRequest(BaseModel):
    after_habit_id: Optional[int] = None


class CheckInRequest(BaseModel):
    habit_id: int
    date: Optional[dt.date] = None
    completed: Optional[bool] = None
    value: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=500)


class UndoRequest(BaseModel):
    habit_id: int
    date: Optional[dt.date] = None


class HistoryQuery(BaseModel):
    habit_id: int
    start: Optional[dt.date] = None
    end: Optional[dt.date] = None
    limit: int = Field(default=90, ge=1, le=365)


class PeriodQuery(BaseModel):
    date: Optional[dt.date] = None


class MonthQuery(BaseModel):
    year: Optional[int] = Field(default=None, ge=1970, le=9999)
    month: Optional[int] = Field(default=None, ge=1, le=12)


class HeatmapQuery(BaseModel):
    year: Optional[int] = Field(default=None, ge=1970, le=9999)
    habit_id: Optional[int] = None


class PageQuery(BaseModel):
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1, le=100)


class MilestoneQuery(BaseModel):
    habit_id: Optional[int] = None


class CompletionRecordResponse(BaseModel):
    habit_id: int
    date: dt.date
    completed: bool
    value: Optional[float]
    notes: Optional[str]


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    total_completions: int
    last_completed_at: Optional[dt.date]


class MilestoneResponse(BaseModel):
    id: Optional[int]
    habit_id: int
    type: str
    value: int
    achieved_at: str


class CheckInResponse(BaseModel):
    record: CompletionRecordResponse
    streak: StreakResponse
    milestones: List[MilestoneResponse]
