"""Habits domain event catalog."""

from __future__ import annotations

HABITS_HABIT_CREATED = "habits.habit.created"
HABITS_HABIT_UPDATED = "habits.habit.updated"
HABITS_HABIT_ARCHIVED = "habits.habit.archived"
HABITS_HABIT_UNARCHIVED = "habits.habit.unarchived"
HABITS_HABIT_PAUSED = "habits.habit.paused"
HABITS_HABIT_RESUMED = "habits.habit.resumed"
HABITS_HABIT_DELETED = "habits.habit.deleted"
HABITS_CHECKIN_RECORDED = "habits.checkin.recorded"
HABITS_CHECKIN_UNDONE = "habits.checkin.undone"
HABITS_MILESTONE_ACHIEVED = "habits.milestone.achieved"

EVENT_CATALOG = {
    HABITS_HABIT_CREATED: {
        "version": "v1",
        "payload": {
            "habit_id": "int",
            "user_id": "int",
            "name": "str",
            "frequency": "str",
            "habit_type": "str",
            "created_at": "datetime",
        },
    },
    HABITS_HABIT_UPDATED: {
        "version": "v1",
        "payload": {"habit_id": "int", "user_id": "int", "fields": "dict"},
    },
    HABITS_HABIT_ARCHIVED: {
        "version": "v1",
        "payload": {"habit_id": "int", "user_id": "int"},
    },
    HABITS_HABIT_UNARCHIVED: {
        "version": "v1",
        "payload": {"habit_id": "int", "user_id": "int"},
    },
    HABITS_HABIT_PAUSED: {
        "version": "v1",
        "payload": {
            "habit_id": "int",
            "user_id": "int",
            "paused_until": "date?",
            "reason": "str?",
        },
    },
    HABITS_HABIT_RESUMED: {
        "version": "v1",
        "payload": {"habit_id": "int", "user_id": "int"},
    },
    HABITS_HABIT_DELETED: {
        "version": "v1",
        "payload": {"habit_id": "int", "user_id": "int"},
    },
    HABITS_CHECKIN_RECORDED: {
        "version": "v1",
        "payload": {
            "habit_id": "int",
            "user_id": "int",
            "day": "date",
            "completed": "bool",
            "value": "float?",
            "current_streak": "int",
            "longest_streak": "int",
        },
    },
    HABITS_CHECKIN_UNDONE: {
        "version": "v1",
        "payload": {
            "habit_id": "int",
            "user_id": "int",
            "day": "date",
            "current_streak": "int",
        },
    },
    HABITS_MILESTONE_ACHIEVED: {
        "version": "v1",
        "payload": {
            "habit_id": "int",
            "user_id": "int",
            "type": "str",
            "value": "int",
            "achieved_at": "datetime",
        },
    },
}

__all__ = [
    "EVENT_CATALOG",
    "HABITS_HABIT_CREATED",
    "HABITS_HABIT_UPDATED",
    "HABITS_HABIT_ARCHIVED",
    "HABITS_HABIT_UNARCHIVED",
    "HABITS_HABIT_PAUSED",
    "HABITS_HABIT_RESUMED",
    "HABITS_HABIT_DELETED",
    "HABITS_CHECKIN_RECORDED",
    "HABITS_CHECKIN_UNDONE",
    "HABITS_MILESTONE_ACHIEVED",
]
