"""Habits JSON API controllers (thin, schema-validated)."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from habitflow.core.utils.validation import validate_payload
from habitflow.domains.habits.schemas.habit_schemas import (
    HabitCreate,
    HabitUpdate,
    PauseRequest,
    ReorderRequest,
    StackRequest,
)
from habitflow.domains.habits.services import get_runtime, habit_to_dict

habit_api_bp = Blueprint("habit_api", __name__)


def _serialize(habit) -> dict:
    return habit_to_dict(habit, get_runtime().clock.today())


@habit_api_bp.get("")
@jwt_required()
def list_habits():
    user_id = int(get_jwt_identity())
    include_archived = request.args.get("include_archived", "false").lower() in ("1", "true", "yes")
    habits = get_runtime().habits.list(user_id, include_archived=include_archived)
    return jsonify({"ok": True, "habits": [_serialize(habit) for habit in habits]})


@habit_api_bp.post("")
@jwt_required()
def create_habit():
    data, error = validate_payload(HabitCreate, request.get_json(silent=True))
    if error:
        return error
    user_id = int(get_jwt_identity())
    habit = get_runtime().habits.create(user_id, **data.model_dump())
    return jsonify({"ok": True, "habit": _serialize(habit)}), 201


@habit_api_bp.get("/<int:habit_id>")
@jwt_required()
def habit_detail(habit_id: int):
    user_id = int(get_jwt_identity())
    habit = get_runtime().habits.get(user_id, habit_id)
    return jsonify({"ok": True, "habit": _serialize(habit)})


@habit_api_bp.patch("/<int:habit_id>")
@jwt_required()
def update_habit(habit_id: int):
    data, error = validate_payload(HabitUpdate, request.get_json(silent=True))
    if error:
        return error
    user_id = int(get_jwt_identity())
    habit = get_runtime().habits.update(user_id, habit_id, **data.model_dump(exclude_unset=True))
    return jsonify({"ok": True, "habit": _serialize(habit)})


@habit_api_bp.post("/<int:habit_id>/archive")
@jwt_required()
def archive_habit(habit_id: int):
    user_id = int(get_jwt_identity())
    habit = get_runtime().habits.archive(user_id, habit_id)
    return jsonify({"ok": True, "habit": _serialize(habit)})


@habit_api_bp.post("/<int:habit_id>/unarchive")
@jwt_required()
def unarchive_habit(habit_id: int):
    user_id = int(get_jwt_identity())
    habit = get_runtime().habits.unarchive(user_id, habit_id)
    return jsonify({"ok": True, "habit": _serialize(habit)})


@habit_api_bp.post("/<int:habit_id>/pause")
@jwt_required()
def pause_habit(habit_id: int):
    data, error = validate_payload(PauseRequest, request.get_json(silent=True))
    if error:
        return error
    user_id = int(get_jwt_identity())
    habit = get_runtime().habits.pause(
        user_id, habit_id, paused_until=data.paused_until, reason=data.reason
    )
    return jsonify({"ok": True, "habit": _serialize(habit)})


@habit_api_bp.post("/<int:habit_id>/resume")
@jwt_required()
def resume_habit(habit_id: int):
    user_id = int(get_jwt_identity())
    habit = get_runtime().habits.resume(user_id, habit_id)
    return jsonify({"ok": True, "habit": _serialize(habit)})


@habit_api_bp.delete("/<int:habit_id>")
@jwt_required()
def delete_habit(habit_id: int):
    user_id = int(get_jwt_identity())
    get_runtime().habits.delete(user_id, habit_id)
    return jsonify({"ok": True})


@habit_api_bp.post("/reorder")
@jwt_required()
def reorder_habits():
    data, error = validate_payload(ReorderRequest, request.get_json(silent=True))
    if error:
        return error
    user_id = int(get_jwt_identity())
    habits = get_runtime().habits.reorder(user_id, data.habit_ids)
    return jsonify({"ok": True, "habits": [_serialize(habit) for habit in habits]})


@habit_api_bp.post("/<int:habit_id>/stack")
@jwt_required()
def stack_habit(habit_id: int):
    data, error = validate_payload(StackRequest, request.get_json(silent=True))
    if error:
        return error
    user_id = int(get_jwt_identity())
    habit = get_runtime().habits.stack(user_id, habit_id, data.after_habit_id)
    return jsonify({"ok": True, "habit": _serialize(habit)})


@habit_api_bp.get("/categories")
@jwt_required()
def list_categories():
    user_id = int(get_jwt_identity())
    return jsonify({"ok": True, **get_runtime().habits.categories(user_id)})
