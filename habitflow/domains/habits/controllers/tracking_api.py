"""Completion tracking JSON API: check-in, undo, history and day lists."""

from __future__ import annotations

from datetime import date

from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from habitflow.core.utils.validation import validate_payload
from habitflow.domains.habits.schemas.habit_schemas import (
    CheckInRequest,
    CheckInResponse,
    CompletionRecordResponse,
    HistoryQuery,
    MilestoneQuery,
    StreakResponse,
    UndoRequest,
)
from habitflow.domains.habits.services import get_runtime

tracking_api_bp = Blueprint("tracking_api", __name__)


@tracking_api_bp.post("/check-in")
@jwt_required()
def check_in():
    data, error = validate_payload(CheckInRequest, request.get_json(silent=True))
    if error:
        return error
    user_id = int(get_jwt_identity())
    result = get_runtime().ledger.check_in(
        user_id,
        data.habit_id,
        day=data.date,
        completed=data.completed,
        value=data.value,
        notes=data.notes,
    )
    body = CheckInResponse.model_validate(result.to_dict()).model_dump(mode="json")
    return jsonify({"ok": True, **body})


@tracking_api_bp.post("/undo")
@jwt_required()
def undo():
    data, error = validate_payload(UndoRequest, request.get_json(silent=True))
    if error:
        return error
    user_id = int(get_jwt_identity())
    streak = get_runtime().ledger.undo(user_id, data.habit_id, day=data.date)
    body = StreakResponse.model_validate(streak.to_dict()).model_dump(mode="json")
    return jsonify({"ok": True, "streak": body})


@tracking_api_bp.get("/history")
@jwt_required()
def history():
    data, error = validate_payload(HistoryQuery, request.args.to_dict())
    if error:
        return error
    user_id = int(get_jwt_identity())
    view = get_runtime().ledger.history(
        user_id, data.habit_id, start=data.start, end=data.end, limit=data.limit
    )
    records = [
        CompletionRecordResponse.model_validate(entry.to_dict()).model_dump(mode="json")
        for entry in view
    ]
    return jsonify({"ok": True, "habit_id": data.habit_id, "records": records})


@tracking_api_bp.get("/today")
@jwt_required()
def today():
    user_id = int(get_jwt_identity())
    return jsonify({"ok": True, **get_runtime().analytics.today(user_id)})


@tracking_api_bp.get("/date/<day>")
@jwt_required()
def habits_for_date(day: str):
    try:
        parsed = date.fromisoformat(day)
    except ValueError:
        return jsonify({"ok": False, "error": "validation_error", "details": {"date": "expected YYYY-MM-DD"}}), 400
    user_id = int(get_jwt_identity())
    return jsonify({"ok": True, **get_runtime().analytics.for_date(user_id, parsed)})


@tracking_api_bp.get("/milestones")
@jwt_required()
def milestones():
    data, error = validate_payload(MilestoneQuery, request.args.to_dict())
    if error:
        return error
    user_id = int(get_jwt_identity())
    items = get_runtime().ledger.list_milestones(user_id, data.habit_id)
    return jsonify({"ok": True, "milestones": [m.to_dict() for m in items]})
