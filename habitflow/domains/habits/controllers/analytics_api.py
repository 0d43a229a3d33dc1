"""Analytics and insights JSON API."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from habitflow.core.utils.validation import validate_payload
from habitflow.domains.habits.schemas.habit_schemas import (
    HeatmapQuery,
    MonthQuery,
    PageQuery,
    PeriodQuery,
)
from habitflow.domains.habits.services import get_runtime

analytics_api_bp = Blueprint("analytics_api", __name__)


def _user_id() -> int:
    return int(get_jwt_identity())


@analytics_api_bp.get("/overview")
@jwt_required()
def overview():
    return jsonify({"ok": True, "overview": get_runtime().analytics.overview(_user_id())})


@analytics_api_bp.get("/weekly")
@jwt_required()
def weekly():
    data, error = validate_payload(PeriodQuery, request.args.to_dict())
    if error:
        return error
    return jsonify({"ok": True, "weekly": get_runtime().analytics.weekly(_user_id(), data.date)})


@analytics_api_bp.get("/monthly")
@jwt_required()
def monthly():
    data, error = validate_payload(MonthQuery, request.args.to_dict())
    if error:
        return error
    result = get_runtime().analytics.monthly(_user_id(), data.year, data.month)
    return jsonify({"ok": True, "monthly": result})


@analytics_api_bp.get("/calendar")
@jwt_required()
def calendar():
    data, error = validate_payload(MonthQuery, request.args.to_dict())
    if error:
        return error
    result = get_runtime().analytics.calendar(_user_id(), data.year, data.month)
    return jsonify({"ok": True, "calendar": result})


@analytics_api_bp.get("/heatmap")
@jwt_required()
def heatmap():
    data, error = validate_payload(HeatmapQuery, request.args.to_dict())
    if error:
        return error
    result = get_runtime().analytics.heatmap(_user_id(), data.year, data.habit_id)
    return jsonify({"ok": True, "heatmap": result})


@analytics_api_bp.get("/categories")
@jwt_required()
def categories():
    return jsonify({"ok": True, **get_runtime().analytics.categories(_user_id())})


@analytics_api_bp.get("/week-comparison")
@jwt_required()
def week_comparison():
    return jsonify({"ok": True, "comparison": get_runtime().analytics.week_comparison(_user_id())})


@analytics_api_bp.get("/monthly-trend")
@jwt_required()
def monthly_trend():
    return jsonify({"ok": True, "trend": get_runtime().analytics.monthly_trend(_user_id())})


@analytics_api_bp.get("/habits/<int:habit_id>")
@jwt_required()
def habit_stats(habit_id: int):
    return jsonify({"ok": True, "stats": get_runtime().analytics.habit_stats(_user_id(), habit_id)})


@analytics_api_bp.get("/streaks")
@jwt_required()
def streaks():
    data, error = validate_payload(PageQuery, request.args.to_dict())
    if error:
        return error
    result = get_runtime().analytics.streaks(_user_id(), data.page, data.per_page)
    return jsonify({"ok": True, **result})


@analytics_api_bp.get("/productivity")
@jwt_required()
def productivity():
    return jsonify({"ok": True, "productivity": get_runtime().analytics.productivity(_user_id())})


@analytics_api_bp.get("/day-of-week")
@jwt_required()
def day_of_week():
    return jsonify({"ok": True, "day_of_week": get_runtime().analytics.day_of_week(_user_id())})


@analytics_api_bp.get("/correlations")
@jwt_required()
def correlations():
    data, error = validate_payload(PageQuery, request.args.to_dict())
    if error:
        return error
    result = get_runtime().analytics.correlations(_user_id(), data.page, data.per_page)
    return jsonify({"ok": True, **result})


@analytics_api_bp.get("/predictions")
@jwt_required()
def predictions():
    data, error = validate_payload(PageQuery, request.args.to_dict())
    if error:
        return error
    result = get_runtime().analytics.predictions(_user_id(), data.page, data.per_page)
    return jsonify({"ok": True, **result})


@analytics_api_bp.get("/insights")
@jwt_required()
def insights():
    return jsonify({"ok": True, "insights": get_runtime().analytics.insight_summary(_user_id())})
