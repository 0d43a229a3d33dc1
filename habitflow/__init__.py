"""habitflow application factory and bootstrap."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from flask import Flask

from habitflow.config import config_by_name
from habitflow.core.errors import HabitflowError
from habitflow.core.events.event_bus import event_bus
from habitflow.extensions import init_extensions


def create_app(config_name: Optional[str] = None, clock=None) -> Flask:
    """Create and configure the habitflow Flask application.

    ``clock`` overrides the wall clock used for "today" (tests pass a fixed one).
    """
    env_name = (config_name or os.environ.get("APP_ENV") or "development").lower()
    project_root = Path(__file__).resolve().parent.parent
    instance_root = project_root / "instance"

    app = Flask(__name__, instance_path=str(instance_root), instance_relative_config=True)
    config_cls = config_by_name.get(env_name, config_by_name["development"])
    app.config.from_object(config_cls)

    # Normalize sqlite path to absolute to avoid "unable to open database file"
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if db_uri.startswith("sqlite:///"):
        db_path = Path(db_uri.replace("sqlite:///", "", 1))
        if not db_path.is_absolute():
            db_path = project_root / db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{db_path}"

    init_extensions(app)
    _register_blueprints(app)
    _register_error_handlers(app)

    from habitflow.domains.habits.services import init_habits

    init_habits(app, clock=clock)
    app.extensions["event_bus"] = event_bus

    from habitflow.scripts.recompute_streaks import recompute_streaks_command

    app.cli.add_command(recompute_streaks_command)

    @app.get("/health")
    def health():
        return {"ok": True}, 200

    return app


def _register_blueprints(app: Flask) -> None:
    """Lazy import and register all controllers."""
    from habitflow.domains.habits.controllers.analytics_api import analytics_api_bp
    from habitflow.domains.habits.controllers.habit_api import habit_api_bp
    from habitflow.domains.habits.controllers.tracking_api import tracking_api_bp

    app.register_blueprint(habit_api_bp, url_prefix="/api/habits")
    app.register_blueprint(tracking_api_bp, url_prefix="/api/tracking")
    app.register_blueprint(analytics_api_bp, url_prefix="/api/analytics")


def _register_error_handlers(app: Flask) -> None:
    """JSON error responses."""
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(HabitflowError)
    def _domain_error(exc: HabitflowError):
        if exc.status_code >= 500:
            app.logger.warning("Request failed: %s", exc.message)
        return exc.to_dict(), exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return {"ok": False, "error": exc.description}, exc.code

    @app.errorhandler(Exception)
    def _generic_error(exc: Exception):
        app.logger.exception("Unhandled error: %s", exc)
        # In debug/testing, surface the exception message to speed up diagnosis
        if app.debug or app.testing:
            return {"ok": False, "error": str(exc)}, 500
        return {"ok": False, "error": "unexpected_error"}, 500
