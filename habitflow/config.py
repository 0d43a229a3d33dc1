"""Application configuration for habitflow."""

from __future__ import annotations

import os
from typing import Dict, Tuple, Type

from dotenv import load_dotenv
from sqlalchemy.engine.url import make_url

load_dotenv()


def _engine_options_from_uri(uri: str) -> dict:
    url = make_url(uri)
    # Always keep pool_pre_ping, vary connect_args by dialect.
    if url.get_backend_name() == "sqlite":
        return {
            "pool_pre_ping": True,
            "connect_args": {"timeout": 30, "check_same_thread": False},
        }
    if url.get_backend_name() in {"postgresql", "postgres"}:
        timeout = int(os.environ.get("DB_CONNECT_TIMEOUT_SECONDS", "10"))
        return {"pool_pre_ping": True, "connect_args": {"connect_timeout": timeout}}
    return {"pool_pre_ping": True}


def _int_tuple(raw: str | None, default: Tuple[int, ...]) -> Tuple[int, ...]:
    if not raw:
        return default
    return tuple(sorted({int(part) for part in raw.split(",") if part.strip()}))


def _flag(name: str, default: str = "true") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    """Base configuration loaded for all environments."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///instance/habitflow.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options_from_uri(SQLALCHEMY_DATABASE_URI)

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
    JWT_TOKEN_LOCATION = ["headers"]

    # Calendar day boundary used for "today" in every engine computation.
    DAY_BOUNDARY_TZ = os.environ.get("DAY_BOUNDARY_TZ", "UTC")

    STREAK_MILESTONES = _int_tuple(
        os.environ.get("STREAK_MILESTONES"),
        (7, 14, 21, 30, 60, 90, 100, 180, 365, 500, 1000),
    )
    COMPLETION_MILESTONES = _int_tuple(
        os.environ.get("COMPLETION_MILESTONES"),
        (10, 25, 50, 100, 250, 500, 1000),
    )
    HEATMAP_LEVEL_BOUNDARIES = _int_tuple(
        os.environ.get("HEATMAP_LEVEL_BOUNDARIES"), (1, 3, 5, 8)
    )
    WEEK_TREND_MIN_CHANGE = int(os.environ.get("WEEK_TREND_MIN_CHANGE", "5"))
    CORRELATION_MIN_SAMPLES = int(os.environ.get("CORRELATION_MIN_SAMPLES", "14"))
    CORRELATION_LOOKBACK_DAYS = int(os.environ.get("CORRELATION_LOOKBACK_DAYS", "60"))
    CORRELATION_MAX_HABITS = int(os.environ.get("CORRELATION_MAX_HABITS", "20"))

    ANALYTICS_TIMEOUT_SECONDS = float(os.environ.get("ANALYTICS_TIMEOUT_SECONDS", "10"))
    ANALYTICS_CACHE_ENABLED = _flag("ANALYTICS_CACHE_ENABLED")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    ENV = "development"


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite://")
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options_from_uri(SQLALCHEMY_DATABASE_URI)
    JWT_SECRET_KEY = "testing-secret-key-with-enough-length"


class ProductionConfig(BaseConfig):
    ENV = "production"


config_by_name: Dict[str, Type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    # CI pipelines set APP_ENV=ci; map to testing defaults.
    "ci": TestingConfig,
}
