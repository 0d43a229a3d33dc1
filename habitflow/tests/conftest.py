import sys
from datetime import date
from pathlib import Path

import pytest
from flask_jwt_extended import create_access_token

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from habitflow import create_app
from habitflow.core.events.event_bus import EventBus
from habitflow.domains.habits.services import build_runtime, get_runtime
from habitflow.domains.habits.stores import (
    FixedClock,
    InMemoryHabitStore,
    InMemoryLedgerStore,
    InMemoryMilestoneStore,
)
from habitflow.extensions import db

# Wednesday; keeps week boundaries easy to reason about in tests.
TODAY = date(2024, 3, 20)
USER_ID = 1


# ==================== Pytest Markers ====================
def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (database, API)")
    config.addinivalue_line("markers", "slow: Slow running tests")


@pytest.fixture()
def clock():
    return FixedClock(TODAY)


@pytest.fixture()
def runtime(clock):
    """Engine services over in-memory stores and a private event bus."""
    ledger_store = InMemoryLedgerStore()
    milestone_store = InMemoryMilestoneStore()
    habit_store = InMemoryHabitStore(ledger_store, milestone_store)
    rt = build_runtime(habit_store, ledger_store, milestone_store, clock, bus=EventBus())
    yield rt
    rt.close()


@pytest.fixture()
def app(clock):
    """Per-test app on a fresh in-memory SQLite database."""
    app = create_app("testing", clock=clock)
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    try:
        yield app
    finally:
        db.session.remove()
        db.drop_all()
        get_runtime().close()
        ctx.pop()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_headers(app):
    token = create_access_token(identity=str(USER_ID))
    return {"Authorization": f"Bearer {token}"}
