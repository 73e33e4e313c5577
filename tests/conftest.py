"""
Pytest configuration and shared fixtures for ERM tests.

This module provides common fixtures used across all test files:
- In-memory stores and per-workspace service graphs
- A controllable clock
- Test client setup with an isolated root store
"""

import json
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Environment setup before any imports
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("REDIS_URL", None)
os.environ.pop("ANALYTICS_ENDPOINT_URL", None)
os.environ.pop("SENTRY_DSN", None)

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from erm.config import reload_settings
from erm.services import build_workspace_services
from erm.storage import KeyValueStore
from erm.types.plans import PlanTier
from erm.types.workspace import User, Workspace


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def fresh_settings():
    """Reload settings so environment changes in one test do not leak."""
    reload_settings()
    yield
    reload_settings()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 9, 30, 0, 123000, tzinfo=timezone.utc))


@pytest.fixture
def root_store():
    """Root store on the in-memory backend with the default prefix."""
    return KeyValueStore(prefix="erm_")


@pytest.fixture
def session_store():
    return KeyValueStore(prefix="session:")


@pytest.fixture
def services(root_store, session_store, clock):
    """Component graph for workspace ``ws1`` with no acting user."""
    return build_workspace_services(
        root_store,
        "ws1",
        session_store=session_store,
        clock=clock,
    )


@pytest.fixture
def user_services(root_store, session_store, clock):
    """Component graph for workspace ``ws1`` acting as Jane."""
    return build_workspace_services(
        root_store,
        "ws1",
        acting_user=User(id="u-1", name="Jane Smith", email="jane@example.com"),
        session_store=session_store,
        clock=clock,
    )


async def set_plan(services, plan: PlanTier) -> None:
    """Persist the workspace record with ``plan``."""
    await services.workspace.save_workspace(Workspace(id=services.workspace_id, plan=plan))


@pytest.fixture
def client(root_store):
    """FastAPI test client bound to an isolated in-memory root store."""
    from fastapi.testclient import TestClient

    from app.dependencies import get_root_store
    from server import app

    app.dependency_overrides[get_root_store] = lambda: root_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def seed(store: KeyValueStore, key: str, value) -> None:
    """Write ``value`` straight into an in-memory store, outside any event loop."""
    store._backend.data[store.prefix + key] = json.dumps(value, separators=(",", ":"))


def stored(store: KeyValueStore, key: str):
    raw = store._backend.data.get(store.prefix + key)
    return None if raw is None else json.loads(raw)
