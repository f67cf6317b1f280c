"""Shared test fixtures for levelguard."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from hypothesis import HealthCheck, settings

from levelguard.audit import AuditLogger
from levelguard.handler import DegradationController, set_controller
from levelguard.state import Level, ServiceHealthState
from levelguard.storage import GuardedStateStore, InMemoryStateStore

SERVICE_ID = "core-system"
FIXED_NOW = datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)

settings.register_profile(
    "levelguard", suppress_health_check=[HealthCheck.function_scoped_fixture]
)
settings.load_profile("levelguard")

_ENV_VARS = (
    "TABLE_NAME",
    "SERVICE_ID",
    "STORE_BACKEND",
    "AWS_REGION",
    "DYNAMODB_ENDPOINT_URL",
    "REDIS_URL",
    "STORE_TIMEOUT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the host environment and any ``.env`` file."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    set_controller(None)
    yield
    set_controller(None)


@pytest.fixture
def memory_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def controller(memory_store) -> DegradationController:
    """Controller over an in-memory store with a fixed clock."""
    return DegradationController(
        store=GuardedStateStore(memory_store),
        service_id=SERVICE_ID,
        audit=AuditLogger(),
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def make_state():
    """Factory for states of the default service."""

    def _make(level: int = 1, errors: int = 0, healthy: int = 0) -> ServiceHealthState:
        return ServiceHealthState(
            service_id=SERVICE_ID,
            current_level=Level(level),
            consecutive_errors=errors,
            consecutive_healthy=healthy,
        )

    return _make


@pytest.fixture
def failing_store():
    """A store whose load/save raise like an unreachable backend."""
    from levelguard.exceptions import StoreUnavailableError

    store = MagicMock()
    store.load.side_effect = StoreUnavailableError("load", SERVICE_ID, "EndpointConnectionError")
    store.save.side_effect = StoreUnavailableError("save", SERVICE_ID, "EndpointConnectionError")
    return store
