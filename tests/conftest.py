import os

# Credential fields have no defaults (services must fail without secrets).
# Provide test values so Settings() can be constructed in tests.
os.environ.setdefault("API_KEY", "test-api-key")
# Workers are driven explicitly through run_once() in tests.
os.environ.setdefault("WORKER_ENABLED", "false")
os.environ.setdefault("SERVICE_LOCAL_TIMEZONE", "UTC")

import json
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from api.app import create_app
from api.rate_limit import limiter
from db.database import init_database
from main import Services, build_services
from settings import Settings
from tests.factories import TripFactory


class FakeClock:
    """Mutable clock injected wherever services read the current time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class PushRecorder:
    """httpx handler standing in for the Expo push endpoint."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.status_code = 200
        self.payload: dict[str, Any] = {"data": {"status": "ok", "id": "receipt-1"}}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.messages.append(json.loads(request.content))
        return httpx.Response(self.status_code, json=self.payload)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 10, 12, 0, tzinfo=UTC))


@pytest.fixture
def session_factory(tmp_path) -> sessionmaker[Session]:
    """Fresh SQLite database per test."""
    return init_database(f"sqlite:///{tmp_path / 'trips.db'}")


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def push() -> PushRecorder:
    return PushRecorder()


@pytest.fixture
def services(
    settings: Settings,
    session_factory: sessionmaker[Session],
    clock: FakeClock,
    push: PushRecorder,
) -> Services:
    return build_services(
        settings, session_factory, clock=clock, push_transport=httpx.MockTransport(push)
    )


@pytest.fixture
def factory(session_factory: sessionmaker[Session], clock: FakeClock) -> TripFactory:
    return TripFactory(session_factory, clock)


@pytest.fixture
def test_client(settings: Settings, services: Services) -> Iterator[TestClient]:
    """Client against a fully wired app; workers stay stopped."""
    limiter.reset()
    app = create_app(
        settings,
        services.session_factory,
        services.lifecycle,
        services.finance,
        services.notifications,
        services.workers,
    )
    with TestClient(app) as client:
        yield client
