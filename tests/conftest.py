# tests/conftest.py
import asyncio
import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

# Must be set before anything imports app settings.
os.environ["APP_ENV"] = "test"
os.environ["DB_URL"] = "sqlite+aiosqlite:///./test_meeting_scheduler.db"
os.environ["ALARM_DISPATCH_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from app.db.session import init_db  # noqa: E402
from app.main import create_app  # noqa: E402


class FakeClock:
    """
    Controllable UTC clock passed wherever the code accepts a `clock`.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 10, 20, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def _reset_db():
    """
    Automatically reset the DB before each test.

    Every test gets a clean schema + empty tables.
    """
    asyncio.run(init_db())
    yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client() -> TestClient:
    """
    Fresh application (and actor registry) per test.
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
