from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app

from .fakes import FakeDatabase

SECRET = "test-signing-secret-that-is-long-enough-for-hs256"


class StepClock:
    """Deterministic clock: each call is one second after the previous one."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture()
def settings() -> Settings:
    # bcrypt's minimum cost keeps the suite fast
    return Settings(
        database_url="mongodb://unused",
        database_name="tasktracker_test",
        jwt_secret=SECRET,
        bcrypt_rounds=4,
    )


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


@pytest.fixture()
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def app(settings: Settings, db: FakeDatabase, clock: StepClock):
    return create_app(settings, database=db, clock=clock)


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def auth_headers(client: TestClient) -> dict[str, str]:
    client.post("/auth/register", json={"username": "alice", "password": "pw1"})
    resp = client.post("/auth/login", json={"username": "alice", "password": "pw1"})
    return {"Authorization": f"Bearer {resp.json()['token']}"}
