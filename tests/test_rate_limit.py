from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ats.core.config import get_settings
from ats.core.database import Base, get_db
from ats.main import app
from ats.middleware.rate_limit import reset_rate_limiter


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def configure_rate_limiter_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "false")
    monkeypatch.setenv("RATE_LIMIT_MUTATIONS_PER_MINUTE", "3")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_mutating_endpoints_are_rate_limited(client: TestClient) -> None:
    responses = [
        client.post("/api/users", json={"name": f"User {index}", "email": f"limit{index}@example.com"})
        for index in range(5)
    ]

    assert [response.status_code for response in responses[:3]] == [201, 201, 201]
    limited = [response for response in responses if response.status_code == 429]
    assert limited

    first_limited = limited[0]
    body = first_limited.json()
    assert body["success"] is False
    assert body["error"] == "Too many requests"
    assert body["statusCode"] == 429
    assert body["correlation_id"] is not None
    assert first_limited.headers.get("Retry-After") is not None


def test_rate_limit_buckets_are_per_route_group(client: TestClient) -> None:
    for index in range(3):
        assert client.post("/api/users", json={"name": "U", "email": f"group{index}@example.com"}).status_code == 201
    assert client.post("/api/users", json={"name": "U", "email": "group9@example.com"}).status_code == 429

    organization = client.post("/api/organizations", json={"name": "Separate Bucket"})
    assert organization.status_code != 429


def test_get_endpoints_are_not_rate_limited(client: TestClient) -> None:
    responses = [client.get("/api/users") for _ in range(10)]
    assert all(response.status_code == 200 for response in responses)


def test_rate_limited_response_includes_correlation_id(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_MUTATIONS_PER_MINUTE", "1")
    get_settings.cache_clear()
    reset_rate_limiter()

    first = client.post(
        "/api/users",
        json={"name": "First", "email": "first@example.com"},
        headers={"X-Correlation-Id": "corr-rate-1"},
    )
    assert first.status_code == 201

    second = client.post(
        "/api/users",
        json={"name": "Second", "email": "second@example.com"},
        headers={"X-Correlation-Id": "corr-rate-1"},
    )
    assert second.status_code == 429
    assert second.json()["correlation_id"] == "corr-rate-1"
    assert second.headers.get("x-correlation-id") == "corr-rate-1"
