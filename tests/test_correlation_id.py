from __future__ import annotations

import logging
import uuid
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
def clear_state(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    reset_rate_limiter()
    get_settings.cache_clear()
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


def test_generated_correlation_id_returned_in_header_and_error_envelope(client: TestClient) -> None:
    response = client.get(f"/api/users/{uuid.uuid4()}")
    assert response.status_code == 404
    header_value = response.headers.get("x-correlation-id")
    assert header_value
    body = response.json()
    assert body["correlation_id"] == header_value
    assert body["success"] is False
    assert body["statusCode"] == 404


def test_correlation_id_respected_when_provided(client: TestClient) -> None:
    response = client.get(f"/api/organizations/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404
    assert response.headers.get("x-correlation-id") == "abc-123"
    assert response.json()["correlation_id"] == "abc-123"


def test_unsafe_correlation_id_is_replaced(client: TestClient) -> None:
    response = client.get(f"/api/jobs/{uuid.uuid4()}", headers={"X-Correlation-Id": "bad id; drop"})

    assert response.status_code == 404
    replaced = response.headers.get("x-correlation-id")
    assert replaced != "bad id; drop"
    assert uuid.UUID(replaced)


def test_validation_errors_carry_correlation_id(client: TestClient) -> None:
    response = client.post("/api/users", json={"email": "x@example.com"}, headers={"X-Correlation-Id": "corr-val-1"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    assert body["correlation_id"] == "corr-val-1"


def test_request_logs_keep_correlation_id_on_errors(
    client: TestClient,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)

    response = client.post(
        "/api/organizations/complete",
        json={"name": "Corr Org", "created_by_user_id": str(uuid.uuid4())},
        headers={"X-Correlation-Id": "corr-org-1"},
    )
    assert response.status_code == 404

    request_records = [record for record in caplog.records if record.name == "ats.request"]
    assert any(getattr(record, "correlation_id", None) == "corr-org-1" for record in request_records)
