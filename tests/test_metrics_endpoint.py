from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ats.core.auth import AuthUser, get_current_user
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
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_auth_user() -> AuthUser:
        return AuthUser(sub="metrics-admin", roles=["system.metrics.read"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_auth_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_nested_metrics(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    user = client.post("/api/users", json={"name": "Metric", "email": "metric@example.com"})
    assert user.status_code == 201
    user_id = user.json()["data"]["user_id"]
    assert client.get(f"/api/users/{user_id}").status_code == 200

    organization = client.post(
        "/api/organizations/complete",
        json={
            "name": "Metrics Org",
            "created_by_user_id": user_id,
            "contacts": [
                {"name": "Boss", "email": "boss@metrics.example.com", "phone": "555", "contact_type": "PRIMARY"}
            ],
        },
    )
    assert organization.status_code == 201
    failed = client.post("/api/organizations/complete", json={"name": "Metrics Org", "created_by_user_id": user_id})
    assert failed.status_code == 409

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "ats_nested_upsert_total" in body
    assert "ats_nested_child_operations_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/users/{id}"' in body
    assert 'parent="organization"' in body
    assert 'outcome="success"' in body
    assert 'outcome="client_error"' in body
    assert 'collection="contacts"' in body


def test_metrics_require_permission(client: TestClient) -> None:
    app.dependency_overrides[get_current_user] = lambda: AuthUser(sub="someone", roles=["user"])

    response = client.get("/metrics")

    assert response.status_code == 403


def test_metrics_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics")

    assert response.status_code == 404


def test_openapi_reports_configured_version(client: TestClient) -> None:
    response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json()["info"]["version"] == get_settings().app_version
