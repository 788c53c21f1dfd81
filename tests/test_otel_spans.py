from __future__ import annotations

import os
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from ats.core.config import get_settings
from ats.core.database import Base, get_db
from ats.main import app
from ats.middleware.rate_limit import reset_rate_limiter
from ats.otel import setup_inmemory_otel


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
def setup_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel()
    exporter.clear()
    return exporter


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _creator(client: TestClient) -> str:
    response = client.post("/api/users", json={"name": "Tracer", "email": "tracer@example.com"})
    assert response.status_code == 201
    return response.json()["data"]["user_id"]


def test_request_span_contains_correlation_id(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.post(
        "/api/users",
        json={"name": "Span", "email": "span@example.com"},
        headers={"X-Correlation-Id": "otel-corr-1"},
    )
    assert response.status_code == 201

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("ats.correlation_id") == "otel-corr-1" for span in spans)


def test_complete_create_span_records_outcome_and_ids(
    client: TestClient,
    span_exporter: InMemorySpanExporter,
) -> None:
    creator_id = _creator(client)

    response = client.post(
        "/api/organizations/complete",
        json={"name": "Traced Org", "created_by_user_id": creator_id},
        headers={"X-Correlation-Id": "otel-org-1"},
    )
    assert response.status_code == 201
    organization_id = response.json()["data"]["organization"]["organization_id"]

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "organization.complete_create"]
    assert spans
    assert any(
        span.attributes.get("organization_id") == organization_id
        and span.attributes.get("correlation_id") == "otel-org-1"
        and span.attributes.get("outcome") == "success"
        for span in spans
    )


def test_failed_complete_update_span_is_client_error(
    client: TestClient,
    span_exporter: InMemorySpanExporter,
) -> None:
    missing = str(uuid.uuid4())

    response = client.patch(f"/api/jobs/complete/{missing}", json={"location": "Nowhere"})
    assert response.status_code == 404

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "job.complete_update"]
    assert spans
    assert spans[-1].attributes.get("outcome") == "client_error"
    assert spans[-1].attributes.get("job_id") == missing
