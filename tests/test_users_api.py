from __future__ import annotations

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
from ats.users.activity import MAX_RECENT_ACTIONS, activity_service
from ats.users.models import User


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
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _create_user(client: TestClient, email: str, name: str = "Test User") -> dict:
    response = client.post("/api/users", json={"name": name, "email": email})
    assert response.status_code == 201
    return response.json()["data"]


def test_create_user_returns_envelope_and_normalizes_email(client: TestClient) -> None:
    response = client.post("/api/users", json={"name": "  Ada Lovelace ", "email": "Ada@Example.com"})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["statusCode"] == 201
    assert body["data"]["email"] == "ada@example.com"
    assert body["data"]["name"] == "Ada Lovelace"
    assert body["data"]["status"] == "ACTIVE"


def test_duplicate_email_conflicts(client: TestClient) -> None:
    _create_user(client, "dup@example.com")

    response = client.post("/api/users", json={"name": "Other", "email": "DUP@example.com"})

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "User with this email already exists"
    assert body["errors"] == [{"field": "email", "message": "Email is already in use"}]


def test_invalid_body_reports_validation_failed(client: TestClient) -> None:
    response = client.post("/api/users", json={"name": "", "email": "not-an-email"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation failed"
    fields = {error["field"] for error in body["errors"]}
    assert {"name", "email"} <= fields


def test_list_users_paginates_and_clamps_limit(client: TestClient) -> None:
    for index in range(3):
        _create_user(client, f"user{index}@example.com")

    page = client.get("/api/users", params={"page": 2, "limit": 2})
    assert page.status_code == 200
    payload = page.json()["data"]
    assert len(payload["data"]) == 1
    assert payload["paging"] == {"total": 3, "page": 2, "limit": 2, "totalPages": 2}

    clamped = client.get("/api/users", params={"page": "abc", "limit": 500}).json()["data"]
    assert clamped["paging"]["page"] == 1
    assert clamped["paging"]["limit"] == 100


def test_get_update_delete_user(client: TestClient) -> None:
    user = _create_user(client, "life@example.com")
    user_id = user["user_id"]

    update = client.patch(f"/api/users/{user_id}", json={"status": "INACTIVE"})
    assert update.status_code == 200
    assert update.json()["data"]["status"] == "INACTIVE"

    delete = client.delete(f"/api/users/{user_id}")
    assert delete.status_code == 200
    assert delete.json()["data"]["message"] == "User deleted successfully"

    missing = client.get(f"/api/users/{user_id}")
    assert missing.status_code == 404
    assert missing.json()["error"] == "User not found"


def test_malformed_id_is_a_validation_error(client: TestClient) -> None:
    response = client.get("/api/users/not-a-uuid")

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "entity_id"


def test_activity_not_found_until_recorded(client: TestClient) -> None:
    user = _create_user(client, "quiet@example.com")

    response = client.get(f"/api/user-activity/{user['user_id']}")

    assert response.status_code == 404
    assert response.json()["error"] == "User activity not found"


def test_activity_keeps_most_recent_actions_newest_first(db_session: Session, client: TestClient) -> None:
    user = User(name="Busy", email="busy@example.com")
    db_session.add(user)
    db_session.commit()

    for index in range(MAX_RECENT_ACTIONS + 5):
        activity_service.record(
            db_session,
            user.user_id,
            action_type="UPDATE",
            entity_type="JOB",
            entity_id=uuid.uuid4(),
            entity_name=f"Job {index}",
        )

    response = client.get(f"/api/user-activity/{user.user_id}")
    assert response.status_code == 200
    actions = response.json()["data"]["last_actions"]
    assert len(actions) == MAX_RECENT_ACTIONS
    assert actions[0]["entity_name"] == f"Job {MAX_RECENT_ACTIONS + 4}"
    assert actions[-1]["entity_name"] == "Job 5"


def test_activity_for_unknown_user_is_skipped(db_session: Session) -> None:
    unknown = uuid.uuid4()

    activity_service.record(
        db_session,
        unknown,
        action_type="CREATE",
        entity_type="ORGANIZATION",
        entity_id=uuid.uuid4(),
        entity_name="Ghost",
    )

    assert db_session.get(User, unknown) is None
