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


@pytest.fixture()
def seed(client: TestClient) -> dict[str, str]:
    manager = client.post("/api/users", json={"name": "Manager", "email": "manager@example.com"})
    manager_id = manager.json()["data"]["user_id"]
    organization = client.post("/api/organizations", json={"name": "Umbrella", "created_by_user_id": manager_id})
    return {"manager_id": manager_id, "organization_id": organization.json()["data"]["organization_id"]}


def _create_job(client: TestClient, seed: dict[str, str], title: str, **overrides: object) -> dict:
    payload = {
        "organization_id": seed["organization_id"],
        "manager_id": seed["manager_id"],
        "job_title": title,
        "job_type": "PERMANENT",
        "location": "Raccoon City",
    }
    payload.update(overrides)
    response = client.post("/api/jobs", json=payload)
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def test_create_job_defaults_and_detail(client: TestClient, seed: dict[str, str]) -> None:
    job = _create_job(client, seed, "Lab Technician")

    assert job["status"] == "DRAFT"
    assert job["approved"] is False
    assert job["max_positions"] == 1
    assert job["open_positions"] == 1
    assert job["organization"]["name"] == "Umbrella"
    assert job["manager"]["name"] == "Manager"
    assert job["job_notes"] == []


def test_create_job_reference_checks(client: TestClient, seed: dict[str, str]) -> None:
    missing = "00000000-0000-4000-8000-000000000000"

    unknown_org = client.post(
        "/api/jobs",
        json={"organization_id": missing, "job_title": "X", "job_type": "PERMANENT", "location": "Y"},
    )
    assert unknown_org.status_code == 404
    assert unknown_org.json()["error"] == "Organization not found"

    unknown_manager = client.post(
        "/api/jobs",
        json={
            "organization_id": seed["organization_id"],
            "manager_id": missing,
            "job_title": "X",
            "job_type": "PERMANENT",
            "location": "Y",
        },
    )
    assert unknown_manager.status_code == 404
    assert unknown_manager.json()["error"] == "Manager not found"


def test_update_job_rechecks_title_and_positions(client: TestClient, seed: dict[str, str]) -> None:
    first = _create_job(client, seed, "Guard", status="OPEN")
    second = _create_job(client, seed, "Driver", status="OPEN")

    clash = client.patch(f"/api/jobs/{second['job_id']}", json={"job_title": "Guard"})
    assert clash.status_code == 409
    assert clash.json()["error"] == "Active job with this title already exists for this organization"

    positions = client.patch(f"/api/jobs/{first['job_id']}", json={"open_positions": 4})
    assert positions.status_code == 400
    assert positions.json()["error"] == "Open positions cannot exceed max positions"

    closed = client.patch(f"/api/jobs/{first['job_id']}", json={"status": "CLOSED"})
    assert closed.status_code == 200
    renamed = client.patch(f"/api/jobs/{second['job_id']}", json={"job_title": "Guard", "location": None})
    assert renamed.status_code == 200
    assert renamed.json()["data"]["location"] == "Raccoon City"


def test_approved_active_and_stats(client: TestClient, seed: dict[str, str]) -> None:
    _create_job(client, seed, "Draft Approved", approved=True)
    _create_job(client, seed, "Open Approved", status="OPEN", approved=True)
    _create_job(client, seed, "Open Pending", status="OPEN")

    approved = client.get("/api/jobs/approved").json()["data"]
    assert approved["paging"]["total"] == 2

    active = client.get("/api/jobs/active").json()["data"]
    assert [job["job_title"] for job in active["data"]] == ["Open Approved"]

    stats = client.get("/api/jobs/stats", params={"organization_id": seed["organization_id"]}).json()["data"]
    assert stats["total"] == 3
    assert stats["approved"] == 2
    assert stats["active"] == 1
    assert stats["by_status"] == [{"status": "DRAFT", "count": 1}, {"status": "OPEN", "count": 2}]
    assert stats["by_type"] == [{"type": "PERMANENT", "count": 3}]


def test_job_lookups(client: TestClient, seed: dict[str, str]) -> None:
    _create_job(client, seed, "Temp Picker", job_type="TEMPORARY", status="OPEN")
    _create_job(client, seed, "Planner")

    by_status = client.get("/api/jobs/status/open").json()["data"]
    assert [job["job_title"] for job in by_status["data"]] == ["Temp Picker"]

    by_type = client.get("/api/jobs/type/permanent").json()["data"]
    assert [job["job_title"] for job in by_type["data"]] == ["Planner"]

    by_org = client.get(f"/api/jobs/organization/{seed['organization_id']}").json()["data"]
    assert by_org["paging"]["total"] == 2

    by_manager = client.get(f"/api/jobs/manager/{seed['manager_id']}").json()["data"]
    assert by_manager["paging"]["total"] == 2

    unknown = client.get("/api/jobs/manager/00000000-0000-4000-8000-000000000000")
    assert unknown.status_code == 404
    assert unknown.json()["error"] == "Manager not found"


def test_delete_job(client: TestClient, seed: dict[str, str]) -> None:
    job = _create_job(client, seed, "Short Lived")

    deleted = client.delete(f"/api/jobs/{job['job_id']}")
    assert deleted.status_code == 200
    assert deleted.json()["data"]["message"] == "Job deleted successfully"

    missing = client.get(f"/api/jobs/{job['job_id']}")
    assert missing.status_code == 404
    assert missing.json()["error"] == "Job not found"


def test_job_detail_and_rate_are_one_per_job(client: TestClient, seed: dict[str, str]) -> None:
    job_id = _create_job(client, seed, "Chemist")["job_id"]

    assert client.get(f"/api/job-details/job/{job_id}").status_code == 404
    detail = client.post("/api/job-details", json={"job_id": job_id, "description": "Mix compounds"})
    assert detail.status_code == 201
    second_detail = client.post("/api/job-details", json={"job_id": job_id, "description": "Again"})
    assert second_detail.status_code == 409
    assert second_detail.json()["error"] == "Job Detail already exists for this job"
    assert client.get(f"/api/job-details/job/{job_id}").json()["data"]["description"] == "Mix compounds"

    rate = client.post("/api/job-rates", json={"job_id": job_id, "bill_rate": 80, "hours": 40})
    assert rate.status_code == 201
    second_rate = client.post("/api/job-rates", json={"job_id": job_id, "bill_rate": 90, "hours": 20})
    assert second_rate.status_code == 409
    assert second_rate.json()["error"] == "Job Rate already exists for this job"
    assert client.get(f"/api/job-rates/job/{job_id}").json()["data"]["bill_rate"] == 80


def test_job_notes_by_job(client: TestClient, seed: dict[str, str]) -> None:
    job_id = _create_job(client, seed, "Courier")["job_id"]
    for note in ("Called client", "Sent shortlist"):
        assert client.post("/api/job-notes", json={"job_id": job_id, "note": note}).status_code == 201

    notes = client.get(f"/api/job-notes/job/{job_id}").json()["data"]
    assert notes["paging"]["total"] == 2

    unknown = client.get("/api/job-notes/job/00000000-0000-4000-8000-000000000000")
    assert unknown.status_code == 404
    assert unknown.json()["error"] == "Job not found"


def test_job_owner_combination_is_unique(client: TestClient, seed: dict[str, str]) -> None:
    job_id = _create_job(client, seed, "Analyst")["job_id"]
    owner = {"job_id": job_id, "user_id": seed["manager_id"], "role_type": "RECRUITER"}

    created = client.post("/api/job-owners", json=owner)
    assert created.status_code == 201
    assert created.json()["data"]["user"]["email"] == "manager@example.com"

    duplicate = client.post("/api/job-owners", json=owner)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Job Owner with this combination already exists"

    assert client.post("/api/job-owners", json={**owner, "role_type": "SALES"}).status_code == 201

    owners = client.get(f"/api/job-owners/job/{job_id}").json()["data"]
    assert owners["job_id"] == job_id
    assert owners["total"] == 2
    assert [row["role_type"] for row in owners["job_owners"]] == ["RECRUITER", "SALES"]
