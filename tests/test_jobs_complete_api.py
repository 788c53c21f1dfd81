from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ats.core.config import get_settings
from ats.core.database import Base, get_db
from ats.jobs.models import Job
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


def _user(client: TestClient, email: str) -> str:
    response = client.post("/api/users", json={"name": email.split("@")[0].title(), "email": email})
    assert response.status_code == 201
    return response.json()["data"]["user_id"]


@pytest.fixture()
def people(client: TestClient) -> dict[str, str]:
    return {
        "creator": _user(client, "creator@example.com"),
        "manager": _user(client, "manager@example.com"),
        "recruiter": _user(client, "recruiter@example.com"),
        "seller": _user(client, "seller@example.com"),
    }


@pytest.fixture()
def organization(client: TestClient, people: dict[str, str]) -> dict:
    response = client.post(
        "/api/organizations/complete",
        json={
            "name": "Hooli",
            "created_by_user_id": people["creator"],
            "company_offices": [
                {
                    "office_name": "Campus",
                    "city": "Palo Alto",
                    "state": "CA",
                    "country": "US",
                    "type": "ONSITE",
                    "address": "1 Hooli Way",
                    "is_primary": True,
                }
            ],
        },
    )
    assert response.status_code == 201
    return response.json()["data"]["organization"]


def _job_payload(organization: dict, people: dict[str, str], **overrides: object) -> dict:
    payload = {
        "organization_id": organization["organization_id"],
        "created_by_user_id": people["creator"],
        "manager_id": people["manager"],
        "company_office_id": organization["company_offices"][0]["company_office_id"],
        "job_title": "Forklift Operator",
        "status": "OPEN",
        "job_type": "TEMPORARY",
        "location": "Palo Alto, CA",
        "approved": True,
        "start_date": "2026-11-01T08:00:00+00:00",
        "end_date": "2027-02-01T17:00:00+00:00",
        "max_positions": 5,
        "open_positions": 3,
        "job_detail": {"description": "Drive forklifts safely", "skills": ["forklift", "osha"]},
        "job_notes": [{"note": "Client prefers weekend availability"}],
        "job_rates": [{"pay_rate": 20.5, "bill_rate": 31.25, "hours": 40}],
        "job_owners": [
            {"user_id": people["recruiter"], "role_type": "RECRUITER"},
            {"user_id": people["seller"], "role_type": "SALES"},
        ],
    }
    payload.update(overrides)
    return payload


def _create_job(client: TestClient, organization: dict, people: dict[str, str], **overrides: object) -> dict:
    response = client.post("/api/jobs/complete", json=_job_payload(organization, people, **overrides))
    assert response.status_code == 201, response.json()
    return response.json()["data"]


def test_complete_create_job_with_children(client: TestClient, organization: dict, people: dict[str, str]) -> None:
    data = _create_job(client, organization, people)

    job = data["job"]
    assert job["job_title"] == "Forklift Operator"
    assert job["organization"]["name"] == "Hooli"
    assert job["manager"]["email"] == "manager@example.com"
    assert job["company_office"]["office_name"] == "Campus"
    assert job["job_detail"]["skills"] == ["forklift", "osha"]
    assert job["job_rates"][0]["bill_rate"] == 31.25
    assert {owner["user"]["email"] for owner in job["job_owners"]} == {"recruiter@example.com", "seller@example.com"}
    assert job["applications_count"] == 0
    assert data["changes"] == {
        "job_detail": {"created": 1, "updated": 0, "deleted": 0},
        "job_notes": {"created": 1, "updated": 0, "deleted": 0},
        "job_rates": {"created": 1, "updated": 0, "deleted": 0},
        "job_owners": {"created": 2, "updated": 0, "deleted": 0},
    }


def test_complete_create_rejects_bad_schedule(client: TestClient, organization: dict, people: dict[str, str]) -> None:
    reversed_dates = client.post(
        "/api/jobs/complete",
        json=_job_payload(organization, people, start_date="2027-01-01T00:00:00Z", end_date="2026-01-01T00:00:00Z"),
    )
    assert reversed_dates.status_code == 400
    assert reversed_dates.json()["error"] == "Start date must be before end date"

    too_many_open = client.post(
        "/api/jobs/complete",
        json=_job_payload(organization, people, max_positions=2, open_positions=3),
    )
    assert too_many_open.status_code == 400
    assert too_many_open.json()["error"] == "Open positions cannot exceed max positions"


def test_complete_create_duplicate_active_title(
    client: TestClient,
    organization: dict,
    people: dict[str, str],
    db_session: Session,
) -> None:
    first = _create_job(client, organization, people)

    response = client.post("/api/jobs/complete", json=_job_payload(organization, people))

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "Active job with this title already exists for this organization"
    assert body["errors"][0]["field"] == "duplicate"
    assert first["job"]["job_id"] in body["errors"][0]["message"]
    assert db_session.scalar(select(func.count()).select_from(Job)) == 1


def test_closed_job_title_can_be_reused(client: TestClient, organization: dict, people: dict[str, str]) -> None:
    _create_job(client, organization, people, status="CLOSED")

    data = _create_job(client, organization, people)

    assert data["job"]["status"] == "OPEN"


def test_complete_create_owner_rules(client: TestClient, organization: dict, people: dict[str, str]) -> None:
    duplicate = client.post(
        "/api/jobs/complete",
        json=_job_payload(
            organization,
            people,
            job_owners=[
                {"user_id": people["recruiter"], "role_type": "RECRUITER"},
                {"user_id": people["recruiter"], "role_type": "RECRUITER"},
            ],
        ),
    )
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "Duplicate user IDs found in job_owners"

    missing = "00000000-0000-4000-8000-000000000000"
    unknown = client.post(
        "/api/jobs/complete",
        json=_job_payload(organization, people, job_owners=[{"user_id": missing, "role_type": "SALES"}]),
    )
    assert unknown.status_code == 404
    assert unknown.json()["error"] == f"Job owner user(s) not found: {missing}"


def test_complete_create_office_must_belong_to_organization(
    client: TestClient,
    organization: dict,
    people: dict[str, str],
) -> None:
    other = client.post(
        "/api/organizations/complete",
        json={
            "name": "Pied Piper",
            "created_by_user_id": people["creator"],
            "company_offices": [
                {"office_name": "Garage", "city": "Palo Alto", "state": "CA", "country": "US", "type": "REMOTE"}
            ],
        },
    ).json()["data"]["organization"]

    response = client.post(
        "/api/jobs/complete",
        json=_job_payload(organization, people, company_office_id=other["company_offices"][0]["company_office_id"]),
    )

    assert response.status_code == 404
    assert response.json()["error"] == "Company office not found or does not belong to the organization"


def test_complete_update_mixes_parent_and_child_changes(
    client: TestClient,
    organization: dict,
    people: dict[str, str],
) -> None:
    job = _create_job(client, organization, people)["job"]
    note_id = job["job_notes"][0]["job_note_id"]
    rate_id = job["job_rates"][0]["job_rate_id"]
    detail_id = job["job_detail"]["job_detail_id"]

    response = client.patch(
        f"/api/jobs/complete/{job['job_id']}",
        json={
            "open_positions": 5,
            "job_title": None,
            "job_detail": {"_action": "update", "job_detail_id": detail_id, "description": "Drive and load"},
            "job_notes": [
                {"_action": "delete", "job_note_id": note_id},
                {"note": "Second shift opened"},
            ],
            "job_rates": [{"_action": "update", "job_rate_id": rate_id, "bill_rate": 35}],
        },
    )

    assert response.status_code == 200, response.json()
    data = response.json()["data"]
    updated = data["job"]
    assert updated["open_positions"] == 5
    assert updated["job_title"] == "Forklift Operator"
    assert updated["job_detail"]["description"] == "Drive and load"
    assert [note["note"] for note in updated["job_notes"]] == ["Second shift opened"]
    assert updated["job_rates"][0]["bill_rate"] == 35
    assert data["changes"]["job_notes"] == {"created": 1, "updated": 0, "deleted": 1}
    assert data["changes"]["job_owners"] == {"created": 0, "updated": 0, "deleted": 0}


def test_complete_update_checks_final_positions(client: TestClient, organization: dict, people: dict[str, str]) -> None:
    job = _create_job(client, organization, people)["job"]

    response = client.patch(f"/api/jobs/complete/{job['job_id']}", json={"max_positions": 2})

    assert response.status_code == 400
    assert response.json()["error"] == "Open positions cannot exceed max positions"


def test_complete_update_rejects_second_job_detail(client: TestClient, organization: dict, people: dict[str, str]) -> None:
    job = _create_job(client, organization, people)["job"]

    response = client.patch(
        f"/api/jobs/complete/{job['job_id']}",
        json={"job_detail": {"description": "Another detail"}},
    )

    assert response.status_code == 409
    assert response.json()["error"] == "Job Detail already exists for this job"


def test_complete_update_owner_reassigned_to_existing_user(
    client: TestClient,
    organization: dict,
    people: dict[str, str],
) -> None:
    job = _create_job(client, organization, people)["job"]
    seller = next(owner for owner in job["job_owners"] if owner["role_type"] == "SALES")

    response = client.patch(
        f"/api/jobs/complete/{job['job_id']}",
        json={
            "job_owners": [
                {"_action": "update", "job_owner_id": seller["job_owner_id"], "user_id": people["recruiter"]},
            ]
        },
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Duplicate user IDs found in job_owners"


def test_complete_update_bad_elements_report_paths(client: TestClient, organization: dict, people: dict[str, str]) -> None:
    job = _create_job(client, organization, people)["job"]

    response = client.patch(
        f"/api/jobs/complete/{job['job_id']}",
        json={
            "job_rates": [
                {"_action": "update"},
                {"bill_rate": -1, "hours": 10},
            ]
        },
    )

    assert response.status_code == 400
    fields = [error["field"] for error in response.json()["errors"]]
    assert "job_rates.0.job_rate_id" in fields
    assert "job_rates.1.bill_rate" in fields


def test_complete_update_unknown_job(client: TestClient) -> None:
    response = client.patch("/api/jobs/complete/00000000-0000-4000-8000-000000000000", json={"location": "Remote"})

    assert response.status_code == 404
    assert response.json()["error"] == "Job not found"


def test_complete_update_deletes_only_owner(client: TestClient, organization: dict, people: dict[str, str]) -> None:
    job = _create_job(
        client,
        organization,
        people,
        job_owners=[{"user_id": people["recruiter"], "role_type": "RECRUITER"}],
    )["job"]
    owner_id = job["job_owners"][0]["job_owner_id"]

    response = client.patch(
        f"/api/jobs/complete/{job['job_id']}",
        json={"job_owners": [{"_action": "delete", "job_owner_id": owner_id}]},
    )

    assert response.status_code == 200, response.json()
    data = response.json()["data"]
    assert data["changes"]["job_owners"] == {"created": 0, "updated": 0, "deleted": 1}
    assert data["job"]["job_owners"] == []


def test_complete_update_rejects_null_for_required_child_field(
    client: TestClient,
    organization: dict,
    people: dict[str, str],
) -> None:
    job = _create_job(client, organization, people)["job"]
    rate_id = job["job_rates"][0]["job_rate_id"]

    response = client.patch(
        f"/api/jobs/complete/{job['job_id']}",
        json={"job_rates": [{"_action": "update", "job_rate_id": rate_id, "hours": None, "pay_rate": None}]},
    )

    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "job_rates.0.hours", "message": "Field cannot be null"}]
