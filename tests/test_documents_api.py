from __future__ import annotations

import base64
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ats.core.config import get_settings
from ats.core.database import Base, get_db
from ats.files import decode_file, encode_file, sanitize_filename
from ats.main import app
from ats.middleware.rate_limit import reset_rate_limiter
from ats.organizations.models import OrganizationLicense


PDF_BYTES = b"%PDF-1.4 minimal test document"


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
def context(client: TestClient) -> dict[str, str]:
    user = client.post("/api/users", json={"name": "Uploader", "email": "uploader@example.com"})
    user_id = user.json()["data"]["user_id"]
    organization = client.post("/api/organizations", json={"name": "Initech", "created_by_user_id": user_id})
    organization_id = organization.json()["data"]["organization_id"]
    title = client.post(
        "/api/organization-document-titles",
        json={"organization_id": organization_id, "document_title": " W-9 "},
    )
    assert title.status_code == 201
    assert title.json()["data"]["document_title"] == "W-9"
    return {
        "user_id": user_id,
        "organization_id": organization_id,
        "document_title_id": title.json()["data"]["document_title_id"],
    }


def _upload_document(client: TestClient, context: dict[str, str], **overrides: object) -> object:
    form = {
        "organization_id": context["organization_id"],
        "document_title_id": context["document_title_id"],
        "document_type": "TAX",
        "document_name": "Initech W9",
        "user_id": context["user_id"],
        "privacy": "private",
    }
    form.update(overrides)  # type: ignore[arg-type]
    return client.post(
        "/api/organization-documents/upload",
        data=form,
        files={"file": ("w9 form (2026).pdf", PDF_BYTES, "application/pdf")},
    )


def test_upload_and_download_document(client: TestClient, context: dict[str, str]) -> None:
    response = _upload_document(client, context)

    assert response.status_code == 201
    payload = response.json()["data"]
    assert payload["message"] == "Document uploaded successfully"
    assert payload["data"]["privacy"] == "PRIVATE"
    assert payload["file"] == {"filename": "w9 form (2026).pdf", "size": len(PDF_BYTES), "mimetype": "application/pdf"}
    assert "file" not in payload["data"]

    download = client.get(f"/api/organization-documents/{payload['data']['document_id']}/download")
    assert download.status_code == 200
    assert download.content == PDF_BYTES
    assert download.headers["content-type"].startswith("application/pdf")
    assert download.headers["content-disposition"] == 'attachment; filename="w9_form_2026.pdf"'
    assert download.headers["cache-control"] == "no-cache, no-store, must-revalidate"


def test_upload_requires_file(client: TestClient, context: dict[str, str]) -> None:
    response = client.post(
        "/api/organization-documents/upload",
        data={
            "organization_id": context["organization_id"],
            "document_title_id": context["document_title_id"],
            "document_type": "TAX",
            "document_name": "No File",
            "user_id": context["user_id"],
            "privacy": "PUBLIC",
        },
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Document file is required"


def test_upload_rejects_unsupported_type(client: TestClient, context: dict[str, str]) -> None:
    response = client.post(
        "/api/organization-documents/upload",
        data={
            "organization_id": context["organization_id"],
            "document_title_id": context["document_title_id"],
            "document_type": "TAX",
            "document_name": "Script",
            "user_id": context["user_id"],
            "privacy": "PUBLIC",
        },
        files={"file": ("run.sh", b"echo hi", "text/x-shellscript")},
    )

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid file type")


def test_upload_rejects_bad_privacy_and_unknown_title(client: TestClient, context: dict[str, str]) -> None:
    bad_privacy = _upload_document(client, context, privacy="SECRET")
    assert bad_privacy.status_code == 400
    assert bad_privacy.json()["error"] == "Privacy level must be PUBLIC or PRIVATE"

    unknown_title = _upload_document(client, context, document_title_id="00000000-0000-4000-8000-000000000000")
    assert unknown_title.status_code == 404
    assert unknown_title.json()["error"] == "Document Title not found"


def test_upload_respects_size_limit(
    client: TestClient,
    context: dict[str, str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("UPLOAD_MAX_BYTES", "10")
    get_settings.cache_clear()

    response = _upload_document(client, context)

    assert response.status_code == 400
    assert "File size exceeds" in response.json()["error"]


def test_replace_document_file(client: TestClient, context: dict[str, str]) -> None:
    document_id = _upload_document(client, context).json()["data"]["data"]["document_id"]

    response = client.patch(
        f"/api/organization-documents/{document_id}/upload",
        data={"document_name": "Initech W9 v2"},
        files={"file": ("scan.png", b"\x89PNG fake", "image/png")},
    )

    assert response.status_code == 200
    assert response.json()["data"]["data"]["document_name"] == "Initech W9 v2"
    download = client.get(f"/api/organization-documents/{document_id}/download")
    assert download.content == b"\x89PNG fake"
    assert download.headers["content-type"].startswith("image/png")

    empty = client.patch(f"/api/organization-documents/{document_id}/upload", data={})
    assert empty.status_code == 400
    assert empty.json()["error"] == "No fields to update"


def test_license_upload_and_duplicate_name(client: TestClient, context: dict[str, str]) -> None:
    form = {"organization_id": context["organization_id"], "license_name": "State Staffing License"}
    files = {"license_document": ("license.pdf", PDF_BYTES, "application/pdf")}

    created = client.post("/api/organization-licenses/upload", data=form, files=files)
    assert created.status_code == 201
    license_id = created.json()["data"]["data"]["organization_license_id"]

    duplicate = client.post("/api/organization-licenses/upload", data=form, files=files)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "A license with this name already exists for the organization"

    download = client.get(f"/api/organization-licenses/{license_id}/download")
    assert download.status_code == 200
    assert download.content == PDF_BYTES


def test_legacy_bare_base64_license_downloads_as_pdf(
    client: TestClient,
    db_session: Session,
    context: dict[str, str],
) -> None:
    row = OrganizationLicense(
        organization_id=uuid.UUID(context["organization_id"]),
        license_name="Legacy",
        license_document=base64.b64encode(b"old bytes").decode("ascii"),
    )
    db_session.add(row)
    db_session.commit()

    download = client.get(f"/api/organization-licenses/{row.organization_license_id}/download")

    assert download.status_code == 200
    assert download.content == b"old bytes"
    assert download.headers["content-type"].startswith("application/octet-stream")
    assert download.headers["content-disposition"] == 'attachment; filename="Legacy.pdf"'


def test_stored_file_format() -> None:
    stored = encode_file(b"abc", "notes.pdf", "application/pdf")

    decoded = decode_file(stored, "fallback")

    assert decoded.content == b"abc"
    assert decoded.filename == "notes.pdf"
    assert decoded.mime_type == "application/pdf"
    assert sanitize_filename("my  report?.pdf") == "my_report.pdf"
