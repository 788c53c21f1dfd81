from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ats.core.config import get_settings
from ats.core.errors import Conflict, NotFound, ValidationFailed, field_error
from ats.files import StoredFile, Upload, attachment_headers, decode_file, encode_file, validate_upload
from ats.organizations.models import DocumentTitle, OrganizationDocument, OrganizationLicense
from ats.organizations.schemas import DocumentRead, LicenseRead
from ats.organizations.service import require_organization, require_user
from ats.platform.crud import CrudService


logger = logging.getLogger("ats.documents")

PRIVACY_LEVELS = {"PUBLIC", "PRIVATE"}


def _required(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise ValidationFailed(message)
    return value.strip()


def _parse_uuid(field: str, value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationFailed("Validation failed", [field_error(field, "Input should be a valid UUID")]) from None


def _parse_date(field: str, value: str | None) -> date | None:
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise ValidationFailed("Validation failed", [field_error(field, "Input should be a valid date")]) from None


def _file_summary(upload: Upload) -> dict[str, Any]:
    return {"filename": upload.filename, "size": len(upload.content), "mimetype": upload.content_type}


def _encode_upload(field: str, upload: Upload) -> str:
    mime_type = validate_upload(field, upload.content_type, len(upload.content), max_bytes=get_settings().upload_max_bytes)
    return encode_file(upload.content, upload.filename, mime_type)


class DocumentService(CrudService):
    model = OrganizationDocument
    model_name = "Organization Document"
    id_field = "document_id"
    read_schema = DocumentRead

    def order_by(self) -> tuple[Any, ...]:
        return (OrganizationDocument.upload_date.desc(), OrganizationDocument.document_id.desc())

    def _require_title(self, session: Session, document_title_id: uuid.UUID) -> None:
        if session.get(DocumentTitle, document_title_id) is None:
            raise NotFound("Document Title not found")

    def before_update(self, session: Session, row: OrganizationDocument, payload: dict[str, Any]) -> dict[str, Any]:
        payload = {key: value for key, value in payload.items() if value is not None or key == "expiration_date"}
        if not payload:
            raise ValidationFailed("No fields to update")
        if "document_title_id" in payload:
            self._require_title(session, payload["document_title_id"])
        return payload

    def upload(
        self,
        session: Session,
        *,
        organization_id: str | None,
        document_title_id: str | None,
        document_type: str | None,
        document_name: str | None,
        user_id: str | None,
        privacy: str | None,
        expiration_date: str | None,
        upload: Upload | None,
    ) -> dict[str, Any]:
        organization_raw = _required(organization_id, "Organization ID is required")
        title_raw = _required(document_title_id, "Document Title ID is required")
        document_type = _required(document_type, "Document type is required")
        document_name = _required(document_name, "Document name is required")
        user_raw = _required(user_id, "User ID is required")
        if upload is None:
            raise ValidationFailed("Document file is required")
        privacy_level = (privacy or "").strip().upper()
        if privacy_level not in PRIVACY_LEVELS:
            raise ValidationFailed("Privacy level must be PUBLIC or PRIVATE")

        organization_uuid = _parse_uuid("organization_id", organization_raw)
        title_uuid = _parse_uuid("document_title_id", title_raw)
        user_uuid = _parse_uuid("user_id", user_raw)
        expires = _parse_date("expiration_date", expiration_date)

        require_organization(session, organization_uuid)
        self._require_title(session, title_uuid)
        require_user(session, user_uuid)
        stored = _encode_upload("file", upload)

        row = OrganizationDocument(
            organization_id=organization_uuid,
            document_title_id=title_uuid,
            document_type=document_type,
            document_name=document_name,
            user_id=user_uuid,
            file=stored,
            privacy=privacy_level,
            expiration_date=expires,
        )
        session.add(row)
        self._commit(session)
        logger.info("document.uploaded", extra={"entity_type": "ORGANIZATION_DOCUMENT", "entity_id": str(row.document_id)})
        return {
            "message": "Document uploaded successfully",
            "data": self.get(session, row.document_id),
            "file": _file_summary(upload),
        }

    def update_upload(
        self,
        session: Session,
        document_id: uuid.UUID,
        *,
        document_title_id: str | None = None,
        document_type: str | None = None,
        document_name: str | None = None,
        privacy: str | None = None,
        expiration_date: str | None = None,
        upload: Upload | None = None,
    ) -> dict[str, Any]:
        row = self.get_row(session, document_id)
        changes: dict[str, Any] = {}
        if document_title_id:
            title_uuid = _parse_uuid("document_title_id", document_title_id)
            self._require_title(session, title_uuid)
            changes["document_title_id"] = title_uuid
        if document_type:
            changes["document_type"] = document_type.strip()
        if document_name:
            changes["document_name"] = document_name.strip()
        if privacy:
            privacy_level = privacy.strip().upper()
            if privacy_level not in PRIVACY_LEVELS:
                raise ValidationFailed("Privacy level must be PUBLIC or PRIVATE")
            changes["privacy"] = privacy_level
        if expiration_date:
            changes["expiration_date"] = _parse_date("expiration_date", expiration_date)
        if upload is not None:
            changes["file"] = _encode_upload("file", upload)
        if not changes:
            raise ValidationFailed("No fields to update")

        for key, value in changes.items():
            setattr(row, key, value)
        self._commit(session)
        session.expire_all()
        return {"message": "Document updated successfully", "data": self.get(session, document_id)}

    def download(self, session: Session, document_id: uuid.UUID) -> tuple[StoredFile, dict[str, str]]:
        row = self.get_row(session, document_id)
        if not row.file:
            raise NotFound("Document file not found")
        stored = decode_file(row.file, row.document_name, kind="Document")
        return stored, attachment_headers(stored, kind="Document")


class LicenseService(CrudService):
    model = OrganizationLicense
    model_name = "Organization License"
    id_field = "organization_license_id"
    read_schema = LicenseRead

    def _ensure_name_free(
        self,
        session: Session,
        organization_id: uuid.UUID,
        license_name: str,
        *,
        exclude: uuid.UUID | None = None,
    ) -> None:
        stmt = select(OrganizationLicense.organization_license_id).where(
            OrganizationLicense.organization_id == organization_id,
            OrganizationLicense.license_name == license_name,
        )
        if exclude is not None:
            stmt = stmt.where(OrganizationLicense.organization_license_id != exclude)
        if session.scalar(stmt) is not None:
            raise Conflict("A license with this name already exists for the organization")

    def before_update(self, session: Session, row: OrganizationLicense, payload: dict[str, Any]) -> dict[str, Any]:
        payload = {key: value for key, value in payload.items() if value is not None or key == "expiration_date"}
        if not payload:
            raise ValidationFailed("No fields to update")
        if payload.get("license_name"):
            self._ensure_name_free(session, row.organization_id, payload["license_name"], exclude=row.organization_license_id)
        return payload

    def upload(
        self,
        session: Session,
        *,
        organization_id: str | None,
        license_name: str | None,
        expiration_date: str | None,
        upload: Upload | None,
    ) -> dict[str, Any]:
        organization_raw = _required(organization_id, "Organization ID is required")
        license_name = _required(license_name, "License name is required")
        if upload is None:
            raise ValidationFailed("License document file is required")

        organization_uuid = _parse_uuid("organization_id", organization_raw)
        expires = _parse_date("expiration_date", expiration_date)
        require_organization(session, organization_uuid)
        self._ensure_name_free(session, organization_uuid, license_name)
        stored = _encode_upload("license_document", upload)

        row = OrganizationLicense(
            organization_id=organization_uuid,
            license_name=license_name,
            license_document=stored,
            expiration_date=expires,
        )
        session.add(row)
        self._commit(session)
        logger.info("license.uploaded", extra={"entity_type": "ORGANIZATION_LICENSE", "entity_id": str(row.organization_license_id)})
        return {
            "message": "License uploaded successfully",
            "data": self.get(session, row.organization_license_id),
            "file": _file_summary(upload),
        }

    def update_upload(
        self,
        session: Session,
        license_id: uuid.UUID,
        *,
        license_name: str | None = None,
        expiration_date: str | None = None,
        upload: Upload | None = None,
    ) -> dict[str, Any]:
        row = self.get_row(session, license_id)
        changes: dict[str, Any] = {}
        if license_name and license_name.strip():
            name = license_name.strip()
            if name != row.license_name:
                self._ensure_name_free(session, row.organization_id, name, exclude=row.organization_license_id)
            changes["license_name"] = name
        if expiration_date:
            changes["expiration_date"] = _parse_date("expiration_date", expiration_date)
        if upload is not None:
            changes["license_document"] = _encode_upload("license_document", upload)
        if not changes:
            raise ValidationFailed("No fields to update")

        for key, value in changes.items():
            setattr(row, key, value)
        self._commit(session)
        session.expire_all()
        return {"message": "License updated successfully", "data": self.get(session, license_id)}

    def download(self, session: Session, license_id: uuid.UUID) -> tuple[StoredFile, dict[str, str]]:
        row = self.get_row(session, license_id)
        if not row.license_document:
            raise NotFound("License document not found")
        stored = decode_file(row.license_document, row.license_name, kind="License")
        return stored, attachment_headers(stored, kind="License")


document_service = DocumentService()
license_service = LicenseService()
