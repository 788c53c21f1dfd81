from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, selectinload

from ats.core.errors import Conflict, NotFound, ValidationFailed, field_error
from ats.jobs.models import Job, JobDetail, JobNote, JobOwner, JobRate
from ats.jobs.schemas import (
    JobDetailRead,
    JobDetailView,
    JobNoteRead,
    JobOwnerDetail,
    JobOwnerRead,
    JobRateRead,
    JobRead,
)
from ats.organizations.models import CompanyOffice
from ats.organizations.service import require_organization, require_user
from ats.platform.crud import CrudService


REQUIRED_JOB_FIELDS = (
    "organization_id",
    "job_title",
    "status",
    "job_type",
    "location",
    "approved",
    "max_positions",
    "open_positions",
)


def require_job(session: Session, job_id: uuid.UUID) -> Job:
    job = session.get(Job, job_id)
    if job is None:
        raise NotFound("Job not found")
    return job


def require_office_in_organization(
    session: Session,
    company_office_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> None:
    office = session.scalar(
        select(CompanyOffice.company_office_id).where(
            CompanyOffice.company_office_id == company_office_id,
            CompanyOffice.organization_id == organization_id,
        )
    )
    if office is None:
        raise NotFound("Company office not found or does not belong to the organization")


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def check_schedule(
    start_date: datetime | None,
    end_date: datetime | None,
    max_positions: int | None,
    open_positions: int | None,
) -> None:
    if start_date is not None and end_date is not None and _as_utc(start_date) >= _as_utc(end_date):
        raise ValidationFailed("Start date must be before end date")
    if max_positions is not None and open_positions is not None and open_positions > max_positions:
        raise ValidationFailed("Open positions cannot exceed max positions")


def check_job_title(
    session: Session,
    organization_id: uuid.UUID,
    job_title: str,
    *,
    exclude: uuid.UUID | None = None,
) -> None:
    """Job titles are unique among an organization's jobs that are not CLOSED."""
    stmt = select(Job.job_id).where(
        Job.organization_id == organization_id,
        Job.job_title == job_title,
        Job.status != "CLOSED",
    )
    if exclude is not None:
        stmt = stmt.where(Job.job_id != exclude)
    existing = session.scalar(stmt.limit(1))
    if existing is not None:
        raise Conflict(
            "Active job with this title already exists for this organization",
            [field_error("duplicate", f"Job already exists with job_id: {existing}")],
        )


def merged(payload: dict[str, Any], row: Any, key: str) -> Any:
    return payload[key] if key in payload else getattr(row, key)


class JobService(CrudService):
    model = Job
    model_name = "Job"
    id_field = "job_id"
    read_schema = JobRead

    def load_detail(self, session: Session, job_id: uuid.UUID) -> Job:
        stmt = (
            select(Job)
            .where(Job.job_id == job_id)
            .options(
                selectinload(Job.organization),
                selectinload(Job.manager),
                selectinload(Job.created_by),
                selectinload(Job.company_office),
                selectinload(Job.job_detail),
                selectinload(Job.job_notes),
                selectinload(Job.job_rates),
                selectinload(Job.job_owners).selectinload(JobOwner.user),
            )
            .execution_options(populate_existing=True)
        )
        job = session.scalar(stmt)
        if job is None:
            raise NotFound("Job not found")
        return job

    def detail(self, session: Session, job_id: uuid.UUID) -> JobDetailView:
        return JobDetailView.model_validate(self.load_detail(session, job_id))

    def get(self, session: Session, entity_id: uuid.UUID) -> JobDetailView:
        return self.detail(session, entity_id)

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_organization(session, payload["organization_id"])
        if payload.get("manager_id") is not None:
            require_user(session, payload["manager_id"], message="Manager not found")
        if payload.get("created_by_user_id") is not None:
            require_user(session, payload["created_by_user_id"], message="Creator user not found")
        if payload.get("company_office_id") is not None:
            require_office_in_organization(session, payload["company_office_id"], payload["organization_id"])
        check_schedule(
            payload.get("start_date"),
            payload.get("end_date"),
            payload.get("max_positions"),
            payload.get("open_positions"),
        )
        if payload.get("status") != "CLOSED":
            check_job_title(session, payload["organization_id"], payload["job_title"])
        return payload

    def before_update(self, session: Session, row: Job, payload: dict[str, Any]) -> dict[str, Any]:
        for required in REQUIRED_JOB_FIELDS:
            if required in payload and payload[required] is None:
                payload.pop(required)

        organization_id = merged(payload, row, "organization_id")
        if payload.get("organization_id") is not None and organization_id != row.organization_id:
            require_organization(session, organization_id)
        if payload.get("manager_id") is not None:
            require_user(session, payload["manager_id"], message="Manager not found")
        office_id = merged(payload, row, "company_office_id")
        if office_id is not None and ({"company_office_id", "organization_id"} & payload.keys()):
            require_office_in_organization(session, office_id, organization_id)
        check_schedule(
            merged(payload, row, "start_date"),
            merged(payload, row, "end_date"),
            merged(payload, row, "max_positions"),
            merged(payload, row, "open_positions"),
        )
        if {"job_title", "organization_id", "status"} & payload.keys() and merged(payload, row, "status") != "CLOSED":
            check_job_title(session, organization_id, merged(payload, row, "job_title"), exclude=row.job_id)
        return payload

    def approved(self, session: Session, *, page: Any = None, limit: Any = None) -> dict[str, Any]:
        return self.list(session, page=page, limit=limit, filters={"approved": True})

    def active(self, session: Session, *, page: Any = None, limit: Any = None) -> dict[str, Any]:
        return self.list(session, page=page, limit=limit, filters={"status": "OPEN", "approved": True})

    def stats(self, session: Session, organization_id: uuid.UUID | None = None) -> dict[str, Any]:
        criteria = [Job.organization_id == organization_id] if organization_id is not None else []

        def _count(*extra: Any) -> int:
            return session.scalar(select(func.count(Job.job_id)).where(*criteria, *extra)) or 0

        def _grouped(column: Any) -> list[tuple[Any, int]]:
            stmt = select(column, func.count(Job.job_id)).where(*criteria).group_by(column).order_by(column)
            return [(value, int(total)) for value, total in session.execute(stmt).all()]

        return {
            "total": _count(),
            "approved": _count(Job.approved.is_(True)),
            "active": _count(Job.status == "OPEN", Job.approved.is_(True)),
            "by_status": [{"status": value, "count": total} for value, total in _grouped(Job.status)],
            "by_type": [{"type": value, "count": total} for value, total in _grouped(Job.job_type)],
        }


class JobDetailService(CrudService):
    model = JobDetail
    model_name = "Job Detail"
    id_field = "job_detail_id"
    read_schema = JobDetailRead

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_job(session, payload["job_id"])
        existing = session.scalar(select(JobDetail.job_detail_id).where(JobDetail.job_id == payload["job_id"]))
        if existing is not None:
            raise Conflict(
                "Job Detail already exists for this job",
                [field_error("duplicate", f"Job Detail already exists with job_detail_id: {existing}")],
            )
        return payload

    def for_job(self, session: Session, job_id: uuid.UUID) -> JobDetailRead:
        detail = session.scalar(select(JobDetail).where(JobDetail.job_id == job_id))
        if detail is None:
            raise NotFound("Job Detail not found for this job")
        return JobDetailRead.model_validate(detail)


class JobNoteService(CrudService):
    model = JobNote
    model_name = "Job Note"
    id_field = "job_note_id"
    read_schema = JobNoteRead
    default_limit = 20

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_job(session, payload["job_id"])
        return payload


class JobRateService(CrudService):
    model = JobRate
    model_name = "Job Rate"
    id_field = "job_rate_id"
    read_schema = JobRateRead

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_job(session, payload["job_id"])
        existing = session.scalar(select(JobRate.job_rate_id).where(JobRate.job_id == payload["job_id"]).limit(1))
        if existing is not None:
            raise Conflict(
                "Job Rate already exists for this job",
                [field_error("duplicate", f"Job Rate already exists with job_rate_id: {existing}")],
            )
        return payload

    def for_job(self, session: Session, job_id: uuid.UUID) -> JobRateRead:
        rate = session.scalar(select(JobRate).where(JobRate.job_id == job_id).order_by(JobRate.created_at).limit(1))
        if rate is None:
            raise NotFound("Job Rate not found for this job")
        return JobRateRead.model_validate(rate)


class JobOwnerService(CrudService):
    model = JobOwner
    model_name = "Job Owner"
    id_field = "job_owner_id"
    read_schema = JobOwnerRead

    def base_query(self) -> Select[Any]:
        return select(JobOwner).options(selectinload(JobOwner.user))

    def to_read(self, row: JobOwner) -> JobOwnerDetail:
        return JobOwnerDetail.model_validate(row)

    def _check_duplicate(
        self,
        session: Session,
        job_id: uuid.UUID,
        user_id: uuid.UUID,
        role_type: str,
        *,
        exclude: uuid.UUID | None = None,
    ) -> None:
        stmt = select(JobOwner.job_owner_id).where(
            JobOwner.job_id == job_id,
            JobOwner.user_id == user_id,
            JobOwner.role_type == role_type,
        )
        if exclude is not None:
            stmt = stmt.where(JobOwner.job_owner_id != exclude)
        existing = session.scalar(stmt)
        if existing is not None:
            raise Conflict(
                "Job Owner with this combination already exists",
                [field_error("duplicate", f"Job Owner already exists with job_owner_id: {existing}")],
            )

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_job(session, payload["job_id"])
        require_user(session, payload["user_id"])
        self._check_duplicate(session, payload["job_id"], payload["user_id"], payload["role_type"])
        return payload

    def before_update(self, session: Session, row: JobOwner, payload: dict[str, Any]) -> dict[str, Any]:
        payload = {key: value for key, value in payload.items() if value is not None}
        if "user_id" in payload:
            require_user(session, payload["user_id"])
        if payload:
            self._check_duplicate(
                session,
                row.job_id,
                merged(payload, row, "user_id"),
                merged(payload, row, "role_type"),
                exclude=row.job_owner_id,
            )
        return payload

    def for_job(self, session: Session, job_id: uuid.UUID) -> dict[str, Any]:
        require_job(session, job_id)
        owners = session.scalars(
            self.base_query().where(JobOwner.job_id == job_id).order_by(JobOwner.role_type, JobOwner.created_at)
        ).all()
        return {"job_id": job_id, "total": len(owners), "job_owners": [self.to_read(owner) for owner in owners]}


job_service = JobService()
job_detail_service = JobDetailService()
job_note_service = JobNoteService()
job_rate_service = JobRateService()
job_owner_service = JobOwnerService()
