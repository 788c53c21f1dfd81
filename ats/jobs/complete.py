from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ats.core.database import bounded_transaction
from ats.core.errors import Conflict, NotFound, ValidationFailed, field_error
from ats.jobs.models import Job, JobDetail, JobNote, JobOwner, JobRate
from ats.jobs.schemas import (
    JobCompleteCreate,
    JobCompleteUpdate,
    JobDetailInput,
    JobDetailPatch,
    JobNoteInput,
    JobNotePatch,
    JobOwnerInput,
    JobOwnerPatch,
    JobRateInput,
    JobRatePatch,
)
from ats.jobs.service import (
    REQUIRED_JOB_FIELDS,
    check_job_title,
    check_schedule,
    job_service,
    require_office_in_organization,
)
from ats.organizations.service import require_organization, require_user
from ats.platform.nested import (
    ChildAction,
    ChildCollection,
    ChildOperation,
    apply_operations,
    create_operations,
    ensure_targets_exist,
    resolve_operations,
    simulate,
    snapshot,
    traced_upsert,
)
from ats.users.activity import activity_service, resolve_actor
from ats.users.service import user_service


logger = logging.getLogger("ats.jobs")

JOB_DETAIL = ChildCollection(
    name="job_detail",
    label="Job detail",
    model=JobDetail,
    id_field="job_detail_id",
    parent_field="job_id",
    create_schema=JobDetailInput,
    update_schema=JobDetailPatch,
    single=True,
)
JOB_NOTES = ChildCollection(
    name="job_notes",
    label="Job note",
    model=JobNote,
    id_field="job_note_id",
    parent_field="job_id",
    create_schema=JobNoteInput,
    update_schema=JobNotePatch,
)
JOB_RATES = ChildCollection(
    name="job_rates",
    label="Job rate",
    model=JobRate,
    id_field="job_rate_id",
    parent_field="job_id",
    create_schema=JobRateInput,
    update_schema=JobRatePatch,
)
JOB_OWNERS = ChildCollection(
    name="job_owners",
    label="Job owner",
    model=JobOwner,
    id_field="job_owner_id",
    parent_field="job_id",
    create_schema=JobOwnerInput,
    update_schema=JobOwnerPatch,
)

COLLECTIONS = (JOB_DETAIL, JOB_NOTES, JOB_RATES, JOB_OWNERS)
PARENT_FIELDS = (
    "organization_id",
    "manager_id",
    "company_office_id",
    "job_title",
    "status",
    "job_type",
    "location",
    "days_active",
    "days_inactive",
    "approved",
    "start_date",
    "end_date",
    "max_positions",
    "open_positions",
)

Rows = Sequence[Mapping[str, Any]]


def require_owner_users(session: Session, user_ids: Sequence[uuid.UUID]) -> None:
    wanted = list(dict.fromkeys(user_ids))
    if not wanted:
        return
    found = user_service.existing_ids(session, set(wanted))
    missing = [str(user_id) for user_id in wanted if user_id not in found]
    if missing:
        raise NotFound(f"Job owner user(s) not found: {', '.join(missing)}")


def _duplicate_owners() -> ValidationFailed:
    return ValidationFailed(
        "Duplicate user IDs found in job_owners",
        [field_error("job_owners", "Each user can only be assigned once")],
    )


def check_new_owners(owners: Rows) -> None:
    pairs = Counter((owner.get("user_id"), owner.get("role_type")) for owner in owners)
    if any(count > 1 for count in pairs.values()):
        raise _duplicate_owners()


def check_final_owners(owners: Rows) -> None:
    users = Counter(owner.get("user_id") for owner in owners)
    if any(count > 1 for count in users.values()):
        raise _duplicate_owners()


def check_job_detail(final: Rows) -> None:
    if len(final) > 1:
        raise Conflict(
            "Job Detail already exists for this job",
            [field_error(JOB_DETAIL.name, "A job can only have one job detail")],
        )


class JobCompleteService:
    """Creates or mutates a job together with its detail, notes, rates and owners in one transaction."""

    def create(
        self,
        session: Session,
        dto: JobCompleteCreate,
        *,
        actor_id: uuid.UUID | None = None,
    ) -> dict[str, Any]:
        with traced_upsert("job", "create") as span:
            require_organization(session, dto.organization_id)
            require_user(session, dto.created_by_user_id, message="Creator user not found")
            if dto.manager_id is not None:
                require_user(session, dto.manager_id, message="Manager user not found")
            if dto.company_office_id is not None:
                require_office_in_organization(session, dto.company_office_id, dto.organization_id)

            plan = [
                (JOB_DETAIL, create_operations([dto.job_detail] if dto.job_detail is not None else [])),
                (JOB_NOTES, create_operations(dto.job_notes)),
                (JOB_RATES, create_operations(dto.job_rates)),
                (JOB_OWNERS, create_operations(dto.job_owners)),
            ]
            owners = simulate(JOB_OWNERS, [], plan[3][1])
            require_owner_users(session, [owner["user_id"] for owner in owners])
            check_new_owners(owners)
            check_schedule(dto.start_date, dto.end_date, dto.max_positions, dto.open_positions)
            if dto.status != "CLOSED":
                check_job_title(session, dto.organization_id, dto.job_title)

            job_id = uuid.uuid4()
            with bounded_transaction(session) as budget:
                session.add(Job(job_id=job_id, **dto.model_dump(include=set(PARENT_FIELDS) | {"created_by_user_id"})))
                session.flush()
                changes = {
                    collection.name: apply_operations(session, collection, job_id, operations, budget).as_dict()
                    for collection, operations in plan
                }

            span.set_attribute("job_id", str(job_id))
            logger.info(
                "job.complete_created",
                extra={
                    "entity_type": "JOB",
                    "entity_id": str(job_id),
                    "changes": changes,
                    "elapsed_ms": budget.elapsed_ms(),
                },
            )

        activity_service.record(
            session,
            resolve_actor(session, actor_id, dto.created_by_user_id),
            action_type="CREATE",
            entity_type="JOB",
            entity_id=job_id,
            entity_name=dto.job_title,
        )
        return {"job": job_service.detail(session, job_id), "changes": changes}

    def update(
        self,
        session: Session,
        job_id: uuid.UUID,
        dto: JobCompleteUpdate,
        *,
        actor_id: uuid.UUID | None = None,
    ) -> dict[str, Any]:
        with traced_upsert("job", "update") as span:
            span.set_attribute("job_id", str(job_id))
            job = job_service.load_detail(session, job_id)

            plan: list[tuple[ChildCollection, list[ChildOperation]]] = [
                (JOB_DETAIL, resolve_operations(JOB_DETAIL, [dto.job_detail] if dto.job_detail is not None else None)),
                (JOB_NOTES, resolve_operations(JOB_NOTES, dto.job_notes)),
                (JOB_RATES, resolve_operations(JOB_RATES, dto.job_rates)),
                (JOB_OWNERS, resolve_operations(JOB_OWNERS, dto.job_owners)),
            ]
            current = {
                JOB_DETAIL.name: snapshot([job.job_detail] if job.job_detail is not None else []),
                JOB_NOTES.name: snapshot(job.job_notes),
                JOB_RATES.name: snapshot(job.job_rates),
                JOB_OWNERS.name: snapshot(job.job_owners),
            }
            for collection, operations in plan:
                ensure_targets_exist(collection, current[collection.name], operations)

            requested = dto.model_dump(include=set(PARENT_FIELDS), exclude_unset=True)
            for required in REQUIRED_JOB_FIELDS:
                if required in requested and requested[required] is None:
                    requested.pop(required)
            parent_changes = {key: value for key, value in requested.items() if getattr(job, key) != value}

            def final_value(key: str) -> Any:
                return parent_changes[key] if key in parent_changes else getattr(job, key)

            organization_id = final_value("organization_id")
            if "organization_id" in parent_changes:
                require_organization(session, organization_id)
            if parent_changes.get("manager_id") is not None:
                require_user(session, parent_changes["manager_id"], message="Manager user not found")
            if final_value("company_office_id") is not None and {"company_office_id", "organization_id"} & parent_changes.keys():
                require_office_in_organization(session, final_value("company_office_id"), organization_id)

            final = {collection.name: simulate(collection, current[collection.name], operations) for collection, operations in plan}
            operations_by_name = {collection.name: operations for collection, operations in plan}

            touched_owners = [
                operation.fields["user_id"]
                for operation in operations_by_name[JOB_OWNERS.name]
                if operation.action is not ChildAction.DELETE and "user_id" in operation.fields
            ]
            if touched_owners:
                require_owner_users(session, touched_owners)
                check_final_owners(final[JOB_OWNERS.name])
            if operations_by_name[JOB_DETAIL.name]:
                check_job_detail(final[JOB_DETAIL.name])

            check_schedule(
                final_value("start_date"),
                final_value("end_date"),
                final_value("max_positions"),
                final_value("open_positions"),
            )
            if {"job_title", "organization_id", "status"} & parent_changes.keys() and final_value("status") != "CLOSED":
                check_job_title(session, organization_id, final_value("job_title"), exclude=job_id)

            with bounded_transaction(session) as budget:
                if parent_changes:
                    row = session.scalar(select(Job).where(Job.job_id == job_id))
                    if row is None:
                        raise NotFound("Record to update not found")
                    for key, value in parent_changes.items():
                        setattr(row, key, value)
                    session.flush()
                changes = {
                    collection.name: apply_operations(session, collection, job_id, operations, budget).as_dict()
                    for collection, operations in plan
                }

            logger.info(
                "job.complete_updated",
                extra={
                    "entity_type": "JOB",
                    "entity_id": str(job_id),
                    "changes": changes,
                    "elapsed_ms": budget.elapsed_ms(),
                },
            )

        session.expire_all()
        refreshed = job_service.detail(session, job_id)
        activity_service.record(
            session,
            resolve_actor(session, actor_id, refreshed.created_by_user_id),
            action_type="UPDATE",
            entity_type="JOB",
            entity_id=job_id,
            entity_name=refreshed.job_title,
        )
        return {"job": job_service.detail(session, job_id), "changes": changes}


job_complete_service = JobCompleteService()
