from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session, contains_eager, selectinload, undefer

from ats.core.errors import ValidationFailed, field_error
from ats.jobs.models import Job
from ats.jobs.schemas import JobFilterRow, OfficeSummary, OrganizationSummary
from ats.organizations.models import CompanyOffice, Organization
from ats.platform.pagination import paging, resolve_page
from ats.users.schemas import UserSummary


class MultiValueQuery(Protocol):
    def getlist(self, key: str) -> list[str]: ...


TEXT_FILTERS: dict[str, Any] = {
    "job_title": Job.job_title,
    "location": Job.location,
    "organization_name": Organization.name,
}
ENUM_FILTERS: dict[str, Any] = {
    "status": Job.status,
    "job_type": Job.job_type,
    "office_type": CompanyOffice.type,
}
ID_FILTERS: dict[str, Any] = {
    "organization_id": Job.organization_id,
    "manager_id": Job.manager_id,
    "created_by_user_id": Job.created_by_user_id,
    "company_office_id": Job.company_office_id,
}
DATE_RANGES: dict[str, Any] = {
    "created": Job.created_at,
    "start_date": Job.start_date,
    "end_date": Job.end_date,
}
NUMERIC_RANGES: dict[str, Any] = {
    "days_active": Job.days_active,
    "days_inactive": Job.days_inactive,
    "max_positions": Job.max_positions,
    "open_positions": Job.open_positions,
    "applications_count": Job.applications_count,
}
PRESENCE_FILTERS: dict[str, Callable[[], Any]] = {
    "has_applications": lambda: Job.applications.any(),
    "has_job_owners": lambda: Job.job_owners.any(),
    "has_job_rates": lambda: Job.job_rates.any(),
    "has_job_details": lambda: Job.job_detail.has(),
}
SORT_COLUMNS: dict[str, Any] = {
    "created_at": Job.created_at,
    "job_title": Job.job_title,
    "status": Job.status,
    "job_type": Job.job_type,
    "location": Job.location,
    "start_date": Job.start_date,
    "end_date": Job.end_date,
    "max_positions": Job.max_positions,
    "open_positions": Job.open_positions,
    "days_active": Job.days_active,
    "days_inactive": Job.days_inactive,
    "organization_name": Organization.name,
    "applications_count": Job.applications_count,
}
DEFAULT_SORT = "created_at"
PAGINATION_KEYS = frozenset({"page", "limit", "sort_by", "sort_order"})


def _values(query: MultiValueQuery, key: str) -> list[str]:
    """Repeated parameters and comma separated values, flattened and stripped."""
    values: list[str] = []
    for raw in query.getlist(key):
        values.extend(part.strip() for part in raw.split(",") if part.strip())
    return values


def _first(query: MultiValueQuery, key: str) -> str | None:
    values = query.getlist(key)
    if not values:
        return None
    value = values[0].strip()
    return value or None


def _parse_bool(raw: str | None) -> bool | None:
    if raw is None:
        return None
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def _parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _parse_date(key: str, raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationFailed(
            "Invalid date format provided",
            [field_error(key, f"Invalid date: {raw}")],
        ) from exc


def _parse_uuid(key: str, raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError as exc:
        raise ValidationFailed("Validation failed", [field_error(key, "Input should be a valid UUID")]) from exc


@dataclass
class JobFilter:
    conditions: list[Any] = field(default_factory=list)
    applied: dict[str, Any] = field(default_factory=dict)
    sort_by: str = DEFAULT_SORT
    sort_order: str = "desc"


def build_filter(query: MultiValueQuery) -> JobFilter:
    result = JobFilter()

    search = _first(query, "search")
    if search:
        pattern = f"%{search}%"
        result.conditions.append(
            or_(Job.job_title.ilike(pattern), Job.location.ilike(pattern), Organization.name.ilike(pattern))
        )
        result.applied["search"] = search

    for key, column in TEXT_FILTERS.items():
        value = _first(query, key)
        if value:
            result.conditions.append(column.ilike(f"%{value}%"))
            result.applied[key] = value

    for key, column in ENUM_FILTERS.items():
        values = [value.upper() for value in _values(query, key)]
        if values:
            result.conditions.append(column.in_(values))
            result.applied[key] = values if len(values) > 1 else values[0]

    approved = _parse_bool(_first(query, "approved"))
    if approved is not None:
        result.conditions.append(Job.approved.is_(approved))
        result.applied["approved"] = approved

    for key, column in ID_FILTERS.items():
        raw_ids = _values(query, key)
        if raw_ids:
            result.conditions.append(column.in_([_parse_uuid(key, raw) for raw in raw_ids]))
            result.applied[key] = raw_ids if len(raw_ids) > 1 else raw_ids[0]

    for prefix, column in DATE_RANGES.items():
        for suffix, compare in (("from", column.__ge__), ("to", column.__le__)):
            key = f"{prefix}_{suffix}"
            raw = _first(query, key)
            if raw:
                result.conditions.append(compare(_parse_date(key, raw)))
                result.applied[key] = raw

    for prefix, column in NUMERIC_RANGES.items():
        for suffix, compare in (("min", column.__ge__), ("max", column.__le__)):
            key = f"{prefix}_{suffix}"
            value = _parse_int(_first(query, key))
            if value is not None:
                result.conditions.append(compare(value))
                result.applied[key] = value

    for key, clause in PRESENCE_FILTERS.items():
        present = _parse_bool(_first(query, key))
        if present is not None:
            result.conditions.append(clause() if present else ~clause())
            result.applied[key] = present

    sort_by = _first(query, "sort_by")
    result.sort_by = sort_by if sort_by in SORT_COLUMNS else DEFAULT_SORT
    sort_order = (_first(query, "sort_order") or "").lower()
    result.sort_order = sort_order if sort_order in {"asc", "desc"} else "desc"
    return result


def _joined(stmt: Select[Any]) -> Select[Any]:
    return stmt.join(Job.organization).outerjoin(Job.company_office)


def _summary(model: Any, value: Any) -> Any:
    return model.model_validate(value) if value is not None else None


def to_row(job: Job) -> JobFilterRow:
    return JobFilterRow.model_validate(
        {
            **{attr: getattr(job, attr) for attr in JobFilterRow.model_fields if hasattr(Job, attr)},
            "organization": OrganizationSummary.model_validate(job.organization),
            "manager": _summary(UserSummary, job.manager),
            "creator": _summary(UserSummary, job.created_by),
            "company_office": _summary(OfficeSummary, job.company_office),
        }
    )


class JobFilterService:
    default_limit = 10
    max_limit = 100

    def filter(self, session: Session, query: MultiValueQuery) -> dict[str, Any]:
        request = resolve_page(
            _first(query, "page"),
            _first(query, "limit"),
            default_limit=self.default_limit,
            max_limit=self.max_limit,
        )
        criteria = build_filter(query)

        total = session.scalar(_joined(select(func.count(Job.job_id)).select_from(Job)).where(*criteria.conditions)) or 0

        sort_column = SORT_COLUMNS[criteria.sort_by]
        direction = sort_column.asc() if criteria.sort_order == "asc" else sort_column.desc()
        tiebreak = Job.job_id.asc() if criteria.sort_order == "asc" else Job.job_id.desc()
        stmt = (
            _joined(select(Job))
            .where(*criteria.conditions)
            .options(
                contains_eager(Job.organization),
                contains_eager(Job.company_office),
                selectinload(Job.manager),
                selectinload(Job.created_by),
                undefer(Job.job_owners_count),
                undefer(Job.job_rates_count),
            )
            .order_by(direction, tiebreak)
            .offset(request.offset)
            .limit(request.limit)
        )
        jobs = session.scalars(stmt).unique().all()

        return {
            "data": [to_row(job) for job in jobs],
            "paging": paging(total, request),
            "filters": {
                "applied": criteria.applied,
                "sort_by": criteria.sort_by,
                "sort_order": criteria.sort_order,
            },
        }


job_filter_service = JobFilterService()
