import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ats.core.auth import AuthUser, get_current_user
from ats.core.database import get_db
from ats.core.responses import exception_response, success_response
from ats.jobs.complete import job_complete_service
from ats.jobs.filters import job_filter_service
from ats.jobs.schemas import (
    JobCompleteCreate,
    JobCompleteUpdate,
    JobCreate,
    JobDetailCreate,
    JobDetailUpdate,
    JobNoteCreate,
    JobNoteUpdate,
    JobOwnerCreate,
    JobOwnerUpdate,
    JobRateCreate,
    JobRateUpdate,
    JobUpdate,
)
from ats.jobs.service import (
    job_detail_service,
    job_note_service,
    job_owner_service,
    job_rate_service,
    job_service,
)
from ats.organizations.service import organization_service
from ats.platform.routing import add_crud_routes, add_lookup_route
from ats.users.service import user_service


router = APIRouter(prefix="/api/jobs", tags=["jobs"])
details_router = APIRouter(prefix="/api/job-details", tags=["jobs.details"])
notes_router = APIRouter(prefix="/api/job-notes", tags=["jobs.notes"])
rates_router = APIRouter(prefix="/api/job-rates", tags=["jobs.rates"])
owners_router = APIRouter(prefix="/api/job-owners", tags=["jobs.owners"])


@router.post("/complete", response_model=None, status_code=status.HTTP_201_CREATED)
def create_job_complete(
    request: Request,
    dto: JobCompleteCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> JSONResponse:
    try:
        result = job_complete_service.create(db, dto, actor_id=user.user_uuid)
        return success_response(result, status.HTTP_201_CREATED)
    except HTTPException as exc:
        return exception_response(request, exc)


@router.patch("/complete/{job_id}", response_model=None)
def update_job_complete(
    request: Request,
    job_id: uuid.UUID,
    dto: JobCompleteUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> JSONResponse:
    try:
        return success_response(job_complete_service.update(db, job_id, dto, actor_id=user.user_uuid))
    except HTTPException as exc:
        return exception_response(request, exc)


@router.get("/filter", response_model=None)
def filter_jobs(request: Request, db: Session = Depends(get_db)) -> JSONResponse:
    try:
        return success_response(job_filter_service.filter(db, request.query_params))
    except HTTPException as exc:
        return exception_response(request, exc)


@router.get("/stats", response_model=None)
def get_job_stats(
    request: Request,
    organization_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        return success_response(job_service.stats(db, organization_id))
    except HTTPException as exc:
        return exception_response(request, exc)


@router.get("/approved", response_model=None)
def list_approved_jobs(
    request: Request,
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        return success_response(job_service.approved(db, page=page, limit=limit))
    except HTTPException as exc:
        return exception_response(request, exc)


@router.get("/active", response_model=None)
def list_active_jobs(
    request: Request,
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        return success_response(job_service.active(db, page=page, limit=limit))
    except HTTPException as exc:
        return exception_response(request, exc)


add_lookup_route(router, job_service, "/organization", "organization_id", parent=(organization_service, "Organization"))
add_lookup_route(router, job_service, "/status", "status", value_type=str, normalize=str.upper)
add_lookup_route(router, job_service, "/type", "job_type", value_type=str, normalize=str.upper)
add_lookup_route(router, job_service, "/manager", "manager_id", parent=(user_service, "Manager"))
add_crud_routes(router, job_service, create_schema=JobCreate, update_schema=JobUpdate)


@details_router.get("/job/{job_id}", response_model=None)
def get_job_detail_for_job(request: Request, job_id: uuid.UUID, db: Session = Depends(get_db)) -> JSONResponse:
    try:
        return success_response(job_detail_service.for_job(db, job_id))
    except HTTPException as exc:
        return exception_response(request, exc)


add_crud_routes(details_router, job_detail_service, create_schema=JobDetailCreate, update_schema=JobDetailUpdate)

add_lookup_route(notes_router, job_note_service, "/job", "job_id", parent=(job_service, "Job"))
add_crud_routes(notes_router, job_note_service, create_schema=JobNoteCreate, update_schema=JobNoteUpdate)


@rates_router.get("/job/{job_id}", response_model=None)
def get_job_rate_for_job(request: Request, job_id: uuid.UUID, db: Session = Depends(get_db)) -> JSONResponse:
    try:
        return success_response(job_rate_service.for_job(db, job_id))
    except HTTPException as exc:
        return exception_response(request, exc)


add_crud_routes(rates_router, job_rate_service, create_schema=JobRateCreate, update_schema=JobRateUpdate)


@owners_router.get("/job/{job_id}", response_model=None)
def list_job_owners_for_job(request: Request, job_id: uuid.UUID, db: Session = Depends(get_db)) -> JSONResponse:
    try:
        return success_response(job_owner_service.for_job(db, job_id))
    except HTTPException as exc:
        return exception_response(request, exc)


add_crud_routes(owners_router, job_owner_service, create_schema=JobOwnerCreate, update_schema=JobOwnerUpdate)
