from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from ats.core.auth import AuthUser, get_current_user
from ats.core.config import get_settings
from ats.jobs.api import (
    details_router as job_details_router,
    notes_router as job_notes_router,
    owners_router as job_owners_router,
    rates_router as job_rates_router,
    router as jobs_router,
)
from ats.metrics import generate_metrics_payload, metrics_content_type
from ats.organizations.api import (
    accounting_router,
    addresses_router,
    contacts_router,
    contracts_router,
    document_titles_router,
    documents_router,
    licenses_router,
    offices_router,
    organization_users_router,
    router as organizations_router,
)
from ats.users.api import activity_router, router as users_router

router = APIRouter()
router.include_router(users_router)
router.include_router(activity_router)
router.include_router(organizations_router)
router.include_router(offices_router)
router.include_router(accounting_router)
router.include_router(addresses_router)
router.include_router(contacts_router)
router.include_router(organization_users_router)
router.include_router(document_titles_router)
router.include_router(documents_router)
router.include_router(licenses_router)
router.include_router(contracts_router)
router.include_router(jobs_router)
router.include_router(job_details_router)
router.include_router(job_notes_router)
router.include_router(job_rates_router)
router.include_router(job_owners_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(user: AuthUser = Depends(get_current_user)) -> dict[str, str | list[str]]:
    return {
        "sub": user.sub,
        "roles": user.roles,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "system.metrics.read" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing permission: system.metrics.read")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
