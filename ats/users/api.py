import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ats.core.database import get_db
from ats.core.responses import exception_response, success_response
from ats.platform.routing import add_crud_routes
from ats.users.activity import activity_service
from ats.users.schemas import UserCreate, UserUpdate
from ats.users.service import user_service


router = APIRouter(prefix="/api/users", tags=["users"])
activity_router = APIRouter(prefix="/api/user-activity", tags=["users.activity"])


@activity_router.get("/{user_id}", response_model=None)
def get_user_activity(request: Request, user_id: uuid.UUID, db: Session = Depends(get_db)) -> JSONResponse:
    try:
        return success_response(activity_service.get(db, user_id))
    except HTTPException as exc:
        return exception_response(request, exc)


add_crud_routes(router, user_service, create_schema=UserCreate, update_schema=UserUpdate)
