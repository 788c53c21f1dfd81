import uuid
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ats.core.database import get_db
from ats.core.errors import NotFound
from ats.core.responses import exception_response, success_response
from ats.platform.crud import CrudService


def add_crud_routes(
    router: APIRouter,
    service: CrudService,
    *,
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    include_create: bool = True,
    include_update: bool = True,
) -> None:
    """Mount list, get, create, update and delete on ``router``.

    Call this after the router's fixed sub-routes are declared so ``/{id}`` does not shadow them.
    """
    id_param = service.id_field

    @router.get("", response_model=None, name=f"list_{id_param}")
    def list_rows(
        request: Request,
        page: str | None = Query(default=None),
        limit: str | None = Query(default=None),
        db: Session = Depends(get_db),
    ) -> JSONResponse:
        try:
            return success_response(service.list(db, page=page, limit=limit))
        except HTTPException as exc:
            return exception_response(request, exc)

    @router.get("/{entity_id}", response_model=None, name=f"get_{id_param}")
    def get_row(request: Request, entity_id: uuid.UUID, db: Session = Depends(get_db)) -> JSONResponse:
        try:
            return success_response(service.get(db, entity_id))
        except HTTPException as exc:
            return exception_response(request, exc)

    if include_create:

        @router.post("", response_model=None, status_code=status.HTTP_201_CREATED, name=f"create_{id_param}")
        def create_row(request: Request, dto: create_schema, db: Session = Depends(get_db)) -> JSONResponse:  # type: ignore[valid-type]
            try:
                return success_response(service.create(db, dto), status.HTTP_201_CREATED)
            except HTTPException as exc:
                return exception_response(request, exc)

    if include_update:

        @router.patch("/{entity_id}", response_model=None, name=f"update_{id_param}")
        def update_row(
            request: Request,
            entity_id: uuid.UUID,
            dto: update_schema,  # type: ignore[valid-type]
            db: Session = Depends(get_db),
        ) -> JSONResponse:
            try:
                return success_response(service.update(db, entity_id, dto))
            except HTTPException as exc:
                return exception_response(request, exc)

    @router.delete("/{entity_id}", response_model=None, name=f"delete_{id_param}")
    def delete_row(request: Request, entity_id: uuid.UUID, db: Session = Depends(get_db)) -> JSONResponse:
        try:
            return success_response(service.delete(db, entity_id))
        except HTTPException as exc:
            return exception_response(request, exc)


def add_lookup_route(
    router: APIRouter,
    service: CrudService,
    path: str,
    column: str,
    *,
    value_type: type = uuid.UUID,
    normalize: Callable[[Any], Any] | None = None,
    parent: tuple[CrudService, str] | None = None,
) -> None:
    """Mount ``GET <path>/{value}`` listing rows whose ``column`` equals the path value.

    ``parent`` is a ``(service, label)`` pair checked for existence first, so an unknown
    parent id answers 404 instead of an empty page.
    """

    @router.get(f"{path}/{{value}}", response_model=None, name=f"list_{service.id_field}_by_{column}")
    def lookup(
        request: Request,
        value: value_type,  # type: ignore[valid-type]
        page: str | None = Query(default=None),
        limit: str | None = Query(default=None),
        db: Session = Depends(get_db),
    ) -> JSONResponse:
        try:
            if parent is not None:
                parent_service, label = parent
                if parent_service.find_row(db, value) is None:
                    raise NotFound(f"{label} not found")
            resolved = normalize(value) if normalize is not None else value
            return success_response(service.list(db, page=page, limit=limit, filters={column: resolved}))
        except HTTPException as exc:
            return exception_response(request, exc)
