from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ats.core.errors import NotFound, map_store_error
from ats.platform.pagination import page_payload, resolve_page


class CrudService:
    """List/get/create/update/delete for one mapped entity.

    Subclasses set ``model``, ``model_name``, ``id_field`` and ``read_schema`` and
    override the ``before_*`` hooks to add referential and uniqueness checks.
    """

    model: type[Any]
    model_name = ""
    id_field = ""
    read_schema: type[BaseModel]
    default_limit = 10
    max_limit = 100

    @property
    def id_column(self) -> Any:
        return getattr(self.model, self.id_field)

    def base_query(self) -> Select[Any]:
        return select(self.model)

    def order_by(self) -> Sequence[Any]:
        created_at = getattr(self.model, "created_at", None)
        if created_at is not None:
            return (created_at.desc(), self.id_column.desc())
        return (self.id_column.desc(),)

    def to_read(self, row: Any) -> BaseModel:
        return self.read_schema.model_validate(row)

    def apply_filters(self, stmt: Select[Any], filters: Mapping[str, Any]) -> Select[Any]:
        for column_name, value in filters.items():
            column = getattr(self.model, column_name)
            if value is None:
                stmt = stmt.where(column.is_(None))
            elif isinstance(value, (list, tuple, set)):
                stmt = stmt.where(column.in_(list(value)))
            else:
                stmt = stmt.where(column == value)
        return stmt

    def list(
        self,
        session: Session,
        *,
        page: Any = None,
        limit: Any = None,
        filters: Mapping[str, Any] | None = None,
        where: Sequence[Any] = (),
    ) -> dict[str, Any]:
        request = resolve_page(page, limit, default_limit=self.default_limit, max_limit=self.max_limit)
        stmt = self.apply_filters(self.base_query(), filters or {})
        for clause in where:
            stmt = stmt.where(clause)

        total = session.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
        rows = session.scalars(stmt.order_by(*self.order_by()).offset(request.offset).limit(request.limit)).unique().all()
        return page_payload([self.to_read(row) for row in rows], total, request)

    def find_row(self, session: Session, entity_id: uuid.UUID) -> Any | None:
        return session.scalar(self.base_query().where(self.id_column == entity_id))

    def get_row(self, session: Session, entity_id: uuid.UUID) -> Any:
        row = self.find_row(session, entity_id)
        if row is None:
            raise NotFound(f"{self.model_name} not found")
        return row

    def get(self, session: Session, entity_id: uuid.UUID) -> BaseModel:
        return self.to_read(self.get_row(session, entity_id))

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        return payload

    def before_update(self, session: Session, row: Any, payload: dict[str, Any]) -> dict[str, Any]:
        return payload

    def create(self, session: Session, dto: BaseModel) -> BaseModel:
        payload = self.before_create(session, dto.model_dump(mode="python"))
        row = self.model(**payload)
        session.add(row)
        self._commit(session)
        session.refresh(row)
        return self.get(session, getattr(row, self.id_field))

    def update(self, session: Session, entity_id: uuid.UUID, dto: BaseModel) -> BaseModel:
        row = self.get_row(session, entity_id)
        payload = self.before_update(session, row, dto.model_dump(mode="python", exclude_unset=True))
        for key, value in payload.items():
            setattr(row, key, value)
        self._commit(session)
        session.expire_all()
        return self.get(session, entity_id)

    def delete(self, session: Session, entity_id: uuid.UUID) -> dict[str, Any]:
        row = self.get_row(session, entity_id)
        session.delete(row)
        self._commit(session)
        return {"message": f"{self.model_name} deleted successfully", self.id_field: entity_id}

    def _commit(self, session: Session) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise map_store_error(exc, conflict_message=f"{self.model_name} with this value already exists")
