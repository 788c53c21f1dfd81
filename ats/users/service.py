from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ats.core.errors import Conflict, field_error
from ats.platform.crud import CrudService
from ats.users.models import User
from ats.users.schemas import UserRead


class UserService(CrudService):
    model = User
    model_name = "User"
    id_field = "user_id"
    read_schema = UserRead

    def _ensure_email_free(self, session: Session, email: str, *, exclude: Any = None) -> None:
        stmt = select(User.user_id).where(func.lower(User.email) == email.lower())
        if exclude is not None:
            stmt = stmt.where(User.user_id != exclude)
        if session.scalar(stmt) is not None:
            raise Conflict("User with this email already exists", [field_error("email", "Email is already in use")])

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        payload["email"] = payload["email"].strip().lower()
        payload["name"] = payload["name"].strip()
        self._ensure_email_free(session, payload["email"])
        return payload

    def before_update(self, session: Session, row: User, payload: dict[str, Any]) -> dict[str, Any]:
        if payload.get("email") is not None:
            payload["email"] = payload["email"].strip().lower()
            self._ensure_email_free(session, payload["email"], exclude=row.user_id)
        if payload.get("name") is not None:
            payload["name"] = payload["name"].strip()
        return {key: value for key, value in payload.items() if value is not None}

    def existing_ids(self, session: Session, user_ids: set[Any]) -> set[Any]:
        if not user_ids:
            return set()
        return set(session.scalars(select(User.user_id).where(User.user_id.in_(user_ids))))


user_service = UserService()
