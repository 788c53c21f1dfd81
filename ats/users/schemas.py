from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ats.platform.validation import reject_null


UserStatus = Literal["ACTIVE", "INACTIVE"]
ActivityActionType = Literal["CREATE", "UPDATE", "DELETE"]


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    status: UserStatus = "ACTIVE"
    is_admin: bool = False


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    status: UserStatus | None = None
    is_admin: bool | None = None

    @field_validator("name", "email", "status", "is_admin", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    name: str
    email: str
    status: UserStatus
    is_admin: bool
    created_at: datetime
    updated_at: datetime


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    name: str
    email: str


class ActivityEntry(BaseModel):
    action_type: ActivityActionType
    entity_type: str
    entity_id: str
    entity_name: str
    timestamp: str


class UserActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    activity_id: UUID
    user_id: UUID
    last_login_at: datetime | None
    last_actions: list[dict[str, Any]]
    updated_at: datetime
