from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ats.platform.validation import reject_null
from ats.users.schemas import UserSummary


JobStatus = Literal["DRAFT", "OPEN", "CLOSED"]
JobType = Literal["TEMPORARY", "PERMANENT"]
OwnerRole = Literal["SALES", "RECRUITER"]


class JobDetailInput(BaseModel):
    description: str = Field(min_length=1)
    skills: Any | None = None


class JobDetailPatch(BaseModel):
    description: str | None = Field(default=None, min_length=1)
    skills: Any | None = None

    @field_validator("description", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class JobDetailCreate(JobDetailInput):
    job_id: UUID


class JobDetailUpdate(JobDetailPatch):
    pass


class JobDetailRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_detail_id: UUID
    job_id: UUID
    description: str
    skills: Any | None
    created_at: datetime
    updated_at: datetime


class JobNoteInput(BaseModel):
    note: str = Field(min_length=1)


class JobNotePatch(BaseModel):
    note: str | None = Field(default=None, min_length=1)

    @field_validator("note", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class JobNoteCreate(JobNoteInput):
    job_id: UUID


class JobNoteUpdate(JobNotePatch):
    pass


class JobNoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_note_id: UUID
    job_id: UUID
    note: str
    created_at: datetime


class JobRateInput(BaseModel):
    pay_rate: float | None = None
    bill_rate: float = Field(ge=0)
    markup_percentage: float | None = None
    overtime_rule: str | None = None
    hours: int = Field(ge=0)
    ot_pay_rate: float | None = None
    ot_bill_rate: float | None = None


class JobRatePatch(BaseModel):
    pay_rate: float | None = None
    bill_rate: float | None = Field(default=None, ge=0)
    markup_percentage: float | None = None
    overtime_rule: str | None = None
    hours: int | None = Field(default=None, ge=0)
    ot_pay_rate: float | None = None
    ot_bill_rate: float | None = None

    @field_validator("bill_rate", "hours", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class JobRateCreate(JobRateInput):
    job_id: UUID


class JobRateUpdate(JobRatePatch):
    pass


class JobRateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_rate_id: UUID
    job_id: UUID
    pay_rate: float | None
    bill_rate: float
    markup_percentage: float | None
    overtime_rule: str | None
    hours: int
    ot_pay_rate: float | None
    ot_bill_rate: float | None
    created_at: datetime
    updated_at: datetime


class JobOwnerInput(BaseModel):
    user_id: UUID
    role_type: OwnerRole


class JobOwnerPatch(BaseModel):
    user_id: UUID | None = None
    role_type: OwnerRole | None = None

    @field_validator("user_id", "role_type", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class JobOwnerCreate(JobOwnerInput):
    job_id: UUID


class JobOwnerUpdate(JobOwnerPatch):
    pass


class JobOwnerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_owner_id: UUID
    job_id: UUID
    user_id: UUID
    role_type: OwnerRole
    created_at: datetime


class JobOwnerDetail(JobOwnerRead):
    user: UserSummary | None = None


class JobCreate(BaseModel):
    organization_id: UUID
    manager_id: UUID | None = None
    created_by_user_id: UUID | None = None
    company_office_id: UUID | None = None
    job_title: str = Field(min_length=1)
    status: JobStatus = "DRAFT"
    job_type: JobType
    location: str = Field(min_length=1)
    days_active: int | None = None
    days_inactive: int | None = None
    approved: bool = False
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_positions: int = Field(default=1, ge=1)
    open_positions: int = Field(default=1, ge=0)


class JobUpdate(BaseModel):
    organization_id: UUID | None = None
    manager_id: UUID | None = None
    company_office_id: UUID | None = None
    job_title: str | None = Field(default=None, min_length=1)
    status: JobStatus | None = None
    job_type: JobType | None = None
    location: str | None = Field(default=None, min_length=1)
    days_active: int | None = None
    days_inactive: int | None = None
    approved: bool | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_positions: int | None = Field(default=None, ge=1)
    open_positions: int | None = Field(default=None, ge=0)


class JobCompleteCreate(JobCreate):
    created_by_user_id: UUID
    job_detail: JobDetailInput | None = None
    job_notes: list[JobNoteInput] = Field(default_factory=list)
    job_rates: list[JobRateInput] = Field(default_factory=list)
    job_owners: list[JobOwnerInput] = Field(default_factory=list)


class JobCompleteUpdate(JobUpdate):
    """Job fields plus tagged child elements; ``job_detail`` is a single element, not a list."""

    job_detail: dict[str, Any] | None = None
    job_notes: list[dict[str, Any]] | None = None
    job_rates: list[dict[str, Any]] | None = None
    job_owners: list[dict[str, Any]] | None = None


class OrganizationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_id: UUID
    name: str


class OfficeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    company_office_id: UUID
    office_name: str
    type: str


class JobRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: UUID
    organization_id: UUID
    manager_id: UUID | None
    created_by_user_id: UUID | None
    company_office_id: UUID | None
    job_title: str
    status: JobStatus
    job_type: JobType
    location: str
    days_active: int | None
    days_inactive: int | None
    approved: bool
    start_date: datetime | None
    end_date: datetime | None
    max_positions: int
    open_positions: int
    applications_count: int = 0
    created_at: datetime
    updated_at: datetime


class JobDetailView(JobRead):
    organization: OrganizationSummary | None = None
    manager: UserSummary | None = None
    created_by: UserSummary | None = None
    company_office: OfficeSummary | None = None
    job_detail: JobDetailRead | None = None
    job_notes: list[JobNoteRead] = Field(default_factory=list)
    job_rates: list[JobRateRead] = Field(default_factory=list)
    job_owners: list[JobOwnerDetail] = Field(default_factory=list)


class JobFilterRow(JobRead):
    organization: OrganizationSummary
    manager: UserSummary | None = None
    creator: UserSummary | None = None
    company_office: OfficeSummary | None = None
    job_owners_count: int = 0
    job_rates_count: int = 0
