from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    select,
    text,
)
from sqlalchemy.orm import Mapped, column_property, mapped_column, relationship

from ats.core.database import Base
from ats.organizations.models import CompanyOffice, Organization
from ats.users.models import User, utcnow


def _job_fk(*, unique: bool = False) -> Mapped[uuid.UUID]:
    return mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("jobs.job_id", ondelete="CASCADE"),
        nullable=False,
        index=not unique,
        unique=unique,
    )


def _user_fk(*, nullable: bool) -> Mapped[Any]:
    return mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="SET NULL" if nullable else "CASCADE"),
        nullable=nullable,
        index=True,
    )


class Job(Base):
    __tablename__ = "jobs"

    job_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.organization_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    manager_id: Mapped[uuid.UUID | None] = _user_fk(nullable=True)
    created_by_user_id: Mapped[uuid.UUID | None] = _user_fk(nullable=True)
    company_office_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("company_offices.company_office_id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    job_title: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="DRAFT", server_default="DRAFT")
    job_type: Mapped[str] = mapped_column(String(16), nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    days_active: Mapped[int | None] = mapped_column(Integer, nullable=True)
    days_inactive: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    max_positions: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    open_positions: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="jobs")
    manager: Mapped[User | None] = relationship("User", foreign_keys=[manager_id])
    created_by: Mapped[User | None] = relationship("User", foreign_keys=[created_by_user_id])
    company_office: Mapped[CompanyOffice | None] = relationship("CompanyOffice")
    job_detail: Mapped[JobDetail | None] = relationship(
        "JobDetail",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )
    job_notes: Mapped[list[JobNote]] = relationship(
        "JobNote",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="JobNote.created_at.desc()",
    )
    job_rates: Mapped[list[JobRate]] = relationship(
        "JobRate", back_populates="job", cascade="all, delete-orphan", passive_deletes=True
    )
    job_owners: Mapped[list[JobOwner]] = relationship(
        "JobOwner", back_populates="job", cascade="all, delete-orphan", passive_deletes=True
    )
    applications: Mapped[list[Application]] = relationship(
        "Application", back_populates="job", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index(
            "uq_jobs_org_title_not_closed",
            "organization_id",
            "job_title",
            unique=True,
            postgresql_where=text("status <> 'CLOSED'"),
            sqlite_where=text("status <> 'CLOSED'"),
        ),
    )


class JobDetail(Base):
    __tablename__ = "job_details"

    job_detail_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = _job_fk(unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    skills: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    job: Mapped[Job] = relationship("Job", back_populates="job_detail")


class JobNote(Base):
    __tablename__ = "job_notes"

    job_note_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = _job_fk()
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    job: Mapped[Job] = relationship("Job", back_populates="job_notes")


class JobRate(Base):
    __tablename__ = "job_rates"

    job_rate_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = _job_fk()
    pay_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    bill_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    markup_percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 2), nullable=True)
    overtime_rule: Mapped[str | None] = mapped_column(Text, nullable=True)
    hours: Mapped[int] = mapped_column(Integer, nullable=False)
    ot_pay_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    ot_bill_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    job: Mapped[Job] = relationship("Job", back_populates="job_rates")


class JobOwner(Base):
    __tablename__ = "job_owners"

    job_owner_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = _job_fk()
    user_id: Mapped[uuid.UUID] = _user_fk(nullable=False)
    role_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    job: Mapped[Job] = relationship("Job", back_populates="job_owners")
    user: Mapped[User] = relationship("User")

    __table_args__ = (UniqueConstraint("job_id", "user_id", "role_type", name="uq_job_owners_job_user_role"),)


class Application(Base):
    __tablename__ = "applications"

    application_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = _job_fk()
    applicant_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="APPLIED", server_default="APPLIED")
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    job: Mapped[Job] = relationship("Job", back_populates="applications")


def _child_count(model: type[Base], *, deferred: bool) -> Any:
    return column_property(
        select(func.count())
        .select_from(model)
        .where(model.job_id == Job.job_id)
        .correlate_except(model)
        .scalar_subquery(),
        deferred=deferred,
    )


Job.applications_count = _child_count(Application, deferred=False)
Job.job_owners_count = _child_count(JobOwner, deferred=True)
Job.job_rates_count = _child_count(JobRate, deferred=True)
