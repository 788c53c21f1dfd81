from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ats.core.database import Base
from ats.users.models import User, utcnow

if TYPE_CHECKING:
    from ats.jobs.models import Job


def _organization_fk() -> Mapped[uuid.UUID]:
    return mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.organization_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _children(target: str) -> Mapped[list]:  # type: ignore[type-arg]
    return relationship(
        target,
        back_populates="organization",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Organization(Base):
    __tablename__ = "organizations"

    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE", server_default="ACTIVE")
    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    created_by: Mapped[User | None] = relationship("User", foreign_keys=[created_by_user_id])
    company_offices: Mapped[list[CompanyOffice]] = _children("CompanyOffice")
    accounting: Mapped[list[OrganizationAccounting]] = _children("OrganizationAccounting")
    addresses: Mapped[list[OrganizationAddress]] = _children("OrganizationAddress")
    contacts: Mapped[list[OrganizationContact]] = _children("OrganizationContact")
    organization_users: Mapped[list[OrganizationUser]] = _children("OrganizationUser")
    document_titles: Mapped[list[DocumentTitle]] = _children("DocumentTitle")
    documents: Mapped[list[OrganizationDocument]] = _children("OrganizationDocument")
    licenses: Mapped[list[OrganizationLicense]] = _children("OrganizationLicense")
    contracts: Mapped[list[Contract]] = _children("Contract")
    jobs: Mapped[list[Job]] = _children("Job")

    __table_args__ = (UniqueConstraint("name", name="uq_organizations_name"),)


class CompanyOffice(Base):
    __tablename__ = "company_offices"

    company_office_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = _organization_fk()
    office_name: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    country: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="ONSITE", server_default="ONSITE")
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="company_offices")

    __table_args__ = (
        UniqueConstraint("organization_id", "office_name", name="uq_company_offices_org_name"),
        Index(
            "uq_company_offices_primary",
            "organization_id",
            unique=True,
            postgresql_where=text("is_primary = true"),
            sqlite_where=text("is_primary = 1"),
        ),
    )


class OrganizationAccounting(Base):
    __tablename__ = "organization_accounting"

    organization_accounting_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = _organization_fk()
    account_type: Mapped[str] = mapped_column(String(64), nullable=False)
    bank_name: Mapped[str] = mapped_column(Text, nullable=False)
    account_number: Mapped[str] = mapped_column(String(64), nullable=False)
    routing_number: Mapped[str] = mapped_column(String(64), nullable=False)
    country: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="accounting")

    __table_args__ = (
        UniqueConstraint("account_number", name="uq_organization_accounting_account_number"),
        UniqueConstraint("account_number", "routing_number", name="uq_organization_accounting_account_routing"),
        UniqueConstraint(
            "organization_id",
            "account_number",
            "routing_number",
            name="uq_organization_accounting_org_account_routing",
        ),
    )


class OrganizationAddress(Base):
    __tablename__ = "organization_addresses"

    organization_address_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = _organization_fk()
    address_type: Mapped[str] = mapped_column(String(16), nullable=False)
    address1: Mapped[str] = mapped_column(Text, nullable=False)
    address2: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    zip: Mapped[str] = mapped_column(String(32), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="addresses")

    __table_args__ = (UniqueConstraint("organization_id", "address_type", name="uq_organization_addresses_org_type"),)


class OrganizationContact(Base):
    __tablename__ = "organization_contacts"

    organization_contact_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = _organization_fk()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), nullable=False)
    contact_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="contacts")

    __table_args__ = (
        UniqueConstraint("organization_id", "email", "contact_type", name="uq_organization_contacts_org_email_type"),
        Index(
            "uq_organization_contacts_primary",
            "organization_id",
            unique=True,
            postgresql_where=text("contact_type = 'PRIMARY'"),
            sqlite_where=text("contact_type = 'PRIMARY'"),
        ),
    )


class OrganizationUser(Base):
    __tablename__ = "organization_users"

    organization_user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = _organization_fk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    division: Mapped[str | None] = mapped_column(Text, nullable=True)
    department: Mapped[str | None] = mapped_column(Text, nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    work_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="organization_users")
    user: Mapped[User] = relationship("User")

    __table_args__ = (UniqueConstraint("organization_id", "user_id", name="uq_organization_users_org_user"),)


class DocumentTitle(Base):
    __tablename__ = "organization_document_titles"

    document_title_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = _organization_fk()
    document_title: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="document_titles")


class OrganizationDocument(Base):
    __tablename__ = "organization_documents"

    document_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = _organization_fk()
    document_title_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("organization_document_titles.document_title_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type: Mapped[str] = mapped_column(String(64), nullable=False)
    document_name: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    file: Mapped[str] = mapped_column(Text, nullable=False, deferred=True)
    privacy: Mapped[str] = mapped_column(String(16), nullable=False)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    upload_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="documents")
    document_title: Mapped[DocumentTitle] = relationship("DocumentTitle")
    user: Mapped[User] = relationship("User")


class OrganizationLicense(Base):
    __tablename__ = "organization_licenses"

    organization_license_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = _organization_fk()
    license_name: Mapped[str] = mapped_column(Text, nullable=False)
    license_document: Mapped[str] = mapped_column(Text, nullable=False, deferred=True)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="licenses")

    __table_args__ = (UniqueConstraint("organization_id", "license_name", name="uq_organization_licenses_org_name"),)


class Contract(Base):
    __tablename__ = "contracts"

    contract_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = _organization_fk()
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contract_name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    is_organization_contractor: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    sent_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    signed_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    organization: Mapped[Organization] = relationship("Organization", back_populates="contracts")
    user: Mapped[User] = relationship("User")

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", "contract_name", name="uq_contracts_org_user_name"),
    )
