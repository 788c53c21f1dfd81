"""create ats tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return columns


def _organization_column() -> sa.Column:
    return sa.Column("organization_id", sa.Uuid(), nullable=False)


def _organization_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["organization_id"], ["organizations.organization_id"], ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("user_id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "user_activities",
        sa.Column("activity_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_actions", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("activity_id"),
        sa.UniqueConstraint("user_id", name="uq_user_activities_user"),
    )

    op.create_table(
        "organizations",
        sa.Column("organization_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("created_by_user_id", sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.user_id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("organization_id"),
        sa.UniqueConstraint("name", name="uq_organizations_name"),
    )

    op.create_table(
        "company_offices",
        sa.Column("company_office_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("office_name", sa.Text(), nullable=False),
        sa.Column("city", sa.Text(), nullable=False),
        sa.Column("state", sa.Text(), nullable=False),
        sa.Column("country", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=16), nullable=False, server_default="ONSITE"),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        _organization_fk(),
        sa.PrimaryKeyConstraint("company_office_id"),
        sa.UniqueConstraint("organization_id", "office_name", name="uq_company_offices_org_name"),
    )
    op.create_index("ix_company_offices_organization_id", "company_offices", ["organization_id"], unique=False)
    op.create_index(
        "uq_company_offices_primary",
        "company_offices",
        ["organization_id"],
        unique=True,
        postgresql_where=sa.text("is_primary = true"),
        sqlite_where=sa.text("is_primary = 1"),
    )

    op.create_table(
        "organization_accounting",
        sa.Column("organization_accounting_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("account_type", sa.String(length=64), nullable=False),
        sa.Column("bank_name", sa.Text(), nullable=False),
        sa.Column("account_number", sa.String(length=64), nullable=False),
        sa.Column("routing_number", sa.String(length=64), nullable=False),
        sa.Column("country", sa.String(length=64), nullable=False),
        *_timestamps(),
        _organization_fk(),
        sa.PrimaryKeyConstraint("organization_accounting_id"),
        sa.UniqueConstraint("account_number", name="uq_organization_accounting_account_number"),
        sa.UniqueConstraint("account_number", "routing_number", name="uq_organization_accounting_account_routing"),
        sa.UniqueConstraint(
            "organization_id",
            "account_number",
            "routing_number",
            name="uq_organization_accounting_org_account_routing",
        ),
    )
    op.create_index(
        "ix_organization_accounting_organization_id",
        "organization_accounting",
        ["organization_id"],
        unique=False,
    )

    op.create_table(
        "organization_addresses",
        sa.Column("organization_address_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("address_type", sa.String(length=16), nullable=False),
        sa.Column("address1", sa.Text(), nullable=False),
        sa.Column("address2", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=False),
        sa.Column("state", sa.Text(), nullable=False),
        sa.Column("zip", sa.String(length=32), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        *_timestamps(),
        _organization_fk(),
        sa.PrimaryKeyConstraint("organization_address_id"),
        sa.UniqueConstraint("organization_id", "address_type", name="uq_organization_addresses_org_type"),
    )
    op.create_index(
        "ix_organization_addresses_organization_id",
        "organization_addresses",
        ["organization_id"],
        unique=False,
    )

    op.create_table(
        "organization_contacts",
        sa.Column("organization_contact_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=False),
        sa.Column("contact_type", sa.String(length=16), nullable=False),
        *_timestamps(),
        _organization_fk(),
        sa.PrimaryKeyConstraint("organization_contact_id"),
        sa.UniqueConstraint(
            "organization_id",
            "email",
            "contact_type",
            name="uq_organization_contacts_org_email_type",
        ),
    )
    op.create_index(
        "ix_organization_contacts_organization_id",
        "organization_contacts",
        ["organization_id"],
        unique=False,
    )
    op.create_index(
        "uq_organization_contacts_primary",
        "organization_contacts",
        ["organization_id"],
        unique=True,
        postgresql_where=sa.text("contact_type = 'PRIMARY'"),
        sqlite_where=sa.text("contact_type = 'PRIMARY'"),
    )

    op.create_table(
        "organization_users",
        sa.Column("organization_user_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("division", sa.Text(), nullable=True),
        sa.Column("department", sa.Text(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("work_phone", sa.String(length=64), nullable=True),
        *_timestamps(updated=False),
        _organization_fk(),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("organization_user_id"),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_organization_users_org_user"),
    )
    op.create_index("ix_organization_users_organization_id", "organization_users", ["organization_id"], unique=False)
    op.create_index("ix_organization_users_user_id", "organization_users", ["user_id"], unique=False)

    op.create_table(
        "organization_document_titles",
        sa.Column("document_title_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("document_title", sa.Text(), nullable=False),
        *_timestamps(updated=False),
        _organization_fk(),
        sa.PrimaryKeyConstraint("document_title_id"),
    )
    op.create_index(
        "ix_organization_document_titles_organization_id",
        "organization_document_titles",
        ["organization_id"],
        unique=False,
    )

    op.create_table(
        "organization_documents",
        sa.Column("document_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("document_title_id", sa.Uuid(), nullable=False),
        sa.Column("document_type", sa.String(length=64), nullable=False),
        sa.Column("document_name", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("file", sa.Text(), nullable=False),
        sa.Column("privacy", sa.String(length=16), nullable=False),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        sa.Column("upload_date", sa.DateTime(timezone=True), nullable=False),
        _organization_fk(),
        sa.ForeignKeyConstraint(
            ["document_title_id"],
            ["organization_document_titles.document_title_id"],
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("document_id"),
    )
    op.create_index(
        "ix_organization_documents_organization_id",
        "organization_documents",
        ["organization_id"],
        unique=False,
    )
    op.create_index(
        "ix_organization_documents_document_title_id",
        "organization_documents",
        ["document_title_id"],
        unique=False,
    )

    op.create_table(
        "organization_licenses",
        sa.Column("organization_license_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("license_name", sa.Text(), nullable=False),
        sa.Column("license_document", sa.Text(), nullable=False),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        *_timestamps(),
        _organization_fk(),
        sa.PrimaryKeyConstraint("organization_license_id"),
        sa.UniqueConstraint("organization_id", "license_name", name="uq_organization_licenses_org_name"),
    )
    op.create_index(
        "ix_organization_licenses_organization_id",
        "organization_licenses",
        ["organization_id"],
        unique=False,
    )

    op.create_table(
        "contracts",
        sa.Column("contract_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("contract_name", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("is_organization_contractor", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("sent_status", sa.String(length=32), nullable=True),
        sa.Column("signed_status", sa.String(length=32), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        _organization_fk(),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("contract_id"),
        sa.UniqueConstraint("organization_id", "user_id", "contract_name", name="uq_contracts_org_user_name"),
    )
    op.create_index("ix_contracts_organization_id", "contracts", ["organization_id"], unique=False)
    op.create_index("ix_contracts_user_id", "contracts", ["user_id"], unique=False)

    op.create_table(
        "jobs",
        sa.Column("job_id", sa.Uuid(), nullable=False),
        _organization_column(),
        sa.Column("manager_id", sa.Uuid(), nullable=True),
        sa.Column("created_by_user_id", sa.Uuid(), nullable=True),
        sa.Column("company_office_id", sa.Uuid(), nullable=True),
        sa.Column("job_title", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="DRAFT"),
        sa.Column("job_type", sa.String(length=16), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("days_active", sa.Integer(), nullable=True),
        sa.Column("days_inactive", sa.Integer(), nullable=True),
        sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("max_positions", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("open_positions", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        _organization_fk(),
        sa.ForeignKeyConstraint(["manager_id"], ["users.user_id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.user_id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["company_office_id"], ["company_offices.company_office_id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("job_id"),
    )
    op.create_index("ix_jobs_organization_id", "jobs", ["organization_id"], unique=False)
    op.create_index("ix_jobs_manager_id", "jobs", ["manager_id"], unique=False)
    op.create_index("ix_jobs_created_by_user_id", "jobs", ["created_by_user_id"], unique=False)
    op.create_index("ix_jobs_company_office_id", "jobs", ["company_office_id"], unique=False)
    op.create_index(
        "uq_jobs_org_title_not_closed",
        "jobs",
        ["organization_id", "job_title"],
        unique=True,
        postgresql_where=sa.text("status <> 'CLOSED'"),
        sqlite_where=sa.text("status <> 'CLOSED'"),
    )

    op.create_table(
        "job_details",
        sa.Column("job_detail_id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("skills", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["job_id"], ["jobs.job_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("job_detail_id"),
        sa.UniqueConstraint("job_id"),
    )

    op.create_table(
        "job_notes",
        sa.Column("job_note_id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["job_id"], ["jobs.job_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("job_note_id"),
    )
    op.create_index("ix_job_notes_job_id", "job_notes", ["job_id"], unique=False)

    op.create_table(
        "job_rates",
        sa.Column("job_rate_id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("pay_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("bill_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("markup_percentage", sa.Numeric(7, 2), nullable=True),
        sa.Column("overtime_rule", sa.Text(), nullable=True),
        sa.Column("hours", sa.Integer(), nullable=False),
        sa.Column("ot_pay_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("ot_bill_rate", sa.Numeric(12, 2), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["job_id"], ["jobs.job_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("job_rate_id"),
    )
    op.create_index("ix_job_rates_job_id", "job_rates", ["job_id"], unique=False)

    op.create_table(
        "job_owners",
        sa.Column("job_owner_id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("role_type", sa.String(length=16), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["job_id"], ["jobs.job_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("job_owner_id"),
        sa.UniqueConstraint("job_id", "user_id", "role_type", name="uq_job_owners_job_user_role"),
    )
    op.create_index("ix_job_owners_job_id", "job_owners", ["job_id"], unique=False)
    op.create_index("ix_job_owners_user_id", "job_owners", ["user_id"], unique=False)

    op.create_table(
        "applications",
        sa.Column("application_id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("applicant_id", sa.Uuid(), nullable=True),
        sa.Column("source", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="APPLIED"),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["job_id"], ["jobs.job_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("application_id"),
    )
    op.create_index("ix_applications_job_id", "applications", ["job_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_applications_job_id", table_name="applications")
    op.drop_table("applications")
    op.drop_index("ix_job_owners_user_id", table_name="job_owners")
    op.drop_index("ix_job_owners_job_id", table_name="job_owners")
    op.drop_table("job_owners")
    op.drop_index("ix_job_rates_job_id", table_name="job_rates")
    op.drop_table("job_rates")
    op.drop_index("ix_job_notes_job_id", table_name="job_notes")
    op.drop_table("job_notes")
    op.drop_table("job_details")
    op.drop_index("uq_jobs_org_title_not_closed", table_name="jobs")
    op.drop_index("ix_jobs_company_office_id", table_name="jobs")
    op.drop_index("ix_jobs_created_by_user_id", table_name="jobs")
    op.drop_index("ix_jobs_manager_id", table_name="jobs")
    op.drop_index("ix_jobs_organization_id", table_name="jobs")
    op.drop_table("jobs")

    op.drop_index("ix_contracts_user_id", table_name="contracts")
    op.drop_index("ix_contracts_organization_id", table_name="contracts")
    op.drop_table("contracts")
    op.drop_index("ix_organization_licenses_organization_id", table_name="organization_licenses")
    op.drop_table("organization_licenses")
    op.drop_index("ix_organization_documents_document_title_id", table_name="organization_documents")
    op.drop_index("ix_organization_documents_organization_id", table_name="organization_documents")
    op.drop_table("organization_documents")
    op.drop_index("ix_organization_document_titles_organization_id", table_name="organization_document_titles")
    op.drop_table("organization_document_titles")
    op.drop_index("ix_organization_users_user_id", table_name="organization_users")
    op.drop_index("ix_organization_users_organization_id", table_name="organization_users")
    op.drop_table("organization_users")
    op.drop_index("uq_organization_contacts_primary", table_name="organization_contacts")
    op.drop_index("ix_organization_contacts_organization_id", table_name="organization_contacts")
    op.drop_table("organization_contacts")
    op.drop_index("ix_organization_addresses_organization_id", table_name="organization_addresses")
    op.drop_table("organization_addresses")
    op.drop_index("ix_organization_accounting_organization_id", table_name="organization_accounting")
    op.drop_table("organization_accounting")
    op.drop_index("uq_company_offices_primary", table_name="company_offices")
    op.drop_index("ix_company_offices_organization_id", table_name="company_offices")
    op.drop_table("company_offices")
    op.drop_table("organizations")

    op.drop_table("user_activities")
    op.drop_table("users")
