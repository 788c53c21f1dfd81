from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Select, and_, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from ats.core.errors import Conflict, NotFound, ValidationFailed, field_error
from ats.organizations.models import (
    CompanyOffice,
    Contract,
    DocumentTitle,
    Organization,
    OrganizationAccounting,
    OrganizationAddress,
    OrganizationContact,
    OrganizationUser,
)
from ats.organizations.schemas import (
    AccountingRead,
    AddressRead,
    CompanyOfficeRead,
    ContactRead,
    ContractRead,
    DocumentTitleRead,
    OrganizationDetail,
    OrganizationRead,
    OrganizationUserRead,
)
from ats.platform.crud import CrudService
from ats.users.models import User


def require_organization(session: Session, organization_id: uuid.UUID) -> Organization:
    organization = session.get(Organization, organization_id)
    if organization is None:
        raise NotFound("Organization not found")
    return organization


def require_user(session: Session, user_id: uuid.UUID, *, message: str = "User not found") -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound(message)
    return user


def organization_name_taken(session: Session, name: str, *, exclude: uuid.UUID | None = None) -> bool:
    stmt = select(Organization.organization_id).where(Organization.name == name)
    if exclude is not None:
        stmt = stmt.where(Organization.organization_id != exclude)
    return session.scalar(stmt) is not None


def office_name_taken(
    session: Session,
    organization_id: uuid.UUID,
    office_name: str,
    *,
    exclude: uuid.UUID | None = None,
) -> bool:
    stmt = select(CompanyOffice.company_office_id).where(
        CompanyOffice.organization_id == organization_id,
        CompanyOffice.office_name == office_name,
    )
    if exclude is not None:
        stmt = stmt.where(CompanyOffice.company_office_id != exclude)
    return session.scalar(stmt) is not None


def address_type_taken(
    session: Session,
    organization_id: uuid.UUID,
    address_type: str,
    *,
    exclude: uuid.UUID | None = None,
) -> bool:
    stmt = select(OrganizationAddress.organization_address_id).where(
        OrganizationAddress.organization_id == organization_id,
        OrganizationAddress.address_type == address_type,
    )
    if exclude is not None:
        stmt = stmt.where(OrganizationAddress.organization_address_id != exclude)
    return session.scalar(stmt) is not None


def accounting_conflict(
    session: Session,
    organization_id: uuid.UUID,
    account_number: str,
    routing_number: str,
    *,
    exclude: set[uuid.UUID] | None = None,
) -> str | None:
    """Message for the first bank account uniqueness rule the numbers break, in checking order."""
    excluded = exclude or set()

    def _taken(*criteria: Any) -> bool:
        stmt = select(OrganizationAccounting.organization_accounting_id).where(*criteria)
        if excluded:
            stmt = stmt.where(OrganizationAccounting.organization_accounting_id.not_in(list(excluded)))
        return session.scalar(stmt.limit(1)) is not None

    if _taken(
        OrganizationAccounting.organization_id == organization_id,
        OrganizationAccounting.account_number == account_number,
        OrganizationAccounting.routing_number == routing_number,
    ):
        return "This bank account is already registered for this organization"
    if _taken(OrganizationAccounting.account_number == account_number):
        return "This account number is already registered"
    if _taken(
        OrganizationAccounting.account_number == account_number,
        OrganizationAccounting.routing_number == routing_number,
    ):
        return "This routing number and account number combination already exists"
    return None


def primary_contact_id(session: Session, organization_id: uuid.UUID) -> uuid.UUID | None:
    return session.scalar(
        select(OrganizationContact.organization_contact_id).where(
            OrganizationContact.organization_id == organization_id,
            OrganizationContact.contact_type == "PRIMARY",
        )
    )


def _count_by(session: Session, column: Any, *criteria: Any, null_label: str | None = None) -> dict[str, int]:
    stmt = select(column, func.count()).group_by(column)
    for clause in criteria:
        stmt = stmt.where(clause)
    counts: dict[str, int] = {}
    for value, total in session.execute(stmt).all():
        key = value if value is not None else null_label
        if key is None:
            continue
        counts[str(key)] = counts.get(str(key), 0) + int(total)
    return counts


class OrganizationService(CrudService):
    model = Organization
    model_name = "Organization"
    id_field = "organization_id"
    read_schema = OrganizationRead

    def base_query(self) -> Select[Any]:
        return select(Organization).options(selectinload(Organization.created_by))

    def to_read(self, row: Organization) -> OrganizationRead:
        creator = row.created_by
        return OrganizationRead.model_validate(row).model_copy(
            update={
                "created_by_name": creator.name if creator is not None else None,
                "created_by_email": creator.email if creator is not None else None,
            }
        )

    def load_detail(self, session: Session, organization_id: uuid.UUID) -> Organization:
        stmt = (
            select(Organization)
            .where(Organization.organization_id == organization_id)
            .options(
                selectinload(Organization.created_by),
                selectinload(Organization.company_offices),
                selectinload(Organization.accounting),
                selectinload(Organization.addresses),
                selectinload(Organization.contacts),
                selectinload(Organization.organization_users),
                selectinload(Organization.document_titles),
                selectinload(Organization.documents),
                selectinload(Organization.licenses),
                selectinload(Organization.contracts),
            )
            .execution_options(populate_existing=True)
        )
        organization = session.scalar(stmt)
        if organization is None:
            raise NotFound("Organization not found")
        return organization

    def detail(self, session: Session, organization_id: uuid.UUID) -> OrganizationDetail:
        row = self.load_detail(session, organization_id)
        summary = self.to_read(row)
        return OrganizationDetail.model_validate(row).model_copy(
            update={"created_by_name": summary.created_by_name, "created_by_email": summary.created_by_email}
        )

    def get(self, session: Session, entity_id: uuid.UUID) -> OrganizationDetail:
        return self.detail(session, entity_id)

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_user(session, payload["created_by_user_id"])
        if organization_name_taken(session, payload["name"]):
            raise Conflict("Organization with this name already exists", [field_error("name", "Name is already in use")])
        return payload


class CompanyOfficeService(CrudService):
    model = CompanyOffice
    model_name = "Company Office"
    id_field = "company_office_id"
    read_schema = CompanyOfficeRead

    def _clear_primary(self, session: Session, organization_id: uuid.UUID, *, keep: uuid.UUID | None = None) -> None:
        stmt = (
            update(CompanyOffice)
            .where(CompanyOffice.organization_id == organization_id, CompanyOffice.is_primary.is_(True))
            .values(is_primary=False)
        )
        if keep is not None:
            stmt = stmt.where(CompanyOffice.company_office_id != keep)
        session.execute(stmt)

    @staticmethod
    def _check_address(office_type: str, address: str | None) -> None:
        if office_type != "REMOTE" and not (address or "").strip():
            raise ValidationFailed(
                "Address is required for non-remote offices",
                [field_error("address", "Address is required for non-remote offices")],
            )

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_organization(session, payload["organization_id"])
        self._check_address(payload["type"], payload.get("address"))
        if office_name_taken(session, payload["organization_id"], payload["office_name"]):
            raise Conflict("Office with this name already exists for this organization")
        if payload.get("is_primary"):
            self._clear_primary(session, payload["organization_id"])
        return payload

    def before_update(self, session: Session, row: CompanyOffice, payload: dict[str, Any]) -> dict[str, Any]:
        self._check_address(
            payload.get("type") or row.type,
            payload["address"] if "address" in payload else row.address,
        )
        office_name = payload.get("office_name")
        if office_name and office_name != row.office_name and office_name_taken(
            session, row.organization_id, office_name, exclude=row.company_office_id
        ):
            raise Conflict("Office with this name already exists for this organization")
        if payload.get("is_primary"):
            self._clear_primary(session, row.organization_id, keep=row.company_office_id)
        return payload

    def primary(self, session: Session, organization_id: uuid.UUID) -> CompanyOfficeRead:
        require_organization(session, organization_id)
        office = session.scalar(
            select(CompanyOffice).where(
                CompanyOffice.organization_id == organization_id,
                CompanyOffice.is_primary.is_(True),
            )
        )
        if office is None:
            raise NotFound("Primary office not found for this organization")
        return CompanyOfficeRead.model_validate(office)


class AccountingService(CrudService):
    model = OrganizationAccounting
    model_name = "Organization Accounting"
    id_field = "organization_accounting_id"
    read_schema = AccountingRead

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_organization(session, payload["organization_id"])
        message = accounting_conflict(
            session,
            payload["organization_id"],
            payload["account_number"],
            payload["routing_number"],
        )
        if message is not None:
            raise Conflict(message)
        return payload

    def before_update(self, session: Session, row: OrganizationAccounting, payload: dict[str, Any]) -> dict[str, Any]:
        if "account_number" in payload or "routing_number" in payload:
            message = accounting_conflict(
                session,
                row.organization_id,
                payload.get("account_number") or row.account_number,
                payload.get("routing_number") or row.routing_number,
                exclude={row.organization_accounting_id},
            )
            if message is not None:
                raise Conflict(message)
        return payload

    def stats(self, session: Session) -> dict[str, Any]:
        return {
            "total": session.scalar(select(func.count()).select_from(OrganizationAccounting)) or 0,
            "by_account_type": _count_by(session, OrganizationAccounting.account_type),
            "by_country": _count_by(session, OrganizationAccounting.country),
        }


class AddressService(CrudService):
    model = OrganizationAddress
    model_name = "Organization Address"
    id_field = "organization_address_id"
    read_schema = AddressRead

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_organization(session, payload["organization_id"])
        if address_type_taken(session, payload["organization_id"], payload["address_type"]):
            raise Conflict(f"{payload['address_type']} address already exists for this organization")
        return payload

    def before_update(self, session: Session, row: OrganizationAddress, payload: dict[str, Any]) -> dict[str, Any]:
        address_type = payload.get("address_type")
        if address_type and address_type != row.address_type and address_type_taken(
            session, row.organization_id, address_type, exclude=row.organization_address_id
        ):
            raise Conflict(f"{address_type} address already exists for this organization")
        return payload


class ContactService(CrudService):
    model = OrganizationContact
    model_name = "Organization Contact"
    id_field = "organization_contact_id"
    read_schema = ContactRead

    def _check_duplicate(
        self,
        session: Session,
        organization_id: uuid.UUID,
        email: str,
        contact_type: str,
        *,
        exclude: uuid.UUID | None = None,
    ) -> None:
        if contact_type == "PRIMARY":
            current = primary_contact_id(session, organization_id)
            if current is not None and current != exclude:
                raise Conflict("Primary contact already exists for this organization")
        stmt = select(OrganizationContact.organization_contact_id).where(
            OrganizationContact.organization_id == organization_id,
            OrganizationContact.email == email,
            OrganizationContact.contact_type == contact_type,
        )
        if exclude is not None:
            stmt = stmt.where(OrganizationContact.organization_contact_id != exclude)
        if session.scalar(stmt) is not None:
            raise Conflict("Contact with this email and type already exists for this organization")

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_organization(session, payload["organization_id"])
        self._check_duplicate(session, payload["organization_id"], payload["email"], payload["contact_type"])
        return payload

    def before_update(self, session: Session, row: OrganizationContact, payload: dict[str, Any]) -> dict[str, Any]:
        if "email" in payload or "contact_type" in payload:
            self._check_duplicate(
                session,
                row.organization_id,
                payload.get("email") or row.email,
                payload.get("contact_type") or row.contact_type,
                exclude=row.organization_contact_id,
            )
        return payload

    def primary(self, session: Session, organization_id: uuid.UUID) -> ContactRead:
        require_organization(session, organization_id)
        contact = session.scalar(
            select(OrganizationContact).where(
                OrganizationContact.organization_id == organization_id,
                OrganizationContact.contact_type == "PRIMARY",
            )
        )
        if contact is None:
            raise NotFound("Primary contact not found for this organization")
        return ContactRead.model_validate(contact)

    def search(self, session: Session, query: str | None, *, page: Any = None, limit: Any = None) -> dict[str, Any]:
        term = (query or "").strip()
        if len(term) < 2:
            raise ValidationFailed(
                "Search query must be at least 2 characters long",
                [field_error("q", "Search query must be at least 2 characters long")],
            )
        pattern = f"%{term}%"
        return self.list(
            session,
            page=page,
            limit=limit,
            where=[
                or_(
                    OrganizationContact.name.ilike(pattern),
                    OrganizationContact.email.ilike(pattern),
                    OrganizationContact.phone.ilike(pattern),
                )
            ],
        )


class OrganizationUserService(CrudService):
    model = OrganizationUser
    model_name = "Organization User"
    id_field = "organization_user_id"
    read_schema = OrganizationUserRead

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_organization(session, payload["organization_id"])
        require_user(session, payload["user_id"])
        existing = session.scalar(
            select(OrganizationUser.organization_user_id).where(
                OrganizationUser.organization_id == payload["organization_id"],
                OrganizationUser.user_id == payload["user_id"],
            )
        )
        if existing is not None:
            raise Conflict("User is already assigned to this organization")
        return payload


class DocumentTitleService(CrudService):
    model = DocumentTitle
    model_name = "Organization Document Title"
    id_field = "document_title_id"
    read_schema = DocumentTitleRead

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_organization(session, payload["organization_id"])
        payload["document_title"] = payload["document_title"].strip()
        return payload


class ContractService(CrudService):
    model = Contract
    model_name = "Contract"
    id_field = "contract_id"
    read_schema = ContractRead

    def _check_duplicate(
        self,
        session: Session,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        contract_name: str,
        *,
        exclude: uuid.UUID | None = None,
    ) -> None:
        stmt = select(Contract.contract_id).where(
            Contract.organization_id == organization_id,
            Contract.user_id == user_id,
            Contract.contract_name == contract_name,
        )
        if exclude is not None:
            stmt = stmt.where(Contract.contract_id != exclude)
        existing = session.scalar(stmt)
        if existing is not None:
            raise Conflict(
                "Contract with this name already exists for this organization and user",
                [field_error("duplicate", f"Contract already exists with contract_id: {existing}")],
            )

    def before_create(self, session: Session, payload: dict[str, Any]) -> dict[str, Any]:
        require_organization(session, payload["organization_id"])
        require_user(session, payload["user_id"])
        self._check_duplicate(session, payload["organization_id"], payload["user_id"], payload["contract_name"])
        return payload

    def before_update(self, session: Session, row: Contract, payload: dict[str, Any]) -> dict[str, Any]:
        if payload.get("organization_id") is not None:
            require_organization(session, payload["organization_id"])
        if payload.get("user_id") is not None:
            require_user(session, payload["user_id"])
        if {"organization_id", "user_id", "contract_name"} & payload.keys():
            self._check_duplicate(
                session,
                payload.get("organization_id") or row.organization_id,
                payload.get("user_id") or row.user_id,
                payload.get("contract_name") or row.contract_name,
                exclude=row.contract_id,
            )
        return payload

    def pending(self, session: Session, *, page: Any = None, limit: Any = None) -> dict[str, Any]:
        return self.list(
            session,
            page=page,
            limit=limit,
            where=[or_(Contract.signed_status.is_(None), Contract.signed_status != "SIGNED")],
        )

    def signed(self, session: Session, *, page: Any = None, limit: Any = None) -> dict[str, Any]:
        return _SignedContracts().list(
            session,
            page=page,
            limit=limit,
            where=[and_(Contract.signed_status == "SIGNED", Contract.signed_at.is_not(None))],
        )

    def stats(self, session: Session) -> dict[str, Any]:
        by_contractor = _count_by(session, Contract.is_organization_contractor)
        return {
            "total": session.scalar(select(func.count()).select_from(Contract)) or 0,
            "by_status": _count_by(session, Contract.status),
            "by_signed_status": _count_by(session, Contract.signed_status, null_label="NOT_SIGNED"),
            "by_sent_status": _count_by(session, Contract.sent_status, null_label="NOT_SENT"),
            "by_contractor_type": {
                "Organization Contractor": by_contractor.get("True", 0),
                "Direct Contractor": by_contractor.get("False", 0),
            },
        }


class _SignedContracts(ContractService):
    def order_by(self) -> tuple[Any, ...]:
        return (Contract.signed_at.desc(), Contract.contract_id.desc())


organization_service = OrganizationService()
company_office_service = CompanyOfficeService()
accounting_service = AccountingService()
address_service = AddressService()
contact_service = ContactService()
organization_user_service = OrganizationUserService()
document_title_service = DocumentTitleService()
contract_service = ContractService()
