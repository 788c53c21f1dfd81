from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ats.core.database import bounded_transaction
from ats.core.errors import Conflict, NotFound, ValidationFailed, field_error
from ats.organizations.models import (
    CompanyOffice,
    Organization,
    OrganizationAccounting,
    OrganizationAddress,
    OrganizationContact,
    OrganizationUser,
)
from ats.organizations.schemas import (
    AccountingInput,
    AccountingPatch,
    AddressInput,
    AddressPatch,
    CompanyOfficeInput,
    CompanyOfficePatch,
    ContactInput,
    ContactPatch,
    OrganizationCompleteCreate,
    OrganizationCompleteUpdate,
    OrganizationUserInput,
)
from ats.organizations.service import (
    accounting_conflict,
    organization_name_taken,
    organization_service,
    require_user,
)
from ats.platform.nested import (
    ChildAction,
    ChildCollection,
    ChildOperation,
    ExclusiveFlag,
    apply_operations,
    create_operations,
    ensure_targets_exist,
    resolve_operations,
    simulate,
    snapshot,
    traced_upsert,
)
from ats.users.activity import activity_service, resolve_actor
from ats.users.service import user_service


logger = logging.getLogger("ats.organizations")

OFFICES = ChildCollection(
    name="company_offices",
    label="Company office",
    model=CompanyOffice,
    id_field="company_office_id",
    parent_field="organization_id",
    create_schema=CompanyOfficeInput,
    update_schema=CompanyOfficePatch,
    exclusive=ExclusiveFlag(field="is_primary", on=True),
)
ACCOUNTING = ChildCollection(
    name="accounting",
    label="Organization accounting",
    model=OrganizationAccounting,
    id_field="organization_accounting_id",
    parent_field="organization_id",
    create_schema=AccountingInput,
    update_schema=AccountingPatch,
)
ADDRESSES = ChildCollection(
    name="addresses",
    label="Organization address",
    model=OrganizationAddress,
    id_field="organization_address_id",
    parent_field="organization_id",
    create_schema=AddressInput,
    update_schema=AddressPatch,
)
CONTACTS = ChildCollection(
    name="contacts",
    label="Organization contact",
    model=OrganizationContact,
    id_field="organization_contact_id",
    parent_field="organization_id",
    create_schema=ContactInput,
    update_schema=ContactPatch,
    exclusive=ExclusiveFlag(field="contact_type", on="PRIMARY"),
)
ORGANIZATION_USERS = ChildCollection(
    name="organization_users",
    label="Organization user",
    model=OrganizationUser,
    id_field="organization_user_id",
    parent_field="organization_id",
    create_schema=OrganizationUserInput,
)

UPDATE_COLLECTIONS = (OFFICES, ACCOUNTING, ADDRESSES, CONTACTS)
PARENT_FIELDS = ("name", "website", "status", "phone")

Rows = Sequence[Mapping[str, Any]]


def check_offices(final: Rows) -> None:
    if sum(1 for office in final if office.get("is_primary")) > 1:
        raise ValidationFailed(
            "Only one company office can be marked as primary",
            [field_error("company_offices", "Only one company office can be marked as primary")],
        )
    for office in final:
        if office.get("type") != "REMOTE" and not (office.get("address") or "").strip():
            raise ValidationFailed(
                "Address is required for non-remote offices",
                [field_error("company_offices", f"Office {office.get('office_name')} requires an address")],
            )


def check_office_names(final: Rows) -> None:
    names = Counter(office.get("office_name") for office in final)
    duplicated = [name for name, count in names.items() if count > 1]
    if duplicated:
        raise Conflict(
            "Office with this name already exists for this organization",
            [field_error("company_offices", f"Duplicate office name: {duplicated[0]}")],
        )


def check_addresses(final: Rows) -> None:
    types = Counter(address.get("address_type") for address in final)
    for address_type, count in types.items():
        if count > 1:
            raise Conflict(f"{address_type} address already exists for this organization")


def check_contacts(final: Rows, *, creating: bool, had_contacts: bool = False) -> None:
    primaries = sum(1 for contact in final if contact.get("contact_type") == "PRIMARY")
    if creating:
        if final and primaries == 0:
            raise ValidationFailed(
                "At least one PRIMARY contact is required when adding contacts",
                [field_error("contacts", "At least one PRIMARY contact is required when adding contacts")],
            )
    elif (had_contacts or final) and primaries == 0:
        raise ValidationFailed(
            "At least one PRIMARY contact must exist",
            [field_error("contacts", "At least one PRIMARY contact must exist")],
        )
    if primaries > 1:
        raise Conflict("Primary contact already exists for this organization")


def check_accounting(
    session: Session,
    organization_id: uuid.UUID,
    final: Rows,
    existing_ids: set[uuid.UUID],
) -> None:
    """Uniqueness of bank accounts within the final collection, then against other organizations."""
    pairs = Counter((row.get("account_number"), row.get("routing_number")) for row in final)
    if any(count > 1 for count in pairs.values()):
        raise Conflict("This bank account is already registered for this organization")
    numbers = Counter(row.get("account_number") for row in final)
    if any(count > 1 for count in numbers.values()):
        raise Conflict("This account number is already registered")

    for row in final:
        message = accounting_conflict(
            session,
            organization_id,
            row["account_number"],
            row["routing_number"],
            exclude=existing_ids,
        )
        if message is not None:
            raise Conflict(message)


class OrganizationCompleteService:
    """Creates or mutates an organization together with its child collections in one transaction."""

    def create(
        self,
        session: Session,
        dto: OrganizationCompleteCreate,
        *,
        actor_id: uuid.UUID | None = None,
    ) -> dict[str, Any]:
        with traced_upsert("organization", "create") as span:
            require_user(session, dto.created_by_user_id)
            org_user_ids = [member.user_id for member in dto.organization_users]
            if len(set(org_user_ids)) != len(org_user_ids):
                raise ValidationFailed(
                    "Duplicate user IDs found in organization_users",
                    [field_error("organization_users", "Each user can only be assigned once")],
                )
            if len(user_service.existing_ids(session, set(org_user_ids))) != len(set(org_user_ids)):
                raise NotFound("One or more users not found")

            if organization_name_taken(session, dto.name):
                raise Conflict("Organization with this name already exists", [field_error("name", "Name is already in use")])

            organization_id = uuid.uuid4()
            plan = [
                (OFFICES, create_operations(dto.company_offices)),
                (ACCOUNTING, create_operations(dto.accounting)),
                (ADDRESSES, create_operations(dto.addresses)),
                (CONTACTS, create_operations(dto.contacts)),
                (ORGANIZATION_USERS, create_operations(dto.organization_users)),
            ]
            check_offices(simulate(OFFICES, [], plan[0][1]))
            check_office_names(simulate(OFFICES, [], plan[0][1]))
            check_contacts(simulate(CONTACTS, [], plan[3][1]), creating=True)
            check_addresses(simulate(ADDRESSES, [], plan[2][1]))
            check_accounting(session, organization_id, simulate(ACCOUNTING, [], plan[1][1]), set())

            with bounded_transaction(session) as budget:
                organization = Organization(
                    organization_id=organization_id,
                    name=dto.name,
                    website=dto.website,
                    status=dto.status,
                    phone=dto.phone,
                    created_by_user_id=dto.created_by_user_id,
                )
                session.add(organization)
                session.flush()
                changes = {
                    collection.name: apply_operations(session, collection, organization_id, operations, budget).as_dict()
                    for collection, operations in plan
                }

            span.set_attribute("organization_id", str(organization_id))
            logger.info(
                "organization.complete_created",
                extra={
                    "entity_type": "ORGANIZATION",
                    "entity_id": str(organization_id),
                    "changes": changes,
                    "elapsed_ms": budget.elapsed_ms(),
                },
            )

        activity_service.record(
            session,
            resolve_actor(session, actor_id, dto.created_by_user_id),
            action_type="CREATE",
            entity_type="ORGANIZATION",
            entity_id=organization_id,
            entity_name=dto.name,
        )
        return {"organization": organization_service.detail(session, organization_id), "changes": changes}

    def update(
        self,
        session: Session,
        organization_id: uuid.UUID,
        dto: OrganizationCompleteUpdate,
        *,
        actor_id: uuid.UUID | None = None,
    ) -> dict[str, Any]:
        with traced_upsert("organization", "update") as span:
            span.set_attribute("organization_id", str(organization_id))
            organization = organization_service.load_detail(session, organization_id)

            plan: list[tuple[ChildCollection, list[ChildOperation]]] = [
                (collection, resolve_operations(collection, getattr(dto, collection.name)))
                for collection in UPDATE_COLLECTIONS
            ]
            current = {
                OFFICES.name: snapshot(organization.company_offices),
                ACCOUNTING.name: snapshot(organization.accounting),
                ADDRESSES.name: snapshot(organization.addresses),
                CONTACTS.name: snapshot(organization.contacts),
            }
            for collection, operations in plan:
                ensure_targets_exist(collection, current[collection.name], operations)

            requested = dto.model_dump(include=set(PARENT_FIELDS), exclude_unset=True)
            parent_changes = {key: value for key, value in requested.items() if getattr(organization, key) != value}
            for required in ("name", "status"):
                if required in parent_changes and parent_changes[required] is None:
                    parent_changes.pop(required)
            if "name" in parent_changes and organization_name_taken(session, parent_changes["name"], exclude=organization_id):
                raise Conflict("Organization with this name already exists", [field_error("name", "Name is already in use")])

            final = {collection.name: simulate(collection, current[collection.name], operations) for collection, operations in plan}
            operations_by_name = {collection.name: operations for collection, operations in plan}

            if operations_by_name[OFFICES.name]:
                check_offices(final[OFFICES.name])
                check_office_names(final[OFFICES.name])
            if operations_by_name[CONTACTS.name]:
                check_contacts(final[CONTACTS.name], creating=False, had_contacts=bool(current[CONTACTS.name]))
            if operations_by_name[ADDRESSES.name]:
                check_addresses(final[ADDRESSES.name])
            touched_accounting = [
                operation for operation in operations_by_name[ACCOUNTING.name] if operation.action is not ChildAction.DELETE
            ]
            if touched_accounting:
                existing_ids = {row["organization_accounting_id"] for row in current[ACCOUNTING.name]}
                check_accounting(session, organization_id, final[ACCOUNTING.name], existing_ids)

            with bounded_transaction(session) as budget:
                if parent_changes:
                    row = session.scalar(select(Organization).where(Organization.organization_id == organization_id))
                    if row is None:
                        raise NotFound("Record to update not found")
                    for key, value in parent_changes.items():
                        setattr(row, key, value)
                    session.flush()
                changes = {
                    collection.name: apply_operations(session, collection, organization_id, operations, budget).as_dict()
                    for collection, operations in plan
                }

            logger.info(
                "organization.complete_updated",
                extra={
                    "entity_type": "ORGANIZATION",
                    "entity_id": str(organization_id),
                    "changes": changes,
                    "elapsed_ms": budget.elapsed_ms(),
                },
            )

        session.expire_all()
        refreshed = organization_service.detail(session, organization_id)
        activity_service.record(
            session,
            resolve_actor(session, actor_id, refreshed.created_by_user_id),
            action_type="UPDATE",
            entity_type="ORGANIZATION",
            entity_id=organization_id,
            entity_name=refreshed.name,
        )
        return {"organization": organization_service.detail(session, organization_id), "changes": changes}


organization_complete_service = OrganizationCompleteService()
