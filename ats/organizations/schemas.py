from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from ats.platform.validation import reject_null


OrganizationStatus = Literal["ACTIVE", "INACTIVE"]
OfficeType = Literal["REMOTE", "HYBRID", "ONSITE"]
AddressType = Literal["WORKSITE", "BILLING"]
ContactType = Literal["PRIMARY", "EMERGENCY"]
PrivacyLevel = Literal["PUBLIC", "PRIVATE"]

_ACCOUNT_NOISE = re.compile(r"[\s-]+")


def normalize_account_number(value: str) -> str:
    return _ACCOUNT_NOISE.sub("", value)


class CompanyOfficeInput(BaseModel):
    office_name: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    country: str = Field(min_length=1)
    type: OfficeType
    address: str | None = None
    is_primary: bool = False


class CompanyOfficePatch(BaseModel):
    office_name: str | None = Field(default=None, min_length=1)
    city: str | None = Field(default=None, min_length=1)
    state: str | None = Field(default=None, min_length=1)
    country: str | None = Field(default=None, min_length=1)
    type: OfficeType | None = None
    address: str | None = None
    is_primary: bool | None = None

    @field_validator("office_name", "city", "state", "country", "type", "is_primary", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class CompanyOfficeCreate(CompanyOfficeInput):
    organization_id: UUID


class CompanyOfficeUpdate(CompanyOfficePatch):
    pass


class CompanyOfficeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    company_office_id: UUID
    organization_id: UUID
    office_name: str
    city: str
    state: str
    country: str
    type: OfficeType
    address: str | None
    is_primary: bool
    created_at: datetime
    updated_at: datetime


class AccountingInput(BaseModel):
    account_type: str = Field(min_length=1)
    bank_name: str = Field(min_length=1)
    account_number: str = Field(min_length=1)
    routing_number: str = Field(min_length=1)
    country: str = Field(min_length=1)

    @model_validator(mode="after")
    def normalize(self) -> AccountingInput:
        self.account_number = normalize_account_number(self.account_number)
        self.routing_number = normalize_account_number(self.routing_number)
        self.account_type = self.account_type.strip()
        self.bank_name = self.bank_name.strip()
        self.country = self.country.strip()
        if not self.account_number:
            raise ValueError("Account number is required")
        if not self.routing_number:
            raise ValueError("Routing number is required")
        return self


class AccountingPatch(BaseModel):
    account_type: str | None = Field(default=None, min_length=1)
    bank_name: str | None = Field(default=None, min_length=1)
    account_number: str | None = Field(default=None, min_length=1)
    routing_number: str | None = Field(default=None, min_length=1)
    country: str | None = Field(default=None, min_length=1)

    @field_validator("account_type", "bank_name", "account_number", "routing_number", "country", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)

    @model_validator(mode="after")
    def normalize(self) -> AccountingPatch:
        if self.account_number is not None:
            self.account_number = normalize_account_number(self.account_number)
        if self.routing_number is not None:
            self.routing_number = normalize_account_number(self.routing_number)
        for name in ("account_type", "bank_name", "country"):
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, value.strip())
        return self


class AccountingCreate(AccountingInput):
    organization_id: UUID


class AccountingUpdate(AccountingPatch):
    pass


class AccountingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_accounting_id: UUID
    organization_id: UUID
    account_type: str
    bank_name: str
    account_number: str
    routing_number: str
    country: str
    created_at: datetime
    updated_at: datetime


class AddressInput(BaseModel):
    address_type: AddressType
    address1: str = Field(min_length=1)
    address2: str | None = None
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip: str = Field(min_length=1)
    phone: str | None = None


class AddressPatch(BaseModel):
    address_type: AddressType | None = None
    address1: str | None = Field(default=None, min_length=1)
    address2: str | None = None
    city: str | None = Field(default=None, min_length=1)
    state: str | None = Field(default=None, min_length=1)
    zip: str | None = Field(default=None, min_length=1)
    phone: str | None = None

    @field_validator("address_type", "address1", "city", "state", "zip", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class AddressCreate(AddressInput):
    organization_id: UUID


class AddressUpdate(AddressPatch):
    pass


class AddressRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_address_id: UUID
    organization_id: UUID
    address_type: AddressType
    address1: str
    address2: str | None
    city: str
    state: str
    zip: str
    phone: str | None
    created_at: datetime
    updated_at: datetime


class ContactInput(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=1)
    contact_type: ContactType

    @model_validator(mode="after")
    def normalize_email(self) -> ContactInput:
        self.email = self.email.strip().lower()
        return self


class ContactPatch(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, min_length=1)
    contact_type: ContactType | None = None

    @field_validator("name", "email", "phone", "contact_type", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)

    @model_validator(mode="after")
    def normalize_email(self) -> ContactPatch:
        if self.email is not None:
            self.email = self.email.strip().lower()
        return self


class ContactCreate(ContactInput):
    organization_id: UUID


class ContactUpdate(ContactPatch):
    pass


class ContactRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_contact_id: UUID
    organization_id: UUID
    name: str
    email: str
    phone: str
    contact_type: ContactType
    created_at: datetime
    updated_at: datetime


class OrganizationUserInput(BaseModel):
    user_id: UUID
    division: str | None = Field(default=None, min_length=1)
    department: str | None = Field(default=None, min_length=1)
    title: str | None = Field(default=None, min_length=1)
    work_phone: str | None = Field(default=None, min_length=1)


class OrganizationUserCreate(OrganizationUserInput):
    organization_id: UUID


class OrganizationUserUpdate(BaseModel):
    division: str | None = None
    department: str | None = None
    title: str | None = None
    work_phone: str | None = None


class OrganizationUserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_user_id: UUID
    organization_id: UUID
    user_id: UUID
    division: str | None
    department: str | None
    title: str | None
    work_phone: str | None
    created_at: datetime


class DocumentTitleCreate(BaseModel):
    organization_id: UUID
    document_title: str = Field(min_length=1)


class DocumentTitleUpdate(BaseModel):
    document_title: str | None = Field(default=None, min_length=1)

    @field_validator("document_title", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class DocumentTitleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document_title_id: UUID
    organization_id: UUID
    document_title: str
    created_at: datetime


class DocumentUpdate(BaseModel):
    document_title_id: UUID | None = None
    document_type: str | None = Field(default=None, min_length=1)
    document_name: str | None = Field(default=None, min_length=1)
    privacy: PrivacyLevel | None = None
    expiration_date: date | None = None

    @field_validator("document_title_id", "document_type", "document_name", "privacy", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class DocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document_id: UUID
    organization_id: UUID
    document_title_id: UUID
    document_type: str
    document_name: str
    user_id: UUID
    privacy: PrivacyLevel
    expiration_date: date | None
    upload_date: datetime


class LicenseUpdate(BaseModel):
    license_name: str | None = Field(default=None, min_length=1)
    expiration_date: date | None = None

    @field_validator("license_name", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class LicenseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_license_id: UUID
    organization_id: UUID
    license_name: str
    expiration_date: date | None
    created_at: datetime
    updated_at: datetime


class ContractCreate(BaseModel):
    organization_id: UUID
    user_id: UUID
    contract_name: str = Field(min_length=1)
    status: str = Field(min_length=1)
    is_organization_contractor: bool
    sent_status: str | None = None
    signed_status: str | None = None
    signed_at: datetime | None = None


class ContractUpdate(BaseModel):
    organization_id: UUID | None = None
    user_id: UUID | None = None
    contract_name: str | None = Field(default=None, min_length=1)
    status: str | None = Field(default=None, min_length=1)
    is_organization_contractor: bool | None = None
    sent_status: str | None = None
    signed_status: str | None = None
    signed_at: datetime | None = None

    @field_validator("organization_id", "user_id", "contract_name", "status", "is_organization_contractor", mode="before")
    @classmethod
    def not_null(cls, value: Any) -> Any:
        return reject_null(value)


class ContractRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    contract_id: UUID
    organization_id: UUID
    user_id: UUID
    contract_name: str
    status: str
    is_organization_contractor: bool
    sent_status: str | None
    signed_status: str | None
    signed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1)
    website: str | None = None
    status: OrganizationStatus = "ACTIVE"
    phone: str | None = None
    created_by_user_id: UUID


class OrganizationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    website: str | None = None
    status: OrganizationStatus | None = None
    phone: str | None = None


class OrganizationCompleteCreate(OrganizationCreate):
    company_offices: list[CompanyOfficeInput] = Field(default_factory=list)
    accounting: list[AccountingInput] = Field(default_factory=list)
    addresses: list[AddressInput] = Field(default_factory=list)
    contacts: list[ContactInput] = Field(default_factory=list)
    organization_users: list[OrganizationUserInput] = Field(default_factory=list)


class OrganizationCompleteUpdate(OrganizationUpdate):
    """Parent fields plus tagged child elements; elements are resolved by the nested engine."""

    company_offices: list[dict[str, Any]] | None = None
    accounting: list[dict[str, Any]] | None = None
    addresses: list[dict[str, Any]] | None = None
    contacts: list[dict[str, Any]] | None = None


class OrganizationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_id: UUID
    name: str
    website: str | None
    phone: str | None
    status: OrganizationStatus
    created_by_user_id: UUID | None
    created_by_name: str | None = None
    created_by_email: str | None = None
    created_at: datetime
    updated_at: datetime


class OrganizationDetail(OrganizationRead):
    company_offices: list[CompanyOfficeRead] = Field(default_factory=list)
    accounting: list[AccountingRead] = Field(default_factory=list)
    addresses: list[AddressRead] = Field(default_factory=list)
    contacts: list[ContactRead] = Field(default_factory=list)
    organization_users: list[OrganizationUserRead] = Field(default_factory=list)
    document_titles: list[DocumentTitleRead] = Field(default_factory=list)
    documents: list[DocumentRead] = Field(default_factory=list)
    licenses: list[LicenseRead] = Field(default_factory=list)
    contracts: list[ContractRead] = Field(default_factory=list)
