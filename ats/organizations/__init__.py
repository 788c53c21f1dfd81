from ats.organizations.models import (
    CompanyOffice,
    Contract,
    DocumentTitle,
    Organization,
    OrganizationAccounting,
    OrganizationAddress,
    OrganizationContact,
    OrganizationDocument,
    OrganizationLicense,
    OrganizationUser,
)

__all__ = [
    "CompanyOffice",
    "Contract",
    "DocumentTitle",
    "Organization",
    "OrganizationAccounting",
    "OrganizationAddress",
    "OrganizationContact",
    "OrganizationDocument",
    "OrganizationLicense",
    "OrganizationUser",
]
