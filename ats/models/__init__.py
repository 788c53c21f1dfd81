from ats.users.models import User, UserActivity
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
from ats.jobs.models import Application, Job, JobDetail, JobNote, JobOwner, JobRate

__all__ = [
	"Application",
	"CompanyOffice",
	"Contract",
	"DocumentTitle",
	"Job",
	"JobDetail",
	"JobNote",
	"JobOwner",
	"JobRate",
	"Organization",
	"OrganizationAccounting",
	"OrganizationAddress",
	"OrganizationContact",
	"OrganizationDocument",
	"OrganizationLicense",
	"OrganizationUser",
	"User",
	"UserActivity",
]
