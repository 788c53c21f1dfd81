import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from ats.core.auth import AuthUser, get_current_user
from ats.core.database import get_db
from ats.core.responses import exception_response, success_response
from ats.files import Upload
from ats.organizations.complete import organization_complete_service
from ats.organizations.documents import document_service, license_service
from ats.organizations.schemas import (
    AccountingCreate,
    AccountingUpdate,
    AddressCreate,
    AddressUpdate,
    CompanyOfficeCreate,
    CompanyOfficeUpdate,
    ContactCreate,
    ContactUpdate,
    ContractCreate,
    ContractUpdate,
    DocumentTitleCreate,
    DocumentTitleUpdate,
    DocumentUpdate,
    LicenseUpdate,
    OrganizationCompleteCreate,
    OrganizationCompleteUpdate,
    OrganizationCreate,
    OrganizationUpdate,
    OrganizationUserCreate,
    OrganizationUserUpdate,
)
from ats.organizations.service import (
    accounting_service,
    address_service,
    company_office_service,
    contact_service,
    contract_service,
    document_title_service,
    organization_service,
    organization_user_service,
)
from ats.platform.routing import add_crud_routes, add_lookup_route
from ats.users.service import user_service


router = APIRouter(prefix="/api/organizations", tags=["organizations"])
offices_router = APIRouter(prefix="/api/company-offices", tags=["organizations.offices"])
accounting_router = APIRouter(prefix="/api/organization-accounting", tags=["organizations.accounting"])
addresses_router = APIRouter(prefix="/api/organization-addresses", tags=["organizations.addresses"])
contacts_router = APIRouter(prefix="/api/organization-contacts", tags=["organizations.contacts"])
organization_users_router = APIRouter(prefix="/api/organization-users", tags=["organizations.users"])
document_titles_router = APIRouter(prefix="/api/organization-document-titles", tags=["organizations.document_titles"])
documents_router = APIRouter(prefix="/api/organization-documents", tags=["organizations.documents"])
licenses_router = APIRouter(prefix="/api/organization-licenses", tags=["organizations.licenses"])
contracts_router = APIRouter(prefix="/api/organization-contracts", tags=["organizations.contracts"])

ORGANIZATION_PARENT = (organization_service, "Organization")
USER_PARENT = (user_service, "User")


async def _read_upload(file: UploadFile | None) -> Upload | None:
    if file is None or not file.filename:
        return None
    content = await file.read()
    return Upload(filename=file.filename, content_type=file.content_type, content=content)


@router.post("/complete", response_model=None, status_code=status.HTTP_201_CREATED)
def create_organization_complete(
    request: Request,
    dto: OrganizationCompleteCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> JSONResponse:
    try:
        result = organization_complete_service.create(db, dto, actor_id=user.user_uuid)
        return success_response(result, status.HTTP_201_CREATED)
    except HTTPException as exc:
        return exception_response(request, exc)


@router.patch("/{organization_id}", response_model=None)
def update_organization_complete(
    request: Request,
    organization_id: uuid.UUID,
    dto: OrganizationCompleteUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> JSONResponse:
    try:
        result = organization_complete_service.update(db, organization_id, dto, actor_id=user.user_uuid)
        return success_response(result)
    except HTTPException as exc:
        return exception_response(request, exc)


add_crud_routes(
    router,
    organization_service,
    create_schema=OrganizationCreate,
    update_schema=OrganizationUpdate,
    include_update=False,
)


@offices_router.get("/organization/{organization_id}/primary", response_model=None)
def get_primary_office(request: Request, organization_id: uuid.UUID, db: Session = Depends(get_db)) -> JSONResponse:
    try:
        return success_response(company_office_service.primary(db, organization_id))
    except HTTPException as exc:
        return exception_response(request, exc)


add_lookup_route(offices_router, company_office_service, "/organization", "organization_id", parent=ORGANIZATION_PARENT)
add_lookup_route(offices_router, company_office_service, "/type", "type", value_type=str, normalize=str.upper)
add_crud_routes(offices_router, company_office_service, create_schema=CompanyOfficeCreate, update_schema=CompanyOfficeUpdate)


@accounting_router.get("/stats", response_model=None)
def get_accounting_stats(request: Request, db: Session = Depends(get_db)) -> JSONResponse:
    try:
        return success_response(accounting_service.stats(db))
    except HTTPException as exc:
        return exception_response(request, exc)


add_lookup_route(accounting_router, accounting_service, "/organization", "organization_id", parent=ORGANIZATION_PARENT)
add_lookup_route(accounting_router, accounting_service, "/type", "account_type", value_type=str)
add_crud_routes(accounting_router, accounting_service, create_schema=AccountingCreate, update_schema=AccountingUpdate)

add_lookup_route(addresses_router, address_service, "/organization", "organization_id", parent=ORGANIZATION_PARENT)
add_lookup_route(addresses_router, address_service, "/type", "address_type", value_type=str, normalize=str.upper)
add_crud_routes(addresses_router, address_service, create_schema=AddressCreate, update_schema=AddressUpdate)


@contacts_router.get("/search", response_model=None)
def search_contacts(
    request: Request,
    q: str | None = Query(default=None),
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        return success_response(contact_service.search(db, q, page=page, limit=limit))
    except HTTPException as exc:
        return exception_response(request, exc)


@contacts_router.get("/organization/{organization_id}/primary", response_model=None)
def get_primary_contact(request: Request, organization_id: uuid.UUID, db: Session = Depends(get_db)) -> JSONResponse:
    try:
        return success_response(contact_service.primary(db, organization_id))
    except HTTPException as exc:
        return exception_response(request, exc)


add_lookup_route(contacts_router, contact_service, "/organization", "organization_id", parent=ORGANIZATION_PARENT)
add_crud_routes(contacts_router, contact_service, create_schema=ContactCreate, update_schema=ContactUpdate)

add_lookup_route(organization_users_router, organization_user_service, "/organization", "organization_id", parent=ORGANIZATION_PARENT)
add_lookup_route(organization_users_router, organization_user_service, "/user", "user_id", parent=USER_PARENT)
add_crud_routes(
    organization_users_router,
    organization_user_service,
    create_schema=OrganizationUserCreate,
    update_schema=OrganizationUserUpdate,
)

add_lookup_route(document_titles_router, document_title_service, "/organization", "organization_id", parent=ORGANIZATION_PARENT)
add_crud_routes(
    document_titles_router,
    document_title_service,
    create_schema=DocumentTitleCreate,
    update_schema=DocumentTitleUpdate,
)


@documents_router.post("/upload", response_model=None, status_code=status.HTTP_201_CREATED)
async def upload_document(
    request: Request,
    organization_id: str | None = Form(default=None),
    document_title_id: str | None = Form(default=None),
    document_type: str | None = Form(default=None),
    document_name: str | None = Form(default=None),
    user_id: str | None = Form(default=None),
    privacy: str | None = Form(default=None),
    expiration_date: str | None = Form(default=None),
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        result = document_service.upload(
            db,
            organization_id=organization_id,
            document_title_id=document_title_id,
            document_type=document_type,
            document_name=document_name,
            user_id=user_id,
            privacy=privacy,
            expiration_date=expiration_date,
            upload=await _read_upload(file),
        )
        return success_response(result, status.HTTP_201_CREATED)
    except HTTPException as exc:
        return exception_response(request, exc)


@documents_router.patch("/{document_id}/upload", response_model=None)
async def update_document_upload(
    request: Request,
    document_id: uuid.UUID,
    document_title_id: str | None = Form(default=None),
    document_type: str | None = Form(default=None),
    document_name: str | None = Form(default=None),
    privacy: str | None = Form(default=None),
    expiration_date: str | None = Form(default=None),
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        result = document_service.update_upload(
            db,
            document_id,
            document_title_id=document_title_id,
            document_type=document_type,
            document_name=document_name,
            privacy=privacy,
            expiration_date=expiration_date,
            upload=await _read_upload(file),
        )
        return success_response(result)
    except HTTPException as exc:
        return exception_response(request, exc)


@documents_router.get("/{document_id}/download", response_model=None)
def download_document(request: Request, document_id: uuid.UUID, db: Session = Depends(get_db)) -> Response:
    try:
        stored, headers = document_service.download(db, document_id)
        return Response(content=stored.content, media_type=stored.mime_type, headers=headers)
    except HTTPException as exc:
        return exception_response(request, exc)


add_lookup_route(documents_router, document_service, "/organization", "organization_id", parent=ORGANIZATION_PARENT)
add_crud_routes(
    documents_router,
    document_service,
    create_schema=DocumentUpdate,
    update_schema=DocumentUpdate,
    include_create=False,
)


@licenses_router.post("/upload", response_model=None, status_code=status.HTTP_201_CREATED)
async def upload_license(
    request: Request,
    organization_id: str | None = Form(default=None),
    license_name: str | None = Form(default=None),
    expiration_date: str | None = Form(default=None),
    license_document: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        result = license_service.upload(
            db,
            organization_id=organization_id,
            license_name=license_name,
            expiration_date=expiration_date,
            upload=await _read_upload(license_document),
        )
        return success_response(result, status.HTTP_201_CREATED)
    except HTTPException as exc:
        return exception_response(request, exc)


@licenses_router.patch("/{license_id}/upload", response_model=None)
async def update_license_upload(
    request: Request,
    license_id: uuid.UUID,
    license_name: str | None = Form(default=None),
    expiration_date: str | None = Form(default=None),
    license_document: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        result = license_service.update_upload(
            db,
            license_id,
            license_name=license_name,
            expiration_date=expiration_date,
            upload=await _read_upload(license_document),
        )
        return success_response(result)
    except HTTPException as exc:
        return exception_response(request, exc)


@licenses_router.get("/{license_id}/download", response_model=None)
def download_license(request: Request, license_id: uuid.UUID, db: Session = Depends(get_db)) -> Response:
    try:
        stored, headers = license_service.download(db, license_id)
        return Response(content=stored.content, media_type=stored.mime_type, headers=headers)
    except HTTPException as exc:
        return exception_response(request, exc)


add_lookup_route(licenses_router, license_service, "/organization", "organization_id", parent=ORGANIZATION_PARENT)
add_crud_routes(
    licenses_router,
    license_service,
    create_schema=LicenseUpdate,
    update_schema=LicenseUpdate,
    include_create=False,
)


@contracts_router.get("/stats", response_model=None)
def get_contract_stats(request: Request, db: Session = Depends(get_db)) -> JSONResponse:
    try:
        return success_response(contract_service.stats(db))
    except HTTPException as exc:
        return exception_response(request, exc)


@contracts_router.get("/pending", response_model=None)
def list_pending_contracts(
    request: Request,
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        return success_response(contract_service.pending(db, page=page, limit=limit))
    except HTTPException as exc:
        return exception_response(request, exc)


@contracts_router.get("/signed", response_model=None)
def list_signed_contracts(
    request: Request,
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> JSONResponse:
    try:
        return success_response(contract_service.signed(db, page=page, limit=limit))
    except HTTPException as exc:
        return exception_response(request, exc)


add_lookup_route(contracts_router, contract_service, "/organization", "organization_id", parent=ORGANIZATION_PARENT)
add_lookup_route(contracts_router, contract_service, "/user", "user_id", parent=USER_PARENT)
add_lookup_route(contracts_router, contract_service, "/status", "status", value_type=str)
add_crud_routes(contracts_router, contract_service, create_schema=ContractCreate, update_schema=ContractUpdate)
