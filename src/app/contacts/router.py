"""
Contact API routers: file upload, record listing and export.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.middleware import CurrentUserDep
from app.contacts.export import (
    EXPORT_FILENAME,
    EXPORT_PDF_FILENAME,
    PDF_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    records_to_pdf,
    records_to_xlsx,
)
from app.contacts.schemas import (
    ContactListResponse,
    ContactRecordResponse,
    ErrorResponse,
    UploadResponse,
)
from app.contacts.service import ContactUploadService
from app.shared.database import get_db_session
from app.shared.exceptions import ForbiddenError, NoFileProvidedError, NotFoundError
from app.shared.logging import get_logger
from app.uploads.staging import UploadStaging, get_upload_staging

logger = get_logger(__name__)

files_router = APIRouter(prefix="/api/files", tags=["files"])
contacts_router = APIRouter(prefix="/api/contacts", tags=["contacts"])

SearchQuery = Annotated[
    str | None,
    Query(max_length=255, description="Case-insensitive substring over the text fields"),
]


def get_contact_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> ContactUploadService:
    """Dependency for contact service."""
    return ContactUploadService(session=session)


@files_router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload contacts file",
    description="Upload a .txt, .csv, .xlsx or .xls file of contacts. The file is stored only if every row is valid.",
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def upload_contacts_file(
    service: Annotated[ContactUploadService, Depends(get_contact_service)],
    staging: Annotated[UploadStaging, Depends(get_upload_staging)],
    current_user: CurrentUserDep,
    file: Annotated[UploadFile | None, File(description="Contacts file")] = None,
    upload_users_id: Annotated[str | None, Form()] = None,
) -> UploadResponse:
    """Upload contacts from a delimited or spreadsheet file.

    The header must contain name, email, contact_no, gender and address
    (spreadsheets only need email and contact_no). Every row needs an email
    not already stored and a contact number.

    Raises:
        400: No file, unsupported type, empty file, missing columns or invalid row.
        403: ``upload_users_id`` names another user.
        500: Storage failure.
    """
    if file is None or not file.filename:
        raise NoFileProvidedError()

    if upload_users_id is None:
        logger.warning(
            "Upload without upload_users_id; using authenticated user",
            extra={"user_id": current_user.id},
        )
    elif upload_users_id != current_user.id:
        raise ForbiddenError(
            "upload_users_id does not match the authenticated user",
            details={"upload_users_id": upload_users_id},
        )

    async with staging.stage(file) as staged:
        return await service.ingest(staged, owner_id=current_user.id)


@files_router.get(
    "/data",
    response_model=list[ContactRecordResponse],
    summary="List uploaded contacts",
    description="Get every contact uploaded by the caller, in insertion order.",
)
async def list_uploaded_data(
    service: Annotated[ContactUploadService, Depends(get_contact_service)],
    current_user: CurrentUserDep,
    search: SearchQuery = None,
) -> list[ContactRecordResponse]:
    return await service.list_contacts(current_user.id, search=search)


@contacts_router.get(
    "",
    response_model=ContactListResponse,
    summary="List contacts (paginated)",
)
async def list_contacts(
    service: Annotated[ContactUploadService, Depends(get_contact_service)],
    current_user: CurrentUserDep,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 50,
    search: SearchQuery = None,
) -> ContactListResponse:
    """List the caller's contacts one page at a time.

    Args:
        service: Contact service.
        current_user: Authenticated user.
        page: Page number (1-indexed).
        page_size: Number of items per page (max 100).
        search: Optional substring filter.

    Returns:
        Paginated contact list.
    """
    return await service.get_contacts_page(
        current_user.id,
        page=page,
        page_size=page_size,
        search=search,
    )


@contacts_router.get(
    "/export",
    summary="Export contacts to a spreadsheet",
    response_class=Response,
    responses={200: {"content": {XLSX_MEDIA_TYPE: {}}}, 404: {"model": ErrorResponse}},
)
async def export_contacts(
    service: Annotated[ContactUploadService, Depends(get_contact_service)],
    current_user: CurrentUserDep,
    search: SearchQuery = None,
) -> Response:
    """Download the caller's contacts matching ``search`` as .xlsx."""
    records = await service.list_contacts(current_user.id, search=search)
    if not records:
        raise NotFoundError("Excel data not available.")

    logger.info(
        "Contacts exported",
        extra={"user_id": current_user.id, "record_count": len(records), "export_format": "xlsx"},
    )
    return Response(
        content=records_to_xlsx(records),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@contacts_router.get(
    "/export/pdf",
    summary="Export contacts to a PDF table",
    response_class=Response,
    responses={200: {"content": {PDF_MEDIA_TYPE: {}}}, 404: {"model": ErrorResponse}},
)
async def export_contacts_pdf(
    service: Annotated[ContactUploadService, Depends(get_contact_service)],
    current_user: CurrentUserDep,
    search: SearchQuery = None,
) -> Response:
    """Download the caller's contacts matching ``search`` as a paginated PDF."""
    records = await service.list_contacts(current_user.id, search=search)
    if not records:
        raise NotFoundError("PDF data not available.")

    logger.info(
        "Contacts exported",
        extra={"user_id": current_user.id, "record_count": len(records), "export_format": "pdf"},
    )
    return Response(
        content=records_to_pdf(records),
        media_type=PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_PDF_FILENAME}"'},
    )
