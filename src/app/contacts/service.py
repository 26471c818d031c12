"""
Contact service: file ingestion and record listing.
"""

from collections.abc import Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.contacts.models import ContactRecord, FileFormat
from app.contacts.parser import RecordParser, ensure_data_rows
from app.contacts.repository import ContactRecordRepository, ContactRecordRepositoryProtocol
from app.contacts.schemas import (
    ContactListResponse,
    ContactRecordResponse,
    NormalizedRow,
    UploadResponse,
)
from app.contacts.validation import check_columns, validate_rows
from app.shared.exceptions import DuplicateEmailError, IngestionError, StorageError
from app.shared.logging import get_logger
from app.uploads.staging import StagedUpload

logger = get_logger(__name__)


class ContactUploadService:
    """Service for contact upload and listing operations."""

    def __init__(
        self,
        session: AsyncSession,
        repository: ContactRecordRepositoryProtocol | None = None,
        parser: RecordParser | None = None,
    ) -> None:
        """Initialize contact service.

        Args:
            session: Async database session.
            repository: Optional record repository (for DI).
            parser: Optional file parser (for DI).
        """
        self._session = session
        self._repo = repository or ContactRecordRepository(session)
        self._parser = parser or RecordParser()

    async def ingest(self, staged: StagedUpload, owner_id: str) -> UploadResponse:
        """Parse, validate and store every row of a staged upload.

        The whole file is rejected on the first failure; nothing is written
        unless every row is valid.

        Args:
            staged: Staged upload; the caller owns its cleanup.
            owner_id: Identifier of the uploading user.

        Returns:
            Upload result with the number of records written.

        Raises:
            IngestionError: For any format, structure or row failure.
            StorageError: If the database fails.
        """
        logger.info(
            "Contact upload started",
            extra={"owner_id": owner_id, "upload_filename": staged.filename, "size": staged.size},
        )

        try:
            content = await staged.read_bytes()
            parsed = self._parser.parse(content, staged.filename)

            check_columns(parsed.header, parsed.file_format)
            if parsed.file_format is FileFormat.DELIMITED:
                ensure_data_rows(parsed)

            rows = await self._validate(parsed.rows)
            inserted = await self.persist_all(rows, owner_id)
        except IngestionError as e:
            logger.info(
                "Contact upload rejected",
                extra={
                    "owner_id": owner_id,
                    "upload_filename": staged.filename,
                    "error_code": e.code,
                    "error_details": e.details,
                },
            )
            raise

        logger.info(
            "Contact upload completed",
            extra={"owner_id": owner_id, "upload_filename": staged.filename, "inserted_count": inserted},
        )
        return UploadResponse(inserted_count=inserted)

    async def _validate(self, raw_rows) -> list[NormalizedRow]:
        try:
            return await validate_rows(raw_rows, self._repo.get_by_email)
        except SQLAlchemyError as e:
            logger.exception("Email lookup failed")
            raise StorageError() from e

    async def persist_all(self, rows: Sequence[NormalizedRow], owner_id: str) -> int:
        """Write validated rows in file order inside one transaction.

        Each insert is flushed before the next, so the unique email
        constraint rejects a row whose email was stored by a concurrent
        upload after validation. Any failure rolls back the whole batch.

        Args:
            rows: Rows that already passed validation.
            owner_id: Identifier stamped on every record.

        Returns:
            Number of records written.

        Raises:
            DuplicateEmailError: If the unique email constraint fires.
            StorageError: For any other database failure.
        """
        current: NormalizedRow | None = None
        try:
            for current in rows:
                await self._repo.create(
                    ContactRecord(
                        name=current.name,
                        email=current.email,
                        contact_no=current.contact_no,
                        gender=current.gender,
                        address=current.address,
                        upload_users_id=owner_id,
                    )
                )
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            email = current.email if current is not None else ""
            logger.warning(
                "Unique email violated during persistence",
                extra={"owner_id": owner_id, "email": email},
            )
            raise DuplicateEmailError(
                email,
                line_number=current.line_number if current is not None else None,
            ) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.exception(
                "Contact persistence failed; batch rolled back",
                extra={"owner_id": owner_id, "row_count": len(rows)},
            )
            raise StorageError() from e

        return len(rows)

    async def list_contacts(
        self,
        owner_id: str,
        search: str | None = None,
    ) -> list[ContactRecordResponse]:
        """Get every record uploaded by a user.

        Args:
            owner_id: Uploader identifier.
            search: Optional case-insensitive substring filter.

        Returns:
            Records in insertion order.
        """
        records = await self._repo.list_for_owner(owner_id, search=search)
        return [ContactRecordResponse.model_validate(r) for r in records]

    async def get_contacts_page(
        self,
        owner_id: str,
        page: int = 1,
        page_size: int = 50,
        search: str | None = None,
    ) -> ContactListResponse:
        """Get one page of a user's records.

        Args:
            owner_id: Uploader identifier.
            page: Page number (1-indexed).
            page_size: Number of items per page.
            search: Optional case-insensitive substring filter.

        Returns:
            Paginated contact list.
        """
        records, total = await self._repo.page_for_owner(
            owner_id,
            page=page,
            page_size=page_size,
            search=search,
        )
        pages = (total + page_size - 1) // page_size if total > 0 else 0

        return ContactListResponse(
            items=[ContactRecordResponse.model_validate(r) for r in records],
            total=total,
            page=page,
            page_size=page_size,
            pages=pages,
        )
