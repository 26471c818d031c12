"""
Contact record repository for database operations.
"""

from typing import Protocol, Sequence

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.contacts.models import ContactRecord


class ContactRecordRepositoryProtocol(Protocol):
    """Protocol for contact record repository operations."""

    async def get_by_email(self, email: str) -> ContactRecord | None:
        """Find a stored record by exact email."""
        ...

    async def create(self, record: ContactRecord) -> ContactRecord:
        """Insert a single record."""
        ...

    async def list_for_owner(
        self,
        owner_id: str,
        search: str | None = None,
    ) -> Sequence[ContactRecord]:
        """List a user's records."""
        ...

    async def page_for_owner(
        self,
        owner_id: str,
        page: int = 1,
        page_size: int = 50,
        search: str | None = None,
    ) -> tuple[Sequence[ContactRecord], int]:
        """Get one page of a user's records with the total count."""
        ...


class ContactRecordRepository:
    """Repository for contact record database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def get_by_email(self, email: str) -> ContactRecord | None:
        """Get a record by exact email match, across all uploaders.

        Args:
            email: Email to search.

        Returns:
            Record if found, None otherwise.
        """
        stmt = select(ContactRecord).where(ContactRecord.email == email)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, record: ContactRecord) -> ContactRecord:
        """Create a single record.

        The insert is flushed immediately so a unique-email violation
        surfaces for this record rather than at commit.

        Args:
            record: Record to create.

        Returns:
            Created record with its assigned ID.
        """
        self._session.add(record)
        await self._session.flush()
        return record

    def _owner_query(self, owner_id: str, search: str | None) -> Select:
        stmt = select(ContactRecord).where(ContactRecord.upload_users_id == owner_id)
        term = search.strip() if search else ""
        if term:
            # autoescape keeps "%" and "_" literal.
            stmt = stmt.where(
                or_(
                    ContactRecord.name.icontains(term, autoescape=True),
                    ContactRecord.email.icontains(term, autoescape=True),
                    ContactRecord.contact_no.icontains(term, autoescape=True),
                    ContactRecord.gender.icontains(term, autoescape=True),
                    ContactRecord.address.icontains(term, autoescape=True),
                )
            )
        return stmt

    async def list_for_owner(
        self,
        owner_id: str,
        search: str | None = None,
    ) -> Sequence[ContactRecord]:
        """Get every record uploaded by a user, in insertion order.

        Args:
            owner_id: Uploader identifier.
            search: Optional case-insensitive substring over the text fields.

        Returns:
            Matching records.
        """
        stmt = self._owner_query(owner_id, search).order_by(ContactRecord.id)
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def page_for_owner(
        self,
        owner_id: str,
        page: int = 1,
        page_size: int = 50,
        search: str | None = None,
    ) -> tuple[Sequence[ContactRecord], int]:
        """Get one page of a user's records.

        Args:
            owner_id: Uploader identifier.
            page: Page number (1-indexed).
            page_size: Number of items per page.
            search: Optional case-insensitive substring filter.

        Returns:
            Tuple of (records, total matching count).
        """
        base_query = self._owner_query(owner_id, search)

        count_stmt = select(func.count()).select_from(base_query.subquery())
        total_result = await self._session.execute(count_stmt)
        total = total_result.scalar() or 0

        offset = (page - 1) * page_size
        stmt = base_query.order_by(ContactRecord.id).offset(offset).limit(page_size)
        result = await self._session.execute(stmt)
        return result.scalars().all(), total
