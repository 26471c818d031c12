"""
Integration tests for the contact upload service.
"""

from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.contacts.models import ContactRecord
from app.contacts.repository import ContactRecordRepository
from app.contacts.schemas import NormalizedRow
from app.contacts.service import ContactUploadService
from app.shared.exceptions import (
    DuplicateEmailError,
    EmptyFileError,
    MissingColumnsError,
    MissingContactError,
    MissingEmailError,
    StorageError,
    UnsupportedFormatError,
)
from app.uploads.staging import StagedUpload
from conftest import add_record, count_records

HEADER = "name,email,contact_no,gender,address"


def staged(tmp_path: Path, content: bytes, filename: str = "contacts.csv") -> StagedUpload:
    path = tmp_path / f"staged{Path(filename).suffix}"
    path.write_bytes(content)
    return StagedUpload(path=path, filename=filename, size=len(content))


def csv_bytes(*lines: str) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")


class FailingRepository(ContactRecordRepository):
    """Repository whose N-th insert fails with a storage error."""

    def __init__(self, session: AsyncSession, fail_on: int) -> None:
        super().__init__(session)
        self.fail_on = fail_on
        self.calls = 0

    async def create(self, record: ContactRecord) -> ContactRecord:
        self.calls += 1
        if self.calls == self.fail_on:
            raise OperationalError("INSERT INTO contact_records", {}, Exception("disk I/O error"))
        return await super().create(record)


class StaleLookupRepository(ContactRecordRepository):
    """Repository whose lookups never see stored rows, as under a concurrent upload."""

    async def get_by_email(self, email: str) -> ContactRecord | None:
        return None


class InMemoryRepository:
    """Protocol-conforming repository that keeps records in a list."""

    def __init__(self) -> None:
        self.records: list[ContactRecord] = []

    async def get_by_email(self, email: str) -> ContactRecord | None:
        return next((r for r in self.records if r.email == email), None)

    async def create(self, record: ContactRecord) -> ContactRecord:
        record.id = len(self.records) + 1
        self.records.append(record)
        return record

    async def list_for_owner(self, owner_id: str, search: str | None = None) -> list[ContactRecord]:
        return [r for r in self.records if r.upload_users_id == owner_id]

    async def page_for_owner(
        self,
        owner_id: str,
        page: int = 1,
        page_size: int = 50,
        search: str | None = None,
    ) -> tuple[list[ContactRecord], int]:
        owned = await self.list_for_owner(owner_id)
        start = (page - 1) * page_size
        return owned[start : start + page_size], len(owned)


class TestIngest:
    """Tests for ContactUploadService.ingest."""

    @pytest.mark.asyncio
    async def test_single_row_csv(self, db_session: AsyncSession, tmp_path: Path):
        service = ContactUploadService(session=db_session)

        result = await service.ingest(
            staged(tmp_path, csv_bytes(HEADER, "Alice,alice@example.com,12345,F,Main St")),
            owner_id="user-1",
        )

        assert result.inserted_count == 1
        assert result.message == "File data successfully uploaded"
        record = (await db_session.execute(select(ContactRecord))).scalar_one()
        assert record.name == "Alice"
        assert record.email == "alice@example.com"
        assert record.contact_no == "12345"
        assert record.gender == "F"
        assert record.address == "Main St"
        assert record.upload_users_id == "user-1"
        assert record.id is not None

    @pytest.mark.asyncio
    async def test_values_are_trimmed_and_blanks_stored_as_null(self, db_session: AsyncSession, tmp_path: Path):
        service = ContactUploadService(session=db_session)

        await service.ingest(
            staged(tmp_path, csv_bytes(HEADER, "  Bob , bob@example.com , 555 ,  ,")),
            owner_id="user-1",
        )

        record = (await db_session.execute(select(ContactRecord))).scalar_one()
        assert record.name == "Bob"
        assert record.email == "bob@example.com"
        assert record.contact_no == "555"
        assert record.gender is None
        assert record.address is None

    @pytest.mark.asyncio
    async def test_many_rows_written_in_file_order(self, db_session: AsyncSession, tmp_path: Path):
        lines = [HEADER] + [f"User{i},user{i}@example.com,{1000 + i},M,Street {i}" for i in range(5)]
        service = ContactUploadService(session=db_session)

        result = await service.ingest(staged(tmp_path, csv_bytes(*lines)), owner_id="user-1")

        assert result.inserted_count == 5
        records = (await db_session.execute(select(ContactRecord).order_by(ContactRecord.id))).scalars().all()
        assert [r.email for r in records] == [f"user{i}@example.com" for i in range(5)]

    @pytest.mark.asyncio
    async def test_second_submission_reports_duplicate(self, db_session: AsyncSession, tmp_path: Path):
        content = csv_bytes(HEADER, "Alice,alice@example.com,12345,F,Main St")
        service = ContactUploadService(session=db_session)
        await service.ingest(staged(tmp_path, content), owner_id="user-1")

        with pytest.raises(DuplicateEmailError) as exc_info:
            await service.ingest(staged(tmp_path, content), owner_id="user-1")

        assert exc_info.value.email == "alice@example.com"
        assert await count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_duplicate_of_another_users_record(self, db_session: AsyncSession, tmp_path: Path):
        await add_record(db_session, "taken@example.com", owner_id="user-2")
        content = csv_bytes(
            HEADER,
            "New,new@example.com,1,F,A",
            "Taken,taken@example.com,2,M,B",
        )

        with pytest.raises(DuplicateEmailError) as exc_info:
            await ContactUploadService(session=db_session).ingest(staged(tmp_path, content), owner_id="user-1")

        assert exc_info.value.details == {"email": "taken@example.com", "line_number": 3}
        assert await count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_duplicate_within_file(self, db_session: AsyncSession, tmp_path: Path):
        content = csv_bytes(HEADER, "A,same@example.com,1,F,X", "B,same@example.com,2,M,Y")

        with pytest.raises(DuplicateEmailError) as exc_info:
            await ContactUploadService(session=db_session).ingest(staged(tmp_path, content), owner_id="user-1")

        assert exc_info.value.in_file is True
        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_missing_email_rejects_whole_file(self, db_session: AsyncSession, tmp_path: Path):
        content = csv_bytes(HEADER, "A,a@example.com,1,F,X", "B,,2,M,Y")

        with pytest.raises(MissingEmailError):
            await ContactUploadService(session=db_session).ingest(staged(tmp_path, content), owner_id="user-1")

        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_missing_contact_rejects_whole_file(self, db_session: AsyncSession, tmp_path: Path):
        content = csv_bytes(HEADER, "A,a@example.com,1,F,X", "B,b@example.com,   ,M,Y")

        with pytest.raises(MissingContactError) as exc_info:
            await ContactUploadService(session=db_session).ingest(staged(tmp_path, content), owner_id="user-1")

        assert exc_info.value.line_number == 3
        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_delimiter_only_line_rejects_whole_file(self, db_session: AsyncSession, tmp_path: Path):
        content = csv_bytes(HEADER, "Alice,alice@example.com,1,F,Main St", ",,,,")

        with pytest.raises(MissingEmailError) as exc_info:
            await ContactUploadService(session=db_session).ingest(staged(tmp_path, content), owner_id="user-1")

        assert exc_info.value.line_number == 3
        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_header_and_delimiter_only_line(self, db_session: AsyncSession, tmp_path: Path):
        with pytest.raises(MissingEmailError):
            await ContactUploadService(session=db_session).ingest(
                staged(tmp_path, csv_bytes(HEADER, ",,,,")),
                owner_id="user-1",
            )

    @pytest.mark.asyncio
    async def test_missing_columns(self, db_session: AsyncSession, tmp_path: Path):
        content = csv_bytes("name,email,contact_no", "A,a@example.com,1")

        with pytest.raises(MissingColumnsError) as exc_info:
            await ContactUploadService(session=db_session).ingest(staged(tmp_path, content), owner_id="user-1")

        assert exc_info.value.missing == ["gender", "address"]

    @pytest.mark.asyncio
    async def test_header_only_with_missing_columns_reports_columns(self, db_session: AsyncSession, tmp_path: Path):
        with pytest.raises(MissingColumnsError):
            await ContactUploadService(session=db_session).ingest(
                staged(tmp_path, csv_bytes("name,email")),
                owner_id="user-1",
            )

    @pytest.mark.asyncio
    async def test_header_only_file(self, db_session: AsyncSession, tmp_path: Path):
        with pytest.raises(EmptyFileError):
            await ContactUploadService(session=db_session).ingest(
                staged(tmp_path, csv_bytes(HEADER)),
                owner_id="user-1",
            )

    @pytest.mark.asyncio
    async def test_unsupported_format(self, db_session: AsyncSession, tmp_path: Path):
        with pytest.raises(UnsupportedFormatError):
            await ContactUploadService(session=db_session).ingest(
                staged(tmp_path, b"{}", filename="contacts.json"),
                owner_id="user-1",
            )

    @pytest.mark.asyncio
    async def test_spreadsheet_without_optional_columns(self, db_session: AsyncSession, tmp_path: Path, make_xlsx):
        content = make_xlsx([["email", "contact_no", "gender"], ["x@example.com", 987654, "F"]])

        result = await ContactUploadService(session=db_session).ingest(
            staged(tmp_path, content, filename="contacts.xlsx"),
            owner_id="user-1",
        )

        assert result.inserted_count == 1
        record = (await db_session.execute(select(ContactRecord))).scalar_one()
        assert record.contact_no == "987654"
        assert record.name is None
        assert record.address is None

    @pytest.mark.asyncio
    async def test_spreadsheet_without_email_column(self, db_session: AsyncSession, tmp_path: Path, make_xlsx):
        content = make_xlsx([["name", "contact_no"], ["Bob", "1"]])

        with pytest.raises(MissingColumnsError) as exc_info:
            await ContactUploadService(session=db_session).ingest(
                staged(tmp_path, content, filename="contacts.xlsx"),
                owner_id="user-1",
            )

        assert exc_info.value.missing == ["email", "gender", "address"]


class TestPersistAll:
    """Tests for transactional persistence."""

    @pytest.mark.asyncio
    async def test_storage_failure_rolls_back_batch(self, db_session: AsyncSession):
        rows = [
            NormalizedRow(line_number=2, email="a@example.com", contact_no="1"),
            NormalizedRow(line_number=3, email="b@example.com", contact_no="2"),
        ]
        service = ContactUploadService(
            session=db_session,
            repository=FailingRepository(db_session, fail_on=2),
        )

        with pytest.raises(StorageError) as exc_info:
            await service.persist_all(rows, owner_id="user-1")

        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "Server error"
        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_concurrent_insert_of_same_email(self, db_session: AsyncSession, tmp_path: Path):
        await add_record(db_session, "race@example.com")
        content = csv_bytes(HEADER, "A,first@example.com,1,F,X", "B,race@example.com,2,M,Y")
        service = ContactUploadService(
            session=db_session,
            repository=StaleLookupRepository(db_session),
        )

        with pytest.raises(DuplicateEmailError) as exc_info:
            await service.ingest(staged(tmp_path, content), owner_id="user-1")

        assert exc_info.value.email == "race@example.com"
        assert await count_records(db_session) == 1


class TestListing:
    """Tests for record listing."""

    @pytest.mark.asyncio
    async def test_list_scoped_to_owner_and_searchable(self, db_session: AsyncSession, tmp_path: Path):
        await add_record(db_session, "other@example.com", owner_id="user-2")
        content = csv_bytes(HEADER, "Alice,alice@example.com,1,F,Main St", "Bob,bob@example.com,2,M,Elm St")
        service = ContactUploadService(session=db_session)
        await service.ingest(staged(tmp_path, content), owner_id="user-1")

        everything = await service.list_contacts("user-1")
        matching = await service.list_contacts("user-1", search="ELM")

        assert [r.email for r in everything] == ["alice@example.com", "bob@example.com"]
        assert [r.email for r in matching] == ["bob@example.com"]

    @pytest.mark.asyncio
    async def test_pagination(self, db_session: AsyncSession, tmp_path: Path):
        lines = [HEADER] + [f"U{i},u{i}@example.com,{i},F,S" for i in range(7)]
        service = ContactUploadService(session=db_session)
        await service.ingest(staged(tmp_path, csv_bytes(*lines)), owner_id="user-1")

        page = await service.get_contacts_page("user-1", page=2, page_size=5)

        assert page.total == 7
        assert page.pages == 2
        assert [r.email for r in page.items] == ["u5@example.com", "u6@example.com"]

    @pytest.mark.asyncio
    async def test_search_wildcards_match_literally(self, db_session: AsyncSession, tmp_path: Path):
        content = csv_bytes(HEADER, "Alice,alice@example.com,1,F,Main St", "Bob,bob_x@example.com,2,M,100% Elm")
        service = ContactUploadService(session=db_session)
        await service.ingest(staged(tmp_path, content), owner_id="user-1")

        underscore = await service.list_contacts("user-1", search="_")
        percent = await service.list_contacts("user-1", search="%")

        assert [r.email for r in underscore] == ["bob_x@example.com"]
        assert [r.email for r in percent] == ["bob_x@example.com"]


class TestRepositoryInjection:
    """Tests for running the service against an injected repository."""

    @pytest.mark.asyncio
    async def test_service_uses_injected_repository(self, db_session: AsyncSession, tmp_path: Path):
        repository = InMemoryRepository()
        service = ContactUploadService(session=db_session, repository=repository)
        content = csv_bytes(HEADER, "Alice,alice@example.com,1,F,Main St", "Bob,bob@example.com,2,M,Elm St")

        result = await service.ingest(staged(tmp_path, content), owner_id="user-1")
        page = await service.get_contacts_page("user-1", page=1, page_size=1)

        assert result.inserted_count == 2
        assert [r.email for r in repository.records] == ["alice@example.com", "bob@example.com"]
        assert [r.email for r in await service.list_contacts("user-1")] == ["alice@example.com", "bob@example.com"]
        assert page.total == 2
        assert [r.email for r in page.items] == ["alice@example.com"]
        assert await count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_injected_repository_drives_duplicate_check(self, db_session: AsyncSession, tmp_path: Path):
        repository = InMemoryRepository()
        service = ContactUploadService(session=db_session, repository=repository)
        content = csv_bytes(HEADER, "Alice,alice@example.com,1,F,Main St")
        await service.ingest(staged(tmp_path, content), owner_id="user-1")

        with pytest.raises(DuplicateEmailError):
            await service.ingest(staged(tmp_path, content), owner_id="user-2")
        assert len(repository.records) == 1
