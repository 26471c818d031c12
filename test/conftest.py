"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import io
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.tokens import create_access_token
from app.config import Settings, get_settings
from app.contacts.models import ContactRecord
from app.main import app
from app.shared.database import Base, get_db_session

TEST_USER_ID = "user-1"


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def test_settings(upload_dir: Path) -> Settings:
    """Create test settings."""
    return Settings(
        app_env="dev",
        debug=True,
        database_url="sqlite+aiosqlite:///:memory:",
        create_tables_on_startup=False,
        upload_dir=upload_dir,
        max_upload_bytes=1024 * 1024,
        jwt_secret_key="test-secret-key-for-testing-only",
    )


@pytest_asyncio.fixture
async def db_engine(test_settings: Settings) -> AsyncGenerator[Any, None]:
    """Create test database engine."""
    engine = create_async_engine(
        test_settings.database_url,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: Any) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
def access_token(test_settings: Settings) -> str:
    return create_access_token(TEST_USER_ID, email="owner@example.com", settings=test_settings)


@pytest.fixture
def auth_headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


@pytest_asyncio.fixture
async def async_client(
    db_session: AsyncSession,
    test_settings: Settings,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API tests."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_xlsx() -> Callable[[list[list[Any]]], bytes]:
    """Build an .xlsx workbook whose first sheet holds the given rows."""

    def _make(rows: list[list[Any]]) -> bytes:
        workbook = Workbook()
        sheet = workbook.active
        for row in rows:
            sheet.append(row)
        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    return _make


@pytest.fixture
def staged_files(upload_dir: Path) -> Callable[[], list[Path]]:
    """Return whatever is left in the staging directory."""

    def _list() -> list[Path]:
        if not upload_dir.exists():
            return []
        return sorted(upload_dir.iterdir())

    return _list


async def count_records(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(ContactRecord.id)))
    return result.scalar() or 0


async def add_record(session: AsyncSession, email: str, owner_id: str = "someone-else") -> ContactRecord:
    record = ContactRecord(
        name="Existing",
        email=email,
        contact_no="000",
        gender=None,
        address=None,
        upload_users_id=owner_id,
    )
    session.add(record)
    await session.commit()
    return record
