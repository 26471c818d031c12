"""
SQLAlchemy models for contact records.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.shared.database import Base

# Columns every uploaded file is checked against, in reporting order.
REQUIRED_COLUMNS: tuple[str, ...] = ("name", "email", "contact_no", "gender", "address")


class FileFormat(str, Enum):
    """Closed set of accepted upload formats."""

    DELIMITED = "delimited"
    SPREADSHEET = "spreadsheet"


class ContactRecord(Base):
    """A validated contact uploaded by a user.

    ``email`` is unique across the whole table, not per uploader.
    """

    __tablename__ = "contact_records"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )
    contact_no: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    gender: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    address: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
    )
    upload_users_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<ContactRecord(id={self.id}, email={self.email})>"
