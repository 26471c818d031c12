"""
Pydantic schemas for contact uploads and listings.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class NormalizedRow(BaseModel):
    """One uploaded row after trimming and coercion to text."""

    model_config = ConfigDict(frozen=True)

    line_number: int = Field(..., description="1-based line or sheet row in the source file")
    name: str | None = None
    email: str | None = None
    contact_no: str | None = None
    gender: str | None = None
    address: str | None = None


class ContactRecordResponse(BaseModel):
    """Schema for a stored contact record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None
    email: str
    contact_no: str
    gender: str | None
    address: str | None
    upload_users_id: str
    created_at: datetime | None = None


class ContactListResponse(BaseModel):
    """Schema for paginated contact list response."""

    items: list[ContactRecordResponse]
    total: int
    page: int
    page_size: int
    pages: int


class UploadResponse(BaseModel):
    """Schema for a successful upload."""

    message: str = Field(default="File data successfully uploaded")
    inserted_count: int = Field(..., ge=0, description="Number of records written")


class ErrorResponse(BaseModel):
    """Schema for every failure response body."""

    message: str
    code: str
    details: dict | None = None
