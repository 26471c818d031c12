"""
Domain exceptions shared across the application.

Every exception carries a stable ``code`` and the HTTP status it maps to, so
the API layer can render them with a single handler.
"""

from __future__ import annotations

from typing import Any, Optional


class AppError(Exception):
    code: str = "APP_ERROR"
    status_code: int = 500
    default_message: str = "Application error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Operation not permitted"


class InvalidTokenError(AppError):
    code = "INVALID_TOKEN"
    status_code = 401
    default_message = "Invalid token"


class TokenExpiredError(AppError):
    code = "TOKEN_EXPIRED"
    status_code = 401
    default_message = "Token has expired"


class IngestionError(AppError):
    """Base class for failures that reject a whole uploaded file."""

    code = "INGESTION_ERROR"
    status_code = 400
    default_message = "The uploaded file was rejected"


class NoFileProvidedError(IngestionError):
    code = "NO_FILE"
    default_message = "No file uploaded"


class UnsupportedFormatError(IngestionError):
    code = "UNSUPPORTED_FORMAT"
    default_message = "Invalid file type. Only .txt, .csv, .xlsx, or .xls are allowed"

    def __init__(self, extension: str) -> None:
        super().__init__(details={"extension": extension})
        self.extension = extension


class UploadTooLargeError(IngestionError):
    code = "UPLOAD_TOO_LARGE"
    status_code = 413
    default_message = "The uploaded file is too large"

    def __init__(self, limit: int) -> None:
        super().__init__(details={"max_bytes": limit})
        self.limit = limit


class UnreadableFileError(IngestionError):
    code = "UNREADABLE_FILE"
    default_message = "The file could not be read"


class EmptyFileError(IngestionError):
    code = "EMPTY_FILE"
    default_message = "The file is empty"


class MissingColumnsError(IngestionError):
    code = "MISSING_COLUMNS"

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            message=f"Missing columns: {', '.join(missing)}",
            details={"missing": list(missing)},
        )
        self.missing = list(missing)


class MissingEmailError(IngestionError):
    code = "MISSING_EMAIL"
    default_message = "Please enter email for all rows."

    def __init__(self, line_number: int) -> None:
        super().__init__(details={"line_number": line_number})
        self.line_number = line_number


class DuplicateEmailError(IngestionError):
    code = "DUPLICATE_EMAIL"

    def __init__(
        self,
        email: str,
        line_number: Optional[int] = None,
        in_file: bool = False,
    ) -> None:
        if in_file:
            message = f"The email {email} appears more than once in the file."
        else:
            message = f"The email {email} already exists in the database."
        details: dict[str, Any] = {"email": email}
        if line_number is not None:
            details["line_number"] = line_number
        super().__init__(message=message, details=details)
        self.email = email
        self.line_number = line_number
        self.in_file = in_file


class MissingContactError(IngestionError):
    code = "MISSING_CONTACT"
    default_message = "Please enter contact_no for all rows."

    def __init__(self, line_number: int) -> None:
        super().__init__(details={"line_number": line_number})
        self.line_number = line_number


class StorageError(AppError):
    code = "STORAGE_ERROR"
    status_code = 500
    default_message = "Server error"


__all__ = [
    "AppError",
    "DuplicateEmailError",
    "EmptyFileError",
    "ForbiddenError",
    "IngestionError",
    "InvalidTokenError",
    "MissingColumnsError",
    "MissingContactError",
    "MissingEmailError",
    "NoFileProvidedError",
    "NotFoundError",
    "StorageError",
    "TokenExpiredError",
    "UnreadableFileError",
    "UnsupportedFormatError",
    "UploadTooLargeError",
]
