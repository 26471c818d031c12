"""
Structural and per-row validation of uploaded contact rows.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import TYPE_CHECKING, Any

from app.contacts.models import REQUIRED_COLUMNS, FileFormat
from app.contacts.schemas import NormalizedRow
from app.shared.exceptions import (
    DuplicateEmailError,
    MissingColumnsError,
    MissingContactError,
    MissingEmailError,
)
from app.shared.logging import get_logger

if TYPE_CHECKING:
    from app.contacts.parser import RawRow

logger = get_logger(__name__)

# Spreadsheets are only rejected when one of these columns is absent.
SPREADSHEET_MANDATORY_COLUMNS = frozenset({"email", "contact_no"})

EmailLookup = Callable[[str], Awaitable[Any]]


def coerce_text(value: Any) -> str | None:
    """Coerce a cell value to trimmed text, or None when blank.

    Integral floats (spreadsheet numbers such as ``12345.0``) render without
    the fractional part.
    """
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def missing_columns(header: Iterable[str]) -> list[str]:
    """Return required columns absent from a header, in required order."""
    present = set(header)
    return [column for column in REQUIRED_COLUMNS if column not in present]


def check_columns(header: Sequence[str], file_format: FileFormat) -> None:
    """Confirm the header carries the required columns.

    Delimited files need every required column. Spreadsheets are only
    rejected when ``email`` or ``contact_no`` is missing, but the error still
    lists every missing column.

    Raises:
        MissingColumnsError: If the header fails the rule for its format.
    """
    missing = missing_columns(header)
    if not missing:
        return

    if file_format is FileFormat.SPREADSHEET:
        if SPREADSHEET_MANDATORY_COLUMNS.isdisjoint(missing):
            logger.info(
                "Spreadsheet missing optional columns",
                extra={"missing_columns": missing},
            )
            return

    raise MissingColumnsError(missing)


def normalize_row(raw: RawRow) -> NormalizedRow:
    """Trim and coerce every required field of a raw row."""
    values = raw.values
    return NormalizedRow(
        line_number=raw.line_number,
        **{column: coerce_text(values.get(column)) for column in REQUIRED_COLUMNS},
    )


async def validate_row(
    row: NormalizedRow,
    lookup: EmailLookup,
    seen_emails: set[str],
) -> None:
    """Validate one normalized row.

    The duplicate check runs before the contact number check, so a row with
    a known email and no contact number reports the duplicate.

    Args:
        row: Normalized row.
        lookup: Async callable returning the stored record for an email, or None.
        seen_emails: Emails of earlier rows in the same file; updated in place.

    Raises:
        MissingEmailError: If the row has no email.
        DuplicateEmailError: If the email is stored already or repeats in the file.
        MissingContactError: If the row has no contact number.
    """
    if row.email is None:
        raise MissingEmailError(row.line_number)

    if await lookup(row.email) is not None:
        raise DuplicateEmailError(row.email, line_number=row.line_number)

    if row.email in seen_emails:
        raise DuplicateEmailError(row.email, line_number=row.line_number, in_file=True)

    if row.contact_no is None:
        raise MissingContactError(row.line_number)

    seen_emails.add(row.email)


async def validate_rows(
    raw_rows: Iterable[RawRow],
    lookup: EmailLookup,
) -> list[NormalizedRow]:
    """Validate every row in file order, stopping at the first failure.

    Returns:
        Normalized rows, ready to persist.
    """
    seen_emails: set[str] = set()
    normalized: list[NormalizedRow] = []
    for raw in raw_rows:
        row = normalize_row(raw)
        await validate_row(row, lookup, seen_emails)
        normalized.append(row)
    return normalized


__all__ = [
    "SPREADSHEET_MANDATORY_COLUMNS",
    "EmailLookup",
    "check_columns",
    "coerce_text",
    "missing_columns",
    "normalize_row",
    "validate_row",
    "validate_rows",
]
