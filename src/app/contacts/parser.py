"""
Parsing of uploaded contact files into raw rows.

Delimited text (.txt, .csv) and spreadsheets (.xlsx, .xls) are supported.
Parsing never validates field contents; it only produces the header and one
RawRow per data line.
"""

import csv
import io
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Iterable

import openpyxl
import xlrd

from app.contacts.models import FileFormat
from app.contacts.validation import coerce_text
from app.shared.exceptions import (
    EmptyFileError,
    UnreadableFileError,
    UnsupportedFormatError,
)
from app.shared.logging import get_logger

logger = get_logger(__name__)


EXTENSION_FORMATS: dict[str, FileFormat] = {
    ".txt": FileFormat.DELIMITED,
    ".csv": FileFormat.DELIMITED,
    ".xlsx": FileFormat.SPREADSHEET,
    ".xls": FileFormat.SPREADSHEET,
}


@dataclass(frozen=True)
class RawRow:
    """One parsed, not yet validated row keyed by column name."""

    line_number: int
    values: dict[str, Any]


@dataclass
class ParsedFile:
    """Header and data rows of an uploaded file."""

    file_format: FileFormat
    header: list[str]
    rows: list[RawRow] = field(default_factory=list)


def file_extension(filename: str | None) -> str:
    """Return the lower-cased extension of a file name, including the dot."""
    if not filename:
        return ""
    return PurePath(filename).suffix.lower()


def detect_format(filename: str | None) -> FileFormat:
    """Map a file name to its upload format.

    Raises:
        UnsupportedFormatError: If the extension is not accepted.
    """
    extension = file_extension(filename)
    try:
        return EXTENSION_FORMATS[extension]
    except KeyError:
        raise UnsupportedFormatError(extension) from None


def ensure_data_rows(parsed: ParsedFile) -> None:
    """Reject a delimited file that has a header but no data lines."""
    if not parsed.rows:
        raise EmptyFileError("No data found in the file after the header")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class RecordParser:
    """Parser for uploaded contact files."""

    def __init__(
        self,
        delimiter: str = ",",
        encoding: str = "utf-8-sig",
    ) -> None:
        """Initialize parser.

        Args:
            delimiter: Field delimiter for delimited text files.
            encoding: Text encoding for delimited files. The default strips a
                leading byte order mark.
        """
        self.delimiter = delimiter
        self.encoding = encoding

    def parse(self, content: bytes, filename: str | None) -> ParsedFile:
        """Parse file content according to the file name's extension.

        Args:
            content: Raw file bytes.
            filename: Original file name, used to pick the format.

        Returns:
            Parsed header and rows.

        Raises:
            UnsupportedFormatError: For any extension outside the accepted set.
            EmptyFileError: When the file holds no rows at all.
            UnreadableFileError: When the content cannot be decoded or opened.
        """
        extension = file_extension(filename)
        file_format = detect_format(filename)

        if file_format is FileFormat.DELIMITED:
            parsed = self.parse_delimited(content)
        elif extension == ".xls":
            parsed = self.parse_xls(content)
        else:
            parsed = self.parse_xlsx(content)

        logger.debug(
            "Upload parsed",
            extra={
                "file_format": file_format.value,
                "extension": extension,
                "header": parsed.header,
                "row_count": len(parsed.rows),
            },
        )
        return parsed

    def parse_delimited(self, content: bytes) -> ParsedFile:
        """Parse comma separated text.

        Lines that are empty after trimming are skipped. The first remaining
        line is the header and later lines are mapped onto it by position,
        so a line of bare delimiters becomes a row with every field missing.
        A header-only file is returned with no rows so the caller can check
        its columns first. An unterminated or misplaced quote raises
        ``UnreadableFileError``.
        """
        try:
            text = content.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise UnreadableFileError(
                f"File encoding error: expected {self.encoding}",
                details={"error": str(e)},
            ) from e

        reader = csv.reader(io.StringIO(text), delimiter=self.delimiter, strict=True)

        header: list[str] | None = None
        rows: list[RawRow] = []
        try:
            for cells in reader:
                # Only whitespace-only lines are skipped; ",,,," is a row.
                if not cells or (len(cells) == 1 and not cells[0].strip()):
                    continue
                if header is None:
                    header = [cell.strip() for cell in cells]
                    continue
                values = {
                    column: cells[index]
                    for index, column in enumerate(header)
                    if column and index < len(cells)
                }
                rows.append(RawRow(line_number=reader.line_num, values=values))
        except csv.Error as e:
            raise UnreadableFileError(
                f"Malformed quoting near line {reader.line_num}",
                details={"line_number": reader.line_num, "error": str(e)},
            ) from e

        if header is None:
            raise EmptyFileError()

        return ParsedFile(file_format=FileFormat.DELIMITED, header=header, rows=rows)

    def parse_xlsx(self, content: bytes) -> ParsedFile:
        """Parse the first worksheet of an .xlsx workbook."""
        try:
            # Not read-only: iter_rows must yield every row so numbering matches the sheet.
            workbook = openpyxl.load_workbook(io.BytesIO(content), data_only=True)
        except Exception as e:
            raise UnreadableFileError(
                "The spreadsheet could not be opened",
                details={"error": str(e)},
            ) from e

        try:
            if not workbook.worksheets:
                raise EmptyFileError()
            sheet = workbook.worksheets[0]
            return self._sheet_rows(sheet.iter_rows(values_only=True))
        finally:
            workbook.close()

    def parse_xls(self, content: bytes) -> ParsedFile:
        """Parse the first sheet of a legacy .xls workbook."""
        try:
            book = xlrd.open_workbook(file_contents=content)
        except Exception as e:
            raise UnreadableFileError(
                "The spreadsheet could not be opened",
                details={"error": str(e)},
            ) from e

        if book.nsheets == 0:
            raise EmptyFileError()
        sheet = book.sheet_by_index(0)
        return self._sheet_rows(sheet.row_values(index) for index in range(sheet.nrows))

    def _sheet_rows(self, sheet_rows: Iterable[Iterable[Any]]) -> ParsedFile:
        """Build rows keyed by the sheet's own header cells.

        Empty cells are left out of the row, so a column that is blank for a
        given row is indistinguishable from a missing column.
        """
        header: list[str] | None = None
        columns: list[tuple[int, str]] = []
        rows: list[RawRow] = []

        for row_index, cells in enumerate(sheet_rows, start=1):
            cells = list(cells)
            if all(_is_blank(cell) for cell in cells):
                continue
            if header is None:
                header = [coerce_text(cell) or "" for cell in cells]
                columns = [(i, name) for i, name in enumerate(header) if name]
                header = [name for _, name in columns]
                continue
            values = {
                name: cells[i]
                for i, name in columns
                if i < len(cells) and not (cells[i] is None or cells[i] == "")
            }
            rows.append(RawRow(line_number=row_index, values=values))

        if header is None or not rows:
            raise EmptyFileError()

        return ParsedFile(file_format=FileFormat.SPREADSHEET, header=header, rows=rows)


__all__ = [
    "EXTENSION_FORMATS",
    "FileFormat",
    "ParsedFile",
    "RawRow",
    "RecordParser",
    "detect_format",
    "ensure_data_rows",
    "file_extension",
]
