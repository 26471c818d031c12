"""
Spreadsheet and PDF export of contact records.
"""

import io
from collections.abc import Iterable
from xml.sax.saxutils import escape

from openpyxl import Workbook
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Table, TableStyle

from app.contacts.schemas import ContactRecordResponse

EXPORT_SHEET_TITLE = "User Data"
EXPORT_FILENAME = "UserData.xlsx"
EXPORT_PDF_FILENAME = "UserData.pdf"
EXPORT_COLUMNS: tuple[tuple[str, str], ...] = (
    ("ID", "id"),
    ("Name", "name"),
    ("Email", "email"),
    ("Contact No", "contact_no"),
    ("Gender", "gender"),
    ("Address", "address"),
)
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"

# Relative widths of the PDF columns, in EXPORT_COLUMNS order.
_PDF_COLUMN_WEIGHTS = (0.07, 0.17, 0.25, 0.14, 0.09, 0.28)


def records_to_xlsx(records: Iterable[ContactRecordResponse]) -> bytes:
    """Render records as a single-sheet workbook with a fixed column set."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = EXPORT_SHEET_TITLE

    sheet.append([title for title, _ in EXPORT_COLUMNS])
    for record in records:
        sheet.append([getattr(record, attr) for _, attr in EXPORT_COLUMNS])

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def records_to_pdf(records: Iterable[ContactRecordResponse]) -> bytes:
    """Render records as a PDF table with the same fixed columns.

    The table flows over as many pages as needed and the header row is
    repeated at the top of each page. Cell text wraps within its column.
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        title=EXPORT_SHEET_TITLE,
        leftMargin=12 * mm,
        rightMargin=12 * mm,
        topMargin=15 * mm,
        bottomMargin=12 * mm,
    )
    cell_style = getSampleStyleSheet()["BodyText"]
    cell_style.fontSize = 8
    cell_style.leading = 10

    data: list[list[object]] = [[title for title, _ in EXPORT_COLUMNS]]
    for record in records:
        data.append(
            [
                Paragraph(escape(_cell_text(getattr(record, attr))), cell_style)
                for _, attr in EXPORT_COLUMNS
            ]
        )

    table = Table(
        data,
        colWidths=[doc.width * weight for weight in _PDF_COLUMN_WEIGHTS],
        repeatRows=1,
    )
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2980b9")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, 0), 9),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5f5")]),
            ]
        )
    )
    doc.build([table])
    return buffer.getvalue()


def _cell_text(value: object) -> str:
    return "" if value is None else str(value)
