"""xlsx encoding of an export workbook via openpyxl."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING, Any

from openpyxl import Workbook as XlsxWorkbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils import get_column_letter

if TYPE_CHECKING:
    from .export import Workbook

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
# Excel refuses cells longer than this
MAX_CELL_CHARS = 32767


class CellTooLargeError(Exception):
    pass


def clean_cell(value: Any) -> Any:
    """Drop control characters the xlsx format cannot store."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def encode_workbook(workbook: "Workbook") -> bytes:
    book = XlsxWorkbook()
    book.remove(book.active)
    for sheet in workbook.sheets:
        ws = book.create_sheet(title=sheet.title)
        for row in [sheet.headers, *sheet.rows]:
            cleaned = [clean_cell(value) for value in row]
            for value in cleaned:
                if isinstance(value, str) and len(value) > MAX_CELL_CHARS:
                    raise CellTooLargeError(
                        f"Cell in sheet {sheet.title!r} has {len(value)} characters"
                    )
            ws.append(cleaned)
        for index, width in enumerate(sheet.widths, start=1):
            ws.column_dimensions[get_column_letter(index)].width = width

    buffer = io.BytesIO()
    book.save(buffer)
    return buffer.getvalue()
