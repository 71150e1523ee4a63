"""
Uploaded roster files.

The import pipeline only understands delimited text. Uploads are converted
here: CSV and plain-text files are decoded, Excel workbooks are flattened to
tab-separated lines (the same shape a copy-paste from Excel produces).

Any problem reading a file is reported as one ImportFileError for the whole
batch. Nothing partial is kept.
"""

import io
import logging
from datetime import date, datetime
from pathlib import PurePath

from openpyxl import load_workbook


logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".csv", ".txt", ".tsv")
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
LEGACY_EXCEL_EXTENSIONS = (".xls",)

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class ImportFileError(Exception):
    """Raised when an uploaded roster file can't be turned into rows."""
    pass


def read_roster_upload(filename: str, content: bytes) -> str:
    """
    Convert an uploaded file to roster text.

    The file type is decided by extension.
    """
    if not content:
        raise ImportFileError("File is empty")
    if len(content) > MAX_UPLOAD_BYTES:
        raise ImportFileError(
            f"File is too large ({len(content) // 1024} KB). Maximum is {MAX_UPLOAD_BYTES // 1024} KB."
        )

    suffix = PurePath(filename or "").suffix.lower()
    if suffix in TEXT_EXTENSIONS:
        return decode_text(content)
    if suffix in EXCEL_EXTENSIONS:
        return workbook_to_text(content)
    if suffix in LEGACY_EXCEL_EXTENSIONS:
        raise ImportFileError(
            "Legacy .xls workbooks are not supported. Save the sheet as .xlsx or .csv and upload again."
        )
    raise ImportFileError(f"Unsupported file type '{suffix or filename}'. Upload a .csv, .txt or .xlsx file.")


def decode_text(content: bytes) -> str:
    """UTF-8 (with or without BOM), falling back to latin-1 for old exports."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("Roster upload is not UTF-8, decoding as latin-1")
        return content.decode("latin-1")


def workbook_to_text(content: bytes) -> str:
    """Flatten the active sheet of a workbook into tab-separated lines."""
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ImportFileError(f"Failed to parse Excel file: {e}") from e

    try:
        ws = wb.active
        if ws is None:
            raise ImportFileError("Excel file has no active sheet")

        lines = []
        for row in ws.iter_rows(values_only=True):
            cells = [cell_to_text(value) for value in row]
            if any(cells):
                lines.append("\t".join(cells))
    finally:
        wb.close()

    logger.info("Workbook converted", extra={"rows": len(lines)})
    return "\n".join(lines)


def cell_to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    # Tabs and newlines inside a cell would break the row/column shape
    return str(value).replace("\t", " ").replace("\n", " ").strip()
