"""
Unit tests for the roster upload reader.

Excel fixtures are built in memory with openpyxl, the same library the
reader uses.
"""

import io
from datetime import datetime

import pytest
from openpyxl import Workbook

from src.core.roster import parse_roster
from src.infrastructure.spreadsheet.reader import (
    MAX_UPLOAD_BYTES,
    ImportFileError,
    read_roster_upload,
)


def workbook_bytes(rows: list[list]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class TestTextFiles:
    def test_csv_is_decoded(self):
        assert read_roster_upload("roster.csv", b"Mia,8,,,White Belt") == "Mia,8,,,White Belt"

    def test_byte_order_mark_is_dropped(self):
        text = read_roster_upload("roster.csv", "\ufeffName,Belt".encode("utf-8"))
        assert text == "Name,Belt"

    def test_latin1_fallback(self):
        text = read_roster_upload("roster.txt", "José,8".encode("latin-1"))
        assert text == "José,8"

    def test_extension_is_case_insensitive(self):
        assert read_roster_upload("ROSTER.CSV", b"Mia") == "Mia"


class TestExcelFiles:
    def test_rows_become_tab_separated_lines(self, club):
        content = workbook_bytes([
            ["Name", "Age", "Birthday", "Gender", "Belt", "Stripes"],
            ["Mia", 8, datetime(2016, 5, 15), "Female", "Yellow Belt", 2],
            [None, None, None, None, None, None],
            ["Ben", 9.0, None, "Male", 1, None],
        ])

        text = read_roster_upload("roster.xlsx", content)

        lines = text.split("\n")
        assert lines[1] == "Mia\t8\t2016-05-15\tFemale\tYellow Belt\t2"
        assert len(lines) == 3

        batch = parse_roster(text, club)
        assert batch.header_detected
        assert [r.belt_id for r in batch.rows] == ["wt-3", "wt-1"]
        assert batch.rows[1].age == 9

    def test_corrupt_workbook_is_one_error(self):
        with pytest.raises(ImportFileError, match="Failed to parse Excel file"):
            read_roster_upload("roster.xlsx", b"definitely not a zip file")


class TestRejectedFiles:
    def test_legacy_xls_is_rejected(self):
        with pytest.raises(ImportFileError, match=".xls workbooks are not supported"):
            read_roster_upload("roster.xls", b"\xd0\xcf\x11\xe0")

    def test_unknown_extension_is_rejected(self):
        with pytest.raises(ImportFileError, match="Unsupported file type"):
            read_roster_upload("roster.pdf", b"%PDF-1.4")

    def test_empty_file_is_rejected(self):
        with pytest.raises(ImportFileError, match="empty"):
            read_roster_upload("roster.csv", b"")

    def test_oversized_file_is_rejected(self):
        with pytest.raises(ImportFileError, match="too large"):
            read_roster_upload("roster.csv", b"x" * (MAX_UPLOAD_BYTES + 1))
