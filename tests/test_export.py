"""Tests for spreadsheet and CSV generation."""
from datetime import date, datetime, timezone

from openpyxl import load_workbook

from viticult.services.export import (
    CONTACT_COLUMNS,
    VISITOR_COLUMNS,
    ExportService,
    export_filename,
    to_frame,
)

CONTACT = {
    "_id": "65f0c3a2b1e4d5f6a7b8c9d0",
    "name": "Jane Smith",
    "email": "jane@gmail.com",
    "subject": "Casks",
    "status": "new",
    "createdAt": datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc),
}


class TestFrames:
    """Test tabulation of documents."""

    def test_columns_and_cells(self):
        frame = to_frame([CONTACT], CONTACT_COLUMNS)

        assert list(frame.columns) == [header for header, _, _ in CONTACT_COLUMNS]
        row = frame.iloc[0]
        assert row["Submitted At"] == "2024-05-01 09:30:00"
        assert row["Phone"] == ""

    def test_nested_and_list_values(self):
        visitor = {"visitorId": "v_1", "behavior": {"leadScore": 70, "interests": ["casks", "rare"]}}

        row = to_frame([visitor], VISITOR_COLUMNS).iloc[0]

        assert row["Lead Score"] == 70
        assert row["Interests"] == "casks, rare"

    def test_empty_dataset_keeps_headers(self):
        frame = to_frame([], CONTACT_COLUMNS)

        assert frame.empty
        assert "Email" in frame.columns


class TestExportService:
    """Test generated files."""

    def test_workbook_sheets(self):
        buffer = ExportService().workbook({"contacts": [CONTACT], "sell-whisky": [], "consultations": []})

        workbook = load_workbook(buffer)
        assert workbook.sheetnames == ["Contact Inquiries", "Sell Whisky Requests", "Consultation Requests"]

        sheet = workbook["Contact Inquiries"]
        assert sheet["A1"].value == "ID"
        assert sheet["A1"].font.bold
        assert sheet["B2"].value == "Jane Smith"
        assert sheet.column_dimensions["F"].width == 50
        assert workbook["Sell Whisky Requests"].max_row == 1

    def test_csv_has_bom(self):
        buffer = ExportService().dataset_csv("contacts", [CONTACT])

        raw = buffer.getvalue()
        assert raw.startswith(b"\xef\xbb\xbf")
        assert "jane@gmail.com" in raw.decode("utf-8-sig")

    def test_filename(self):
        assert export_filename("xlsx", today=date(2024, 5, 1)) == "whisky-submissions-2024-05-01.xlsx"
