"""CSV and Excel exports of submissions and visitors."""
import io
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from openpyxl.styles import Font, PatternFill

from viticult.core.logging import LogTimer, get_logger

logger = get_logger(__name__)

HEADER_FILL = PatternFill(start_color="FFD4A574", end_color="FFD4A574", fill_type="solid")
HEADER_FONT = Font(bold=True)

# (header, document key, column width)
Column = Tuple[str, str, int]

CONTACT_COLUMNS: List[Column] = [
    ("ID", "_id", 25),
    ("Name", "name", 25),
    ("Email", "email", 30),
    ("Phone", "phone", 20),
    ("Subject", "subject", 30),
    ("Message", "message", 50),
    ("Investment Interest", "investmentInterest", 20),
    ("Preferred Contact", "preferredContactMethod", 20),
    ("Status", "status", 15),
    ("Submitted At", "createdAt", 20),
    ("Updated At", "updatedAt", 20),
]

SELL_WHISKY_COLUMNS: List[Column] = [
    ("ID", "_id", 25),
    ("Name", "name", 25),
    ("Email", "email", 30),
    ("Phone", "phone", 20),
    ("Distillery", "distillery", 25),
    ("Year", "year", 10),
    ("Cask Type", "caskType", 15),
    ("Litres", "litres", 10),
    ("ABV", "abv", 10),
    ("Asking Price", "askingPrice", 15),
    ("Message", "message", 50),
    ("Status", "status", 15),
    ("Submitted At", "createdAt", 20),
    ("Updated At", "updatedAt", 20),
]

CONSULTATION_COLUMNS: List[Column] = [
    ("ID", "_id", 25),
    ("Name", "name", 25),
    ("Email", "email", 30),
    ("Phone", "phone", 20),
    ("Preferred Date", "preferredDate", 20),
    ("Preferred Time", "preferredTime", 15),
    ("Timezone", "timezone", 15),
    ("Budget", "investmentBudget", 15),
    ("Experience", "investmentExperience", 15),
    ("Interested In", "interestedIn", 40),
    ("Additional Info", "additionalInfo", 50),
    ("Status", "status", 15),
    ("Consultant", "consultantAssigned", 20),
    ("Submitted At", "createdAt", 20),
]

VISITOR_COLUMNS: List[Column] = [
    ("Visitor ID", "visitorId", 25),
    ("Email", "email", 30),
    ("Name", "name", 25),
    ("Phone", "phone", 20),
    ("Status", "status", 15),
    ("Lead Score", "behavior.leadScore", 12),
    ("Engagement Score", "behavior.engagementScore", 12),
    ("Interests", "behavior.interests", 30),
    ("First Visit", "firstVisit", 20),
    ("Last Visit", "lastVisit", 20),
    ("Total Visits", "totalVisits", 12),
]

SHEETS = {
    "contacts": ("Contact Inquiries", CONTACT_COLUMNS),
    "sell-whisky": ("Sell Whisky Requests", SELL_WHISKY_COLUMNS),
    "consultations": ("Consultation Requests", CONSULTATION_COLUMNS),
}


def _lookup(document: Dict[str, Any], dotted_key: str) -> Any:
    value: Any = document
    for part in dotted_key.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _cell(value: Any) -> Any:
    # openpyxl rejects tz-aware datetimes, and lists need flattening
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    if value is None:
        return ""
    return value


def to_frame(documents: Iterable[Dict[str, Any]], columns: Sequence[Column]) -> pd.DataFrame:
    """Tabulate documents using the given column layout."""
    rows = [
        {header: _cell(_lookup(doc, key)) for header, key, _ in columns}
        for doc in documents
    ]
    return pd.DataFrame(rows, columns=[header for header, _, _ in columns])


def export_filename(extension: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"whisky-submissions-{today.isoformat()}.{extension}"


class ExportService:
    """Generates downloadable CSV and Excel files."""

    def workbook(self, datasets: Dict[str, List[Dict[str, Any]]]) -> io.BytesIO:
        """Build an .xlsx workbook with one styled sheet per dataset.

        Args:
            datasets: Mapping of dataset key (``contacts``, ``sell-whisky``,
                ``consultations``) to documents

        Returns:
            A BytesIO buffer containing the Excel data
        """
        buffer = io.BytesIO()
        with LogTimer(logger, "excel_export"), pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            for key, (sheet_name, columns) in SHEETS.items():
                frame = to_frame(datasets.get(key, []), columns)
                frame.to_excel(writer, sheet_name=sheet_name, index=False)

                sheet = writer.sheets[sheet_name]
                for cell in sheet[1]:
                    cell.font = HEADER_FONT
                    cell.fill = HEADER_FILL
                for index, (_, _, width) in enumerate(columns):
                    sheet.column_dimensions[sheet.cell(row=1, column=index + 1).column_letter].width = width

        buffer.seek(0)
        logger.info(
            "Exported workbook: " + ", ".join(f"{key}={len(rows)}" for key, rows in datasets.items())
        )
        return buffer

    def csv(self, documents: List[Dict[str, Any]], columns: Sequence[Column]) -> io.BytesIO:
        frame = to_frame(documents, columns)
        buffer = io.BytesIO()
        frame.to_csv(buffer, index=False, encoding="utf-8-sig")
        buffer.seek(0)
        logger.info(f"Exported {len(frame)} records as CSV")
        return buffer

    def dataset_csv(self, dataset: str, documents: List[Dict[str, Any]]) -> io.BytesIO:
        _, columns = SHEETS[dataset]
        return self.csv(documents, columns)

    def visitors_csv(self, visitors: List[Dict[str, Any]]) -> io.BytesIO:
        return self.csv(visitors, VISITOR_COLUMNS)
