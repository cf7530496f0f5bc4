"""
Excel absence reports.
"""

from io import BytesIO
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from core.config import DETAIL_HEADERS, SUMMARY_CATEGORIES, SUMMARY_HEADERS
from core.logging import get_logger
from models.absence import AbsenceEvent, Authorization, EmployeeSummary

logger = get_logger(__name__)

SUMMARY_SHEET_TITLE = "Absence Summary"
DETAIL_SHEET_TITLE = "Absence Detail"


def format_date_display(d) -> str:
    """Format date as M/D/YYYY (no zero-padding)."""
    return f"{d.month}/{d.day}/{d.year}"


def authorisation_label(authorised: Authorization) -> str:
    return authorised.yes_no or "Unknown"


def write_header_row(ws, headers: list[str]):
    for col_idx, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = Font(bold=True)


def write_summary_sheet(ws, summaries: list[EmployeeSummary]):
    """
    Write one row per employee with totals and per-category counts.

    A final Total row sums every numeric column.
    """
    write_header_row(ws, SUMMARY_HEADERS)

    for row_idx, summary in enumerate(summaries, start=2):
        row_data = [
            summary.employee_name,
            summary.total_absences,
            summary.authorised,
            summary.unauthorised,
        ] + [summary.by_type.get(category, 0) for category in SUMMARY_CATEGORIES]

        for col_idx, value in enumerate(row_data, start=1):
            ws.cell(row=row_idx, column=col_idx, value=value)

    if not summaries:
        return

    total_row = len(summaries) + 2
    last_data_row = total_row - 1
    label = ws.cell(row=total_row, column=1, value="Total")
    label.font = Font(bold=True)
    for col_idx in range(2, len(SUMMARY_HEADERS) + 1):
        col_letter = get_column_letter(col_idx)
        ws.cell(row=total_row, column=col_idx, value=f"=SUM({col_letter}2:{col_letter}{last_data_row})")


def write_detail_sheet(ws, events: list[AbsenceEvent]):
    """Write every absence event, ordered by employee then date."""
    write_header_row(ws, DETAIL_HEADERS)

    ordered = sorted(events, key=lambda e: (e.employee_name, e.date))
    for row_idx, event in enumerate(ordered, start=2):
        row_data = [
            event.employee_name,
            format_date_display(event.date),
            event.month,
            event.day,
            event.status,
            event.type.value,
            authorisation_label(event.authorised),
        ]
        for col_idx, value in enumerate(row_data, start=1):
            ws.cell(row=row_idx, column=col_idx, value=value)


def build_absence_workbook(summaries: list[EmployeeSummary], events: list[AbsenceEvent]) -> Workbook:
    wb = Workbook()

    ws_summary = wb.active
    ws_summary.title = SUMMARY_SHEET_TITLE
    write_summary_sheet(ws_summary, summaries)

    ws_detail = wb.create_sheet(title=DETAIL_SHEET_TITLE)
    write_detail_sheet(ws_detail, events)

    return wb


def create_absence_excel_report(
    summaries: list[EmployeeSummary], events: list[AbsenceEvent], output_path: Path
) -> Path:
    """
    Create the absence workbook at output_path.

    Sheet 1: "Absence Summary" - one row per employee plus a Total row
    Sheet 2: "Absence Detail" - one row per absence event
    """
    wb = build_absence_workbook(summaries, events)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(str(output_path))
    logger.info("absence_report_saved", path=str(output_path), employees=len(summaries), events=len(events))
    return output_path


def absence_report_to_bytes(summaries: list[EmployeeSummary], events: list[AbsenceEvent]) -> bytes:
    """The absence workbook as .xlsx bytes, for the summary download."""
    buffer = BytesIO()
    build_absence_workbook(summaries, events).save(buffer)
    return buffer.getvalue()
