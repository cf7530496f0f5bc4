"""
Absence grid parsing.

The absenteeism tracker sheet repeats a month block for every month:

    JANUARY
    Team Member Name | 1 | 2 | 3 | ... | 31
    Jane Doe         | Attended | Sick | ...
    ...

Legend rows (Sick, PTO, Holiday, ...) sit above the first block. Every cell
that is neither empty nor "Attended" becomes one AbsenceEvent.
"""

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from core.config import (
    ABSENCE_TYPE_RULES,
    ATTENDED_STATUS,
    AUTHORIZED_MARKERS,
    LEGEND_KEYWORDS,
    MAX_DAY_OF_MONTH,
    MONTH_NAMES,
    UNAUTHORIZED_MARKERS,
)
from models.absence import AbsenceEvent, AbsenceType, Authorization

LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class ScanState(Enum):
    SEEKING_BLOCK = "seeking_block"
    IN_BLOCK = "in_block"


@dataclass(frozen=True)
class MonthBlock:
    """A month section of the grid and its (column, day) pairs."""

    month_name: str
    month_number: int
    day_columns: tuple[tuple[int, int], ...]


# =============================================================================
# CELL HELPERS
# =============================================================================


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text (None -> '', 3.0 -> '3', dates -> ISO)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def row_cell(row: Sequence[Any], col: int) -> str:
    """Cell text at col, or '' for ragged rows."""
    if col < len(row):
        return cell_text(row[col])
    return ""


def parse_day_number(value: Any) -> int | None:
    """Parse the leading integer of a header cell ('1', '1.0', '1st' -> 1)."""
    match = LEADING_INT.match(cell_text(value))
    if not match:
        return None
    return int(match.group(1))


def is_month_name(first_cell: str) -> bool:
    return first_cell.strip().upper() in MONTH_NAMES


def is_legend_keyword(first_cell: str) -> bool:
    return first_cell.strip().upper() in LEGEND_KEYWORDS


def is_block_terminator(first_cell: str) -> bool:
    """An empty first cell, a month name or a legend keyword ends a block."""
    return not first_cell.strip() or is_month_name(first_cell) or is_legend_keyword(first_cell)


# =============================================================================
# CLASSIFICATION
# =============================================================================


def classify_absence_type(status: str) -> AbsenceType:
    """Map a raw status label to its absence type (first matching rule wins)."""
    status_lower = status.lower()
    for markers, type_value in ABSENCE_TYPE_RULES:
        if any(marker in status_lower for marker in markers):
            return AbsenceType(type_value)
    return AbsenceType.OTHER


def infer_authorization(status: str) -> Authorization:
    status_lower = status.lower()
    if any(marker in status_lower for marker in AUTHORIZED_MARKERS):
        return Authorization.AUTHORIZED
    if any(marker in status_lower for marker in UNAUTHORIZED_MARKERS):
        return Authorization.UNAUTHORIZED
    return Authorization.UNKNOWN


# =============================================================================
# STATE MACHINE
# =============================================================================


def next_state(state: ScanState, first_cell: str) -> ScanState:
    """
    Transition on a row's first cell.

    SEEKING_BLOCK -> IN_BLOCK on a month name.
    IN_BLOCK -> SEEKING_BLOCK on a block terminator; the terminating row is
    then examined again while seeking, so a month name opens the next block.
    """
    if state is ScanState.SEEKING_BLOCK:
        return ScanState.IN_BLOCK if is_month_name(first_cell) else ScanState.SEEKING_BLOCK
    return ScanState.SEEKING_BLOCK if is_block_terminator(first_cell) else ScanState.IN_BLOCK


def extract_day_columns(header_row: Sequence[Any]) -> tuple[tuple[int, int], ...]:
    """Pair each header column (from 1) with its day number, skipping non-days."""
    columns = []
    for col in range(1, len(header_row)):
        day = parse_day_number(header_row[col])
        if day is not None and 1 <= day <= MAX_DAY_OF_MONTH:
            columns.append((col, day))
    return tuple(columns)


def open_block(month_cell: str, header_row: Sequence[Any]) -> MonthBlock:
    month_name = month_cell.strip().upper()
    return MonthBlock(
        month_name=month_name,
        month_number=MONTH_NAMES.index(month_name) + 1,
        day_columns=extract_day_columns(header_row),
    )


def calendar_date(year: int, month: int, day: int) -> date:
    """Build a date, rolling days past month end into the next month (Feb 30 -> Mar 1/2)."""
    return date(year, month, 1) + timedelta(days=day - 1)


def row_events(block: MonthBlock, row: Sequence[Any], year: int) -> Iterator[AbsenceEvent]:
    """Events for one employee row of a month block."""
    employee_name = row_cell(row, 0)
    for col, day in block.day_columns:
        status = row_cell(row, col)
        if not status or status.lower() == ATTENDED_STATUS:
            continue
        yield AbsenceEvent(
            employee_name=employee_name,
            date=calendar_date(year, block.month_number, day),
            month=block.month_name,
            day=day,
            year=year,
            status=status,
            type=classify_absence_type(status),
            authorised=infer_authorization(status),
        )


def parse_absence_grid(rows: Sequence[Sequence[Any]], year: int | None = None) -> Iterator[AbsenceEvent]:
    """
    Walk the grid top to bottom and yield absence events.

    Args:
        rows: Sheet rows, each a sequence of cells (ragged rows allowed)
        year: Year stamped on every event. Sheets do not carry their year,
              so this defaults to the current year at parse time.
    """
    if year is None:
        year = date.today().year

    state = ScanState.SEEKING_BLOCK
    block: MonthBlock | None = None
    index = 0

    while index < len(rows):
        row = rows[index]
        first_cell = row_cell(row, 0)
        new_state = next_state(state, first_cell)

        if state is ScanState.IN_BLOCK:
            if new_state is ScanState.SEEKING_BLOCK:
                # Re-examine this row as a possible block start
                state = new_state
                continue
            yield from row_events(block, row, year)
            index += 1
            continue

        if new_state is ScanState.IN_BLOCK:
            header_row = rows[index + 1] if index + 1 < len(rows) else []
            block = open_block(first_cell, header_row)
            state = new_state
            index += 2
            continue

        index += 1
