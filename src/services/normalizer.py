"""
Normalization of absence-log rows into NormalizedRecord.

Rows arrive either as dicts keyed by field name (JSON endpoints, header-mapped
sheets) or as positional lists (raw Sheets API values, columns A-Q). Each
output field declares the sources it may be read from, in priority order.
"""

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from dateutil import parser as date_parser

from core.config import (
    DEFAULT_ABSENTEE_NAME,
    DEFAULT_CLIENT,
    DEFAULT_COUNTRY,
    DEFAULT_CSP,
    RECORD_SOURCE,
)
from core.logging import get_logger
from models.absence import Authorization, NormalizedRecord

logger = get_logger(__name__)

LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


# =============================================================================
# SOURCES
# =============================================================================


@dataclass(frozen=True)
class NamedSource:
    key: str

    def read(self, row: Any) -> Any:
        if isinstance(row, Mapping):
            value = row.get(self.key)
            return row.get(self.key.lower()) if value is None else value
        return None


@dataclass(frozen=True)
class PositionalSource:
    index: int

    def read(self, row: Any) -> Any:
        if isinstance(row, Mapping):
            value = row.get(self.index)
            return row.get(str(self.index)) if value is None else value
        if self.index < len(row):
            return row[self.index]
        return None


def is_absent(value: Any) -> bool:
    return value is None or value == ""


def first_present(row: Any, sources: Sequence[NamedSource | PositionalSource]) -> Any:
    """Try each source in order; None if every source is absent."""
    for source in sources:
        value = source.read(row)
        if not is_absent(value):
            return value
    return None


# =============================================================================
# COERCION
# =============================================================================


def parse_date(value: Any) -> str:
    """Parse any recognizable date into 'YYYY-MM-DD'; '' when unparseable."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        return ""
    try:
        return date_parser.parse(value).date().isoformat()
    except (ValueError, OverflowError):
        return ""


def parse_int(value: Any) -> int | None:
    """Leading integer of a value ('3 days' -> 3); None when there is none."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def is_affirmative(value: Any) -> bool:
    """'yes' anywhere or exactly 'true' (any case); non-strings by truthiness."""
    if isinstance(value, str):
        lowered = value.strip().lower()
        return "yes" in lowered or lowered == "true"
    return bool(value)


def normalize_authorization(value: Any) -> Authorization:
    if is_absent(value):
        return Authorization.UNKNOWN
    return Authorization.AUTHORIZED if is_affirmative(value) else Authorization.UNAUTHORIZED


def as_text(value: Any) -> str:
    return str(value).strip()


# =============================================================================
# FIELD PLAN
# =============================================================================


@dataclass(frozen=True)
class FieldSpec:
    """How to fill one NormalizedRecord field."""

    name: str
    sources: tuple[NamedSource | PositionalSource, ...]
    coerce: Callable[[Any], Any]
    default: Callable[["RowContext"], Any]


@dataclass(frozen=True)
class RowContext:
    index: int
    now: datetime


def sources(*names: str, position: int) -> tuple[NamedSource | PositionalSource, ...]:
    return tuple(NamedSource(n) for n in names) + (PositionalSource(position),)


def constant(value: Any) -> Callable[[RowContext], Any]:
    return lambda ctx: value


def parse_year(value: Any) -> int | None:
    return parse_int(value) or None


FIELD_PLAN: list[FieldSpec] = [
    FieldSpec("week_start", sources("weekStart", "week start", position=0), parse_date, constant("")),
    FieldSpec("start_date", sources("startDate", "start date", position=1), parse_date, constant("")),
    FieldSpec("end_date", sources("endDate", "end date", position=2), parse_date, constant("")),
    FieldSpec("no_of_days", sources("noOfDays", "no. of days", position=3), parse_int, constant(0)),
    FieldSpec(
        "no_of_days_no_wknd",
        sources("noOfDaysNoWknd", "no. of days (no weekends)", position=4),
        parse_int,
        constant(0),
    ),
    FieldSpec(
        "name_of_absentee",
        sources("nameOfAbsentee", "name of absentee", position=5),
        as_text,
        constant(DEFAULT_ABSENTEE_NAME),
    ),
    FieldSpec(
        "reason_for_absence",
        sources("reasonForAbsence", "reason for absence", position=6),
        as_text,
        constant(""),
    ),
    FieldSpec(
        "absenteeism_authorised",
        sources("absenteeismAuthorised", "absenteeism authorised?", position=7),
        normalize_authorization,
        constant(Authorization.UNKNOWN),
    ),
    FieldSpec("leave_form_sent", sources("leaveFormSent", "leave form sent?", position=8), is_affirmative, constant(False)),
    FieldSpec("comment", sources("comment", position=9), as_text, constant("")),
    FieldSpec("client", sources("client", position=10), as_text, constant(DEFAULT_CLIENT)),
    FieldSpec("csp", sources("csp", position=11), as_text, constant(DEFAULT_CSP)),
    FieldSpec("country", sources("country", position=12), as_text, constant(DEFAULT_COUNTRY)),
    FieldSpec("week_no", sources("weekNo", "week no", position=13), parse_int, constant(0)),
    FieldSpec("month", sources("month", position=14), as_text, constant("")),
    FieldSpec("year", sources("year", position=15), parse_year, lambda ctx: ctx.now.year),
    FieldSpec("time_stamp", sources("timeStamp", "timestamp", position=16), as_text, lambda ctx: ctx.now.isoformat()),
]


# =============================================================================
# NORMALIZATION
# =============================================================================


def header_view(row: Mapping) -> dict:
    """Row keys plus their trimmed lower-case forms; exact keys win."""
    view = {str(k).strip().lower(): v for k, v in row.items() if not isinstance(k, int)}
    view.update(row)
    return view


def generate_record_id(ctx: RowContext) -> str:
    return f"sheet-{int(ctx.now.timestamp() * 1000)}-{ctx.index}"


def normalize_row(
    row: Mapping | Sequence, index: int, plan: Sequence[FieldSpec] = FIELD_PLAN, now: datetime | None = None
) -> NormalizedRecord:
    """
    Build a NormalizedRecord from one raw row.

    Raises:
        TypeError: If the row is neither a mapping nor a list-like sequence
    """
    if not isinstance(row, (Mapping, list, tuple)):
        raise TypeError(f"Unsupported row type: {type(row).__name__}")

    ctx = RowContext(index=index, now=now or datetime.now(timezone.utc))
    if isinstance(row, Mapping):
        row = header_view(row)
    values: dict[str, Any] = {}

    for spec in plan:
        raw = first_present(row, spec.sources)
        value = None if raw is None else spec.coerce(raw)
        values[spec.name] = spec.default(ctx) if value is None else value

    row_id = row.get("id") if isinstance(row, Mapping) else None
    return NormalizedRecord(
        id=as_text(row_id) if not is_absent(row_id) else generate_record_id(ctx),
        synced_at=ctx.now.isoformat(),
        source=RECORD_SOURCE,
        **values,
    )


def normalize_rows(
    rows: Iterable[Any], plan: Sequence[FieldSpec] = FIELD_PLAN, now: datetime | None = None
) -> list[NormalizedRecord]:
    """
    Normalize a batch of rows, best-effort per row.

    A row that fails is logged and dropped; the batch always completes.
    """
    now = now or datetime.now(timezone.utc)
    records = []
    for index, row in enumerate(rows):
        try:
            records.append(normalize_row(row, index, plan, now))
        except Exception as e:
            logger.warning("row_normalization_failed", row_index=index, error=str(e))
    return records


def rows_from_values(values: Sequence[Sequence[Any]], header_row: int = 0) -> list[dict[str, Any]]:
    """
    Convert a value grid into dicts keyed by lower-cased header.

    Rows shorter than the header are padded with ''.
    """
    if len(values) <= header_row + 1:
        return []
    headers = [str(h).strip().lower() if h is not None else "" for h in values[header_row]]
    records = []
    for row in values[header_row + 1:]:
        records.append(
            {header: (row[i] if i < len(row) and row[i] is not None else "") for i, header in enumerate(headers)}
        )
    return records
