"""
Sync orchestration: fetch sheet data, run it through the absence pipeline,
and persist the results.

Every sync returns a result object instead of raising; a failing source
yields success=False with an empty record list and a logged reason.
"""

import asyncio
import re
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx

from core.config import (
    ABSENCE_API_CACHE_PATH,
    ABSENCE_EVENTS_PATH,
    ABSENCE_LOG_CACHE_PATH,
    ABSENCE_LOG_COLUMNS,
    ABSENCE_TAB_PATH,
    ABSENTEEISM_GRID_RANGE,
    LEAVE_TRACKER_PATH,
    PTO_PATH,
    TEAM_MEMBERS_PATH,
)
from core.database import insert_record
from core.logging import get_logger
from core.storage import read_json, write_json
from core.validation import split_valid
from models.absence import AbsenceEvent, EmployeeSummary, NormalizedRecord
from services.deduplication import deduplicate_records
from services.grid_parser import parse_absence_grid
from services.normalizer import normalize_rows, rows_from_values
from services.sheets import fetch_api_records, fetch_sheet_titles, fetch_sheet_values
from services.summary import summarize_absences

logger = get_logger(__name__)

# Tab title patterns, checked case-insensitively, with fallback tab positions
SHEET_PATTERNS = {
    "team_members": (r"team.*member.*work|team.*details|team.*member", 0),
    "leave_tracker": (r"leave.*track|leave.*request|leave", 1),
    "absenteeism": (r"absent|input.*spread", 0),
    "pto": (r"pto.*update|pto|time.*off", 2),
}

# A tab row is kept only if it names someone
NAME_FIELDS = ("name", "surname", "team member", "team member name", "employee name", "name of absentee")

TAB_RANGE = "A1:Z1000"


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class SyncResult:
    """Outcome of syncing one absence-log source."""

    success: bool
    source: str
    records: list[NormalizedRecord] = field(default_factory=list)
    total_fetched: int = 0
    synced_at: str = ""
    error: str | None = None
    from_cache: bool = False

    @property
    def total_normalized(self) -> int:
        return len(self.records)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "source": self.source,
            "totalFetched": self.total_fetched,
            "totalNormalized": self.total_normalized,
            "syncedAt": self.synced_at,
            "error": self.error,
            "fromCache": self.from_cache,
        }


@dataclass
class GridSyncResult:
    """Outcome of parsing an absence grid."""

    success: bool
    events: list[AbsenceEvent] = field(default_factory=list)
    summaries: list[EmployeeSummary] = field(default_factory=list)
    error: str | None = None

    @property
    def count(self) -> int:
        return len(self.events)


@dataclass
class ImportSummary:
    """Counts from one normalize -> dedupe -> validate -> insert run."""

    fetched: int = 0
    normalized: int = 0
    deduplicated: int = 0
    validated: int = 0
    inserted: int = 0
    skipped: int = 0
    invalid: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "fetched": self.fetched,
            "normalized": self.normalized,
            "deduplicated": self.deduplicated,
            "validated": self.validated,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "invalid": self.invalid,
        }


@dataclass
class AllSheetsResult:
    success: bool
    sheet_map: dict[str, str] = field(default_factory=dict)
    stats: dict[str, int] = field(default_factory=dict)
    error: str | None = None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# ABSENCE GRID
# =============================================================================


def parse_and_store_grid(
    rows: Sequence[Sequence[Any]], year: int | None = None, output_path: Path = ABSENCE_EVENTS_PATH
) -> GridSyncResult:
    """Parse a grid, write its events JSON and summarize them."""
    events = list(parse_absence_grid(rows, year=year))
    write_json(output_path, [event.to_dict() for event in events])
    logger.info("absence_grid_parsed", events=len(events), output=str(output_path))
    return GridSyncResult(success=True, events=events, summaries=summarize_absences(events))


def load_stored_events(path: Path = ABSENCE_EVENTS_PATH) -> list[AbsenceEvent]:
    """Events from the last grid sync, or [] if none has run."""
    return [AbsenceEvent.from_dict(item) for item in read_json(path, default=[])]


async def sync_absence_grid(
    spreadsheet_id: str,
    api_key: str,
    cell_range: str = ABSENTEEISM_GRID_RANGE,
    year: int | None = None,
    output_path: Path = ABSENCE_EVENTS_PATH,
    client: httpx.AsyncClient | None = None,
) -> GridSyncResult:
    """Fetch the monthly absence grid from Google Sheets and parse it."""
    try:
        rows = await fetch_sheet_values(spreadsheet_id, cell_range, api_key, client=client)
        if not rows:
            logger.info("absence_grid_empty", cell_range=cell_range)
        return parse_and_store_grid(rows, year=year, output_path=output_path)
    except Exception as e:
        logger.error("absence_grid_sync_failed", error=str(e))
        return GridSyncResult(success=False, error=str(e))


# =============================================================================
# ABSENCE LOG
# =============================================================================


def write_cache(path: Path, result: SyncResult, **metadata: Any) -> None:
    write_json(
        path,
        {
            **metadata,
            "source": result.source,
            "syncedAt": result.synced_at,
            "totalFetched": result.total_fetched,
            "totalNormalized": result.total_normalized,
            "records": [record.to_dict() for record in result.records],
        },
    )


def load_cached_records(path: Path = ABSENCE_LOG_CACHE_PATH) -> list[NormalizedRecord]:
    """Records from the last successful sync cached at path."""
    cached = read_json(path, default={}) or {}
    return [NormalizedRecord.from_dict(item) for item in cached.get("records", [])]


def cache_metadata(path: Path = ABSENCE_LOG_CACHE_PATH) -> dict | None:
    """Last sync time and record count, or None if nothing is cached."""
    cached = read_json(path)
    if not cached:
        return None
    return {
        "cachedRecords": len(cached.get("records", [])),
        "lastSync": cached.get("syncedAt"),
        "spreadsheetId": cached.get("spreadsheetId"),
        "sheetName": cached.get("sheetName"),
        "cacheFile": str(path),
    }


async def sync_absence_log(
    spreadsheet_id: str,
    api_key: str,
    sheet_name: str,
    cache_path: Path = ABSENCE_LOG_CACHE_PATH,
    client: httpx.AsyncClient | None = None,
) -> SyncResult:
    """
    Read the 17-column absence log tab and normalize it.

    On failure, the records of the last successful sync are served from the
    cache (from_cache=True) when a cache exists.
    """
    try:
        rows = await fetch_sheet_values(
            spreadsheet_id, quote_range(sheet_name, ABSENCE_LOG_COLUMNS), api_key, client=client
        )
        result = SyncResult(
            success=True,
            source="google-sheets-api",
            records=normalize_rows(rows),
            total_fetched=len(rows),
            synced_at=_utc_now(),
        )
        write_cache(cache_path, result, spreadsheetId=spreadsheet_id, sheetName=sheet_name)
        logger.info(
            "absence_log_synced",
            sheet_name=sheet_name,
            fetched=result.total_fetched,
            normalized=result.total_normalized,
        )
        return result
    except Exception as e:
        logger.error("absence_log_sync_failed", sheet_name=sheet_name, error=str(e))
        cached = read_json(cache_path)
        if cached:
            logger.warning("absence_log_served_from_cache", cache=str(cache_path))
            records = [NormalizedRecord.from_dict(item) for item in cached.get("records", [])]
            return SyncResult(
                success=True,
                source="cache",
                records=records,
                total_fetched=len(records),
                synced_at=cached.get("syncedAt", ""),
                error=str(e),
                from_cache=True,
            )
        return SyncResult(success=False, source="google-sheets-api", error=str(e))


async def sync_absence_api(
    url: str,
    headers: dict[str, str] | None = None,
    cache_path: Path = ABSENCE_API_CACHE_PATH,
    client: httpx.AsyncClient | None = None,
) -> SyncResult:
    """Fetch absence rows from a sheet-backed JSON endpoint and normalize them."""
    try:
        rows = await fetch_api_records(url, headers=headers, client=client)
        result = SyncResult(
            success=True,
            source="sheets-api",
            records=normalize_rows(rows),
            total_fetched=len(rows),
            synced_at=_utc_now(),
        )
        write_cache(cache_path, result)
        logger.info("absence_api_synced", fetched=result.total_fetched, normalized=result.total_normalized)
        return result
    except Exception as e:
        logger.error("absence_api_sync_failed", url=url, error=str(e))
        return SyncResult(success=False, source="sheets-api", error=str(e))


def import_records(
    conn: sqlite3.Connection, records: list[NormalizedRecord], fetched: int | None = None
) -> ImportSummary:
    """
    Deduplicate, validate and insert records.

    Invalid records are counted and left out; a failed insert skips only
    that record.
    """
    summary = ImportSummary(fetched=len(records) if fetched is None else fetched, normalized=len(records))

    deduplicated = deduplicate_records(records)
    summary.deduplicated = len(deduplicated)

    valid, invalid = split_valid(deduplicated)
    summary.validated = len(valid)
    summary.invalid = len(invalid)
    for result in invalid:
        name = result.cleaned_record.name_of_absentee or result.cleaned_record.id
        summary.errors.extend(f"{name}: {error}" for error in result.errors)

    for record in valid:
        try:
            insert_record(conn, record)
            summary.inserted += 1
        except sqlite3.Error as e:
            logger.warning("record_insert_failed", name_of_absentee=record.name_of_absentee, error=str(e))
            summary.skipped += 1

    logger.info("records_imported", **summary.to_dict())
    return summary


# =============================================================================
# ALL TABS
# =============================================================================


def detect_sheet_map(titles: list[str]) -> dict[str, str]:
    """Match tab titles to sources, falling back to tab position."""
    sheet_map = {}
    for source, (pattern, fallback) in SHEET_PATTERNS.items():
        match = next((t for t in titles if re.search(pattern, t, re.IGNORECASE)), None)
        if match is None and fallback < len(titles):
            match = titles[fallback]
        if match is not None:
            sheet_map[source] = match
    return sheet_map


def quote_range(title: str, cells: str) -> str:
    """A1 range for a tab title ('Leave Tracker' -> "'Leave Tracker'!A1:Z1000")."""
    return "'{}'!{}".format(title.replace("'", "''"), cells)


def tab_records(values: list[list[Any]], label: str) -> list[dict[str, Any]]:
    """Header-mapped rows of a tab, keeping only rows that name someone."""
    header_row = 0
    # The leave tracker carries a single-cell title row ("June/July") above its headers
    if label == "leave_tracker" and values and len(values[0]) == 1:
        header_row = 1
    return [r for r in rows_from_values(values, header_row) if any(r.get(f) for f in NAME_FIELDS)]


async def sync_tab(
    spreadsheet_id: str, api_key: str, title: str, label: str, client: httpx.AsyncClient | None = None
) -> list[dict[str, Any]]:
    """Fetch one tab as header-mapped rows; [] on any failure."""
    try:
        values = await fetch_sheet_values(spreadsheet_id, quote_range(title, TAB_RANGE), api_key, client=client)
        records = tab_records(values, label)
        logger.info("tab_synced", label=label, title=title, records=len(records))
        return records
    except Exception as e:
        logger.error("tab_sync_failed", label=label, title=title, error=str(e))
        return []


async def sync_all_sheets(
    spreadsheet_id: str,
    api_key: str,
    grid_range: str = ABSENTEEISM_GRID_RANGE,
    year: int | None = None,
    client: httpx.AsyncClient | None = None,
    output_paths: dict[str, Path] | None = None,
) -> AllSheetsResult:
    """
    Sync the team members, leave tracker, absenteeism and PTO tabs plus the
    absence grid concurrently. Each source writes its own file, and one
    failing source leaves the others untouched.
    """
    paths = {
        "team_members": TEAM_MEMBERS_PATH,
        "leave_tracker": LEAVE_TRACKER_PATH,
        "absenteeism": ABSENCE_TAB_PATH,
        "pto": PTO_PATH,
        "absence_grid": ABSENCE_EVENTS_PATH,
    }
    paths.update(output_paths or {})

    try:
        titles = await fetch_sheet_titles(spreadsheet_id, api_key, client=client)
    except Exception as e:
        logger.error("sheet_titles_failed", error=str(e))
        return AllSheetsResult(success=False, error=str(e))

    sheet_map = detect_sheet_map(titles)
    logger.info("sheet_map_detected", sheet_map=sheet_map)

    labels = list(sheet_map)
    results = await asyncio.gather(
        *(sync_tab(spreadsheet_id, api_key, sheet_map[label], label, client=client) for label in labels),
        sync_absence_grid(
            spreadsheet_id, api_key, cell_range=grid_range, year=year,
            output_path=paths["absence_grid"], client=client,
        ),
    )
    tab_results = dict(zip(labels, results[:-1]))
    grid_result = results[-1]

    stats = {}
    for label, records in tab_results.items():
        try:
            write_json(paths[label], records)
            stats[label] = len(records)
        except OSError as e:
            logger.error("tab_write_failed", label=label, path=str(paths[label]), error=str(e))
            stats[label] = 0
    stats["absence_grid"] = grid_result.count

    logger.info("all_sheets_synced", **stats)
    return AllSheetsResult(success=True, sheet_map=sheet_map, stats=stats)
