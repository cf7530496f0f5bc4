#!/usr/bin/env python3
"""
Sync absenteeism data from Google Sheets.

Sources:
- grid: the monthly absence grid, parsed into events JSON
- log:  the 17-column absence log tab, imported into SQLite
- api:  a sheet-backed JSON endpoint, imported into SQLite
- all:  every tab (team members, leave tracker, absenteeism, PTO) plus the grid

Usage:
    uv run python src/scripts/sync_absenteeism.py grid --year 2025
    uv run python src/scripts/sync_absenteeism.py log --sheet Absenteeism
    uv run python src/scripts/sync_absenteeism.py all
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import (
    ABSENTEEISM_API_URL,
    ABSENTEEISM_GRID_RANGE,
    ABSENTEEISM_SHEET_NAME,
    ABSENTEEISM_SPREADSHEET_ID,
    DB_PATH,
    GOOGLE_SHEETS_API_KEY,
    GRID_YEAR,
)
from core.database import create_tables, get_connection
from core.logging import setup_logging
from services.summary import records_to_events, summarize_absences
from services.sync import (
    import_records,
    sync_absence_api,
    sync_absence_grid,
    sync_absence_log,
    sync_all_sheets,
)


def store_records(result) -> None:
    """Import a log/api sync result into the records database."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(DB_PATH)
    try:
        create_tables(conn)
        summary = import_records(conn, result.records, fetched=result.total_fetched)
    finally:
        conn.close()

    print(
        f"Imported {summary.inserted} record(s): {summary.deduplicated} after dedupe, "
        f"{summary.invalid} invalid, {summary.skipped} skipped"
    )
    for error in summary.errors:
        print(f"  - {error}")

    print("\nAbsences by employee:")
    for employee in summarize_absences(records_to_events(result.records)):
        print(f"  {employee.employee_name}: {employee.total_absences} ({employee.authorised} authorised)")


async def main(args) -> int:
    if args.source == "grid":
        result = await sync_absence_grid(
            args.spreadsheet_id, args.api_key, cell_range=args.range, year=args.year
        )
        if not result.success:
            print(f"Grid sync failed: {result.error}")
            return 1
        print(f"Parsed {result.count} absence events for {len(result.summaries)} employee(s)")
        return 0

    if args.source == "all":
        result = await sync_all_sheets(
            args.spreadsheet_id, args.api_key, grid_range=args.range, year=args.year
        )
        if not result.success:
            print(f"Sync failed: {result.error}")
            return 1
        for label, title in result.sheet_map.items():
            print(f"  {label}: '{title}'")
        for label, count in result.stats.items():
            print(f"  {label}: {count} record(s)")
        return 0

    if args.source == "log":
        result = await sync_absence_log(args.spreadsheet_id, args.api_key, args.sheet)
    else:
        result = await sync_absence_api(args.url)

    if not result.success:
        print(f"Sync failed: {result.error}")
        return 1
    if result.from_cache:
        print(f"Sheet unavailable ({result.error}); using cache from {result.synced_at}")
    print(f"Fetched {result.total_fetched} row(s), normalized {result.total_normalized}")
    store_records(result)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sync absenteeism data from Google Sheets")
    parser.add_argument("source", choices=["grid", "log", "api", "all"], help="What to sync")
    parser.add_argument("--spreadsheet-id", default=ABSENTEEISM_SPREADSHEET_ID, help="Spreadsheet ID")
    parser.add_argument("--api-key", default=GOOGLE_SHEETS_API_KEY, help="Google Sheets API key")
    parser.add_argument("--range", default=ABSENTEEISM_GRID_RANGE, help="A1 range of the absence grid")
    parser.add_argument("--sheet", default=ABSENTEEISM_SHEET_NAME, help="Absence log tab name")
    parser.add_argument("--url", default=ABSENTEEISM_API_URL, help="Sheet-backed JSON endpoint")
    parser.add_argument("--year", type=int, default=GRID_YEAR, help="Year of the grid. Defaults to the current year.")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(main(args)))
