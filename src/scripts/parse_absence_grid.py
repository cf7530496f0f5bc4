#!/usr/bin/env python3
"""
Parse a local absence grid (Excel, Numbers or CSV) into absence events.

Prints a per-employee summary, writes the events JSON and optionally an
Excel report with summary and detail sheets.

Usage:
    uv run python src/scripts/parse_absence_grid.py tracker.xlsx --sheet "Absenteesim tracker " --year 2025

Example:
    uv run python src/scripts/parse_absence_grid.py tracker.numbers --excel output/reports/absence.xlsx
"""

import argparse
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import ABSENCE_EVENTS_PATH, GRID_YEAR, OUTPUT_DIR
from core.logging import setup_logging
from services.reports import create_absence_excel_report
from services.sync import parse_and_store_grid
from services.workbooks import read_grid


def print_summaries(summaries):
    print(f"\n{'Employee':<30} {'Total':>6} {'Auth':>6} {'Unauth':>7}")
    for summary in summaries:
        print(
            f"{summary.employee_name:<30} {summary.total_absences:>6} "
            f"{summary.authorised:>6} {summary.unauthorised:>7}"
        )


def main():
    parser = argparse.ArgumentParser(description="Parse a local absence grid into absence events")
    parser.add_argument("input_file", type=Path, help="Path to the .xlsx, .numbers or .csv grid")
    parser.add_argument("--sheet", help="Sheet name. Defaults to the first sheet.")
    parser.add_argument("--year", type=int, default=GRID_YEAR, help="Year of the grid. Defaults to the current year.")
    parser.add_argument("--output", type=Path, default=ABSENCE_EVENTS_PATH, help="Events JSON output path")
    parser.add_argument(
        "--excel",
        type=Path,
        nargs="?",
        const=OUTPUT_DIR / "reports" / "absence_report.xlsx",
        help="Also write an Excel report (to output/reports/absence_report.xlsx if no path is given)",
    )
    args = parser.parse_args()

    setup_logging()

    try:
        rows = read_grid(args.input_file, args.sheet)
        print(f"Read {len(rows)} rows from {args.input_file}")

        result = parse_and_store_grid(rows, year=args.year, output_path=args.output)
        print(f"Found {result.count} absence events for {len(result.summaries)} employee(s)")
        print_summaries(result.summaries)
        print(f"\nEvents written to: {args.output}")

        if args.excel:
            create_absence_excel_report(result.summaries, result.events, args.excel)
            print(f"Excel report written to: {args.excel}")
    except (FileNotFoundError, ValueError) as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
