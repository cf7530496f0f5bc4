"""
Local spreadsheet reading (Excel, Apple Numbers, CSV) into text grids.
"""

import csv
import zipfile
from pathlib import Path

from numbers_parser import Document
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from services.grid_parser import cell_text

SUPPORTED_SUFFIXES = {".xlsx", ".numbers", ".csv"}


def read_xlsx_grid(path: Path, sheet_name: str | None = None) -> list[list[str]]:
    try:
        wb = load_workbook(str(path), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException) as e:
        raise ValueError(f"{path.name} is not a readable Excel workbook") from e
    try:
        if sheet_name:
            try:
                ws = wb[sheet_name]
            except KeyError as e:
                raise ValueError(f"Sheet '{sheet_name}' not found in {path.name}") from e
        else:
            ws = wb.active
        return [[cell_text(value) for value in row] for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def read_numbers_grid(path: Path, sheet_name: str | None = None) -> list[list[str]]:
    doc = Document(str(path))
    try:
        sheet = doc.sheets[sheet_name] if sheet_name else doc.sheets[0]
        table = sheet.tables[0]
    except (KeyError, IndexError) as e:
        raise ValueError(f"Sheet '{sheet_name}' with a table not found in {path.name}") from e
    return [[cell_text(value) for value in row] for row in table.rows(values_only=True)]


def read_csv_grid(path: Path) -> list[list[str]]:
    with open(path, newline="", encoding="utf-8-sig") as f:
        return [[cell.strip() for cell in row] for row in csv.reader(f)]


def read_grid(path: Path, sheet_name: str | None = None) -> list[list[str]]:
    """
    Read a spreadsheet file into rows of cell text.

    Args:
        path: .xlsx, .numbers or .csv file
        sheet_name: Sheet to read; the first/active sheet if None (ignored for CSV)

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file type is unsupported or the sheet is missing
    """
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        return read_xlsx_grid(path, sheet_name)
    if suffix == ".numbers":
        return read_numbers_grid(path, sheet_name)
    if suffix == ".csv":
        return read_csv_grid(path)
    raise ValueError(
        f"Unsupported file type '{suffix}'. Supported: {', '.join(sorted(SUPPORTED_SUFFIXES))}"
    )
