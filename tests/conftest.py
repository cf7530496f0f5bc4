"""
Pytest configuration and shared fixtures.
"""

import sqlite3
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent / "fixtures"))

from core.database import create_tables  # noqa: E402
from generate_grid import generate_absence_grid  # noqa: E402


@pytest.fixture
def january_grid():
    """Minimal grid: one month block, one employee, three days."""
    return [
        ["JANUARY"],
        ["", "1", "2", "3"],
        ["Jane Doe", "Sick", "Attended", "PTO"],
    ]


@pytest.fixture
def sample_grid():
    """Grid with legend rows above two month blocks."""
    return [
        ["Absenteeism Tracker"],
        ["SICK", "Sick leave"],
        ["PTO", "Paid time off"],
        ["HOLIDAY", "Public holiday"],
        [""],
        ["JANUARY"],
        ["Team Member Name", "1", "2", "3", "4"],
        ["Jane Doe", "Attended", "Sick", "attended", "No Show"],
        ["John Smith", "Holiday", "", "Attended", "Funeral"],
        [""],
        ["FEBRUARY"],
        ["Team Member Name", "1", "2", "Total"],
        ["Jane Doe", "PTO", "Offboarded", "2"],
        ["John Smith", "Attended", "Late", "1"],
    ]


@pytest.fixture
def sample_row():
    """Absence-log row keyed the way the sheet-backed API returns it."""
    return {
        "weekStart": "2024-01-01",
        "startDate": "2024-01-02",
        "endDate": "2024-01-03",
        "noOfDays": "2",
        "noOfDaysNoWknd": "2",
        "nameOfAbsentee": "Tendai Moyo",
        "reasonForAbsence": "Sick",
        "absenteeismAuthorised": "Yes",
        "leaveFormSent": "Yes",
        "comment": "Doctor's note supplied",
        "client": "Acme",
        "csp": "Alice",
        "country": "Zimbabwe",
        "weekNo": "1",
        "month": "January",
        "year": "2024",
        "timeStamp": "2024-01-04T08:00:00Z",
    }


@pytest.fixture
def positional_row():
    """The same absence in the 17-column A:Q layout."""
    return [
        "2024-01-01", "2024-01-02", "2024-01-03", "2", "2", "Tendai Moyo", "Sick",
        "Yes", "Yes", "Doctor's note supplied", "Acme", "Alice", "Zimbabwe",
        "1", "January", "2024", "2024-01-04T08:00:00Z",
    ]


@pytest.fixture
def db_conn():
    """In-memory database with all tables created."""
    conn = sqlite3.connect(":memory:")
    create_tables(conn)
    yield conn
    conn.close()


@pytest.fixture
def generated_grid():
    """Faker-generated grid: six team members over three months of 2025."""
    return generate_absence_grid(employees=6, months=3, year=2025, seed=42)
