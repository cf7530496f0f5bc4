"""
SQLite database operations for absence records.
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from core.config import DB_PATH
from models.absence import NormalizedRecord

# camelCase record field -> snake_case column
RECORD_COLUMNS = {
    "id": "id",
    "weekStart": "week_start",
    "startDate": "start_date",
    "endDate": "end_date",
    "noOfDays": "no_of_days",
    "noOfDaysNoWknd": "no_of_days_no_wknd",
    "nameOfAbsentee": "name_of_absentee",
    "reasonForAbsence": "reason_for_absence",
    "absenteeismAuthorised": "absenteeism_authorised",
    "leaveFormSent": "leave_form_sent",
    "comment": "comment",
    "client": "client",
    "csp": "csp",
    "country": "country",
    "weekNo": "week_no",
    "month": "month",
    "year": "year",
    "timeStamp": "time_stamp",
    "createdBy": "created_by",
}

# Fields stored as nullable 0/1 flags
FLAG_FIELDS = {"absenteeismAuthorised", "leaveFormSent"}


def get_connection(db_path: Path = DB_PATH) -> sqlite3.Connection:
    """Get a database connection."""
    return sqlite3.connect(db_path)


def create_tables(conn: sqlite3.Connection) -> None:
    """Create the records and API logging tables if they don't exist."""
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS absenteeism_reports (
            id TEXT PRIMARY KEY,
            week_start TEXT,
            start_date TEXT,
            end_date TEXT,
            no_of_days INTEGER,
            no_of_days_no_wknd INTEGER,
            name_of_absentee TEXT,
            reason_for_absence TEXT,
            absenteeism_authorised INTEGER,
            leave_form_sent INTEGER,
            comment TEXT,
            client TEXT,
            csp TEXT,
            country TEXT,
            week_no INTEGER,
            month TEXT,
            year INTEGER,
            time_stamp TEXT,
            created_by TEXT,
            created_at TEXT,
            updated_at TEXT
        )
    """)
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_absenteeism_csp ON absenteeism_reports(csp)")
    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_absenteeism_dates ON absenteeism_reports(start_date, end_date)"
    )
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_absenteeism_year ON absenteeism_reports(year)")

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS api_requests (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            request_id TEXT UNIQUE NOT NULL,
            timestamp TEXT NOT NULL,
            endpoint TEXT NOT NULL,
            method TEXT NOT NULL,
            client_ip TEXT,
            file_name TEXT,
            file_size_bytes INTEGER,
            status_code INTEGER NOT NULL,
            error_code TEXT,
            error_message TEXT,
            processing_time_ms INTEGER NOT NULL,
            records_processed INTEGER
        )
    """)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS api_request_details (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            request_id TEXT NOT NULL,
            detail_type TEXT NOT NULL CHECK(detail_type IN ('validation_error', 'warning')),
            message TEXT NOT NULL,
            FOREIGN KEY (request_id) REFERENCES api_requests(request_id)
        )
    """)
    cursor.execute(
        "CREATE INDEX IF NOT EXISTS idx_api_requests_timestamp ON api_requests(timestamp)"
    )
    conn.commit()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _flag_to_db(value) -> int | None:
    """'Yes'/'No'/'' (or bool/None) -> 1/0/NULL."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return int(value)
    return int(str(value).strip().lower() == "yes")


def _flag_from_db(value: int | None) -> str:
    if value is None:
        return ""
    return "Yes" if value else "No"


def insert_record(conn: sqlite3.Connection, record: NormalizedRecord, created_by: str | None = None) -> str:
    """
    Insert one record and return its id.

    Raises:
        sqlite3.IntegrityError: If a record with the same id exists
    """
    now = _utc_now()
    cursor = conn.cursor()
    cursor.execute(
        """
        INSERT INTO absenteeism_reports (
            id, week_start, start_date, end_date, no_of_days, no_of_days_no_wknd,
            name_of_absentee, reason_for_absence, absenteeism_authorised, leave_form_sent,
            comment, client, csp, country, week_no, month, year, time_stamp,
            created_by, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.id,
            record.week_start or None,
            record.start_date or None,
            record.end_date or None,
            record.no_of_days,
            record.no_of_days_no_wknd,
            record.name_of_absentee or None,
            record.reason_for_absence or None,
            _flag_to_db(record.absenteeism_authorised.flag),
            int(record.leave_form_sent),
            record.comment or None,
            record.client or None,
            record.csp or None,
            record.country or None,
            record.week_no or None,
            record.month or None,
            record.year or None,
            record.time_stamp or now,
            created_by or record.csp or None,
            now,
            now,
        ),
    )
    conn.commit()
    return record.id


def _row_to_dict(row: sqlite3.Row) -> dict:
    data = {field: row[column] for field, column in RECORD_COLUMNS.items()}
    for field in FLAG_FIELDS:
        data[field] = _flag_from_db(row[RECORD_COLUMNS[field]])
    data["createdAt"] = row["created_at"]
    data["updatedAt"] = row["updated_at"]
    return data


def get_records(conn: sqlite3.Connection, csp: str | None = None) -> list[dict]:
    """Stored records as camelCase dicts, newest first, optionally for one CSP."""
    conn.row_factory = sqlite3.Row
    cursor = conn.cursor()
    if csp:
        cursor.execute(
            "SELECT * FROM absenteeism_reports WHERE csp = ? ORDER BY created_at DESC, rowid DESC",
            (csp,),
        )
    else:
        cursor.execute("SELECT * FROM absenteeism_reports ORDER BY created_at DESC, rowid DESC")
    return [_row_to_dict(row) for row in cursor.fetchall()]



def update_record(conn: sqlite3.Connection, record_id: str, changes: dict) -> bool:
    """
    Update fields of one record by camelCase name.

    Returns:
        True if a record was updated

    Raises:
        ValueError: If changes names an unknown field or the id
    """
    unknown = [key for key in changes if key not in RECORD_COLUMNS or key == "id"]
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    assignments = []
    values = []
    for field, value in changes.items():
        assignments.append(f"{RECORD_COLUMNS[field]} = ?")
        values.append(_flag_to_db(value) if field in FLAG_FIELDS else value)
    assignments.append("updated_at = ?")
    values.append(_utc_now())
    values.append(record_id)

    cursor = conn.cursor()
    cursor.execute(
        f"UPDATE absenteeism_reports SET {', '.join(assignments)} WHERE id = ?",
        values,
    )
    conn.commit()
    return cursor.rowcount > 0


def delete_record(conn: sqlite3.Connection, record_id: str) -> bool:
    """Delete one record; True if it existed."""
    cursor = conn.cursor()
    cursor.execute("DELETE FROM absenteeism_reports WHERE id = ?", (record_id,))
    conn.commit()
    return cursor.rowcount > 0
