"""Tests for the HTTP API."""

import json
import sqlite3
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from api.main import app
from core import config

API_KEY = "test-api-key"
HEADERS = {"X-API-Key": API_KEY}

GRID_CSV = b"JANUARY\n,1,2,3\nJane Doe,Sick,Attended,PTO\nJohn Smith,No Show,,\n"


@pytest.fixture
def api_env(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "ABSENCE_API_KEY", API_KEY)
    monkeypatch.setattr(config, "DB_PATH", tmp_path / "db" / "test.db")
    monkeypatch.setattr(config, "ABSENCE_EVENTS_PATH", tmp_path / "absenteeismRecords.json")
    return tmp_path


@pytest.fixture
def client(api_env):
    with TestClient(app) as test_client:
        yield test_client


def upload_grid(client, content=GRID_CSV, filename="tracker.csv", **data):
    return client.post(
        "/v1/absenteeism/grid",
        headers=HEADERS,
        files={"file": (filename, content, "text/csv")},
        data={"year": "2024", **data},
    )


def logged_requests(db_path):
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute("SELECT endpoint, status_code, error_code, records_processed FROM api_requests").fetchall()
    finally:
        conn.close()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database_available"] is True
    assert body["version"] == config.API_VERSION


def test_health_without_database(api_env):
    response = TestClient(app).get("/health")
    assert response.status_code == 503
    assert response.json()["database_available"] is False


def test_missing_api_key(client):
    response = client.get("/v1/absenteeism/summary")
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "UNAUTHORIZED"


def test_wrong_api_key(client):
    response = client.get("/v1/absenteeism/summary", headers={"X-API-Key": "nope"})
    assert response.status_code == 401


def test_grid_upload_returns_events_and_summaries(client, api_env):
    response = upload_grid(client)

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 3
    assert [e["day"] for e in body["events"]] == [1, 3, 1]
    assert body["summaries"][0]["employeeName"] == "Jane Doe"
    assert body["summaries"][1]["unauthorised"] == 1

    stored = json.loads((api_env / "absenteeismRecords.json").read_text())
    assert len(stored) == 3
    assert logged_requests(config.DB_PATH) == [("/v1/absenteeism/grid", 200, None, 3)]


def test_grid_upload_unsupported_type(client):
    response = upload_grid(client, content=b"x", filename="tracker.pdf")
    assert response.status_code == 415
    assert response.json()["detail"]["code"] == "UNSUPPORTED_MEDIA_TYPE"
    assert logged_requests(config.DB_PATH)[0][1:3] == (415, "UNSUPPORTED_MEDIA_TYPE")


def test_grid_upload_too_large(client, monkeypatch):
    monkeypatch.setattr(config, "MAX_UPLOAD_SIZE_BYTES", 10)
    response = upload_grid(client)
    assert response.status_code == 413
    assert response.json()["detail"]["code"] == "FILE_TOO_LARGE"


def test_grid_upload_unreadable_sheet(client):
    response = upload_grid(client, content=b"not a workbook", filename="tracker.xlsx")
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


def test_summary_over_stored_events(client):
    upload_grid(client)

    response = client.get("/v1/absenteeism/summary", headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["employees"] == 2
    assert body["summaries"][0]["byType"]["sick"] == 1


def test_summary_xlsx_download(client):
    upload_grid(client)

    response = client.get("/v1/absenteeism/summary", params={"format": "xlsx"}, headers=HEADERS)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/vnd.openxmlformats")
    wb = load_workbook(BytesIO(response.content))
    assert wb.sheetnames == ["Absence Summary", "Absence Detail"]
    assert wb["Absence Summary"]["A2"].value == "Jane Doe"


def test_summary_rejects_unknown_format(client):
    response = client.get("/v1/absenteeism/summary", params={"format": "pdf"}, headers=HEADERS)
    assert response.status_code == 422


def test_summary_without_events(client):
    response = client.get("/v1/absenteeism/summary", headers=HEADERS)
    assert response.json() == {"employees": 0, "summaries": []}


def test_import_and_list_records(client, sample_row, positional_row):
    older = {**sample_row, "timeStamp": "2024-01-01T00:00:00Z", "comment": "older"}
    invalid = {**sample_row, "nameOfAbsentee": "Rudo", "startDate": "2024-02-10", "endDate": "2024-02-01"}

    response = client.post(
        "/v1/absenteeism/records/import",
        headers=HEADERS,
        json={"rows": [older, positional_row, invalid]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["fetched"] == 3
    assert body["deduplicated"] == 2
    assert (body["inserted"], body["invalid"], body["skipped"]) == (1, 1, 0)
    assert body["errors"] == ["Rudo: startDate must be before or equal to endDate"]

    records = client.get("/v1/absenteeism/records", headers=HEADERS).json()
    assert records["count"] == 1
    assert records["records"][0]["comment"] == "Doctor's note supplied"

    assert client.get("/v1/absenteeism/records", params={"csp": "Bob"}, headers=HEADERS).json()["count"] == 0


def test_import_rejects_malformed_body(client):
    response = client.post("/v1/absenteeism/records/import", headers=HEADERS, json={"rows": "nope"})
    assert response.status_code == 422
