"""Tests for sheet fetching and sync orchestration, against a mocked Sheets API."""

import asyncio
import json
from urllib.parse import unquote

import httpx
import pytest

from core.database import get_records
from core.storage import read_json, write_json
from models.absence import NormalizedRecord
from services.sheets import SheetsError, fetch_api_records, fetch_sheet_titles, fetch_sheet_values
from services.sync import (
    cache_metadata,
    detect_sheet_map,
    import_records,
    load_cached_records,
    load_stored_events,
    quote_range,
    sync_absence_api,
    sync_absence_grid,
    sync_absence_log,
    sync_all_sheets,
)

SPREADSHEET_ID = "sheet-123"
API_KEY = "test-key"


def run_with_transport(handler, make_call):
    """Run make_call(client) against a client backed by handler."""

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await make_call(client)

    return asyncio.run(go())


def values_handler(values, status_code=200):
    def handler(request):
        return httpx.Response(status_code, json={"values": values} if values is not None else {})

    return handler


def failing_handler(request):
    raise httpx.ConnectError("connection refused", request=request)


# =============================================================================
# FETCHING
# =============================================================================


def test_fetch_sheet_values_builds_request():
    seen = {}

    def handler(request):
        seen["path"] = unquote(request.url.path)
        seen["key"] = request.url.params["key"]
        return httpx.Response(200, json={"values": [["a", "b"]]})

    values = run_with_transport(
        handler, lambda c: fetch_sheet_values(SPREADSHEET_ID, "Tab!A1:B2", API_KEY, client=c)
    )
    assert values == [["a", "b"]]
    assert seen["path"].endswith(f"/{SPREADSHEET_ID}/values/Tab!A1:B2")
    assert seen["key"] == API_KEY


def test_fetch_sheet_values_empty_range():
    values = run_with_transport(
        values_handler(None), lambda c: fetch_sheet_values(SPREADSHEET_ID, "A1:B2", API_KEY, client=c)
    )
    assert values == []


def test_fetch_sheet_values_http_error():
    with pytest.raises(SheetsError) as exc_info:
        run_with_transport(
            values_handler([], status_code=403),
            lambda c: fetch_sheet_values(SPREADSHEET_ID, "A1:B2", API_KEY, client=c),
        )
    assert exc_info.value.status_code == 403


def test_fetch_sheet_values_requires_credentials():
    with pytest.raises(SheetsError):
        asyncio.run(fetch_sheet_values("", "A1:B2", API_KEY))


def test_fetch_sheet_titles():
    def handler(request):
        assert request.url.params["fields"] == "sheets.properties.title"
        return httpx.Response(200, json={"sheets": [{"properties": {"title": "One"}}, {"properties": {"title": "Two"}}]})

    titles = run_with_transport(handler, lambda c: fetch_sheet_titles(SPREADSHEET_ID, API_KEY, client=c))
    assert titles == ["One", "Two"]


@pytest.mark.parametrize(
    "payload",
    [[{"nameOfAbsentee": "A"}], {"data": [{"nameOfAbsentee": "A"}]}, {"records": [{"nameOfAbsentee": "A"}]}],
)
def test_fetch_api_records_shapes(payload):
    rows = run_with_transport(
        lambda request: httpx.Response(200, json=payload),
        lambda c: fetch_api_records("https://example.test/absences", client=c),
    )
    assert rows == [{"nameOfAbsentee": "A"}]


def test_fetch_api_records_rejects_non_array():
    with pytest.raises(SheetsError):
        run_with_transport(
            lambda request: httpx.Response(200, json={"data": "nope"}),
            lambda c: fetch_api_records("https://example.test/absences", client=c),
        )


def test_fetch_api_records_invalid_json():
    with pytest.raises(SheetsError):
        run_with_transport(
            lambda request: httpx.Response(200, content=b"<html>"),
            lambda c: fetch_api_records("https://example.test/absences", client=c),
        )


# =============================================================================
# GRID SYNC
# =============================================================================


def test_sync_absence_grid_writes_events(tmp_path, january_grid):
    output = tmp_path / "events.json"
    result = run_with_transport(
        values_handler(january_grid),
        lambda c: sync_absence_grid(SPREADSHEET_ID, API_KEY, year=2024, output_path=output, client=c),
    )

    assert result.success
    assert result.count == 2
    assert result.summaries[0].total_absences == 2
    stored = json.loads(output.read_text())
    assert stored[0] == {
        "employeeName": "Jane Doe",
        "date": "2024-01-01",
        "month": "JANUARY",
        "day": 1,
        "year": 2024,
        "status": "Sick",
        "type": "Sick",
        "authorised": True,
    }
    assert [e.day for e in load_stored_events(output)] == [1, 3]


def test_sync_absence_grid_failure_is_a_result(tmp_path):
    output = tmp_path / "events.json"
    result = run_with_transport(
        failing_handler, lambda c: sync_absence_grid(SPREADSHEET_ID, API_KEY, output_path=output, client=c)
    )
    assert not result.success
    assert result.events == []
    assert "request failed" in result.error
    assert not output.exists()


# =============================================================================
# ABSENCE LOG SYNC
# =============================================================================


def test_sync_absence_log_writes_cache(tmp_path, positional_row):
    cache = tmp_path / "cache.json"
    seen = {}

    def handler(request):
        seen["path"] = unquote(request.url.path)
        return httpx.Response(200, json={"values": [positional_row, positional_row[:6]]})

    result = run_with_transport(
        handler, lambda c: sync_absence_log(SPREADSHEET_ID, API_KEY, "Absenteeism", cache_path=cache, client=c)
    )

    assert seen["path"].endswith("/values/'Absenteeism'!A2:Q")
    assert result.success and not result.from_cache
    assert (result.total_fetched, result.total_normalized) == (2, 2)
    assert [r.name_of_absentee for r in load_cached_records(cache)] == ["Tendai Moyo", "Tendai Moyo"]

    metadata = cache_metadata(cache)
    assert metadata["cachedRecords"] == 2
    assert metadata["sheetName"] == "Absenteeism"
    assert metadata["lastSync"] == result.synced_at


def test_sync_absence_log_quotes_tab_title(tmp_path):
    seen = {}

    def handler(request):
        seen["path"] = unquote(request.url.path)
        return httpx.Response(200, json={"values": []})

    run_with_transport(
        handler, lambda c: sync_absence_log(SPREADSHEET_ID, API_KEY, "Bob's Log", cache_path=tmp_path / "c.json", client=c)
    )
    assert seen["path"].endswith("/values/'Bob''s Log'!A2:Q")


def test_sync_absence_log_falls_back_to_cache(tmp_path):
    cache = tmp_path / "cache.json"
    write_json(
        cache,
        {"syncedAt": "2024-01-01T00:00:00+00:00", "records": [NormalizedRecord(id="c1", name_of_absentee="Cached").to_dict()]},
    )

    result = run_with_transport(
        failing_handler, lambda c: sync_absence_log(SPREADSHEET_ID, API_KEY, "Absenteeism", cache_path=cache, client=c)
    )

    assert result.success
    assert result.from_cache
    assert result.error
    assert [r.id for r in result.records] == ["c1"]
    assert result.synced_at == "2024-01-01T00:00:00+00:00"


def test_sync_absence_log_failure_without_cache(tmp_path):
    result = run_with_transport(
        values_handler([], status_code=500),
        lambda c: sync_absence_log(SPREADSHEET_ID, API_KEY, "Absenteeism", cache_path=tmp_path / "none.json", client=c),
    )
    assert not result.success
    assert result.records == []
    assert cache_metadata(tmp_path / "none.json") is None


def test_sync_absence_api(tmp_path, sample_row):
    cache = tmp_path / "api-cache.json"
    result = run_with_transport(
        lambda request: httpx.Response(200, json={"data": [sample_row]}),
        lambda c: sync_absence_api("https://example.test/absences", cache_path=cache, client=c),
    )
    assert result.success
    assert result.source == "sheets-api"
    assert result.records[0].csp == "Alice"
    assert read_json(cache)["totalNormalized"] == 1


def test_sync_absence_api_failure(tmp_path):
    result = run_with_transport(
        failing_handler,
        lambda c: sync_absence_api("https://example.test/absences", cache_path=tmp_path / "c.json", client=c),
    )
    assert not result.success
    assert result.total_normalized == 0


# =============================================================================
# IMPORT
# =============================================================================


def test_import_records_dedupes_validates_and_inserts(db_conn):
    records = [
        NormalizedRecord(id="old", name_of_absentee="A", start_date="2024-01-01", end_date="2024-01-02",
                         time_stamp="2024-01-01T00:00:00Z"),
        NormalizedRecord(id="new", name_of_absentee="A", start_date="2024-01-01", end_date="2024-01-02",
                         time_stamp="2024-01-05T00:00:00Z"),
        NormalizedRecord(id="bad", name_of_absentee="B", start_date="2024-01-09", end_date="2024-01-02"),
    ]

    summary = import_records(db_conn, records)

    assert summary.to_dict() == {
        "fetched": 3,
        "normalized": 3,
        "deduplicated": 2,
        "validated": 1,
        "inserted": 1,
        "skipped": 0,
        "invalid": 1,
    }
    assert summary.errors == ["B: startDate must be before or equal to endDate"]
    assert [r["id"] for r in get_records(db_conn)] == ["new"]


def test_import_records_skips_failed_inserts(db_conn):
    record = NormalizedRecord(id="r1", name_of_absentee="A", start_date="2024-01-01", end_date="2024-01-01")
    import_records(db_conn, [record])

    summary = import_records(db_conn, [record])
    assert (summary.inserted, summary.skipped) == (0, 1)


# =============================================================================
# ALL TABS
# =============================================================================


def test_detect_sheet_map_by_pattern():
    titles = ["Team Members Work Details", "Leave Tracker", "Absenteeism", "PTO Updates"]
    assert detect_sheet_map(titles) == {
        "team_members": "Team Members Work Details",
        "leave_tracker": "Leave Tracker",
        "absenteeism": "Absenteeism",
        "pto": "PTO Updates",
    }


def test_detect_sheet_map_falls_back_to_position():
    assert detect_sheet_map(["Sheet1", "Sheet2", "Sheet3"]) == {
        "team_members": "Sheet1",
        "leave_tracker": "Sheet2",
        "absenteeism": "Sheet1",
        "pto": "Sheet3",
    }
    assert detect_sheet_map(["Only"]) == {"team_members": "Only", "absenteeism": "Only"}


def test_quote_range():
    assert quote_range("Leave Tracker", "A1:Z1000") == "'Leave Tracker'!A1:Z1000"
    assert quote_range("Bob's", "A1") == "'Bob''s'!A1"


def test_sync_all_sheets_isolates_failures(tmp_path, january_grid):
    tabs = {
        "'Team Members Work Details'!": [["Name", "Role"], ["Jane Doe", "Agent"], ["John Smith", "Lead"]],
        "'Leave Tracker'!": [["June/July"], ["Name", "Start"], ["Jane Doe", "2024-06-01"], ["", ""]],
        "'Absenteeism'!": [["Name of Absentee", "Start Date"], ["Jane Doe", "2024-01-02"]],
        "Absenteesim tracker !": january_grid,
    }

    def handler(request):
        path = unquote(request.url.path)
        if "/values/" not in path:
            titles = ["Team Members Work Details", "Leave Tracker", "Absenteeism", "PTO Updates", "Absenteesim tracker "]
            return httpx.Response(200, json={"sheets": [{"properties": {"title": t}} for t in titles]})
        for prefix, values in tabs.items():
            if f"/values/{prefix}" in path:
                return httpx.Response(200, json={"values": values})
        return httpx.Response(500)

    paths = {
        name: tmp_path / f"{name}.json"
        for name in ("team_members", "leave_tracker", "absenteeism", "pto", "absence_grid")
    }
    result = run_with_transport(
        handler,
        lambda c: sync_all_sheets(
            SPREADSHEET_ID, API_KEY, grid_range="Absenteesim tracker !A1:AH1000", year=2024,
            client=c, output_paths=paths,
        ),
    )

    assert result.success
    assert result.stats == {
        "team_members": 2,
        "leave_tracker": 1,
        "absenteeism": 1,
        "pto": 0,
        "absence_grid": 2,
    }
    assert read_json(paths["leave_tracker"]) == [{"name": "Jane Doe", "start": "2024-06-01"}]
    assert read_json(paths["pto"]) == []
    assert len(read_json(paths["absence_grid"])) == 2


def test_sync_all_sheets_metadata_failure():
    result = run_with_transport(failing_handler, lambda c: sync_all_sheets(SPREADSHEET_ID, API_KEY, client=c))
    assert not result.success
    assert result.stats == {}


def test_sync_all_sheets_isolates_write_failures(tmp_path):
    def handler(request):
        path = unquote(request.url.path)
        if "/values/" not in path:
            return httpx.Response(200, json={"sheets": [{"properties": {"title": t}} for t in ("Team", "Leave", "PTO")]})
        return httpx.Response(200, json={"values": [["Name"], ["Jane Doe"]]})

    paths = {
        name: tmp_path / f"{name}.json"
        for name in ("team_members", "leave_tracker", "absenteeism", "absence_grid")
    }
    paths["pto"] = tmp_path / "pto_dir"
    paths["pto"].mkdir()

    result = run_with_transport(
        handler,
        lambda c: sync_all_sheets(SPREADSHEET_ID, API_KEY, year=2024, client=c, output_paths=paths),
    )

    assert result.success
    assert result.stats["pto"] == 0
    assert result.stats["team_members"] == 1
    assert read_json(paths["absenteeism"]) == [{"name": "Jane Doe"}]
