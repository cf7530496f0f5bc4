"""
Read-only Google Sheets and sheet-API fetching.

Nothing here writes back to a spreadsheet: every request is a GET.
"""

from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

import httpx

from core.config import SHEETS_API_BASE_URL, SHEETS_TIMEOUT_SECONDS
from core.logging import get_logger

logger = get_logger(__name__)


class SheetsError(Exception):
    """A sheet could not be fetched or its response was not understood."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None):
    """Use the given client, or a short-lived one closed on exit."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=httpx.Timeout(SHEETS_TIMEOUT_SECONDS)) as owned:
        yield owned


async def _get_json(client: httpx.AsyncClient, url: str, operation: str, **kwargs) -> Any:
    try:
        response = await client.get(url, **kwargs)
    except httpx.RequestError as e:
        raise SheetsError(f"{operation} request failed: {e}") from e

    if not response.is_success:
        raise SheetsError(
            f"{operation} returned HTTP {response.status_code}",
            status_code=response.status_code,
        )
    try:
        return response.json()
    except ValueError as e:
        raise SheetsError(f"{operation} returned invalid JSON: {e}") from e


async def fetch_sheet_values(
    spreadsheet_id: str,
    cell_range: str,
    api_key: str,
    client: httpx.AsyncClient | None = None,
) -> list[list[Any]]:
    """
    Fetch a cell range as a 2-D value grid.

    Returns:
        Rows of cell values; empty if the range holds no data

    Raises:
        SheetsError: On missing arguments, HTTP or response errors
    """
    if not spreadsheet_id or not api_key:
        raise SheetsError("spreadsheet_id and api_key are required")

    url = f"{SHEETS_API_BASE_URL}/{spreadsheet_id}/values/{quote(cell_range, safe='')}"
    logger.info("sheet_values_fetch", spreadsheet_id=spreadsheet_id[:20], cell_range=cell_range)

    async with _client_scope(client) as http:
        data = await _get_json(
            http, url, "Sheets values", params={"key": api_key}, headers={"Accept": "application/json"}
        )

    values = data.get("values") if isinstance(data, dict) else None
    return values or []


async def fetch_sheet_titles(
    spreadsheet_id: str,
    api_key: str,
    client: httpx.AsyncClient | None = None,
) -> list[str]:
    """Titles of every tab in a spreadsheet."""
    if not spreadsheet_id or not api_key:
        raise SheetsError("spreadsheet_id and api_key are required")

    url = f"{SHEETS_API_BASE_URL}/{spreadsheet_id}"
    async with _client_scope(client) as http:
        data = await _get_json(
            http, url, "Sheets metadata", params={"key": api_key, "fields": "sheets.properties.title"}
        )

    sheets = data.get("sheets", []) if isinstance(data, dict) else []
    return [s.get("properties", {}).get("title", "") for s in sheets]


async def fetch_api_records(
    url: str,
    headers: dict[str, str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> list[Any]:
    """
    Fetch raw absence rows from a sheet-backed JSON endpoint.

    Accepts a bare JSON array or an object holding it under "data" or "records".

    Raises:
        SheetsError: On HTTP errors or when no array of records is returned
    """
    if not url:
        raise SheetsError("Sheets API URL is required")

    logger.info("sheet_api_fetch", url=url)
    async with _client_scope(client) as http:
        data = await _get_json(http, url, "Sheets API", headers=headers or {})

    if isinstance(data, dict):
        data = data.get("data") or data.get("records") or []
    if not isinstance(data, list):
        raise SheetsError("Invalid response format: expected array of records")
    return data
