"""Pydantic request and response models for API endpoints."""

from typing import Any

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str  # "healthy" or "unhealthy"
    version: str
    database_available: bool
    timestamp: str  # ISO 8601 UTC
    error: str | None = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    code: str
    details: list[str] = []


class ErrorCodes:
    """Error code constants."""

    INVALID_REQUEST = "INVALID_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class GridParseResponse(BaseModel):
    """Events and per-employee summaries parsed from an uploaded grid."""

    count: int
    events: list[dict[str, Any]]
    summaries: list[dict[str, Any]]


class SummaryResponse(BaseModel):
    employees: int
    summaries: list[dict[str, Any]]


class ImportRequest(BaseModel):
    """Raw absence-log rows, keyed by header or positional."""

    rows: list[dict[str, Any] | list[Any]]


class ImportResponse(BaseModel):
    fetched: int
    normalized: int
    deduplicated: int
    validated: int
    inserted: int
    skipped: int
    invalid: int
    errors: list[str] = []


class RecordsResponse(BaseModel):
    count: int
    records: list[dict[str, Any]]
