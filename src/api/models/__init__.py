"""API Pydantic models."""

from .responses import (
    ErrorCodes,
    ErrorResponse,
    GridParseResponse,
    HealthResponse,
    ImportRequest,
    ImportResponse,
    RecordsResponse,
    SummaryResponse,
)

__all__ = [
    "HealthResponse",
    "ErrorResponse",
    "ErrorCodes",
    "GridParseResponse",
    "SummaryResponse",
    "ImportRequest",
    "ImportResponse",
    "RecordsResponse",
]
