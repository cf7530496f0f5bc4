"""Health check endpoint."""

import sqlite3
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.models.responses import HealthResponse
from core import config
from core.database import get_connection

router = APIRouter()


def database_available() -> bool:
    if not config.DB_PATH.exists():
        return False
    try:
        conn = get_connection(config.DB_PATH)
        try:
            conn.execute("SELECT 1 FROM absenteeism_reports LIMIT 1")
        finally:
            conn.close()
    except sqlite3.Error:
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns 200 if healthy, 503 if the records database is unavailable.
    """
    timestamp = datetime.now(timezone.utc).isoformat()

    if database_available():
        return HealthResponse(
            status="healthy",
            version=config.API_VERSION,
            database_available=True,
            timestamp=timestamp,
        )
    return JSONResponse(
        status_code=503,
        content=HealthResponse(
            status="unhealthy",
            version=config.API_VERSION,
            database_available=False,
            timestamp=timestamp,
            error="Records database not initialized",
        ).model_dump(),
    )
