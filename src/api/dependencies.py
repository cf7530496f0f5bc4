"""FastAPI dependencies for authentication and shared resources."""

import secrets
import sqlite3
from collections.abc import AsyncIterator

from fastapi import Header, HTTPException, status

from api.models.responses import ErrorCodes
from core import config
from core.database import create_tables, get_connection


async def verify_api_key(x_api_key: str | None = Header(None, alias="X-API-Key")) -> str:
    """
    Verify API key from X-API-Key header.

    Raises:
        HTTPException: 401 if key is missing or invalid
    """
    if not config.ABSENCE_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "API key not configured on server",
                "code": ErrorCodes.INTERNAL_ERROR,
                "details": [],
            },
        )

    if not x_api_key or not secrets.compare_digest(x_api_key, config.ABSENCE_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "Invalid or missing API key",
                "code": ErrorCodes.UNAUTHORIZED,
                "details": [],
            },
        )

    return x_api_key


async def get_db() -> AsyncIterator[sqlite3.Connection]:
    """Connection to the records database, closed after the request."""
    config.DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(config.DB_PATH)
    try:
        create_tables(conn)
        yield conn
    finally:
        conn.close()
