"""Absenteeism grid parsing, summary and record endpoints."""

import asyncio
import sqlite3
import tempfile
import time
from pathlib import Path
from typing import Annotated, Literal

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)

from api.dependencies import get_db, verify_api_key
from api.logging import RequestLog, log_request
from api.models.responses import (
    ErrorCodes,
    GridParseResponse,
    ImportRequest,
    ImportResponse,
    RecordsResponse,
    SummaryResponse,
)
from core import config
from core.database import get_records
from core.logging import get_logger
from services.normalizer import normalize_rows
from services.reports import absence_report_to_bytes
from services.summary import summarize_absences
from services.sync import GridSyncResult, import_records, load_stored_events, parse_and_store_grid
from services.workbooks import SUPPORTED_SUFFIXES, read_grid

logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

router = APIRouter(prefix="/v1/absenteeism", dependencies=[Depends(verify_api_key)])


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def _parse_upload_in_thread(
    file_content: bytes, suffix: str, sheet_name: str | None, year: int | None
) -> GridSyncResult:
    """
    Parse an uploaded grid in the thread pool.

    The spreadsheet readers need a real path, so the upload goes to a temp
    file carrying the original suffix.
    """
    tmp = tempfile.NamedTemporaryFile(suffix=suffix, delete=False)
    tmp_path = Path(tmp.name)
    try:
        tmp.write(file_content)
        tmp.close()
        rows = read_grid(tmp_path, sheet_name)
        return parse_and_store_grid(rows, year=year, output_path=config.ABSENCE_EVENTS_PATH)
    finally:
        tmp_path.unlink(missing_ok=True)


def _record_http_error(request_log: RequestLog, e: HTTPException) -> None:
    request_log.status_code = e.status_code
    if isinstance(e.detail, dict):
        request_log.error_code = e.detail.get("code")
        request_log.error_message = e.detail.get("error")
        for detail in e.detail.get("details", []):
            request_log.details.append(("validation_error", detail))
    else:
        request_log.error_message = str(e.detail)


def _write_log(request_log: RequestLog) -> None:
    try:
        log_request(request_log)
    except Exception as e:
        # The request itself has already succeeded or failed on its own
        logger.warning("request_log_failed", request_id=request_log.request_id, error=str(e))


@router.post("/grid", response_model=GridParseResponse)
async def parse_grid_endpoint(
    request: Request,
    file: Annotated[UploadFile, File(description="Absence grid (.xlsx, .numbers or .csv)")],
    sheet_name: Annotated[str | None, Form(description="Sheet to read; first sheet if omitted")] = None,
    year: Annotated[int | None, Form(description="Year of the grid; current year if omitted")] = None,
):
    """
    Parse an uploaded absence grid into events and per-employee summaries.

    The events replace the stored events JSON used by /summary.
    """
    start_time = time.time()
    request_log = RequestLog(
        endpoint="/v1/absenteeism/grid",
        method="POST",
        client_ip=get_client_ip(request),
        file_name=file.filename,
    )

    try:
        if not file.filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error": "No file provided", "code": ErrorCodes.INVALID_REQUEST, "details": []},
            )

        suffix = Path(file.filename).suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail={
                    "error": "Unsupported spreadsheet type",
                    "code": ErrorCodes.UNSUPPORTED_MEDIA_TYPE,
                    "details": [f"Received: {file.filename}", f"Supported: {', '.join(sorted(SUPPORTED_SUFFIXES))}"],
                },
            )

        file_content = await file.read()
        request_log.file_size_bytes = len(file_content)

        if len(file_content) > config.MAX_UPLOAD_SIZE_BYTES:
            max_mb = config.MAX_UPLOAD_SIZE_BYTES // (1024 * 1024)
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail={
                    "error": f"File exceeds maximum size of {max_mb} MB",
                    "code": ErrorCodes.FILE_TOO_LARGE,
                    "details": [f"File size: {len(file_content) / (1024*1024):.1f} MB"],
                },
            )

        result = await asyncio.to_thread(
            _parse_upload_in_thread, file_content, suffix, sheet_name, year or config.GRID_YEAR
        )

        request_log.status_code = 200
        request_log.records_processed = result.count
        return GridParseResponse(
            count=result.count,
            events=[event.to_dict() for event in result.events],
            summaries=[summary.to_dict() for summary in result.summaries],
        )

    except HTTPException as e:
        _record_http_error(request_log, e)
        raise

    except ValueError as e:
        request_log.status_code = 422
        request_log.error_code = ErrorCodes.VALIDATION_ERROR
        request_log.error_message = str(e)
        request_log.details.append(("validation_error", str(e)))
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error": "Spreadsheet could not be read",
                "code": ErrorCodes.VALIDATION_ERROR,
                "details": [str(e)],
            },
        )

    except Exception as e:
        logger.error("grid_upload_failed", error=str(e))
        request_log.status_code = 500
        request_log.error_code = ErrorCodes.INTERNAL_ERROR
        request_log.error_message = str(e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Internal server error", "code": ErrorCodes.INTERNAL_ERROR, "details": []},
        )

    finally:
        request_log.processing_time_ms = elapsed_ms(start_time)
        _write_log(request_log)


@router.get("/summary", response_model=SummaryResponse)
async def summary_endpoint(
    output_format: Annotated[
        Literal["json", "xlsx"], Query(alias="format", description="json, or xlsx for a workbook download")
    ] = "json",
):
    """Per-employee summaries over the stored events."""
    try:
        events = load_stored_events(config.ABSENCE_EVENTS_PATH)
    except (ValueError, KeyError) as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error": "Stored events could not be read",
                "code": ErrorCodes.VALIDATION_ERROR,
                "details": [str(e)],
            },
        )
    summaries = summarize_absences(events)
    if output_format == "xlsx":
        return Response(
            content=absence_report_to_bytes(summaries, events),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": 'attachment; filename="absence_report.xlsx"'},
        )
    return SummaryResponse(employees=len(summaries), summaries=[s.to_dict() for s in summaries])


@router.post("/records/import", response_model=ImportResponse)
async def import_records_endpoint(
    request: Request,
    body: ImportRequest,
    conn: sqlite3.Connection = Depends(get_db),
):
    """Normalize, deduplicate, validate and store absence-log rows."""
    start_time = time.time()
    request_log = RequestLog(
        endpoint="/v1/absenteeism/records/import",
        method="POST",
        client_ip=get_client_ip(request),
    )

    try:
        records = normalize_rows(body.rows)
        summary = import_records(conn, records, fetched=len(body.rows))

        request_log.status_code = 200
        request_log.records_processed = summary.inserted
        request_log.details.extend(("validation_error", error) for error in summary.errors)
        return ImportResponse(**summary.to_dict(), errors=summary.errors)

    except Exception as e:
        logger.error("records_import_failed", error=str(e))
        request_log.status_code = 500
        request_log.error_code = ErrorCodes.INTERNAL_ERROR
        request_log.error_message = str(e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Internal server error", "code": ErrorCodes.INTERNAL_ERROR, "details": []},
        )

    finally:
        request_log.processing_time_ms = elapsed_ms(start_time)
        _write_log(request_log)


@router.get("/records", response_model=RecordsResponse)
async def list_records_endpoint(
    csp: Annotated[str | None, Query(description="Only records for this CSP")] = None,
    conn: sqlite3.Connection = Depends(get_db),
):
    records = get_records(conn, csp=csp)
    return RecordsResponse(count=len(records), records=records)
