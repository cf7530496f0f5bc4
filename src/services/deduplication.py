"""
Deduplication of normalized absence records.
"""

from collections.abc import Iterable
from datetime import datetime, timezone

from dateutil import parser as date_parser

from core.logging import get_logger
from models.absence import NormalizedRecord

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def record_time(record: NormalizedRecord) -> datetime:
    """
    Effective time of a record: its event timestamp, else its sync timestamp.

    Naive timestamps are read as UTC; unparseable ones sort before everything.
    """
    raw = record.time_stamp or record.synced_at
    if not raw:
        return EPOCH
    try:
        parsed = date_parser.parse(raw)
    except (ValueError, OverflowError):
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def deduplicate_records(records: Iterable[NormalizedRecord]) -> list[NormalizedRecord]:
    """
    Keep one record per (absentee, start date, end date), preferring the newest.

    A surviving record takes the position where its key was first seen.
    Ties keep the earlier record.
    """
    positions: dict[tuple[str, str, str], int] = {}
    deduplicated: list[NormalizedRecord] = []
    total = 0

    for record in records:
        total += 1
        key = record.identity_key
        if key not in positions:
            positions[key] = len(deduplicated)
            deduplicated.append(record)
            continue

        position = positions[key]
        if record_time(record) > record_time(deduplicated[position]):
            deduplicated[position] = record

    logger.info("records_deduplicated", total=total, kept=len(deduplicated))
    return deduplicated
