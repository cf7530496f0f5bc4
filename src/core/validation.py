"""
Absence record validation.
"""

from collections.abc import Iterable
from dataclasses import replace
from datetime import date

from core.logging import get_logger
from models.absence import NormalizedRecord, ValidationResult

logger = get_logger(__name__)


def parse_iso_date(value: str) -> date | None:
    """Parse a 'YYYY-MM-DD' string; None if it is not a real calendar date."""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def validate_record(record: NormalizedRecord) -> ValidationResult:
    """
    Validate one record and return a cleaned copy.

    Checks:
    1. Absentee name, start date and end date are present
    2. Each present date is a valid calendar date
    3. Start date is not after end date
    4. Day counts are not negative

    Business days above calendar days are clamped in the cleaned copy without
    affecting validity. The input record is left untouched.
    """
    errors = []
    cleaned = replace(record)

    # Check 1: Required fields
    if not cleaned.name_of_absentee:
        errors.append("nameOfAbsentee is required")
    if not cleaned.start_date:
        errors.append("startDate is required")
    if not cleaned.end_date:
        errors.append("endDate is required")

    # Check 2: Parseable dates
    start = parse_iso_date(cleaned.start_date) if cleaned.start_date else None
    end = parse_iso_date(cleaned.end_date) if cleaned.end_date else None
    if cleaned.start_date and start is None:
        errors.append("startDate is not a valid date")
    if cleaned.end_date and end is None:
        errors.append("endDate is not a valid date")

    # Check 3: Date order
    if start and end and start > end:
        errors.append("startDate must be before or equal to endDate")

    # Check 4: Day counts
    if cleaned.no_of_days < 0:
        errors.append("noOfDays cannot be negative")
    if cleaned.no_of_days_no_wknd < 0:
        errors.append("noOfDaysNoWknd cannot be negative")

    if cleaned.no_of_days_no_wknd > cleaned.no_of_days:
        logger.warning(
            "business_days_clamped",
            name_of_absentee=cleaned.name_of_absentee,
            no_of_days=cleaned.no_of_days,
            no_of_days_no_wknd=cleaned.no_of_days_no_wknd,
        )
        cleaned.no_of_days_no_wknd = cleaned.no_of_days

    return ValidationResult(valid=not errors, errors=errors, cleaned_record=cleaned)


def split_valid(records: Iterable[NormalizedRecord]) -> tuple[list[NormalizedRecord], list[ValidationResult]]:
    """
    Validate a batch.

    Returns:
        Tuple of (cleaned valid records, results of invalid records)
    """
    valid = []
    invalid = []
    for record in records:
        result = validate_record(record)
        if result.valid:
            valid.append(result.cleaned_record)
        else:
            invalid.append(result)

    if invalid:
        logger.warning("records_failed_validation", invalid=len(invalid), valid=len(valid))
    return valid, invalid
