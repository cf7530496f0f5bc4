"""
Per-employee absence summaries.
"""

from collections.abc import Iterable

from core.config import RECENT_ABSENCES_LIMIT, SUMMARY_CATEGORIES
from models.absence import (
    AbsenceEvent,
    AbsenceType,
    Authorization,
    EmployeeSummary,
    NormalizedRecord,
    RecentAbsence,
)
from services.grid_parser import classify_absence_type

# Offboarded and Other share the "other" bucket
TYPE_CATEGORY = {
    AbsenceType.SICK: "sick",
    AbsenceType.PTO: "pto",
    AbsenceType.HOLIDAY: "holiday",
    AbsenceType.NO_SHOW: "no_show",
    AbsenceType.EMERGENCY: "emergency",
    AbsenceType.FUNERAL: "funeral",
}


def type_category(absence_type: AbsenceType) -> str:
    return TYPE_CATEGORY.get(absence_type, "other")


def summarize_absences(
    events: Iterable[AbsenceEvent], recent_limit: int = RECENT_ABSENCES_LIMIT
) -> list[EmployeeSummary]:
    """
    Fold events into one summary per employee, in first-seen order.

    The recent list is re-sorted newest first and truncated whenever it grows
    past recent_limit.
    """
    summaries: dict[str, EmployeeSummary] = {}

    for event in events:
        summary = summaries.get(event.employee_name)
        if summary is None:
            summary = EmployeeSummary(
                employee_name=event.employee_name,
                by_type={category: 0 for category in SUMMARY_CATEGORIES},
            )
            summaries[event.employee_name] = summary

        summary.total_absences += 1
        if event.authorised is Authorization.AUTHORIZED:
            summary.authorised += 1
        elif event.authorised is Authorization.UNAUTHORIZED:
            summary.unauthorised += 1

        summary.by_type[type_category(event.type)] += 1

        summary.recent_absences.append(RecentAbsence(date=event.date, status=event.status, type=event.type))
        if len(summary.recent_absences) > recent_limit:
            summary.recent_absences.sort(key=lambda a: a.date, reverse=True)
            del summary.recent_absences[recent_limit:]

    for summary in summaries.values():
        summary.recent_absences.sort(key=lambda a: a.date, reverse=True)

    return list(summaries.values())


def records_to_events(records: Iterable[NormalizedRecord]) -> list[AbsenceEvent]:
    """One event per absence-log record with a start date, typed by its reason."""
    return [
        AbsenceEvent.from_record(record, classify_absence_type(record.reason_for_absence))
        for record in records
        if record.start_date
    ]
