"""
Data models for absence events, normalized records and summaries.

Events and records travel to JSON files and the API as camelCase dicts,
matching the shape the sheet-driven front end expects.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class AbsenceType(str, Enum):
    """Classified absence type."""

    SICK = "Sick"
    PTO = "PTO"
    HOLIDAY = "Holiday"
    NO_SHOW = "No Show/No Call"
    OFFBOARDED = "Offboarded"
    EMERGENCY = "Emergency"
    FUNERAL = "Funeral"
    OTHER = "Other"


class Authorization(str, Enum):
    """Tri-state authorization of an absence."""

    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"

    @classmethod
    def from_flag(cls, flag: bool | None) -> "Authorization":
        if flag is None:
            return cls.UNKNOWN
        return cls.AUTHORIZED if flag else cls.UNAUTHORIZED

    @classmethod
    def from_yes_no(cls, value: str | None) -> "Authorization":
        if not value:
            return cls.UNKNOWN
        return cls.AUTHORIZED if value.strip().lower() == "yes" else cls.UNAUTHORIZED

    @property
    def flag(self) -> bool | None:
        """JSON flag: True, False, or None when unknown."""
        if self is Authorization.UNKNOWN:
            return None
        return self is Authorization.AUTHORIZED

    @property
    def yes_no(self) -> str:
        """Canonical sheet form; unknown stays blank instead of reading as 'No'."""
        if self is Authorization.UNKNOWN:
            return ""
        return "Yes" if self is Authorization.AUTHORIZED else "No"


@dataclass
class NormalizedRecord:
    """One row of the absence log in canonical form."""

    id: str
    week_start: str = ""
    start_date: str = ""
    end_date: str = ""
    no_of_days: int = 0
    no_of_days_no_wknd: int = 0
    name_of_absentee: str = ""
    reason_for_absence: str = ""
    absenteeism_authorised: Authorization = Authorization.UNKNOWN
    leave_form_sent: bool = False
    comment: str = ""
    client: str = ""
    csp: str = ""
    country: str = ""
    week_no: int = 0
    month: str = ""
    year: int = 0
    time_stamp: str = ""
    synced_at: str = ""
    source: str = ""

    @property
    def identity_key(self) -> tuple[str, str, str]:
        return (self.name_of_absentee, self.start_date, self.end_date)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "weekStart": self.week_start,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "noOfDays": self.no_of_days,
            "noOfDaysNoWknd": self.no_of_days_no_wknd,
            "nameOfAbsentee": self.name_of_absentee,
            "reasonForAbsence": self.reason_for_absence,
            "absenteeismAuthorised": self.absenteeism_authorised.yes_no,
            "leaveFormSent": "Yes" if self.leave_form_sent else "No",
            "comment": self.comment,
            "client": self.client,
            "csp": self.csp,
            "country": self.country,
            "weekNo": self.week_no,
            "month": self.month,
            "year": self.year,
            "timeStamp": self.time_stamp,
            "syncedAt": self.synced_at,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NormalizedRecord":
        """Reload a record written by to_dict (e.g. from the sync cache)."""
        return cls(
            id=str(data.get("id", "")),
            week_start=data.get("weekStart") or "",
            start_date=data.get("startDate") or "",
            end_date=data.get("endDate") or "",
            no_of_days=int(data.get("noOfDays") or 0),
            no_of_days_no_wknd=int(data.get("noOfDaysNoWknd") or 0),
            name_of_absentee=data.get("nameOfAbsentee") or "",
            reason_for_absence=data.get("reasonForAbsence") or "",
            absenteeism_authorised=Authorization.from_yes_no(data.get("absenteeismAuthorised")),
            leave_form_sent=(data.get("leaveFormSent") or "").lower() == "yes",
            comment=data.get("comment") or "",
            client=data.get("client") or "",
            csp=data.get("csp") or "",
            country=data.get("country") or "",
            week_no=int(data.get("weekNo") or 0),
            month=data.get("month") or "",
            year=int(data.get("year") or 0),
            time_stamp=data.get("timeStamp") or "",
            synced_at=data.get("syncedAt") or "",
            source=data.get("source") or "",
        )


@dataclass(frozen=True)
class AbsenceEvent:
    """A single non-attended (employee, day) cell from the absence grid."""

    employee_name: str
    date: date
    month: str
    day: int
    year: int
    status: str
    type: AbsenceType
    authorised: Authorization

    def to_dict(self) -> dict:
        return {
            "employeeName": self.employee_name,
            "date": self.date.isoformat(),
            "month": self.month,
            "day": self.day,
            "year": self.year,
            "status": self.status,
            "type": self.type.value,
            "authorised": self.authorised.flag,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AbsenceEvent":
        return cls(
            employee_name=data["employeeName"],
            date=date.fromisoformat(data["date"]),
            month=data.get("month", ""),
            day=int(data.get("day", 0)),
            year=int(data.get("year", 0)),
            status=data.get("status", ""),
            type=AbsenceType(data.get("type", AbsenceType.OTHER.value)),
            authorised=Authorization.from_flag(data.get("authorised")),
        )

    @classmethod
    def from_record(cls, record: NormalizedRecord, absence_type: AbsenceType) -> "AbsenceEvent":
        """
        Derive an event from a normalized record, dated at its start date.

        Raises:
            ValueError: If the record has no start date
        """
        if not record.start_date:
            raise ValueError(f"Record '{record.id}' has no start date")
        start = date.fromisoformat(record.start_date)
        return cls(
            employee_name=record.name_of_absentee,
            date=start,
            month=start.strftime("%B").upper(),
            day=start.day,
            year=start.year,
            status=record.reason_for_absence,
            type=absence_type,
            authorised=record.absenteeism_authorised,
        )


@dataclass
class RecentAbsence:
    date: date
    status: str
    type: AbsenceType

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "status": self.status, "type": self.type.value}


@dataclass
class EmployeeSummary:
    """Per-employee absence statistics, rebuilt on every aggregation."""

    employee_name: str
    total_absences: int = 0
    authorised: int = 0
    unauthorised: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    recent_absences: list[RecentAbsence] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "employeeName": self.employee_name,
            "totalAbsences": self.total_absences,
            "authorised": self.authorised,
            "unauthorised": self.unauthorised,
            "byType": dict(self.by_type),
            "recentAbsences": [a.to_dict() for a in self.recent_absences],
        }


@dataclass
class ValidationResult:
    """Outcome of validating one record."""

    valid: bool
    errors: list[str]
    cleaned_record: NormalizedRecord
