"""
Leave request date/time rules and the overlap check run at submission and
again at approval time.
"""
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional

from portal.core.errors import InvalidDate, InvalidRange, MissingTime
from portal.db.models.enums import LeaveType, LeaveUnit, RequestStatus
from portal.utils.time_range import validate_time_range, try_parse_time, windows_overlap, to_date

SICK_LEAVE_TYPES = frozenset({LeaveType.SICK_WITH_CERTIFICATE.value, LeaveType.SICK_WITHOUT_CERTIFICATE.value})
ACTIVE_STATUSES = frozenset({RequestStatus.PENDING.value, RequestStatus.APPROVED.value})

SUBMISSION_OVERLAP_MESSAGE = (
    "You already have a pending or approved leave that overlaps with this period. "
    "Please adjust the dates or times."
)
APPROVAL_OVERLAP_MESSAGE = (
    "This leave now overlaps with another approved or pending leave for the employee. "
    "Please review before approving."
)


@dataclass(frozen=True)
class LeaveWindow:
    start_date: date
    end_date: date
    unit: str
    start_minutes: Optional[int] = None
    end_minutes: Optional[int] = None


def record_value(record: Any, name: str):
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def validate_leave_range(
    type: str,
    unit: str,
    start_date,
    end_date=None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    *,
    today: date,
) -> LeaveWindow:
    """
    Checks the shape of a leave request and returns its normalised window.

    Sick leave (with or without certificate) may be backdated, annual leave
    may not. Half-day leave needs a start and end time on a single day.
    """
    if not start_date:
        raise InvalidDate("Start date is required")
    try:
        start = to_date(start_date)
    except ValueError:
        raise InvalidDate("Invalid start date")

    end = None
    if end_date:
        try:
            end = to_date(end_date)
        except ValueError:
            raise InvalidDate("Invalid end date")
        if end < start:
            raise InvalidRange("End date cannot be before start date")

    if type not in SICK_LEAVE_TYPES and start < today:
        raise InvalidRange("Backdated leave is only allowed for sick leave")

    start_minutes = end_minutes = None
    if unit == LeaveUnit.HALF_DAY.value:
        if not start_time or not end_time:
            raise MissingTime("Start time and end time are required for half-day leave")
        start_minutes, end_minutes = validate_time_range(start_time, end_time)
        if end is not None and end != start:
            raise InvalidRange("Half-day leave must start and end on the same day")

    return LeaveWindow(
        start_date=start,
        end_date=end or start,
        unit=unit,
        start_minutes=start_minutes,
        end_minutes=end_minutes,
    )


def is_leave_overlapping(existing: Iterable[Any], candidate: Any) -> bool:
    """
    True when the candidate conflicts with any pending/approved leave.

    Records may be ORM rows or dicts carrying start_date, end_date,
    start_time, end_time, unit and (for existing ones) status.
    """
    c_start = to_date(record_value(candidate, "start_date"))
    c_end = to_date(record_value(candidate, "end_date")) or c_start
    c_unit = record_value(candidate, "unit")
    c_start_minutes = try_parse_time(record_value(candidate, "start_time"))
    c_end_minutes = try_parse_time(record_value(candidate, "end_time"))

    for leave in existing:
        if record_value(leave, "status") not in ACTIVE_STATUSES:
            continue

        e_start = to_date(record_value(leave, "start_date"))
        e_end = to_date(record_value(leave, "end_date")) or e_start

        if not (c_start <= e_end and c_end >= e_start):
            continue

        # A full day on either side blocks the whole day
        if record_value(leave, "unit") == LeaveUnit.FULL_DAY.value or c_unit == LeaveUnit.FULL_DAY.value:
            return True

        if c_start == e_start:
            e_start_minutes = try_parse_time(record_value(leave, "start_time"))
            e_end_minutes = try_parse_time(record_value(leave, "end_time"))
            if None in (c_start_minutes, c_end_minutes, e_start_minutes, e_end_minutes):
                continue
            if windows_overlap(c_start_minutes, c_end_minutes, e_start_minutes, e_end_minutes):
                return True

    return False
