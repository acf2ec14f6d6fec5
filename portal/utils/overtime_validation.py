from datetime import date, timedelta
from typing import Any, Iterable

from portal.core.errors import InvalidDate, InvalidRange, MissingTime, ValidationFailed, InvalidTimeFormat
from portal.utils.leave_validation import ACTIVE_STATUSES, record_value
from portal.utils.time_range import parse_time, validate_time_range, minutes_to_hours, try_parse_time, windows_overlap, to_date

MIN_HOURS = 0.5
MAX_HOURS = 12
MAX_DAYS_BACK = 30
DESCRIPTION_MIN = 5
DESCRIPTION_MAX = 2000

SUBMISSION_OVERLAP_MESSAGE = (
    "You already have a pending or approved overtime that overlaps with this time "
    "period on the same date. Please adjust the times."
)
APPROVAL_OVERLAP_MESSAGE = (
    "This overtime now overlaps with another approved or pending overtime for the "
    "employee. Please review before approving."
)


def calculate_hours(start_time: str, end_time: str) -> float:
    """Hours between two HH:MM times, 0 for invalid or non-positive windows."""
    try:
        start_minutes = parse_time(start_time)
        end_minutes = parse_time(end_time)
    except InvalidTimeFormat:
        return 0
    if end_minutes <= start_minutes:
        return 0
    return minutes_to_hours(start_minutes, end_minutes)


def validate_overtime_request(date_value, start_time: str, end_time: str, description: str, *, today: date) -> float:
    """
    Validates an overtime submission and returns the derived hours.

    Overtime is reported after the fact: not in the future, and at most
    30 days back.
    """
    if not date_value:
        raise InvalidDate("Date is required")
    try:
        worked_on = to_date(date_value)
    except ValueError:
        raise InvalidDate("Invalid date")

    if worked_on > today:
        raise InvalidRange("Overtime date cannot be in the future")
    if worked_on < today - timedelta(days=MAX_DAYS_BACK):
        raise InvalidRange("Overtime date cannot be more than 30 days in the past")

    if not start_time or not end_time:
        raise MissingTime("Start time and end time are required")

    start_minutes, end_minutes = validate_time_range(start_time, end_time)
    hours = minutes_to_hours(start_minutes, end_minutes)

    if hours < MIN_HOURS:
        raise InvalidRange("Overtime must be at least 0.5 hours (30 minutes)")
    if hours > MAX_HOURS:
        raise InvalidRange("Overtime cannot exceed 12 hours per day")

    text = (description or "").strip()
    if len(text) < DESCRIPTION_MIN:
        raise ValidationFailed("Description must be at least 5 characters")
    if len(text) > DESCRIPTION_MAX:
        raise ValidationFailed("Description is too long (maximum 2000 characters)")

    return hours


def is_overtime_overlapping(existing: Iterable[Any], candidate: Any) -> bool:
    c_date = to_date(record_value(candidate, "date"))
    c_start = try_parse_time(record_value(candidate, "start_time"))
    c_end = try_parse_time(record_value(candidate, "end_time"))
    if c_start is None or c_end is None:
        return False

    for overtime in existing:
        if record_value(overtime, "status") not in ACTIVE_STATUSES:
            continue
        if to_date(record_value(overtime, "date")) != c_date:
            continue

        e_start = try_parse_time(record_value(overtime, "start_time"))
        e_end = try_parse_time(record_value(overtime, "end_time"))
        if e_start is None or e_end is None:
            continue

        if windows_overlap(c_start, c_end, e_start, e_end):
            return True

    return False
