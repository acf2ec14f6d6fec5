import re
from datetime import date, datetime
from typing import Optional, Tuple, Union

from portal.core.errors import InvalidTimeFormat, InvalidTime

_TIME_RE = re.compile(r"^([0-9]{1,2}):([0-9]{2})$")

MINUTES_PER_DAY = 24 * 60


def parse_time(value: str) -> int:
    """
    Parses an "HH:MM" string into minutes since midnight.

    :raises InvalidTimeFormat: for anything that isn't a valid 24h clock time
    """
    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Invalid time: {value!r}")

    match = _TIME_RE.match(value.strip())
    if not match:
        raise InvalidTimeFormat(f"Invalid time: {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidTimeFormat(f"Invalid time: {value!r}")

    return hours * 60 + minutes


def try_parse_time(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return parse_time(value)
    except InvalidTimeFormat:
        return None


def validate_time_range(start: str, end: str) -> Tuple[int, int]:
    """Returns (start_minutes, end_minutes); the slot must have positive duration."""
    try:
        start_minutes = parse_time(start)
        end_minutes = parse_time(end)
    except InvalidTimeFormat:
        raise InvalidTimeFormat("Invalid start or end time")

    if end_minutes <= start_minutes:
        raise InvalidTime("End time must be after start time")

    return start_minutes, end_minutes


def minutes_to_hours(start_minutes: int, end_minutes: int) -> float:
    return round((end_minutes - start_minutes) / 60, 2)


def windows_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    # Open intervals: 09:00-12:00 and 12:00-15:00 do not overlap
    return start_a < end_b and end_a > start_b


def to_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """
    Coerces ISO strings and datetimes into a plain date.

    :raises ValueError: when a string isn't an ISO date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if "T" in text:
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).date()
    return date.fromisoformat(text)
