# booking_core/utils/time_utils.py
"""Date and clock-time helpers for YYYY-MM-DD / HH:MM values"""
import re
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

MINUTES_PER_DAY = 24 * 60


def is_valid_time(value: Optional[str]) -> bool:
    return bool(value) and TIME_PATTERN.match(value) is not None


def is_valid_date(value: Optional[str]) -> bool:
    if not value or not DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD; raises ValueError on anything else"""
    if not value or not DATE_PATTERN.match(value):
        raise ValueError(f"Invalid date format: {value!r}")
    return date.fromisoformat(value)


def time_to_minutes(value: str) -> int:
    """Minutes since midnight for HH:MM; raises ValueError on anything else"""
    match = TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time format: {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time(minutes: int) -> str:
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range for a clock time: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(start_time: str, minutes: int) -> str:
    """
    Clock arithmetic within one day, no timezone involved.

    Results reaching or crossing midnight raise ValueError.
    """
    return minutes_to_time(time_to_minutes(start_time) + minutes)


def day_of_week(value: str) -> int:
    """0=Sunday ... 6=Saturday, computed on the calendar date itself"""
    # date.weekday() is 0=Monday
    return (parse_date(value).weekday() + 1) % 7


def weekday_name(dow: int) -> str:
    return WEEKDAY_NAMES[dow]


def intervals_overlap(start1: str, end1: str, start2: str, end2: str) -> bool:
    """Half-open [start, end) overlap; touching endpoints do not overlap"""
    return start1 < end2 and start2 < end1


def window_contains(window_start: str, window_end: str, start: str, end: str) -> bool:
    return window_start <= start and end <= window_end


def get_timezone(name: Optional[str]) -> ZoneInfo:
    """Resolve an IANA timezone name; raises ValueError for unknown names"""
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name!r}") from e


def local_to_utc(date_str: str, time_str: str, tz_name: Optional[str]) -> datetime:
    """Combine a business-local date and clock time into an aware UTC datetime"""
    local_date = parse_date(date_str)
    minutes = time_to_minutes(time_str)
    naive = datetime(local_date.year, local_date.month, local_date.day, minutes // 60, minutes % 60)
    return naive.replace(tzinfo=get_timezone(tz_name)).astimezone(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize datetimes read back from the database (SQLite drops tzinfo)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
