"""
Timezone utilities for eventcal.

Only two kinds of timestamps exist in the engine: aware values, which are
always normalized to UTC, and naive values, which are local wall-clock time.
Whenever the two kinds have to be compared or sorted together, aware values
are rendered as naive wall-clock time in the configured local timezone.
"""

from datetime import date, datetime, time, timedelta
from typing import Union
import pytz


# Default timezone - overridden by Config.timezone
_local_timezone_name: str = "UTC"


def set_timezone(timezone_name: str):
    """
    Set the local timezone used to compare UTC and naive timestamps.

    Raises:
        pytz.UnknownTimeZoneError: if the name is not in the tz database.
    """
    global _local_timezone_name
    pytz.timezone(timezone_name)
    _local_timezone_name = timezone_name


def get_timezone_name() -> str:
    return _local_timezone_name


def get_local_timezone():
    """Get the local timezone as a pytz timezone object."""
    return pytz.timezone(_local_timezone_name)


def is_utc(dt: datetime) -> bool:
    """True for aware datetimes sitting at UTC offset zero."""
    return dt.tzinfo is not None and dt.utcoffset() == timedelta(0)


def to_utc_datetime(dt: datetime) -> datetime:
    """
    Convert a datetime to an aware UTC datetime.

    Args:
        dt: Aware datetime in any zone, or naive local wall-clock time.

    Returns:
        A timezone-aware datetime in UTC.
    """
    if dt.tzinfo is None:
        local_dt = get_local_timezone().localize(dt)
        return local_dt.astimezone(pytz.UTC)
    return dt.astimezone(pytz.UTC)


def utc_to_local_naive(dt: datetime) -> datetime:
    """
    Convert an aware datetime to a naive local datetime.

    Naive input is already local wall-clock time and is returned unchanged.
    """
    if dt.tzinfo is not None:
        return dt.astimezone(get_local_timezone()).replace(tzinfo=None)
    return dt


def normalize(dt: datetime) -> datetime:
    """Keep naive values as they are and move aware values to UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.UTC)


def comparable(dt: datetime) -> datetime:
    """Sort/compare key that works across naive and aware datetimes."""
    return utc_to_local_naive(dt)


def as_datetime(value: Union[date, datetime]) -> datetime:
    """Promote a date to midnight; datetimes pass through normalized."""
    if isinstance(value, datetime):
        return normalize(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def local_today() -> date:
    """Today's date on the configured local wall clock."""
    return utc_to_local_naive(datetime.now(pytz.UTC)).date()


def local_date(value: Union[date, datetime]) -> date:
    """Calendar day of a timestamp as seen on the local wall clock."""
    if isinstance(value, datetime):
        return comparable(value).date()
    return value
