"""
Datetime utility functions.

Session dates are stored as ISO strings holding the club's local calendar
date. They are read back as calendar dates without any timezone shifting.
"""

from datetime import date, datetime
from typing import Optional, Union
import pytz

from clubstats.utils.constants import CLUB_TIMEZONE

DateLike = Union[str, date, datetime]


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (sqlite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value


def club_today(timezone_name: str = CLUB_TIMEZONE) -> date:
    """Today's calendar date in the club's timezone."""
    return datetime.now(pytz.timezone(timezone_name)).date()


def parse_session_date(value: DateLike, timezone_name: str = CLUB_TIMEZONE) -> date:
    """
    Read a session date as a local calendar date.

    Accepts "2024-07-31", ISO timestamps, or date/datetime objects. Timestamp
    strings with an offset ("2024-07-31T22:30:00Z") are converted to the club
    timezone before the date is taken; naive ones keep their own date part.

    Raises:
        ValueError: If the string does not start with a YYYY-MM-DD date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Expected string, date or datetime, got {type(value)}")
    text = value.strip()
    day = datetime.strptime(text[:10], "%Y-%m-%d").date()
    if len(text) <= 10:
        return day
    try:
        stamp = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return day
    if stamp.tzinfo is None:
        return day
    return stamp.astimezone(pytz.timezone(timezone_name)).date()


def to_datetime(value: DateLike, end_of_day: bool = False) -> datetime:
    """
    Convert a date-like value to a UTC datetime.

    Plain dates become midnight, or 23:59:59.999 when end_of_day is set.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str) and len(value.strip()) > 10:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return ensure_utc(parsed)
    day = parse_session_date(value)
    if end_of_day:
        return pytz.UTC.localize(datetime(day.year, day.month, day.day, 23, 59, 59, 999000))
    return pytz.UTC.localize(datetime(day.year, day.month, day.day))


def month_key(day: date) -> str:
    """Bucket key for monthly aggregation, e.g. "2024-03"."""
    return f"{day.year:04d}-{day.month:02d}"


def weekday_index(day: date) -> int:
    """Day of week with 0 = Sunday through 6 = Saturday."""
    return day.isoweekday() % 7
