"""Date parsing and calendar-day utilities."""

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterator

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from shopledger.domain.errors import InvalidDateError, invalid_date_range

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports various formats including relative dates:
    - Absolute dates: "2024-01-15", "January 15, 2024", etc.
    - Relative dates: "today", "yesterday", "tomorrow"

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        InvalidDateError: If date string cannot be parsed
    """
    if date_str is None or not str(date_str).strip():
        raise InvalidDateError("Empty date string")

    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }

    if date_str in relative_dates:
        return relative_dates[date_str]

    if _ISO_DATE.match(date_str):
        return parse_iso_date(date_str)

    try:
        dt = date_parser.parse(date_str)
        return dt.date()
    except (ValueError, TypeError, OverflowError) as e:
        raise InvalidDateError(f"Could not parse date '{date_str}': {e}")


def parse_iso_date(date_str: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string.

    Raises:
        InvalidDateError: If the string is not a valid calendar date
    """
    value = (date_str or "").strip()
    if not _ISO_DATE.match(value):
        raise InvalidDateError(f"Invalid date format: '{value}'. Expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateError(f"Invalid date '{value}': {e}")


def ensure_date(value) -> date:
    """Accept a date (not a datetime) or a string and return a date.

    Raises:
        InvalidDateError: If the value is neither
    """
    if isinstance(value, datetime):
        raise InvalidDateError(f"Expected a calendar date, got datetime {value.isoformat()}")
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date(value)
    raise InvalidDateError(f"Expected a date, got {type(value).__name__}")


def ensure_range(start, end) -> tuple[date, date]:
    """Validate an inclusive date range.

    Raises:
        InvalidDateError: If either bound is invalid or end precedes start
    """
    start = ensure_date(start)
    end = ensure_date(end)
    if end < start:
        raise InvalidDateError(invalid_date_range(start, end))
    return start, end


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def local_date(moment: datetime, zone: tzinfo) -> date:
    """Calendar date of a timestamp in the given zone.

    Naive timestamps are taken to be UTC, which is how they are stored.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(zone).date()


def day_bounds(start: date, end: date, zone: tzinfo) -> tuple[datetime, datetime]:
    """UTC instants covering local days start..end.

    Returns:
        Tuple of (inclusive start, exclusive end), both naive UTC so they
        compare directly with stored timestamps
    """
    lower = datetime.combine(start, time.min, tzinfo=zone).astimezone(timezone.utc)
    upper = datetime.combine(end + timedelta(days=1), time.min, tzinfo=zone).astimezone(timezone.utc)
    return lower.replace(tzinfo=None), upper.replace(tzinfo=None)


def get_date_range(period: str, today: date | None = None) -> tuple[date, date]:
    """Get start and end dates for a specified period.

    Args:
        period: Period string (this-month, this-week, last-month, last-week)
        today: Reference day, defaults to date.today()

    Returns:
        Tuple of (start_date, end_date) for the specified period

    Raises:
        InvalidDateError: If period string is not recognized
    """
    period = period.strip().lower()
    if today is None:
        today = date.today()

    if period == "this-month":
        return (today.replace(day=1), today)

    elif period == "this-week":
        return (today - timedelta(days=today.weekday()), today)

    elif period == "last-month":
        # First day of last month
        start_date = (today - relativedelta(months=1)).replace(day=1)
        # Last day of last month (day before first day of current month)
        end_date = today.replace(day=1) - timedelta(days=1)
        return (start_date, end_date)

    elif period == "last-week":
        start_date = today - timedelta(days=today.weekday() + 7)
        return (start_date, start_date + timedelta(days=6))

    else:
        raise InvalidDateError(
            f"Unknown period: '{period}'. Supported periods: this-month, this-week, last-month, last-week"
        )
