"""
Calendar helpers for the ledger.

All instants handled by the ledger are timezone-aware UTC datetimes.
Month arithmetic clamps the day to the last valid day of the target
month (Jan 31 + 1 month = Feb 28/29, Feb 29 - 1 year = Feb 28).
"""

import calendar
import math
from datetime import datetime, timedelta, timezone

ONE_DAY = timedelta(days=1)


def as_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """Clamp day to valid range for the given year/month."""
    max_day = calendar.monthrange(year, month)[1]
    return min(day, max_day)


def add_months(d: datetime, n: int) -> datetime:
    """Add n months (n may be negative) to d, clamping day to month end."""
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    day = clamp_day_to_month(year, month, d.day)
    return d.replace(year=year, month=month, day=day)


def add_years(d: datetime, n: int) -> datetime:
    return add_months(d, 12 * n)


def month_bounds(reference: datetime) -> tuple[datetime, datetime]:
    """
    Return (start, end) of the calendar month containing reference.

    start is the first day at 00:00 UTC; end is the first instant of the
    following month, so a month covers start <= instant < end.
    """
    ref = as_utc(reference)
    start = ref.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start, add_months(start, 1)


def month_key(reference: datetime) -> str:
    """YYYY-MM key of the month containing reference."""
    return as_utc(reference).strftime("%Y-%m")


def days_until(due: datetime, reference: datetime) -> int:
    """Whole days from reference to due, rounded up."""
    delta = as_utc(due) - as_utc(reference)
    return math.ceil(delta / ONE_DAY)
