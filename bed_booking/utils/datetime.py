"""UTC datetime and calendar-date utilities."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC

    Example:
        >>> now = utc_now()
        >>> now.tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Return today's calendar date in UTC."""
    return utc_now().date()


def nights_between(start: date, end: date) -> int:
    """Number of nights in the half-open stay ``[start, end)``."""
    return (end - start).days


def iter_dates(start: date, end: date) -> Iterator[date]:
    """
    Yield each calendar date in the half-open range ``[start, end)``.

    Example:
        >>> list(iter_dates(date(2024, 6, 1), date(2024, 6, 3)))
        [datetime.date(2024, 6, 1), datetime.date(2024, 6, 2)]
    """
    current = start
    while current < end:
        yield current
        current += timedelta(days=1)
