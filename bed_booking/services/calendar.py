"""
Calendar aggregator: day-indexed bed counts for multi-month display.

The aggregator folds each reservation and blocked period over its own date
span instead of asking the availability engine about every day, so the cost
is linear in the total length of those spans. It is a read-only projection
and must never be used to decide whether a reservation can be admitted.

Per day, each counted bed lands in exactly one bucket with precedence
blocked > booked > pending > available, so::

    available == total - booked - pending - blocked >= 0

``total`` counts beds whose hard-disable flag is clear plus any bed held by a
reservation on that day (confirmation clears the flag, and those nights must
still show as booked).
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Optional

from dateutil.relativedelta import relativedelta

from bed_booking.models.reservations import TERMINAL_STATUSES
from bed_booking.services.availability import block_scope, snapshot_topology
from bed_booking.utils.datetime import iter_dates, utc_today


@dataclass
class CalendarDay:
    date: date
    is_past: bool
    total: int
    available: int
    booked: int
    pending: int
    blocked: int


@dataclass
class CalendarMonth:
    name: str
    year: int
    month: int
    days: list[CalendarDay] = field(default_factory=list)


@dataclass
class _DayHolds:
    booked: set[str] = field(default_factory=set)
    pending: set[str] = field(default_factory=set)
    blocked: set[str] = field(default_factory=set)
    whole_booked: bool = False
    whole_pending: bool = False


def calendar_window(start: date, month_count: int) -> tuple[date, date]:
    """
    First and last day (inclusive) of ``month_count`` whole months starting at ``start``'s month.

    Example:
        >>> calendar_window(date(2024, 6, 15), 2)
        (datetime.date(2024, 6, 1), datetime.date(2024, 7, 31))
    """
    first = start.replace(day=1)
    last = first + relativedelta(months=month_count) - timedelta(days=1)
    return first, last


def _fold_reservation(
    holds: dict[date, _DayHolds], reservation: Any, first: date, last: date, confirmed: bool
) -> None:
    span_start = max(reservation.start_date, first)
    span_end = min(reservation.end_date, last + timedelta(days=1))
    bed_ids = reservation.bed_ids
    for day in iter_dates(span_start, span_end):
        day_holds = holds[day]
        if not bed_ids:
            if confirmed:
                day_holds.whole_booked = True
            else:
                day_holds.whole_pending = True
        elif confirmed:
            day_holds.booked |= bed_ids
        else:
            day_holds.pending |= bed_ids


def aggregate(
    prop: Any,
    reservations: Iterable[Any],
    pending_reservations: Iterable[Any],
    blocked_periods: Iterable[Any],
    month_count: int,
    start: Optional[date] = None,
) -> list[CalendarMonth]:
    """
    Build per-day bed counts for ``month_count`` months.

    Args:
        prop: Property with rooms and beds loaded
        reservations: Confirmed reservations (counted as booked)
        pending_reservations: Pending reservations (counted as pending)
        blocked_periods: Host blocked periods; malformed ones are ignored
        month_count: Number of whole months to produce
        start: Reference day (defaults to today, UTC); earlier days are ``is_past``

    Returns:
        list[CalendarMonth]: One entry per month with one CalendarDay per date
    """
    today = start or utc_today()
    first, last = calendar_window(today, month_count)

    slots = snapshot_topology(prop)
    all_beds = {s.bed_id for s in slots}
    enabled = {s.bed_id for s in slots if s.is_available}

    holds: dict[date, _DayHolds] = defaultdict(_DayHolds)

    for reservation in reservations:
        if reservation.status in TERMINAL_STATUSES:
            continue
        _fold_reservation(holds, reservation, first, last, confirmed=True)

    for reservation in pending_reservations:
        if reservation.status in TERMINAL_STATUSES:
            continue
        _fold_reservation(holds, reservation, first, last, confirmed=False)

    for block in blocked_periods:
        scope = block_scope(block, slots)
        if scope is None:
            continue
        span_start = max(block.start_date, first)
        span_end = min(block.end_date, last)
        for day in iter_dates(span_start, span_end + timedelta(days=1)):
            holds[day].blocked |= scope

    months: list[CalendarMonth] = []
    month_start = first
    for _ in range(month_count):
        days_in_month = calendar.monthrange(month_start.year, month_start.month)[1]
        month = CalendarMonth(
            name=month_start.strftime("%B %Y"),
            year=month_start.year,
            month=month_start.month,
        )
        for offset in range(days_in_month):
            day = month_start + timedelta(days=offset)
            month.days.append(_count_day(day, holds.get(day), enabled, all_beds, today))
        months.append(month)
        month_start = month_start + relativedelta(months=1)

    return months


def _count_day(
    day: date,
    day_holds: Optional[_DayHolds],
    enabled: set[str],
    all_beds: set[str],
    today: date,
) -> CalendarDay:
    if day_holds is None:
        day_holds = _DayHolds()

    booked = day_holds.booked & all_beds
    pending = day_holds.pending & all_beds
    if day_holds.whole_booked:
        booked |= enabled
    if day_holds.whole_pending:
        pending |= enabled

    counted = enabled | booked | pending
    blocked = day_holds.blocked & counted
    booked = booked - blocked
    pending = pending - blocked - booked

    total = len(counted)
    return CalendarDay(
        date=day,
        is_past=day < today,
        total=total,
        available=max(0, total - len(booked) - len(pending) - len(blocked)),
        booked=len(booked),
        pending=len(pending),
        blocked=len(blocked),
    )
