"""
Unit tests for the calendar aggregator.
"""

from __future__ import annotations

from datetime import date

import pytest
from booking_factories import make_block, make_property, make_reservation

from bed_booking.models.reservations import CANCELLED, CONFIRMED, PENDING
from bed_booking.services.calendar import CalendarDay, aggregate, calendar_window

TODAY = date(2024, 6, 15)


def _day(months, day: date) -> CalendarDay:
    for month in months:
        for entry in month.days:
            if entry.date == day:
                return entry
    raise AssertionError(f"{day} not in calendar")


@pytest.mark.unit
def test_calendar_window_spans_whole_months() -> None:
    assert calendar_window(TODAY, 1) == (date(2024, 6, 1), date(2024, 6, 30))
    assert calendar_window(date(2024, 12, 31), 2) == (date(2024, 12, 1), date(2025, 1, 31))


@pytest.mark.unit
def test_months_and_days_are_laid_out() -> None:
    months = aggregate(make_property(), [], [], [], 3, start=TODAY)

    assert [m.name for m in months] == ["June 2024", "July 2024", "August 2024"]
    assert [len(m.days) for m in months] == [30, 31, 31]
    assert months[0].days[0].date == date(2024, 6, 1)
    assert _day(months, date(2024, 6, 14)).is_past is True
    assert _day(months, TODAY).is_past is False


@pytest.mark.unit
def test_confirmed_and_pending_holds_are_counted() -> None:
    prop = make_property(((30, 40, 50),))
    confirmed = make_reservation(
        date(2024, 6, 20), date(2024, 6, 22), ["bed-0-0"], status=CONFIRMED, reservation_id="c"
    )
    pending = make_reservation(
        date(2024, 6, 21), date(2024, 6, 23), ["bed-0-1"], status=PENDING, reservation_id="p"
    )

    months = aggregate(prop, [confirmed], [pending], [], 1, start=TODAY)

    day_20 = _day(months, date(2024, 6, 20))
    assert (day_20.total, day_20.booked, day_20.pending, day_20.available) == (3, 1, 0, 2)
    day_21 = _day(months, date(2024, 6, 21))
    assert (day_21.booked, day_21.pending, day_21.available) == (1, 1, 1)
    # Checkout day is not occupied
    day_22 = _day(months, date(2024, 6, 22))
    assert (day_22.booked, day_22.pending, day_22.available) == (0, 1, 2)


@pytest.mark.unit
def test_blocked_beds_are_not_double_counted() -> None:
    """Test a bed that is both booked and blocked only counts as blocked."""
    prop = make_property()
    booked = make_reservation(date(2024, 6, 20), date(2024, 6, 21), ["bed-0-0"], status=CONFIRMED)
    block = make_block(date(2024, 6, 20), date(2024, 6, 20), "room", room_id="room-0")

    months = aggregate(prop, [booked], [], [block], 1, start=TODAY)

    day = _day(months, date(2024, 6, 20))
    assert (day.total, day.blocked, day.booked, day.available) == (2, 2, 0, 0)


@pytest.mark.unit
def test_whole_property_booking_fills_every_bed() -> None:
    prop = make_property(((30, 40), (25,)))
    whole = make_reservation(date(2024, 6, 20), date(2024, 6, 21), [], status=CONFIRMED)

    months = aggregate(prop, [whole], [], [], 1, start=TODAY)

    day = _day(months, date(2024, 6, 20))
    assert (day.total, day.booked, day.available) == (3, 3, 0)


@pytest.mark.unit
def test_confirmed_bed_with_cleared_flag_still_counts_as_booked() -> None:
    """Test confirmation's disable flag does not hide the booked nights."""
    prop = make_property(disabled=["bed-0-0"])
    booked = make_reservation(date(2024, 6, 20), date(2024, 6, 21), ["bed-0-0"], status=CONFIRMED)

    months = aggregate(prop, [booked], [], [], 1, start=TODAY)

    assert (_day(months, date(2024, 6, 20)).total, _day(months, date(2024, 6, 20)).booked) == (2, 1)
    assert _day(months, date(2024, 6, 25)).total == 1


@pytest.mark.unit
def test_terminal_reservations_are_skipped() -> None:
    cancelled = make_reservation(
        date(2024, 6, 20), date(2024, 6, 21), ["bed-0-0"], status=CANCELLED
    )

    months = aggregate(make_property(), [cancelled], [cancelled], [], 1, start=TODAY)

    assert _day(months, date(2024, 6, 20)).available == 2


@pytest.mark.unit
def test_counts_never_exceed_total() -> None:
    prop = make_property(((30, 40), (20, 20, 20)), disabled=["bed-1-2"])
    confirmed = [
        make_reservation(date(2024, 6, 1), date(2024, 7, 3), ["bed-0-0", "bed-1-0"], CONFIRMED, "c1"),
        make_reservation(date(2024, 6, 28), date(2024, 7, 1), [], CONFIRMED, "c2"),
    ]
    pending = [
        make_reservation(date(2024, 6, 10), date(2024, 6, 20), ["bed-0-0", "bed-0-1"], PENDING, "p1"),
    ]
    blocks = [
        make_block(date(2024, 6, 5), date(2024, 6, 12), "bed", room_id="room-1", bed_id="bed-1-1"),
        make_block(date(2024, 6, 15), date(2024, 6, 15), "entire", block_id="block-2"),
    ]

    months = aggregate(prop, confirmed, pending, blocks, 2, start=TODAY)

    for month in months:
        for day in month.days:
            assert day.available >= 0
            assert day.available + day.booked + day.pending + day.blocked == day.total
