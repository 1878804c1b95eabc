"""
Integration tests for reservation admission against a real SQLite database.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from bed_booking.db.readers.properties import require_property
from bed_booking.db.writers.properties import touch_property
from bed_booking.errors import ConflictError, NotFoundError, ValidationError
from bed_booking.models.reservations import PENDING
from bed_booking.schemas.principal import Principal
from bed_booking.services import conflicts, inventory
from bed_booking.services.conflicts import BedRef, try_reserve

JUNE_1 = date(2024, 6, 1)
JUNE_2 = date(2024, 6, 2)
JUNE_3 = date(2024, 6, 3)
JUNE_4 = date(2024, 6, 4)


def _admissions(mode: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "bedbooking_admissions_total", {"mode": mode, "outcome": outcome}
    )
    return value or 0.0


@pytest.mark.integration
def test_bed_reservation_is_pending_with_server_price(
    db_engine: Engine, two_bed_property: Any, guest: Principal
) -> None:
    reservation = try_reserve(
        db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)]
    )

    assert reservation.status == PENDING
    assert reservation.total_price == Decimal("60.00")
    assert reservation.guest_id == "guest-1"
    assert reservation.host_id == "host-1"
    assert [b.bed_label for b in reservation.booked_beds] == ["Bed 1"]


@pytest.mark.integration
def test_overlapping_stay_on_same_bed_is_refused(
    db_engine: Engine, two_bed_property: Any, guest: Principal, other_guest: Principal
) -> None:
    try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)])

    with pytest.raises(ConflictError, match="already booked"):
        try_reserve(db_engine, other_guest, two_bed_property.id, JUNE_2, JUNE_4, [BedRef(0, 0)])


@pytest.mark.integration
def test_other_bed_in_same_room_is_admitted(
    db_engine: Engine, two_bed_property: Any, guest: Principal, other_guest: Principal
) -> None:
    try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)])

    second = try_reserve(
        db_engine, other_guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 1)]
    )

    assert second.total_price == Decimal("80.00")


@pytest.mark.integration
def test_back_to_back_stays_do_not_overlap(
    db_engine: Engine, two_bed_property: Any, guest: Principal, other_guest: Principal
) -> None:
    try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)])

    follow_on = try_reserve(
        db_engine, other_guest, two_bed_property.id, JUNE_3, JUNE_4, [BedRef(0, 0)]
    )

    assert follow_on.start_date == JUNE_3


@pytest.mark.integration
def test_bed_can_be_referenced_by_id(
    db_engine: Engine, two_bed_property: Any, guest: Principal
) -> None:
    bed_id = two_bed_property.rooms[0].beds[1].id

    reservation = try_reserve(
        db_engine, guest, two_bed_property.id, JUNE_1, JUNE_2, [BedRef(bed_id=bed_id)]
    )

    assert reservation.bed_ids == frozenset({bed_id})
    assert reservation.total_price == Decimal("40.00")


@pytest.mark.integration
def test_whole_property_stay_uses_nightly_price(
    db_engine: Engine, two_bed_property: Any, guest: Principal
) -> None:
    reservation = try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3)

    assert reservation.is_whole_property
    assert reservation.total_price == Decimal("300.00")


@pytest.mark.integration
def test_whole_property_refused_when_any_bed_is_held(
    db_engine: Engine, two_bed_property: Any, guest: Principal, other_guest: Principal
) -> None:
    try_reserve(db_engine, guest, two_bed_property.id, JUNE_2, JUNE_3, [BedRef(0, 1)])

    with pytest.raises(ConflictError, match="Property already booked"):
        try_reserve(db_engine, other_guest, two_bed_property.id, JUNE_1, JUNE_4)


@pytest.mark.integration
def test_beds_refused_while_whole_property_is_held(
    db_engine: Engine, two_bed_property: Any, guest: Principal, other_guest: Principal
) -> None:
    try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_4)

    with pytest.raises(ConflictError):
        try_reserve(db_engine, other_guest, two_bed_property.id, JUNE_2, JUNE_3, [BedRef(0, 0)])


@pytest.mark.integration
def test_blocked_bed_is_refused(
    db_engine: Engine, two_bed_property: Any, host: Principal, guest: Principal
) -> None:
    inventory.add_blocked_period(
        db_engine,
        host,
        two_bed_property.id,
        {
            "start_date": JUNE_2,
            "end_date": JUNE_3,
            "block_type": "bed",
            "room_index": 0,
            "bed_index": 0,
        },
    )

    with pytest.raises(ConflictError):
        try_reserve(db_engine, guest, two_bed_property.id, JUNE_3, JUNE_4, [BedRef(0, 0)])

    before_block = try_reserve(
        db_engine, guest, two_bed_property.id, JUNE_1, JUNE_2, [BedRef(0, 0)]
    )
    assert before_block.status == PENDING
    free = try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_4, [BedRef(0, 1)])
    assert free.status == PENDING


@pytest.mark.integration
def test_inactive_property_is_refused(
    db_engine: Engine, host: Principal, guest: Principal
) -> None:
    empty = inventory.create_property(db_engine, host, {"title": "Empty Lot", "price_per_night": 90})

    with pytest.raises(ConflictError, match="not available"):
        try_reserve(db_engine, guest, empty.id, JUNE_1, JUNE_3)


@pytest.mark.integration
def test_invalid_requests_leave_no_reservation(
    db_engine: Engine, two_bed_property: Any, guest: Principal
) -> None:
    before = _admissions("beds", "invalid")

    with pytest.raises(ValidationError, match="End date must be after start date"):
        try_reserve(db_engine, guest, two_bed_property.id, JUNE_3, JUNE_3, [BedRef(0, 0)])
    with pytest.raises(ValidationError, match="required"):
        try_reserve(db_engine, guest, two_bed_property.id, None, JUNE_3, [BedRef(0, 0)])
    with pytest.raises(ValidationError, match="more than once"):
        try_reserve(
            db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0), BedRef(0, 0)]
        )
    with pytest.raises(NotFoundError):
        try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 5)])
    with pytest.raises(NotFoundError):
        try_reserve(db_engine, guest, "no-such-property", JUNE_1, JUNE_3, [BedRef(0, 0)])

    assert _admissions("beds", "invalid") - before == 5
    admitted = try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)])
    assert admitted.status == PENDING


@pytest.mark.integration
def test_admission_retries_after_stale_version(
    db_engine: Engine, two_bed_property: Any, guest: Principal
) -> None:
    real_admit = conflicts._admit
    calls = {"count": 0}

    def flaky_admit(*args: Any, **kwargs: Any) -> Any:
        calls["count"] += 1
        if calls["count"] == 1:
            raise StaleDataError("version changed")
        return real_admit(*args, **kwargs)

    with patch("bed_booking.services.conflicts._admit", side_effect=flaky_admit):
        reservation = try_reserve(
            db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)]
        )

    assert calls["count"] == 2
    assert reservation.status == PENDING


@pytest.mark.integration
def test_admission_gives_up_after_max_retries(
    db_engine: Engine, two_bed_property: Any, guest: Principal
) -> None:
    before = _admissions("beds", "retry_exhausted")

    with patch(
        "bed_booking.services.conflicts._admit", side_effect=StaleDataError("version changed")
    ) as mock_admit:
        with pytest.raises(ConflictError, match="modified concurrently"):
            try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)])

    assert mock_admit.call_count == conflicts.ADMISSION_MAX_RETRIES
    assert _admissions("beds", "retry_exhausted") - before == 1


@pytest.mark.integration
def test_stale_property_version_cannot_commit(db_engine: Engine, two_bed_property: Any) -> None:
    """Test two writers holding the same version cannot both commit."""
    first = Session(db_engine)
    second = Session(db_engine)
    try:
        first_prop = require_property(first, two_bed_property.id)
        second_prop = require_property(second, two_bed_property.id)
        assert first_prop.version == second_prop.version

        touch_property(first_prop)
        first.commit()

        touch_property(second_prop)
        with pytest.raises(StaleDataError):
            second.commit()
    finally:
        first.close()
        second.close()


@pytest.mark.integration
def test_concurrent_requests_for_one_bed_admit_exactly_one(
    db_engine: Engine, two_bed_property: Any
) -> None:
    guests = [Principal(user_id=f"guest-{i}", role="guest") for i in range(6)]

    def attempt(principal: Principal) -> str:
        try:
            try_reserve(
                db_engine, principal, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)]
            )
            return "admitted"
        except ConflictError:
            return "conflict"

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(pool.map(attempt, guests))

    assert outcomes.count("admitted") == 1
    assert outcomes.count("conflict") == 5
