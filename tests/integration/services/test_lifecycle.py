"""
Integration tests for reservation status transitions and messaging.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from bed_booking.db.readers.properties import require_property
from bed_booking.db.writers.reservations import insert_reservation
from bed_booking.errors import AuthorizationError, ConflictError, NotFoundError, StateError, ValidationError
from bed_booking.models.reservations import CANCELLED, CONFIRMED, REJECTED
from bed_booking.schemas.principal import Principal
from bed_booking.services import inventory
from bed_booking.services import reservations as lifecycle
from bed_booking.services.availability import snapshot_topology
from bed_booking.services.conflicts import BedRef, try_reserve

JUNE_1 = date(2024, 6, 1)
JUNE_3 = date(2024, 6, 3)
JUNE_10 = date(2024, 6, 10)
JUNE_12 = date(2024, 6, 12)


def _bed_flags(engine: Engine, property_id: str) -> list[bool]:
    prop = inventory.get_property(engine, property_id)
    return [bed.is_available for bed in prop.rooms[0].beds]


@pytest.fixture
def pending(db_engine: Engine, two_bed_property: Any, guest: Principal) -> Any:
    return try_reserve(db_engine, guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)])


@pytest.mark.integration
def test_confirm_clears_the_bed_flag(
    db_engine: Engine, two_bed_property: Any, host: Principal, pending: Any
) -> None:
    result = lifecycle.confirm(db_engine, host, pending.id)

    assert result.applied
    assert result.reservation.status == CONFIRMED
    assert _bed_flags(db_engine, two_bed_property.id) == [False, True]


@pytest.mark.integration
def test_cancel_after_confirm_restores_the_bed_flag(
    db_engine: Engine, two_bed_property: Any, host: Principal, guest: Principal, pending: Any
) -> None:
    lifecycle.confirm(db_engine, host, pending.id)

    result = lifecycle.cancel(db_engine, guest, pending.id)

    assert result.applied
    assert result.reservation.status == CANCELLED
    assert _bed_flags(db_engine, two_bed_property.id) == [True, True]


@pytest.mark.integration
def test_cancel_after_confirm_keeps_a_bed_the_host_disabled(
    db_engine: Engine, two_bed_property: Any, host: Principal, guest: Principal, pending: Any
) -> None:
    bed_id = two_bed_property.rooms[0].beds[0].id
    inventory.update_bed(db_engine, host, two_bed_property.id, bed_id, {"is_available": False})
    lifecycle.confirm(db_engine, host, pending.id)

    lifecycle.cancel(db_engine, guest, pending.id)

    assert _bed_flags(db_engine, two_bed_property.id) == [False, True]


@pytest.mark.integration
def test_cancelling_a_pending_reservation_leaves_flags_alone(
    db_engine: Engine, two_bed_property: Any, guest: Principal, pending: Any
) -> None:
    lifecycle.cancel(db_engine, guest, pending.id)

    assert _bed_flags(db_engine, two_bed_property.id) == [True, True]


@pytest.mark.integration
def test_cancel_is_idempotent(db_engine: Engine, guest: Principal, pending: Any) -> None:
    lifecycle.cancel(db_engine, guest, pending.id)

    again = lifecycle.cancel(db_engine, guest, pending.id)

    assert not again.applied
    assert again.reservation.status == CANCELLED


@pytest.mark.integration
def test_reject_is_idempotent(db_engine: Engine, host: Principal, pending: Any) -> None:
    first = lifecycle.reject(db_engine, host, pending.id)
    again = lifecycle.reject(db_engine, host, pending.id)

    assert first.applied
    assert not again.applied
    assert again.reservation.status == REJECTED


@pytest.mark.integration
def test_cancelled_hold_frees_the_bed(
    db_engine: Engine,
    two_bed_property: Any,
    guest: Principal,
    other_guest: Principal,
    pending: Any,
) -> None:
    lifecycle.cancel(db_engine, guest, pending.id)

    rebooked = try_reserve(
        db_engine, other_guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 0)]
    )

    assert rebooked.guest_id == "guest-2"


@pytest.mark.integration
def test_invalid_transitions_raise_state_errors(
    db_engine: Engine, host: Principal, guest: Principal, pending: Any
) -> None:
    lifecycle.confirm(db_engine, host, pending.id)

    with pytest.raises(StateError, match="Can only confirm pending bookings"):
        lifecycle.confirm(db_engine, host, pending.id)
    with pytest.raises(StateError, match="Can only reject pending bookings"):
        lifecycle.reject(db_engine, host, pending.id)


@pytest.mark.integration
def test_rejected_reservation_cannot_be_cancelled(
    db_engine: Engine, host: Principal, guest: Principal, pending: Any
) -> None:
    lifecycle.reject(db_engine, host, pending.id)

    with pytest.raises(StateError, match="Cannot cancel a rejected booking"):
        lifecycle.cancel(db_engine, guest, pending.id)


@pytest.mark.integration
def test_only_the_host_confirms_and_only_the_guest_cancels(
    db_engine: Engine, host: Principal, other_host: Principal, guest: Principal, pending: Any
) -> None:
    with pytest.raises(AuthorizationError, match="only host can confirm"):
        lifecycle.confirm(db_engine, guest, pending.id)
    with pytest.raises(AuthorizationError):
        lifecycle.reject(db_engine, other_host, pending.id)
    with pytest.raises(AuthorizationError, match="only guest can cancel"):
        lifecycle.cancel(db_engine, host, pending.id)


@pytest.mark.integration
def test_unknown_reservation_is_not_found(db_engine: Engine, host: Principal) -> None:
    with pytest.raises(NotFoundError):
        lifecycle.confirm(db_engine, host, "missing")


@pytest.mark.integration
def test_confirm_refused_when_another_confirmed_stay_overlaps(
    db_engine: Engine,
    two_bed_property: Any,
    host: Principal,
    pending: Any,
) -> None:
    # Written directly so it bypasses admission, as a second app instance could
    with Session(db_engine, expire_on_commit=False) as session, session.begin():
        prop = require_property(session, two_bed_property.id)
        clash = insert_reservation(
            session,
            property_id=prop.id,
            guest_id="guest-9",
            host_id=prop.host_id,
            start=JUNE_1,
            end=JUNE_3,
            total_price=Decimal("60.00"),
            slots=snapshot_topology(prop)[:1],
        )
        clash.status = CONFIRMED

    with pytest.raises(ConflictError, match="already booked by another confirmed booking"):
        lifecycle.confirm(db_engine, host, pending.id)
    assert lifecycle.get_for_participant(db_engine, host, pending.id).status == "pending"


@pytest.mark.integration
def test_messages_flip_unread_flags(
    db_engine: Engine, host: Principal, guest: Principal, pending: Any
) -> None:
    reservation, message = lifecycle.post_message(db_engine, guest, pending.id, "  Late arrival?  ")

    assert message.text == "Late arrival?"
    assert message.sender_id == "guest-1"
    assert reservation.unread_by_host
    assert not reservation.unread_by_guest
    assert lifecycle.unread_count(db_engine, host) == 1
    assert lifecycle.unread_count(db_engine, guest) == 0

    lifecycle.post_message(db_engine, host, pending.id, "No problem")
    assert lifecycle.unread_count(db_engine, guest) == 1
    assert lifecycle.unread_count(db_engine, host) == 0


@pytest.mark.integration
def test_reading_a_reservation_marks_it_read(
    db_engine: Engine, host: Principal, guest: Principal, pending: Any
) -> None:
    lifecycle.post_message(db_engine, guest, pending.id, "Hello")

    fetched = lifecycle.get_for_participant(db_engine, host, pending.id)

    assert [m.text for m in fetched.messages] == ["Hello"]
    assert not fetched.unread_by_host
    assert lifecycle.unread_count(db_engine, host) == 0


@pytest.mark.integration
def test_message_rules(
    db_engine: Engine, host: Principal, guest: Principal, other_guest: Principal, pending: Any
) -> None:
    with pytest.raises(ValidationError, match="Message text is required"):
        lifecycle.post_message(db_engine, guest, pending.id, "   ")
    with pytest.raises(AuthorizationError):
        lifecycle.post_message(db_engine, other_guest, pending.id, "Hi")
    with pytest.raises(AuthorizationError):
        lifecycle.get_for_participant(db_engine, other_guest, pending.id)

    lifecycle.cancel(db_engine, guest, pending.id)
    with pytest.raises(StateError):
        lifecycle.post_message(db_engine, host, pending.id, "Too late")


@pytest.mark.integration
def test_listings_by_role_and_property(
    db_engine: Engine,
    two_bed_property: Any,
    host: Principal,
    guest: Principal,
    other_guest: Principal,
    pending: Any,
) -> None:
    other = try_reserve(db_engine, other_guest, two_bed_property.id, JUNE_1, JUNE_3, [BedRef(0, 1)])
    lifecycle.reject(db_engine, host, other.id)

    assert [r.id for r in lifecycle.list_for_guest(db_engine, guest)] == [pending.id]
    assert {r.id for r in lifecycle.list_for_host(db_engine, host)} == {pending.id, other.id}
    assert [r.id for r in lifecycle.list_for_property(db_engine, two_bed_property.id)] == [pending.id]
    with pytest.raises(NotFoundError):
        lifecycle.list_for_property(db_engine, "missing")


@pytest.mark.integration
def test_confirmed_bed_hold_blocks_whole_property_stay(
    db_engine: Engine,
    two_bed_property: Any,
    host: Principal,
    guest: Principal,
    other_guest: Principal,
) -> None:
    bed_hold = try_reserve(db_engine, guest, two_bed_property.id, JUNE_10, JUNE_12, [BedRef(0, 0)])
    lifecycle.confirm(db_engine, host, bed_hold.id)

    with pytest.raises(ConflictError):
        try_reserve(db_engine, other_guest, two_bed_property.id, JUNE_10, JUNE_12)
