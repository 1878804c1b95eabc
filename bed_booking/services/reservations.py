"""
Reservation lifecycle: status transitions, messaging and read APIs.

Allowed transitions::

    pending --confirm (host)--> confirmed
    pending --reject  (host)--> rejected
    pending/confirmed --cancel (guest)--> cancelled

``rejected`` and ``cancelled`` are terminal. Re-rejecting a rejected
reservation and re-cancelling a cancelled one are no-ops. Transitions run
under the property lock and touch the property row, so they serialize with
admissions and invalidate cached calendars.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import structlog
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from bed_booking.db.readers.properties import require_property
from bed_booking.db.readers.reservations import (
    count_unread,
    list_guest_reservations,
    list_host_reservations,
    list_property_reservations,
    require_reservation,
)
from bed_booking.db.writers.properties import find_bed, set_beds_available, touch_property
from bed_booking.db.writers.reservations import append_message
from bed_booking.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from bed_booking.metrics import transitions_total
from bed_booking.models.properties import Property
from bed_booking.models.reservations import (
    ACTIVE_STATUSES,
    CANCELLED,
    CONFIRMED,
    PENDING,
    REJECTED,
    TERMINAL_STATUSES,
    Reservation,
    ReservationMessage,
)
from bed_booking.schemas.principal import Principal
from bed_booking.services.property_locks import property_lock

logger = structlog.get_logger(__name__)


@dataclass
class TransitionResult:
    """Outcome of a status transition; ``applied`` is False for idempotent no-ops."""

    reservation: Reservation
    applied: bool


@contextmanager
def _locked_reservation(engine: Engine, reservation_id: str) -> Iterator[tuple[Session, Reservation]]:
    with Session(engine) as session:
        property_id = session.execute(
            select(Reservation.property_id).where(Reservation.id == reservation_id)
        ).scalar_one_or_none()
    if property_id is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")

    with property_lock(property_id):
        with Session(engine, expire_on_commit=False) as session, session.begin():
            reservation = require_reservation(session, reservation_id, for_update=True)
            yield session, reservation


def _record(transition: str, outcome: str, reservation: Reservation, principal: Principal) -> None:
    transitions_total.labels(transition=transition, outcome=outcome).inc()
    logger.info(
        f"reservation_{transition}",
        outcome=outcome,
        reservation_id=reservation.id,
        property_id=reservation.property_id,
        user_id=principal.user_id,
        status=reservation.status,
    )


def _reject_attempt(transition: str, principal: Principal, reservation_id: str, error: Exception) -> None:
    transitions_total.labels(transition=transition, outcome="rejected").inc()
    logger.info(
        "reservation_transition_refused",
        transition=transition,
        reservation_id=reservation_id,
        user_id=principal.user_id,
        reason=str(error),
    )


def _confirmed_overlaps(session: Session, prop: Property, reservation: Reservation) -> list[Reservation]:
    others = list_property_reservations(
        session, prop.id, (CONFIRMED,), reservation.start_date, reservation.end_date
    )
    return [
        other
        for other in others
        if other.id != reservation.id
        and (
            other.is_whole_property
            or reservation.is_whole_property
            or other.bed_ids & reservation.bed_ids
        )
    ]


def confirm(engine: Engine, principal: Principal, reservation_id: str) -> TransitionResult:
    """
    Confirm a pending reservation (property host only).

    The held beds get their legacy ``is_available`` flag cleared; the value
    each bed had is kept on the reservation so a later cancel can restore it.

    Raises:
        NotFoundError: Unknown reservation
        AuthorizationError: Caller is not the reservation's host
        StateError: Reservation is not pending
        ConflictError: Another confirmed reservation already holds these dates
    """
    try:
        with _locked_reservation(engine, reservation_id) as (session, reservation):
            if reservation.host_id != principal.user_id:
                raise AuthorizationError("Unauthorized - only host can confirm")
            if reservation.status != PENDING:
                raise StateError("Can only confirm pending bookings")

            prop = require_property(session, reservation.property_id, for_update=True)
            if _confirmed_overlaps(session, prop, reservation):
                raise ConflictError("Cannot confirm: dates already booked by another confirmed booking")

            if not reservation.is_whole_property:
                for held in reservation.booked_beds:
                    bed = find_bed(prop, held.bed_id)
                    held.was_available = bed.is_available if bed is not None else None
                set_beds_available(prop, reservation.bed_ids, False)
            reservation.status = CONFIRMED
            touch_property(prop)
    except (AuthorizationError, StateError, ConflictError) as e:
        _reject_attempt("confirm", principal, reservation_id, e)
        raise

    _record("confirm", "applied", reservation, principal)
    return TransitionResult(reservation, applied=True)


def reject(engine: Engine, principal: Principal, reservation_id: str) -> TransitionResult:
    """
    Reject a pending reservation (property host only).

    Rejecting an already rejected reservation changes nothing.

    Raises:
        NotFoundError: Unknown reservation
        AuthorizationError: Caller is not the reservation's host
        StateError: Reservation is confirmed or cancelled
    """
    applied = False
    try:
        with _locked_reservation(engine, reservation_id) as (session, reservation):
            if reservation.host_id != principal.user_id:
                raise AuthorizationError("Unauthorized - only host can reject")
            if reservation.status != REJECTED:
                if reservation.status != PENDING:
                    raise StateError("Can only reject pending bookings")
                reservation.status = REJECTED
                touch_property(require_property(session, reservation.property_id, for_update=True))
                applied = True
    except (AuthorizationError, StateError) as e:
        _reject_attempt("reject", principal, reservation_id, e)
        raise

    _record("reject", "applied" if applied else "noop", reservation, principal)
    return TransitionResult(reservation, applied=applied)


def cancel(engine: Engine, principal: Principal, reservation_id: str) -> TransitionResult:
    """
    Cancel a pending or confirmed reservation (booking guest only).

    Cancelling a confirmed per-bed reservation puts its beds' legacy
    ``is_available`` flag back to the value recorded at confirmation; beds
    the host had already disabled stay disabled. Cancelling an already cancelled reservation
    changes nothing.

    Raises:
        NotFoundError: Unknown reservation
        AuthorizationError: Caller is not the reservation's guest
        StateError: Reservation was rejected
    """
    applied = False
    try:
        with _locked_reservation(engine, reservation_id) as (session, reservation):
            if reservation.guest_id != principal.user_id:
                raise AuthorizationError("Unauthorized - only guest can cancel")
            if reservation.status == REJECTED:
                raise StateError("Cannot cancel a rejected booking")
            if reservation.status != CANCELLED:
                prop = require_property(session, reservation.property_id, for_update=True)
                if reservation.status == CONFIRMED and not reservation.is_whole_property:
                    restored = [
                        held.bed_id
                        for held in reservation.booked_beds
                        if held.was_available is not False
                    ]
                    set_beds_available(prop, restored, True)
                reservation.status = CANCELLED
                touch_property(prop)
                applied = True
    except (AuthorizationError, StateError) as e:
        _reject_attempt("cancel", principal, reservation_id, e)
        raise

    _record("cancel", "applied" if applied else "noop", reservation, principal)
    return TransitionResult(reservation, applied=applied)


def _require_participant(reservation: Reservation, principal: Principal) -> None:
    if principal.user_id not in (reservation.guest_id, reservation.host_id):
        raise AuthorizationError("Unauthorized")


def post_message(
    engine: Engine, principal: Principal, reservation_id: str, text: str
) -> tuple[Reservation, ReservationMessage]:
    """
    Append a message from the reservation's guest or host.

    Args:
        engine: Database engine
        principal: Sender
        reservation_id: Target reservation
        text: Message body; surrounding whitespace is stripped

    Returns:
        tuple[Reservation, ReservationMessage]: Updated reservation and the new message

    Raises:
        ValidationError: Empty text
        AuthorizationError: Sender is neither guest nor host
        StateError: Reservation is rejected or cancelled
    """
    body = (text or "").strip()
    if not body:
        raise ValidationError("Message text is required")

    with Session(engine, expire_on_commit=False) as session, session.begin():
        reservation = require_reservation(session, reservation_id, for_update=True)
        _require_participant(reservation, principal)
        if reservation.status in TERMINAL_STATUSES:
            raise StateError("Cannot send messages on rejected or cancelled bookings")
        message = append_message(reservation, principal.user_id, body)

    transitions_total.labels(transition="message", outcome="applied").inc()
    logger.info(
        "reservation_message_sent",
        reservation_id=reservation.id,
        sender_id=principal.user_id,
        length=len(body),
    )
    return reservation, message


def _clear_unread(reservation: Reservation, principal: Principal) -> None:
    if principal.user_id == reservation.guest_id:
        reservation.unread_by_guest = False
    if principal.user_id == reservation.host_id:
        reservation.unread_by_host = False


def get_for_participant(engine: Engine, principal: Principal, reservation_id: str) -> Reservation:
    """
    Fetch one reservation for its guest or host, marking it read for the caller.

    Raises:
        NotFoundError: Unknown reservation
        AuthorizationError: Caller is neither guest nor host
    """
    with Session(engine, expire_on_commit=False) as session, session.begin():
        reservation = require_reservation(session, reservation_id)
        _require_participant(reservation, principal)
        _clear_unread(reservation, principal)
    return reservation


def mark_read(engine: Engine, principal: Principal, reservation_id: str) -> Reservation:
    """Clear the caller's unread flag on a reservation."""
    return get_for_participant(engine, principal, reservation_id)


def unread_count(engine: Engine, principal: Principal) -> int:
    with Session(engine) as session:
        return count_unread(session, principal.user_id)


def list_for_property(engine: Engine, property_id: str) -> list[Reservation]:
    """
    Pending and confirmed reservations of a property.

    Used by public availability displays, so callers should only expose
    dates and held beds from the result.
    """
    with Session(engine, expire_on_commit=False) as session:
        require_property(session, property_id)
        return list_property_reservations(session, property_id, ACTIVE_STATUSES)


def list_for_guest(engine: Engine, principal: Principal) -> list[Reservation]:
    with Session(engine, expire_on_commit=False) as session:
        return list_guest_reservations(session, principal.user_id)


def list_for_host(engine: Engine, principal: Principal) -> list[Reservation]:
    with Session(engine, expire_on_commit=False) as session:
        return list_host_reservations(session, principal.user_id)
