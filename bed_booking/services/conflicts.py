"""
Conflict resolver: admits new reservations without double-booking.

Admission is a read (is everything free?) followed by a write (insert the
reservation). Both phases run inside one transaction while holding:

1. the in-process lock for the property (``services.property_locks``),
2. a row lock on the property (``SELECT ... FOR UPDATE``),
3. the property's optimistic ``version``, which the insert bumps.

If another process commits a write for the same property between our read and
our commit, the version check fails with ``StaleDataError``; the whole
admission is then retried from the read phase, up to ``ADMISSION_MAX_RETRIES``
times.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from bed_booking.config import ADMISSION_MAX_RETRIES
from bed_booking.db.readers.properties import require_property
from bed_booking.db.readers.reservations import list_property_reservations
from bed_booking.db.writers.properties import touch_property
from bed_booking.db.writers.reservations import insert_reservation
from bed_booking.errors import ConflictError, NotFoundError, ValidationError
from bed_booking.metrics import admission_retries, admissions_total
from bed_booking.models.reservations import ACTIVE_STATUSES, Reservation
from bed_booking.schemas.principal import Principal
from bed_booking.services.availability import (
    BedSlot,
    compute_availability,
    snapshot_topology,
    whole_property_conflicts,
)
from bed_booking.services.property_locks import property_lock
from bed_booking.utils.datetime import nights_between

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class BedRef:
    """
    A requested bed, either by stable id or by legacy display indices.

    ``bed_id`` wins when given; otherwise both indices are required.
    """

    room_index: Optional[int] = None
    bed_index: Optional[int] = None
    bed_id: Optional[str] = None


def validate_date_range(start: Optional[date], end: Optional[date]) -> tuple[date, date]:
    """
    Reject missing or inverted stays.

    Returns:
        tuple[date, date]: The checked ``(start, end)`` pair

    Raises:
        ValidationError: If either date is missing or ``start >= end``.
    """
    if start is None or end is None:
        raise ValidationError("Start date and end date are required")
    if start >= end:
        raise ValidationError("End date must be after start date")
    return start, end


def resolve_bed_refs(slots: Sequence[BedSlot], refs: Sequence[BedRef]) -> list[BedSlot]:
    """
    Resolve requested beds against the current topology.

    Args:
        slots: Current beds of the property
        refs: Requested beds, in request order

    Returns:
        list[BedSlot]: Matching slots in request order

    Raises:
        ValidationError: If a reference is incomplete or a bed is requested twice
        NotFoundError: If a referenced bed does not exist
    """
    by_id = {s.bed_id: s for s in slots}
    by_index = {(s.room_index, s.bed_index): s for s in slots}

    resolved: list[BedSlot] = []
    seen: set[str] = set()
    for ref in refs:
        if ref.bed_id is not None:
            slot = by_id.get(ref.bed_id)
            if slot is None:
                raise NotFoundError(f"Bed {ref.bed_id} not found")
        else:
            if ref.room_index is None or ref.bed_index is None:
                raise ValidationError("Each booked bed needs room_index and bed_index")
            slot = by_index.get((ref.room_index, ref.bed_index))
            if slot is None:
                raise NotFoundError(f"Bed {ref.bed_index} in room {ref.room_index} not found")

        if slot.bed_id in seen:
            raise ValidationError(f"Bed {slot.label} requested more than once")
        seen.add(slot.bed_id)
        resolved.append(slot)
    return resolved


def compute_price(prop: Any, slots: Sequence[BedSlot], nights: int) -> Decimal:
    """
    Server-side total price for a stay.

    Per-bed stays cost the sum of the beds' nightly prices times the nights;
    whole-property stays cost ``price_per_night`` times the nights. Prices
    sent by the client are never used.

    Example:
        >>> compute_price(prop, [bed_30, bed_40], nights=2)
        Decimal('140.00')
    """
    if slots:
        nightly = sum((s.price_per_bed for s in slots), Decimal("0"))
    else:
        nightly = Decimal(prop.price_per_night or 0)
    return (nightly * nights).quantize(CENTS, rounding=ROUND_HALF_UP)


def _admit(
    session: Session,
    principal: Principal,
    property_id: str,
    start: date,
    end: date,
    refs: Sequence[BedRef],
) -> Reservation:
    prop = require_property(session, property_id, for_update=True)
    if not prop.is_active:
        raise ConflictError("This property is not available for booking")

    chosen = resolve_bed_refs(snapshot_topology(prop), refs)
    holds = list_property_reservations(session, prop.id, ACTIVE_STATUSES, start, end)

    if chosen:
        report = compute_availability(prop, holds, prop.blocked_periods, start, end)
        taken = [s.label for s in chosen if not report.is_bed_available(s.bed_id)]
        if taken:
            raise ConflictError(
                "One or more beds already booked for those dates: " + ", ".join(taken)
            )
    else:
        reasons = whole_property_conflicts(prop, holds, prop.blocked_periods, start, end)
        if reasons:
            logger.debug("whole_property_conflict", property_id=prop.id, reasons=reasons)
            raise ConflictError("Property already booked for those dates")

    total_price = compute_price(prop, chosen, nights_between(start, end))
    reservation = insert_reservation(
        session,
        property_id=prop.id,
        guest_id=principal.user_id,
        host_id=prop.host_id,
        start=start,
        end=end,
        total_price=total_price,
        slots=chosen,
    )
    touch_property(prop)
    return reservation


def try_reserve(
    engine: Engine,
    principal: Principal,
    property_id: str,
    start: Optional[date],
    end: Optional[date],
    bed_refs: Sequence[BedRef] = (),
) -> Reservation:
    """
    Admit a reservation as ``pending`` or refuse it with no side effect.

    Args:
        engine: Database engine
        principal: Booking guest
        property_id: Property to book
        start: Check-in date
        end: Checkout date (exclusive)
        bed_refs: Beds to book; empty books the whole property

    Returns:
        Reservation: The committed pending reservation

    Raises:
        ValidationError: Bad date range or bed reference
        NotFoundError: Unknown property or bed
        ConflictError: Beds/property unavailable, or concurrent writers kept winning
    """
    mode = "beds" if bed_refs else "whole_property"
    try:
        start, end = validate_date_range(start, end)
    except ValidationError:
        admissions_total.labels(mode=mode, outcome="invalid").inc()
        raise

    attempt = 0
    while True:
        try:
            with property_lock(property_id):
                with Session(engine, expire_on_commit=False) as session, session.begin():
                    reservation = _admit(session, principal, property_id, start, end, bed_refs)
            break
        except StaleDataError:
            attempt += 1
            admission_retries.inc()
            if attempt >= ADMISSION_MAX_RETRIES:
                admissions_total.labels(mode=mode, outcome="retry_exhausted").inc()
                logger.warning(
                    "reservation_admission_retries_exhausted",
                    property_id=property_id,
                    attempts=attempt,
                )
                raise ConflictError("Property was modified concurrently, please retry")
            logger.info("reservation_admission_retry", property_id=property_id, attempt=attempt)
        except ConflictError as e:
            admissions_total.labels(mode=mode, outcome="conflict").inc()
            logger.info(
                "reservation_conflict",
                property_id=property_id,
                guest_id=principal.user_id,
                start_date=start.isoformat(),
                end_date=end.isoformat(),
                reason=e.message,
            )
            raise
        except (ValidationError, NotFoundError):
            admissions_total.labels(mode=mode, outcome="invalid").inc()
            raise

    admissions_total.labels(mode=mode, outcome="admitted").inc()
    logger.info(
        "reservation_created",
        reservation_id=reservation.id,
        property_id=property_id,
        guest_id=principal.user_id,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        beds=len(reservation.booked_beds),
        total_price=str(reservation.total_price),
    )
    return reservation
