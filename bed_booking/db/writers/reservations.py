from datetime import date
from decimal import Decimal
from typing import Sequence

import structlog
from sqlalchemy.orm import Session

from bed_booking.models.reservations import (
    PENDING,
    Reservation,
    ReservationBed,
    ReservationMessage,
)
from bed_booking.services.availability import BedSlot
from bed_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_reservation(
    session: Session,
    property_id: str,
    guest_id: str,
    host_id: str,
    start: date,
    end: date,
    total_price: Decimal,
    slots: Sequence[BedSlot],
) -> Reservation:
    """
    Add a new pending reservation to the session.

    Args:
        session: Active ORM session (caller owns the transaction)
        property_id: Property being booked
        guest_id: Booking guest
        host_id: Property owner at admission time
        start: Check-in date
        end: Checkout date
        total_price: Server-computed price
        slots: Beds held, in request order; empty for a whole-property stay

    Returns:
        Reservation: The new reservation (flushed, so ``id`` is populated)
    """
    reservation = Reservation(
        property_id=property_id,
        guest_id=guest_id,
        host_id=host_id,
        start_date=start,
        end_date=end,
        total_price=total_price,
        status=PENDING,
        unread_by_guest=False,
        unread_by_host=False,
        booked_beds=[
            ReservationBed(
                bed_id=slot.bed_id,
                ordinal=ordinal,
                room_index=slot.room_index,
                bed_index=slot.bed_index,
                bed_label=slot.label,
                price_per_bed=slot.price_per_bed,
            )
            for ordinal, slot in enumerate(slots)
        ],
        messages=[],
    )
    session.add(reservation)
    session.flush()

    logger.debug(
        "reservation_inserted",
        reservation_id=reservation.id,
        property_id=property_id,
        beds=len(slots),
    )
    return reservation


def append_message(reservation: Reservation, sender_id: str, text: str) -> ReservationMessage:
    """
    Append a message and flip the unread flags.

    The recipient's flag is set, the sender's flag is cleared.
    """
    message = ReservationMessage(sender_id=sender_id, text=text, sent_at=utc_now())
    reservation.messages.append(message)

    if sender_id == reservation.guest_id:
        reservation.unread_by_host = True
        reservation.unread_by_guest = False
    else:
        reservation.unread_by_guest = True
        reservation.unread_by_host = False
    return message
