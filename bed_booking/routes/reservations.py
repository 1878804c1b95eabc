from typing import Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.engine import Engine

from bed_booking.dependencies import get_db_engine, get_principal
from bed_booking.errors import BookingError
from bed_booking.routes._helpers import internal_error
from bed_booking.schemas.principal import Principal
from bed_booking.schemas.reservations import (
    MessagePayload,
    ReservationCreatePayload,
    message_to_dict,
    public_reservation_to_dict,
    reservation_to_dict,
)
from bed_booking.services import reservations as lifecycle
from bed_booking.services.conflicts import try_reserve
from bed_booking.services.notifications import (
    EVENT_CANCELLED,
    EVENT_CONFIRMED,
    EVENT_CREATED,
    EVENT_MESSAGE,
    EVENT_REJECTED,
    notify,
    reservation_event_payload,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_reservation(
    payload: ReservationCreatePayload,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Request a reservation for specific beds or the whole property.

    The reservation is admitted as ``pending`` and the host is notified in
    the background once the insert has committed.

    Args:
        payload: Property, dates and optional beds
        background_tasks: FastAPI background task runner
        principal: Booking guest
        engine: Database engine

    Returns:
        dict: The pending reservation
    """
    try:
        reservation = try_reserve(
            engine,
            principal,
            payload.property_id,
            payload.start_date,
            payload.end_date,
            [bed.to_ref() for bed in payload.booked_beds],
        )
        background_tasks.add_task(notify, EVENT_CREATED, reservation_event_payload(reservation))
        return reservation_to_dict(reservation)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_creation_failed", property_id=payload.property_id, error=str(e))
        raise internal_error()


@router.get("/guest")
def list_guest_reservations(
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    try:
        return [reservation_to_dict(r) for r in lifecycle.list_for_guest(engine, principal)]
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("guest_reservation_list_failed", error=str(e))
        raise internal_error()


@router.get("/host")
def list_host_reservations(
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    try:
        return [reservation_to_dict(r) for r in lifecycle.list_for_host(engine, principal)]
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("host_reservation_list_failed", error=str(e))
        raise internal_error()


@router.get("/property/{property_id}")
def list_property_reservations(
    property_id: str,
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    """
    Public list of a property's pending and confirmed reservations.

    Only dates, status and held beds are returned.
    """
    try:
        return [
            public_reservation_to_dict(r)
            for r in lifecycle.list_for_property(engine, property_id)
        ]
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("property_reservation_list_failed", property_id=property_id, error=str(e))
        raise internal_error()


@router.get("/unread/count")
def unread_count(
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, int]:
    try:
        return {"count": lifecycle.unread_count(engine, principal)}
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("unread_count_failed", error=str(e))
        raise internal_error()


@router.get("/{reservation_id}")
def get_reservation(
    reservation_id: str,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Fetch a reservation with its messages and mark it read for the caller.
    """
    try:
        reservation = lifecycle.get_for_participant(engine, principal, reservation_id)
        return reservation_to_dict(reservation, include_messages=True)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_fetch_failed", reservation_id=reservation_id, error=str(e))
        raise internal_error()


@router.put("/{reservation_id}/confirm")
def confirm_reservation(
    reservation_id: str,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        result = lifecycle.confirm(engine, principal, reservation_id)
        background_tasks.add_task(
            notify, EVENT_CONFIRMED, reservation_event_payload(result.reservation)
        )
        return reservation_to_dict(result.reservation)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_confirm_failed", reservation_id=reservation_id, error=str(e))
        raise internal_error()


@router.put("/{reservation_id}/reject")
def reject_reservation(
    reservation_id: str,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        result = lifecycle.reject(engine, principal, reservation_id)
        if result.applied:
            background_tasks.add_task(
                notify, EVENT_REJECTED, reservation_event_payload(result.reservation)
            )
        return reservation_to_dict(result.reservation)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_reject_failed", reservation_id=reservation_id, error=str(e))
        raise internal_error()


@router.put("/{reservation_id}/cancel")
def cancel_reservation(
    reservation_id: str,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Cancel a pending or confirmed reservation (guest only).

    The host is notified the same way whether the reservation was pending or
    confirmed. Repeating a cancel returns the reservation without notifying.
    """
    try:
        result = lifecycle.cancel(engine, principal, reservation_id)
        if result.applied:
            background_tasks.add_task(
                notify, EVENT_CANCELLED, reservation_event_payload(result.reservation)
            )
        return reservation_to_dict(result.reservation)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_cancel_failed", reservation_id=reservation_id, error=str(e))
        raise internal_error()


@router.put("/{reservation_id}/mark-read")
def mark_reservation_read(
    reservation_id: str,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        reservation = lifecycle.mark_read(engine, principal, reservation_id)
        return reservation_to_dict(reservation)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_mark_read_failed", reservation_id=reservation_id, error=str(e))
        raise internal_error()


@router.post("/{reservation_id}/message", status_code=status.HTTP_201_CREATED)
def post_message(
    reservation_id: str,
    payload: MessagePayload,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Append a message from the guest or host and notify the other party.

    Returns:
        dict: The reservation including its messages
    """
    try:
        reservation, message = lifecycle.post_message(engine, principal, reservation_id, payload.text)
        background_tasks.add_task(
            notify,
            EVENT_MESSAGE,
            reservation_event_payload(
                reservation, sender_id=message.sender_id, text=message.text
            ),
        )
        return reservation_to_dict(reservation, include_messages=True)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("reservation_message_failed", reservation_id=reservation_id, error=str(e))
        raise internal_error()
