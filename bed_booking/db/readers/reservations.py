from datetime import date
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from bed_booking.errors import NotFoundError
from bed_booking.models.reservations import ACTIVE_STATUSES, Reservation


def get_reservation(
    session: Session, reservation_id: str, for_update: bool = False
) -> Optional[Reservation]:
    """
    Load a reservation with its booked beds and messages.

    Args:
        session (Session): Active ORM session.
        reservation_id (str): Reservation ID.
        for_update (bool): Take a row lock on the reservation.

    Returns:
        Optional[Reservation]: The reservation, or None if not found.
    """
    stmt = (
        select(Reservation)
        .where(Reservation.id == reservation_id)
        .options(selectinload(Reservation.booked_beds), selectinload(Reservation.messages))
    )
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalars().first()


def require_reservation(
    session: Session, reservation_id: str, for_update: bool = False
) -> Reservation:
    """
    Same as get_reservation() but raises NotFoundError when missing.

    Raises:
        NotFoundError: If no reservation has this ID.
    """
    reservation = get_reservation(session, reservation_id, for_update=for_update)
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")
    return reservation


def list_property_reservations(
    session: Session,
    property_id: str,
    statuses: Iterable[str] = ACTIVE_STATUSES,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[Reservation]:
    """
    Fetch a property's reservations, optionally restricted to a date window.

    When both ``start`` and ``end`` are given only reservations overlapping
    ``[start, end)`` are returned (checkout day does not overlap).

    Args:
        session (Session): Active ORM session.
        property_id (str): Property ID.
        statuses (Iterable[str]): Statuses to include (default: pending, confirmed).
        start (Optional[date]): Window start.
        end (Optional[date]): Window end (exclusive).

    Returns:
        list[Reservation]: Matching reservations ordered by start date.
    """
    stmt = (
        select(Reservation)
        .where(Reservation.property_id == property_id)
        .where(Reservation.status.in_(list(statuses)))
        .options(selectinload(Reservation.booked_beds))
        .order_by(Reservation.start_date, Reservation.id)
    )
    if start is not None and end is not None:
        stmt = stmt.where(Reservation.start_date < end).where(Reservation.end_date > start)
    return list(session.execute(stmt).scalars().all())


def list_guest_reservations(session: Session, guest_id: str) -> list[Reservation]:
    stmt = (
        select(Reservation)
        .where(Reservation.guest_id == guest_id)
        .options(selectinload(Reservation.booked_beds))
        .order_by(Reservation.created_at.desc())
    )
    return list(session.execute(stmt).scalars().all())


def list_host_reservations(session: Session, host_id: str) -> list[Reservation]:
    stmt = (
        select(Reservation)
        .where(Reservation.host_id == host_id)
        .options(selectinload(Reservation.booked_beds))
        .order_by(Reservation.created_at.desc())
    )
    return list(session.execute(stmt).scalars().all())


def count_unread(session: Session, user_id: str) -> int:
    """
    Count reservations with unread messages for ``user_id`` as guest or host.

    Args:
        session (Session): Active ORM session.
        user_id (str): Principal ID.

    Returns:
        int: Reservations unread as guest plus reservations unread as host.
    """
    as_guest = session.execute(
        select(func.count())
        .select_from(Reservation)
        .where(Reservation.guest_id == user_id)
        .where(Reservation.unread_by_guest == True)  # noqa: E712
    ).scalar_one()
    as_host = session.execute(
        select(func.count())
        .select_from(Reservation)
        .where(Reservation.host_id == user_id)
        .where(Reservation.unread_by_host == True)  # noqa: E712
    ).scalar_one()
    return int(as_guest) + int(as_host)


def list_overlapping_reservations(
    session: Session, property_ids: Iterable[str], start: date, end: date
) -> dict[str, list[Reservation]]:
    """
    Pending/confirmed reservations overlapping ``[start, end)`` for many properties.

    Returns:
        dict[str, list[Reservation]]: Reservations grouped by property ID.
    """
    stmt = (
        select(Reservation)
        .where(Reservation.property_id.in_(list(property_ids)))
        .where(Reservation.status.in_(ACTIVE_STATUSES))
        .where(Reservation.start_date < end)
        .where(Reservation.end_date > start)
        .options(selectinload(Reservation.booked_beds))
        .order_by(Reservation.start_date, Reservation.id)
    )
    grouped: dict[str, list[Reservation]] = {}
    for reservation in session.execute(stmt).scalars().all():
        grouped.setdefault(reservation.property_id, []).append(reservation)
    return grouped
