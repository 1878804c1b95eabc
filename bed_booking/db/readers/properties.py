from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from bed_booking.errors import NotFoundError
from bed_booking.models.properties import Property, Room


def _property_query(property_id: str):  # type: ignore[no-untyped-def]
    return (
        select(Property)
        .where(Property.id == property_id)
        .options(
            selectinload(Property.rooms).selectinload(Room.beds),
            selectinload(Property.blocked_periods),
        )
    )


def get_property(
    session: Session, property_id: str, for_update: bool = False
) -> Optional[Property]:
    """
    Load a property with its rooms, beds and blocked periods.

    Args:
        session (Session): Active ORM session.
        property_id (str): Property ID.
        for_update (bool): Take a row lock on the property (SELECT ... FOR UPDATE).
            Ignored by backends without row locks (SQLite).

    Returns:
        Optional[Property]: The property, or None if it does not exist.
    """
    stmt = _property_query(property_id)
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalars().first()


def require_property(session: Session, property_id: str, for_update: bool = False) -> Property:
    """
    Same as get_property() but raises NotFoundError when missing.

    Raises:
        NotFoundError: If no property has this ID.
    """
    prop = get_property(session, property_id, for_update=for_update)
    if prop is None:
        raise NotFoundError(f"Property {property_id} not found")
    return prop


def list_active_properties(session: Session) -> list[Property]:
    """
    Fetch all bookable properties with inventory loaded.

    Args:
        session (Session): Active ORM session.

    Returns:
        list[Property]: Active properties ordered by creation time.
    """
    stmt = (
        select(Property)
        .where(Property.is_active == True)  # noqa: E712
        .options(
            selectinload(Property.rooms).selectinload(Room.beds),
            selectinload(Property.blocked_periods),
        )
        .order_by(Property.created_at)
    )
    return list(session.execute(stmt).scalars().all())


def list_host_properties(session: Session, host_id: str) -> list[Property]:
    stmt = (
        select(Property)
        .where(Property.host_id == host_id)
        .options(
            selectinload(Property.rooms).selectinload(Room.beds),
            selectinload(Property.blocked_periods),
        )
        .order_by(Property.created_at)
    )
    return list(session.execute(stmt).scalars().all())
