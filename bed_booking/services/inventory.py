"""
Host-side inventory management: properties, rooms, beds and blocked periods.

Every edit runs under the property lock inside one transaction, checks that
the caller owns the property, and touches the property row so its version
moves forward (which also retires cached calendars).
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Iterator, Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from bed_booking.cache import calendar_cache
from bed_booking.db.readers.properties import list_host_properties, require_property
from bed_booking.db.readers.reservations import list_property_reservations
from bed_booking.db.writers.properties import (
    compact_positions,
    find_bed,
    find_room,
    new_bed,
    new_room,
    touch_property,
)
from bed_booking.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from bed_booking.models.properties import BLOCK_TYPES, Bed, BlockedPeriod, Property, Room
from bed_booking.models.reservations import ACTIVE_STATUSES
from bed_booking.schemas.principal import Principal
from bed_booking.services.property_locks import property_lock

logger = structlog.get_logger(__name__)

PROPERTY_FIELDS = ("title", "description", "price_per_night", "latitude", "longitude", "is_active")
REQUIRED_PROPERTY_FIELDS = ("title", "price_per_night", "is_active")
BED_FIELDS = ("label", "price_per_bed", "is_available")
DEFAULT_BLOCK_REASON = "Unavailable"


def _require_host(principal: Principal) -> None:
    if not principal.is_host:
        raise AuthorizationError("Only hosts can manage properties")


def _reject_nulls(fields: dict[str, Any], required: tuple[str, ...]) -> None:
    cleared = [name for name in required if name in fields and fields[name] is None]
    if cleared:
        raise ValidationError(f"{cleared[0]} cannot be null")


@contextmanager
def _owned_property(
    engine: Engine, principal: Principal, property_id: str
) -> Iterator[tuple[Session, Property]]:
    with property_lock(property_id):
        with Session(engine, expire_on_commit=False) as session, session.begin():
            prop = require_property(session, property_id, for_update=True)
            if prop.host_id != principal.user_id:
                raise AuthorizationError("Unauthorized: You can only modify your own properties")
            yield session, prop
            touch_property(prop)
    calendar_cache.invalidate_property(property_id)


def create_property(engine: Engine, principal: Principal, data: dict[str, Any]) -> Property:
    """
    Create a property owned by the calling host.

    Args:
        engine: Database engine
        principal: Calling host
        data: ``title``, ``price_per_night`` and optional ``description``,
            ``latitude``, ``longitude`` and ``rooms`` (each with ``beds``)

    Returns:
        Property: The new property; active iff it has at least one room

    Raises:
        AuthorizationError: Caller is not a host
        ValidationError: Missing title
    """
    _require_host(principal)
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required")

    rooms = [new_room(i, room) for i, room in enumerate(data.get("rooms") or [])]
    prop = Property(
        host_id=principal.user_id,
        title=title,
        description=data.get("description"),
        price_per_night=Decimal(str(data.get("price_per_night") or 0)),
        latitude=data.get("latitude"),
        longitude=data.get("longitude"),
        is_active=len(rooms) > 0,
        rooms=rooms,
        blocked_periods=[],
    )
    with Session(engine, expire_on_commit=False) as session, session.begin():
        session.add(prop)

    logger.info(
        "property_created",
        property_id=prop.id,
        host_id=principal.user_id,
        rooms=len(rooms),
        beds=sum(len(room.beds) for room in rooms),
    )
    return prop


def get_property(engine: Engine, property_id: str) -> Property:
    with Session(engine, expire_on_commit=False) as session:
        return require_property(session, property_id)


def list_my_properties(engine: Engine, principal: Principal) -> list[Property]:
    _require_host(principal)
    with Session(engine, expire_on_commit=False) as session:
        return list_host_properties(session, principal.user_id)


def update_property(
    engine: Engine, principal: Principal, property_id: str, fields: dict[str, Any]
) -> Property:
    """
    Update scalar property fields.

    Only ``description``, ``latitude`` and ``longitude`` may be cleared with
    ``None``.

    Raises:
        ValidationError: A required field is null, the title is blank, or
            the property has no rooms and is being activated
    """
    _reject_nulls(fields, REQUIRED_PROPERTY_FIELDS)
    if "title" in fields and not fields["title"].strip():
        raise ValidationError("Title is required")

    with _owned_property(engine, principal, property_id) as (_, prop):
        for name in PROPERTY_FIELDS:
            if name not in fields:
                continue
            value = fields[name]
            if name == "title":
                value = value.strip()
            if name == "price_per_night":
                value = Decimal(str(value))
            if name == "is_active" and value and not prop.rooms:
                raise ValidationError("Cannot activate property without rooms configured")
            setattr(prop, name, value)

    logger.info("property_updated", property_id=property_id, fields=sorted(fields))
    return prop


def _held_bed_ids(session: Session, property_id: str) -> set[str]:
    held: set[str] = set()
    for reservation in list_property_reservations(session, property_id, ACTIVE_STATUSES):
        held |= reservation.bed_ids
    return held


def add_room(engine: Engine, principal: Principal, property_id: str, data: dict[str, Any]) -> Room:
    with _owned_property(engine, principal, property_id) as (_, prop):
        room = new_room(len(prop.rooms), data)
        prop.rooms.append(room)

    logger.info("room_added", property_id=property_id, room_id=room.id, beds=len(room.beds))
    return room


def remove_room(engine: Engine, principal: Principal, property_id: str, room_id: str) -> Property:
    """
    Remove a room and its beds.

    Blocked periods scoped to the room are removed with it. Removing the last
    room deactivates the property.

    Raises:
        NotFoundError: Unknown room
        ConflictError: A pending or confirmed reservation holds one of its beds
    """
    with _owned_property(engine, principal, property_id) as (session, prop):
        room = find_room(prop, room_id)
        if room is None:
            raise NotFoundError(f"Room {room_id} not found")
        if _held_bed_ids(session, prop.id) & {bed.id for bed in room.beds}:
            raise ConflictError("Cannot remove a room with beds held by active bookings")

        prop.rooms.remove(room)
        for block in [b for b in prop.blocked_periods if b.room_id == room_id]:
            prop.blocked_periods.remove(block)
        compact_positions(prop)
        if not prop.rooms:
            prop.is_active = False

    logger.info("room_removed", property_id=property_id, room_id=room_id, is_active=prop.is_active)
    return prop


def add_bed(
    engine: Engine, principal: Principal, property_id: str, room_id: str, data: dict[str, Any]
) -> Bed:
    with _owned_property(engine, principal, property_id) as (_, prop):
        room = find_room(prop, room_id)
        if room is None:
            raise NotFoundError(f"Room {room_id} not found")
        bed = new_bed(len(room.beds), data)
        room.beds.append(bed)

    logger.info("bed_added", property_id=property_id, room_id=room_id, bed_id=bed.id)
    return bed


def remove_bed(engine: Engine, principal: Principal, property_id: str, bed_id: str) -> Property:
    """
    Remove a bed and any bed-scoped blocked periods on it.

    Raises:
        NotFoundError: Unknown bed
        ConflictError: A pending or confirmed reservation holds the bed
    """
    with _owned_property(engine, principal, property_id) as (session, prop):
        bed = find_bed(prop, bed_id)
        if bed is None:
            raise NotFoundError(f"Bed {bed_id} not found")
        if bed_id in _held_bed_ids(session, prop.id):
            raise ConflictError("Cannot remove a bed held by active bookings")

        room = next(r for r in prop.rooms if bed in r.beds)
        room.beds.remove(bed)
        for block in [b for b in prop.blocked_periods if b.bed_id == bed_id]:
            prop.blocked_periods.remove(block)
        compact_positions(prop)

    logger.info("bed_removed", property_id=property_id, bed_id=bed_id)
    return prop


def update_bed(
    engine: Engine, principal: Principal, property_id: str, bed_id: str, fields: dict[str, Any]
) -> Bed:
    """Change a bed's label, price or hard-disable flag."""
    _reject_nulls(fields, BED_FIELDS)
    with _owned_property(engine, principal, property_id) as (_, prop):
        bed = find_bed(prop, bed_id)
        if bed is None:
            raise NotFoundError(f"Bed {bed_id} not found")
        for name in BED_FIELDS:
            if name not in fields:
                continue
            value = fields[name]
            if name == "price_per_bed":
                value = Decimal(str(value))
            setattr(bed, name, value)

    logger.info("bed_updated", property_id=property_id, bed_id=bed_id, fields=sorted(fields))
    return bed


def _resolve_block_target(
    prop: Property,
    block_type: str,
    room_index: Optional[int],
    bed_index: Optional[int],
) -> tuple[Optional[str], Optional[str]]:
    if block_type == "entire":
        return None, None

    if room_index is None:
        raise ValidationError("Room index is required for room or bed blocks")
    if room_index < 0 or room_index >= len(prop.rooms):
        raise ValidationError("Invalid room index")
    room = prop.rooms[room_index]
    if block_type == "room":
        return room.id, None

    if bed_index is None:
        raise ValidationError("Bed index is required for bed blocks")
    if bed_index < 0 or bed_index >= len(room.beds):
        raise ValidationError("Invalid bed index")
    return room.id, room.beds[bed_index].id


def add_blocked_period(
    engine: Engine, principal: Principal, property_id: str, data: dict[str, Any]
) -> BlockedPeriod:
    """
    Declare a host block.

    Validation here is strict even though availability ignores malformed
    rows: both dates are required, ``start_date`` must precede ``end_date``,
    the type must be one of ``entire``/``room``/``bed`` and indices must
    address existing rooms and beds.

    Args:
        engine: Database engine
        principal: Owning host
        property_id: Target property
        data: ``start_date``, ``end_date``, ``block_type`` and for room/bed
            blocks ``room_index``/``bed_index``; optional ``reason``

    Returns:
        BlockedPeriod: The stored block (``end_date`` inclusive)

    Raises:
        ValidationError: Any of the checks above fails
    """
    start: Optional[date] = data.get("start_date")
    end: Optional[date] = data.get("end_date")
    block_type = data.get("block_type") or "entire"

    if start is None or end is None:
        raise ValidationError("Start date and end date are required")
    if start >= end:
        raise ValidationError("End date must be after start date")
    if block_type not in BLOCK_TYPES:
        raise ValidationError("Invalid block type")

    with _owned_property(engine, principal, property_id) as (_, prop):
        room_id, bed_id = _resolve_block_target(
            prop, block_type, data.get("room_index"), data.get("bed_index")
        )
        block = BlockedPeriod(
            start_date=start,
            end_date=end,
            block_type=block_type,
            room_id=room_id,
            bed_id=bed_id,
            reason=(data.get("reason") or "").strip()[:255] or DEFAULT_BLOCK_REASON,
        )
        prop.blocked_periods.append(block)

    logger.info(
        "blocked_period_added",
        property_id=property_id,
        block_id=block.id,
        block_type=block_type,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
    )
    return block


def remove_blocked_period(
    engine: Engine, principal: Principal, property_id: str, block_id: str
) -> None:
    with _owned_property(engine, principal, property_id) as (_, prop):
        block = next((b for b in prop.blocked_periods if b.id == block_id), None)
        if block is None:
            raise NotFoundError("Blocked period not found")
        prop.blocked_periods.remove(block)

    logger.info("blocked_period_removed", property_id=property_id, block_id=block_id)


def list_blocked_periods(engine: Engine, property_id: str) -> list[BlockedPeriod]:
    with Session(engine, expire_on_commit=False) as session:
        return list(require_property(session, property_id).blocked_periods)
