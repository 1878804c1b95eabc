from decimal import Decimal
from typing import Any, Iterable, Optional

import structlog

from bed_booking.models.properties import Bed, Property, Room
from bed_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def touch_property(prop: Property) -> None:
    """
    Mark the property row dirty so the next flush bumps its ``version``.

    Every write that changes what availability computations would see (room
    or bed edits, blocks, reservation inserts and transitions) calls this, so
    concurrent writers holding a stale version fail with StaleDataError.
    """
    prop.updated_at = utc_now()


def new_bed(position: int, data: dict[str, Any]) -> Bed:
    return Bed(
        position=position,
        label=data.get("label") or f"Bed {position + 1}",
        price_per_bed=Decimal(str(data.get("price_per_bed", 0))),
        is_available=data.get("is_available", True),
    )


def new_room(position: int, data: dict[str, Any]) -> Room:
    """
    Build a Room (and its beds) from a payload dict.

    Args:
        position (int): Display position within the property.
        data (dict[str, Any]): Keys ``name``, ``is_private`` and ``beds``.

    Returns:
        Room: Transient room with beds attached.
    """
    beds = data.get("beds") or []
    return Room(
        position=position,
        name=data.get("name"),
        is_private=bool(data.get("is_private", False)),
        beds=[new_bed(i, bed) for i, bed in enumerate(beds)],
    )


def compact_positions(prop: Property) -> None:
    """Renumber room and bed positions 0..n-1 in their current list order."""
    for room_position, room in enumerate(prop.rooms):
        room.position = room_position
        for bed_position, bed in enumerate(room.beds):
            bed.position = bed_position


def set_beds_available(prop: Property, bed_ids: Iterable[str], value: bool) -> list[str]:
    """
    Set the hard-disable flag on the given beds.

    Args:
        prop (Property): Property with rooms and beds loaded.
        bed_ids (Iterable[str]): Beds to update; ids no longer present are skipped.
        value (bool): New ``is_available`` value.

    Returns:
        list[str]: IDs of beds that were found and updated.
    """
    wanted = set(bed_ids)
    updated = []
    for room in prop.rooms:
        for bed in room.beds:
            if bed.id in wanted:
                bed.is_available = value
                updated.append(bed.id)

    missing = wanted.difference(updated)
    if missing:
        logger.warning(
            "bed_flag_update_skipped_missing_beds",
            property_id=prop.id,
            bed_ids=sorted(missing),
        )
    return updated


def find_room(prop: Property, room_id: str) -> Optional[Room]:
    return next((room for room in prop.rooms if room.id == room_id), None)


def find_bed(prop: Property, bed_id: str) -> Optional[Bed]:
    for room in prop.rooms:
        for bed in room.beds:
            if bed.id == bed_id:
                return bed
    return None
