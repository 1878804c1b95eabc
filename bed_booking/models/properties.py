"""SQLAlchemy models for the bookable inventory: properties, rooms, beds and blocks."""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from bed_booking.models.base import Base
from bed_booking.utils.datetime import utc_now

BLOCK_TYPES = ("entire", "room", "bed")


def new_id() -> str:
    return str(uuid.uuid4())


class Property(Base):
    """
    ORM model for a lodging property owned by a host.

    A property owns an ordered sequence of rooms. ``price_per_night`` is the
    nightly price used for whole-property reservations (no specific beds).
    A property is bookable (``is_active``) only while it has at least one room.

    ``version`` is SQLAlchemy's optimistic concurrency counter: every inventory
    edit or reservation write touches this row, so two writers that read the
    same version cannot both commit.
    """

    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=new_id)
    host_id = Column(String(64), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price_per_night = Column(Numeric(10, 2), nullable=False, default=0)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_active = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    rooms = relationship(
        "Room",
        back_populates="property",
        order_by="Room.position",
        cascade="all, delete-orphan",
    )
    blocked_periods = relationship(
        "BlockedPeriod",
        back_populates="property",
        order_by="BlockedPeriod.start_date",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class Room(Base):
    """
    ORM model for a room within a property.

    ``id`` is a stable identifier assigned at creation; ``position`` is only
    the display order (the legacy ``roomIndex``) and may change when rooms
    are removed.
    """

    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=new_id)
    property_id = Column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    name = Column(String(120), nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)

    property = relationship("Property", back_populates="rooms")
    beds = relationship(
        "Bed",
        back_populates="room",
        order_by="Bed.position",
        cascade="all, delete-orphan",
    )


class Bed(Base):
    """
    ORM model for a single bookable bed.

    ``is_available`` is the host-controlled hard-disable flag. It is also
    flipped by reservation confirmation/cancellation and is not date-scoped;
    date-range occupancy is derived from reservations instead.
    """

    __tablename__ = "beds"

    id = Column(String(36), primary_key=True, default=new_id)
    room_id = Column(
        String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    label = Column(String(120), nullable=False)
    price_per_bed = Column(Numeric(10, 2), nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)

    room = relationship("Room", back_populates="beds")


class BlockedPeriod(Base):
    """
    ORM model for host-declared unavailability.

    Both ``start_date`` and ``end_date`` are inclusive. ``room_id`` is set for
    ``room`` and ``bed`` blocks, ``bed_id`` only for ``bed`` blocks. Rows whose
    type and references disagree are ignored by availability computations.
    """

    __tablename__ = "blocked_periods"

    id = Column(String(36), primary_key=True, default=new_id)
    property_id = Column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    block_type = Column(String(16), nullable=False)
    room_id = Column(String(36), nullable=True)
    bed_id = Column(String(36), nullable=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    property = relationship("Property", back_populates="blocked_periods")
