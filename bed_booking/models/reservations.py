# models/reservations.py

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from bed_booking.models.base import Base
from bed_booking.models.properties import new_id
from bed_booking.utils.datetime import utc_now

PENDING = "pending"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"
REJECTED = "rejected"

RESERVATION_STATUSES = (PENDING, CONFIRMED, CANCELLED, REJECTED)
ACTIVE_STATUSES = (PENDING, CONFIRMED)
TERMINAL_STATUSES = (CANCELLED, REJECTED)


class Reservation(Base):
    """
    ORM model for a guest reservation (booking) of a property.

    ``end_date`` is the checkout day, so the stay occupies ``[start_date,
    end_date)``. A reservation with no ``booked_beds`` rows books the whole
    property. ``total_price`` is always computed server-side at admission.
    """

    __tablename__ = "reservations"

    id = Column(String(36), primary_key=True, default=new_id)
    property_id = Column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guest_id = Column(String(64), nullable=False, index=True)
    host_id = Column(String(64), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    status = Column(String(16), nullable=False, default=PENDING, index=True)
    unread_by_guest = Column(Boolean, nullable=False, default=False)
    unread_by_host = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    booked_beds = relationship(
        "ReservationBed",
        back_populates="reservation",
        order_by="ReservationBed.ordinal",
        cascade="all, delete-orphan",
    )
    messages = relationship(
        "ReservationMessage",
        back_populates="reservation",
        order_by="ReservationMessage.sent_at",
        cascade="all, delete-orphan",
    )

    @property
    def is_whole_property(self) -> bool:
        return not self.booked_beds

    @property
    def bed_ids(self) -> frozenset[str]:
        return frozenset(b.bed_id for b in self.booked_beds)


class ReservationBed(Base):
    """
    A bed held by a reservation.

    ``bed_id`` is the stable bed reference used for conflict checks. The
    index/label/price columns are a snapshot taken at admission so history
    stays readable after the room/bed topology changes. ``was_available`` is
    the bed's ``is_available`` flag just before confirmation, restored when a
    confirmed reservation is cancelled.
    """

    __tablename__ = "reservation_beds"

    reservation_id = Column(
        String(36), ForeignKey("reservations.id", ondelete="CASCADE"), primary_key=True
    )
    bed_id = Column(String(36), primary_key=True, index=True)
    ordinal = Column(Integer, nullable=False, default=0)
    room_index = Column(Integer, nullable=False)
    bed_index = Column(Integer, nullable=False)
    bed_label = Column(String(120), nullable=False)
    price_per_bed = Column(Numeric(10, 2), nullable=False)
    was_available = Column(Boolean, nullable=True)

    reservation = relationship("Reservation", back_populates="booked_beds")


class ReservationMessage(Base):
    """Append-only message exchanged between guest and host on a reservation."""

    __tablename__ = "reservation_messages"

    id = Column(String(36), primary_key=True, default=new_id)
    reservation_id = Column(
        String(36),
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id = Column(String(64), nullable=False)
    text = Column(Text, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=False)

    reservation = relationship("Reservation", back_populates="messages")
