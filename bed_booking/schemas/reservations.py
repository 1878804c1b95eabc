from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field

from bed_booking.models.reservations import Reservation, ReservationMessage
from bed_booking.services.conflicts import BedRef


class BookedBedPayload(BaseModel):
    """
    A bed to book. ``bed_id`` is preferred; ``room_index``/``bed_index``
    address the current display order for older clients.
    """

    room_index: Optional[int] = Field(None, ge=0)
    bed_index: Optional[int] = Field(None, ge=0)
    bed_id: Optional[str] = None

    def to_ref(self) -> BedRef:
        return BedRef(room_index=self.room_index, bed_index=self.bed_index, bed_id=self.bed_id)


class ReservationCreatePayload(BaseModel):
    """
    Schema for requesting a reservation.

    An empty ``booked_beds`` books the whole property. The price is always
    computed server-side; ``total_price`` is accepted for compatibility and
    ignored.
    """

    property_id: str = Field(..., min_length=1, description="Property to book")
    start_date: Optional[date] = Field(None, description="Check-in date")
    end_date: Optional[date] = Field(None, description="Checkout date (not a night of the stay)")
    booked_beds: list[BookedBedPayload] = Field(default_factory=list)
    total_price: Optional[float] = Field(None, description="Ignored; computed by the server")


class MessagePayload(BaseModel):
    text: str = Field(..., description="Message body")


def message_to_dict(message: ReservationMessage) -> dict[str, Any]:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "text": message.text,
        "sent_at": message.sent_at.isoformat(),
    }


def booked_beds_to_list(reservation: Reservation) -> list[dict[str, Any]]:
    return [
        {
            "bed_id": bed.bed_id,
            "room_index": bed.room_index,
            "bed_index": bed.bed_index,
            "label": bed.bed_label,
            "price_per_bed": float(bed.price_per_bed),
        }
        for bed in reservation.booked_beds
    ]


def reservation_to_dict(reservation: Reservation, include_messages: bool = False) -> dict[str, Any]:
    """
    Serialize a reservation for its guest or host.

    ``messages`` is only loaded by single-reservation reads, so list
    endpoints leave it out.
    """
    data: dict[str, Any] = {
        "id": reservation.id,
        "property_id": reservation.property_id,
        "guest_id": reservation.guest_id,
        "host_id": reservation.host_id,
        "start_date": reservation.start_date.isoformat(),
        "end_date": reservation.end_date.isoformat(),
        "total_price": float(reservation.total_price),
        "status": reservation.status,
        "is_whole_property": reservation.is_whole_property,
        "booked_beds": booked_beds_to_list(reservation),
        "unread_by_guest": reservation.unread_by_guest,
        "unread_by_host": reservation.unread_by_host,
        "created_at": reservation.created_at.isoformat(),
    }
    if include_messages:
        data["messages"] = [message_to_dict(m) for m in reservation.messages]
    return data


def public_reservation_to_dict(reservation: Reservation) -> dict[str, Any]:
    """Dates, status and held beds only; no guest identity or price."""
    return {
        "start_date": reservation.start_date.isoformat(),
        "end_date": reservation.end_date.isoformat(),
        "status": reservation.status,
        "booked_beds": [
            {"bed_id": bed.bed_id, "room_index": bed.room_index, "bed_index": bed.bed_index}
            for bed in reservation.booked_beds
        ],
    }
