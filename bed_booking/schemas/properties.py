from datetime import date
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from bed_booking.models.properties import Bed, BlockedPeriod, Property, Room
from bed_booking.services.availability import AvailabilityReport
from bed_booking.services.calendar import CalendarMonth
from bed_booking.services.projections import SearchResult


class BedPayload(BaseModel):
    label: Optional[str] = Field(None, max_length=120, description="Display label (defaults to 'Bed N')")
    price_per_bed: Decimal = Field(Decimal("0"), ge=0, description="Nightly price of this bed")
    is_available: bool = Field(True, description="Host hard-disable flag")


class RoomPayload(BaseModel):
    name: Optional[str] = Field(None, max_length=120, description="Room name")
    is_private: bool = Field(False, description="Private room (vs. shared dorm)")
    beds: list[BedPayload] = Field(default_factory=list, description="Beds in display order")


class PropertyCreatePayload(BaseModel):
    """
    Schema for creating a property. The property is active iff rooms are given.
    """

    title: str = Field(..., min_length=1, max_length=200, description="Listing title")
    description: Optional[str] = Field(None, description="Listing description")
    price_per_night: Decimal = Field(Decimal("0"), ge=0, description="Whole-property nightly price")
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    rooms: list[RoomPayload] = Field(default_factory=list, description="Rooms in display order")


class PropertyUpdatePayload(BaseModel):
    """
    Schema for updating scalar property fields. All fields are optional.
    Rooms and beds are edited through their own endpoints.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price_per_night: Optional[Decimal] = Field(None, ge=0)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_active: Optional[bool] = Field(None, description="Bookable flag; requires at least one room")


class BedUpdatePayload(BaseModel):
    label: Optional[str] = Field(None, min_length=1, max_length=120)
    price_per_bed: Optional[Decimal] = Field(None, ge=0)
    is_available: Optional[bool] = None


class BlockedPeriodPayload(BaseModel):
    """
    Schema for declaring a host block. Both dates are inclusive.

    ``room_index`` is required for room and bed blocks, ``bed_index`` for bed
    blocks. Indices address the current display order.
    """

    start_date: Optional[date] = Field(None, description="First blocked day")
    end_date: Optional[date] = Field(None, description="Last blocked day (inclusive)")
    block_type: Literal["entire", "room", "bed"] = Field("entire")
    room_index: Optional[int] = None
    bed_index: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=255)


def bed_to_dict(bed: Bed, bed_index: int) -> dict[str, Any]:
    return {
        "id": bed.id,
        "bed_index": bed_index,
        "label": bed.label,
        "price_per_bed": float(bed.price_per_bed),
        "is_available": bed.is_available,
    }


def room_to_dict(room: Room, room_index: int) -> dict[str, Any]:
    return {
        "id": room.id,
        "room_index": room_index,
        "name": room.name,
        "is_private": room.is_private,
        "beds": [bed_to_dict(bed, i) for i, bed in enumerate(room.beds)],
    }


def blocked_period_to_dict(block: BlockedPeriod, include_reason: bool = True) -> dict[str, Any]:
    return {
        "id": block.id,
        "start_date": block.start_date.isoformat(),
        "end_date": block.end_date.isoformat(),
        "block_type": block.block_type,
        "room_id": block.room_id,
        "bed_id": block.bed_id,
        "reason": block.reason if include_reason else None,
    }


def property_to_dict(prop: Property, include_block_reasons: bool = False) -> dict[str, Any]:
    """
    Serialize a property with its rooms, beds and blocked periods.

    Block reasons are private to the owning host.
    """
    return {
        "id": prop.id,
        "host_id": prop.host_id,
        "title": prop.title,
        "description": prop.description,
        "price_per_night": float(prop.price_per_night),
        "latitude": prop.latitude,
        "longitude": prop.longitude,
        "is_active": prop.is_active,
        "version": prop.version,
        "rooms": [room_to_dict(room, i) for i, room in enumerate(prop.rooms)],
        "blocked_periods": [
            blocked_period_to_dict(b, include_reason=include_block_reasons)
            for b in prop.blocked_periods
        ],
    }


def availability_to_dict(report: AvailabilityReport) -> dict[str, Any]:
    return {
        "property_id": report.property_id,
        "start_date": report.start_date.isoformat(),
        "end_date": report.end_date.isoformat(),
        "whole_property_booked": report.whole_property_booked,
        "available_beds": len(report.available_bed_ids),
        "beds": [
            {
                "bed_id": bed.bed_id,
                "room_id": bed.room_id,
                "room_index": bed.room_index,
                "bed_index": bed.bed_index,
                "label": bed.label,
                "price_per_bed": float(bed.price_per_bed),
                "is_private": bed.is_private,
                "is_available": bed.is_available,
                "is_disabled": bed.is_disabled,
                "is_booked": bed.is_booked,
                "is_pending": bed.is_pending,
                "is_blocked": bed.is_blocked,
                "block_reason": bed.block_reason,
            }
            for bed in report.beds
        ],
        "daily": {
            day.isoformat(): {bed_id: state.value for bed_id, state in states.items()}
            for day, states in report.daily.items()
        },
    }


def calendar_to_dict(months: list[CalendarMonth]) -> list[dict[str, Any]]:
    return [
        {
            "name": month.name,
            "year": month.year,
            "month": month.month,
            "days": [
                {
                    "date": day.date.isoformat(),
                    "is_past": day.is_past,
                    "total": day.total,
                    "available": day.available,
                    "booked": day.booked,
                    "pending": day.pending,
                    "blocked": day.blocked,
                }
                for day in month.days
            ],
        }
        for month in months
    ]


def search_result_to_dict(result: SearchResult) -> dict[str, Any]:
    data = property_to_dict(result.property)
    data.update(
        {
            "available_beds": result.available_beds,
            "lowest_price": float(result.lowest_price),
            "distance": round(result.distance, 2) if result.distance is not None else None,
        }
    )
    return data
