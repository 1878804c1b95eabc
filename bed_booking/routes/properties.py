from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from bed_booking.config import MAX_CALENDAR_MONTHS
from bed_booking.dependencies import get_db_engine, get_optional_principal, get_principal
from bed_booking.errors import BookingError
from bed_booking.routes._helpers import internal_error, is_owner, updated_fields
from bed_booking.schemas.principal import Principal
from bed_booking.schemas.properties import (
    BedPayload,
    BedUpdatePayload,
    BlockedPeriodPayload,
    PropertyCreatePayload,
    PropertyUpdatePayload,
    RoomPayload,
    availability_to_dict,
    bed_to_dict,
    blocked_period_to_dict,
    calendar_to_dict,
    property_to_dict,
    room_to_dict,
    search_result_to_dict,
)
from bed_booking.services import inventory, projections

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/properties", status_code=status.HTTP_201_CREATED)
def create_property(
    payload: PropertyCreatePayload,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Create a property with its rooms and beds.

    Args:
        payload: Title, prices, optional location and room layout
        principal: Calling host
        engine: Database engine

    Returns:
        dict: The created property
    """
    try:
        prop = inventory.create_property(engine, principal, payload.model_dump())
        return property_to_dict(prop, include_block_reasons=True)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("property_creation_failed", error=str(e))
        raise internal_error()


@router.get("/properties/date-finder")
def date_finder(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    min_beds: int = Query(1, ge=1),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(projections.DEFAULT_RADIUS_MILES, gt=0, description="Radius in miles"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Search active properties with enough free beds for a stay.

    Must be registered before ``/properties/{property_id}``.
    """
    try:
        results = projections.search_available(
            engine,
            start_date,
            end_date,
            min_beds=min_beds,
            min_price=min_price,
            max_price=max_price,
            latitude=lat,
            longitude=lng,
            radius_miles=radius,
        )
        return {
            "properties": [search_result_to_dict(r) for r in results],
            "count": len(results),
        }
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("date_finder_failed", error=str(e))
        raise internal_error()


@router.get("/properties/mine")
def list_my_properties(
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    try:
        return [
            property_to_dict(p, include_block_reasons=True)
            for p in inventory.list_my_properties(engine, principal)
        ]
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("host_property_list_failed", error=str(e))
        raise internal_error()


@router.get("/properties/{property_id}")
def get_property(
    property_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        prop = inventory.get_property(engine, property_id)
        return property_to_dict(prop, include_block_reasons=is_owner(prop, principal))
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("property_fetch_failed", property_id=property_id, error=str(e))
        raise internal_error()


@router.patch("/properties/{property_id}")
def update_property(
    property_id: str,
    payload: PropertyUpdatePayload,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Update scalar property fields (title, prices, location, active flag).

    Returns:
        dict: The updated property
    """
    try:
        fields = updated_fields(payload)
        prop = inventory.update_property(engine, principal, property_id, fields)
        return property_to_dict(prop, include_block_reasons=True)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("property_update_failed", property_id=property_id, error=str(e))
        raise internal_error()


@router.post("/properties/{property_id}/rooms", status_code=status.HTTP_201_CREATED)
def add_room(
    property_id: str,
    payload: RoomPayload,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        room = inventory.add_room(engine, principal, property_id, payload.model_dump())
        return room_to_dict(room, room.position)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("room_add_failed", property_id=property_id, error=str(e))
        raise internal_error()


@router.delete("/properties/{property_id}/rooms/{room_id}")
def remove_room(
    property_id: str,
    room_id: str,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Remove a room. Refused while an active booking holds one of its beds.
    """
    try:
        prop = inventory.remove_room(engine, principal, property_id, room_id)
        return property_to_dict(prop, include_block_reasons=True)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("room_remove_failed", property_id=property_id, room_id=room_id, error=str(e))
        raise internal_error()


@router.post("/properties/{property_id}/rooms/{room_id}/beds", status_code=status.HTTP_201_CREATED)
def add_bed(
    property_id: str,
    room_id: str,
    payload: BedPayload,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        bed = inventory.add_bed(engine, principal, property_id, room_id, payload.model_dump())
        return bed_to_dict(bed, bed.position)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("bed_add_failed", property_id=property_id, room_id=room_id, error=str(e))
        raise internal_error()


@router.patch("/properties/{property_id}/beds/{bed_id}")
def update_bed(
    property_id: str,
    bed_id: str,
    payload: BedUpdatePayload,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        fields = updated_fields(payload)
        bed = inventory.update_bed(engine, principal, property_id, bed_id, fields)
        return bed_to_dict(bed, bed.position)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("bed_update_failed", property_id=property_id, bed_id=bed_id, error=str(e))
        raise internal_error()


@router.delete("/properties/{property_id}/beds/{bed_id}")
def remove_bed(
    property_id: str,
    bed_id: str,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        prop = inventory.remove_bed(engine, principal, property_id, bed_id)
        return property_to_dict(prop, include_block_reasons=True)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("bed_remove_failed", property_id=property_id, bed_id=bed_id, error=str(e))
        raise internal_error()


@router.get("/properties/{property_id}/blocked-periods")
def list_blocked_periods(
    property_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    """
    Blocked periods of a property. Reasons are only shown to the owner.
    """
    try:
        prop = inventory.get_property(engine, property_id)
        owner = is_owner(prop, principal)
        return [blocked_period_to_dict(b, include_reason=owner) for b in prop.blocked_periods]
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("blocked_period_list_failed", property_id=property_id, error=str(e))
        raise internal_error()


@router.post("/properties/{property_id}/blocked-periods", status_code=status.HTTP_201_CREATED)
def add_blocked_period(
    property_id: str,
    payload: BlockedPeriodPayload,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        block = inventory.add_blocked_period(engine, principal, property_id, payload.model_dump())
        return blocked_period_to_dict(block)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("blocked_period_add_failed", property_id=property_id, error=str(e))
        raise internal_error()


@router.delete("/properties/{property_id}/blocked-periods/{block_id}")
def remove_blocked_period(
    property_id: str,
    block_id: str,
    principal: Principal = Depends(get_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    try:
        inventory.remove_blocked_period(engine, principal, property_id, block_id)
        return {"message": "Blocked period removed"}
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception(
            "blocked_period_remove_failed", property_id=property_id, block_id=block_id, error=str(e)
        )
        raise internal_error()


@router.get("/properties/{property_id}/bed-availability")
def bed_availability(
    property_id: str,
    start_date: Optional[date] = Query(None, description="Check-in date"),
    end_date: Optional[date] = Query(None, description="Checkout date"),
    principal: Optional[Principal] = Depends(get_optional_principal),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Per-bed availability for ``[start_date, end_date)``.

    Returns:
        dict: Bed summary plus per-date bed states
    """
    try:
        _, report = projections.bed_availability(
            engine, property_id, start_date, end_date, viewer=principal
        )
        return availability_to_dict(report)
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("bed_availability_failed", property_id=property_id, error=str(e))
        raise internal_error()


@router.get("/properties/{property_id}/calendar")
def property_calendar(
    property_id: str,
    months: Optional[int] = Query(None, description=f"Months to show (1-{MAX_CALENDAR_MONTHS})"),
    start: Optional[date] = Query(None, description="Reference day (defaults to today)"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Day-by-day bed counts grouped by month.

    Example:
        >>> GET /properties/abc/calendar?months=2
        {"property_id": "abc", "months": [{"name": "June 2024", "days": [...]}, ...]}
    """
    try:
        prop, result = projections.property_calendar(engine, property_id, months=months, start=start)
        return {"property_id": prop.id, "months": calendar_to_dict(result)}
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("calendar_failed", property_id=property_id, error=str(e))
        raise internal_error()
