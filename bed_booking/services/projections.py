"""
Read-side views over a property: bed availability, calendar and date finder.

These run lock-free against a snapshot of the property and its
reservations. They are for display only; admission always re-checks inside
the conflict resolver.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from bed_booking.cache import calendar_cache, calendar_key
from bed_booking.config import DEFAULT_CALENDAR_MONTHS, MAX_CALENDAR_MONTHS
from bed_booking.db.readers.properties import list_active_properties, require_property
from bed_booking.db.readers.reservations import (
    list_overlapping_reservations,
    list_property_reservations,
)
from bed_booking.errors import ValidationError
from bed_booking.metrics import (
    availability_duration,
    calendar_cache_hits,
    calendar_cache_misses,
    calendar_duration,
)
from bed_booking.models.properties import Property
from bed_booking.models.reservations import ACTIVE_STATUSES, CONFIRMED, PENDING
from bed_booking.schemas.principal import Principal
from bed_booking.services.availability import AvailabilityReport, compute_availability
from bed_booking.services.calendar import CalendarMonth, aggregate, calendar_window
from bed_booking.services.conflicts import validate_date_range
from bed_booking.utils.datetime import utc_today

logger = structlog.get_logger(__name__)

EARTH_RADIUS_MILES = 3959
DEFAULT_RADIUS_MILES = 25.0


def _is_owner(prop: Property, viewer: Optional[Principal]) -> bool:
    return viewer is not None and viewer.user_id == prop.host_id


def bed_availability(
    engine: Engine,
    property_id: str,
    start: Optional[date],
    end: Optional[date],
    viewer: Optional[Principal] = None,
) -> tuple[Property, AvailabilityReport]:
    """
    Per-bed availability of a property for ``[start, end)``.

    Block reasons are only included when ``viewer`` owns the property.

    Raises:
        ValidationError: Missing or inverted dates
        NotFoundError: Unknown property
    """
    start, end = validate_date_range(start, end)

    with Session(engine, expire_on_commit=False) as session:
        prop = require_property(session, property_id)
        holds = list_property_reservations(session, prop.id, ACTIVE_STATUSES, start, end)

    with availability_duration.time():
        report = compute_availability(
            prop, holds, prop.blocked_periods, start, end, viewer_is_owner=_is_owner(prop, viewer)
        )
    return prop, report


def property_calendar(
    engine: Engine,
    property_id: str,
    months: Optional[int] = None,
    start: Optional[date] = None,
) -> tuple[Property, list[CalendarMonth]]:
    """
    Month-by-month bed counts for a property, served from cache when possible.

    Args:
        engine: Database engine
        property_id: Property to display
        months: Number of months (default ``DEFAULT_CALENDAR_MONTHS``)
        start: Reference day; defaults to today (UTC)

    Raises:
        ValidationError: ``months`` outside ``1..MAX_CALENDAR_MONTHS``
        NotFoundError: Unknown property
    """
    month_count = months if months is not None else DEFAULT_CALENDAR_MONTHS
    if month_count < 1 or month_count > MAX_CALENDAR_MONTHS:
        raise ValidationError(f"months must be between 1 and {MAX_CALENDAR_MONTHS}")
    today = start or utc_today()

    with Session(engine, expire_on_commit=False) as session:
        prop = require_property(session, property_id)
        key = calendar_key(prop.id, prop.version, today, month_count)
        cached = calendar_cache.get(key)
        if cached is not None:
            calendar_cache_hits.inc()
            return prop, cached

        calendar_cache_misses.inc()
        first, last = calendar_window(today, month_count)
        # Window end is inclusive; the reader takes an exclusive end
        holds = list_property_reservations(
            session, prop.id, ACTIVE_STATUSES, first, last + timedelta(days=1)
        )

    confirmed = [r for r in holds if r.status == CONFIRMED]
    pending = [r for r in holds if r.status == PENDING]
    with calendar_duration.time():
        result = aggregate(prop, confirmed, pending, prop.blocked_periods, month_count, start=today)

    calendar_cache.set(key, result)
    logger.debug(
        "calendar_computed",
        property_id=prop.id,
        version=prop.version,
        months=month_count,
        reservations=len(holds),
    )
    return prop, result


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two coordinates in miles.

    Example:
        >>> round(haversine_miles(40.7128, -74.0060, 40.7128, -74.0060), 3)
        0.0
    """
    lat_diff = math.radians(lat2 - lat1)
    lng_diff = math.radians(lng2 - lng1)
    a = (
        math.sin(lat_diff / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(lng_diff / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass
class SearchResult:
    property: Property
    available_beds: int
    lowest_price: Decimal
    distance: Optional[float]


def search_available(
    engine: Engine,
    start: Optional[date],
    end: Optional[date],
    min_beds: int = 1,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius_miles: float = DEFAULT_RADIUS_MILES,
) -> list[SearchResult]:
    """
    Find active properties with enough free beds for ``[start, end)``.

    When a location is given only properties with coordinates inside
    ``radius_miles`` are considered. A property qualifies when at least
    ``min_beds`` beds are free and the cheapest free bed lies inside the
    price range.

    Returns:
        list[SearchResult]: Nearest first (or cheapest first without a location)
    """
    start, end = validate_date_range(start, end)
    if min_beds < 1:
        raise ValidationError("min_beds must be at least 1")
    use_location = latitude is not None and longitude is not None

    with Session(engine, expire_on_commit=False) as session:
        properties = list_active_properties(session)
        holds_by_property = list_overlapping_reservations(
            session, [p.id for p in properties], start, end
        )

    results: list[SearchResult] = []
    for prop in properties:
        distance = None
        if use_location:
            if prop.latitude is None or prop.longitude is None:
                continue
            distance = haversine_miles(latitude, longitude, prop.latitude, prop.longitude)  # type: ignore[arg-type]
            if distance > radius_miles:
                continue

        report = compute_availability(
            prop,
            holds_by_property.get(prop.id, []),
            prop.blocked_periods,
            start,
            end,
            viewer_is_owner=False,
        )
        free = [bed for bed in report.beds if bed.is_available]
        if len(free) < min_beds:
            continue
        lowest = min(bed.price_per_bed for bed in free)
        if min_price is not None and lowest < min_price:
            continue
        if max_price is not None and lowest > max_price:
            continue
        results.append(SearchResult(prop, len(free), lowest, distance))

    if use_location:
        results.sort(key=lambda r: (r.distance, r.lowest_price))
    else:
        results.sort(key=lambda r: r.lowest_price)

    logger.info(
        "date_finder_search",
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        candidates=len(properties),
        matches=len(results),
    )
    return results
