"""
Availability engine: per-bed, per-date occupancy for a property.

Everything in this module is a pure function of its inputs. Callers pass a
property (with rooms and beds loaded), the property's reservations and its
blocked periods; nothing is read from or written to the database here, so the
same inputs always produce the same report and results can be cached.

Date semantics:
    - Reservations occupy the half-open range ``[start_date, end_date)``; the
      checkout day is free for the next check-in (same-day turnover).
    - Blocked periods are inclusive of both ``start_date`` and ``end_date``.

Example:
    >>> report = compute_availability(prop, reservations, prop.blocked_periods,
    ...                               date(2024, 6, 1), date(2024, 6, 3))
    >>> report.available_bed_ids
    ['5c0f...', ...]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from bed_booking.errors import ValidationError
from bed_booking.models.reservations import ACTIVE_STATUSES, CONFIRMED, PENDING
from bed_booking.utils.datetime import iter_dates


class BedState(str, Enum):
    """State of one bed on one date, listed from highest to lowest precedence."""

    BLOCKED = "blocked"
    BOOKED = "booked"
    PENDING = "pending"
    DISABLED = "disabled"
    AVAILABLE = "available"
    # What non-owners see instead of BLOCKED
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class BedSlot:
    """Immutable view of one bed in the property's current topology."""

    bed_id: str
    room_id: str
    room_index: int
    bed_index: int
    label: str
    price_per_bed: Decimal
    is_private: bool
    is_available: bool


@dataclass
class BedAvailability:
    """Availability of a single bed over the requested date range."""

    bed_id: str
    room_id: str
    room_index: int
    bed_index: int
    label: str
    price_per_bed: Decimal
    is_private: bool
    is_disabled: bool
    is_booked: bool
    is_pending: bool
    is_blocked: bool
    block_reason: Optional[str]
    reservation_ids: list[str]
    is_available: bool


@dataclass
class AvailabilityReport:
    """Result of :func:`compute_availability`."""

    property_id: str
    start_date: date
    end_date: date
    whole_property_booked: bool
    beds: list[BedAvailability] = field(default_factory=list)
    daily: dict[date, dict[str, BedState]] = field(default_factory=dict)

    @property
    def available_bed_ids(self) -> list[str]:
        return [b.bed_id for b in self.beds if b.is_available]

    def bed(self, bed_id: str) -> Optional[BedAvailability]:
        for entry in self.beds:
            if entry.bed_id == bed_id:
                return entry
        return None

    def is_bed_available(self, bed_id: str) -> bool:
        entry = self.bed(bed_id)
        return entry is not None and entry.is_available


def ranges_overlap(start1: date, end1: date, start2: date, end2: date) -> bool:
    """
    Half-open interval intersection test for ``[start1, end1)`` and ``[start2, end2)``.

    A stay checking out on the day another checks in does not overlap it.

    Example:
        >>> ranges_overlap(date(2024, 6, 1), date(2024, 6, 3), date(2024, 6, 3), date(2024, 6, 5))
        False
    """
    return start1 < end2 and start2 < end1


def block_overlaps(block: Any, start: date, end: date) -> bool:
    """True if an inclusive blocked period intersects the stay ``[start, end)``."""
    return ranges_overlap(block.start_date, block.end_date + timedelta(days=1), start, end)


def block_covers(block: Any, day: date) -> bool:
    return block.start_date <= day <= block.end_date


def reservation_covers(reservation: Any, day: date) -> bool:
    return reservation.start_date <= day < reservation.end_date


def snapshot_topology(prop: Any) -> list[BedSlot]:
    """
    Flatten a property's rooms and beds into ordered :class:`BedSlot` entries.

    Indices are the current display positions (0-based, in list order), which
    is what legacy ``(roomIndex, bedIndex)`` references resolve against.
    """
    slots: list[BedSlot] = []
    for room_index, room in enumerate(prop.rooms or []):
        for bed_index, bed in enumerate(room.beds or []):
            slots.append(
                BedSlot(
                    bed_id=bed.id,
                    room_id=room.id,
                    room_index=room_index,
                    bed_index=bed_index,
                    label=bed.label,
                    price_per_bed=Decimal(bed.price_per_bed or 0),
                    is_private=bool(room.is_private),
                    is_available=bool(bed.is_available),
                )
            )
    return slots


def block_scope(block: Any, slots: Sequence[BedSlot]) -> Optional[frozenset[str]]:
    """
    Resolve the bed ids a blocked period applies to.

    Returns None for malformed periods (unknown type, missing or dangling
    room/bed reference, inverted dates). Those are ignored rather than
    rejected so bad historical rows cannot break availability.
    """
    if block.start_date is None or block.end_date is None:
        return None
    if block.start_date > block.end_date:
        return None

    if block.block_type == "entire":
        if block.room_id is not None or block.bed_id is not None:
            return None
        return frozenset(s.bed_id for s in slots)

    if block.block_type == "room":
        if block.room_id is None or block.bed_id is not None:
            return None
        scope = frozenset(s.bed_id for s in slots if s.room_id == block.room_id)
        return scope or None

    if block.block_type == "bed":
        if block.room_id is None or block.bed_id is None:
            return None
        for s in slots:
            if s.bed_id == block.bed_id and s.room_id == block.room_id:
                return frozenset({s.bed_id})
        return None

    return None


def active_reservations(
    reservations: Iterable[Any], start: date, end: date
) -> list[Any]:
    """Pending/confirmed reservations overlapping ``[start, end)``, in a stable order."""
    active = [
        r
        for r in reservations
        if r.status in ACTIVE_STATUSES
        and ranges_overlap(r.start_date, r.end_date, start, end)
    ]
    return sorted(active, key=lambda r: (r.start_date, r.end_date, str(r.id)))


def effective_blocks(
    blocked_periods: Iterable[Any], slots: Sequence[BedSlot], start: date, end: date
) -> list[tuple[Any, frozenset[str]]]:
    """Well-formed blocked periods overlapping ``[start, end)`` paired with their bed scope."""
    result = []
    for block in blocked_periods:
        scope = block_scope(block, slots)
        if scope is None:
            continue
        if block_overlaps(block, start, end):
            result.append((block, scope))
    return sorted(result, key=lambda item: (item[0].start_date, str(item[0].id)))


def bed_state_on(
    day: date,
    slot: BedSlot,
    reservations: Sequence[Any],
    blocks: Sequence[tuple[Any, frozenset[str]]],
    viewer_is_owner: bool = True,
) -> BedState:
    """
    State of ``slot`` on ``day``.

    Precedence: blocked by host > booked (confirmed) > pending hold >
    host-disabled > available. Non-owners see blocked beds as ``unavailable``.
    """
    for block, scope in blocks:
        if slot.bed_id in scope and block_covers(block, day):
            return BedState.BLOCKED if viewer_is_owner else BedState.UNAVAILABLE

    holding = [
        r
        for r in reservations
        if reservation_covers(r, day) and (r.is_whole_property or slot.bed_id in r.bed_ids)
    ]
    if any(r.status == CONFIRMED for r in holding):
        return BedState.BOOKED
    if any(r.status == PENDING for r in holding):
        return BedState.PENDING
    if not slot.is_available:
        return BedState.DISABLED
    return BedState.AVAILABLE


def compute_availability(
    prop: Any,
    reservations: Iterable[Any],
    blocked_periods: Iterable[Any],
    start: date,
    end: date,
    viewer_is_owner: bool = True,
) -> AvailabilityReport:
    """
    Compute which beds of ``prop`` are free for the stay ``[start, end)``.

    A bed is available iff its hard-disable flag is clear, no pending or
    confirmed reservation holding it overlaps the range, and no well-formed
    blocked period covering it overlaps the range. Any overlapping
    whole-property reservation makes every bed unavailable.

    Args:
        prop: Property with ``rooms`` (and their ``beds``) loaded
        reservations: The property's reservations (any status)
        blocked_periods: The property's blocked periods
        start: Check-in date
        end: Checkout date (exclusive)
        viewer_is_owner: Whether block details may be shown

    Returns:
        AvailabilityReport: Per-bed summary plus per-date states

    Raises:
        ValidationError: If ``start`` is not before ``end``
    """
    if start >= end:
        raise ValidationError("End date must be after start date")

    slots = snapshot_topology(prop)
    report = AvailabilityReport(
        property_id=prop.id,
        start_date=start,
        end_date=end,
        whole_property_booked=False,
    )
    if not slots:
        return report

    holds = active_reservations(reservations, start, end)
    blocks = effective_blocks(blocked_periods, slots, start, end)
    report.whole_property_booked = any(r.is_whole_property for r in holds)

    for slot in slots:
        holding = [r for r in holds if r.is_whole_property or slot.bed_id in r.bed_ids]
        covering = [block for block, scope in blocks if slot.bed_id in scope]
        is_blocked = bool(covering)
        block_reason = None
        if is_blocked and viewer_is_owner:
            block_reason = covering[0].reason or "Unavailable"

        report.beds.append(
            BedAvailability(
                bed_id=slot.bed_id,
                room_id=slot.room_id,
                room_index=slot.room_index,
                bed_index=slot.bed_index,
                label=slot.label,
                price_per_bed=slot.price_per_bed,
                is_private=slot.is_private,
                is_disabled=not slot.is_available,
                is_booked=any(r.status == CONFIRMED for r in holding),
                is_pending=any(r.status == PENDING for r in holding),
                is_blocked=is_blocked,
                block_reason=block_reason,
                reservation_ids=[str(r.id) for r in holding],
                is_available=(
                    not report.whole_property_booked
                    and slot.is_available
                    and not holding
                    and not is_blocked
                ),
            )
        )

    for day in iter_dates(start, end):
        report.daily[day] = {
            slot.bed_id: bed_state_on(day, slot, holds, blocks, viewer_is_owner)
            for slot in slots
        }

    return report


def whole_property_conflicts(
    prop: Any,
    reservations: Iterable[Any],
    blocked_periods: Iterable[Any],
    start: date,
    end: date,
) -> list[str]:
    """
    Reasons a whole-property stay over ``[start, end)`` cannot be admitted.

    Any pending/confirmed reservation of any kind, or any well-formed blocked
    period of any scope, overlapping the range is a conflict. An empty list
    means the property is free.
    """
    slots = snapshot_topology(prop)
    reasons = []
    if not slots:
        reasons.append("Property has no rooms configured")
    for r in active_reservations(reservations, start, end):
        reasons.append(f"Overlaps reservation {r.id}")
    for block, _ in effective_blocks(blocked_periods, slots, start, end):
        reasons.append(f"Overlaps blocked period {block.id}")
    return reasons
