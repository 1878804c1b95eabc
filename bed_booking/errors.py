"""
Domain error taxonomy for booking and inventory operations.

Every error here is raised before any side effect is committed and is
surfaced to the caller as-is; none are retried automatically. The HTTP layer
maps ``status_code`` onto the response (see ``bed_booking.main``).
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Malformed input: bad date range, missing or duplicate bed reference."""

    status_code = 400


class ConflictError(BookingError):
    """Requested beds or property are not available for the date range."""

    status_code = 409


class AuthorizationError(BookingError):
    """Caller is not the reservation's guest/host or the property's owner."""

    status_code = 403


class NotFoundError(BookingError):
    """Unknown property, reservation, room, bed or blocked period."""

    status_code = 404


class StateError(BookingError):
    """Transition attempted from a status that does not allow it."""

    status_code = 400
