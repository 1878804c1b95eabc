"""
Outbound reservation notifications (email gateway).

Reservation events are posted as JSON to ``NOTIFIER_URL``. Delivery is
fire-and-forget: route handlers schedule :func:`notify` as a background task
after the state change has committed, and a failed delivery is logged and
counted but never propagated, so it cannot roll back a transition.
"""

from __future__ import annotations

import time
from typing import Any, Optional

import requests
import structlog

from bed_booking.config import NOTIFIER_MAX_RETRIES, NOTIFIER_TIMEOUT_SECONDS, NOTIFIER_URL
from bed_booking.metrics import notifications_total
from bed_booking.models.reservations import Reservation

logger = structlog.get_logger(__name__)

RETRY_DELAY = 0.5

EVENT_CREATED = "reservation.created"
EVENT_CONFIRMED = "reservation.confirmed"
EVENT_REJECTED = "reservation.rejected"
EVENT_CANCELLED = "reservation.cancelled"
EVENT_MESSAGE = "reservation.message"


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Determine whether the request should be retried based on response or error.

    Args:
        res (Optional[requests.Response]): Response object if available.
        err (Optional[Exception]): Exception raised by the request, if any.

    Returns:
        bool: True if the request should be retried, False otherwise.
    """
    if res is not None and res.status_code == 429:
        return True
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    return False


def reservation_event_payload(reservation: Reservation, **extra: Any) -> dict[str, Any]:
    """Build the notifier body for a reservation event."""
    payload: dict[str, Any] = {
        "reservation_id": reservation.id,
        "property_id": reservation.property_id,
        "guest_id": reservation.guest_id,
        "host_id": reservation.host_id,
        "start_date": reservation.start_date.isoformat(),
        "end_date": reservation.end_date.isoformat(),
        "total_price": float(reservation.total_price),
        "status": reservation.status,
    }
    payload.update(extra)
    return payload


def send_event(event: str, payload: dict[str, Any], url: str) -> None:
    """
    POST one event to the notifier, retrying transient failures.

    Args:
        event: Event name, e.g. ``reservation.created``
        payload: JSON-serialisable event body
        url: Notifier endpoint

    Raises:
        requests.RequestException: If delivery fails after all retries.
    """
    retries = 0
    while True:
        res: Optional[requests.Response] = None
        try:
            res = requests.post(
                url,
                json={"event": event, "data": payload},
                timeout=NOTIFIER_TIMEOUT_SECONDS,
            )
            res.raise_for_status()
            return
        except requests.RequestException as err:
            retries += 1
            if retries > NOTIFIER_MAX_RETRIES or not should_retry(res, err):
                raise
            logger.warning(
                "notification_retry",
                notify_event=event,
                attempt=retries,
                error=str(err),
            )
            time.sleep(RETRY_DELAY * retries)


def notify(event: str, payload: dict[str, Any]) -> bool:
    """
    Deliver a reservation event without ever raising.

    Args:
        event: Event name
        payload: Event body

    Returns:
        bool: True if delivered, False if skipped (no notifier configured) or failed
    """
    if not NOTIFIER_URL:
        notifications_total.labels(event=event, status="skipped").inc()
        logger.info("notification_skipped", notify_event=event, reason="notifier_not_configured")
        return False

    try:
        send_event(event, payload, NOTIFIER_URL)
    except requests.RequestException as e:
        notifications_total.labels(event=event, status="failed").inc()
        logger.exception(
            "notification_failed",
            notify_event=event,
            reservation_id=payload.get("reservation_id"),
            error=str(e),
        )
        return False

    notifications_total.labels(event=event, status="sent").inc()
    logger.info(
        "notification_sent",
        notify_event=event,
        reservation_id=payload.get("reservation_id"),
    )
    return True
