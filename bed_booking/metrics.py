"""
Prometheus metrics for monitoring admissions, transitions and projections.

This module defines all Prometheus metrics used throughout the application for
observability and monitoring. Metrics are exposed via the /metrics endpoint for
scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., admissions)
    - Histogram: Observations bucketed by value (e.g., computation latency)

Example:
    >>> from bed_booking.metrics import admissions_total
    >>> admissions_total.labels(mode="beds", outcome="admitted").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Admission Metrics
# =============================================================================

admissions_total = Counter(
    "bedbooking_admissions_total",
    "Reservation admission attempts by booking mode and outcome",
    ["mode", "outcome"],
)
"""
Counter for reservation admission attempts.

Labels:
    mode: beds or whole_property
    outcome: admitted, conflict, invalid, retry_exhausted
"""

admission_retries = Counter(
    "bedbooking_admission_retries_total",
    "Admissions retried after a concurrent write bumped the property version",
)

# =============================================================================
# State Machine Metrics
# =============================================================================

transitions_total = Counter(
    "bedbooking_transitions_total",
    "Reservation status transitions",
    ["transition", "outcome"],
)
"""
Counter for reservation transitions.

Labels:
    transition: confirm, reject, cancel, message
    outcome: applied, noop, rejected
"""

# =============================================================================
# Projection Metrics
# =============================================================================

availability_duration = Histogram(
    "bedbooking_availability_duration_seconds",
    "Time spent computing bed availability for a date range",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, float("inf")),
)

calendar_duration = Histogram(
    "bedbooking_calendar_duration_seconds",
    "Time spent folding reservations and blocks into calendar counts",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, float("inf")),
)

calendar_cache_hits = Counter(
    "bedbooking_calendar_cache_hits_total",
    "Total number of calendar cache hits",
)

calendar_cache_misses = Counter(
    "bedbooking_calendar_cache_misses_total",
    "Total number of calendar cache misses",
)

# =============================================================================
# Notification Metrics
# =============================================================================

notifications_total = Counter(
    "bedbooking_notifications_total",
    "Outbound notifications by event and result",
    ["event", "status"],
)
"""
Counter for notifier calls.

Labels:
    event: reservation.created, reservation.confirmed, ...
    status: sent, skipped, failed
"""
