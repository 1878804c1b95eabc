"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP bedbooking_admissions_total Reservation admission attempts by booking mode and outcome
        # TYPE bedbooking_admissions_total counter
        bedbooking_admissions_total{mode="beds",outcome="admitted"} 12.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """
    Expose admission, transition, calendar and notifier metrics in the
    Prometheus text format.
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
