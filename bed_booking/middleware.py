"""
FastAPI middleware for request tracing and correlation.

Each request gets a unique ID that is returned to the client and bound into
structlog's context, so every log line emitted while handling the request
(admission, transitions, notifications) carries the same ``request_id``.
"""

from __future__ import annotations

import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add unique request IDs to each HTTP request.

    An incoming ``X-Request-ID`` header is reused so IDs can be propagated
    from upstream proxies; otherwise a UUID4 is generated. The ID is:

    1. stored in ``request.state.request_id``
    2. bound into structlog contextvars for the duration of the request
    3. echoed back in the ``X-Request-ID`` response header

    Example:
        >>> app.add_middleware(RequestIDMiddleware)
        >>> client.get("/health").headers["X-Request-ID"]
        '550e8400-e29b-41d4-a716-446655440000'
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
