"""
FastAPI dependency injection providers.

Routes receive the database engine and the calling principal through these
providers, so tests can swap either one via ``app.dependency_overrides``.

The principal is supplied by the upstream auth layer in two headers:
``X-User-Id`` and ``X-User-Role`` (``guest`` or ``host``).
"""

from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header, HTTPException, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Engine

from bed_booking.db.engine import engine
from bed_booking.schemas.principal import Principal


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: test_engine
        >>> client = TestClient(app)
        >>> client.get("/properties/abc")
    """
    yield engine


def get_optional_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Optional[Principal]:
    """
    Resolve the caller from auth headers, or None for anonymous requests.

    Raises:
        HTTPException: 401 if the headers are present but malformed
    """
    if not x_user_id:
        return None
    try:
        return Principal(user_id=x_user_id, role=x_user_role or "guest")
    except PydanticValidationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication headers",
        )


def get_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Principal:
    """
    Resolve the caller from auth headers.

    Raises:
        HTTPException: 401 if no authenticated user is present
    """
    principal = get_optional_principal(x_user_id, x_user_role)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return principal
