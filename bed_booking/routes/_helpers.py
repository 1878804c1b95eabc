"""
Internal helper functions for route handlers.

This module contains small utilities shared by the property and booking
routers to keep the handlers focused on request/response flow.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel

from bed_booking.models.properties import Property
from bed_booking.schemas.principal import Principal


def updated_fields(payload: BaseModel) -> dict[str, Any]:
    """
    Return only the fields the client actually sent.

    Args:
        payload: Parsed update payload

    Returns:
        dict: Field name to value, excluding unset fields

    Raises:
        HTTPException: 400 if the payload is empty
    """
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )
    return fields


def is_owner(prop: Property, principal: Optional[Principal]) -> bool:
    return principal is not None and principal.user_id == prop.host_id


def internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )
