from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["guest", "host"]


class Principal(BaseModel):
    """
    Authenticated caller as supplied by the upstream auth layer.

    Identity is trusted as given; ownership checks against properties and
    reservations are performed by the booking services.
    """

    user_id: str = Field(..., min_length=1, description="Authenticated user ID")
    role: Role = Field(..., description="Caller role")

    @property
    def is_host(self) -> bool:
        return self.role == "host"
