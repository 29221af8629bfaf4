"""Caller capability token."""

from typing import FrozenSet
from pydantic import BaseModel, ConfigDict, Field


ADMIN_ROLE = "ADMIN"


class Caller(BaseModel):
    """Authenticated identity handed to the leasing engine by the request layer."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, description="Authenticated user ID")
    roles: FrozenSet[str] = Field(default_factory=frozenset, description="Granted roles, e.g. ADMIN")

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles
