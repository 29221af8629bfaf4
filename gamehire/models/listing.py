"""Game player listing models."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


DESCRIPTION_MAX_LENGTH = 500

LEASE_FIELDS = ("hired_by_user_id", "hire_date", "return_date", "hours_hired")


class ListingStatus(str, Enum):
    """Availability status of a listed player."""
    AVAILABLE = "AVAILABLE"
    HIRED = "HIRED"


class ListingFields(BaseModel):
    """Descriptive attributes of a listing, editable only by the owner or an admin."""
    username: str = Field(..., description="Player display name")
    game_name: str = Field(..., description="Game the player is listed for")
    rank: str = Field(..., description="In-game rank")
    role: str = Field(..., description="In-game role")
    server: str = Field(..., description="Game server / region")
    price_per_hour: Decimal = Field(..., ge=0, description="Hourly price")
    description: Optional[str] = Field(
        None,
        max_length=DESCRIPTION_MAX_LENGTH,
        description="Free-text description"
    )

    @field_validator("username", "game_name", "rank", "role", "server")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value


class Listing(ListingFields):
    """A hireable player profile and its current leasing state."""
    id: str = Field(..., description="Listing ID (opaque, immutable)")
    owner_user_id: str = Field(..., description="Account that listed the player")
    status: ListingStatus = Field(default=ListingStatus.AVAILABLE, description="AVAILABLE or HIRED")
    hired_by_user_id: Optional[str] = Field(None, description="Hirer account, set only while HIRED")
    hire_date: Optional[date] = Field(None, description="Date of hire, set only while HIRED")
    return_date: Optional[date] = Field(None, description="Expected return date, set only while HIRED")
    hours_hired: Optional[int] = Field(None, ge=1, description="Hours hired, set only while HIRED")
    rating: Optional[float] = Field(None, ge=0.0, le=5.0, description="Running rating (0.0-5.0)")
    version: int = Field(default=0, ge=0, description="Optimistic concurrency version")
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_hired(self) -> bool:
        return self.status == ListingStatus.HIRED

    def lease_consistent(self) -> bool:
        """True when the lease fields agree with the availability status."""
        present = [getattr(self, name) is not None for name in LEASE_FIELDS]
        if self.status == ListingStatus.HIRED:
            return all(present)
        return not any(present)

    def descriptive_fields(self) -> ListingFields:
        return ListingFields(**self.model_dump(include=set(ListingFields.model_fields)))
