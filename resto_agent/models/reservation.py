"""Pydantic models for reservation backend responses.

Reservation internals are opaque here: the backend returns a pre-rendered
``description`` meant to be read straight to the model, and the booking id is
only ever passed back through.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReservationRef(BaseModel):
    """An opaque booking identifier plus its human-readable summary."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    booking_id: str = Field(alias="bookingId")
    description: str = ""


class AvailabilityResult(BaseModel):
    """Result of an availability check."""

    model_config = ConfigDict(frozen=True)

    description: str = ""
    raw: dict[str, Any] = {}


class CancelResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    description: str


class RestaurantInfo(BaseModel):
    """The tenant's own restaurant profile (``GET /restaurants/me``)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    information: Optional[str] = None
    website: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, alias="restaurantPhoneNumber")
