"""Pydantic model for what the backend knows about a caller."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from resto_agent.phone import normalize_phone_number


class CustomerProfile(BaseModel):
    """Read-only view of a customer record, keyed by phone number.

    The backend owns this record; the call layer only reads it to ground the
    model.  ``phone`` is normalized on construction so comparisons and
    lookups always use the canonical international form.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    phone: str
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    number_of_calls: int = Field(default=1, alias="numberOfCalls", ge=0)
    customer_id: Optional[str] = Field(default=None, alias="id")

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, value: str) -> str:
        return normalize_phone_number(value)
