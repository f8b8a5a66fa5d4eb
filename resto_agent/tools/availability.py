"""Check-availability tool.

The model calls ``check_availability`` once it knows the date and party size
and receives the backend's pre-rendered description of open slots.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator

from resto_agent.backend.validation import check_date, check_party_size, check_time
from resto_agent.errors import ToolResult
from resto_agent.tools.base import BaseTool, SessionContext, ToolArgs, coerce_count, field_check


class CheckAvailabilityArgs(ToolArgs):
    date: str = Field(
        description=(
            "Reservation date in ISO format YYYY-MM-DD. Convert natural language "
            "(e.g. 'tomorrow', 'next Friday', 'December 25th') to this format."
        ),
    )
    time: Optional[str] = Field(
        default=None,
        description=(
            "Preferred time in 24-hour HH:MM format (e.g. '19:00' for 7pm). "
            "Only include if the customer specifies a time."
        ),
    )
    party_size: int = Field(
        description=(
            "Total party size including the caller. Infer from context: "
            "'me and my girlfriend' = 2, 'table for four' = 4."
        ),
    )

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        return field_check(check_date, value)

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else field_check(check_time, value)

    @field_validator("party_size", mode="before")
    @classmethod
    def validate_party_size(cls, value: object) -> int:
        return field_check(check_party_size, coerce_count(value))


class CheckAvailabilityTool(BaseTool):
    """Return open time slots for a date and party size."""

    args_model = CheckAvailabilityArgs

    @property
    def name(self) -> str:
        return "check_availability"

    @property
    def description(self) -> str:
        return (
            "Check available time slots for a specific date. Call this after gathering "
            "the date and party size from the customer; include the time only if the "
            "customer gave one. Never call it without a party size. "
            "The response may say that an offer must be chosen for a slot, that "
            "prepayment is required (the customer then receives a payment link by "
            "email), or that the seating area cannot be cancelled once booked."
        )

    async def execute(self, ctx: SessionContext, args: CheckAvailabilityArgs) -> ToolResult:
        result = await ctx.client.check_availability(
            date=args.date, party_size=args.party_size, time=args.time,
        )
        message = result.description or f"Availability for {args.date}: {result.raw}"
        return ToolResult.success(message, payload=result.raw)
