"""Reservation lookup and mutation tools.

``search_reservations`` and ``get_reservation_by_id`` are read-only.
``make_reservation``, ``update_reservation`` and ``cancel_reservation``
change backend state; their descriptions spell out what the model must have
done first (looked the booking up, confirmed with the customer).  Only the
lookup step is checked here, through the session's set of known booking ids;
customer confirmation is left to the model.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import Field, field_validator

from resto_agent.backend.validation import (
    check_booking_id,
    check_date,
    check_party_size,
    check_time,
)
from resto_agent.errors import ErrorKind, ToolResult
from resto_agent.models.reservation import ReservationRef
from resto_agent.tools.base import BaseTool, SessionContext, ToolArgs, coerce_count, field_check

logger = logging.getLogger(__name__)


def _format_refs(refs: list[ReservationRef]) -> str:
    if not refs:
        return "No matching reservations found."
    lines = [f"Found {len(refs)} reservation(s):"]
    for ref in refs:
        lines.append(f"- bookingId {ref.booking_id}: {ref.description}")
    return "\n".join(lines)


def _unknown_booking(booking_id: str) -> ToolResult:
    return ToolResult.failure(
        ErrorKind.PRECONDITION,
        f"Booking {booking_id} has not been looked up in this call. "
        "Find it with search_reservations first and confirm it with the customer.",
    )


# ── Search ───────────────────────────────────────────────────────


class SearchReservationsArgs(ToolArgs):
    phone: Optional[str] = Field(
        default=None,
        description="Customer's phone number in any format; it is normalized automatically.",
    )
    email: Optional[str] = Field(
        default=None, description="Customer's email address, e.g. 'john.smith@example.com'.",
    )
    date: Optional[str] = Field(
        default=None,
        description="Reservation date in ISO format YYYY-MM-DD, when the customer mentions one.",
    )
    customer_name: Optional[str] = Field(
        default=None,
        description="Customer's full name as given. Similar spellings are matched.",
    )

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else field_check(check_date, value)


class SearchReservationsTool(BaseTool):
    args_model = SearchReservationsArgs

    @property
    def name(self) -> str:
        return "search_reservations"

    @property
    def description(self) -> str:
        return (
            "Search for reservations using any combination of phone, email, customer "
            "name and date. Every parameter is optional; with none you get recently "
            "made reservations. Start with the caller's phone number. An empty result "
            "means no matching reservation exists. Only reservations from the last "
            "seven days are searched. Each result has a bookingId needed by the "
            "update and cancel tools."
        )

    async def execute(self, ctx: SessionContext, args: SearchReservationsArgs) -> ToolResult:
        refs = await ctx.client.search_reservations(
            phone=args.phone,
            email=args.email,
            date=args.date,
            customer_name=args.customer_name,
        )
        ctx.session.remember_bookings(ref.booking_id for ref in refs)
        return ToolResult.success(
            _format_refs(refs), payload=[ref.model_dump(by_alias=True) for ref in refs],
        )


# ── Get by id ────────────────────────────────────────────────────


class BookingIdArgs(ToolArgs):
    booking_id: str = Field(
        description=(
            "Unique booking identifier obtained from search_reservations, "
            "e.g. 'bk_abc123xyz'."
        ),
    )

    @field_validator("booking_id")
    @classmethod
    def validate_booking_id(cls, value: str) -> str:
        return field_check(check_booking_id, value)


class GetReservationByIdTool(BaseTool):
    args_model = BookingIdArgs

    @property
    def name(self) -> str:
        return "get_reservation_by_id"

    @property
    def description(self) -> str:
        return (
            "Get the full details of one reservation by its booking ID. Use it when "
            "you already have the ID and need complete information: date, time, "
            "guests, status and any selected offer."
        )

    async def execute(self, ctx: SessionContext, args: BookingIdArgs) -> ToolResult:
        ref = await ctx.client.get_reservation_by_id(args.booking_id)
        ctx.session.remember_bookings([ref.booking_id])
        return ToolResult.success(ref.description, payload=ref.model_dump(by_alias=True))


# ── Cancel ───────────────────────────────────────────────────────


class CancelReservationTool(BaseTool):
    args_model = BookingIdArgs

    @property
    def name(self) -> str:
        return "cancel_reservation"

    @property
    def description(self) -> str:
        return (
            "Cancel an existing reservation permanently. Only call after (1) finding "
            "the booking with search_reservations to get its bookingId, (2) stating "
            "the reservation details to the customer, and (3) getting the customer's "
            "explicit confirmation to cancel. Some reservations cannot be cancelled "
            "once the cancellation window has passed; then tell the customer to "
            "contact the restaurant or transfer them to the manager."
        )

    async def execute(self, ctx: SessionContext, args: BookingIdArgs) -> ToolResult:
        if ctx.require_lookup_before_cancel and not ctx.session.knows_booking(args.booking_id):
            return _unknown_booking(args.booking_id)
        result = await ctx.client.cancel_reservation(args.booking_id)
        logger.info("Reservation %s cancelled", args.booking_id)
        return ToolResult.success(result.description, payload=result.model_dump())


# ── Make ─────────────────────────────────────────────────────────


class MakeReservationArgs(ToolArgs):
    date: str = Field(description="Reservation date in ISO format YYYY-MM-DD.")
    time: str = Field(
        description="Arrival time in 24-hour HH:MM format. Prefer :00, :15, :30 or :45.",
    )
    party_size: int = Field(description="Total party size including the caller.")
    name: str = Field(description="Customer's full name, first and last.", min_length=1)
    phone: str = Field(
        description="Customer's phone number; any format is normalized automatically.",
        min_length=1,
    )
    email: str = Field(description="Customer's email address, e.g. 'user@example.com'.", min_length=3)
    allergies: Optional[str] = Field(
        default=None, description="Dietary restrictions or food allergies, e.g. 'No shellfish'.",
    )
    comments: Optional[str] = Field(
        default=None,
        description="Special requests or occasion notes. Do not put allergies here.",
    )
    room_id: Optional[str] = Field(
        default=None,
        description="ID of the seating area, only if a seating request was confirmed.",
    )
    offer_id: Optional[int] = Field(
        default=None,
        description="ID of the chosen offer; required when the slot requires an offer.",
    )

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        return field_check(check_date, value)

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        return field_check(check_time, value)

    @field_validator("party_size", mode="before")
    @classmethod
    def validate_party_size(cls, value: object) -> int:
        return field_check(check_party_size, coerce_count(value))


class MakeReservationTool(BaseTool):
    args_model = MakeReservationArgs

    @property
    def name(self) -> str:
        return "make_reservation"

    @property
    def description(self) -> str:
        return (
            "Create a new reservation. Only call after (1) check_availability showed "
            "the slot is free, (2) collecting name, phone, email, date, time and party "
            "size, and (3) confirming the details out loud with the customer. If the "
            "slot requires an offer, include the offer the customer chose. If "
            "prepayment is required, tell the customer a payment link will arrive by "
            "email."
        )

    async def execute(self, ctx: SessionContext, args: MakeReservationArgs) -> ToolResult:
        ref = await ctx.client.make_reservation(**args.model_dump())
        ctx.session.remember_bookings([ref.booking_id])
        return ToolResult.success(ref.description, payload=ref.model_dump(by_alias=True))


# ── Update ───────────────────────────────────────────────────────


class UpdateReservationArgs(BookingIdArgs):
    date: Optional[str] = Field(default=None, description="New date in YYYY-MM-DD format.")
    time: Optional[str] = Field(default=None, description="New arrival time in HH:MM format.")
    party_size: Optional[int] = Field(default=None, description="New party size.")
    name: Optional[str] = Field(default=None, description="New name on the reservation.")
    phone: Optional[str] = Field(default=None, description="New contact phone number.")
    email: Optional[str] = Field(default=None, description="New email address.")
    allergies: Optional[str] = Field(default=None, description="Updated dietary restrictions.")
    comments: Optional[str] = Field(default=None, description="Updated special requests.")
    room_id: Optional[str] = Field(default=None, description="New seating area ID.")
    offer_id: Optional[int] = Field(default=None, description="Offer ID for the new slot.")

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else field_check(check_date, value)

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else field_check(check_time, value)

    @field_validator("party_size", mode="before")
    @classmethod
    def validate_party_size(cls, value: object) -> Optional[int]:
        if value is None:
            return None
        return field_check(check_party_size, coerce_count(value))


class UpdateReservationTool(BaseTool):
    args_model = UpdateReservationArgs

    @property
    def name(self) -> str:
        return "update_reservation"

    @property
    def description(self) -> str:
        return (
            "Modify an existing reservation; include only the fields that change. "
            "Only call after (1) finding the booking with search_reservations, "
            "(2) checking availability if the date, time or party size changes, and "
            "(3) confirming the new details with the customer."
        )

    async def execute(self, ctx: SessionContext, args: UpdateReservationArgs) -> ToolResult:
        if ctx.require_lookup_before_cancel and not ctx.session.knows_booking(args.booking_id):
            return _unknown_booking(args.booking_id)
        changes = args.model_dump(exclude={"booking_id"}, exclude_none=True)
        ref = await ctx.client.update_reservation(args.booking_id, **changes)
        return ToolResult.success(ref.description, payload=ref.model_dump(by_alias=True))
