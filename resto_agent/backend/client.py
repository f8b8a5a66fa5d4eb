"""Authenticated HTTP client for one tenant's reservation backend.

One ``ReservationClient`` exists per call session.  It carries the tenant's
pre-shared key on every request, applies a fixed timeout, and converts every
transport or non-2xx failure into a :class:`BackendError` whose message is
safe to hand to the model.  Nothing is retried here; the caller decides.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from resto_agent.backend.validation import (
    check_booking_id,
    check_date,
    check_party_size,
    check_time,
)
from resto_agent.errors import BackendError, ToolValidationError
from resto_agent.models.call import CallStatus, TranscriptEntry
from resto_agent.models.customer import CustomerProfile
from resto_agent.models.reservation import (
    AvailabilityResult,
    CancelResult,
    ReservationRef,
    RestaurantInfo,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_TIMEOUT_SECONDS = 10.0


def _booking_path(booking_id: str) -> str:
    return f"/reservations/{quote(booking_id, safe='')}"


def _parse_model(model: type[ModelT], data: Any, what: str) -> ModelT:
    """Validate a 2xx payload; a shape we cannot read is a backend failure."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        logger.warning("Unexpected %s payload (bad fields: %s)", what, fields)
        raise BackendError(f"The reservation system returned an unexpected {what}.") from None


def error_message_from_response(response: httpx.Response) -> str:
    """Pick the most useful message out of a failed response.

    Preference order: the backend's ``message`` field, then the raw body if
    it is text, then a generic status line.
    """
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict) and data.get("message"):
        message = data["message"]
        # Validation errors arrive as a list of messages
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        return str(message)
    if isinstance(data, str) and data.strip():
        return data.strip()

    content_type = response.headers.get("content-type", "")
    if data is None and response.text.strip() and (
        not content_type or content_type.startswith("text/")
    ):
        return response.text.strip()

    return f"Request failed with status code {response.status_code}"


class ReservationClient:
    """Typed operations against ``{base_url}`` for a single tenant.

    Usage::

        async with ReservationClient(settings.api_base_url, tenant.api_key) as client:
            refs = await client.search_reservations(phone="+33612345678")
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Basic {api_key}",
                "Accept": "application/json",
            },
        )
        # Restaurant identity does not change during a call
        self._restaurant: Optional[RestaurantInfo] = None

    async def __aenter__(self) -> "ReservationClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            response = await self._http.request(method, path, json=json)
        except httpx.TimeoutException:
            logger.warning("%s %s timed out after %ss", method, path, self._timeout)
            raise BackendError(
                f"The reservation system did not respond within {self._timeout:g} seconds."
            ) from None
        except httpx.HTTPError as exc:
            logger.warning("%s %s transport error: %s", method, path, exc)
            raise BackendError(
                "The reservation system could not be reached. Please try again."
            ) from exc

        if not response.is_success:
            message = error_message_from_response(response)
            logger.info("%s %s -> %d: %s", method, path, response.status_code, message)
            raise BackendError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # ------------------------------------------------------------------
    # Reservation operations (exposed to the model through tools)
    # ------------------------------------------------------------------

    async def check_availability(
        self, date: str, party_size: int, time: str | None = None,
    ) -> AvailabilityResult:
        """Ask for open slots on ``date`` for ``party_size`` people."""
        payload: dict[str, Any] = {
            "date": check_date(date),
            "numberOfPeople": check_party_size(party_size),
        }
        if time is not None:
            payload["time"] = check_time(time)

        data = await self._request("POST", "/reservations/check-availability", json=payload)
        if isinstance(data, dict):
            return AvailabilityResult(description=str(data.get("description", "")), raw=data)
        return AvailabilityResult(description=str(data or ""))

    async def search_reservations(
        self,
        phone: str | None = None,
        email: str | None = None,
        date: str | None = None,
        customer_name: str | None = None,
    ) -> list[ReservationRef]:
        """Forward any subset of filters; the backend does the matching."""
        filters = {
            "phone": phone,
            "email": email,
            "date": date,
            "customerName": customer_name,
        }
        payload = {key: value for key, value in filters.items() if value is not None}

        data = await self._request("POST", "/reservations/search", json=payload)
        if isinstance(data, dict):
            items = data.get("reservations", data.get("items", []))
        else:
            items = data or []
        return [self._parse_ref(item) for item in items]

    async def get_reservation_by_id(self, booking_id: str) -> ReservationRef:
        booking_id = check_booking_id(booking_id)
        data = await self._request("GET", _booking_path(booking_id))
        if isinstance(data, dict):
            data = {"bookingId": booking_id, **data}
        return self._parse_ref(data)

    async def cancel_reservation(self, booking_id: str) -> CancelResult:
        """Cancel a booking.  Not idempotent: a second cancel is a backend error."""
        booking_id = check_booking_id(booking_id)
        data = await self._request("DELETE", _booking_path(booking_id))
        description = data.get("description") if isinstance(data, dict) else data
        return CancelResult(
            description=str(description or f"Reservation {booking_id} has been cancelled.")
        )

    async def make_reservation(
        self,
        *,
        date: str,
        time: str,
        party_size: int,
        name: str,
        phone: str,
        email: str,
        allergies: str | None = None,
        comments: str | None = None,
        room_id: str | None = None,
        offer_id: int | None = None,
    ) -> ReservationRef:
        payload: dict[str, Any] = {
            "date": check_date(date),
            "time": check_time(time),
            "numberOfCustomers": check_party_size(party_size),
            "name": name,
            "phone": phone,
            "email": email,
        }
        optional = {
            "allergies": allergies,
            "comments": comments,
            "roomId": room_id,
            "offerId": offer_id,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})

        data = await self._request("POST", "/reservations", json=payload)
        return self._parse_ref(data)

    async def update_reservation(self, booking_id: str, **changes: Any) -> ReservationRef:
        """Partially update a booking; only the given fields are sent."""
        booking_id = check_booking_id(booking_id)
        field_names = {
            "date": "date",
            "time": "time",
            "party_size": "numberOfCustomers",
            "name": "name",
            "phone": "phone",
            "email": "email",
            "allergies": "allergies",
            "comments": "comments",
            "room_id": "roomId",
            "offer_id": "offerId",
        }
        unknown = set(changes) - set(field_names)
        if unknown:
            raise ToolValidationError(f"Unknown reservation field(s): {', '.join(sorted(unknown))}")

        payload: dict[str, Any] = {}
        for key, value in changes.items():
            if value is None:
                continue
            if key == "date":
                check_date(value)
            elif key == "time":
                check_time(value)
            elif key == "party_size":
                check_party_size(value)
            payload[field_names[key]] = value
        if not payload:
            raise ToolValidationError("Provide at least one field to change")

        data = await self._request("PUT", _booking_path(booking_id), json=payload)
        if isinstance(data, dict):
            data = {"bookingId": booking_id, **data}
        return self._parse_ref(data)

    async def get_restaurant_profile(self) -> RestaurantInfo:
        """Return the tenant's restaurant, fetched at most once per client."""
        if self._restaurant is not None:
            return self._restaurant
        data = await self._request("GET", "/restaurants/me")
        if not isinstance(data, dict):
            raise BackendError("The reservation system returned an unexpected restaurant profile.")
        self._restaurant = _parse_model(RestaurantInfo, data, "restaurant profile")
        return self._restaurant

    # ------------------------------------------------------------------
    # Customer and call-record operations (used by the session, not the model)
    # ------------------------------------------------------------------

    async def upsert_customer(self, phone: str) -> CustomerProfile:
        """Register the caller as on-call and return their profile."""
        data = await self._request(
            "POST", "/customers/upsert", json={"phone": phone, "isOnCall": True},
        )
        if not isinstance(data, dict):
            raise BackendError("The reservation system returned an unexpected customer record.")
        return _parse_model(
            CustomerProfile, {**data, "phone": data.get("phone") or phone}, "customer record",
        )

    async def create_call(
        self, restaurant_id: str, customer_id: str | None, languages: list[str],
    ) -> str:
        payload: dict[str, Any] = {
            "restaurantId": restaurant_id,
            "languages": ",".join(languages),
        }
        if customer_id:
            payload["customerId"] = customer_id
        data = await self._request("POST", "/calls", json=payload)
        if not isinstance(data, dict) or not data.get("id"):
            raise BackendError("The reservation system did not return a call id.")
        return str(data["id"])

    async def add_transcript(self, call_id: str, entry: TranscriptEntry) -> None:
        await self._request(
            "POST",
            f"/calls/{quote(call_id, safe='')}/transcript",
            json={
                "speaker": entry.speaker.value,
                "contents": entry.contents,
                "wasInterupted": entry.was_interrupted,
                "time": entry.time.isoformat(),
            },
        )

    async def escalate_call(self, call_id: str) -> None:
        await self._request("POST", f"/calls/{quote(call_id, safe='')}/escalate", json={})

    async def end_call(self, call_id: str, status: CallStatus, languages: list[str]) -> None:
        await self._request(
            "POST",
            f"/calls/{quote(call_id, safe='')}/end",
            json={"languages": languages, "status": status.value},
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_ref(data: Any) -> ReservationRef:
        if not isinstance(data, dict) or not data.get("bookingId"):
            raise BackendError("The reservation system returned a reservation without a booking id.")
        return _parse_model(ReservationRef, data, "reservation")
