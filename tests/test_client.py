"""Tests for ReservationClient: requests, error normalization and caching."""

import json

import httpx
import pytest

from resto_agent.backend import ReservationClient, error_message_from_response
from resto_agent.errors import BackendError, ToolValidationError
from resto_agent.models.call import CallStatus, Speaker, TranscriptEntry

from conftest import BACKEND_URL, CALLER


@pytest.fixture
async def client(backend):
    async with ReservationClient(
        BACKEND_URL + "/api", "test-key", transport=backend.transport,
    ) as c:
        yield c


def _body(request: httpx.Request) -> dict:
    return json.loads(request.content)


class TestErrorMessage:
    def test_prefers_message_field(self):
        response = httpx.Response(400, json={"message": "Date is in the past", "error": "Bad"})
        assert error_message_from_response(response) == "Date is in the past"

    def test_joins_message_list(self):
        response = httpx.Response(400, json={"message": ["date is invalid", "time is invalid"]})
        assert error_message_from_response(response) == "date is invalid; time is invalid"

    def test_json_string_body(self):
        response = httpx.Response(409, json="Reservation already cancelled")
        assert error_message_from_response(response) == "Reservation already cancelled"

    def test_text_body(self):
        response = httpx.Response(502, text="Bad gateway upstream")
        assert error_message_from_response(response) == "Bad gateway upstream"

    def test_generic_fallback(self):
        assert error_message_from_response(httpx.Response(500)) == (
            "Request failed with status code 500"
        )

    def test_json_without_message(self):
        response = httpx.Response(500, json={"error": "boom"})
        assert error_message_from_response(response) == "Request failed with status code 500"


class TestTransport:
    async def test_sends_basic_auth_header(self, client, backend):
        await client.get_restaurant_profile()
        request = backend.requests[0]
        assert request.headers["Authorization"] == "Basic test-key"
        assert str(request.url) == BACKEND_URL + "/api/restaurants/me"

    async def test_non_2xx_raises_backend_error(self, client, backend):
        backend.on("GET", "/reservations/bk_1", status=404, json={"message": "Booking not found"})
        with pytest.raises(BackendError) as exc_info:
            await client.get_reservation_by_id("bk_1")
        assert exc_info.value.message == "Booking not found"
        assert exc_info.value.status_code == 404

    async def test_timeout(self, backend):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        backend.on("GET", "/restaurants/me", slow)
        async with ReservationClient(
            BACKEND_URL + "/api", "k", timeout=10, transport=backend.transport,
        ) as c:
            with pytest.raises(BackendError, match="within 10 seconds"):
                await c.get_restaurant_profile()

    async def test_connection_error(self, client, backend):
        def down(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend.on("POST", "/reservations/search", down)
        with pytest.raises(BackendError, match="could not be reached"):
            await client.search_reservations(phone=CALLER)

    async def test_errors_are_not_retried(self, client, backend):
        backend.on("POST", "/reservations/search", status=503, json={"message": "Maintenance"})
        with pytest.raises(BackendError):
            await client.search_reservations(phone=CALLER)
        assert len(backend.calls_to("POST", "/reservations/search")) == 1


class TestCheckAvailability:
    async def test_payload(self, client, backend):
        backend.on("POST", "/reservations/check-availability", json={
            "description": "Available at 19:00 and 19:30.", "slots": ["19:00", "19:30"],
        })
        result = await client.check_availability("2025-10-25", 4, time="19:00")
        assert result.description == "Available at 19:00 and 19:30."
        assert result.raw["slots"] == ["19:00", "19:30"]
        assert _body(backend.requests[0]) == {
            "date": "2025-10-25", "numberOfPeople": 4, "time": "19:00",
        }

    async def test_time_is_optional(self, client, backend):
        backend.on("POST", "/reservations/check-availability", json={"description": "Open"})
        await client.check_availability("2025-10-25", 2)
        assert "time" not in _body(backend.requests[0])

    async def test_rejects_malformed_time_before_request(self, client, backend):
        with pytest.raises(ToolValidationError, match="HH:MM"):
            await client.check_availability(date="2025-10-25", time="25:00", party_size=4)
        assert backend.requests == []

    async def test_rejects_zero_party_size(self, client, backend):
        with pytest.raises(ToolValidationError, match="at least 1"):
            await client.check_availability(date="2025-10-25", time="19:00", party_size=0)
        assert backend.requests == []

    @pytest.mark.parametrize("date", ["25-10-2025", "2025-02-30", "tomorrow"])
    async def test_rejects_bad_date(self, client, backend, date):
        with pytest.raises(ToolValidationError):
            await client.check_availability(date=date, party_size=2)
        assert backend.requests == []


class TestSearch:
    async def test_phone_only(self, client, backend):
        backend.on("POST", "/reservations/search", json=[
            {"bookingId": "bk_abc123xyz", "description": "Friday 19:00, 4 guests"},
        ])
        refs = await client.search_reservations(phone=CALLER)
        assert [ref.booking_id for ref in refs] == ["bk_abc123xyz"]
        assert _body(backend.requests[0]) == {"phone": CALLER}

    async def test_empty_result(self, client, backend):
        backend.on("POST", "/reservations/search", json=[])
        assert await client.search_reservations(phone=CALLER) == []

    async def test_wrapped_result_and_all_filters(self, client, backend):
        backend.on("POST", "/reservations/search", json={
            "reservations": [{"bookingId": "bk_1", "description": "x"}],
        })
        refs = await client.search_reservations(
            phone=CALLER, email="a@b.c", date="2025-10-25", customer_name="Ann Lee",
        )
        assert len(refs) == 1
        assert _body(backend.requests[0]) == {
            "phone": CALLER, "email": "a@b.c", "date": "2025-10-25", "customerName": "Ann Lee",
        }

    async def test_no_filters(self, client, backend):
        backend.on("POST", "/reservations/search", json=[])
        await client.search_reservations()
        assert _body(backend.requests[0]) == {}


class TestCancel:
    async def test_success_returns_description(self, client, backend):
        backend.on("DELETE", "/reservations/bk_abc123xyz", json={
            "description": "Reservation for Friday 19:00 cancelled.",
        })
        result = await client.cancel_reservation("bk_abc123xyz")
        assert result.description == "Reservation for Friday 19:00 cancelled."

    async def test_empty_body_gets_default_description(self, client, backend):
        backend.on("DELETE", "/reservations/bk_1", lambda request: httpx.Response(204))
        result = await client.cancel_reservation("bk_1")
        assert result.description == "Reservation bk_1 has been cancelled."

    async def test_second_cancel_is_backend_error(self, client, backend):
        cancelled = set()

        def cancel(request):
            booking_id = request.url.path.rsplit("/", 1)[-1]
            if booking_id in cancelled:
                return httpx.Response(409, json={"message": "Reservation is already cancelled"})
            cancelled.add(booking_id)
            return httpx.Response(200, json={"description": "Cancelled."})

        backend.on("DELETE", "/reservations/bk_abc123xyz", cancel)
        await client.cancel_reservation("bk_abc123xyz")
        with pytest.raises(BackendError) as exc_info:
            await client.cancel_reservation("bk_abc123xyz")
        assert exc_info.value.message == "Reservation is already cancelled"
        assert exc_info.value.status_code == 409

    async def test_requires_booking_id(self, client, backend):
        with pytest.raises(ToolValidationError, match="booking_id is required"):
            await client.cancel_reservation("  ")
        assert backend.requests == []


class TestMakeAndUpdate:
    async def test_make_reservation_payload(self, client, backend):
        backend.on("POST", "/reservations", json={
            "bookingId": "bk_new", "description": "Saturday 20:00, 2 guests",
        })
        ref = await client.make_reservation(
            date="2025-10-25", time="20:00", party_size=2, name="Ann Lee",
            phone=CALLER, email="ann@example.com", allergies="nuts", offer_id=3,
        )
        assert ref.booking_id == "bk_new"
        assert _body(backend.requests[0]) == {
            "date": "2025-10-25",
            "time": "20:00",
            "numberOfCustomers": 2,
            "name": "Ann Lee",
            "phone": CALLER,
            "email": "ann@example.com",
            "allergies": "nuts",
            "offerId": 3,
        }

    async def test_make_reservation_without_booking_id_is_error(self, client, backend):
        backend.on("POST", "/reservations", json={"description": "ok"})
        with pytest.raises(BackendError, match="without a booking id"):
            await client.make_reservation(
                date="2025-10-25", time="20:00", party_size=2, name="A",
                phone=CALLER, email="a@b.c",
            )

    async def test_update_sends_only_changes(self, client, backend):
        backend.on("PUT", "/reservations/bk_1", json={"description": "Now 21:00"})
        ref = await client.update_reservation("bk_1", time="21:00", party_size=3)
        assert ref.booking_id == "bk_1"
        assert ref.description == "Now 21:00"
        assert _body(backend.requests[0]) == {"time": "21:00", "numberOfCustomers": 3}

    async def test_update_requires_a_change(self, client, backend):
        with pytest.raises(ToolValidationError, match="at least one field"):
            await client.update_reservation("bk_1")
        assert backend.requests == []

    async def test_update_rejects_unknown_field(self, client):
        with pytest.raises(ToolValidationError, match="seats"):
            await client.update_reservation("bk_1", seats=4)


class TestRestaurantProfile:
    async def test_cached_after_first_success(self, client, backend):
        first = await client.get_restaurant_profile()
        second = await client.get_restaurant_profile()
        assert first == second
        assert first.name == "Miri Mary"
        assert first.phone_number == "+31202339587"
        assert len(backend.calls_to("GET", "/restaurants/me")) == 1

    async def test_failure_is_not_cached(self, client, backend):
        responses = [
            httpx.Response(500, json={"message": "down"}),
            httpx.Response(200, json={"id": "r", "name": "Later"}),
        ]
        backend.on("GET", "/restaurants/me", lambda request: responses.pop(0))
        with pytest.raises(BackendError):
            await client.get_restaurant_profile()
        assert (await client.get_restaurant_profile()).name == "Later"

    async def test_cache_is_per_client(self, backend):
        for _ in range(2):
            async with ReservationClient(
                BACKEND_URL + "/api", "k", transport=backend.transport,
            ) as c:
                await c.get_restaurant_profile()
        assert len(backend.calls_to("GET", "/restaurants/me")) == 2


class TestCallRecords:
    async def test_upsert_customer(self, client, backend):
        profile = await client.upsert_customer(CALLER)
        assert profile.customer_id == "cust_1"
        assert profile.number_of_calls == 1
        assert _body(backend.requests[0]) == {"phone": CALLER, "isOnCall": True}

    async def test_call_lifecycle_requests(self, client, backend):
        from datetime import datetime, timezone

        call_id = await client.create_call("rest_1", "cust_1", ["en", "fr"])
        entry = TranscriptEntry(
            speaker=Speaker.USER, contents="Hi", was_interrupted=True,
            time=datetime(2025, 10, 25, 18, 0, tzinfo=timezone.utc),
        )
        await client.add_transcript(call_id, entry)
        await client.end_call(call_id, CallStatus.COMPLETED, ["en"])

        create, transcript, end = backend.requests
        assert _body(create) == {"restaurantId": "rest_1", "languages": "en,fr", "customerId": "cust_1"}
        assert _body(transcript)["wasInterupted"] is True
        assert _body(transcript)["speaker"] == "USER"
        assert _body(end) == {"languages": ["en"], "status": "COMPLETED"}


class TestUnexpectedPayloads:
    async def test_restaurant_null_fields_are_accepted(self, client, backend):
        backend.on("GET", "/restaurants/me", json={
            "id": "r1", "name": "X", "website": None, "information": None,
        })
        info = await client.get_restaurant_profile()
        assert info.name == "X"
        assert info.website is None

    async def test_unreadable_restaurant_is_backend_error(self, client, backend):
        backend.on("GET", "/restaurants/me", json={"id": "r1", "name": ["X"]})
        with pytest.raises(BackendError, match="unexpected restaurant profile"):
            await client.get_restaurant_profile()

    async def test_null_number_of_calls_is_backend_error(self, client, backend):
        backend.on("POST", "/customers/upsert", json={"id": "cust_1", "numberOfCalls": None})
        with pytest.raises(BackendError, match="unexpected customer record"):
            await client.upsert_customer(CALLER)

    async def test_null_reservation_description_is_backend_error(self, client, backend):
        backend.on("GET", "/reservations/bk_1", json={"description": None})
        with pytest.raises(BackendError, match="unexpected reservation"):
            await client.get_reservation_by_id("bk_1")
