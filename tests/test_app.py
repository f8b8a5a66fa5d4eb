"""Tests for the HTTP surface, driven through FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from resto_agent.app import create_app

from conftest import CALLER, TENANT_NUMBER

ADMIN = {"Authorization": "Bearer secret"}


class FakeSettings:
    admin_api_key = "secret"
    debug = False


@pytest.fixture
def client(backend, registry, settings, store, call_control, monkeypatch):
    monkeypatch.setattr("resto_agent.auth.settings", FakeSettings())
    app = create_app(
        settings=settings,
        registry=registry,
        store=store,
        call_control=call_control,
        transport=backend.transport,
    )
    with TestClient(app) as c:
        yield c


def _start(client, called=TENANT_NUMBER):
    return client.post("/calls", json={"called_number": called, "caller_number": CALLER})


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert "uptime" in data


class TestCalls:
    def test_start_call(self, client):
        resp = _start(client)
        assert resp.status_code == 201
        data = resp.json()
        assert data["session"]["status"] == "ACTIVE"
        assert data["greeting"] == "Hey! You've got Miri Mary. How can I help you?"
        assert len(data["tools"]) == 10
        assert CALLER in data["instructions"]

    def test_unknown_tenant(self, client, store):
        resp = _start(client, called="+33000000000")
        assert resp.status_code == 404
        assert resp.json()["session"]["status"] == "FAILED"
        assert store.records[-1].status.value == "FAILED"

    def test_missing_called_number(self, client):
        resp = client.post("/calls", json={"caller_number": CALLER})
        assert resp.status_code == 422

    def test_tool_call_and_turns(self, client, backend):
        backend.on("POST", "/reservations/search", json=[
            {"bookingId": "bk_abc123xyz", "description": "Friday 19:00, 4 guests"},
        ])
        sid = _start(client).json()["session"]["session_id"]

        resp = client.post(f"/calls/{sid}/turns", json={
            "speaker": "USER", "contents": "I want to check my booking",
        })
        assert resp.json() == {"transcript_length": 1}

        resp = client.post(f"/calls/{sid}/tools/search_reservations", json={
            "arguments": {"phone": CALLER},
        })
        assert resp.status_code == 200
        assert "bk_abc123xyz" in resp.json()["result"]
        assert resp.json()["status"] == "ACTIVE"

    def test_validation_error_is_a_result(self, client):
        sid = _start(client).json()["session"]["session_id"]
        resp = client.post(f"/calls/{sid}/tools/cancel_reservation", json={"arguments": {}})
        assert resp.status_code == 200
        assert resp.json()["result"] == "error: booking_id is required"

    def test_end_call_then_conflict(self, client, call_control):
        sid = _start(client).json()["session"]["session_id"]
        resp = client.post(f"/calls/{sid}/tools/end_call", json={})
        assert resp.json()["status"] == "COMPLETED"
        assert call_control.requests[-1][0] == "hang_up"

        resp = client.post(f"/calls/{sid}/tools/search_reservations", json={"arguments": {}})
        assert resp.status_code == 409
        assert resp.json()["status"] == "COMPLETED"

        resp = client.post(f"/calls/{sid}/turns", json={"speaker": "USER", "contents": "hello?"})
        assert resp.status_code == 409

    def test_transfer(self, client):
        sid = _start(client).json()["session"]["session_id"]
        resp = client.post(f"/calls/{sid}/tools/transfer_to_manager", json={})
        assert resp.json()["status"] == "TRANSFERRED"
        resp = client.post(f"/calls/{sid}/tools/end_call", json={})
        assert resp.status_code == 409

    def test_disconnect(self, client):
        sid = _start(client).json()["session"]["session_id"]
        resp = client.post(f"/calls/{sid}/disconnect")
        assert resp.json()["status"] == "FAILED"
        assert resp.json()["failure_reason"] == "Caller disconnected"

    def test_unknown_session(self, client):
        resp = client.post("/calls/nope/tools/end_call", json={})
        assert resp.status_code == 404


class TestAdminApi:
    def test_list_requires_token(self, client):
        assert client.get("/api/sessions").status_code == 401
        assert client.get("/api/sessions", headers={"Authorization": "Bearer x"}).status_code == 401

    def test_list_and_detail(self, client):
        sid = _start(client).json()["session"]["session_id"]
        client.post(f"/calls/{sid}/turns", json={"speaker": "USER", "contents": "Hi"})

        data = client.get("/api/sessions", headers=ADMIN).json()
        assert data["count"] == 1
        assert data["sessions"][0]["session_id"] == sid

        detail = client.get(f"/api/sessions/{sid}", headers=ADMIN).json()
        assert detail["transcript"][0]["contents"] == "Hi"
        assert len(detail["tools"]) == 10

    def test_detail_unknown(self, client):
        assert client.get("/api/sessions/nope", headers=ADMIN).status_code == 404

    def test_event_stream_replays_history(self, client):
        sid = _start(client).json()["session"]["session_id"]
        client.post(f"/calls/{sid}/turns", json={"speaker": "AGENT", "contents": "Bye!"})
        client.post(f"/calls/{sid}/tools/end_call", json={})

        with client.websocket_connect(f"/api/sessions/{sid}/events?token=secret") as ws:
            types = [ws.receive_json()["type"] for _ in range(4)]
        assert types == ["turn", "tool_call", "tool_result", "session_end"]

    def test_event_stream_rejects_bad_token(self, client):
        sid = _start(client).json()["session"]["session_id"]
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"/api/sessions/{sid}/events?token=wrong") as ws:
                ws.receive_json()
