"""Shared fixtures: a fake reservation backend behind httpx.MockTransport."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from resto_agent import session as session_module
from resto_agent.config import Settings
from resto_agent.telephony import LoggingCallControl
from resto_agent.tenants import TenantConfig, TenantRegistry
from resto_agent.transcript import InMemoryTranscriptStore

BACKEND_URL = "http://backend.test"
TENANT_NUMBER = "+33753549003"
TENANT_ID = "353816f8-6c1e-4c3f-9a0e-2f1d7b5a9c41"
CALLER = "+33612345678"

Route = Callable[[httpx.Request], httpx.Response]


class FakeBackend:
    """Route table keyed by (method, path).  Unknown routes return 404."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Route] = {}
        self.on("POST", "/customers/upsert", json={
            "id": "cust_1", "phone": CALLER, "numberOfCalls": 1,
        })
        self.on("GET", "/restaurants/me", json={
            "id": "rest_1",
            "name": "Miri Mary",
            "information": "Open Tuesday to Sunday from 17:30.",
            "website": "https://mirimary.example",
            "restaurantPhoneNumber": "+31202339587",
        })
        self.on("POST", "/calls", json={"id": "call_1"})
        self.on("POST", "/calls/call_1/transcript", json={})
        self.on("POST", "/calls/call_1/escalate", json={})
        self.on("POST", "/calls/call_1/end", json={})

    def on(self, method: str, path: str, route: Route | None = None, *,
           json=None, status: int = 200) -> None:
        if route is None:
            def route(request: httpx.Request, status=status, json=json) -> httpx.Response:
                return httpx.Response(status, json=json)
        self.routes[(method, "/api" + path)] = route

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not found"})
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == "/api" + path]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def tenant() -> TenantConfig:
    return TenantConfig(
        tenant_id=TENANT_ID,
        inbound_phone_number=TENANT_NUMBER,
        api_key="test-key",
        manager_phone_number="+31202339587",
    )


@pytest.fixture
def registry(tenant) -> TenantRegistry:
    return TenantRegistry([tenant])


@pytest.fixture
def settings() -> Settings:
    return Settings(
        resto_api_url=BACKEND_URL,
        tenants_file="does-not-exist.jsonl",
        tenants_json="",
        admin_api_key="",
        debug=True,
        require_lookup_before_cancel=True,
        call_languages="en,fr",
    )


@pytest.fixture
def store() -> InMemoryTranscriptStore:
    return InMemoryTranscriptStore()


@pytest.fixture
def call_control() -> LoggingCallControl:
    return LoggingCallControl()


@pytest.fixture(autouse=True)
def _clear_session_registry():
    yield
    session_module._active_sessions.clear()
    session_module._ended_sessions.clear()
