"""Per-call session: the state machine behind one restaurant phone call.

Each inbound call gets a CallSession that:
  1. Resolves the tenant from the dialed number and opens its backend client
  2. Reads the caller's profile and renders the agent instructions
  3. Exposes the tool set to the model runtime and runs invocations one at a
     time, recording every outcome in the transcript
  4. Moves from ACTIVE to exactly one terminal status (COMPLETED, FAILED or
     TRANSFERRED) and persists the finished record once

Anything that arrives after the terminal transition raises
SessionClosedError.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import httpx

from resto_agent.backend.client import ReservationClient
from resto_agent.config import Settings
from resto_agent.context import render_instructions
from resto_agent.errors import (
    BackendError,
    ErrorKind,
    SessionClosedError,
    TenantNotFoundError,
    ToolResult,
)
from resto_agent.events import SessionEvents
from resto_agent.models.call import CallRecord, CallStatus, Speaker
from resto_agent.models.customer import CustomerProfile
from resto_agent.phone import normalize_phone_number, redact_pii
from resto_agent.prompts import AGENT_INSTRUCTIONS, GREETING
from resto_agent.telephony import CallControl
from resto_agent.tenants import TenantConfig, TenantRegistry
from resto_agent.tools import BaseTool, SessionContext, build_toolset
from resto_agent.transcript import Transcript, TranscriptStore

log = logging.getLogger("resto_agent.session")


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "CallSession"] = {}
# Recently ended sessions, so late requests get "ended" rather than "unknown"
_ended_sessions: dict[str, "CallSession"] = {}
_MAX_ENDED_SESSIONS = 256


def register_session(session: "CallSession") -> str:
    """Register a session and return its ID."""
    _active_sessions[session.session_id] = session
    log.info("Session registered: %s", session.session_id)
    return session.session_id


def unregister_session(session_id: str) -> None:
    """Move a session from the active registry to the ended list."""
    session = _active_sessions.pop(session_id, None)
    if session is not None:
        _ended_sessions[session_id] = session
        while len(_ended_sessions) > _MAX_ENDED_SESSIONS:
            _ended_sessions.pop(next(iter(_ended_sessions)))
    log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "CallSession"]:
    """Return all active sessions."""
    return _active_sessions


def get_session(session_id: str) -> "CallSession | None":
    """Look up a session by ID, active or recently ended."""
    return _active_sessions.get(session_id) or _ended_sessions.get(session_id)


class CallSession:
    """One phone call's conversation with the reservation agent.

    Typical lifecycle::

        session = await start_call("+33753549003", "+33612345678",
                                   registry=registry, settings=settings,
                                   store=store, call_control=control)
        # → model runtime receives session.instructions and session.tool_specs()

        while not session.is_done:
            await session.record_turn(Speaker.USER, caller_text)
            result = await session.invoke_tool(name, arguments)
    """

    def __init__(
        self,
        *,
        session_id: str,
        caller_number: str,
        store: TranscriptStore,
        call_control: CallControl,
        tenant: Optional[TenantConfig] = None,
        client: Optional[ReservationClient] = None,
        customer: Optional[CustomerProfile] = None,
        tools: Optional[dict[str, BaseTool]] = None,
        require_lookup_before_cancel: bool = True,
        languages: Iterable[str] = (),
        restaurant_id: Optional[str] = None,
        instructions: str = "",
        greeting: str = "",
    ) -> None:
        self._session_id = session_id
        self._caller_number = caller_number
        self._store = store
        self._call_control = call_control
        self._tenant = tenant
        self._client = client
        self._customer = customer
        self._tools: dict[str, BaseTool] = dict(tools or {})
        self._languages = list(languages)
        self._restaurant_id = restaurant_id
        self.instructions = instructions
        self.greeting = greeting

        self._ctx: Optional[SessionContext] = None
        if tenant is not None and client is not None:
            self._ctx = SessionContext(
                tenant=tenant,
                client=client,
                session=self,
                require_lookup_before_cancel=require_lookup_before_cancel,
            )

        self._status = CallStatus.ACTIVE
        self._failure_reason = ""
        self._escalation_requested = False
        self._started_at = datetime.now(timezone.utc)
        self._ended_at: Optional[datetime] = None
        self._transcript = Transcript()
        self._known_bookings: set[str] = set()

        # Set by terminal tools; applied after their result is recorded
        self._pending_end: Optional[CallStatus] = None
        # Status being applied while call control hangs up or transfers
        self._ending: Optional[CallStatus] = None
        self._finalized = False
        self._lock = asyncio.Lock()
        self.events = SessionEvents(session_id)

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def status(self) -> CallStatus:
        return self._status

    @property
    def is_done(self) -> bool:
        return self._status.is_terminal

    @property
    def escalation_requested(self) -> bool:
        return self._escalation_requested

    @property
    def failure_reason(self) -> str:
        return self._failure_reason

    @property
    def tenant(self) -> Optional[TenantConfig]:
        return self._tenant

    @property
    def client(self) -> Optional[ReservationClient]:
        return self._client

    @property
    def customer(self) -> Optional[CustomerProfile]:
        return self._customer

    @property
    def transcript(self) -> Transcript:
        return self._transcript

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def ended_at(self) -> Optional[datetime]:
        return self._ended_at

    @property
    def languages(self) -> list[str]:
        return list(self._languages)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def tool_specs(self) -> list[dict]:
        """Tool schemas in the function-calling format the model runtime expects."""
        return [tool.to_openai_schema() for tool in self._tools.values()]

    async def invoke_tool(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        """Run one tool call and return the text the model should see.

        Invocations are serialized; each one appends exactly one AGENT entry
        to the transcript.  If the session ends while the tool is running,
        the outcome is discarded and SessionClosedError is raised.
        """
        self._ensure_active(f"tool {name!r}")
        async with self._lock:
            # An earlier invocation may have ended the call while we waited
            self._ensure_active(f"tool {name!r}")

            tool = self._tools.get(name)
            self.events.tool_called(self._status.value, name, arguments)
            if tool is None:
                result = ToolResult.failure(
                    ErrorKind.VALIDATION,
                    f"Unknown tool {name!r}. Available tools: {', '.join(self._tools)}",
                )
            else:
                log.info("Session %s calling tool %s", self._session_id, name)
                result = await tool.run(self._ctx, arguments)

            if self.is_done:
                log.warning("Session %s ended while %s was running; result discarded",
                            self._session_id, name)
                self.events.tool_finished(self._status.value, name, None)
                raise SessionClosedError(
                    f"Session {self._session_id} ended while {name!r} was running"
                )

            text = result.to_text()
            self._transcript.append(Speaker.AGENT, f"[{name}] {text}")
            self.events.tool_finished(self._status.value, name, result)
            if not result.ok:
                log.info("Tool %s returned %s error: %s", name, result.error.value, result.message)

            if self._pending_end is not None:
                await self._apply_pending_end()
            return text

    async def record_turn(
        self, speaker: Speaker, contents: str, was_interrupted: bool = False,
    ) -> None:
        """Append one spoken turn to the transcript."""
        self._ensure_active("turn")
        entry = self._transcript.append(speaker, contents, was_interrupted)
        self.events.turn_recorded(self._status.value, entry)

    def remember_bookings(self, booking_ids: Iterable[str]) -> None:
        """Mark booking ids as looked up during this call."""
        self._known_bookings.update(booking_ids)

    def knows_booking(self, booking_id: str) -> bool:
        return booking_id in self._known_bookings

    def request_end(self) -> None:
        """Ask for a normal end once the current tool result is recorded."""
        self._ensure_active("end request")
        if self._pending_end is None:
            self._pending_end = CallStatus.COMPLETED

    def request_transfer(self) -> None:
        """Flag an escalation and ask for a transfer to the manager."""
        self._ensure_active("transfer request")
        self._escalation_requested = True
        self._pending_end = CallStatus.TRANSFERRED

    async def switch_language(self, language: str) -> None:
        """Speak ``language`` from now on and report it on the call record."""
        self._ensure_active("language switch")
        await self._call_control.set_language(self._session_id, language)
        if language not in self._languages:
            self._languages.append(language)
        log.info("Session %s switched to %s", self._session_id, language)
        self.events.language_switched(self._status.value, language, self._languages)

    async def fail(self, reason: str) -> None:
        """Abort the call after an unrecoverable infrastructure failure."""
        self._ensure_active("failure")
        log.error("Session %s failed: %s", self._session_id, reason)
        await self._finalize(CallStatus.FAILED, reason)

    async def disconnect(self) -> None:
        """The caller hung up.

        FAILED, unless a terminal tool already decided how the call ends: the
        leg usually drops while call control is still hanging up or
        transferring, and that ending stands.
        """
        if self.is_done:
            return
        if self._ending is not None:
            log.info("Session %s disconnected while ending as %s",
                     self._session_id, self._ending.value)
            await self._finalize(self._ending)
            return
        log.info("Session %s disconnected by caller", self._session_id)
        await self._finalize(CallStatus.FAILED, "Caller disconnected")

    def to_record(self) -> CallRecord:
        return CallRecord(
            session_id=self._session_id,
            tenant_id=self._tenant.tenant_id if self._tenant else None,
            restaurant_id=self._restaurant_id,
            customer_phone=self._customer.phone if self._customer else self._caller_number,
            customer_id=self._customer.customer_id if self._customer else None,
            started_at=self._started_at,
            ended_at=self._ended_at,
            status=self._status,
            escalation_requested=self._escalation_requested,
            failure_reason=self._failure_reason,
            languages=list(self._languages),
            transcript=self._transcript.entries,
        )

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API.

        With detail=False: summary suitable for listing.
        With detail=True: adds the transcript and the event log.
        """
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "tenant_id": self._tenant.tenant_id if self._tenant else None,
            "customer_phone": redact_pii(self._customer.phone if self._customer else self._caller_number),
            "status": self._status.value,
            "escalation_requested": self._escalation_requested,
            "languages": list(self._languages),
            "started_at": self._started_at.isoformat(),
            "ended_at": self._ended_at.isoformat() if self._ended_at else None,
            "transcript_length": len(self._transcript),
        }
        if self._failure_reason:
            d["failure_reason"] = self._failure_reason
        if detail:
            d["tools"] = self.tool_names
            d["transcript"] = [entry.model_dump(mode="json") for entry in self._transcript]
            d["event_log"] = self.events.event_log
        return d

    # ── Internal: termination ─────────────────────────────────

    def _ensure_active(self, what: str) -> None:
        if self.is_done:
            raise SessionClosedError(
                f"Session {self._session_id} is {self._status.value}; {what} rejected"
            )

    async def _apply_pending_end(self) -> None:
        """Drive the telephony side for a terminal tool, then finalize."""
        status = self._pending_end
        self._pending_end = None
        self._ending = status
        try:
            if status is CallStatus.TRANSFERRED:
                manager = self._tenant.manager_phone_number if self._tenant else ""
                if manager:
                    await self._call_control.transfer(self._session_id, manager)
                else:
                    log.warning("No manager number for tenant %s; hanging up instead",
                                self._tenant.tenant_id if self._tenant else "?")
                    await self._call_control.hang_up(self._session_id)
            else:
                await self._call_control.hang_up(self._session_id)
        except Exception as e:
            log.exception("Call control failed for session %s", self._session_id)
            await self._finalize(CallStatus.FAILED, f"Call control failed: {e}")
            return
        await self._finalize(status)

    async def _finalize(self, status: CallStatus, reason: str = "") -> None:
        """Enter a terminal status and persist the call.  Runs at most once."""
        if self._finalized:
            return
        self._finalized = True
        self._status = status
        self._failure_reason = reason
        self._ended_at = datetime.now(timezone.utc)
        log.info("Session %s ended: %s%s", self._session_id, status.value,
                 f" ({reason})" if reason else "")

        record = self.to_record()
        try:
            await self._store.save(record)
        except Exception:
            log.exception("Could not persist call %s", self._session_id)
        finally:
            if self._client is not None:
                await self._client.aclose()

        self.events.session_ended(record)
        unregister_session(self._session_id)


# ── Factory ──────────────────────────────────────────────────────


async def start_call(
    called_number: str,
    caller_number: str,
    *,
    registry: TenantRegistry,
    settings: Settings,
    store: TranscriptStore,
    call_control: CallControl,
    transport: httpx.AsyncBaseTransport | None = None,
) -> CallSession:
    """Create, register and return the session for a new inbound call.

    An unknown ``called_number`` yields a session that is already FAILED:
    no client is built, no tool is registered, and the record is persisted.
    """
    session_id = secrets.token_urlsafe(18)
    log.info("Inbound call %s to %s from %s", session_id, called_number, redact_pii(caller_number))

    try:
        tenant = registry.resolve(called_number)
    except TenantNotFoundError as e:
        log.warning("Rejecting call %s: %s", session_id, e)
        session = CallSession(
            session_id=session_id,
            caller_number=caller_number,
            store=store,
            call_control=call_control,
            languages=settings.language_list,
        )
        register_session(session)
        await session._finalize(CallStatus.FAILED, str(e))
        return session

    client = ReservationClient(
        settings.api_base_url,
        tenant.api_key,
        timeout=settings.backend_timeout_seconds,
        transport=transport,
    )

    try:
        customer = await _load_customer(client, caller_number)

        restaurant_name = None
        restaurant_id = None
        try:
            restaurant = await client.get_restaurant_profile()
            restaurant_name = restaurant.name or None
            restaurant_id = restaurant.id or None
        except BackendError as e:
            log.warning("Restaurant profile unavailable for tenant %s: %s",
                        tenant.tenant_id, e.message)

        now = datetime.now(timezone.utc)
        session = CallSession(
            session_id=session_id,
            caller_number=caller_number,
            store=store,
            call_control=call_control,
            tenant=tenant,
            client=client,
            customer=customer,
            tools=build_toolset(),
            require_lookup_before_cancel=settings.require_lookup_before_cancel,
            languages=settings.language_list,
            restaurant_id=restaurant_id,
            instructions=render_instructions(
                AGENT_INSTRUCTIONS, now=now, customer=customer, restaurant_name=restaurant_name,
            ),
            greeting=render_instructions(
                GREETING, now=now, customer=customer, restaurant_name=restaurant_name,
            ),
        )
    except BaseException:
        # No session owns the client yet
        await client.aclose()
        raise
    register_session(session)
    log.info("Session %s active for tenant %s", session_id, tenant.tenant_id)
    return session


async def _load_customer(client: ReservationClient, caller_number: str) -> CustomerProfile:
    """Read the caller's profile, falling back to a first-call profile."""
    phone = normalize_phone_number(caller_number) if caller_number else ""
    if not phone:
        return CustomerProfile(phone="unknown", number_of_calls=1)
    try:
        return await client.upsert_customer(phone)
    except BackendError as e:
        log.warning("Customer profile unavailable for %s: %s", redact_pii(phone), e.message)
        return CustomerProfile(phone=phone, number_of_calls=1)
