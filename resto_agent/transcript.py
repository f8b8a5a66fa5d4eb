"""Transcript accumulation and end-of-call persistence.

A session appends speaker turns to its ``Transcript`` while the call is
live.  When the session ends, the finished ``CallRecord`` is handed to a
``TranscriptStore`` exactly once.  Stores must not raise: a persistence
failure is logged and never changes the call's outcome.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterator

import httpx

from resto_agent.backend.client import DEFAULT_TIMEOUT_SECONDS, ReservationClient
from resto_agent.errors import BackendError, TenantNotFoundError
from resto_agent.models.call import CallRecord, Speaker, TranscriptEntry
from resto_agent.tenants import TenantRegistry

log = logging.getLogger("resto_agent.transcript")


class Transcript:
    """Append-only, ordered list of speaker turns."""

    def __init__(self) -> None:
        self._entries: list[TranscriptEntry] = []

    def append(
        self, speaker: Speaker, contents: str, was_interrupted: bool = False,
    ) -> TranscriptEntry:
        entry = TranscriptEntry(
            speaker=speaker,
            contents=contents,
            was_interrupted=was_interrupted,
            time=datetime.now(timezone.utc),
        )
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> list[TranscriptEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(list(self._entries))


class TranscriptStore(ABC):
    """Destination for finished call records."""

    @abstractmethod
    async def save(self, record: CallRecord) -> None:
        ...


class InMemoryTranscriptStore(TranscriptStore):
    """Keeps records in process memory, newest last."""

    def __init__(self) -> None:
        self.records: list[CallRecord] = []

    async def save(self, record: CallRecord) -> None:
        self.records.append(record)
        log.info("Stored call record %s (%s, %d entries)",
                 record.session_id, record.status.value, len(record.transcript))

    def get(self, session_id: str) -> CallRecord | None:
        for record in reversed(self.records):
            if record.session_id == session_id:
                return record
        return None


class BackendTranscriptStore(TranscriptStore):
    """Persists records through the tenant's own reservation backend.

    Creates the call, posts every transcript entry in order, flags the
    escalation if one was requested, then closes the call with its final
    status.  Entry failures are logged and skipped so one bad entry does not
    lose the rest of the transcript.
    """

    def __init__(
        self,
        registry: TenantRegistry,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._registry = registry
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport

    async def save(self, record: CallRecord) -> None:
        if not record.tenant_id:
            log.warning("Call %s has no tenant; record not persisted", record.session_id)
            return
        try:
            tenant = self._registry.by_tenant_id(record.tenant_id)
        except TenantNotFoundError:
            log.warning("Tenant %s no longer configured; call %s not persisted",
                        record.tenant_id, record.session_id)
            return

        async with ReservationClient(
            self._base_url, tenant.api_key, timeout=self._timeout, transport=self._transport,
        ) as client:
            try:
                call_id = await client.create_call(
                    record.restaurant_id or tenant.tenant_id,
                    record.customer_id,
                    record.languages,
                )
            except BackendError as e:
                log.error("Could not create call record for %s: %s", record.session_id, e.message)
                return

            failed = 0
            for entry in record.transcript:
                try:
                    await client.add_transcript(call_id, entry)
                except BackendError as e:
                    failed += 1
                    log.warning("Transcript entry for call %s not saved: %s", call_id, e.message)

            if record.escalation_requested:
                try:
                    await client.escalate_call(call_id)
                except BackendError as e:
                    log.warning("Escalation for call %s not logged: %s", call_id, e.message)

            try:
                await client.end_call(call_id, record.status, record.languages)
            except BackendError as e:
                log.warning("Call %s not closed on the backend: %s", call_id, e.message)

        log.info("Persisted call %s as %s (%d/%d entries)", call_id, record.status.value,
                 len(record.transcript) - failed, len(record.transcript))
