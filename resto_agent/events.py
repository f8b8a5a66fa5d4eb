"""Live call monitoring: what happened on a call, as it happens.

Each CallSession owns a SessionEvents.  The session reports its milestones
through the typed helpers below (a tool was called, a tool answered, someone
spoke, the language changed, the call ended).  Every event is kept in the
session's log, so a late observer can replay the call, and is pushed to each
connected subscriber's asyncio.Queue for the admin WebSocket.

Payloads are shaped for an operator watching a call, not for persistence:
caller identifiers in tool arguments are masked and long texts are clipped.
The full transcript lives in the CallRecord.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Optional, TypedDict

from resto_agent.errors import ToolResult
from resto_agent.models.call import CallRecord, TranscriptEntry
from resto_agent.phone import redact_pii

log = logging.getLogger("resto_agent.events")

# Tool arguments that identify the caller
_PII_ARGUMENTS = frozenset({"phone", "email", "name", "customer_name"})
_MAX_TEXT = 200


class EventType(str, Enum):
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    TURN = "turn"
    LANGUAGE_SWITCH = "language_switch"
    SESSION_END = "session_end"


class SessionEvent(TypedDict):
    type: str
    timestamp: float
    session_id: str
    status: str        # call status when the event happened
    data: dict


def _clip(text: str) -> str:
    return text if len(text) <= _MAX_TEXT else text[:_MAX_TEXT - 3] + "..."


def mask_arguments(arguments: Any) -> Any:
    """Copy tool arguments with caller identifiers masked."""
    if not isinstance(arguments, dict):
        return arguments
    return {
        key: redact_pii(str(value)) if key in _PII_ARGUMENTS and value else value
        for key, value in arguments.items()
    }


class SessionEvents:
    """Event log and subscriber fan-out for one call."""

    def __init__(self, session_id: str, max_queue: int = 200) -> None:
        self._session_id = session_id
        self._max_queue = max_queue
        self._subscribers: list[asyncio.Queue[SessionEvent]] = []
        self._event_log: list[SessionEvent] = []

    # ── Call milestones ───────────────────────────────────────

    def tool_called(self, status: str, tool: str, arguments: Any) -> None:
        self.emit(EventType.TOOL_CALL, status, {
            "tool": tool,
            "arguments": mask_arguments(arguments),
        })

    def tool_finished(self, status: str, tool: str, result: Optional[ToolResult]) -> None:
        """Report a tool outcome; ``None`` means it arrived after the call ended."""
        if result is None:
            self.emit(EventType.TOOL_RESULT, status, {"tool": tool, "discarded": True})
            return
        self.emit(EventType.TOOL_RESULT, status, {
            "tool": tool,
            "ok": result.ok,
            "error": result.error.value if result.error else None,
            "message": _clip(result.message),
        })

    def turn_recorded(self, status: str, entry: TranscriptEntry) -> None:
        self.emit(EventType.TURN, status, {
            "speaker": entry.speaker.value,
            "contents": _clip(entry.contents),
            "was_interrupted": entry.was_interrupted,
        })

    def language_switched(self, status: str, language: str, languages: list[str]) -> None:
        self.emit(EventType.LANGUAGE_SWITCH, status, {
            "language": language,
            "languages": list(languages),
        })

    def session_ended(self, record: CallRecord) -> None:
        duration = None
        if record.ended_at is not None:
            duration = round((record.ended_at - record.started_at).total_seconds(), 1)
        self.emit(EventType.SESSION_END, record.status.value, {
            "reason": record.failure_reason,
            "escalation_requested": record.escalation_requested,
            "duration_seconds": duration,
            "transcript_length": len(record.transcript),
            "languages": list(record.languages),
        })

    # ── Fan-out ───────────────────────────────────────────────

    def subscribe(self) -> asyncio.Queue[SessionEvent]:
        """Create a new subscriber queue and return it."""
        q: asyncio.Queue[SessionEvent] = asyncio.Queue(maxsize=self._max_queue)
        self._subscribers.append(q)
        log.info("Monitor attached to session %s (total: %d)",
                 self._session_id, len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[SessionEvent]) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)
        log.info("Monitor detached from session %s (total: %d)",
                 self._session_id, len(self._subscribers))

    def emit(self, event_type: EventType | str, status: str, data: dict) -> SessionEvent:
        """Log an event and push it to every subscriber.

        A subscriber that falls ``max_queue`` events behind loses its oldest
        event rather than blocking the call.
        """
        event: SessionEvent = {
            "type": EventType(event_type).value,
            "timestamp": time.time(),
            "session_id": self._session_id,
            "status": status,
            "data": data,
        }
        self._event_log.append(event)

        for q in self._subscribers:
            if q.full():
                q.get_nowait()
            q.put_nowait(event)
        return event

    @property
    def event_log(self) -> list[SessionEvent]:
        return list(self._event_log)

    def events_of(self, event_type: EventType | str) -> list[SessionEvent]:
        kind = EventType(event_type).value
        return [event for event in self._event_log if event["type"] == kind]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
