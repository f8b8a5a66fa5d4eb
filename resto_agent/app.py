"""FastAPI application: the HTTP surface the voice runtime drives.

Endpoints:

  GET  /health                          Health check
  POST /calls                           Start a session for an inbound call
  POST /calls/{id}/tools/{name}         Run one tool invocation for the model
  POST /calls/{id}/turns                Record a spoken turn
  POST /calls/{id}/disconnect           The caller hung up
  GET  /api/sessions                    Admin: list active sessions
  GET  /api/sessions/{id}               Admin: session detail with transcript
  WS   /api/sessions/{id}/events        Admin: live event stream

The call flow:
  1. The telephony runtime answers and POSTs the dialed and caller numbers
  2. We return instructions, greeting and tool schemas for the model
  3. Every tool call the model makes is POSTed back here and answered with
     the text the model should read
  4. end_call / transfer_to_manager (or a disconnect) end the session
"""

from __future__ import annotations

# Load .env into os.environ before settings are read
from dotenv import load_dotenv
load_dotenv()

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from resto_agent.config import settings as default_settings

# Configure root logger early so all package loggers are visible when run
# via `uvicorn resto_agent.app:app`.
logging.basicConfig(
    level=getattr(logging, default_settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

import httpx
from fastapi import Depends, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from resto_agent.auth import require_admin_token, require_admin_ws
from resto_agent.config import Settings
from resto_agent.errors import SessionClosedError
from resto_agent.models.call import Speaker
from resto_agent.session import CallSession, get_active_sessions, get_session, start_call
from resto_agent.telephony import CallControl, LoggingCallControl
from resto_agent.tenants import TenantRegistry, load_registry
from resto_agent.transcript import BackendTranscriptStore, TranscriptStore

log = logging.getLogger("resto_agent.app")

_START_TIME = time.time()


class StartCallRequest(BaseModel):
    called_number: str = Field(min_length=1)
    caller_number: str = ""


class ToolCallRequest(BaseModel):
    arguments: dict[str, Any] = {}


class TurnRequest(BaseModel):
    speaker: Speaker
    contents: str
    was_interrupted: bool = False


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[TenantRegistry] = None,
    store: Optional[TranscriptStore] = None,
    call_control: Optional[CallControl] = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators not passed in are built from settings at startup.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for warning in settings.validate_startup():
            log.warning(warning)
        if app.state.registry is None:
            app.state.registry = load_registry(settings)
        if app.state.store is None:
            app.state.store = BackendTranscriptStore(
                app.state.registry,
                settings.api_base_url,
                timeout=settings.backend_timeout_seconds,
                transport=transport,
            )
        log.info("Ready: %d tenant(s), backend %s", len(app.state.registry), settings.api_base_url)
        yield

    app = FastAPI(
        title="Restaurant Voice Agent",
        description="Call orchestration for an AI restaurant phone agent",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.store = store
    app.state.call_control = call_control or LoggingCallControl()

    def _lookup(session_id: str) -> CallSession | JSONResponse:
        session = get_session(session_id)
        if session is None:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return session

    def _closed(session: CallSession, exc: SessionClosedError) -> JSONResponse:
        return JSONResponse(
            {"error": str(exc), "status": session.status.value}, status_code=409,
        )

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check: confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "active_sessions": len(get_active_sessions()),
        })

    # ── Call endpoints (voice runtime) ─────────────────────────

    @app.post("/calls")
    async def create_call(body: StartCallRequest) -> JSONResponse:
        """Start a session; unknown dialed numbers get 404 and a FAILED record."""
        session = await start_call(
            body.called_number,
            body.caller_number,
            registry=app.state.registry,
            settings=settings,
            store=app.state.store,
            call_control=app.state.call_control,
            transport=transport,
        )
        if session.is_done:
            return JSONResponse(
                {"error": session.failure_reason, "session": session.to_dict()},
                status_code=404,
            )
        return JSONResponse({
            "session": session.to_dict(),
            "instructions": session.instructions,
            "greeting": session.greeting,
            "tools": session.tool_specs(),
        }, status_code=201)

    @app.post("/calls/{session_id}/tools/{tool_name}")
    async def call_tool(session_id: str, tool_name: str, body: ToolCallRequest) -> JSONResponse:
        session = _lookup(session_id)
        if isinstance(session, JSONResponse):
            return session
        try:
            result = await session.invoke_tool(tool_name, body.arguments)
        except SessionClosedError as e:
            return _closed(session, e)
        return JSONResponse({"result": result, "status": session.status.value})

    @app.post("/calls/{session_id}/turns")
    async def record_turn(session_id: str, body: TurnRequest) -> JSONResponse:
        session = _lookup(session_id)
        if isinstance(session, JSONResponse):
            return session
        try:
            await session.record_turn(body.speaker, body.contents, body.was_interrupted)
        except SessionClosedError as e:
            return _closed(session, e)
        return JSONResponse({"transcript_length": len(session.transcript)})

    @app.post("/calls/{session_id}/disconnect")
    async def disconnect(session_id: str) -> JSONResponse:
        session = _lookup(session_id)
        if isinstance(session, JSONResponse):
            return session
        await session.disconnect()
        return JSONResponse(session.to_dict())

    # ── Admin session API ──────────────────────────────────────

    @app.get("/api/sessions", dependencies=[Depends(require_admin_token)])
    async def list_sessions() -> JSONResponse:
        """Return summary of all active call sessions."""
        sessions = get_active_sessions()
        return JSONResponse({
            "sessions": [s.to_dict() for s in sessions.values()],
            "count": len(sessions),
        })

    @app.get("/api/sessions/{session_id}", dependencies=[Depends(require_admin_token)])
    async def get_session_detail(session_id: str) -> JSONResponse:
        session = _lookup(session_id)
        if isinstance(session, JSONResponse):
            return session
        return JSONResponse(session.to_dict(detail=True))

    @app.websocket("/api/sessions/{session_id}/events")
    async def event_stream(
        websocket: WebSocket, session_id: str, authorized: bool = Depends(require_admin_ws),
    ) -> None:
        """Stream a session's events, starting with its history so far."""
        if not authorized:
            return
        session = get_session(session_id)
        if session is None:
            await websocket.close(code=4004, reason="Session not found")
            return

        await websocket.accept()
        queue = session.events.subscribe()
        try:
            for event in session.events.event_log:
                await websocket.send_json(event)
            if session.is_done:
                await websocket.close()
                return
            while True:
                event = await queue.get()
                await websocket.send_json(event)
                if event["type"] == "session_end":
                    await websocket.close()
                    return
        except WebSocketDisconnect:
            log.info("Event stream for %s closed by client", session_id)
        finally:
            session.events.unsubscribe(queue)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "resto_agent.app:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
        log_config=log_config,
    )
