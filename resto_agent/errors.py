"""Error taxonomy and the tagged result type returned by tools.

Four failure families exist during a call:

  * configuration -- missing backend URL, unknown inbound number.  Fatal to
    the call; the session is marked FAILED before any tool is registered.
  * validation    -- malformed tool arguments.  Returned to the model as a
    descriptive message; the session stays ACTIVE.
  * backend       -- non-2xx responses or transport failures.  Normalized to
    one message string and returned to the model as a tool failure.
  * closed session -- anything arriving after a terminal state.  This is a
    programming error in the caller and fails fast.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class RestoAgentError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(RestoAgentError):
    """Process or tenant configuration is missing or malformed."""


class TenantNotFoundError(ConfigurationError):
    """No tenant is configured for the inbound phone number."""

    def __init__(self, phone_number: str) -> None:
        super().__init__(f"No tenant configured for inbound number {phone_number!r}")
        self.phone_number = phone_number


class ToolValidationError(RestoAgentError):
    """Tool arguments were rejected before reaching the backend.

    ``str(exc)`` is written for the model: it names the offending field and
    what is expected, never an implementation detail.
    """


class BackendError(RestoAgentError):
    """The reservation backend failed or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SessionClosedError(RestoAgentError):
    """An operation was attempted on a session that already ended."""


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    BACKEND = "backend"
    PRECONDITION = "precondition"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool invocation: either ``ok`` with a payload, or an error.

    Tools never raise into the model runtime; they hand back one of these and
    the session renders it with :meth:`to_text`.
    """

    ok: bool
    message: str
    payload: Any = None
    error: ErrorKind | None = None

    @classmethod
    def success(cls, message: str, payload: Any = None) -> "ToolResult":
        return cls(ok=True, message=message, payload=payload)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ToolResult":
        return cls(ok=False, message=message, error=kind)

    def to_text(self) -> str:
        if self.ok:
            return self.message
        return f"error: {self.message}"
