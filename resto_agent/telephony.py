"""Telephony control: hanging up and transferring the physical call.

The session never talks to the telephony provider directly; it is handed a
``CallControl`` at construction.  The process builds exactly one at startup
and passes it to every session.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from resto_agent.phone import redact_pii

log = logging.getLogger("resto_agent.telephony")


class CallControl(ABC):
    """Abstract interface to the media/telephony runtime."""

    @abstractmethod
    async def hang_up(self, session_id: str) -> None:
        """Disconnect the caller."""

    @abstractmethod
    async def transfer(self, session_id: str, phone_number: str) -> None:
        """Hand the caller over to ``phone_number``."""

    async def set_language(self, session_id: str, language: str) -> None:
        """Switch the speech voice to ``language`` (an ISO 639-1 code).

        Runtimes with a single voice can ignore this.
        """


class LoggingCallControl(CallControl):
    """Records requests and logs them.

    Used when the telephony runtime drives hang-up and transfer itself by
    watching session status (e.g. through ``/api/sessions/{id}/events``).
    """

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, str]] = []

    async def hang_up(self, session_id: str) -> None:
        log.info("Hang-up requested for session %s", session_id)
        self.requests.append(("hang_up", session_id, ""))

    async def transfer(self, session_id: str, phone_number: str) -> None:
        log.info("Transfer requested for session %s to %s", session_id, redact_pii(phone_number))
        self.requests.append(("transfer", session_id, phone_number))

    async def set_language(self, session_id: str, language: str) -> None:
        log.info("Language %s requested for session %s", language, session_id)
        self.requests.append(("language", session_id, language))
