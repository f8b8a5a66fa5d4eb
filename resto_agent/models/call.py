"""Pydantic models for call lifecycle and transcript records."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CallStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TRANSFERRED = "TRANSFERRED"

    @property
    def is_terminal(self) -> bool:
        return self is not CallStatus.ACTIVE


class Speaker(str, Enum):
    USER = "USER"
    AGENT = "AGENT"


class TranscriptEntry(BaseModel):
    """One speaker turn.  Entries are append-only and never reordered."""

    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    contents: str
    was_interrupted: bool = False
    time: datetime


class CallRecord(BaseModel):
    """Final snapshot of a call session, handed to the transcript store."""

    session_id: str
    tenant_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    customer_phone: str = ""
    customer_id: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: CallStatus
    escalation_requested: bool = False
    failure_reason: str = ""
    languages: list[str] = []
    transcript: list[TranscriptEntry] = []
