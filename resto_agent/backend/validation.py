"""Argument checks shared by the backend client and the tool argument models.

Every check raises :class:`ToolValidationError` with a message the model can
act on, and runs before any network request is made.
"""

from __future__ import annotations

import re
from datetime import datetime

from resto_agent.errors import ToolValidationError

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def check_date(value: str, field: str = "date") -> str:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ToolValidationError(f"{field} must be a date in YYYY-MM-DD format, got {value!r}")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ToolValidationError(f"{field} {value!r} is not a real calendar date") from None
    return value


def check_time(value: str, field: str = "time") -> str:
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ToolValidationError(
            f"{field} must be a 24-hour time in HH:MM format (00:00 to 23:59), got {value!r}"
        )
    return value


def check_party_size(value: int, field: str = "party_size") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ToolValidationError(f"{field} must be a whole number of people, got {value!r}")
    if value <= 0:
        raise ToolValidationError(f"{field} must be at least 1, got {value}")
    return value


def check_booking_id(value: str, field: str = "booking_id") -> str:
    if not isinstance(value, str) or not value.strip():
        raise ToolValidationError(f"{field} is required")
    return value.strip()
