"""Phone number canonicalization and PII redaction helpers."""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_phone_number(phone_number: str) -> str:
    """Normalize a phone number to international ``+33`` form where possible.

    Spaces, dashes, dots and parentheses are stripped.  ``00`` international
    prefixes, French national numbers (leading ``0``) and ``33``-prefixed
    numbers missing the ``+`` are rewritten.  Anything else is returned
    stripped but otherwise unchanged.

    >>> normalize_phone_number("06 12 34 56 78")
    '+33612345678'
    >>> normalize_phone_number("+31 6 1234 5678")
    '+31612345678'
    """
    if not phone_number:
        return phone_number

    normalized = _SEPARATORS.sub("", phone_number).strip()

    if normalized.startswith("00"):
        normalized = "+" + normalized[2:]
    elif normalized.startswith("0"):
        normalized = "+33" + normalized[1:]
    elif normalized.startswith("33") and len(normalized) >= 11:
        normalized = "+" + normalized

    return normalized


def redact_pii(value: str) -> str:
    """Mask PII for logging: show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]
