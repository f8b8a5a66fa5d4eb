"""Per-tenant client for the external reservation backend."""

from .client import ReservationClient, error_message_from_response

__all__ = ["ReservationClient", "error_message_from_response"]
