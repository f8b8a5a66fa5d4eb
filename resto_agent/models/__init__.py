"""Data models for the call orchestration layer."""

from .call import CallRecord, CallStatus, Speaker, TranscriptEntry
from .customer import CustomerProfile
from .reservation import AvailabilityResult, CancelResult, ReservationRef, RestaurantInfo

__all__ = [
    "AvailabilityResult",
    "CallRecord",
    "CallStatus",
    "CancelResult",
    "CustomerProfile",
    "ReservationRef",
    "RestaurantInfo",
    "Speaker",
    "TranscriptEntry",
]
