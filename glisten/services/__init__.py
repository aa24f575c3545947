"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .bookings import BookingRepositoryProtocol, BookingRequest, BookingService
from .scheduler import BookingStoreProtocol, CalendarClientProtocol, SchedulingService
from .travel import (
    AreaClusteringGate,
    TravelFeasibilityChecker,
    TravelTimeLookup,
    TravelTimeProviderProtocol,
)

__all__ = [
    "AreaClusteringGate",
    "BookingRepositoryProtocol",
    "BookingRequest",
    "BookingService",
    "BookingStoreProtocol",
    "CalendarClientProtocol",
    "SchedulingService",
    "TravelFeasibilityChecker",
    "TravelTimeLookup",
    "TravelTimeProviderProtocol",
]
