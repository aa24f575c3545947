"""
Adapters layer - Booking storage, calendar and travel-time integrations.
"""

from .booking_store import JsonBookingStore
from .distance_matrix import GoogleDistanceMatrixClient
from .graph_authenticator import GraphAuthenticator
from .graph_client import GraphCalendarClient
from .mock_calendar_client import MockCalendarClient
from .static_travel import StaticTravelTimeProvider

__all__ = [
    "GoogleDistanceMatrixClient",
    "GraphAuthenticator",
    "GraphCalendarClient",
    "JsonBookingStore",
    "MockCalendarClient",
    "StaticTravelTimeProvider",
]
