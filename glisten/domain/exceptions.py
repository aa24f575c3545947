"""
Domain-specific exception hierarchy for the Glisten scheduler.
"""

from enum import Enum


class GlistenError(Exception):
    """Base class for all application-level errors."""


class CalendarAPIError(GlistenError):
    """Raised when calendar data cannot be fetched or parsed."""


class TravelTimeError(GlistenError):
    """Raised when a travel-time lookup cannot be completed."""


class BookingStoreError(GlistenError):
    """Raised when the booking store cannot be read or written."""


class BookingNotFoundError(BookingStoreError):
    """Raised when a booking id does not exist."""

    def __init__(self, booking_id: int):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class InvalidStatusTransition(GlistenError):
    """Raised when a booking cannot move to the requested status."""


class AuthenticationError(GlistenError):
    """Raised when authentication or token handling fails."""


class RejectionReason(str, Enum):
    """Closed set of reasons a booking request can be refused."""
    MISSING_FIELDS = "MISSING_FIELDS"
    OUTSIDE_WORKING_DAYS = "OUTSIDE_WORKING_DAYS"
    OUTSIDE_WORKING_HOURS = "OUTSIDE_WORKING_HOURS"
    OUT_OF_AREA_FOR_DAY = "OUT_OF_AREA_FOR_DAY"
    TIME_TAKEN = "TIME_TAKEN"
    TRAVEL_TOO_FAR = "TRAVEL_TOO_FAR"


class BookingValidationError(GlistenError):
    """Raised when a requested appointment is not feasible."""

    def __init__(self, reason: RejectionReason, detail: str = ""):
        message = reason.value if not detail else f"{reason.value}: {detail}"
        super().__init__(message)
        self.reason = reason
        self.detail = detail
