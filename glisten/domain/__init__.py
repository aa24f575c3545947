"""
Domain layer - Pure business logic without external dependencies.
"""

from .durations import DurationEstimator
from .intervals import ScheduleBuilder
from .models import (
    Amendment,
    AvailabilityResult,
    Booking,
    BookingStatus,
    CalendarBlock,
    DayAreaResult,
    ScheduleInterval,
    ServiceItem,
    VehicleSize,
    WorkingHours,
)
from .slot_calculator import SlotCalculator

__all__ = [
    "Amendment",
    "AvailabilityResult",
    "Booking",
    "BookingStatus",
    "CalendarBlock",
    "DayAreaResult",
    "DurationEstimator",
    "ScheduleBuilder",
    "ScheduleInterval",
    "ServiceItem",
    "SlotCalculator",
    "VehicleSize",
    "WorkingHours",
]
