"""
Normalisation of bookings and calendar blocks into schedule intervals.
"""

import logging
from typing import Iterable, List, Optional

from .durations import DurationEstimator
from .models import (
    MINUTES_PER_DAY,
    Booking,
    CalendarBlock,
    ScheduleInterval,
    normalize_postcode,
    parse_time_of_day,
)

logger = logging.getLogger(__name__)


class ScheduleBuilder:
    """
    Builds the unified list of occupied intervals for one day.

    Bookings get the post-job buffer added; calendar blocks are taken as-is.
    """

    def __init__(self, estimator: DurationEstimator, buffer_minutes: int = 30):
        self.estimator = estimator
        self.buffer_minutes = buffer_minutes

    def occupied_minutes(self, services) -> int:
        """Job duration plus buffer, i.e. how long a booking blocks the day."""
        return self.estimator.estimate(services) + self.buffer_minutes

    def from_booking(self, booking: Booking) -> Optional[ScheduleInterval]:
        try:
            start = parse_time_of_day(booking.preferred_time)
        except ValueError:
            logger.warning(
                "Skipping booking %s with unreadable time %r",
                booking.id,
                booking.preferred_time,
            )
            return None

        end = start + self.occupied_minutes(booking.services)
        return ScheduleInterval(
            start=start,
            end=end,
            location=normalize_postcode(booking.postcode) or None,
        )

    @staticmethod
    def from_block(block: CalendarBlock) -> Optional[ScheduleInterval]:
        # Clamp to the day; a block spilling over midnight only counts for today.
        start = max(0, block.start)
        end = min(MINUTES_PER_DAY, block.end)
        if start >= end:
            logger.warning("Ignoring empty calendar block %s-%s", block.start, block.end)
            return None
        return ScheduleInterval(start=start, end=end, location=None)

    def build(
        self,
        bookings: Iterable[Booking],
        blocks: Iterable[CalendarBlock] = (),
    ) -> List[ScheduleInterval]:
        """
        Build the day's intervals sorted by start time.

        Callers are expected to pass occupying bookings only; anything else
        is filtered out here as well.
        """
        intervals: List[ScheduleInterval] = []

        for booking in bookings:
            if not booking.is_occupying:
                continue
            interval = self.from_booking(booking)
            if interval:
                intervals.append(interval)

        for block in blocks:
            interval = self.from_block(block)
            if interval:
                intervals.append(interval)

        return sorted(intervals, key=lambda i: (i.start, i.end))
