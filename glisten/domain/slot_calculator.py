"""
Pure interval algebra for the appointment grid.

No I/O here: travel checks live in the service layer, this module only
answers "does it fit" and "who are the neighbours".
"""

from typing import List, Optional, Sequence, Tuple

from .models import ScheduleInterval, WorkingHours


class SlotCalculator:
    """
    Enumerates candidate starts and tests them against occupied intervals.

    Algorithm:
    1. Walk the grid from the start of the working day in fixed steps
    2. Keep starts whose job (including buffer) ends by close of day
    3. Drop starts whose [start, end) intersects any occupied interval
    """

    def __init__(self, working_hours: WorkingHours, step_minutes: int = 15):
        self.working_hours = working_hours
        self.step_minutes = step_minutes

    def candidate_starts(self, duration_minutes: int) -> List[int]:
        """All grid starts where a job of this length still finishes in time."""
        last_start = self.working_hours.end - duration_minutes
        return list(range(self.working_hours.start, last_start + 1, self.step_minutes))

    @staticmethod
    def is_free(start: int, end: int, intervals: Sequence[ScheduleInterval]) -> bool:
        return not any(interval.overlaps(start, end) for interval in intervals)

    def free_starts(
        self,
        duration_minutes: int,
        intervals: Sequence[ScheduleInterval],
    ) -> List[int]:
        """Grid starts that overlap nothing, ascending."""
        return [
            start for start in self.candidate_starts(duration_minutes)
            if self.is_free(start, start + duration_minutes, intervals)
        ]

    @staticmethod
    def neighbours(
        start: int,
        end: int,
        intervals: Sequence[ScheduleInterval],
    ) -> Tuple[Optional[ScheduleInterval], Optional[ScheduleInterval]]:
        """
        Closest located jobs either side of [start, end).

        Returns (previous, next): previous has the latest end <= start,
        next has the earliest start >= end. Calendar blocks are ignored.
        """
        previous: Optional[ScheduleInterval] = None
        following: Optional[ScheduleInterval] = None

        for interval in intervals:
            if interval.location is None:
                continue
            if interval.end <= start and (previous is None or interval.end > previous.end):
                previous = interval
            if interval.start >= end and (following is None or interval.start < following.start):
                following = interval

        return previous, following
