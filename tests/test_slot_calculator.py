"""
Tests for slot calculator.
"""

from glisten.domain.models import ScheduleInterval, WorkingHours
from glisten.domain.slot_calculator import SlotCalculator


def _calculator(step_minutes: int = 15) -> SlotCalculator:
    # 08:30 - 16:30, Monday to Friday
    working_hours = WorkingHours(start=510, end=990, working_days=[0, 1, 2, 3, 4])
    return SlotCalculator(working_hours=working_hours, step_minutes=step_minutes)


class TestSlotCalculator:
    """Tests for SlotCalculator."""

    def test_candidate_starts_stop_when_job_would_overrun(self):
        starts = _calculator().candidate_starts(90)

        assert starts[0] == 510  # 08:30
        assert starts[-1] == 900  # 15:00 + 90 min = 16:30
        assert all(b - a == 15 for a, b in zip(starts, starts[1:]))

    def test_candidate_starts_for_full_day_job(self):
        assert _calculator().candidate_starts(480) == [510]

    def test_candidate_starts_when_job_longer_than_day(self):
        assert _calculator().candidate_starts(500) == []

    def test_candidate_starts_respect_step(self):
        assert _calculator(step_minutes=60).candidate_starts(420) == [510, 570]

    def test_free_starts_skip_overlaps(self):
        busy = [ScheduleInterval(start=540, end=630, location="AB1")]  # 09:00 - 10:30
        starts = _calculator().free_starts(90, busy)

        assert 630 in starts
        assert not any(510 <= s < 630 for s in starts)

    def test_free_starts_allow_back_to_back(self):
        busy = [ScheduleInterval(start=600, end=660)]
        starts = _calculator().free_starts(90, busy)

        assert 510 in starts  # 08:30 - 10:00 ends exactly when the block starts
        assert 660 in starts

    def test_is_free(self):
        busy = [ScheduleInterval(540, 630)]
        assert SlotCalculator.is_free(630, 720, busy)
        assert not SlotCalculator.is_free(600, 700, busy)
        assert SlotCalculator.is_free(600, 700, [])


class TestNeighbours:
    """Tests for finding the closest jobs around a candidate."""

    def test_picks_closest_on_each_side(self):
        intervals = [
            ScheduleInterval(510, 570, "EARLY"),
            ScheduleInterval(540, 630, "PREV"),
            ScheduleInterval(780, 840, "NEXT"),
            ScheduleInterval(900, 960, "LATE"),
        ]
        previous, following = SlotCalculator.neighbours(630, 720, intervals)

        assert previous.location == "PREV"
        assert following.location == "NEXT"

    def test_ignores_calendar_blocks(self):
        intervals = [
            ScheduleInterval(540, 600, "JOB"),
            ScheduleInterval(600, 630),  # calendar block, closer but no location
        ]
        previous, following = SlotCalculator.neighbours(630, 720, intervals)

        assert previous.location == "JOB"
        assert following is None

    def test_no_neighbours(self):
        assert SlotCalculator.neighbours(630, 720, []) == (None, None)

    def test_overlapping_intervals_are_not_neighbours(self):
        intervals = [ScheduleInterval(600, 700, "CLASH")]
        assert SlotCalculator.neighbours(630, 720, intervals) == (None, None)
