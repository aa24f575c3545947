"""
Tests for the SchedulingService orchestration layer.
"""

import asyncio
from datetime import date

import pytest

from glisten.config import SchedulingConfig
from glisten.domain.exceptions import BookingStoreError, BookingValidationError, RejectionReason
from glisten.domain.models import (
    BookingStatus,
    CalendarBlock,
    ServiceItem,
    VehicleSize,
    format_time_of_day,
    parse_time_of_day,
)
from glisten.services.scheduler import SchedulingService

from conftest import (
    MONDAY,
    SATURDAY,
    SUNDAY,
    TUESDAY,
    StubBookingStore,
    StubCalendarClient,
    StubTravelProvider,
    make_booking,
)

WASH = [ServiceItem("wash")]  # 60 minutes, 90 with buffer


def _grid(first: str, last: str) -> list:
    """All 15-minute grid times from first to last inclusive."""
    return [format_time_of_day(m) for m in range(parse_time_of_day(first), parse_time_of_day(last) + 1, 15)]


def _reason(coro) -> RejectionReason:
    with pytest.raises(BookingValidationError) as exc_info:
        asyncio.run(coro)
    return exc_info.value.reason


class TestFindSlots:
    """Tests for SchedulingService.find_slots."""

    def test_empty_day_offers_whole_grid(self, build_scheduler):
        result = asyncio.run(build_scheduler().find_slots(MONDAY, "AB1", WASH))

        assert result.date == MONDAY
        assert result.slots == _grid("08:30", "15:00")

    def test_existing_booking_blocks_its_time_plus_buffer(self, build_scheduler):
        # Booking 09:00 + 60 min + 30 min buffer occupies 09:00-10:30
        scheduler = build_scheduler([make_booking(1, "AB1", "09:00")])

        result = asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH))

        assert "10:30" in result.slots
        assert result.slots[0] == "10:30"
        for taken in _grid("08:30", "10:15"):
            assert taken not in result.slots
        assert result.slots == _grid("10:30", "15:00")

    def test_far_previous_job_excludes_adjacent_slots(self, build_scheduler):
        travel = StubTravelProvider({("ZZ9", "AB1"): 45, ("AB2", "AB1"): 10, ("ZZ9", "AB2"): 50})
        scheduler = build_scheduler(
            [make_booking(1, "ZZ9", "09:00"), make_booking(2, "AB2", "13:00")],
            travel=travel,
        )

        result = asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH))

        # 10:30 does not overlap 09:00-10:30 but the drive from ZZ9 is 45 min
        assert "10:30" not in result.slots
        assert result.slots == ["14:30", "14:45", "15:00"]

    def test_single_far_booking_closes_the_day(self, build_scheduler):
        travel = StubTravelProvider({("AB1", "FAR"): 25})
        scheduler = build_scheduler([make_booking(1, "FAR", "09:00")], travel=travel)

        assert asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH)).slots == []

    def test_single_near_booking_keeps_the_day_open(self, build_scheduler):
        travel = StubTravelProvider({("AB1", "NEAR"): 10})
        scheduler = build_scheduler([make_booking(1, "NEAR", "09:00")], travel=travel)

        result = asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH))

        assert result.has_slots
        assert result.slots[0] == "10:30"

    @pytest.mark.parametrize("day", [SATURDAY, SUNDAY])
    def test_non_working_days_have_no_slots(self, build_scheduler, day):
        store = StubBookingStore()
        scheduler = build_scheduler(store=store)

        assert asyncio.run(scheduler.find_slots(day, "AB1", WASH)).slots == []
        assert store.calls == []

    def test_calendar_blocks_have_no_buffer(self, build_scheduler):
        calendar = StubCalendarClient([CalendarBlock(start=720, end=780)])  # 12:00-13:00
        scheduler = build_scheduler(calendar=calendar)

        slots = asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH)).slots

        assert "10:30" in slots  # 10:30-12:00 ends as the block starts
        assert "11:00" not in slots
        assert "13:00" in slots  # no buffer after calendar time

    def test_calendar_blocks_never_trigger_travel_checks(self, build_scheduler):
        travel = StubTravelProvider(error=ConnectionError("never called"))
        calendar = StubCalendarClient([CalendarBlock(start=600, end=660)])
        scheduler = build_scheduler(travel=travel, calendar=calendar)

        assert asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH)).has_slots
        assert travel.calls == []

    def test_calendar_failure_means_no_blocks(self, build_scheduler):
        calendar = StubCalendarClient(error=ConnectionError("calendar down"))
        scheduler = build_scheduler(calendar=calendar)

        result = asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH))

        assert result.slots == _grid("08:30", "15:00")
        assert calendar.calls == [MONDAY]

    def test_travel_outage_is_conservative(self, build_scheduler):
        travel = StubTravelProvider(error=ConnectionError("maps down"))
        scheduler = build_scheduler([make_booking(1, "AB2", "09:00")], travel=travel)

        assert asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH)).slots == []

    def test_slow_travel_provider_times_out_closed(self, build_scheduler):
        travel = StubTravelProvider({("AB1", "AB2"): 5}, delay=1)
        scheduler = build_scheduler(
            [make_booking(1, "AB2", "09:00")], travel=travel, provider_timeout_seconds=0.01
        )

        assert asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH)).slots == []

    def test_travel_pairs_are_looked_up_once_per_request(self, build_scheduler):
        travel = StubTravelProvider({("AB1", "AB2"): 5})
        scheduler = build_scheduler([make_booking(1, "AB2", "12:00")], travel=travel)

        asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH))

        assert sorted(set(travel.calls)) == sorted(travel.calls)

    def test_longer_job_shortens_the_grid(self, build_scheduler):
        slots = asyncio.run(
            build_scheduler().find_slots(MONDAY, "AB1", [ServiceItem("valet")])
        ).slots

        # 120 min + 30 min buffer must end by 16:30
        assert slots[-1] == "14:00"

    def test_vehicle_size_members_set_the_duration(self, build_scheduler):
        large_wash = [ServiceItem("wash", VehicleSize.LARGE)]
        scheduler = build_scheduler([make_booking(1, "AB1", "09:00", services=large_wash)])

        slots = asyncio.run(scheduler.find_slots(MONDAY, "AB1", large_wash)).slots

        # 90 min + 30 min buffer: the booking holds 09:00-11:00, the last start is 14:30
        assert slots[0] == "11:00"
        assert slots[-1] == "14:30"
        assert _reason(scheduler.validate(MONDAY, "AB1", WASH, "10:45")) == RejectionReason.TIME_TAKEN

    def test_zero_minute_catalog_entry_without_buffer(self):
        scheduler = SchedulingService(
            booking_store=StubBookingStore(
                [make_booking(1, "AB1", "10:00", services=[ServiceItem("touch-up")])]
            ),
            travel_provider=StubTravelProvider(),
            config=SchedulingConfig(buffer_after_job_minutes=0),
            service_catalog={"touch-up": {"medium": 0}},
        )
        touch_up = [ServiceItem("touch-up")]

        slots = asyncio.run(scheduler.find_slots(MONDAY, "AB1", touch_up)).slots

        assert "09:45" in slots
        assert "10:00" not in slots
        assert _reason(scheduler.validate(MONDAY, "AB1", touch_up, "10:00")) == RejectionReason.TIME_TAKEN

    def test_is_idempotent(self, build_scheduler):
        travel = StubTravelProvider({("AB1", "AB2"): 10, ("AB1", "AB3"): 15, ("AB2", "AB3"): 12})
        calendar = StubCalendarClient([CalendarBlock(start=900, end=930)])
        scheduler = build_scheduler(
            [make_booking(1, "AB2", "09:15"), make_booking(2, "AB3", "12:45")],
            travel=travel,
            calendar=calendar,
        )

        first = asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH))
        second = asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH))

        assert first == second

    def test_does_not_mutate_bookings(self, build_scheduler):
        bookings = [make_booking(1, "AB2", "09:00")]
        store = StubBookingStore(bookings)
        scheduler = build_scheduler(store=store, travel=StubTravelProvider({("AB1", "AB2"): 5}))

        asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH))

        assert store.bookings == bookings

    def test_every_slot_passes_validation(self, build_scheduler):
        travel = StubTravelProvider(
            {("AB1", "AB2"): 10, ("AB1", "ZZ9"): 45, ("AB2", "ZZ9"): 50, ("AB1", "AB3"): 18}
        )
        calendar = StubCalendarClient([CalendarBlock(start=870, end=900)])
        scheduler = build_scheduler(
            [
                make_booking(1, "ZZ9", "09:00"),
                make_booking(2, "AB2", "11:00", services=[ServiceItem("wash", "small")]),
                make_booking(3, "AB3", "13:00"),
            ],
            travel=travel,
            calendar=calendar,
        )

        slots = asyncio.run(scheduler.find_slots(MONDAY, "AB1", WASH)).slots

        assert slots
        for slot in slots:
            asyncio.run(scheduler.validate(MONDAY, "AB1", WASH, slot))

    def test_location_is_required(self, build_scheduler):
        with pytest.raises(ValueError, match="location"):
            asyncio.run(build_scheduler().find_slots(MONDAY, "  ", WASH))


class TestValidate:
    """Tests for SchedulingService.validate."""

    def test_accepts_free_slot(self, build_scheduler):
        assert asyncio.run(build_scheduler().validate(MONDAY, "AB1", WASH, "10:00")) is None

    def test_accepts_iso_date_string(self, build_scheduler):
        assert asyncio.run(build_scheduler().validate("2024-11-25", "AB1", WASH, "10:00")) is None

    @pytest.mark.parametrize(
        "day,location,time",
        [
            (None, "AB1", "10:00"),
            (MONDAY, "", "10:00"),
            (MONDAY, "   ", "10:00"),
            (MONDAY, "AB1", None),
            (MONDAY, "AB1", ""),
            ("2024-02-30", "AB1", "10:00"),
            (MONDAY, "AB1", "25:00"),
        ],
    )
    def test_missing_fields(self, build_scheduler, day, location, time):
        reason = _reason(build_scheduler().validate(day, location, WASH, time))
        assert reason == RejectionReason.MISSING_FIELDS

    @pytest.mark.parametrize("day", [SATURDAY, SUNDAY])
    def test_weekend_always_outside_working_days(self, build_scheduler, day):
        travel = StubTravelProvider(error=ConnectionError("never called"))
        scheduler = build_scheduler(travel=travel)

        # Out-of-hours time and unknown services do not change the verdict
        reason = _reason(scheduler.validate(day, "FAR AWAY", [ServiceItem("mystery")], "20:00"))

        assert reason == RejectionReason.OUTSIDE_WORKING_DAYS

    @pytest.mark.parametrize("time", ["08:00", "08:15", "15:15", "16:30"])
    def test_outside_working_hours(self, build_scheduler, time):
        reason = _reason(build_scheduler().validate(MONDAY, "AB1", WASH, time))
        assert reason == RejectionReason.OUTSIDE_WORKING_HOURS

    def test_last_slot_of_the_day_fits(self, build_scheduler):
        # 15:00 + 60 + 30 buffer = 16:30 exactly
        assert asyncio.run(build_scheduler().validate(MONDAY, "AB1", WASH, "15:00")) is None

    def test_out_of_area_for_day(self, build_scheduler):
        travel = StubTravelProvider({("AB1", "FAR"): 25})
        scheduler = build_scheduler([make_booking(1, "FAR", "09:00")], travel=travel)

        reason = _reason(scheduler.validate(MONDAY, "AB1", WASH, "13:00"))

        assert reason == RejectionReason.OUT_OF_AREA_FOR_DAY

    def test_time_taken_by_booking(self, build_scheduler):
        scheduler = build_scheduler([make_booking(1, "AB1", "09:00")])

        assert _reason(scheduler.validate(MONDAY, "AB1", WASH, "10:15")) == RejectionReason.TIME_TAKEN
        assert asyncio.run(scheduler.validate(MONDAY, "AB1", WASH, "10:30")) is None

    def test_new_job_buffer_counts_too(self, build_scheduler):
        scheduler = build_scheduler([make_booking(1, "AB1", "12:00")])

        # 10:45 + 60 min ends at 11:45, but the buffer runs to 12:15
        assert _reason(scheduler.validate(MONDAY, "AB1", WASH, "10:45")) == RejectionReason.TIME_TAKEN
        assert asyncio.run(scheduler.validate(MONDAY, "AB1", WASH, "10:30")) is None

    def test_time_taken_by_calendar_block(self, build_scheduler):
        calendar = StubCalendarClient([CalendarBlock(start=720, end=780)])
        scheduler = build_scheduler(calendar=calendar)

        assert _reason(scheduler.validate(MONDAY, "AB1", WASH, "11:30")) == RejectionReason.TIME_TAKEN
        assert asyncio.run(scheduler.validate(MONDAY, "AB1", WASH, "13:00")) is None

    def test_calendar_failure_does_not_fail_validation(self, build_scheduler):
        calendar = StubCalendarClient(error=RuntimeError("calendar down"))
        scheduler = build_scheduler(calendar=calendar)

        assert asyncio.run(scheduler.validate(MONDAY, "AB1", WASH, "12:00")) is None

    def test_travel_too_far(self, build_scheduler):
        travel = StubTravelProvider({("ZZ9", "AB1"): 45, ("AB2", "AB1"): 10})
        scheduler = build_scheduler(
            [make_booking(1, "ZZ9", "09:00"), make_booking(2, "AB2", "13:00")],
            travel=travel,
        )

        assert _reason(scheduler.validate(MONDAY, "AB1", WASH, "10:30")) == RejectionReason.TRAVEL_TOO_FAR
        assert asyncio.run(scheduler.validate(MONDAY, "AB1", WASH, "14:30")) is None

    def test_next_job_too_far(self, build_scheduler):
        travel = StubTravelProvider({("AB1", "AB2"): 10, ("AB1", "ZZ9"): 30})
        scheduler = build_scheduler(
            [make_booking(1, "AB2", "09:00"), make_booking(2, "ZZ9", "14:00")],
            travel=travel,
        )

        assert _reason(scheduler.validate(MONDAY, "AB1", WASH, "12:00")) == RejectionReason.TRAVEL_TOO_FAR

    def test_inactive_bookings_never_block(self, build_scheduler):
        class RawStore(StubBookingStore):
            async def list_occupying_bookings(self, day):
                return list(self.bookings)

        store = RawStore([make_booking(1, "FAR", "10:00", status=BookingStatus.CANCELLED)])
        scheduler = build_scheduler(store=store)

        assert asyncio.run(scheduler.validate(MONDAY, "AB1", WASH, "10:00")) is None

    def test_excluded_booking_is_ignored(self, build_scheduler):
        scheduler = build_scheduler([make_booking(7, "AB1", "09:00")])

        assert _reason(scheduler.validate(MONDAY, "AB1", WASH, "09:15")) == RejectionReason.TIME_TAKEN
        assert asyncio.run(
            scheduler.validate(MONDAY, "AB1", WASH, "09:15", exclude_booking_id=7)
        ) is None

    def test_booking_store_timeout_is_an_error(self, build_scheduler):
        class SlowStore(StubBookingStore):
            async def list_occupying_bookings(self, day):
                await asyncio.sleep(1)
                return []

        scheduler = build_scheduler(store=SlowStore(), provider_timeout_seconds=0.01)

        with pytest.raises(BookingStoreError):
            asyncio.run(scheduler.validate(MONDAY, "AB1", WASH, "10:00"))

    def test_rejection_message_carries_reason(self, build_scheduler):
        with pytest.raises(BookingValidationError, match="OUTSIDE_WORKING_DAYS"):
            asyncio.run(build_scheduler().validate(SATURDAY, "AB1", WASH, "10:00"))


class TestRangeAvailability:
    """Tests for SchedulingService.range_availability."""

    def test_one_entry_per_day_inclusive(self, build_scheduler):
        travel = StubTravelProvider({("AB1", "FAR"): 40})
        scheduler = build_scheduler(
            [make_booking(1, "FAR", "09:00", day=TUESDAY)], travel=travel
        )

        days = asyncio.run(scheduler.range_availability("AB1", MONDAY, date(2024, 12, 1)))

        assert [d.date for d in days] == [date(2024, 11, 25 + i) for i in range(6)] + [date(2024, 12, 1)]
        assert [d.in_area for d in days] == [True, False, True, True, True, False, False]

    def test_ignores_calendar_blocks(self, build_scheduler):
        calendar = StubCalendarClient([CalendarBlock(start=0, end=1440)])
        scheduler = build_scheduler(calendar=calendar)

        days = asyncio.run(scheduler.range_availability("AB1", MONDAY, MONDAY))

        assert days[0].in_area
        assert calendar.calls == []

    def test_weekends_skip_the_store(self, build_scheduler):
        store = StubBookingStore()
        scheduler = build_scheduler(store=store)

        days = asyncio.run(scheduler.range_availability("AB1", SATURDAY, SUNDAY))

        assert [d.in_area for d in days] == [False, False]
        assert store.calls == []

    def test_end_before_start_raises(self, build_scheduler):
        with pytest.raises(ValueError, match="before"):
            asyncio.run(build_scheduler().range_availability("AB1", TUESDAY, MONDAY))

    def test_range_too_long_raises(self, build_scheduler):
        scheduler = build_scheduler(max_range_days=7)

        with pytest.raises(ValueError, match="exceeds"):
            asyncio.run(scheduler.range_availability("AB1", MONDAY, date(2024, 12, 2)))
