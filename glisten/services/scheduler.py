"""
Application service for appointment feasibility and availability.

The service fetches bookings, calendar blocks and travel times through
protocols and delegates interval algebra to the domain layer. All
collaborator calls are awaited one at a time with a timeout; provider
failures only ever make the answer more conservative.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import List, Mapping, Optional, Protocol, Sequence

import pendulum

from ..config import AppConfig, SchedulingConfig
from ..domain.durations import DurationEstimator
from ..domain.exceptions import BookingStoreError, BookingValidationError, RejectionReason
from ..domain.intervals import ScheduleBuilder
from ..domain.models import (
    AvailabilityResult,
    Booking,
    CalendarBlock,
    DayAreaResult,
    ScheduleInterval,
    ServiceItem,
    WorkingHours,
    format_time_of_day,
    parse_date,
    parse_time_of_day,
)
from ..domain.slot_calculator import SlotCalculator
from .travel import (
    AreaClusteringGate,
    TravelFeasibilityChecker,
    TravelTimeLookup,
    TravelTimeProviderProtocol,
)

logger = logging.getLogger(__name__)


class BookingStoreProtocol(Protocol):
    """Read side of the booking store needed by the engine."""

    async def list_occupying_bookings(self, day: date) -> List[Booking]:
        """Return pending and confirmed bookings for the date."""


class CalendarClientProtocol(Protocol):
    """Protocol describing the external calendar needed by the engine."""

    async def list_calendar_blocks(self, day: date) -> List[CalendarBlock]:
        """Return busy blocks (minutes from midnight) for the date."""


class SchedulingService:
    """
    Decides whether appointments fit and which start times are open.

    Dependency inversion toward protocols makes it easy to plug in the real
    adapters or simple stubs in tests.
    """

    def __init__(
        self,
        booking_store: BookingStoreProtocol,
        travel_provider: TravelTimeProviderProtocol,
        config: SchedulingConfig,
        service_catalog: Mapping[str, Mapping[str, int]],
        calendar_client: Optional[CalendarClientProtocol] = None,
    ) -> None:
        self._booking_store = booking_store
        self._travel_provider = travel_provider
        self._calendar_client = calendar_client
        self.config = config

        self.estimator = DurationEstimator(
            service_catalog,
            default_size=config.default_size,
            fallback_minutes=config.fallback_service_minutes,
            default_visit_minutes=config.default_visit_minutes,
        )
        self.builder = ScheduleBuilder(self.estimator, config.buffer_after_job_minutes)
        self.working_hours = WorkingHours(
            start=config.work_start_minutes,
            end=config.work_end_minutes,
            working_days=config.working_days,
        )
        self.calculator = SlotCalculator(self.working_hours, config.slot_step_minutes)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        booking_store: BookingStoreProtocol,
        travel_provider: TravelTimeProviderProtocol,
        calendar_client: Optional[CalendarClientProtocol] = None,
    ) -> "SchedulingService":
        return cls(
            booking_store=booking_store,
            travel_provider=travel_provider,
            config=config.scheduling,
            service_catalog=config.services,
            calendar_client=calendar_client,
        )

    async def find_slots(
        self,
        day: date,
        location: str,
        services: Optional[Sequence[ServiceItem]] = None,
    ) -> AvailabilityResult:
        """
        Enumerate feasible start times on the grid for one date.

        Returns an empty result for non-working days and for days where the
        location is outside the area the technician is already committed to.
        """
        if not location or not location.strip():
            raise ValueError("location is required")

        if not self.working_hours.is_working_day(day):
            return AvailabilityResult(date=day, slots=[])

        duration = self.builder.occupied_minutes(services)
        bookings = await self._load_bookings(day)
        blocks = await self._load_calendar_blocks(day)
        intervals = self.builder.build(bookings, blocks)

        lookup = self._new_lookup()
        gate = AreaClusteringGate(lookup, self.config.travel_limit_minutes)
        if not await gate.day_has_area(location, intervals):
            return AvailabilityResult(date=day, slots=[])

        checker = TravelFeasibilityChecker(lookup, self.config.travel_limit_minutes)
        slots: List[str] = []
        for start in self.calculator.free_starts(duration, intervals):
            if await checker.is_feasible(location, intervals, start, start + duration):
                slots.append(format_time_of_day(start))

        logger.debug("%s on %s: %d slot(s) for %d min", location, day, len(slots), duration)
        return AvailabilityResult(date=day, slots=slots)

    async def validate(
        self,
        day: "date | str | None",
        location: Optional[str],
        services: Optional[Sequence[ServiceItem]],
        requested_time: Optional[str],
        *,
        exclude_booking_id: Optional[int] = None,
    ) -> None:
        """
        Check a single booking request; returns None when it is feasible.

        Checks run in a fixed order and stop at the first failure.

        Args:
            day: Requested date (``date`` or "YYYY-MM-DD")
            location: Customer postcode
            services: Requested service line items
            requested_time: Start time as "HH:MM"
            exclude_booking_id: Ignore this booking (when moving it)

        Raises:
            BookingValidationError: With the rejection reason
        """
        if not day or not location or not str(location).strip() or not requested_time:
            raise BookingValidationError(RejectionReason.MISSING_FIELDS)
        try:
            day = parse_date(day)
            start = parse_time_of_day(requested_time)
        except ValueError as exc:
            raise BookingValidationError(RejectionReason.MISSING_FIELDS, str(exc)) from exc

        if not self.working_hours.is_working_day(day):
            raise BookingValidationError(
                RejectionReason.OUTSIDE_WORKING_DAYS, f"{day.isoformat()} is not a working day"
            )

        end = start + self.builder.occupied_minutes(services)
        if not self.working_hours.contains(start, end):
            raise BookingValidationError(
                RejectionReason.OUTSIDE_WORKING_HOURS,
                f"{format_time_of_day(start)}-{format_time_of_day(end)} is outside "
                f"{self.config.work_start}-{self.config.work_end}",
            )

        bookings = [
            booking for booking in await self._load_bookings(day)
            if booking.id != exclude_booking_id
        ]
        blocks = await self._load_calendar_blocks(day)

        lookup = self._new_lookup()
        job_intervals = self.builder.build(bookings)
        gate = AreaClusteringGate(lookup, self.config.travel_limit_minutes)
        if not await gate.day_has_area(location, job_intervals):
            raise BookingValidationError(RejectionReason.OUT_OF_AREA_FOR_DAY)

        intervals = self.builder.build(bookings, blocks)
        clash = self._first_overlap(start, end, intervals)
        if clash is not None:
            raise BookingValidationError(RejectionReason.TIME_TAKEN, f"overlaps {clash}")

        checker = TravelFeasibilityChecker(lookup, self.config.travel_limit_minutes)
        if not await checker.is_feasible(location, intervals, start, end):
            raise BookingValidationError(RejectionReason.TRAVEL_TOO_FAR)

    async def range_availability(
        self,
        location: str,
        start_date: date,
        end_date: date,
    ) -> List[DayAreaResult]:
        """
        Per-day "in area" flags for an inclusive date range.

        Calendar blocks are ignored here: the question is whether the day is
        geographically workable, not whether a slot is open.
        """
        if end_date < start_date:
            raise ValueError("end_date must not be before start_date")
        span = (end_date - start_date).days + 1
        if span > self.config.max_range_days:
            raise ValueError(
                f"Date range of {span} days exceeds the maximum of {self.config.max_range_days}"
            )

        lookup = self._new_lookup()
        gate = AreaClusteringGate(lookup, self.config.travel_limit_minutes)
        results: List[DayAreaResult] = []

        current = pendulum.date(start_date.year, start_date.month, start_date.day)
        while current <= end_date:
            if not self.working_hours.is_working_day(current):
                results.append(DayAreaResult(date=current, in_area=False))
            else:
                intervals = self.builder.build(await self._load_bookings(current))
                in_area = await gate.day_has_area(location, intervals)
                results.append(DayAreaResult(date=current, in_area=in_area))
            current = current.add(days=1)

        return results

    def _new_lookup(self) -> TravelTimeLookup:
        return TravelTimeLookup(self._travel_provider, self.config.provider_timeout_seconds)

    @staticmethod
    def _first_overlap(
        start: int,
        end: int,
        intervals: Sequence[ScheduleInterval],
    ) -> Optional[ScheduleInterval]:
        for interval in intervals:
            if interval.overlaps(start, end):
                return interval
        return None

    async def _load_bookings(self, day: date) -> List[Booking]:
        """Bookings must load; assuming an empty day would be unsafe."""
        try:
            bookings = await asyncio.wait_for(
                self._booking_store.list_occupying_bookings(day),
                timeout=self.config.provider_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise BookingStoreError(f"Timed out loading bookings for {day}") from exc
        return [booking for booking in bookings if booking.is_occupying]

    async def _load_calendar_blocks(self, day: date) -> List[CalendarBlock]:
        """Calendar outages degrade to "no blocks" rather than failing."""
        if self._calendar_client is None:
            return []

        try:
            return list(
                await asyncio.wait_for(
                    self._calendar_client.list_calendar_blocks(day),
                    timeout=self.config.provider_timeout_seconds,
                )
            )
        except asyncio.TimeoutError:
            logger.warning("Calendar lookup for %s timed out; ignoring calendar blocks", day)
        except Exception as exc:
            logger.warning("Calendar lookup for %s failed (%s); ignoring calendar blocks", day, exc)
        return []
