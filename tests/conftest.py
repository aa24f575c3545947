"""
Shared stubs and fixtures.

The stubs implement the service protocols with plain in-memory data so the
scheduling rules can be exercised without any network or file access.
"""

import asyncio
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from glisten.config import SchedulingConfig
from glisten.domain.models import Booking, BookingStatus, CalendarBlock, ServiceItem
from glisten.services.scheduler import SchedulingService

MONDAY = date(2024, 11, 25)
TUESDAY = date(2024, 11, 26)
SATURDAY = date(2024, 11, 23)
SUNDAY = date(2024, 11, 24)

CATALOG = {
    "wash": {"small": 45, "medium": 60, "large": 90},
    "valet": {"medium": 120},
}


def make_booking(
    booking_id: int,
    postcode: str,
    time: str,
    day: date = MONDAY,
    services: Iterable[ServiceItem] = (ServiceItem("wash"),),
    status: BookingStatus = BookingStatus.CONFIRMED,
) -> Booking:
    return Booking(
        id=booking_id,
        postcode=postcode,
        preferred_date=day,
        preferred_time=time,
        services=tuple(services),
        status=status,
    )


class StubBookingStore:
    """Minimal stub matching BookingStoreProtocol."""

    def __init__(self, bookings: Iterable[Booking] = ()):
        self.bookings = list(bookings)
        self.calls: List[date] = []

    async def list_occupying_bookings(self, day: date) -> List[Booking]:
        self.calls.append(day)
        return [b for b in self.bookings if b.preferred_date == day and b.is_occupying]


class StubCalendarClient:
    """Minimal stub matching CalendarClientProtocol."""

    def __init__(self, blocks: Iterable[CalendarBlock] = (), error: Optional[Exception] = None):
        self.blocks = list(blocks)
        self.error = error
        self.calls: List[date] = []

    async def list_calendar_blocks(self, day: date) -> List[CalendarBlock]:
        self.calls.append(day)
        if self.error:
            raise self.error
        return list(self.blocks)


class StubTravelProvider:
    """
    Symmetric travel table. Unknown pairs return None; ``error`` is raised
    for every call and ``delay`` seconds are slept before answering.
    """

    def __init__(
        self,
        times: Optional[Dict[Tuple[str, str], float]] = None,
        error: Optional[Exception] = None,
        delay: float = 0,
    ):
        self.times: Dict[Tuple[str, str], float] = {}
        for (a, b), minutes in (times or {}).items():
            self.times[(a, b)] = minutes
            self.times[(b, a)] = minutes
        self.error = error
        self.delay = delay
        self.calls: List[Tuple[str, str]] = []

    async def travel_time_minutes(self, origin: str, destination: str) -> Optional[float]:
        self.calls.append((origin, destination))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.times.get((origin, destination))


@pytest.fixture
def build_scheduler():
    """Factory for a SchedulingService wired to stubs."""

    def _build(
        bookings: Iterable[Booking] = (),
        travel: Optional[StubTravelProvider] = None,
        calendar: Optional[StubCalendarClient] = None,
        store=None,
        **config_overrides,
    ) -> SchedulingService:
        return SchedulingService(
            booking_store=store or StubBookingStore(bookings),
            travel_provider=travel or StubTravelProvider(),
            config=SchedulingConfig(**config_overrides),
            service_catalog=CATALOG,
            calendar_client=calendar,
        )

    return _build
