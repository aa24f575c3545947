"""
Travel-time based feasibility rules.

Every lookup goes through ``TravelTimeLookup`` which applies a timeout,
memoises answers for the lifetime of one request and turns any provider
failure into ``None`` (unknown). Unknown is always treated as too far.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Protocol, Sequence, Tuple

from ..domain.models import ScheduleInterval, normalize_postcode
from ..domain.slot_calculator import SlotCalculator

logger = logging.getLogger(__name__)


class TravelTimeProviderProtocol(Protocol):
    """Protocol describing the travel-time provider needed by the engine."""

    async def travel_time_minutes(self, origin: str, destination: str) -> Optional[float]:
        """Return driving minutes, or None when the route is unknown."""


class TravelTimeLookup:
    """Fail-closed, memoising wrapper around a travel-time provider."""

    def __init__(self, provider: TravelTimeProviderProtocol, timeout_seconds: float = 10.0):
        self._provider = provider
        self._timeout = timeout_seconds
        self._cache: Dict[Tuple[str, str], Optional[float]] = {}

    async def minutes(self, origin: str, destination: str) -> Optional[float]:
        origin_key = normalize_postcode(origin)
        destination_key = normalize_postcode(destination)
        if origin_key == destination_key:
            return 0.0

        key = (origin_key, destination_key)
        if key in self._cache:
            return self._cache[key]

        try:
            result = await asyncio.wait_for(
                self._provider.travel_time_minutes(origin, destination),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Travel time %s -> %s timed out after %.1fs", origin, destination, self._timeout
            )
            result = None
        except Exception as exc:
            logger.warning("Travel time %s -> %s failed: %s", origin, destination, exc)
            result = None

        self._cache[key] = result
        return result

    async def within(self, origin: str, destination: str, limit_minutes: float) -> bool:
        minutes = await self.minutes(origin, destination)
        return minutes is not None and minutes <= limit_minutes


class TravelFeasibilityChecker:
    """
    Checks travel from the previous job and to the next job.

    Only the closest located neighbour on each side is considered; calendar
    blocks carry no location and never take part.
    """

    def __init__(self, lookup: TravelTimeLookup, limit_minutes: float = 20):
        self.lookup = lookup
        self.limit_minutes = limit_minutes

    async def is_feasible(
        self,
        location: str,
        intervals: Sequence[ScheduleInterval],
        start: int,
        end: int,
    ) -> bool:
        previous, following = SlotCalculator.neighbours(start, end, intervals)

        if previous is not None:
            if not await self.lookup.within(previous.location, location, self.limit_minutes):
                logger.debug("Previous job at %s too far from %s", previous.location, location)
                return False

        if following is not None:
            if not await self.lookup.within(location, following.location, self.limit_minutes):
                logger.debug("Next job at %s too far from %s", following.location, location)
                return False

        return True


class AreaClusteringGate:
    """
    Day-level rule: once the technician is committed to a region, a day is
    only open to locations within the travel limit of at least one job.
    """

    def __init__(self, lookup: TravelTimeLookup, limit_minutes: float = 20):
        self.lookup = lookup
        self.limit_minutes = limit_minutes

    async def day_has_area(self, location: str, intervals: Sequence[ScheduleInterval]) -> bool:
        locations = []
        for interval in intervals:
            if interval.location is not None and interval.location not in locations:
                locations.append(interval.location)

        if not locations:
            return True

        for job_location in locations:
            if await self.lookup.within(location, job_location, self.limit_minutes):
                return True

        logger.info("%s is outside every job area for the day (%s)", location, ", ".join(locations))
        return False
