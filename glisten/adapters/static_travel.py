"""
Travel times from a fixed table, for mock mode and tests.
"""

from typing import Dict, Iterable, Optional, Tuple

from ..config import StaticTravelTime
from ..domain.models import normalize_postcode


class StaticTravelTimeProvider:
    """
    Symmetric lookup table keyed by normalised postcode pairs.

    Identical postcodes are 0 minutes apart; unknown pairs return None.
    """

    def __init__(self, rows: Iterable[StaticTravelTime] = ()):
        self._pairs: Dict[Tuple[str, str], float] = {}
        for row in rows:
            self.add(row.origin, row.destination, row.minutes)

    def add(self, origin: str, destination: str, minutes: float) -> None:
        a = normalize_postcode(origin)
        b = normalize_postcode(destination)
        self._pairs[(a, b)] = minutes
        self._pairs[(b, a)] = minutes

    async def travel_time_minutes(self, origin: str, destination: str) -> Optional[float]:
        a = normalize_postcode(origin)
        b = normalize_postcode(destination)
        if a == b:
            return 0.0
        return self._pairs.get((a, b))
