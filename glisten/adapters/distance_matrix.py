"""
Google Distance Matrix client for driving times between postcodes.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Optional

import requests

from ..domain.exceptions import TravelTimeError

logger = logging.getLogger(__name__)


class GoogleDistanceMatrixClient:
    """
    Estimates driving minutes between two locations.

    Transport failures raise TravelTimeError; a response without a usable
    route (quota, no route, ambiguous address) is reported as None. The
    engine treats both as too far.
    """

    API_ENDPOINT = "https://maps.googleapis.com/maps/api/distancematrix/json"

    def __init__(self, api_key: str, region: str = "uk", request_timeout: float = 10):
        self.api_key = api_key
        self.region = region
        self.request_timeout = request_timeout

    async def travel_time_minutes(self, origin: str, destination: str) -> Optional[float]:
        return await asyncio.to_thread(self.get_travel_time, origin, destination)

    def get_travel_time(self, origin: str, destination: str) -> Optional[float]:
        params = {
            "origins": origin,
            "destinations": destination,
            "mode": "driving",
            "units": "metric",
            "region": self.region,
            "key": self.api_key,
        }

        try:
            response = requests.get(
                self.API_ENDPOINT, params=params, timeout=self.request_timeout
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise TravelTimeError(
                f"Distance Matrix request {origin} -> {destination} failed: {exc}"
            ) from exc

        return self._parse_response(data, origin, destination)

    def _parse_response(
        self,
        data: Dict[str, Any],
        origin: str,
        destination: str,
    ) -> Optional[float]:
        """
        Extract the single element's duration, rounded up to whole minutes.

        Response format:
        {
            "status": "OK",
            "rows": [{"elements": [{"status": "OK", "duration": {"value": 840}}]}]
        }
        """
        if data.get("status") != "OK":
            logger.warning(
                "Distance Matrix status %s for %s -> %s: %s",
                data.get("status"),
                origin,
                destination,
                data.get("error_message", ""),
            )
            return None

        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError):
            logger.warning("Distance Matrix returned no element for %s -> %s", origin, destination)
            return None

        if element.get("status") != "OK":
            logger.info(
                "No route %s -> %s (%s)", origin, destination, element.get("status")
            )
            return None

        seconds = element.get("duration", {}).get("value")
        if not isinstance(seconds, (int, float)):
            return None
        return float(math.ceil(seconds / 60))
