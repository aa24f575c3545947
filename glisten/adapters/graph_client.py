"""
Microsoft Graph API client for the technician's busy calendar time.
"""

import asyncio
import logging
import math
from datetime import date
from typing import Any, Dict, List, Optional

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import MINUTES_PER_DAY, CalendarBlock

logger = logging.getLogger(__name__)

BUSY_STATUSES = {"busy", "tentative", "oof", "workingelsewhere"}


def busy_range_to_block(day_start: DateTime, start: DateTime, end: DateTime) -> Optional[CalendarBlock]:
    """
    Convert an absolute busy range to minutes within the day starting at
    ``day_start``. Returns None when the range misses the day entirely.
    """
    start_minutes = math.floor((start - day_start).total_seconds() / 60)
    end_minutes = math.ceil((end - day_start).total_seconds() / 60)

    start_minutes = max(0, start_minutes)
    end_minutes = min(MINUTES_PER_DAY, end_minutes)
    if start_minutes >= end_minutes:
        return None
    return CalendarBlock(start=start_minutes, end=end_minutes)


class GraphCalendarClient:
    """
    Reads free/busy information for one mailbox.

    Uses the /calendar/getSchedule endpoint. Requests are blocking, so the
    async entry point runs them in a worker thread.
    """

    GRAPH_API_ENDPOINT = "https://graph.microsoft.com/v1.0"

    def __init__(
        self,
        access_token: str,
        mailbox: str,
        timezone: str = "Europe/London",
        request_timeout: float = 30,
    ):
        self.mailbox = mailbox
        self.timezone = timezone
        self.request_timeout = request_timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def list_calendar_blocks(self, day: date) -> List[CalendarBlock]:
        return await asyncio.to_thread(self.get_busy_blocks, day)

    def get_busy_blocks(self, day: date) -> List[CalendarBlock]:
        """
        Get busy blocks for the mailbox on a single day.

        Raises:
            CalendarAPIError: If the API call fails
        """
        day_start = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        day_end = day_start.add(days=1)

        payload = {
            "schedules": [self.mailbox],
            "startTime": {
                "dateTime": day_start.to_iso8601_string(),
                "timeZone": self.timezone,
            },
            "endTime": {
                "dateTime": day_end.to_iso8601_string(),
                "timeZone": self.timezone,
            },
            "availabilityViewInterval": 15,
        }

        try:
            response = requests.post(
                f"{self.GRAPH_API_ENDPOINT}/me/calendar/getSchedule",
                headers=self.headers,
                json=payload,
                timeout=self.request_timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            raise CalendarAPIError(f"Failed to fetch schedule from Microsoft Graph: {exc}") from exc

        return self._parse_schedule_response(data, day_start)

    def _parse_schedule_response(
        self,
        response_data: Dict[str, Any],
        day_start: DateTime,
    ) -> List[CalendarBlock]:
        """
        Parse the getSchedule response into calendar blocks.

        Response format:
        {
            "value": [
                {
                    "scheduleId": "tech@example.com",
                    "scheduleItems": [
                        {
                            "status": "busy",
                            "start": {"dateTime": "...", "timeZone": "..."},
                            "end": {"dateTime": "...", "timeZone": "..."}
                        }
                    ]
                }
            ]
        }
        """
        blocks: List[CalendarBlock] = []

        for schedule in response_data.get("value", []):
            if "error" in schedule:
                raise CalendarAPIError(
                    f"Schedule lookup failed for {schedule.get('scheduleId')}: "
                    f"{schedule['error'].get('message', 'unknown error')}"
                )

            for item in schedule.get("scheduleItems", []):
                if item.get("status", "").lower() not in BUSY_STATUSES:
                    continue
                try:
                    start = self._parse_datetime(item["start"])
                    end = self._parse_datetime(item["end"])
                except (KeyError, ValueError) as exc:
                    logger.warning("Could not parse schedule item: %s", exc)
                    continue

                block = busy_range_to_block(day_start, start, end)
                if block:
                    blocks.append(block)

        return sorted(blocks, key=lambda b: b.start)

    def _parse_datetime(self, value: Dict[str, str]) -> DateTime:
        # Graph returns naive dateTime strings plus a separate timeZone field
        dt = pendulum.parse(value["dateTime"], tz=value.get("timeZone") or "UTC")
        if not isinstance(dt, DateTime):
            raise ValueError(f"Could not parse datetime: {value['dateTime']}")
        return dt.in_timezone(self.timezone)

    def test_connection(self) -> Dict[str, Any]:
        """
        Test the connection and authentication by fetching user profile.

        Raises:
            CalendarAPIError: If connection test fails
        """
        try:
            response = requests.get(
                f"{self.GRAPH_API_ENDPOINT}/me", headers=self.headers, timeout=10
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as exc:
            raise CalendarAPIError(f"Connection test failed: {exc}") from exc
