"""
Mock calendar client for running without Microsoft authentication.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import List

import pendulum

from ..domain.exceptions import CalendarAPIError
from ..domain.models import CalendarBlock
from .graph_client import busy_range_to_block

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_calendar_data.json"


class MockCalendarClient:
    """
    Serves busy blocks from a JSON file.

    The file holds a list of events: ``{"start": ISO-8601, "end": ISO-8601}``.
    Naive timestamps are read in the configured timezone.
    """

    def __init__(self, data_file: Path | None = None, timezone: str = "Europe/London"):
        self.data_file = data_file or DEFAULT_DATA_FILE
        self.timezone = timezone
        self.calendar_events = self._load_calendar_data()

    def _load_calendar_data(self) -> list:
        if not self.data_file.exists():
            return []
        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                events = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise CalendarAPIError(f"Could not read mock calendar {self.data_file}: {exc}") from exc
        if not isinstance(events, list):
            raise CalendarAPIError(f"Mock calendar {self.data_file} must contain a list of events")
        return events

    async def list_calendar_blocks(self, day: date) -> List[CalendarBlock]:
        day_start = pendulum.datetime(day.year, day.month, day.day, tz=self.timezone)
        blocks: List[CalendarBlock] = []

        for event in self.calendar_events:
            try:
                start = pendulum.parse(event["start"], tz=self.timezone)
                end = pendulum.parse(event["end"], tz=self.timezone)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid mock event %r: %s", event, exc)
                continue

            block = busy_range_to_block(day_start, start, end)
            if block:
                blocks.append(block)

        return sorted(blocks, key=lambda b: b.start)
