"""
Domain models for bookings, calendar blocks and schedule intervals.

All times of day are expressed as integer minutes from midnight.
"""

from dataclasses import dataclass, field, replace
from datetime import date, time
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import pendulum

MINUTES_PER_DAY = 24 * 60


class VehicleSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    CANCELLED = "cancelled"

    @property
    def is_occupying(self) -> bool:
        """Only pending and confirmed bookings hold time in the schedule."""
        return self in (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def parse_time_of_day(value: "str | time") -> int:
    """
    Convert "HH:MM" (or a ``time``) to minutes from midnight.

    Raises:
        ValueError: If the value is not a valid clock time
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    text = str(value).strip()
    parts = text.split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time of day: {value!r}")

    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hour * 60 + minute


def parse_date(value: "str | date") -> date:
    """
    Accept a ``date`` or an ISO "YYYY-MM-DD" string.

    Raises:
        ValueError: If the string is not a valid calendar date
    """
    if isinstance(value, date):
        return value
    try:
        return pendulum.from_format(str(value).strip(), "YYYY-MM-DD").date()
    except Exception as exc:
        raise ValueError(f"Invalid date: {value!r}") from exc


def format_time_of_day(minutes: int) -> str:
    """Format minutes from midnight as HH:MM."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_postcode(postcode: str) -> str:
    """Uppercase and strip internal whitespace so "ab1 2cd" == "AB12CD"."""
    return "".join(postcode.split()).upper()


def normalize_size(size: Any) -> Optional[str]:
    """Catalog key for a vehicle size; accepts ``VehicleSize`` members or free text."""
    if isinstance(size, Enum):
        size = size.value
    text = str(size).strip().lower() if size else ""
    return text or None


@dataclass(frozen=True)
class ServiceItem:
    """
    One requested service line item.

    ``size`` is kept as free text: an unrecognised value is not an error,
    the duration estimator simply falls back to its default.
    """
    service_id: str
    size: Optional[str] = None
    quantity: int = 1

    def __post_init__(self):
        if isinstance(self.size, Enum):
            object.__setattr__(self, "size", self.size.value)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ServiceItem":
        """Build from a JSON-style mapping (``serviceId``/``service_id``)."""
        service_id = data.get("service_id", data.get("serviceId", ""))
        size = data.get("size")
        quantity = data.get("quantity", 1)
        return cls(
            service_id=str(service_id or "").strip().lower(),
            size=normalize_size(size),
            quantity=quantity if isinstance(quantity, int) else 1,
        )

    @classmethod
    def parse(cls, text: str) -> "ServiceItem":
        """Parse the CLI shorthand ``service[:size[:quantity]]``."""
        parts = [p.strip() for p in text.split(":")]
        service_id = parts[0].lower()
        size = parts[1].lower() if len(parts) > 1 and parts[1] else None
        quantity = 1
        if len(parts) > 2:
            try:
                quantity = int(parts[2])
            except ValueError:
                raise ValueError(f"Invalid quantity in service item: {text!r}") from None
        return cls(service_id=service_id, size=size, quantity=quantity)

    def to_dict(self) -> dict:
        data: dict = {"service_id": self.service_id, "quantity": self.quantity}
        if self.size:
            data["size"] = self.size
        return data


@dataclass(frozen=True)
class Booking:
    """A stored booking. The engine only ever reads these."""
    id: int
    postcode: str
    preferred_date: date
    preferred_time: str
    services: Tuple[ServiceItem, ...] = ()
    status: BookingStatus = BookingStatus.PENDING
    name: str = ""
    email: str = ""
    phone: str = ""
    car_make: str = ""
    car_model: str = ""

    @property
    def is_occupying(self) -> bool:
        return self.status.is_occupying

    def with_status(self, status: BookingStatus) -> "Booking":
        return replace(self, status=status)


@dataclass(frozen=True)
class Amendment:
    """A customer's request to move an existing booking."""
    id: int
    booking_id: int
    new_date: date
    new_time: str
    message: str = ""


@dataclass(frozen=True)
class CalendarBlock:
    """Externally-held busy time; carries no location."""
    start: int
    end: int


@dataclass(frozen=True)
class ScheduleInterval:
    """
    Occupied time on a single day.

    Invariant: start must be before end. ``location`` is None for calendar
    blocks and the booking postcode otherwise.
    """
    start: int
    end: int
    location: Optional[str] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(
                f"Interval start {self.start} must be before end {self.end}"
            )

    def duration_minutes(self) -> int:
        return self.end - self.start

    def overlaps(self, start: int, end: int) -> bool:
        """Half-open intersection test against [start, end)."""
        return max(self.start, start) < min(self.end, end)

    def __str__(self) -> str:
        label = self.location or "calendar"
        return f"{format_time_of_day(self.start)}-{format_time_of_day(self.end)} ({label})"


@dataclass(frozen=True)
class AvailabilityResult:
    """Feasible start times for one date; empty means no slot that day."""
    date: date
    slots: List[str] = field(default_factory=list)

    @property
    def has_slots(self) -> bool:
        return bool(self.slots)


@dataclass(frozen=True)
class DayAreaResult:
    date: date
    in_area: bool


@dataclass
class WorkingHours:
    """
    Daily working window in minutes from midnight.
    """
    start: int
    end: int
    working_days: Sequence[int]  # 0=Monday, 6=Sunday

    def is_working_day(self, day: date) -> bool:
        """Check if a given date falls on a working day."""
        return day.weekday() in self.working_days

    def contains(self, start: int, end: int) -> bool:
        """True when [start, end) fits entirely inside the working window."""
        return self.start <= start and end <= self.end
