"""
JSON-file booking store.

Keeps bookings and amendment requests in memory and, when a path is
given, writes the whole document back after every change. Good enough for
a single technician's diary; swap in a database-backed store behind the
same protocol if that ever stops being true.
"""

import asyncio
import json
import logging
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..domain.exceptions import BookingNotFoundError, BookingStoreError
from ..domain.models import Amendment, Booking, BookingStatus, ServiceItem, parse_date

logger = logging.getLogger(__name__)


def booking_to_dict(booking: Booking) -> Dict[str, Any]:
    return {
        "id": booking.id,
        "name": booking.name,
        "email": booking.email,
        "phone": booking.phone,
        "postcode": booking.postcode,
        "car_make": booking.car_make,
        "car_model": booking.car_model,
        "services": [item.to_dict() for item in booking.services],
        "preferred_date": booking.preferred_date.isoformat(),
        "preferred_time": booking.preferred_time,
        "status": booking.status.value,
    }


def booking_from_dict(data: Dict[str, Any]) -> Booking:
    return Booking(
        id=int(data["id"]),
        postcode=data.get("postcode", ""),
        preferred_date=parse_date(data["preferred_date"]),
        preferred_time=data.get("preferred_time", ""),
        services=tuple(ServiceItem.from_dict(item) for item in data.get("services") or []),
        status=BookingStatus(data.get("status", BookingStatus.PENDING.value)),
        name=data.get("name", ""),
        email=data.get("email", ""),
        phone=data.get("phone", ""),
        car_make=data.get("car_make", ""),
        car_model=data.get("car_model", ""),
    )


def amendment_to_dict(amendment: Amendment) -> Dict[str, Any]:
    return {
        "id": amendment.id,
        "booking_id": amendment.booking_id,
        "new_date": amendment.new_date.isoformat(),
        "new_time": amendment.new_time,
        "message": amendment.message,
    }


def amendment_from_dict(data: Dict[str, Any]) -> Amendment:
    return Amendment(
        id=int(data["id"]),
        booking_id=int(data["booking_id"]),
        new_date=parse_date(data["new_date"]),
        new_time=data.get("new_time", ""),
        message=data.get("message", ""),
    )


class JsonBookingStore:
    """Booking repository backed by a single JSON document."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._lock = asyncio.Lock()
        self._bookings: Dict[int, Booking] = {}
        self._amendments: Dict[int, Amendment] = {}
        if path is not None:
            self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f) or {}
            bookings = [booking_from_dict(item) for item in document.get("bookings", [])]
            amendments = [amendment_from_dict(item) for item in document.get("amendments", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise BookingStoreError(f"Could not read bookings from {self.path}: {exc}") from exc

        self._bookings = {booking.id: booking for booking in bookings}
        self._amendments = {amendment.id: amendment for amendment in amendments}
        logger.debug("Loaded %d booking(s) from %s", len(self._bookings), self.path)

    def _flush(self) -> None:
        if self.path is None:
            return
        document = {
            "bookings": [booking_to_dict(b) for b in sorted(self._bookings.values(), key=lambda b: b.id)],
            "amendments": [amendment_to_dict(a) for a in sorted(self._amendments.values(), key=lambda a: a.id)],
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            tmp_path.replace(self.path)
        except OSError as exc:
            raise BookingStoreError(f"Could not write bookings to {self.path}: {exc}") from exc

    async def list_occupying_bookings(self, day: date) -> List[Booking]:
        return sorted(
            (
                booking for booking in self._bookings.values()
                if booking.preferred_date == day and booking.is_occupying
            ),
            key=lambda b: (b.preferred_time, b.id),
        )

    async def list_bookings(self) -> List[Booking]:
        return sorted(self._bookings.values(), key=lambda b: b.id)

    async def get_booking(self, booking_id: int) -> Booking:
        try:
            return self._bookings[booking_id]
        except KeyError:
            raise BookingNotFoundError(booking_id) from None

    async def add_booking(self, booking: Booking) -> Booking:
        async with self._lock:
            new_id = max(self._bookings, default=0) + 1
            stored = replace(booking, id=new_id)
            self._bookings[new_id] = stored
            self._flush()
            return stored

    async def save_booking(self, booking: Booking) -> None:
        async with self._lock:
            if booking.id not in self._bookings:
                raise BookingNotFoundError(booking.id)
            self._bookings[booking.id] = booking
            self._flush()

    async def add_amendment(self, amendment: Amendment) -> Amendment:
        async with self._lock:
            new_id = max(self._amendments, default=0) + 1
            stored = replace(amendment, id=new_id)
            self._amendments[new_id] = stored
            self._flush()
            return stored

    async def list_amendments(self, booking_id: int) -> List[Amendment]:
        return [a for a in sorted(self._amendments.values(), key=lambda a: a.id) if a.booking_id == booking_id]
