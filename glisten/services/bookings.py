"""
Booking lifecycle: creation, amendment requests and status changes.

Persistence only happens after the scheduling service has accepted the
requested slot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, FrozenSet, Protocol, Sequence

from ..domain.exceptions import InvalidStatusTransition
from ..domain.models import Amendment, Booking, BookingStatus, ServiceItem, normalize_postcode, parse_date
from .scheduler import BookingStoreProtocol, SchedulingService

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.DECLINED, BookingStatus.CANCELLED}
    ),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.DECLINED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


class BookingRepositoryProtocol(BookingStoreProtocol, Protocol):
    """Full booking store used by the lifecycle service."""

    async def get_booking(self, booking_id: int) -> Booking:
        """Return the booking or raise BookingNotFoundError."""

    async def add_booking(self, booking: Booking) -> Booking:
        """Persist a new booking and return it with its assigned id."""

    async def save_booking(self, booking: Booking) -> None:
        """Overwrite an existing booking."""

    async def add_amendment(self, amendment: Amendment) -> Amendment:
        """Persist an amendment request and return it with its assigned id."""


@dataclass(frozen=True)
class BookingRequest:
    """What a customer submits from the booking form."""
    postcode: str
    preferred_date: "date | str"
    preferred_time: str
    services: Sequence[ServiceItem] = ()
    name: str = ""
    email: str = ""
    phone: str = ""
    car_make: str = ""
    car_model: str = ""


class BookingService:
    """Validates and records bookings through the repository."""

    def __init__(self, repository: BookingRepositoryProtocol, scheduler: SchedulingService) -> None:
        self._repository = repository
        self._scheduler = scheduler

    async def create_booking(self, request: BookingRequest) -> Booking:
        """
        Validate the requested slot, then store it as a pending booking.

        Raises:
            BookingValidationError: If the slot is not feasible
        """
        await self._scheduler.validate(
            request.preferred_date,
            request.postcode,
            request.services,
            request.preferred_time,
        )

        booking = await self._repository.add_booking(
            Booking(
                id=0,
                postcode=normalize_postcode(request.postcode),
                preferred_date=parse_date(request.preferred_date),
                preferred_time=request.preferred_time.strip(),
                services=tuple(request.services),
                status=BookingStatus.PENDING,
                name=request.name,
                email=request.email,
                phone=request.phone,
                car_make=request.car_make,
                car_model=request.car_model,
            )
        )
        logger.info(
            "Booking %s created for %s on %s at %s",
            booking.id,
            booking.postcode,
            booking.preferred_date,
            booking.preferred_time,
        )
        return booking

    async def get_booking(self, booking_id: int) -> Booking:
        return await self._repository.get_booking(booking_id)

    async def request_amendment(
        self,
        booking_id: int,
        new_date: "date | str",
        new_time: str,
        message: str = "",
    ) -> Amendment:
        """
        Record a request to move a booking.

        The new slot is checked against the day's schedule without the
        booking itself, so moving a job by a few minutes does not collide
        with its own current slot.

        Raises:
            BookingNotFoundError: If the booking does not exist
            InvalidStatusTransition: If the booking no longer holds a slot
            BookingValidationError: If the new slot is not feasible
        """
        booking = await self._repository.get_booking(booking_id)
        if not booking.is_occupying:
            raise InvalidStatusTransition(
                f"Booking {booking_id} is {booking.status.value} and cannot be amended"
            )

        await self._scheduler.validate(
            new_date,
            booking.postcode,
            booking.services,
            new_time,
            exclude_booking_id=booking.id,
        )

        amendment = await self._repository.add_amendment(
            Amendment(
                id=0,
                booking_id=booking.id,
                new_date=parse_date(new_date),
                new_time=new_time.strip(),
                message=message,
            )
        )
        logger.info("Amendment %s recorded for booking %s", amendment.id, booking.id)
        return amendment

    async def update_status(self, booking_id: int, status: BookingStatus) -> Booking:
        """
        Move a booking through its lifecycle.

        Raises:
            BookingNotFoundError: If the booking does not exist
            InvalidStatusTransition: If the change is not allowed
        """
        booking = await self._repository.get_booking(booking_id)
        if status == booking.status:
            return booking

        if status not in ALLOWED_TRANSITIONS[booking.status]:
            raise InvalidStatusTransition(
                f"Cannot change booking {booking_id} from {booking.status.value} to {status.value}"
            )

        updated = booking.with_status(status)
        await self._repository.save_booking(updated)
        logger.info("Booking %s is now %s", booking_id, status.value)
        return updated

