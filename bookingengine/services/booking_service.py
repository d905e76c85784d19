"""
Application service coordinating snapshot loading and the booking engine.

Snapshots are fetched through a provider protocol on every call, so each
admission check runs against freshly loaded bookings. This is what closes the
window between "list available slots" and "commit a booking": the listing
is a hint, the commit-time check is authoritative.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Protocol

from pendulum import DateTime

from ..domain import lifecycle
from ..domain.availability import AvailabilityService
from ..domain.conflict_checker import ConflictChecker
from ..domain.exceptions import BookingRejectedError
from ..domain.models import Booking, BookingContext, Proposal
from ..domain.results import ConflictResult, SlotAvailability

logger = logging.getLogger(__name__)


class SnapshotProviderProtocol(Protocol):
    """Protocol describing the persistence behaviour needed by the service."""

    async def load_snapshot(self, day: date) -> BookingContext:
        """Return the snapshot (calendar, roster, catalog, bookings) for a date."""

    async def load_snapshot_for_window(self, start: DateTime, end: DateTime) -> BookingContext:
        """
        Return the snapshot with the bookings of every business-local day the
        window touches. The instants may be in any timezone.
        """

    async def load_booking(self, booking_id: str) -> Booking:
        """Return one booking by id."""


class BookingService:
    """
    Orchestrates snapshot retrieval, availability listing and admission control.

    Dependency inversion toward a protocol makes it easy to plug in a real
    database adapter or the YAML snapshot provider in tests.
    """

    def __init__(
        self,
        snapshot_provider: SnapshotProviderProtocol,
        availability: Optional[AvailabilityService] = None,
    ) -> None:
        self._provider = snapshot_provider
        self._availability = availability or AvailabilityService()
        self._checker: ConflictChecker = self._availability.checker

    async def list_available_slots(
        self,
        *,
        service_id: str,
        day: date,
        staff_id: Optional[str] = None,
    ) -> List[SlotAvailability]:
        """Advisory listing of open slots. Re-check with ``admit`` before committing."""
        context = await self._provider.load_snapshot(day)
        return self._availability.list_available_slots(
            service_id, day, context, staff_id=staff_id
        )

    async def admit(
        self,
        proposal: Proposal,
        *,
        now: Optional[DateTime] = None,
    ) -> ConflictResult:
        """
        Authoritative commit-time check against a freshly loaded snapshot.
        """
        context = await self._provider.load_snapshot_for_window(proposal.start, proposal.end)
        result = self._checker.check(proposal, context, now=now)

        if not result.can_proceed:
            logger.info(
                "Refused booking for customer %s at %s: %s",
                proposal.customer_id,
                proposal.start,
                ", ".join(c.kind.value for c in result.errors),
            )
        return result

    async def reschedule(
        self,
        *,
        booking_id: str,
        new_start: DateTime,
        new_end: DateTime,
        staff_id: Optional[str] = None,
        now: Optional[DateTime] = None,
    ) -> Booking:
        """Re-validate a booking at a new time, excluding itself from the check."""
        booking = await self._provider.load_booking(booking_id)
        context = await self._provider.load_snapshot_for_window(new_start, new_end)

        try:
            return lifecycle.reschedule(
                booking,
                new_start,
                new_end,
                context,
                self._checker,
                staff_id=staff_id,
                now=now,
            )
        except BookingRejectedError as exc:
            logger.info("%s", exc)
            raise

    async def cancel(self, *, booking_id: str) -> Booking:
        booking = await self._provider.load_booking(booking_id)
        return lifecycle.cancel(booking)

    async def confirm(self, *, booking_id: str) -> Booking:
        booking = await self._provider.load_booking(booking_id)
        return lifecycle.confirm(booking)
