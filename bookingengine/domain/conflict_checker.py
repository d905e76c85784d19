"""
Validates a single proposed booking against a snapshot.

This is the admission-control gate: a listing from ``AvailabilityService`` is
only a hint, and callers must re-run ``ConflictChecker.check`` against freshly
loaded bookings at the moment they commit.

The check runs in two phases:
1. Existence (service, staff, customer). The first failure short-circuits,
   since nothing else is meaningful without valid entities.
2. Policy. Every check runs and every finding is accumulated, in a fixed
   order, so identical inputs always produce identical results.
"""

import logging
from datetime import date
from typing import Callable, Iterable, List, Optional

import pendulum
from pendulum import DateTime

from .calendar_resolver import CalendarResolver
from .capacity import CapacityTracker
from .models import (
    Booking,
    BookingContext,
    Interval,
    Proposal,
    Service,
    StaffMember,
    contains,
    occupied,
    overlaps,
    provides,
)
from .results import Conflict, ConflictKind, ConflictResult

logger = logging.getLogger(__name__)


def _hhmm(window: Interval, tz: str) -> str:
    start = window.start.in_timezone(tz)
    end = window.end.in_timezone(tz)
    return f"{start.format('HH:mm')}-{end.format('HH:mm')}"


def _staff_label(staff: StaffMember) -> str:
    return staff.name or staff.id


class ConflictChecker:
    """
    Checks a proposal for every policy violation at once.

    The per-check methods are public so availability listing can run exactly
    the same code for candidate slots.
    """

    def __init__(
        self,
        capacity_tracker: Optional[CapacityTracker] = None,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._capacity = capacity_tracker or CapacityTracker()
        self._clock = clock

    def check(
        self,
        proposal: Proposal,
        context: BookingContext,
        now: Optional[DateTime] = None,
    ) -> ConflictResult:
        """
        Validate ``proposal`` against ``context``.

        Args:
            proposal: The booking to validate
            context: Snapshot of calendar, roster, catalog and bookings
            now: Evaluation time for the past-date warning; defaults to the clock

        Returns:
            ConflictResult with findings in check order
        """
        # Phase 1: existence, short-circuiting
        service = context.services.get(proposal.service_id)
        if service is None or service.business_id != context.business_id:
            return self._rejected(Conflict.error(
                ConflictKind.SERVICE_NOT_FOUND,
                "Service not found or does not belong to this business",
            ))
        if not service.is_active:
            return self._rejected(Conflict.error(
                ConflictKind.SERVICE_INACTIVE,
                f'Service "{service.name or service.id}" is not active',
            ))

        staff: Optional[StaffMember] = None
        if proposal.staff_id is not None:
            staff = context.staff.get(proposal.staff_id)
            if staff is None or staff.business_id != context.business_id:
                return self._rejected(Conflict.error(
                    ConflictKind.STAFF_NOT_FOUND,
                    "Staff member not found or does not belong to this business",
                ))
            if not staff.is_active:
                return self._rejected(Conflict.error(
                    ConflictKind.STAFF_INACTIVE,
                    f'Staff member "{_staff_label(staff)}" is not active',
                ))

        if not context.customer_exists(proposal.customer_id):
            return self._rejected(Conflict.error(
                ConflictKind.CUSTOMER_NOT_FOUND,
                "Customer not found or does not belong to this business",
            ))

        # Phase 2: policy, accumulating
        bookings = context.active_bookings(exclude_booking_id=proposal.exclude_booking_id)
        conflicts: List[Conflict] = []

        if staff is not None:
            conflicts.extend(self.check_staff_eligibility(service, staff))
        conflicts.extend(self.check_business_hours(proposal, context))
        if staff is not None:
            conflicts.extend(self.check_staff_hours(proposal, staff, context))
        conflicts.extend(self.check_capacity(service, proposal, bookings, context))
        if staff is not None:
            conflicts.extend(
                self.check_staff_double_booking(service, staff, proposal, bookings, context)
            )
        conflicts.extend(
            self.check_customer_double_booking(proposal.customer_id, proposal, bookings, context)
        )
        conflicts.extend(self.check_range(proposal))
        conflicts.extend(self.check_not_in_past(proposal, now))

        result = ConflictResult(conflicts=tuple(conflicts))
        logger.debug(
            "Checked proposal service=%s staff=%s customer=%s %s: %d finding(s), can_proceed=%s",
            proposal.service_id, proposal.staff_id, proposal.customer_id,
            proposal.start, len(conflicts), result.can_proceed,
        )
        return result

    @staticmethod
    def _rejected(conflict: Conflict) -> ConflictResult:
        logger.debug("Proposal rejected during existence checks: %s", conflict.kind.value)
        return ConflictResult(conflicts=(conflict,))

    @staticmethod
    def local_date(window: Interval, context: BookingContext) -> date:
        """Calendar date of a window start in the business timezone."""
        return window.start.in_timezone(context.timezone).date()

    def check_staff_eligibility(self, service: Service, staff: StaffMember) -> List[Conflict]:
        if provides(staff, service):
            return []
        return [Conflict.error(
            ConflictKind.STAFF_SERVICE_MISMATCH,
            f'Staff member "{_staff_label(staff)}" does not provide service '
            f'"{service.name or service.id}"',
        )]

    def check_business_hours(self, window: Interval, context: BookingContext) -> List[Conflict]:
        day = self.local_date(window, context)
        business_window = CalendarResolver(context.timezone).resolve_business_window(
            context.calendar, day
        )

        if business_window is None:
            return [Conflict.error(
                ConflictKind.BUSINESS_CLOSED,
                f"Business is closed on {day.isoformat()}",
            )]
        if not contains(business_window, window):
            return [Conflict.error(
                ConflictKind.OUTSIDE_BUSINESS_HOURS,
                f"Appointment time ({_hhmm(window, context.timezone)}) is outside business hours "
                f"({_hhmm(business_window, context.timezone)})",
            )]
        return []

    def check_staff_hours(
        self,
        window: Interval,
        staff: StaffMember,
        context: BookingContext,
    ) -> List[Conflict]:
        day = self.local_date(window, context)
        staff_day = CalendarResolver(context.timezone).resolve_staff_day(staff, day)
        label = _staff_label(staff)

        if staff_day.scheduled is None:
            return [Conflict.error(
                ConflictKind.STAFF_NOT_SCHEDULED,
                f'Staff member "{label}" does not work on {day.isoformat()}',
            )]
        if staff_day.all_day_off:
            return [Conflict.error(
                ConflictKind.STAFF_TIME_OFF_ALL_DAY,
                f'Staff member "{label}" has all-day time off on {day.isoformat()}',
            )]

        conflicts: List[Conflict] = []
        if not contains(staff_day.scheduled, window):
            conflicts.append(Conflict.error(
                ConflictKind.OUTSIDE_STAFF_HOURS,
                f"Appointment time ({_hhmm(window, context.timezone)}) is outside staff hours "
                f"({_hhmm(staff_day.scheduled, context.timezone)})",
            ))
        for excluded in staff_day.exclusions:
            if overlaps(excluded, window):
                conflicts.append(Conflict.error(
                    ConflictKind.STAFF_TIME_OFF_PARTIAL_OVERLAP,
                    f'Appointment overlaps with time off of "{label}" ({_hhmm(excluded, context.timezone)})',
                ))
        return conflicts

    def check_capacity(
        self,
        service: Service,
        window: Interval,
        bookings: Iterable[Booking],
        context: BookingContext,
    ) -> List[Conflict]:
        """Capacity is measured against the exact window, not a pre-tiled slot."""
        if self._capacity.is_available(service, window, bookings):
            return []
        return [Conflict.error(
            ConflictKind.CAPACITY_EXCEEDED,
            f'Service "{service.name or service.id}" has reached maximum booking capacity '
            f"({service.max_bookings_per_slot} per slot) for {_hhmm(window, context.timezone)}",
        )]

    def check_staff_double_booking(
        self,
        service: Service,
        staff: StaffMember,
        window: Interval,
        bookings: Iterable[Booking],
        context: BookingContext,
    ) -> List[Conflict]:
        """
        Each booking occupies its window plus the buffer of its own service.
        """
        footprint = occupied(window, service.buffer_minutes)
        conflicts: List[Conflict] = []

        for booking in bookings:
            if booking.staff_id != staff.id:
                continue
            booked_service = context.services.get(booking.service_id)
            buffer = booked_service.buffer_minutes if booked_service else 0
            if overlaps(occupied(booking, buffer), footprint):
                conflicts.append(Conflict.error(
                    ConflictKind.STAFF_DOUBLE_BOOKING,
                    f'Staff member "{_staff_label(staff)}" is already booked '
                    f"({_hhmm(booking, context.timezone)})",
                    related_booking_id=booking.id,
                ))
        return conflicts

    def check_customer_double_booking(
        self,
        customer_id: str,
        window: Interval,
        bookings: Iterable[Booking],
        context: BookingContext,
    ) -> List[Conflict]:
        return [
            Conflict.error(
                ConflictKind.CUSTOMER_DOUBLE_BOOKING,
                f"Customer is already booked ({_hhmm(booking, context.timezone)})",
                related_booking_id=booking.id,
            )
            for booking in bookings
            if booking.customer_id == customer_id and overlaps(booking, window)
        ]

    def check_range(self, proposal: Proposal) -> List[Conflict]:
        if proposal.start < proposal.end:
            return []
        return [Conflict.error(
            ConflictKind.INVALID_RANGE,
            "Start time must be before end time",
        )]

    def check_not_in_past(self, proposal: Proposal, now: Optional[DateTime] = None) -> List[Conflict]:
        """Past bookings only warn; the calling layer decides whether to reject."""
        now = now if now is not None else self._clock()
        if proposal.start >= now:
            return []
        return [Conflict.warning(
            ConflictKind.PAST_DATE,
            "Appointment is scheduled in the past",
        )]
