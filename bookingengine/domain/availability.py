"""
Answers "which slots are open" queries.

Candidate slots are filtered with the very same checks ``ConflictChecker``
runs on a proposal (business hours, staff hours and time off, staff
double-booking, capacity), so listing and checking cannot disagree.
A listing is advisory only; the commit-time conflict check is authoritative.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

import pendulum
from pendulum import DateTime

from .calendar_resolver import BusinessDay, CalendarResolver, StaffDay
from .capacity import CapacityTracker
from .conflict_checker import ConflictChecker
from .exceptions import UnknownEntityError
from .models import Booking, BookingContext, Service, StaffMember, TimeWindow
from .results import SlotAvailability
from .slot_generator import generate_slots

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Combines calendar resolution, slot tiling and capacity accounting.

    Algorithm:
    1. Resolve the business window for the date
    2. For each active eligible staff member, resolve their window
    3. Tile the intersection of business and staff windows into slots
    4. Keep a slot for a staff member if the staff checks pass for them
    5. Keep the slot if the service still has capacity for it
    """

    def __init__(
        self,
        checker: Optional[ConflictChecker] = None,
        capacity_tracker: Optional[CapacityTracker] = None,
        granularity_minutes: int = 30,
    ):
        self.capacity_tracker = capacity_tracker or CapacityTracker()
        self.checker = checker or ConflictChecker(capacity_tracker=self.capacity_tracker)
        self.granularity_minutes = granularity_minutes

    def list_available_slots(
        self,
        service_id: str,
        day: date,
        context: BookingContext,
        staff_id: Optional[str] = None,
    ) -> List[SlotAvailability]:
        """
        List open slots for a service on a date.

        Args:
            service_id: Service to book
            day: Calendar date in the business timezone
            context: Snapshot to compute against
            staff_id: Restrict to one staff member

        Returns:
            SlotAvailability entries ordered by slot start

        Raises:
            UnknownEntityError: If the service or staff member does not exist
        """
        service = self._get_service(service_id, context)
        if not service.is_active:
            return []

        resolver = CalendarResolver(context.timezone)
        business_window = resolver.resolve_business_window(context.calendar, day)
        if business_window is None:
            logger.debug("Business closed on %s, no slots for %s", day, service_id)
            return []

        bookings = context.active_bookings()
        candidate_staff = self._candidate_staff(service, context, staff_id)

        # window -> staff ids that can serve it, filled in tiling order
        staff_by_slot: Dict[TimeWindow, List[str]] = {}

        if staff_id is None and not context.eligible_staff_ids(service):
            # Self-serve service: no staff to check, tile the business window
            for slot in self._tile(business_window, service):
                staff_by_slot[slot] = []
        else:
            for staff in candidate_staff:
                staff_window = resolver.resolve_staff_window(staff, day)
                if staff_window is None:
                    continue
                tiling_window = business_window.intersect(staff_window)
                if tiling_window is None:
                    continue
                for slot in self._tile(tiling_window, service):
                    if self._staff_can_serve(service, staff, slot, bookings, context):
                        staff_by_slot.setdefault(slot, []).append(staff.id)

        slots: List[SlotAvailability] = []
        for slot in sorted(staff_by_slot, key=lambda w: (w.start, w.end)):
            if self.checker.check_business_hours(slot, context):
                continue
            remaining = self.capacity_tracker.remaining_capacity(service, slot, bookings)
            if remaining <= 0:
                continue
            slots.append(SlotAvailability(
                window=slot,
                eligible_staff_ids=tuple(sorted(staff_by_slot[slot])),
                remaining_capacity=remaining,
            ))

        logger.debug("Found %d open slot(s) for %s on %s", len(slots), service_id, day)
        return slots

    def is_available(
        self,
        service_id: str,
        start: DateTime,
        context: BookingContext,
        staff_id: Optional[str] = None,
    ) -> bool:
        """Real-time check whether a slot starting exactly at ``start`` is listed."""
        day = start.in_timezone(context.timezone).date()
        return any(
            slot.window.start == start
            for slot in self.list_available_slots(service_id, day, context, staff_id=staff_id)
        )

    def business_hours(self, day: date, context: BookingContext) -> BusinessDay:
        return CalendarResolver(context.timezone).resolve_business_day(context.calendar, day)

    def staff_day(self, day: date, context: BookingContext) -> List[StaffDay]:
        """Availability of every active staff member on a date, sorted by name."""
        resolver = CalendarResolver(context.timezone)
        roster = sorted(
            (
                staff for staff in context.staff.values()
                if staff.is_active and staff.business_id == context.business_id
            ),
            key=lambda s: (s.name, s.id),
        )
        return [resolver.resolve_staff_day(staff, day) for staff in roster]

    def staff_calendar(
        self,
        staff_id: str,
        start_date: date,
        end_date: date,
        context: BookingContext,
    ) -> List[StaffDay]:
        """Resolved availability of one staff member for each date in an inclusive range."""
        staff = self._get_staff(staff_id, context)
        resolver = CalendarResolver(context.timezone)

        days: List[StaffDay] = []
        current = pendulum.date(start_date.year, start_date.month, start_date.day)

        while current <= end_date:
            days.append(resolver.resolve_staff_day(staff, current))
            current = current.add(days=1)

        return days

    def _tile(self, window: TimeWindow, service: Service):
        return generate_slots(
            window,
            duration_minutes=service.duration_minutes,
            buffer_minutes=service.buffer_minutes,
            granularity_minutes=self.granularity_minutes,
        )

    def _staff_can_serve(
        self,
        service: Service,
        staff: StaffMember,
        slot: TimeWindow,
        bookings: List[Booking],
        context: BookingContext,
    ) -> bool:
        return not (
            self.checker.check_staff_eligibility(service, staff)
            or self.checker.check_staff_hours(slot, staff, context)
            or self.checker.check_staff_double_booking(service, staff, slot, bookings, context)
        )

    def _candidate_staff(
        self,
        service: Service,
        context: BookingContext,
        staff_id: Optional[str],
    ) -> List[StaffMember]:
        if staff_id is not None:
            staff = self._get_staff(staff_id, context)
            return [staff] if staff.is_active else []

        candidates: List[StaffMember] = []
        for eligible_id in sorted(context.eligible_staff_ids(service)):
            staff = context.staff.get(eligible_id)
            if staff is None or staff.business_id != context.business_id:
                logger.warning(
                    "Service %s lists unknown staff member %s", service.id, eligible_id
                )
                continue
            if staff.is_active:
                candidates.append(staff)
        return candidates

    @staticmethod
    def _get_service(service_id: str, context: BookingContext) -> Service:
        service = context.services.get(service_id)
        if service is None or service.business_id != context.business_id:
            raise UnknownEntityError(f"Service not found: {service_id}")
        return service

    @staticmethod
    def _get_staff(staff_id: str, context: BookingContext) -> StaffMember:
        staff = context.staff.get(staff_id)
        if staff is None or staff.business_id != context.business_id:
            raise UnknownEntityError(f"Staff member not found: {staff_id}")
        return staff
