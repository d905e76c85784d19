"""
Domain layer - booking logic without I/O.
"""

from .availability import AvailabilityService
from .calendar_resolver import BusinessDay, CalendarResolver, StaffDay
from .capacity import CapacityTracker
from .conflict_checker import ConflictChecker
from .models import (
    Booking,
    BookingContext,
    BookingStatus,
    BusinessCalendar,
    DayHours,
    Proposal,
    Service,
    StaffMember,
    TimeOff,
    TimeWindow,
    contains,
    duration_minutes,
    occupied,
    overlaps,
    provides,
)
from .results import Conflict, ConflictKind, ConflictResult, Severity, SlotAvailability
from .slot_generator import SlotGrid, generate_slots

__all__ = [
    "AvailabilityService",
    "Booking",
    "BookingContext",
    "BookingStatus",
    "BusinessCalendar",
    "BusinessDay",
    "CalendarResolver",
    "CapacityTracker",
    "Conflict",
    "ConflictChecker",
    "ConflictKind",
    "ConflictResult",
    "DayHours",
    "Proposal",
    "Service",
    "Severity",
    "SlotAvailability",
    "SlotGrid",
    "StaffDay",
    "StaffMember",
    "TimeOff",
    "TimeWindow",
    "contains",
    "duration_minutes",
    "generate_slots",
    "occupied",
    "overlaps",
    "provides",
]
