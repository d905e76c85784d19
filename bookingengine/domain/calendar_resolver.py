"""
Resolves the effective working windows of the business and its staff for a date.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

from .models import BusinessCalendar, StaffMember, TimeWindow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusinessDay:
    """Opening state of the business on one date."""
    date: date
    window: Optional[TimeWindow]

    @property
    def is_open(self) -> bool:
        return self.window is not None

    @property
    def reason(self) -> str:
        if self.window is None:
            return f"Business is closed on {self.date.isoformat()}"
        return (
            f"Business is open from {self.window.start.format('HH:mm')} "
            f"to {self.window.end.format('HH:mm')} on {self.date.isoformat()}"
        )


@dataclass(frozen=True)
class StaffDay:
    """
    Resolved availability of one staff member on one date.

    ``scheduled`` is the weekly schedule window ignoring time off;
    ``exclusions`` holds partial time off, ascending by start.
    """
    staff_id: str
    date: date
    scheduled: Optional[TimeWindow]
    all_day_off: bool = False
    exclusions: Tuple[TimeWindow, ...] = field(default_factory=tuple)

    @property
    def window(self) -> Optional[TimeWindow]:
        """Working window, or None when not working at all that day."""
        if self.all_day_off:
            return None
        return self.scheduled

    def free_windows(self) -> List[TimeWindow]:
        """Working window minus partial time off, as non-contiguous pieces."""
        window = self.window
        if window is None:
            return []

        free: List[TimeWindow] = []
        current_start = window.start

        for excluded in self.exclusions:
            if not excluded.overlaps(window):
                continue

            clipped_start = max(excluded.start, window.start)
            clipped_end = min(excluded.end, window.end)

            if current_start < clipped_start:
                free.append(TimeWindow(start=current_start, end=clipped_start))

            current_start = max(current_start, clipped_end)

        if current_start < window.end:
            free.append(TimeWindow(start=current_start, end=window.end))

        return free


class CalendarResolver:
    """
    Merges weekly schedules with time-off overrides for a given date.

    Staff without a schedule row for a weekday are unavailable that day; they
    never fall back to business hours.
    """

    def __init__(self, timezone: str = "UTC"):
        self.timezone = timezone

    def resolve_business_window(self, calendar: BusinessCalendar, day: date) -> Optional[TimeWindow]:
        """Return the opening window, or None if the business is closed that weekday."""
        hours = calendar.hours_for(day.weekday())
        if hours is None:
            return None
        return TimeWindow.on(day, hours, self.timezone)

    def scheduled_staff_window(self, staff: StaffMember, day: date) -> Optional[TimeWindow]:
        """Window from the weekly schedule alone, ignoring time off."""
        hours = staff.weekly_schedule.get(day.weekday())
        if hours is None:
            return None
        return TimeWindow.on(day, hours, self.timezone)

    def has_all_day_time_off(self, staff: StaffMember, day: date) -> bool:
        return any(entry.is_all_day for entry in staff.time_off_on(day))

    def resolve_staff_window(self, staff: StaffMember, day: date) -> Optional[TimeWindow]:
        """
        Return the staff working window for the date.

        None when unscheduled or on all-day time off. Partial time off does
        not truncate the window; see ``time_off_exclusions``.
        """
        if self.has_all_day_time_off(staff, day):
            return None
        return self.scheduled_staff_window(staff, day)

    def time_off_exclusions(self, staff: StaffMember, day: date) -> List[TimeWindow]:
        """Partial time-off intervals for the date, ascending by start."""
        windows = [
            entry.window(self.timezone)
            for entry in staff.time_off_on(day)
            if not entry.is_all_day
        ]
        return sorted(windows, key=lambda w: (w.start, w.end))

    def resolve_business_day(self, calendar: BusinessCalendar, day: date) -> BusinessDay:
        return BusinessDay(date=day, window=self.resolve_business_window(calendar, day))

    def resolve_staff_day(self, staff: StaffMember, day: date) -> StaffDay:
        staff_day = StaffDay(
            staff_id=staff.id,
            date=day,
            scheduled=self.scheduled_staff_window(staff, day),
            all_day_off=self.has_all_day_time_off(staff, day),
            exclusions=tuple(self.time_off_exclusions(staff, day)),
        )
        logger.debug(
            "Resolved staff %s on %s: window=%s exclusions=%d",
            staff.id, day, staff_day.window, len(staff_day.exclusions),
        )
        return staff_day
