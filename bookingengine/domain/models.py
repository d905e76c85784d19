"""
Domain models for time windows and the booking snapshot entities.

``overlaps`` and ``contains`` are the only interval predicates in the
package. Everything that compares two periods of time goes through them.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import FrozenSet, List, Mapping, Optional, Protocol, Tuple

import pendulum
from pendulum import DateTime


class Interval(Protocol):
    """Anything with a start and an end instant."""

    start: DateTime
    end: DateTime


def overlaps(a: Interval, b: Interval) -> bool:
    """Half-open overlap: touching endpoints do not overlap."""
    return a.start < b.end and b.start < a.end


def contains(outer: Interval, inner: Interval) -> bool:
    """Check that ``inner`` lies completely within ``outer``."""
    return outer.start <= inner.start and inner.end <= outer.end


def duration_minutes(window: Interval) -> int:
    """Return the duration in whole minutes."""
    return int((window.end - window.start).total_seconds() // 60)


@dataclass(frozen=True)
class Footprint:
    """Time a booking keeps a staff member busy. Not validated, like ``Proposal``."""
    start: DateTime
    end: DateTime


def occupied(window: Interval, buffer_minutes: int = 0) -> Interval:
    """Return ``window`` extended by a trailing buffer."""
    if not buffer_minutes:
        return window
    return Footprint(start=window.start, end=window.end.add(minutes=buffer_minutes))


@dataclass(frozen=True)
class TimeWindow:
    """
    Represents an immutable time window with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def on(cls, day: date, hours: "DayHours", tz: str) -> "TimeWindow":
        """Anchor a wall-clock ``DayHours`` pair on a calendar date."""
        return cls(
            start=_at(day, hours.open_time, tz),
            end=_at(day, hours.close_time, tz),
        )

    @property
    def date(self) -> date:
        return self.start.date()

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return duration_minutes(self)

    def overlaps(self, other: Interval) -> bool:
        """Check if this window overlaps with another."""
        return overlaps(self, other)

    def contains(self, other: Interval) -> bool:
        """Check if another window lies within this one."""
        return contains(self, other)

    def intersect(self, other: "TimeWindow") -> "TimeWindow | None":
        """
        Calculate the intersection of two time windows.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeWindow(start=start, end=end)

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')}-{self.end.format('HH:mm')}"


def _at(day: date, clock: time, tz: str) -> DateTime:
    return pendulum.datetime(day.year, day.month, day.day, clock.hour, clock.minute, tz=tz)


@dataclass(frozen=True)
class DayHours:
    """Wall-clock opening hours for one weekday."""
    open_time: time
    close_time: time

    def __post_init__(self):
        if self.open_time >= self.close_time:
            raise ValueError(
                f"Open time {self.open_time} must be before close time {self.close_time}"
            )

    def __str__(self) -> str:
        return f"{self.open_time.strftime('%H:%M')}-{self.close_time.strftime('%H:%M')}"


# weekday -> hours; a missing key or None means closed/unavailable that day
WeeklySchedule = Mapping[int, Optional[DayHours]]


def _validate_weekdays(schedule: WeeklySchedule) -> None:
    invalid_days = [day for day in schedule if day not in range(7)]
    if invalid_days:
        raise ValueError(f"Weekdays must be between 0 and 6, got {invalid_days}")


@dataclass(frozen=True)
class BusinessCalendar:
    """
    Weekly opening hours of a business.

    Weekdays follow ``date.weekday()``: 0=Monday, 6=Sunday.
    """
    hours: WeeklySchedule = field(default_factory=dict)

    def __post_init__(self):
        _validate_weekdays(self.hours)

    def hours_for(self, weekday: int) -> Optional[DayHours]:
        return self.hours.get(weekday)


@dataclass(frozen=True)
class TimeOff:
    """
    A staff exclusion interval on one date: all-day, or a partial window.
    """
    staff_id: str
    date: date
    is_all_day: bool = False
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    title: str = ""

    def __post_init__(self):
        if self.is_all_day:
            return
        if self.start_time is None or self.end_time is None:
            raise ValueError("Partial time off needs both start_time and end_time")
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Time off start {self.start_time} must be before end {self.end_time}"
            )

    def window(self, tz: str) -> TimeWindow:
        """Exclusion interval of a partial time off. Not defined for all-day entries."""
        if self.is_all_day:
            raise ValueError("All-day time off has no partial window")
        return TimeWindow.on(self.date, DayHours(self.start_time, self.end_time), tz)


@dataclass(frozen=True)
class StaffMember:
    """A staff member with a weekly schedule independent of business hours."""
    id: str
    business_id: str
    name: str = ""
    is_active: bool = True
    service_ids: FrozenSet[str] = frozenset()
    weekly_schedule: WeeklySchedule = field(default_factory=dict)
    time_off: Tuple[TimeOff, ...] = ()

    def __post_init__(self):
        _validate_weekdays(self.weekly_schedule)
        object.__setattr__(self, "service_ids", frozenset(self.service_ids))
        object.__setattr__(self, "time_off", tuple(self.time_off))

    def time_off_on(self, day: date) -> List[TimeOff]:
        return [entry for entry in self.time_off if entry.date == day]


@dataclass(frozen=True)
class Service:
    """A bookable service with duration, buffer and per-slot capacity."""
    id: str
    business_id: str
    duration_minutes: int
    name: str = ""
    is_active: bool = True
    buffer_minutes: int = 0
    max_bookings_per_slot: int = 1
    eligible_staff_ids: FrozenSet[str] = frozenset()

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        if self.buffer_minutes < 0:
            raise ValueError("buffer_minutes must not be negative")
        if self.max_bookings_per_slot < 1:
            raise ValueError("max_bookings_per_slot must be at least 1")
        object.__setattr__(self, "eligible_staff_ids", frozenset(self.eligible_staff_ids))


def provides(staff: StaffMember, service: Service) -> bool:
    """Eligibility may be recorded on the service, on the staff member, or both."""
    return staff.id in service.eligible_staff_ids or service.id in staff.service_ids


class BookingStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"
    NO_SHOW = "no_show"


ACTIVE_STATUSES = frozenset({BookingStatus.SCHEDULED, BookingStatus.CONFIRMED})


@dataclass(frozen=True)
class Booking:
    """An existing booking as read from storage."""
    id: str
    service_id: str
    customer_id: str
    start: DateTime
    end: DateTime
    staff_id: Optional[str] = None
    status: BookingStatus = BookingStatus.SCHEDULED

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Booking {self.id}: start {self.start} must be before end {self.end}")

    @property
    def is_active(self) -> bool:
        """Only scheduled and confirmed bookings take part in checks."""
        return self.status in ACTIVE_STATUSES

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(start=self.start, end=self.end)


@dataclass(frozen=True)
class Proposal:
    """
    A booking request to validate.

    Unlike ``TimeWindow`` the range is not validated on construction: a
    reversed range is reported as an ``invalid-range`` finding.
    """
    service_id: str
    customer_id: str
    start: DateTime
    end: DateTime
    staff_id: Optional[str] = None
    exclude_booking_id: Optional[str] = None


@dataclass(frozen=True)
class BookingContext:
    """
    Point-in-time snapshot of everything one check or listing needs.

    Loaded by the persistence collaborator before the engine runs; the
    engine never re-reads data while computing.
    """
    business_id: str
    calendar: BusinessCalendar
    staff: Mapping[str, StaffMember] = field(default_factory=dict)
    services: Mapping[str, Service] = field(default_factory=dict)
    customer_ids: FrozenSet[str] = frozenset()
    bookings: Tuple[Booking, ...] = ()
    timezone: str = "UTC"

    def __post_init__(self):
        object.__setattr__(self, "customer_ids", frozenset(self.customer_ids))
        object.__setattr__(self, "bookings", tuple(self.bookings))

    def customer_exists(self, customer_id: str) -> bool:
        return customer_id in self.customer_ids

    def eligible_staff_ids(self, service: Service) -> FrozenSet[str]:
        """
        Staff ids that provide ``service``, from either side of the assignment.

        Ids the service lists are kept even when unknown to the roster;
        callers resolve them against ``staff``.
        """
        offered_by = {
            staff.id for staff in self.staff.values() if service.id in staff.service_ids
        }
        return frozenset(service.eligible_staff_ids) | offered_by

    def active_bookings(self, exclude_booking_id: Optional[str] = None) -> List[Booking]:
        """Active bookings ordered by start time, then id."""
        return sorted(
            (
                booking for booking in self.bookings
                if booking.is_active and booking.id != exclude_booking_id
            ),
            key=lambda b: (b.start, b.id),
        )

    def with_bookings(self, bookings) -> "BookingContext":
        """Return a copy of the snapshot with another booking set."""
        return BookingContext(
            business_id=self.business_id,
            calendar=self.calendar,
            staff=self.staff,
            services=self.services,
            customer_ids=self.customer_ids,
            bookings=tuple(bookings),
            timezone=self.timezone,
        )
