"""
Snapshot provider backed by a YAML file.

The file mirrors the storage rows (business hours, staff hours, time off,
services, customers, appointments) and is re-read on every call so that each
admission check sees the current state of the file.
"""

import logging
from datetime import date, datetime, time
from pathlib import Path
from typing import Dict, List, Optional, Union

import pendulum
import yaml
from pendulum import DateTime
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..domain.exceptions import SnapshotError, UnknownEntityError
from ..domain.models import (
    Booking,
    BookingContext,
    BookingStatus,
    BusinessCalendar,
    DayHours,
    Service,
    StaffMember,
    TimeOff,
    TimeWindow,
    overlaps,
)

logger = logging.getLogger(__name__)


def _reject_sexagesimal(value):
    # YAML 1.1 reads an unquoted 10:30 as the integer 630
    if isinstance(value, int):
        raise ValueError("time values must be quoted strings such as '10:30'")
    return value


class HoursRow(BaseModel):
    """Opening hours for one weekday (0=Monday, 6=Sunday)."""
    day: int
    open: Optional[time] = None
    close: Optional[time] = None
    closed: bool = False

    @field_validator("open", "close", mode="before")
    @classmethod
    def validate_quoted(cls, v):
        return _reject_sexagesimal(v)

    @field_validator("day")
    @classmethod
    def validate_day(cls, v: int) -> int:
        """Validate weekday is between 0 and 6."""
        if v not in range(7):
            raise ValueError(f"day must be between 0 and 6, got {v}")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "HoursRow":
        """Open days need both times, in order."""
        if self.closed:
            return self
        if self.open is None or self.close is None:
            raise ValueError(f"day {self.day}: open and close are required unless closed")
        if self.close <= self.open:
            raise ValueError(f"day {self.day}: close must be later than open")
        return self

    def to_hours(self) -> Optional[DayHours]:
        if self.closed:
            return None
        return DayHours(open_time=self.open, close_time=self.close)


class TimeOffRow(BaseModel):
    date: date
    all_day: bool = False
    start: Optional[time] = None
    end: Optional[time] = None
    title: str = ""

    @field_validator("start", "end", mode="before")
    @classmethod
    def validate_quoted(cls, v):
        return _reject_sexagesimal(v)

    @model_validator(mode="after")
    def validate_window(self) -> "TimeOffRow":
        if self.all_day:
            return self
        if self.start is None or self.end is None:
            raise ValueError("partial time off needs start and end")
        if self.end <= self.start:
            raise ValueError("time off end must be later than start")
        return self


class StaffRow(BaseModel):
    id: str
    name: str = ""
    active: bool = True
    services: List[str] = Field(default_factory=list)
    hours: List[HoursRow] = Field(default_factory=list)
    time_off: List[TimeOffRow] = Field(default_factory=list)


class ServiceRow(BaseModel):
    id: str
    name: str = ""
    active: bool = True
    duration_minutes: int
    buffer_minutes: int = 0
    max_bookings_per_slot: int = 1
    staff: List[str] = Field(default_factory=list)

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError("buffer_minutes must not be negative")
        return value

    @field_validator("max_bookings_per_slot")
    @classmethod
    def validate_capacity(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_bookings_per_slot must be at least 1")
        return value


class BookingRow(BaseModel):
    id: str
    service: str
    customer: str
    staff: Optional[str] = None
    start: Union[datetime, str]
    end: Union[datetime, str]
    status: BookingStatus = BookingStatus.SCHEDULED


class SnapshotFile(BaseModel):
    """Root of a snapshot YAML file."""
    business_id: str
    timezone: str = "UTC"
    business_hours: List[HoursRow] = Field(default_factory=list)
    staff: List[StaffRow] = Field(default_factory=list)
    services: List[ServiceRow] = Field(default_factory=list)
    customers: List[str] = Field(default_factory=list)
    bookings: List[BookingRow] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "SnapshotFile":
        for label, rows in (
            ("staff", self.staff),
            ("service", self.services),
            ("booking", self.bookings),
        ):
            seen: set[str] = set()
            for row in rows:
                if row.id in seen:
                    raise ValueError(f"Duplicate {label} id detected: {row.id}")
                seen.add(row.id)
        return self

    def to_context(self) -> BookingContext:
        """Convert the validated rows into an engine snapshot."""
        staff_members: Dict[str, StaffMember] = {}
        for row in self.staff:
            staff_members[row.id] = StaffMember(
                id=row.id,
                business_id=self.business_id,
                name=row.name,
                is_active=row.active,
                service_ids=frozenset(row.services),
                weekly_schedule={hours.day: hours.to_hours() for hours in row.hours},
                time_off=tuple(
                    TimeOff(
                        staff_id=row.id,
                        date=pendulum.date(entry.date.year, entry.date.month, entry.date.day),
                        is_all_day=entry.all_day,
                        start_time=entry.start,
                        end_time=entry.end,
                        title=entry.title,
                    )
                    for entry in row.time_off
                ),
            )

        services: Dict[str, Service] = {}
        for row in self.services:
            services[row.id] = Service(
                id=row.id,
                business_id=self.business_id,
                name=row.name,
                is_active=row.active,
                duration_minutes=row.duration_minutes,
                buffer_minutes=row.buffer_minutes,
                max_bookings_per_slot=row.max_bookings_per_slot,
                eligible_staff_ids=frozenset(row.staff),
            )

        bookings: List[Booking] = []
        for row in self.bookings:
            start = _to_datetime(row.start, self.timezone)
            end = _to_datetime(row.end, self.timezone)
            if start >= end:
                logger.warning("Skipping booking %s with invalid range %s-%s", row.id, start, end)
                continue
            bookings.append(Booking(
                id=row.id,
                service_id=row.service,
                customer_id=row.customer,
                staff_id=row.staff,
                start=start,
                end=end,
                status=row.status,
            ))

        return BookingContext(
            business_id=self.business_id,
            calendar=BusinessCalendar(
                hours={hours.day: hours.to_hours() for hours in self.business_hours}
            ),
            staff=staff_members,
            services=services,
            customer_ids=frozenset(self.customers),
            bookings=tuple(bookings),
            timezone=self.timezone,
        )


def _to_datetime(value: Union[datetime, str], tz: str) -> DateTime:
    if isinstance(value, datetime):
        return pendulum.instance(value, tz=tz)
    try:
        parsed = pendulum.parse(value, tz=tz)
    except Exception as exc:
        raise SnapshotError(f"Invalid datetime value: {value!r}") from exc
    if not isinstance(parsed, DateTime):
        raise SnapshotError(f"Expected a date and time, got {value!r}")
    return parsed


def read_snapshot(path: Path) -> BookingContext:
    """
    Load and validate a snapshot file.

    Raises:
        SnapshotError: If the file is missing, not valid YAML or fails validation
    """
    if not path.exists():
        raise SnapshotError(f"Snapshot file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise SnapshotError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise SnapshotError("Snapshot file must contain a mapping at the root level.")

    try:
        snapshot = SnapshotFile(**data)
    except ValidationError as exc:
        raise SnapshotError(f"Invalid snapshot {path}: {exc}") from exc

    return snapshot.to_context()


class YamlSnapshotProvider:
    """
    Snapshot provider reading a YAML file on every call.

    Implements ``SnapshotProviderProtocol``.
    """

    def __init__(self, path: Path):
        self.path = path

    async def load_snapshot(self, day: date) -> BookingContext:
        """Snapshot with the bookings that overlap ``day`` in the business timezone."""
        context = read_snapshot(self.path)
        return self._on_days(context, day, day)

    async def load_snapshot_for_window(self, start: DateTime, end: DateTime) -> BookingContext:
        """
        Snapshot with the bookings on every business-local day that
        ``start``..``end`` touches, whatever timezone the instants are in.
        """
        context = read_snapshot(self.path)
        first, last = sorted((start, end))
        return self._on_days(
            context,
            first.in_timezone(context.timezone).date(),
            last.in_timezone(context.timezone).date(),
        )

    def _on_days(self, context: BookingContext, first_day: date, last_day: date) -> BookingContext:
        days = TimeWindow(
            start=pendulum.datetime(first_day.year, first_day.month, first_day.day, tz=context.timezone),
            end=pendulum.datetime(last_day.year, last_day.month, last_day.day, tz=context.timezone).add(days=1),
        )
        bookings = [b for b in context.bookings if overlaps(b, days)]
        logger.debug(
            "Loaded %d booking(s) for %s..%s from %s", len(bookings), first_day, last_day, self.path
        )
        return context.with_bookings(bookings)

    async def load_booking(self, booking_id: str) -> Booking:
        context = read_snapshot(self.path)
        for booking in context.bookings:
            if booking.id == booking_id:
                return booking
        raise UnknownEntityError(f"Booking not found: {booking_id}")
