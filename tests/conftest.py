"""
Shared fixtures: a small salon on Monday 2024-11-25 (Europe/Berlin).
"""

from datetime import time

import pendulum
import pytest

from bookingengine.domain.models import (
    Booking,
    BookingContext,
    BookingStatus,
    BusinessCalendar,
    DayHours,
    Service,
    StaffMember,
)

TZ = "Europe/Berlin"
MONDAY = pendulum.date(2024, 11, 25)
NINE_TO_FIVE = DayHours(time(9, 0), time(17, 0))


def _at(hour: int, minute: int = 0, day=MONDAY):
    return pendulum.datetime(day.year, day.month, day.day, hour, minute, tz=TZ)


@pytest.fixture
def at():
    """Build a Europe/Berlin datetime on Monday (or another day)."""
    return _at


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def before_monday():
    """Evaluation time well before the Monday under test."""
    return pendulum.datetime(2024, 11, 20, 8, 0, tz=TZ)


@pytest.fixture
def make_booking():
    def _make(
        booking_id: str,
        start,
        end,
        *,
        service_id: str = "haircut",
        staff_id="alice",
        customer_id: str = "c2",
        status: BookingStatus = BookingStatus.CONFIRMED,
    ) -> Booking:
        return Booking(
            id=booking_id,
            service_id=service_id,
            customer_id=customer_id,
            staff_id=staff_id,
            start=start,
            end=end,
            status=status,
        )
    return _make


@pytest.fixture
def make_context():
    """
    Business open Mon 09:00-17:00; Alice works Mon 09:00-17:00 and does
    haircuts (60 min) and coloring (90 min); sauna is self-serve.
    """
    def _make(
        *,
        bookings=(),
        time_off=(),
        capacity: int = 1,
        buffer_minutes: int = 0,
        staff_schedule=None,
        business_hours=None,
        extra_staff=(),
        haircut_staff=("alice",),
        haircut_active: bool = True,
    ) -> BookingContext:
        alice = StaffMember(
            id="alice",
            business_id="salon",
            name="Alice",
            service_ids={"haircut", "coloring"},
            weekly_schedule={0: NINE_TO_FIVE} if staff_schedule is None else staff_schedule,
            time_off=time_off,
        )
        staff = {alice.id: alice}
        for member in extra_staff:
            staff[member.id] = member

        services = {
            "haircut": Service(
                id="haircut",
                business_id="salon",
                name="Haircut",
                duration_minutes=60,
                buffer_minutes=buffer_minutes,
                max_bookings_per_slot=capacity,
                eligible_staff_ids=frozenset(haircut_staff),
                is_active=haircut_active,
            ),
            "coloring": Service(
                id="coloring",
                business_id="salon",
                name="Coloring",
                duration_minutes=90,
                eligible_staff_ids={"alice"},
            ),
            "sauna": Service(
                id="sauna",
                business_id="salon",
                name="Sauna",
                duration_minutes=60,
                max_bookings_per_slot=capacity,
            ),
        }

        return BookingContext(
            business_id="salon",
            calendar=BusinessCalendar(
                hours={0: NINE_TO_FIVE} if business_hours is None else business_hours
            ),
            staff=staff,
            services=services,
            customer_ids={"c1", "c2", "c3", "c4"},
            bookings=bookings,
            timezone=TZ,
        )
    return _make
