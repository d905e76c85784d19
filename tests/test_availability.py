"""
Tests for slot listing and calendar queries.
"""

from datetime import time

import pendulum
import pytest

from bookingengine.domain.availability import AvailabilityService
from bookingengine.domain.exceptions import UnknownEntityError
from bookingengine.domain.models import DayHours, Proposal, StaffMember, TimeOff
from bookingengine.domain.slot_generator import generate_slots


def _bob(until: int = 12, active: bool = True, services=()) -> StaffMember:
    return StaffMember(
        id="bob",
        business_id="salon",
        name="Bob",
        is_active=active,
        service_ids=services,
        weekly_schedule={0: DayHours(time(9), time(until))},
    )


def _starts(slots):
    return [slot.window.start.format("HH:mm") for slot in slots]


class TestListAvailableSlots:
    """Listing open slots for a service on a date."""

    def test_empty_day(self, monday, make_context):
        slots = AvailabilityService().list_available_slots("haircut", monday, make_context())

        assert len(slots) == 15
        assert _starts(slots)[0] == "09:00"
        assert _starts(slots)[-1] == "16:00"
        assert all(slot.eligible_staff_ids == ("alice",) for slot in slots)
        assert all(slot.remaining_capacity == 1 for slot in slots)

    def test_finer_granularity(self, monday, make_context):
        slots = AvailabilityService(granularity_minutes=15).list_available_slots(
            "haircut", monday, make_context()
        )

        assert len(slots) == 29

    def test_booking_removes_overlapping_slots(self, at, monday, make_context, make_booking):
        context = make_context(bookings=[make_booking("b1", at(10), at(11))])

        starts = _starts(AvailabilityService().list_available_slots("haircut", monday, context))

        assert len(starts) == 12
        assert "09:00" in starts
        assert "09:30" not in starts
        assert "10:30" not in starts
        assert "11:00" in starts

    def test_buffer_pushes_next_slot_back(self, at, monday, make_context, make_booking):
        context = make_context(
            buffer_minutes=15,
            bookings=[make_booking("b1", at(10), at(11))],
        )

        starts = _starts(AvailabilityService().list_available_slots("haircut", monday, context))

        assert starts[0] == "11:30"
        assert "11:00" not in starts
        assert len(starts) == 10

    def test_partial_time_off(self, monday, make_context):
        context = make_context(time_off=[
            TimeOff(staff_id="alice", date=monday, start_time=time(12), end_time=time(13)),
        ])

        starts = _starts(AvailabilityService().list_available_slots("haircut", monday, context))

        assert len(starts) == 12
        assert "11:00" in starts
        assert "11:30" not in starts
        assert "12:30" not in starts
        assert "13:00" in starts

    def test_all_day_time_off(self, monday, make_context):
        context = make_context(time_off=[TimeOff(staff_id="alice", date=monday, is_all_day=True)])

        assert AvailabilityService().list_available_slots("haircut", monday, context) == []

    def test_business_closed(self, monday, make_context):
        context = make_context(business_hours={1: DayHours(time(9), time(17))})

        assert AvailabilityService().list_available_slots("haircut", monday, context) == []

    def test_staff_hours_narrower_than_business(self, monday, make_context):
        context = make_context(staff_schedule={0: DayHours(time(8), time(12))})

        starts = _starts(AvailabilityService().list_available_slots("haircut", monday, context))

        assert starts == ["09:00", "09:30", "10:00", "10:30", "11:00"]

    def test_unknown_service_raises(self, monday, make_context):
        with pytest.raises(UnknownEntityError, match="Service not found"):
            AvailabilityService().list_available_slots("massage", monday, make_context())

    def test_unknown_staff_raises(self, monday, make_context):
        with pytest.raises(UnknownEntityError, match="Staff member not found"):
            AvailabilityService().list_available_slots(
                "haircut", monday, make_context(), staff_id="nobody"
            )

    def test_inactive_service_has_no_slots(self, monday, make_context):
        assert AvailabilityService().list_available_slots(
            "haircut", monday, make_context(haircut_active=False)
        ) == []

    def test_inactive_staff_has_no_slots(self, monday, make_context):
        context = make_context(extra_staff=[_bob(active=False)], haircut_staff=("alice", "bob"))

        assert AvailabilityService().list_available_slots(
            "haircut", monday, context, staff_id="bob"
        ) == []

    def test_ineligible_staff_has_no_slots(self, monday, make_context):
        context = make_context(extra_staff=[_bob()])

        assert AvailabilityService().list_available_slots(
            "haircut", monday, context, staff_id="bob"
        ) == []


class TestMultipleStaff:
    """Slots aggregate every staff member who can serve them."""

    def test_staff_ids_per_slot(self, monday, make_context):
        context = make_context(extra_staff=[_bob()], haircut_staff=("bob", "alice"))

        slots = AvailabilityService().list_available_slots("haircut", monday, context)

        assert len(slots) == 15
        assert slots[0].eligible_staff_ids == ("alice", "bob")
        assert slots[4].eligible_staff_ids == ("alice", "bob")
        assert slots[5].eligible_staff_ids == ("alice",)

    def test_staff_filter(self, monday, make_context):
        context = make_context(extra_staff=[_bob()], haircut_staff=("alice", "bob"))

        slots = AvailabilityService().list_available_slots(
            "haircut", monday, context, staff_id="bob"
        )

        assert _starts(slots) == ["09:00", "09:30", "10:00", "10:30", "11:00"]
        assert all(slot.eligible_staff_ids == ("bob",) for slot in slots)

    def test_busy_staff_dropped_from_slot(self, at, monday, make_context, make_booking):
        context = make_context(
            extra_staff=[_bob()],
            haircut_staff=("alice", "bob"),
            bookings=[make_booking("b1", at(10), at(11), service_id="coloring")],
        )

        slots = AvailabilityService().list_available_slots("haircut", monday, context)
        by_start = {slot.window.start.format("HH:mm"): slot for slot in slots}

        assert by_start["10:00"].eligible_staff_ids == ("bob",)
        assert by_start["09:00"].eligible_staff_ids == ("alice", "bob")
        assert by_start["11:00"].eligible_staff_ids == ("alice", "bob")
        assert by_start["11:30"].eligible_staff_ids == ("alice",)

    def test_unknown_eligible_staff_skipped(self, monday, make_context):
        context = make_context(haircut_staff=("alice", "ghost"))

        slots = AvailabilityService().list_available_slots("haircut", monday, context)

        assert len(slots) == 15

    def test_staff_record_makes_staff_eligible(self, monday, make_context):
        """Bob lists haircuts himself although the service does not name him."""
        context = make_context(extra_staff=[_bob(services={"haircut"})])

        slots = AvailabilityService().list_available_slots(
            "haircut", monday, context, staff_id="bob"
        )

        assert _starts(slots) == ["09:00", "09:30", "10:00", "10:30", "11:00"]

    def test_service_without_staff_list_uses_staff_records(self, monday, make_context):
        """Alice offers haircuts on her own record, so haircut is not self-serve."""
        context = make_context(haircut_staff=())

        slots = AvailabilityService().list_available_slots("haircut", monday, context)

        assert len(slots) == 15
        assert all(slot.eligible_staff_ids == ("alice",) for slot in slots)


class TestSelfServe:
    """Services without staff are limited only by hours and capacity."""

    def test_capacity_shared_by_overlapping_bookings(self, at, monday, make_context, make_booking):
        context = make_context(
            capacity=2,
            bookings=[
                make_booking("s1", at(10), at(11), service_id="sauna", staff_id=None, customer_id="c1"),
                make_booking("s2", at(10), at(11), service_id="sauna", staff_id=None, customer_id="c2"),
                make_booking("s3", at(14), at(15), service_id="sauna", staff_id=None, customer_id="c3"),
            ],
        )

        slots = AvailabilityService().list_available_slots("sauna", monday, context)
        by_start = {slot.window.start.format("HH:mm"): slot for slot in slots}

        assert "09:30" not in by_start
        assert "10:30" not in by_start
        assert by_start["09:00"].remaining_capacity == 2
        assert by_start["14:00"].remaining_capacity == 1
        assert by_start["14:00"].eligible_staff_ids == ()


class TestListingAgreesWithChecker:
    """A slot is listed exactly when checking it for a fresh customer passes."""

    def test_agreement_on_busy_day(self, at, monday, make_context, make_booking, before_monday):
        context = make_context(
            buffer_minutes=15,
            time_off=[TimeOff(staff_id="alice", date=monday, start_time=time(12), end_time=time(12, 45))],
            bookings=[
                make_booking("b1", at(9, 45), at(10, 45)),
                make_booking("b2", at(15), at(16, 30), service_id="coloring"),
            ],
        )
        availability = AvailabilityService()

        listed = {
            slot.window.start
            for slot in availability.list_available_slots("haircut", monday, context, staff_id="alice")
        }

        business_day = availability.business_hours(monday, context)
        for candidate in generate_slots(business_day.window, 60):
            proposal = Proposal(
                service_id="haircut",
                customer_id="c4",
                staff_id="alice",
                start=candidate.start,
                end=candidate.end,
            )
            result = availability.checker.check(proposal, context, now=before_monday)
            assert result.can_proceed == (candidate.start in listed), str(candidate)

        assert listed


class TestCalendarQueries:
    """Real-time availability and calendar lookups."""

    def test_is_available(self, at, make_context, make_booking):
        context = make_context(bookings=[make_booking("b1", at(10), at(11))])
        availability = AvailabilityService()

        assert availability.is_available("haircut", at(9), context)
        assert not availability.is_available("haircut", at(10), context)
        assert not availability.is_available("haircut", at(9, 15), context)
        assert availability.is_available("haircut", at(11), context, staff_id="alice")

    def test_business_hours(self, monday, make_context):
        availability = AvailabilityService()

        open_day = availability.business_hours(monday, make_context())
        closed_day = availability.business_hours(monday.add(days=1), make_context())

        assert open_day.is_open
        assert open_day.reason == "Business is open from 09:00 to 17:00 on 2024-11-25"
        assert not closed_day.is_open
        assert closed_day.reason == "Business is closed on 2024-11-26"

    def test_staff_day_sorted_by_name(self, monday, make_context):
        zed = StaffMember(id="a-zed", business_id="salon", name="Zed")
        retired = StaffMember(id="old", business_id="salon", name="Old", is_active=False)
        context = make_context(extra_staff=[zed, retired, _bob()])

        days = AvailabilityService().staff_day(monday, context)

        assert [d.staff_id for d in days] == ["alice", "bob", "a-zed"]
        assert days[1].window.end.hour == 12
        assert days[2].scheduled is None

    def test_staff_calendar(self, monday, make_context):
        context = make_context(time_off=[
            TimeOff(staff_id="alice", date=monday.add(days=7), is_all_day=True),
        ])

        days = AvailabilityService().staff_calendar(
            "alice", monday, monday.add(days=7), context
        )

        assert len(days) == 8
        assert days[0].window is not None
        assert all(d.window is None for d in days[1:])
        assert days[7].all_day_off
        assert days[7].scheduled is not None

    def test_staff_calendar_unknown_staff(self, monday, make_context):
        with pytest.raises(UnknownEntityError):
            AvailabilityService().staff_calendar("nobody", monday, monday, make_context())

    def test_staff_calendar_empty_range(self, monday, make_context):
        assert AvailabilityService().staff_calendar(
            "alice", monday, pendulum.date(2024, 11, 24), make_context()
        ) == []
