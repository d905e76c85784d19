"""
Tests for the booking service orchestration.
"""

import asyncio
from textwrap import dedent

import pendulum
import pytest

from bookingengine.adapters.yaml_snapshot import YamlSnapshotProvider

from bookingengine.domain.exceptions import (
    BookingRejectedError,
    InvalidTransitionError,
    UnknownEntityError,
)
from bookingengine.domain.models import BookingStatus, Proposal
from bookingengine.domain.results import ConflictKind
from bookingengine.services.booking_service import BookingService


class StubSnapshotProvider:
    """In-memory provider recording every snapshot load."""

    def __init__(self, context):
        self.context = context
        self.snapshot_loads = []
        self.window_loads = []

    async def load_snapshot(self, day):
        self.snapshot_loads.append(day)
        return self.context

    async def load_snapshot_for_window(self, start, end):
        self.window_loads.append((start, end))
        return self.context

    async def load_booking(self, booking_id):
        for booking in self.context.bookings:
            if booking.id == booking_id:
                return booking
        raise UnknownEntityError(f"Booking not found: {booking_id}")


class TestBookingService:
    """Listing, admission and lifecycle through the provider."""

    def test_list_available_slots(self, monday, make_context):
        provider = StubSnapshotProvider(make_context())
        service = BookingService(provider)

        slots = asyncio.run(service.list_available_slots(service_id="haircut", day=monday))

        assert len(slots) == 15
        assert provider.snapshot_loads == [monday]

    def test_admit_reloads_snapshot_every_time(
        self, at, monday, make_context, make_booking, before_monday
    ):
        """A booking committed after the listing is seen by the next admission."""
        provider = StubSnapshotProvider(make_context())
        service = BookingService(provider)
        proposal = Proposal(
            service_id="haircut", customer_id="c1", staff_id="alice", start=at(14), end=at(15)
        )

        listed = asyncio.run(service.list_available_slots(service_id="haircut", day=monday))
        assert any(slot.window.start == at(14) for slot in listed)

        provider.context = make_context(bookings=[make_booking("b9", at(14), at(15))])
        result = asyncio.run(service.admit(proposal, now=before_monday))

        assert not result.can_proceed
        assert ConflictKind.STAFF_DOUBLE_BOOKING in result.kinds()
        assert provider.snapshot_loads == [monday]
        assert provider.window_loads == [(at(14), at(15))]

    def test_admit_clean_proposal(self, at, monday, make_context, before_monday):
        service = BookingService(StubSnapshotProvider(make_context()))
        proposal = Proposal(
            service_id="haircut", customer_id="c1", staff_id="alice", start=at(14), end=at(15)
        )

        result = asyncio.run(service.admit(proposal, now=before_monday))

        assert result.can_proceed

    def test_reschedule(self, at, make_context, make_booking, before_monday):
        context = make_context(bookings=[make_booking("b1", at(10), at(11), customer_id="c1")])
        service = BookingService(StubSnapshotProvider(context))

        moved = asyncio.run(service.reschedule(
            booking_id="b1", new_start=at(10, 30), new_end=at(11, 30), now=before_monday
        ))

        assert moved.start == at(10, 30)

    def test_reschedule_rejected(self, at, make_context, make_booking, before_monday):
        context = make_context(bookings=[
            make_booking("b1", at(10), at(11), customer_id="c1"),
            make_booking("b2", at(12), at(13), customer_id="c2"),
        ])
        service = BookingService(StubSnapshotProvider(context))

        with pytest.raises(BookingRejectedError) as excinfo:
            asyncio.run(service.reschedule(
                booking_id="b1", new_start=at(12), new_end=at(13), now=before_monday
            ))

        assert ConflictKind.CAPACITY_EXCEEDED in excinfo.value.result.kinds()

    def test_reschedule_unknown_booking(self, at, make_context):
        service = BookingService(StubSnapshotProvider(make_context()))

        with pytest.raises(UnknownEntityError, match="Booking not found"):
            asyncio.run(service.reschedule(booking_id="nope", new_start=at(10), new_end=at(11)))

    def test_confirm_and_cancel(self, at, make_context, make_booking):
        context = make_context(bookings=[
            make_booking("b1", at(10), at(11), status=BookingStatus.SCHEDULED),
            make_booking("b2", at(12), at(13), status=BookingStatus.CANCELED),
        ])
        service = BookingService(StubSnapshotProvider(context))

        assert asyncio.run(service.confirm(booking_id="b1")).status is BookingStatus.CONFIRMED
        assert asyncio.run(service.cancel(booking_id="b1")).status is BookingStatus.CANCELED
        with pytest.raises(InvalidTransitionError):
            asyncio.run(service.cancel(booking_id="b2"))


AUCKLAND_SNAPSHOT = dedent("""\
    business_id: "studio"
    timezone: "Pacific/Auckland"
    business_hours:
      - {day: 0, open: "09:00", close: "17:00"}
    staff:
      - id: "anna"
        services: ["haircut"]
        hours:
          - {day: 0, open: "09:00", close: "17:00"}
    services:
      - {id: "haircut", duration_minutes: 60}
    customers: ["c-1", "c-2"]
    bookings:
      - {id: "b-1", service: "haircut", staff: "anna", customer: "c-1", start: "2024-11-25 10:00", end: "2024-11-25 11:00"}
""")


class TestAdmitAcrossTimezones:
    """Admission loads the bookings of the business-local day of the proposal."""

    def test_utc_proposal_sees_local_booking(self, tmp_path, before_monday):
        """Sunday 21:00 UTC is Monday 10:00 in Auckland, where b-1 already sits."""
        path = tmp_path / "snapshot.yaml"
        path.write_text(AUCKLAND_SNAPSHOT, encoding="utf-8")
        service = BookingService(YamlSnapshotProvider(path))
        proposal = Proposal(
            service_id="haircut",
            customer_id="c-2",
            staff_id="anna",
            start=pendulum.datetime(2024, 11, 24, 21, tz="UTC"),
            end=pendulum.datetime(2024, 11, 24, 22, tz="UTC"),
        )

        result = asyncio.run(service.admit(proposal, now=before_monday))

        assert not result.can_proceed
        assert ConflictKind.STAFF_DOUBLE_BOOKING in result.kinds()
        assert [
            c.related_booking_id for c in result.conflicts
            if c.kind is ConflictKind.STAFF_DOUBLE_BOOKING
        ] == ["b-1"]

    def test_reschedule_loads_local_day_of_new_window(self, tmp_path, before_monday):
        path = tmp_path / "snapshot.yaml"
        path.write_text(
            AUCKLAND_SNAPSHOT
            + '  - {id: "b-2", service: "haircut", staff: "anna", customer: "c-2", '
              'start: "2024-11-25 14:00", end: "2024-11-25 15:00"}\n',
            encoding="utf-8",
        )
        service = BookingService(YamlSnapshotProvider(path))

        with pytest.raises(BookingRejectedError):
            asyncio.run(service.reschedule(
                booking_id="b-2",
                new_start=pendulum.datetime(2024, 11, 24, 21, 30, tz="UTC"),
                new_end=pendulum.datetime(2024, 11, 24, 22, 30, tz="UTC"),
                now=before_monday,
            ))
