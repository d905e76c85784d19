"""
Booking status transitions.

Every operation returns a new ``Booking``; nothing is mutated in place.
"""

from dataclasses import replace
from typing import Dict, FrozenSet, Optional

from pendulum import DateTime

from .conflict_checker import ConflictChecker
from .exceptions import BookingRejectedError, InvalidTransitionError
from .models import ACTIVE_STATUSES, Booking, BookingContext, BookingStatus, Proposal
from .results import ConflictResult

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.SCHEDULED: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELED,
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
    }),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.CANCELED,
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
    }),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


def transition(booking: Booking, target: BookingStatus) -> Booking:
    """Move a booking to ``target`` status."""
    if target not in ALLOWED_TRANSITIONS[booking.status]:
        raise InvalidTransitionError(
            f"Cannot change booking {booking.id} from {booking.status.value} to {target.value}"
        )
    return replace(booking, status=target)


def confirm(booking: Booking) -> Booking:
    return transition(booking, BookingStatus.CONFIRMED)


def cancel(booking: Booking) -> Booking:
    return transition(booking, BookingStatus.CANCELED)


def complete(booking: Booking) -> Booking:
    return transition(booking, BookingStatus.COMPLETED)


def mark_no_show(booking: Booking) -> Booking:
    return transition(booking, BookingStatus.NO_SHOW)


def reschedule_proposal(
    booking: Booking,
    new_start: DateTime,
    new_end: DateTime,
    staff_id: Optional[str] = None,
) -> Proposal:
    """Proposal that re-validates a booking at a new time, excluding itself."""
    return Proposal(
        service_id=booking.service_id,
        customer_id=booking.customer_id,
        start=new_start,
        end=new_end,
        staff_id=staff_id if staff_id is not None else booking.staff_id,
        exclude_booking_id=booking.id,
    )


def reschedule(
    booking: Booking,
    new_start: DateTime,
    new_end: DateTime,
    context: BookingContext,
    checker: ConflictChecker,
    staff_id: Optional[str] = None,
    now: Optional[DateTime] = None,
) -> Booking:
    """
    Move an active booking to a new window after re-checking it.

    Raises:
        InvalidTransitionError: If the booking is no longer active
        BookingRejectedError: If the new window has ERROR findings
    """
    if booking.status not in ACTIVE_STATUSES:
        raise InvalidTransitionError(
            f"Cannot reschedule booking {booking.id} with status {booking.status.value}"
        )

    proposal = reschedule_proposal(booking, new_start, new_end, staff_id=staff_id)
    result: ConflictResult = checker.check(proposal, context, now=now)
    if not result.can_proceed:
        kinds = ", ".join(c.kind.value for c in result.errors)
        raise BookingRejectedError(f"Cannot reschedule booking {booking.id}: {kinds}", result)

    return replace(booking, start=new_start, end=new_end, staff_id=proposal.staff_id)
