"""
Service-scoped capacity accounting.
"""

from typing import Iterable, List

from .models import Booking, Interval, Service, overlaps


class CapacityTracker:
    """
    Counts concurrent active bookings of a service against its per-slot limit.

    Capacity is pooled per service, not per staff member, so unassigned
    bookings count too.
    """

    def overlapping_bookings(
        self,
        service: Service,
        candidate: Interval,
        bookings: Iterable[Booking],
    ) -> List[Booking]:
        """Active bookings of ``service`` overlapping ``candidate``, ordered by (start, id)."""
        matches = [
            booking for booking in bookings
            if booking.is_active
            and booking.service_id == service.id
            and overlaps(booking, candidate)
        ]
        return sorted(matches, key=lambda b: (b.start, b.id))

    def remaining_capacity(
        self,
        service: Service,
        candidate: Interval,
        bookings: Iterable[Booking],
    ) -> int:
        count = len(self.overlapping_bookings(service, candidate, bookings))
        return max(0, service.max_bookings_per_slot - count)

    def is_available(self, service: Service, candidate: Interval, bookings: Iterable[Booking]) -> bool:
        return self.remaining_capacity(service, candidate, bookings) > 0
