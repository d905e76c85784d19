"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingService, SnapshotProviderProtocol

__all__ = ["BookingService", "SnapshotProviderProtocol"]
