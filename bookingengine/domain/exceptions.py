"""
Domain-specific exception hierarchy for the booking engine.

Expected business outcomes (outside hours, double-booking, ...) are reported
as ``ConflictResult`` data, never raised.
"""


class BookingEngineError(Exception):
    """Base class for all application-level errors."""


class UnknownEntityError(BookingEngineError):
    """Raised when a service or staff id cannot be found in the snapshot."""


class SnapshotError(BookingEngineError):
    """Raised when snapshot data cannot be loaded or parsed."""


class InvalidTransitionError(BookingEngineError):
    """Raised when a booking lifecycle operation is not allowed from its status."""


class BookingRejectedError(BookingEngineError):
    """Raised when the admission check refuses a booking."""

    def __init__(self, message: str, result) -> None:
        super().__init__(message)
        self.result = result
