"""
Result values returned by the engine: conflict findings and open slots.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .models import TimeWindow


class Severity(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"


class ConflictKind(str, Enum):
    """Kinds of findings, in the order the checker reports them."""
    SERVICE_NOT_FOUND = "service-not-found"
    SERVICE_INACTIVE = "service-inactive"
    STAFF_NOT_FOUND = "staff-not-found"
    STAFF_INACTIVE = "staff-inactive"
    CUSTOMER_NOT_FOUND = "customer-not-found"
    STAFF_SERVICE_MISMATCH = "staff-service-mismatch"
    BUSINESS_CLOSED = "business-closed"
    OUTSIDE_BUSINESS_HOURS = "outside-business-hours"
    STAFF_NOT_SCHEDULED = "staff-not-scheduled"
    STAFF_TIME_OFF_ALL_DAY = "staff-time-off-all-day"
    OUTSIDE_STAFF_HOURS = "outside-staff-hours"
    STAFF_TIME_OFF_PARTIAL_OVERLAP = "staff-time-off-partial-overlap"
    CAPACITY_EXCEEDED = "capacity-exceeded"
    STAFF_DOUBLE_BOOKING = "staff-double-booking"
    CUSTOMER_DOUBLE_BOOKING = "customer-double-booking"
    INVALID_RANGE = "invalid-range"
    PAST_DATE = "past-date"


@dataclass(frozen=True)
class Conflict:
    kind: ConflictKind
    severity: Severity
    message: str
    related_booking_id: Optional[str] = None

    @classmethod
    def error(cls, kind: ConflictKind, message: str, related_booking_id: Optional[str] = None) -> "Conflict":
        return cls(kind, Severity.ERROR, message, related_booking_id)

    @classmethod
    def warning(cls, kind: ConflictKind, message: str) -> "Conflict":
        return cls(kind, Severity.WARNING, message)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.related_booking_id is not None:
            data["related_booking_id"] = self.related_booking_id
        return data


@dataclass(frozen=True)
class ConflictResult:
    """
    Outcome of checking one proposal.

    ``can_proceed`` is derived: true iff no ERROR-severity finding exists.
    WARNING findings are informational only.
    """
    conflicts: Tuple[Conflict, ...] = ()

    @property
    def can_proceed(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> List[Conflict]:
        return [c for c in self.conflicts if c.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Conflict]:
        return [c for c in self.conflicts if c.severity is Severity.WARNING]

    def kinds(self) -> List[ConflictKind]:
        return [c.kind for c in self.conflicts]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conflicts": [c.to_dict() for c in self.conflicts],
            "can_proceed": self.can_proceed,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
        }


@dataclass(frozen=True)
class SlotAvailability:
    """An open slot together with who can serve it and how much room is left."""
    window: TimeWindow
    eligible_staff_ids: Tuple[str, ...] = field(default_factory=tuple)
    remaining_capacity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.window.start.isoformat(),
            "end": self.window.end.isoformat(),
            "eligible_staff_ids": list(self.eligible_staff_ids),
            "remaining_capacity": self.remaining_capacity,
        }
