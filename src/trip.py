"""Scheduled trip states, transitions and related enums."""

from enum import Enum

from core.exceptions import StateError

CAPTAIN_ONLINE_STATUS = "active"


class TripStatus(str, Enum):
    """Scheduled trip lifecycle states."""

    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    EMERGENCY_ENDED = "EMERGENCY_ENDED"
    EMERGENCY_TERMINATED = "EMERGENCY_TERMINATED"
    FORCE_CLOSED = "FORCE_CLOSED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_emergency(self) -> bool:
        return self in {TripStatus.EMERGENCY_ENDED, TripStatus.EMERGENCY_TERMINATED}


class TripType(str, Enum):
    ARRIVAL = "ARRIVAL"
    DEPARTURE = "DEPARTURE"


class FinancialRule(str, Enum):
    NONE = "NONE"
    COMPLETED_FULL = "COMPLETED_FULL"
    FAILED_DOUBLE = "FAILED_DOUBLE"
    EMERGENCY_DEDUCTION = "EMERGENCY_DEDUCTION"
    FORCE_CLOSED_DEDUCTION = "FORCE_CLOSED_DEDUCTION"


class FinancialStatus(str, Enum):
    NONE = "NONE"
    PAID = "PAID"
    PENALIZED = "PENALIZED"


TERMINAL_STATUSES: frozenset[TripStatus] = frozenset(
    {
        TripStatus.COMPLETED,
        TripStatus.FAILED,
        TripStatus.EMERGENCY_ENDED,
        TripStatus.EMERGENCY_TERMINATED,
        TripStatus.FORCE_CLOSED,
        TripStatus.CANCELLED,
    }
)

VALID_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.SCHEDULED: {TripStatus.ACTIVE, TripStatus.FAILED, TripStatus.CANCELLED},
    TripStatus.ACTIVE: {
        TripStatus.COMPLETED,
        TripStatus.EMERGENCY_ENDED,
        TripStatus.EMERGENCY_TERMINATED,
        TripStatus.FORCE_CLOSED,
    },
    TripStatus.COMPLETED: set(),
    TripStatus.FAILED: set(),
    TripStatus.EMERGENCY_ENDED: set(),
    TripStatus.EMERGENCY_TERMINATED: set(),
    TripStatus.FORCE_CLOSED: set(),
    TripStatus.CANCELLED: set(),
}


def ensure_transition(current: TripStatus, target: TripStatus) -> None:
    """Raise StateError unless current -> target is a legal lifecycle move."""
    if current.is_terminal:
        raise StateError(
            f"Trip is already {current.value.lower()}",
            {"status": current.value, "target": target.value},
        )
    if target not in VALID_TRANSITIONS[current]:
        raise StateError(
            f"Invalid transition from {current.value} to {target.value}",
            {"status": current.value, "target": target.value},
        )
