"""Database persistence module."""

from .database import create_db_engine, init_database
from .schema import (
    Base,
    Captain,
    EmergencyUsage,
    ScheduledTrip,
    ScheduledTripLedger,
    TripActivationCheck,
    TripPoint,
    TripProgress,
)
from .transaction import transaction

__all__ = [
    "Base",
    "Captain",
    "EmergencyUsage",
    "ScheduledTrip",
    "ScheduledTripLedger",
    "TripActivationCheck",
    "TripPoint",
    "TripProgress",
    "create_db_engine",
    "init_database",
    "transaction",
]
