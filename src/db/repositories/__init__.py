"""Repository layer for database CRUD operations."""

from .activation_check_repository import ActivationCheckRepository
from .captain_repository import CaptainRepository
from .emergency_usage_repository import EmergencyUsageRepository
from .ledger_repository import LedgerRepository
from .trip_repository import TripRepository

__all__ = [
    "ActivationCheckRepository",
    "CaptainRepository",
    "EmergencyUsageRepository",
    "LedgerRepository",
    "TripRepository",
]
