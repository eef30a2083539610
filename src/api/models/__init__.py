"""Pydantic models for API requests and responses."""

from api.models.health import HealthResponse, WorkerHealth
from api.models.trips import (
    CaptainTripResponse,
    LocationRequest,
    ProgressRequest,
    TripResponse,
    TripWriteRequest,
)

__all__ = [
    # Health models
    "HealthResponse",
    "WorkerHealth",
    # Trip models
    "CaptainTripResponse",
    "LocationRequest",
    "ProgressRequest",
    "TripResponse",
    "TripWriteRequest",
]
