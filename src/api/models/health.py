"""Health check models for service monitoring."""

from typing import Literal

from pydantic import BaseModel


class WorkerHealth(BaseModel):
    running: bool
    interval_seconds: float


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    database: Literal["healthy", "unhealthy"]
    workers: dict[str, WorkerHealth]
    timestamp: str
