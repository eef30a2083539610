"""FastAPI application factory for the scheduled trip service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from api.errors import register_error_handlers
from api.models.health import HealthResponse, WorkerHealth
from api.rate_limit import limiter, rate_limit_exceeded_handler
from api.routes import admin, captain

if TYPE_CHECKING:
    from sqlalchemy.orm import Session, sessionmaker

    from finance.engine import FinanceEngine
    from notifications.push import NotificationService
    from settings import Settings
    from trips.lifecycle import TripLifecycleService
    from workers.base import PollingWorker

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings,
    session_factory: sessionmaker[Session],
    lifecycle: TripLifecycleService,
    finance: FinanceEngine,
    notifications: NotificationService,
    workers: list[PollingWorker] | None = None,
) -> FastAPI:
    """Create FastAPI application with injected dependencies.

    Args:
        settings: Loaded service settings
        session_factory: SQLAlchemy session factory
        lifecycle: TripLifecycleService handling every transition
        finance: FinanceEngine used for reconciliation
        notifications: NotificationService for push delivery
        workers: Background workers started and stopped with the app
    """
    background = list(workers or [])

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> Any:
        """Start workers on boot; stop them before the listener closes."""
        if settings.workers.enabled:
            for worker in background:
                await worker.start()
        yield
        for worker in reversed(background):
            await worker.stop()

    app = FastAPI(
        title="Scheduled Trip Service API",
        version="1.0.0",
        description="Lifecycle, activation and settlement of scheduled checkpoint trips",
        lifespan=lifespan,
    )

    # Auto-instrument FastAPI (generates traces for all HTTP requests)
    FastAPIInstrumentor.instrument_app(app)

    # Auto-instrument HTTPX (traces outbound push notification calls)
    HTTPXClientInstrumentor().instrument()

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    register_error_handlers(app)

    # Set dependencies immediately (not in lifespan) so they're available for testing
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.lifecycle = lifecycle
    app.state.finance = finance
    app.state.notifications = notifications
    app.state.workers = background

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(captain.router, tags=["captain"])
    app.include_router(admin.router, prefix="/admin", tags=["admin"])

    @app.get("/health", response_model=HealthResponse)
    def health_check() -> HealthResponse:
        """Health check endpoint for monitoring (unauthenticated for infrastructure)."""
        database: Literal["healthy", "unhealthy"] = "healthy"
        try:
            with session_factory() as session:
                session.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Database health check failed")
            database = "unhealthy"

        worker_health = {
            w.name: WorkerHealth(running=w.is_running, interval_seconds=w.interval_seconds)
            for w in background
        }
        status: Literal["healthy", "degraded", "unhealthy"] = "healthy"
        if database == "unhealthy":
            status = "unhealthy"
        elif settings.workers.enabled and not all(w.running for w in worker_health.values()):
            status = "degraded"

        return HealthResponse(
            status=status,
            database=database,
            workers=worker_health,
            timestamp=datetime.now(UTC).isoformat(),
        )

    return app
