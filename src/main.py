"""
Scheduled Trip Service - Entry Point

Runs the FastAPI API together with the activation and overdue workers in a
single process. Workers live in the application lifespan, so uvicorn's
SIGTERM/SIGINT handling stops them before the listener closes.

Usage:
    python -m main               serve the API and workers
    python -m main cleanup-trips delete all scheduled trip data
"""

import argparse
import logging
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import httpx
import uvicorn
from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from sqlalchemy.orm import Session, sessionmaker

from activation.evaluator import ActivationEvaluator
from api.app import create_app
from db.database import init_database
from db.repositories import (
    CaptainRepository,
    EmergencyUsageRepository,
    LedgerRepository,
    TripRepository,
)
from db.transaction import transaction
from db.utils import utc_now
from finance.engine import FinanceEngine
from notifications.push import NotificationService, PushNotificationSender
from settings import Settings, get_settings
from trip_logging import setup_logging
from trips.lifecycle import TripLifecycleService
from workers.activation_worker import ActivationWorker
from workers.base import PollingWorker
from workers.overdue_worker import OverdueWorker

logger = logging.getLogger(__name__)


def init_otel_sdk(endpoint: str) -> None:
    """Initialize OpenTelemetry SDK for metrics and traces.

    Configures TracerProvider and MeterProvider with OTLP gRPC exporters.
    Must be called before creating the FastAPI app so auto-instrumentation
    can pick up the providers.
    """
    resource = Resource.create(
        {
            "service.name": "scheduled-trips",
            "service.version": "0.1.0",
            "deployment.environment": os.getenv("DEPLOYMENT_ENV", "local"),
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
    )
    trace.set_tracer_provider(trace_provider)
    logger.info("OpenTelemetry tracing initialized (endpoint=%s)", endpoint)

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=endpoint, insecure=True),
        export_interval_millis=15_000,
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    logger.info("OpenTelemetry metrics initialized")


@dataclass
class Services:
    session_factory: sessionmaker[Session]
    evaluator: ActivationEvaluator
    finance: FinanceEngine
    lifecycle: TripLifecycleService
    notifications: NotificationService
    workers: list[PollingWorker]


def build_services(
    settings: Settings,
    session_factory: sessionmaker[Session] | None = None,
    clock: Callable[[], datetime] = utc_now,
    push_transport: httpx.AsyncBaseTransport | None = None,
) -> Services:
    """Construct every long-lived service once and wire them together."""
    if session_factory is None:
        session_factory = init_database(settings.database.url, echo=settings.database.echo)

    evaluator = ActivationEvaluator(session_factory, settings.activation, clock=clock)
    finance = FinanceEngine(session_factory, settings.finance, clock=clock)
    lifecycle = TripLifecycleService(
        session_factory,
        evaluator,
        finance,
        local_tz=settings.service.tzinfo,
        notification_dedup=timedelta(hours=settings.activation.notification_dedup_hours),
        apply_failure_penalty=settings.workers.apply_failure_penalty,
        clock=clock,
    )
    notifications = NotificationService(
        session_factory, PushNotificationSender(settings.push, transport=push_transport)
    )
    workers: list[PollingWorker] = [
        ActivationWorker(
            lifecycle, notifications, settings.workers.activation_interval_seconds
        ),
        OverdueWorker(lifecycle, settings.workers.overdue_interval_seconds),
    ]
    return Services(
        session_factory=session_factory,
        evaluator=evaluator,
        finance=finance,
        lifecycle=lifecycle,
        notifications=notifications,
        workers=workers,
    )


def cleanup_trips(session_factory: sessionmaker[Session]) -> dict[str, int]:
    """Delete ledger rows, emergency usages and trips (points, progress and
    checks cascade). Captain balances are left as they are."""
    with session_factory() as session, transaction(session):
        ledger = LedgerRepository(session)
        usages = EmergencyUsageRepository(session)
        trips = TripRepository(session)
        deleted = {
            "ledger_entries": ledger.delete_all(),
            "emergency_usages": usages.delete_all(),
            "trips": trips.delete_all(),
        }

    with session_factory() as session:
        remaining = {
            "ledger_entries": LedgerRepository(session).count(),
            "emergency_usages": EmergencyUsageRepository(session).count(),
            "trips": TripRepository(session).count(),
            "captains": len(CaptainRepository(session).list_all()),
        }

    logger.info("Deleted %s; remaining %s", deleted, remaining)
    return {**{f"deleted_{k}": v for k, v in deleted.items()}, **remaining}


def serve(settings: Settings) -> None:
    otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if otlp_endpoint:
        init_otel_sdk(otlp_endpoint)

    logger.info("Starting scheduled trip service...")
    services = build_services(settings)
    app = create_app(
        settings,
        services.session_factory,
        services.lifecycle,
        services.finance,
        services.notifications,
        services.workers,
    )

    host = os.environ.get("API_HOST", "0.0.0.0")
    port = int(os.environ.get("API_PORT", "8000"))
    uvicorn.run(app, host=host, port=port, log_config=None)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Scheduled trip service")
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=["serve", "cleanup-trips"],
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(
        level=settings.service.log_level,
        json_output=settings.service.log_format == "json",
        environment=settings.service.environment,
    )

    if args.command == "cleanup-trips":
        session_factory = init_database(settings.database.url, echo=settings.database.echo)
        counts = cleanup_trips(session_factory)
        for name, value in counts.items():
            print(f"{name}: {value}")
        return 0

    serve(settings)
    return 0


if __name__ == "__main__":
    sys.exit(main())
