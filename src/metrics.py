"""OpenTelemetry counters for trip lifecycle, settlement and notifications.

Counters are created against the global meter provider. Without an SDK
provider installed (tests, local runs) they are no-ops.
"""

from opentelemetry import metrics

meter = metrics.get_meter("scheduled_trips")

trip_transitions = meter.create_counter(
    name="scheduled_trip_transitions_total",
    description="Scheduled trip status transitions by target status",
    unit="1",
)

finance_settlements = meter.create_counter(
    name="scheduled_trip_settlements_total",
    description="Finance engine settlement attempts by rule and outcome",
    unit="1",
)

activation_checks = meter.create_counter(
    name="scheduled_trip_activation_checks_total",
    description="Activation evaluations by outcome",
    unit="1",
)

push_notifications = meter.create_counter(
    name="scheduled_trip_push_notifications_total",
    description="Push notification dispatches by outcome",
    unit="1",
)

worker_ticks = meter.create_counter(
    name="scheduled_trip_worker_ticks_total",
    description="Background worker ticks by worker and outcome",
    unit="1",
)


def record_transition(target: str, source: str) -> None:
    trip_transitions.add(1, {"status": target, "source": source})


def record_settlement(rule: str, outcome: str) -> None:
    finance_settlements.add(1, {"rule": rule, "outcome": outcome})


def record_activation_check(activated: bool) -> None:
    activation_checks.add(1, {"activated": str(activated).lower()})


def record_push(success: bool) -> None:
    push_notifications.add(1, {"success": str(success).lower()})


def record_worker_tick(worker: str, outcome: str) -> None:
    worker_ticks.add(1, {"worker": worker, "outcome": outcome})
