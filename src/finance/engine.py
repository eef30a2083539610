"""Finance engine: applies the settlement rule for a trip exactly once.

Settlement is an idempotent upsert keyed by trip. A ledger row that already
carries the same rule and net amount is a no-op; any change adjusts the
captain's balances by the delta against the previous net so re-running a
settlement can never double-apply it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session, sessionmaker

from core.retry import RetryConfig, with_retry_sync
from db.repositories import CaptainRepository, LedgerRepository, TripRepository
from db.schema import ScheduledTripLedger
from db.transaction import transaction
from db.utils import utc_now
from metrics import record_settlement
from settings import FinanceSettings
from trip import TripStatus

from .rules import compute_net_amount, financial_status_for, rule_for_status

logger = logging.getLogger(__name__)


@dataclass
class FinanceResult:
    success: bool
    skipped: bool = False
    reason: str | None = None
    rule: str | None = None
    net_amount: Decimal | None = None
    delta: Decimal | None = None


@dataclass
class ReconcileResult:
    checked: int = 0
    settled: int = 0
    failed: list[str] = field(default_factory=list)


class FinanceEngine:
    """Maps terminal trip statuses to payouts or penalties and books them."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: FinanceSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or FinanceSettings()
        self._clock = clock

    def settle(
        self,
        session: Session,
        trip_id: str,
        override_status: TripStatus | None = None,
    ) -> FinanceResult:
        """Settle trip_id inside the caller's transaction.

        The captain balance increment, the trip's financial fields and the
        ledger upsert are all written through session; the caller commits.
        """
        result = self._settle(session, trip_id, override_status)
        if result.skipped:
            record_settlement(result.rule or "NONE", "skipped")
        elif result.success:
            record_settlement(result.rule or "NONE", "applied")
        else:
            record_settlement(result.rule or "NONE", "failed")
            logger.warning("Settlement of trip %s not applied: %s", trip_id, result.reason)
        return result

    def _settle(
        self, session: Session, trip_id: str, override_status: TripStatus | None
    ) -> FinanceResult:
        trips = TripRepository(session)
        trip = trips.get(trip_id)
        if trip is None:
            return FinanceResult(success=False, reason="Trip not found")

        status = override_status or TripStatus(trip.status)
        rule = rule_for_status(status)
        if rule is None:
            return FinanceResult(
                success=True,
                skipped=True,
                reason=f"No financial rule for status {status.value}",
            )

        if not trip.assigned_captain_id:
            return FinanceResult(success=False, reason="Trip has no assigned captain")

        net = compute_net_amount(rule, trip.price, self._settings.force_close_discount)
        ledger = LedgerRepository(session)
        existing = ledger.get_for_trip(trip_id)

        if existing is not None and existing.rule == rule.value and existing.net_amount == net:
            return FinanceResult(
                success=True,
                skipped=True,
                reason="Settlement already applied",
                rule=rule.value,
                net_amount=net,
                delta=Decimal("0"),
            )

        delta = net - existing.net_amount if existing is not None else net
        now = self._clock()

        CaptainRepository(session).add_to_balance(trip.assigned_captain_id, delta)

        trip.financial_rule = rule.value
        trip.financial_adjustment = delta
        trip.net_amount = net
        trip.financial_status = financial_status_for(net).value
        trip.financial_applied_at = now

        if existing is None:
            ledger.add(
                ScheduledTripLedger(
                    scheduled_trip_id=trip_id,
                    captain_id=trip.assigned_captain_id,
                    base_amount=trip.price,
                    adjustment_amount=delta,
                    net_amount=net,
                    rule=rule.value,
                    status_at_calculation=status.value,
                    calculated_at=now,
                )
            )
        else:
            existing.captain_id = trip.assigned_captain_id
            existing.base_amount = trip.price
            existing.adjustment_amount = delta
            existing.net_amount = net
            existing.rule = rule.value
            existing.status_at_calculation = status.value
            existing.calculated_at = now

        session.flush()
        logger.info(
            "Settled trip %s: rule=%s net=%s delta=%s", trip_id, rule.value, net, delta
        )
        return FinanceResult(
            success=True, rule=rule.value, net_amount=net, delta=delta
        )

    def apply_scheduled_trip_finance(
        self, trip_id: str, override_status: TripStatus | None = None
    ) -> FinanceResult:
        """Settle a trip in its own transaction.

        Raises PersistenceError on database failure; everything else is
        reported through the result.
        """
        with self._session_factory() as session, transaction(session):
            return self.settle(session, trip_id, override_status)

    def settle_with_retry(
        self, trip_id: str, override_status: TripStatus | None = None
    ) -> FinanceResult:
        """apply_scheduled_trip_finance retried on transient database errors."""
        config = RetryConfig(max_attempts=self._settings.settlement_max_attempts, base_delay=0.2)
        return with_retry_sync(
            lambda: self.apply_scheduled_trip_finance(trip_id, override_status),
            config=config,
            operation_name=f"settle trip {trip_id}",
        )

    def reconcile_unsettled_trips(self, include_failed: bool = False) -> ReconcileResult:
        """Settle every terminal trip whose ledger row is missing or stale.

        A trip is stale when its ledger disagrees with the rule table for its
        current status and price. FAILED trips are only included when the
        failure penalty is enabled.
        """
        statuses = {
            TripStatus.COMPLETED,
            TripStatus.EMERGENCY_ENDED,
            TripStatus.EMERGENCY_TERMINATED,
            TripStatus.FORCE_CLOSED,
        }
        if include_failed:
            statuses.add(TripStatus.FAILED)

        with self._session_factory() as session:
            trips = TripRepository(session).list_by_statuses(statuses)
            ledgers = LedgerRepository(session).for_trips([t.id for t in trips])
            pending: list[str] = []
            for trip in trips:
                rule = rule_for_status(TripStatus(trip.status))
                if rule is None:
                    continue
                expected = compute_net_amount(
                    rule, trip.price, self._settings.force_close_discount
                )
                entry = ledgers.get(trip.id)
                if entry is None or entry.rule != rule.value or entry.net_amount != expected:
                    pending.append(trip.id)

        result = ReconcileResult(checked=len(trips))
        for trip_id in pending:
            settlement = self.settle_with_retry(trip_id)
            if settlement.success and not settlement.skipped:
                result.settled += 1
            elif not settlement.success:
                result.failed.append(trip_id)

        logger.info(
            "Reconciliation checked %d trips, settled %d, failed %d",
            result.checked,
            result.settled,
            len(result.failed),
        )
        return result
