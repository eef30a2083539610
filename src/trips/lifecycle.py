"""Scheduled trip lifecycle: admin edits, captain transitions, worker sweeps.

Every status change is a compare-and-set on the expected prior status, so
two concurrent callers cannot both move the same trip. Terminal transitions
settle through the finance engine; a settlement that fails after the status
change committed leaves a missing ledger row that reconciliation picks up.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from activation.evaluator import ActivationCheckResult, ActivationEvaluator
from core.exceptions import (
    AssignmentError,
    CaptainOfflineError,
    ConflictError,
    NotFoundError,
    QuotaExceededError,
    StateError,
    TransientError,
    ValidationError,
)
from db.repositories import (
    ActivationCheckRepository,
    CaptainRepository,
    EmergencyUsageRepository,
    LedgerRepository,
    TripRepository,
)
from db.schema import (
    EmergencyUsage,
    ScheduledTrip,
    ScheduledTripLedger,
    TripActivationCheck,
    TripPoint,
)
from db.transaction import transaction
from db.utils import utc_now
from finance.engine import FinanceEngine, FinanceResult
from metrics import record_transition
from trip import CAPTAIN_ONLINE_STATUS, TripStatus, TripType, ensure_transition
from trip_logging import log_trip_context

from .timing import TimingResult, calculate_timing_difference, format_timing_message
from .validation import (
    TripDraft,
    parse_scheduled_time,
    to_utc,
    validate_points,
    validate_price,
)

logger = logging.getLogger(__name__)

EMERGENCY_ALREADY_USED = "You have already used the emergency end option today."
# Never-started states; price and captain are frozen from ACTIVE onwards.
EDITABLE_STATUSES = frozenset({TripStatus.SCHEDULED, TripStatus.FAILED, TripStatus.CANCELLED})
LOCATION_NOT_AVAILABLE = (
    "Location not available. Please enable location services and try again."
)


@dataclass
class TripDetails:
    trip: ScheduledTrip
    activation_checks: list[TripActivationCheck]
    ledger: ScheduledTripLedger | None


@dataclass
class CaptainTrip:
    trip: ScheduledTrip
    activation_status: ActivationCheckResult | None = None


@dataclass
class ProgressResult:
    trip: ScheduledTrip
    completed: bool
    message: str
    timing: TimingResult | None = None
    timing_message: str | None = None
    settlement: FinanceResult | None = None


@dataclass
class TerminationResult:
    trip: ScheduledTrip
    settlement: FinanceResult | None


@dataclass
class TripActivationSummary:
    trip_id: str
    trip_name: str
    can_activate: bool
    reason: str | None
    distance_to_first_point: float | None


@dataclass
class LocationUpdateResult:
    activation_checks: list[TripActivationSummary] = field(default_factory=list)
    notify_trip_ids: list[str] = field(default_factory=list)


@dataclass
class ActivationCandidate:
    trip_id: str
    captain_id: str
    latitude: float
    longitude: float


@dataclass
class EmergencyUsageStatus:
    can_use: bool
    last_used_at: datetime | None


class TripLifecycleService:
    """Owns every status transition of a scheduled trip."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        evaluator: ActivationEvaluator,
        finance: FinanceEngine,
        local_tz: tzinfo = UTC,
        notification_dedup: timedelta = timedelta(hours=24),
        apply_failure_penalty: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._evaluator = evaluator
        self._finance = finance
        self._local_tz = local_tz
        self._notification_dedup = notification_dedup
        self._apply_failure_penalty = apply_failure_penalty
        self._clock = clock

    # --- Reads ---

    def _load(self, trip_id: str) -> ScheduledTrip:
        with self._session_factory() as session:
            trip = TripRepository(session).get(trip_id, with_details=True)
            if trip is None:
                raise NotFoundError("Trip not found", {"trip_id": trip_id})
            return trip

    def local_date(self, instant: datetime) -> date:
        return instant.astimezone(self._local_tz).date()

    def get_trip(self, trip_id: str) -> TripDetails:
        with self._session_factory() as session:
            trip = TripRepository(session).get(trip_id, with_details=True)
            if trip is None:
                raise NotFoundError("Trip not found", {"trip_id": trip_id})
            checks = ActivationCheckRepository(session).list_recent(trip_id, limit=10)
            ledger = LedgerRepository(session).get_for_trip(trip_id)
            return TripDetails(trip=trip, activation_checks=checks, ledger=ledger)

    def list_trips(
        self,
        page: int = 1,
        limit: int = 20,
        status: TripStatus | None = None,
        captain_id: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> tuple[list[ScheduledTrip], int]:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")
        with self._session_factory() as session:
            return TripRepository(session).list_page(
                offset=(page - 1) * limit,
                limit=limit,
                status=status,
                captain_id=captain_id,
                date_from=date_from,
                date_to=date_to,
            )

    def list_captain_trips(
        self,
        captain_id: str,
        status: TripStatus | None = None,
        trip_date: date | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> list[CaptainTrip]:
        """The captain's trips, each SCHEDULED one with its live activation status."""
        with self._session_factory() as session:
            captain = CaptainRepository(session).get(captain_id)
            if captain is None:
                raise NotFoundError("Captain not found", {"captain_id": captain_id})
            is_online = captain.status == CAPTAIN_ONLINE_STATUS
            last_known = (captain.last_latitude, captain.last_longitude)
            trips = TripRepository(session).list_for_captain(captain_id, status, trip_date)

        results: list[CaptainTrip] = []
        for trip in trips:
            if trip.status != TripStatus.SCHEDULED.value:
                results.append(CaptainTrip(trip=trip))
                continue

            if not is_online:
                activation = ActivationCheckResult(
                    can_activate=False, reason="You must be online to start trips"
                )
            else:
                lat, lon = latitude, longitude
                if (lat is None or lon is None) and trip.progress is not None:
                    lat, lon = trip.progress.last_latitude, trip.progress.last_longitude
                if lat is None or lon is None:
                    lat, lon = last_known
                if lat is None or lon is None:
                    activation = ActivationCheckResult(
                        can_activate=False, reason=LOCATION_NOT_AVAILABLE
                    )
                else:
                    activation = self._evaluator.check_trip_activation_conditions(
                        trip.id, lat, lon
                    )
            results.append(CaptainTrip(trip=trip, activation_status=activation))
        return results

    # --- Admin edits ---

    def _build_points(self, draft: TripDraft) -> list[TripPoint]:
        points = validate_points(draft.points, draft.trip_type)
        return [
            TripPoint(
                name=p.name,
                latitude=p.latitude,
                longitude=p.longitude,
                order=p.order,
                is_final_point=p.is_final_point,
                expected_time=to_utc(p.expected_time, self._local_tz) if p.expected_time else None,
            )
            for p in points
        ]

    def _check_captain(self, session: Session, captain_id: str | None) -> None:
        if captain_id and CaptainRepository(session).get(captain_id) is None:
            raise ValidationError("Assigned captain not found", {"captain_id": captain_id})

    def create_trip(self, draft: TripDraft) -> ScheduledTrip:
        validate_price(draft.price)
        scheduled = parse_scheduled_time(draft.trip_date, draft.scheduled_time, self._local_tz)
        points = self._build_points(draft)

        with self._session_factory() as session, transaction(session):
            self._check_captain(session, draft.assigned_captain_id)
            trip = ScheduledTrip(
                name=draft.name.strip(),
                trip_date=draft.trip_date,
                scheduled_time=scheduled,
                trip_type=draft.trip_type.value,
                status=TripStatus.SCHEDULED.value,
                price=draft.price,
                assigned_captain_id=draft.assigned_captain_id,
                company_id=draft.company_id,
                points=points,
            )
            TripRepository(session).add(trip)
            trip_id = trip.id

        logger.info("Created scheduled trip %s with %d points", trip_id, len(points))
        return self._load(trip_id)

    def update_trip(self, trip_id: str, draft: TripDraft) -> ScheduledTrip:
        """Replace every editable field and the full point list."""
        validate_price(draft.price)
        scheduled = parse_scheduled_time(draft.trip_date, draft.scheduled_time, self._local_tz)
        points = self._build_points(draft)

        with log_trip_context(trip_id), self._session_factory() as session:
            with transaction(session):
                trips = TripRepository(session)
                trip = trips.get(trip_id)
                if trip is None:
                    raise NotFoundError("Trip not found", {"trip_id": trip_id})
                status = TripStatus(trip.status)
                if status not in EDITABLE_STATUSES:
                    raise StateError(
                        f"Cannot update a trip while it is {status.value.lower()}",
                        {"status": status.value},
                    )
                progress = trips.get_progress(trip_id)
                if progress is not None and progress.started_at is not None:
                    raise StateError(
                        "Cannot update a trip that has already started", {"status": status.value}
                    )
                if LedgerRepository(session).get_for_trip(trip_id) is not None:
                    raise StateError(
                        "Cannot update a trip that has already been settled",
                        {"status": status.value},
                    )
                self._check_captain(session, draft.assigned_captain_id)

                # Same-status CAS: fails if a worker or captain moved the trip meanwhile.
                trips.compare_and_set_status(trip_id, status, status)
                trip.name = draft.name.strip()
                trip.trip_date = draft.trip_date
                trip.scheduled_time = scheduled
                trip.trip_type = draft.trip_type.value
                trip.price = draft.price
                trip.assigned_captain_id = draft.assigned_captain_id
                trip.company_id = draft.company_id
                trips.replace_points(trip, points)

            logger.info("Updated scheduled trip %s", trip_id)
        return self._load(trip_id)

    def delete_trip(self, trip_id: str) -> None:
        with log_trip_context(trip_id), self._session_factory() as session:
            with transaction(session):
                trips = TripRepository(session)
                trip = trips.get(trip_id)
                if trip is None:
                    raise NotFoundError("Trip not found", {"trip_id": trip_id})
                if trip.status not in (TripStatus.SCHEDULED.value, TripStatus.FAILED.value):
                    raise StateError(
                        "Only scheduled or failed trips can be deleted. "
                        f"Current status: {trip.status}",
                        {"status": trip.status},
                    )
                if LedgerRepository(session).get_for_trip(trip_id) is not None:
                    raise StateError("Cannot delete a trip with a settlement ledger entry")
                trips.delete(trip)
            logger.info("Deleted scheduled trip %s", trip_id)

    def cancel_trip(self, trip_id: str) -> ScheduledTrip:
        """SCHEDULED -> CANCELLED, keeping the row for history."""
        with log_trip_context(trip_id), self._session_factory() as session:
            with transaction(session):
                trips = TripRepository(session)
                trip = trips.get(trip_id)
                if trip is None:
                    raise NotFoundError("Trip not found", {"trip_id": trip_id})
                ensure_transition(TripStatus(trip.status), TripStatus.CANCELLED)
                progress = trips.get_progress(trip_id)
                if progress is not None and progress.started_at is not None:
                    raise StateError("Cannot cancel a trip that has already started")
                trips.compare_and_set_status(trip_id, TripStatus.SCHEDULED, TripStatus.CANCELLED)
            record_transition(TripStatus.CANCELLED.value, "admin")
            logger.info("Cancelled scheduled trip %s", trip_id)
        return self._load(trip_id)

    # --- Captain transitions ---

    def _require_assignee(self, trip: ScheduledTrip, captain_id: str) -> None:
        if not trip.assigned_captain_id:
            raise AssignmentError("This trip has no assigned captain")
        if trip.assigned_captain_id != captain_id:
            raise AssignmentError(
                "You are not assigned to this trip",
                {"trip_id": trip.id, "captain_id": captain_id},
            )

    def start_trip(
        self,
        trip_id: str,
        captain_id: str,
        latitude: float | None,
        longitude: float | None,
    ) -> ScheduledTrip:
        """SCHEDULED -> ACTIVE after re-running the activation evaluator."""
        if latitude is None or longitude is None:
            raise ValidationError("Current location (latitude, longitude) is required")

        with log_trip_context(trip_id, captain_id=captain_id):
            with self._session_factory() as session:
                captain = CaptainRepository(session).get(captain_id)
                if captain is None:
                    raise NotFoundError("Captain not found", {"captain_id": captain_id})
                if captain.status != CAPTAIN_ONLINE_STATUS:
                    raise CaptainOfflineError("You must be online to start a trip")
                trip = TripRepository(session).get(trip_id)
                if trip is None:
                    raise NotFoundError("Trip not found", {"trip_id": trip_id})
                self._require_assignee(trip, captain_id)
                if trip.status != TripStatus.SCHEDULED.value:
                    raise StateError(
                        f"Trip is already {trip.status.lower()}", {"status": trip.status}
                    )

            check = self._evaluator.check_trip_activation_conditions(trip_id, latitude, longitude)
            if not check.can_activate:
                raise StateError(
                    check.reason or "Trip cannot be activated",
                    check.model_dump(mode="json", exclude_none=True),
                )

            now = self._clock()
            with self._session_factory() as session, transaction(session):
                trips = TripRepository(session)
                trips.compare_and_set_status(trip_id, TripStatus.SCHEDULED, TripStatus.ACTIVE)
                trips.upsert_progress(trip_id, captain_id, now, latitude, longitude)
                CaptainRepository(session).update_last_location(
                    captain_id, latitude, longitude, now
                )

            record_transition(TripStatus.ACTIVE.value, "captain")
            logger.info("Trip %s started by captain %s", trip_id, captain_id)
        return self._load(trip_id)

    def update_progress(
        self,
        trip_id: str,
        captain_id: str,
        checkpoint_index: int | None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> ProgressResult:
        """Mark one checkpoint reached; the final point completes the trip."""
        if checkpoint_index is None:
            raise ValidationError("checkpointIndex is required")

        with log_trip_context(trip_id, captain_id=captain_id):
            now = self._clock()
            with self._session_factory() as session:
                with transaction(session):
                    trips = TripRepository(session)
                    trip = trips.get(trip_id, with_details=True)
                    if trip is None:
                        raise NotFoundError("Trip not found", {"trip_id": trip_id})
                    self._require_assignee(trip, captain_id)
                    if trip.status != TripStatus.ACTIVE.value:
                        raise StateError("Trip is not active", {"status": trip.status})
                    progress = trip.progress
                    if progress is None:
                        raise StateError("Trip progress not found")
                    if not 0 <= checkpoint_index < len(trip.points):
                        raise ValidationError(
                            "Invalid checkpoint index",
                            {"checkpoint_index": checkpoint_index, "points": len(trip.points)},
                        )

                    point = trip.points[checkpoint_index]
                    if point.reached_at is None:
                        point.reached_at = now
                    else:
                        logger.warning(
                            "Checkpoint %d of trip %s already reached at %s",
                            checkpoint_index,
                            trip_id,
                            point.reached_at.isoformat(),
                        )

                    is_final = point.is_final_point
                    progress.current_point_index = (
                        checkpoint_index if is_final else checkpoint_index + 1
                    )
                    if latitude is not None and longitude is not None:
                        progress.last_latitude = latitude
                        progress.last_longitude = longitude
                        progress.last_location_update = now
                    if is_final:
                        progress.completed_at = now
                        trips.compare_and_set_status(
                            trip_id, TripStatus.ACTIVE, TripStatus.COMPLETED
                        )

                    timing = None
                    if trip.trip_type == TripType.ARRIVAL.value and point.expected_time:
                        timing = calculate_timing_difference(
                            point.expected_time, point.reached_at, self._local_tz
                        )

            settlement = None
            if is_final:
                record_transition(TripStatus.COMPLETED.value, "captain")
                logger.info("Trip %s completed", trip_id)
                settlement = self._settle(trip_id)
            elif timing is not None:
                logger.info(
                    "Checkpoint %d of trip %s reached: %s", checkpoint_index, trip_id, timing.status
                )

        return ProgressResult(
            trip=self._load(trip_id),
            completed=is_final,
            message="Trip completed successfully" if is_final else "Checkpoint reached",
            timing=timing,
            timing_message=format_timing_message(timing),
            settlement=settlement,
        )

    def _settle(self, trip_id: str) -> FinanceResult | None:
        try:
            return self._finance.settle_with_retry(trip_id)
        except TransientError:
            logger.exception("Settlement of trip %s deferred to reconciliation", trip_id)
            return None

    def update_captain_location(
        self, captain_id: str, latitude: float | None, longitude: float | None
    ) -> LocationUpdateResult:
        """Record a location ping and re-evaluate the captain's SCHEDULED trips.

        Returns the evaluation summary and the trips that newly became
        activatable and have not been announced within the dedup window.
        """
        if latitude is None or longitude is None:
            raise ValidationError("Latitude and longitude are required")

        now = self._clock()
        with self._session_factory() as session:
            with transaction(session):
                captains = CaptainRepository(session)
                captain = captains.get(captain_id)
                if captain is None:
                    raise NotFoundError("Captain not found", {"captain_id": captain_id})
                if captain.status != CAPTAIN_ONLINE_STATUS:
                    raise CaptainOfflineError("You must be online to update location")
                captains.update_last_location(captain_id, latitude, longitude, now)

                trips = TripRepository(session)
                for trip in trips.list_for_captain(captain_id, TripStatus.ACTIVE):
                    if trip.progress is not None:
                        trip.progress.last_latitude = latitude
                        trip.progress.last_longitude = longitude
                        trip.progress.last_location_update = now

            scheduled = [
                (t.id, t.name)
                for t in TripRepository(session).list_for_captain(captain_id, TripStatus.SCHEDULED)
                if t.points
            ]

        result = LocationUpdateResult()
        for trip_id, trip_name in scheduled:
            with log_trip_context(trip_id, captain_id=captain_id):
                check, should_notify = self.evaluate_for_notification(trip_id, latitude, longitude)
            result.activation_checks.append(
                TripActivationSummary(
                    trip_id=trip_id,
                    trip_name=trip_name,
                    can_activate=check.can_activate,
                    reason=check.reason,
                    distance_to_first_point=check.distance_to_first_point,
                )
            )
            if should_notify:
                result.notify_trip_ids.append(trip_id)
        return result

    def evaluate_for_notification(
        self, trip_id: str, latitude: float, longitude: float
    ) -> tuple[ActivationCheckResult, bool]:
        """Run the evaluator; notify only if no activated check is inside the dedup window.

        The dedup lookup happens before the evaluation so the row this call
        writes does not suppress its own notification.
        """
        since = self._clock() - self._notification_dedup
        with self._session_factory() as session:
            recent = ActivationCheckRepository(session).latest_activated_since(trip_id, since)

        check = self._evaluator.check_trip_activation_conditions(trip_id, latitude, longitude)
        if check.can_activate and recent is not None:
            logger.info(
                "Trip %s already announced at %s, skipping duplicate notification",
                trip_id,
                recent.created_at.isoformat(),
            )
        return check, check.can_activate and recent is None

    def activation_candidates(self) -> list[ActivationCandidate]:
        """SCHEDULED trips with points, an online captain and a known captain location."""
        candidates: list[ActivationCandidate] = []
        with self._session_factory() as session:
            for trip in TripRepository(session).list_by_status(TripStatus.SCHEDULED):
                captain = trip.assigned_captain
                if not trip.points or captain is None:
                    logger.debug("Trip %s skipped: no points or no captain", trip.id)
                    continue
                if captain.status != CAPTAIN_ONLINE_STATUS:
                    logger.debug("Trip %s skipped: captain %s offline", trip.id, captain.id)
                    continue

                lat = lon = None
                if trip.progress is not None:
                    lat, lon = trip.progress.last_latitude, trip.progress.last_longitude
                if lat is None or lon is None:
                    lat, lon = captain.last_latitude, captain.last_longitude
                if lat is None or lon is None:
                    logger.debug("Trip %s skipped: no known captain location", trip.id)
                    continue
                candidates.append(
                    ActivationCandidate(
                        trip_id=trip.id, captain_id=captain.id, latitude=lat, longitude=lon
                    )
                )
        return candidates

    def emergency_usage_status(self, captain_id: str) -> EmergencyUsageStatus:
        today = self.local_date(self._clock())
        with self._session_factory() as session:
            usage = EmergencyUsageRepository(session).get_for_day(captain_id, today)
        return EmergencyUsageStatus(
            can_use=usage is None, last_used_at=usage.used_at if usage else None
        )

    def emergency_terminate(self, trip_id: str, captain_id: str) -> TerminationResult:
        """Captain-initiated ACTIVE -> EMERGENCY_ENDED, once per captain per local day.

        The usage row, status change, progress completion and settlement
        commit together; the (driver, day) unique constraint rejects a
        concurrent second use.
        """
        now = self._clock()
        today = self.local_date(now)

        with log_trip_context(trip_id, captain_id=captain_id):
            try:
                with self._session_factory() as session, transaction(session):
                    usages = EmergencyUsageRepository(session)
                    if usages.get_for_day(captain_id, today) is not None:
                        raise QuotaExceededError(EMERGENCY_ALREADY_USED)

                    trips = TripRepository(session)
                    trip = trips.get(trip_id)
                    if trip is None:
                        raise NotFoundError("Trip not found", {"trip_id": trip_id})
                    self._require_assignee(trip, captain_id)
                    if trip.status != TripStatus.ACTIVE.value:
                        raise StateError(
                            f"Trip is not active. Current status: {trip.status}",
                            {"status": trip.status},
                        )

                    usages.add(
                        EmergencyUsage(
                            driver_id=captain_id, trip_id=trip_id, used_at=now, usage_date=today
                        )
                    )
                    trips.compare_and_set_status(
                        trip_id,
                        TripStatus.ACTIVE,
                        TripStatus.EMERGENCY_ENDED,
                        emergency_terminated_at=now,
                        emergency_terminated_by=captain_id,
                    )
                    progress = trips.get_progress(trip_id)
                    if progress is not None:
                        progress.completed_at = now
                    settlement = self._finance.settle(session, trip_id)
            except IntegrityError as e:
                raise QuotaExceededError(EMERGENCY_ALREADY_USED) from e

            record_transition(TripStatus.EMERGENCY_ENDED.value, "captain")
            logger.info("Trip %s emergency terminated by captain %s", trip_id, captain_id)
        return TerminationResult(trip=self._load(trip_id), settlement=settlement)

    def _terminate_active(
        self,
        trip_id: str,
        target: TripStatus,
        source: str,
        **values: object,
    ) -> TerminationResult:
        now = self._clock()
        with log_trip_context(trip_id):
            with self._session_factory() as session, transaction(session):
                trips = TripRepository(session)
                trip = trips.get(trip_id)
                if trip is None:
                    raise NotFoundError("Trip not found", {"trip_id": trip_id})
                if trip.status != TripStatus.ACTIVE.value:
                    raise StateError(
                        f"Only active trips can be closed. Current status: {trip.status}",
                        {"status": trip.status},
                    )
                if not trip.assigned_captain_id:
                    raise AssignmentError("Trip has no assigned captain")
                trips.compare_and_set_status(trip_id, TripStatus.ACTIVE, target, **values)
                progress = trips.get_progress(trip_id)
                if progress is not None and progress.completed_at is None:
                    progress.completed_at = now

            record_transition(target.value, source)
            logger.info("Trip %s moved to %s by %s", trip_id, target.value, source)
            settlement = self._settle(trip_id)
        return TerminationResult(trip=self._load(trip_id), settlement=settlement)

    def force_close(self, trip_id: str) -> TerminationResult:
        """Admin ACTIVE -> FORCE_CLOSED with the discounted deduction."""
        return self._terminate_active(trip_id, TripStatus.FORCE_CLOSED, "admin")

    def admin_emergency_terminate(self, trip_id: str, admin_id: str) -> TerminationResult:
        """Admin ACTIVE -> EMERGENCY_TERMINATED; no daily quota applies."""
        return self._terminate_active(
            trip_id,
            TripStatus.EMERGENCY_TERMINATED,
            "admin",
            emergency_terminated_at=self._clock(),
            emergency_terminated_by=admin_id,
        )

    # --- Worker sweeps ---

    def mark_overdue(self) -> list[str]:
        """Fail every SCHEDULED trip past its time that was never started."""
        now = self._clock()
        with self._session_factory() as session:
            overdue = [
                t.id
                for t in TripRepository(session).list_by_status(TripStatus.SCHEDULED)
                if t.scheduled_time < now
                and (t.progress is None or t.progress.started_at is None)
            ]

        failed: list[str] = []
        for trip_id in overdue:
            with log_trip_context(trip_id, worker="overdue"):
                try:
                    with self._session_factory() as session, transaction(session):
                        TripRepository(session).compare_and_set_status(
                            trip_id, TripStatus.SCHEDULED, TripStatus.FAILED
                        )
                except ConflictError:
                    logger.debug("Trip %s changed status before it could be failed", trip_id)
                    continue
                except Exception:
                    logger.exception("Failed to mark trip %s overdue", trip_id)
                    continue

                failed.append(trip_id)
                record_transition(TripStatus.FAILED.value, "overdue_worker")
                logger.info("Trip %s marked FAILED: not started by its scheduled time", trip_id)
                if self._apply_failure_penalty:
                    self._settle(trip_id)
        return failed
