"""Activation evaluator: may a SCHEDULED trip be started right now?

A trip can be activated when the captain is within the proximity threshold
of the first checkpoint and the current time lies inside
[scheduled_time - early window, scheduled_time]. Every evaluation that gets
past the trip/captain guards writes one TripActivationCheck audit row.
"""

import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta

from pydantic import BaseModel
from sqlalchemy.orm import Session, sessionmaker

from db.repositories import ActivationCheckRepository, TripRepository
from db.schema import TripActivationCheck
from db.transaction import transaction
from db.utils import utc_now
from geo.distance import haversine_distance_m
from metrics import record_activation_check
from settings import ActivationSettings
from trip import CAPTAIN_ONLINE_STATUS, TripStatus

logger = logging.getLogger(__name__)


class ActivationCheckResult(BaseModel):
    can_activate: bool
    reason: str | None = None
    distance_to_first_point: float | None = None
    is_within_proximity: bool | None = None
    is_on_time: bool | None = None
    is_within_time_window: bool | None = None
    is_too_early: bool | None = None
    earliest_start_time: datetime | None = None


class ActivationEvaluator:
    """Evaluates activation conditions and records the audit trail."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: ActivationSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or ActivationSettings()
        self._clock = clock

    def check_trip_activation_conditions(
        self, trip_id: str, latitude: float, longitude: float
    ) -> ActivationCheckResult:
        """Evaluate and persist; never raises."""
        try:
            with self._session_factory() as session, transaction(session):
                result = self.evaluate(session, trip_id, latitude, longitude)
        except Exception as e:
            logger.exception("Error checking activation conditions for trip %s", trip_id)
            return ActivationCheckResult(
                can_activate=False,
                reason=str(e) or "Error checking activation conditions",
            )
        return result

    def evaluate(
        self, session: Session, trip_id: str, latitude: float, longitude: float
    ) -> ActivationCheckResult:
        trip = TripRepository(session).get(trip_id, with_details=True)
        if trip is None:
            return ActivationCheckResult(can_activate=False, reason="Trip not found")

        if trip.status != TripStatus.SCHEDULED.value:
            return ActivationCheckResult(
                can_activate=False, reason=f"Trip is already {trip.status.lower()}"
            )

        if not trip.points:
            return ActivationCheckResult(can_activate=False, reason="Trip has no checkpoints")

        captain = trip.assigned_captain
        if captain is None:
            return ActivationCheckResult(
                can_activate=False,
                reason="This trip has no assigned captain",
                is_within_proximity=False,
                is_on_time=False,
            )

        if captain.status != CAPTAIN_ONLINE_STATUS:
            return ActivationCheckResult(
                can_activate=False,
                reason="You must be online to start this trip",
                is_within_proximity=False,
                is_on_time=False,
            )

        first_point = trip.points[0]
        distance = haversine_distance_m(
            latitude, longitude, first_point.latitude, first_point.longitude
        )
        threshold_m = self._settings.proximity_threshold_m
        window_minutes = self._settings.early_start_window_minutes
        is_within_proximity = distance <= threshold_m

        now = self._clock()
        scheduled = trip.scheduled_time
        earliest = scheduled - timedelta(minutes=window_minutes)
        is_too_early = now < earliest
        is_on_time = now <= scheduled
        is_within_time_window = earliest <= now <= scheduled
        can_activate = is_within_proximity and is_within_time_window

        reason = None
        if not can_activate:
            if is_too_early:
                minutes_until_window = math.ceil((earliest - now).total_seconds() / 60)
                reason = (
                    f"Too early. You can start this trip {minutes_until_window} minute(s) "
                    f"before the scheduled time ({window_minutes} minutes before)"
                )
            elif not is_within_proximity and not is_on_time:
                reason = f"You are {distance / 1000:.2f}km away and it's past the scheduled time"
            elif not is_within_proximity:
                reason = (
                    f"You are {distance / 1000:.2f}km away "
                    f"(must be within {threshold_m / 1000:g}km)"
                )
            elif not is_on_time:
                reason = "It's past the scheduled trip time"
            else:
                reason = "Time window not met"

        ActivationCheckRepository(session).add(
            TripActivationCheck(
                scheduled_trip_id=trip.id,
                captain_id=captain.id,
                was_within_proximity=is_within_proximity,
                was_on_time=is_within_time_window,
                activated=can_activate,
                captain_latitude=latitude,
                captain_longitude=longitude,
                distance_to_first_point=distance,
                created_at=now,
            )
        )
        record_activation_check(can_activate)
        logger.debug(
            "Activation check for trip %s: can_activate=%s distance=%.0fm",
            trip.id,
            can_activate,
            distance,
        )

        return ActivationCheckResult(
            can_activate=can_activate,
            reason=reason,
            distance_to_first_point=distance,
            is_within_proximity=is_within_proximity,
            is_on_time=is_on_time,
            is_within_time_window=is_within_time_window,
            is_too_early=is_too_early,
            earliest_start_time=earliest,
        )
