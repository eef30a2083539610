"""Periodic activation sweep that tells captains when a trip can be started."""

import asyncio
import logging
from dataclasses import dataclass

from notifications.push import NotificationService
from trip_logging import log_trip_context
from trips.lifecycle import TripLifecycleService

from .base import PollingWorker

logger = logging.getLogger(__name__)


@dataclass
class ActivationTickSummary:
    evaluated: int = 0
    activatable: int = 0
    notified: int = 0
    errors: int = 0


class ActivationWorker(PollingWorker):
    name = "activation"

    def __init__(
        self,
        lifecycle: TripLifecycleService,
        notifications: NotificationService,
        interval_seconds: float = 30.0,
    ) -> None:
        super().__init__(interval_seconds)
        self._lifecycle = lifecycle
        self._notifications = notifications

    async def tick(self) -> ActivationTickSummary:
        summary = ActivationTickSummary()
        candidates = await asyncio.to_thread(self._lifecycle.activation_candidates)

        for candidate in candidates:
            with log_trip_context(candidate.trip_id, captain_id=candidate.captain_id):
                try:
                    check, should_notify = await asyncio.to_thread(
                        self._lifecycle.evaluate_for_notification,
                        candidate.trip_id,
                        candidate.latitude,
                        candidate.longitude,
                    )
                    summary.evaluated += 1
                    if check.can_activate:
                        summary.activatable += 1
                    if should_notify:
                        result = await self._notifications.send_trip_activation_notification(
                            candidate.captain_id, candidate.trip_id
                        )
                        if result.success:
                            summary.notified += 1
                except Exception:
                    summary.errors += 1
                    logger.exception("Activation check failed for trip %s", candidate.trip_id)

        if candidates:
            logger.info(
                "Activation sweep: %d evaluated, %d activatable, %d notified, %d errors",
                summary.evaluated,
                summary.activatable,
                summary.notified,
                summary.errors,
            )
        return summary
