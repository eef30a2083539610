"""Periodic sweep that fails scheduled trips nobody started in time."""

import asyncio
import logging

from trips.lifecycle import TripLifecycleService

from .base import PollingWorker

logger = logging.getLogger(__name__)


class OverdueWorker(PollingWorker):
    name = "overdue"

    def __init__(self, lifecycle: TripLifecycleService, interval_seconds: float = 60.0) -> None:
        super().__init__(interval_seconds)
        self._lifecycle = lifecycle

    async def tick(self) -> list[str]:
        failed = await asyncio.to_thread(self._lifecycle.mark_overdue)
        if failed:
            logger.info("Marked %d overdue trip(s) as FAILED", len(failed))
        return failed
