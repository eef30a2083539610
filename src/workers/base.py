"""Non-reentrant polling loop shared by the background workers."""

import asyncio
import logging
from typing import Any

from metrics import record_worker_tick
from trip_logging import log_context

logger = logging.getLogger(__name__)


class PollingWorker:
    """Runs tick() immediately on start and then every interval seconds.

    A tick never overlaps a previous one. stop() prevents new ticks and waits
    for an in-flight tick to finish instead of cancelling it.
    """

    name = "worker"

    def __init__(self, interval_seconds: float) -> None:
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._tick_in_progress = False

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            logger.warning("%s worker is already running", self.name)
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=f"{self.name}-worker")
        logger.info("%s worker started (every %.0fs)", self.name, self._interval)

    async def stop(self) -> None:
        if self._task is None or self._stop_event is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("%s worker stopped", self.name)

    async def _loop(self) -> None:
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

    async def run_once(self) -> Any:
        """Run a single tick unless one is already in flight. Never raises."""
        if self._tick_in_progress:
            logger.debug("%s tick skipped: previous tick still running", self.name)
            record_worker_tick(self.name, "skipped")
            return None

        self._tick_in_progress = True
        try:
            with log_context(worker=self.name):
                result = await self.tick()
            record_worker_tick(self.name, "ok")
            return result
        except Exception:
            logger.exception("Error in %s worker tick", self.name)
            record_worker_tick(self.name, "error")
            return None
        finally:
            self._tick_in_progress = False

    async def tick(self) -> Any:
        raise NotImplementedError
