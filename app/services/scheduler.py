"""Background task driving periodic catalog synchronization."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from datetime import timedelta

from ..utils import interruptible_sleep
from .sync import CatalogSyncService

logger = logging.getLogger(__name__)

WARMUP_DELAY = timedelta(seconds=30)
STOP_GRACE_SECONDS = 30.0


class SyncScheduler:
    """Runs synchronization cycles one after another on a fixed interval.

    ``stop_event`` is the single cooperative stop signal: it interrupts the
    warm-up and inter-cycle waits immediately and is threaded into each cycle
    so the throttle and page delays end early too.
    """

    def __init__(
        self,
        sync_service: CatalogSyncService,
        *,
        interval: timedelta,
        warmup: timedelta = WARMUP_DELAY,
        stop_grace_seconds: float = STOP_GRACE_SECONDS,
    ):
        self._sync_service = sync_service
        self._interval = interval
        self._warmup = warmup
        self._stop_grace_seconds = stop_grace_seconds
        self.stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.cycles_run = 0
        logger.info(
            "Catalog sync scheduled every %.1f hours",
            interval.total_seconds() / 3600,
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Launch the background loop if it is not already running."""

        if self.is_running:
            return
        self.stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="catalog-sync")

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it to finish."""

        if self._task is None:
            return
        self.stop_event.set()
        task = self._task
        try:
            await asyncio.wait_for(task, timeout=self._stop_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning("Catalog sync did not stop in time; cancelling it")
        finally:
            if not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
            self._task = None

    async def _run(self) -> None:
        logger.info("Catalog sync scheduler started")
        if await self._wait(self._warmup):
            logger.info("Catalog sync scheduler stopped")
            return

        while not self.stop_event.is_set():
            await self._run_cycle_safely()
            if await self._wait(self._interval):
                break

        logger.info("Catalog sync scheduler stopped")

    async def _run_cycle_safely(self) -> None:
        try:
            await self._sync_service.run_cycle(stop_event=self.stop_event)
        except Exception as exc:
            logger.exception("Catalog synchronization cycle failed: %s", exc)
        finally:
            self.cycles_run += 1

    async def _wait(self, delay: timedelta) -> bool:
        return await interruptible_sleep(delay.total_seconds(), self.stop_event)
