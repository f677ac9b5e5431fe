"""High level orchestration for one catalog synchronization cycle."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models import ExternalShowSummary
from ..utils import interruptible_sleep
from .catalog_store import CatalogStats, CatalogStore
from .episodate import EpisodateClient
from .reconciler import STALE_AFTER, ReconcileAction, ShowReconciler

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 3
THROTTLE_EVERY = 5
THROTTLE_SECONDS = 2.0
RECENT_WINDOW = timedelta(days=7)


@dataclass(slots=True)
class ItemResult:
    """Result of reconciling one provider show: an action or an error."""

    summary: ExternalShowSummary
    action: ReconcileAction | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class CycleOutcome:
    """Counters for a single synchronization cycle."""

    created: int = 0
    updated: int = 0
    processed: int = 0
    failed: int = 0
    committed: bool = False

    @property
    def skipped(self) -> int:
        return self.processed - self.created - self.updated

    @classmethod
    def from_results(cls, results: Iterable[ItemResult]) -> "CycleOutcome":
        """Fold per-item results into cycle counters."""

        outcome = cls()
        for result in results:
            if not result.ok:
                outcome.failed += 1
                continue
            outcome.processed += 1
            if result.action is ReconcileAction.CREATED:
                outcome.created += 1
            elif result.action is ReconcileAction.UPDATED:
                outcome.updated += 1
        return outcome

    def as_dict(self) -> dict[str, int | bool]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "processed": self.processed,
            "failed": self.failed,
            "committed": self.committed,
        }


class CatalogSyncService:
    """Pulls the provider ranking and reconciles it into the catalog."""

    def __init__(
        self,
        provider: EpisodateClient,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        throttle_every: int = THROTTLE_EVERY,
        throttle_seconds: float = THROTTLE_SECONDS,
        stale_after: timedelta = STALE_AFTER,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self._provider = provider
        self._session_factory = session_factory
        self._throttle_every = throttle_every
        self._throttle_seconds = throttle_seconds
        self._stale_after = stale_after
        self._now = now
        self._cycle_lock = asyncio.Lock()

    @property
    def provider(self) -> EpisodateClient:
        return self._provider

    @property
    def is_syncing(self) -> bool:
        return self._cycle_lock.locked()

    async def run_cycle(
        self,
        *,
        max_pages: int = DEFAULT_MAX_PAGES,
        limit: int | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> CycleOutcome:
        """Run one full fetch-and-reconcile pass and commit it once."""

        async with self._cycle_lock:
            return await self._run_cycle(
                max_pages=max_pages, limit=limit, stop_event=stop_event
            )

    async def _run_cycle(
        self,
        *,
        max_pages: int,
        limit: int | None,
        stop_event: asyncio.Event | None,
    ) -> CycleOutcome:
        logger.info("Starting catalog synchronization (up to %s pages)", max_pages)
        summaries = await self._provider.fetch_popular_shows(
            max_pages, stop_event=stop_event
        )
        if not summaries:
            logger.warning("No shows received from Episodate; nothing to sync")
            return CycleOutcome()
        if limit is not None:
            summaries = summaries[:limit]

        async with self._session_factory() as session:
            store = CatalogStore(session)
            reconciler = ShowReconciler(
                store, self._provider, stale_after=self._stale_after, now=self._now
            )
            results = await self._reconcile_all(reconciler, summaries, stop_event)
            outcome = CycleOutcome.from_results(results)
            outcome.committed = await self._commit(store)

        logger.info(
            "Synchronization finished: %s created, %s updated, %s skipped, "
            "%s failed, %s processed",
            outcome.created,
            outcome.updated,
            outcome.skipped,
            outcome.failed,
            outcome.processed,
        )
        return outcome

    async def _reconcile_all(
        self,
        reconciler: ShowReconciler,
        summaries: list[ExternalShowSummary],
        stop_event: asyncio.Event | None,
    ) -> list[ItemResult]:
        results: list[ItemResult] = []
        processed = 0
        for summary in summaries:
            if stop_event is not None and stop_event.is_set():
                logger.info("Stop requested; ending cycle after %s items", len(results))
                break
            try:
                action = await reconciler.reconcile(summary)
            except Exception as exc:
                logger.exception(
                    "Failed to process show %s (ID: %s)", summary.name, summary.id
                )
                results.append(ItemResult(summary=summary, error=exc))
                continue

            results.append(ItemResult(summary=summary, action=action))
            processed += 1
            if self._throttle_every > 0 and processed % self._throttle_every == 0:
                if await self._pause(self._throttle_seconds, stop_event):
                    logger.info(
                        "Stop requested; ending cycle after %s items", len(results)
                    )
                    break
        return results

    async def _pause(self, seconds: float, stop_event: asyncio.Event | None) -> bool:
        return await interruptible_sleep(seconds, stop_event)

    async def _commit(self, store: CatalogStore) -> bool:
        try:
            await store.commit()
        except SQLAlchemyError:
            logger.exception("Committing synchronized shows failed; changes discarded")
            await store.rollback()
            return False
        return True

    async def catalog_stats(self) -> CatalogStats:
        """Return counters describing the synced catalog."""

        async with self._session_factory() as session:
            return await CatalogStore(session).stats(
                now=self._now(), recent_window=RECENT_WINDOW
            )
