"""Create / update / skip decisions for provider shows."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from ..db_models import TvShow
from ..models import ExternalShowDetail, ExternalShowSummary
from ..normalizers import default_genres, parse_rating, parse_start_date
from .catalog_store import CatalogStore
from .episodate import EpisodateClient

logger = logging.getLogger(__name__)

STALE_AFTER = timedelta(days=1)
DEFAULT_SHOW_TYPE = "Series"
MISSING_DESCRIPTION = "Description not available"


class ReconcileAction(str, Enum):
    """Outcome of reconciling one provider show."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


class ShowReconciler:
    """Matches provider shows to catalog rows by title and applies changes.

    Titles are the only key shared with the provider: matching is an exact,
    case-insensitive comparison. Two different shows with the same title
    collapse into one row, and a renamed show is created again under its new
    title.
    """

    def __init__(
        self,
        store: CatalogStore,
        provider: EpisodateClient,
        *,
        stale_after: timedelta = STALE_AFTER,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self._store = store
        self._provider = provider
        self._stale_after = stale_after
        self._now = now

    async def reconcile(self, summary: ExternalShowSummary) -> ReconcileAction:
        existing = await self._store.find_by_title(summary.name)
        if existing is None:
            await self._create(summary)
            return ReconcileAction.CREATED

        now = self._now()
        if not self.is_stale(existing, now):
            return ReconcileAction.SKIPPED
        if await self._update(existing, summary, now):
            return ReconcileAction.UPDATED
        return ReconcileAction.SKIPPED

    def is_stale(self, show: TvShow, now: datetime) -> bool:
        """Return whether ``show`` was last refreshed before the staleness window."""

        return now - show.updated_at > self._stale_after

    async def _fetch_detail(self, summary: ExternalShowSummary) -> ExternalShowDetail | None:
        try:
            return await self._provider.fetch_detail(summary.id)
        except Exception:
            logger.exception(
                "Fetching details for %s (ID: %s) failed", summary.name, summary.id
            )
            return None

    async def _create(self, summary: ExternalShowSummary) -> TvShow:
        detail = await self._fetch_detail(summary)
        now = self._now()

        description = MISSING_DESCRIPTION
        if detail is not None and detail.description.strip():
            description = detail.description

        show = TvShow(
            title=summary.name,
            description=description,
            start_date=parse_start_date(summary.start_date, now=now),
            status=summary.status,
            network=summary.network,
            image_url=summary.image_thumbnail_path,
            rating=0.0,
            genres=default_genres(detail.genres if detail else None),
            show_type=DEFAULT_SHOW_TYPE,
            created_at=now,
            updated_at=now,
        )
        if detail is not None:
            show.rating = parse_rating(detail.rating, default=show.rating)

        self._store.add(show)
        logger.debug("Created show %s from Episodate ID %s", show.title, summary.id)
        return show

    async def _update(
        self, show: TvShow, summary: ExternalShowSummary, now: datetime
    ) -> bool:
        detail = await self._fetch_detail(summary)
        if detail is None:
            logger.warning(
                "No fresh details for %s (ID: %s); leaving it for the next cycle",
                show.title,
                summary.id,
            )
            return False

        changes: dict[str, object] = {
            "status": detail.status,
            "network": detail.network,
            "updated_at": now,
        }
        rating = parse_rating(detail.rating)
        if rating is not None:
            changes["rating"] = rating
        self._store.apply(show, **changes)
        logger.debug("Updated show %s from Episodate ID %s", show.title, summary.id)
        return True
