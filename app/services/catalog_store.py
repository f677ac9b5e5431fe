"""Catalog persistence operations used by the synchronization engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..db_models import TvShow, normalize_title


@dataclass(slots=True)
class CatalogStats:
    """Aggregate counters describing the synced catalog."""

    total_shows: int
    last_sync_time: datetime | None
    recently_added: int


class CatalogStore:
    """Wraps one session; changes stay pending until :meth:`commit`."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_by_title(self, title: str) -> TvShow | None:
        """Return the show whose title matches ``title`` ignoring case."""

        key = normalize_title(title)
        # Rows added earlier in the same cycle are not flushed yet.
        for pending in self._session.new:
            if isinstance(pending, TvShow) and pending.title_key == key:
                return pending

        stmt = (
            select(TvShow)
            .where(TvShow.title_key == key)
            .order_by(TvShow.id)
            .limit(1)
        )
        with self._session.sync_session.no_autoflush:
            result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    def add(self, show: TvShow) -> None:
        """Stage a new show for insertion."""

        self._session.add(show)

    def apply(self, show: TvShow, **changes: Any) -> None:
        """Mutate a tracked show in place."""

        for field, value in changes.items():
            if field in {"id", "title", "title_key"}:
                raise ValueError(f"Synced shows never change {field!r}")
            if not hasattr(TvShow, field):
                raise AttributeError(f"TvShow has no field {field!r}")
            setattr(show, field, value)

    async def commit(self) -> None:
        """Persist every pending change in one transaction."""

        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def stats(self, *, now: datetime, recent_window: timedelta) -> CatalogStats:
        """Return catalog counters for the admin surface."""

        total = await self._session.scalar(select(func.count(TvShow.id)))
        last_sync = await self._session.scalar(select(func.max(TvShow.updated_at)))
        recent = await self._session.scalar(
            select(func.count(TvShow.id)).where(
                TvShow.created_at >= now - recent_window
            )
        )
        return CatalogStats(
            total_shows=int(total or 0),
            last_sync_time=last_sync,
            recently_added=int(recent or 0),
        )
