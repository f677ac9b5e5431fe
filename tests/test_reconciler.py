"""Tests for the create / update / skip decisions."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

from sqlalchemy import select

from app.database import Database
from app.db_models import TvShow
from app.models import ExternalShowDetail, ExternalShowSummary
from app.services.catalog_store import CatalogStore
from app.services.episodate import EpisodateClient
from app.services.reconciler import (
    MISSING_DESCRIPTION,
    ReconcileAction,
    ShowReconciler,
)

NOW = datetime(2024, 5, 1, 12, 0)


class StubProvider(EpisodateClient):
    """Provider stub serving canned details and recording lookups."""

    def __init__(
        self,
        details: dict[int, ExternalShowDetail] | None = None,
        failing: set[int] | None = None,
    ) -> None:
        # Deliberately skip super().__init__ to avoid touching the network.
        self.details = details or {}
        self.failing = failing or set()
        self.detail_calls: list[int] = []

    async def fetch_detail(self, show_id: int) -> ExternalShowDetail | None:  # type: ignore[override]
        self.detail_calls.append(show_id)
        if show_id in self.failing:
            raise RuntimeError(f"detail lookup for {show_id} exploded")
        return self.details.get(show_id)


def _summary(show_id: int, name: str, **overrides: object) -> ExternalShowSummary:
    payload: dict[str, object] = {
        "id": show_id,
        "name": name,
        "start_date": "2014-10-07",
        "network": "The CW",
        "status": "Running",
        "image_thumbnail_path": f"https://static.episodate.com/{show_id}.jpg",
    }
    payload.update(overrides)
    return ExternalShowSummary.model_validate(payload)


def _detail(show_id: int, name: str, **overrides: object) -> ExternalShowDetail:
    payload: dict[str, object] = {
        "id": show_id,
        "name": name,
        "description": f"About {name}",
        "network": "Netflix",
        "status": "Ended",
        "rating": "8.5",
        "genres": ["Drama"],
    }
    payload.update(overrides)
    return ExternalShowDetail.model_validate(payload)


async def _database(tmp_path) -> Database:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await database.create_all()
    return database


async def _seed(database: Database, *, title: str, updated_at: datetime, **fields: object) -> None:
    async with database.session_factory() as session:
        store = CatalogStore(session)
        values: dict[str, object] = {
            "title": title,
            "description": "Existing",
            "start_date": datetime(2010, 1, 1),
            "status": "Running",
            "network": "HBO",
            "image_url": "",
            "rating": 5.0,
            "genres": ["Comedy"],
            "show_type": "Series",
            "created_at": updated_at,
            "updated_at": updated_at,
        }
        values.update(fields)
        store.add(TvShow(**values))
        await store.commit()


async def _reconcile(
    database: Database,
    provider: StubProvider,
    summary: ExternalShowSummary,
    now: datetime = NOW,
) -> ReconcileAction:
    async with database.session_factory() as session:
        store = CatalogStore(session)
        action = await ShowReconciler(store, provider, now=lambda: now).reconcile(summary)
        await store.commit()
    return action


async def _shows(database: Database) -> list[TvShow]:
    async with database.session_factory() as session:
        result = await session.execute(select(TvShow).order_by(TvShow.id))
        return list(result.scalars())


def test_creates_show_from_summary_and_detail(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        provider = StubProvider({1: _detail(1, "The Flash", rating="11.2", genres=["Drama", "Action"])})

        action = await _reconcile(database, provider, _summary(1, "The Flash"))

        shows = await _shows(database)
        await database.dispose()

        assert action is ReconcileAction.CREATED
        assert len(shows) == 1
        show = shows[0]
        assert show.title == "The Flash"
        assert show.description == "About The Flash"
        assert show.network == "The CW"
        assert show.status == "Running"
        assert show.image_url == "https://static.episodate.com/1.jpg"
        assert show.rating == 10.0
        assert show.genres == ["Drama", "Action"]
        assert show.show_type == "Series"
        assert show.start_date == datetime(2014, 10, 7)
        assert show.created_at == show.updated_at == NOW

    asyncio.run(runner())


def test_create_applies_fallback_policies(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        provider = StubProvider({2: _detail(2, "Arrow", rating="n/a", genres=[], description="")})

        await _reconcile(database, provider, _summary(2, "Arrow", start_date="not-a-date"))

        [show] = await _shows(database)
        await database.dispose()

        assert show.start_date == NOW
        assert show.rating == 0.0
        assert show.genres == ["Unknown"]
        assert show.description == MISSING_DESCRIPTION

    asyncio.run(runner())


def test_negative_rating_is_clamped_on_create(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        provider = StubProvider({3: _detail(3, "Gotham", rating="-3")})

        await _reconcile(database, provider, _summary(3, "Gotham"))

        [show] = await _shows(database)
        await database.dispose()

        assert show.rating == 0.0

    asyncio.run(runner())


def test_failed_detail_fetch_degrades_create(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        provider = StubProvider(failing={4})

        action = await _reconcile(database, provider, _summary(4, "Lost"))

        [show] = await _shows(database)
        await database.dispose()

        assert action is ReconcileAction.CREATED
        assert provider.detail_calls == [4]
        assert show.description == MISSING_DESCRIPTION
        assert show.genres == ["Unknown"]
        assert show.rating == 0.0
        assert show.network == "The CW"

    asyncio.run(runner())


def test_title_match_is_case_insensitive(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        await _seed(database, title="Élite", updated_at=NOW - timedelta(hours=1))
        provider = StubProvider({5: _detail(5, "élite")})

        action = await _reconcile(database, provider, _summary(5, "éLITE"))

        shows = await _shows(database)
        await database.dispose()

        assert action is ReconcileAction.SKIPPED
        assert len(shows) == 1
        assert provider.detail_calls == []

    asyncio.run(runner())


def test_staleness_boundary_is_strict(tmp_path) -> None:
    """Exactly one day old is fresh; one microsecond older is stale."""

    async def runner() -> None:
        database = await _database(tmp_path)
        await _seed(database, title="Fresh", updated_at=NOW - timedelta(days=1))
        await _seed(
            database,
            title="Stale",
            updated_at=NOW - timedelta(days=1, microseconds=1),
        )
        provider = StubProvider({6: _detail(6, "Fresh"), 7: _detail(7, "Stale")})

        fresh = await _reconcile(database, provider, _summary(6, "Fresh"))
        stale = await _reconcile(database, provider, _summary(7, "Stale"))
        await database.dispose()

        assert fresh is ReconcileAction.SKIPPED
        assert stale is ReconcileAction.UPDATED
        assert provider.detail_calls == [7]

    asyncio.run(runner())


def test_update_overwrites_only_refreshable_fields(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        await _seed(database, title="Dexter", updated_at=NOW - timedelta(days=3))
        provider = StubProvider(
            {8: _detail(8, "Dexter", rating="11.2", genres=["Crime"], description="New")}
        )

        action = await _reconcile(
            database, provider, _summary(8, "dexter", start_date="1999-01-01")
        )

        [show] = await _shows(database)
        await database.dispose()

        assert action is ReconcileAction.UPDATED
        assert show.status == "Ended"
        assert show.network == "Netflix"
        assert show.rating == 10.0
        assert show.updated_at == NOW
        assert show.title == "Dexter"
        assert show.genres == ["Comedy"]
        assert show.description == "Existing"
        assert show.start_date == datetime(2010, 1, 1)

    asyncio.run(runner())


def test_update_leaves_rating_when_unparsable(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        await _seed(database, title="Fargo", updated_at=NOW - timedelta(days=2), rating=7.7)
        provider = StubProvider({9: _detail(9, "Fargo", rating="unknown")})

        action = await _reconcile(database, provider, _summary(9, "Fargo"))

        [show] = await _shows(database)
        await database.dispose()

        assert action is ReconcileAction.UPDATED
        assert show.rating == 7.7
        assert show.status == "Ended"

    asyncio.run(runner())


def test_update_without_detail_leaves_row_untouched(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        stale_at = NOW - timedelta(days=2)
        await _seed(database, title="House", updated_at=stale_at)
        missing = StubProvider()
        failing = StubProvider(failing={10})

        first = await _reconcile(database, missing, _summary(10, "House"))
        second = await _reconcile(database, failing, _summary(10, "House"))

        [show] = await _shows(database)
        await database.dispose()

        assert first is ReconcileAction.SKIPPED
        assert second is ReconcileAction.SKIPPED
        assert show.updated_at == stale_at
        assert show.status == "Running"

    asyncio.run(runner())


def test_duplicate_titles_within_one_session_create_once(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        provider = StubProvider()
        async with database.session_factory() as session:
            store = CatalogStore(session)
            reconciler = ShowReconciler(store, provider, now=lambda: NOW)
            first = await reconciler.reconcile(_summary(11, "Sherlock"))
            second = await reconciler.reconcile(_summary(12, "SHERLOCK"))
            await store.commit()

        shows = await _shows(database)
        await database.dispose()

        assert first is ReconcileAction.CREATED
        assert second is ReconcileAction.SKIPPED
        assert len(shows) == 1

    asyncio.run(runner())


def test_rows_added_outside_the_store_are_found_by_title(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        async with database.session_factory() as session:
            session.add(
                TvShow(title="Lost", start_date=datetime(2004, 9, 22), updated_at=NOW)
            )
            await session.commit()

        async with database.session_factory() as session:
            found = await CatalogStore(session).find_by_title("LOST")
        await database.dispose()

        assert found is not None
        assert found.title_key == "lost"

    asyncio.run(runner())


def test_renamed_row_is_matched_under_its_new_title(tmp_path) -> None:
    async def runner() -> None:
        database = await _database(tmp_path)
        await _seed(database, title="Lost", updated_at=NOW - timedelta(hours=1))
        async with database.session_factory() as session:
            show = (await session.execute(select(TvShow))).scalar_one()
            show.title = "The Flash"
            await session.commit()
        provider = StubProvider()

        action = await _reconcile(database, provider, _summary(13, "THE FLASH"))

        shows = await _shows(database)
        await database.dispose()

        assert action is ReconcileAction.SKIPPED
        assert [(show.title, show.title_key) for show in shows] == [
            ("The Flash", "the flash")
        ]
        assert provider.detail_calls == []

    asyncio.run(runner())
