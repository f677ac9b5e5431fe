"""Entry point for the FastAPI service hosting the catalog synchronizer."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException

from .config import settings
from .database import Database
from .services.episodate import EpisodateClient
from .services.scheduler import SyncScheduler
from .services.sync import CatalogSyncService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

MANUAL_SYNC_PAGES = 1
MANUAL_SYNC_LIMIT = 5

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    episodate_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.episodate_api_url),
            timeout=httpx.Timeout(20.0, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    provider = EpisodateClient(settings, episodate_http_client)
    sync_service = CatalogSyncService(provider, database.session_factory)
    scheduler = SyncScheduler(sync_service, interval=settings.sync_interval)

    fastapi_app.state.sync_service = sync_service
    fastapi_app.state.scheduler = scheduler
    fastapi_app.state.database = database
    if settings.sync_enabled:
        scheduler.start()
    else:
        logger.info("Background catalog sync disabled by configuration")

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await scheduler.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Keeps the TV show catalog in step with Episodate",
        version="1.0.0",
        lifespan=lifespan,
    )
    register_routes(fastapi_app)
    return fastapi_app


def get_sync_service(fastapi_app: FastAPI) -> CatalogSyncService:
    service = getattr(fastapi_app.state, "sync_service", None)
    if not isinstance(service, CatalogSyncService):
        raise RuntimeError("Sync service not initialised")
    return service


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/sync/stats")
    async def sync_stats() -> dict[str, Any]:
        service = get_sync_service(fastapi_app)
        stats = await service.catalog_stats()
        scheduler = getattr(fastapi_app.state, "scheduler", None)
        return {
            "totalShows": stats.total_shows,
            "lastSyncTime": (
                stats.last_sync_time.isoformat() if stats.last_sync_time else None
            ),
            "recentlyAdded": stats.recently_added,
            "schedulerRunning": bool(scheduler is not None and scheduler.is_running),
            "syncInProgress": service.is_syncing,
        }

    @fastapi_app.get("/sync/test-connection")
    async def check_provider_connection() -> dict[str, Any]:
        service = get_sync_service(fastapi_app)
        report = await service.provider.check_connection()
        if report is None:
            raise HTTPException(
                status_code=502, detail="Unable to connect to the Episodate API"
            )
        return {
            "message": "Episodate connection successful",
            "totalShows": report.total,
            "currentPage": report.page,
            "totalPages": report.pages,
            "showsInPage": report.shows_in_page,
        }

    @fastapi_app.post("/sync/run")
    async def run_sync() -> dict[str, Any]:
        service = get_sync_service(fastapi_app)
        logger.info("Manual catalog synchronization requested")
        outcome = await service.run_cycle(
            max_pages=MANUAL_SYNC_PAGES, limit=MANUAL_SYNC_LIMIT
        )
        if outcome.processed == 0 and outcome.failed == 0:
            raise HTTPException(
                status_code=400, detail="No shows retrieved from the Episodate API"
            )
        return {"message": "Manual synchronization completed", **outcome.as_dict()}


app = create_app()
