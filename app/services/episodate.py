"""Utilities for communicating with the Episodate API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..models import ExternalShowDetail, ExternalShowSummary, ShowPage
from ..utils import interruptible_sleep

logger = logging.getLogger(__name__)

PAGE_DELAY_SECONDS = 1.0


@dataclass(slots=True)
class ConnectionReport:
    """Summary of the provider's first ranking page."""

    total: int
    page: int
    pages: int
    shows_in_page: int


class EpisodateClient:
    """Thin wrapper around the Episodate HTTP API.

    Every public fetch returns ``None`` (or an empty list) instead of raising
    when the provider is unreachable, answers with an error status, or sends
    a payload that does not match the expected schema.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        page_delay_seconds: float = PAGE_DELAY_SECONDS,
    ):
        self._settings = settings
        self._client = http_client
        self._page_delay_seconds = page_delay_seconds

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": f"{self._settings.app_name}/1.0",
            "Accept": "application/json",
            "Accept-Language": "en-US,en;q=0.9",
            "Cache-Control": "no-cache",
        }

    async def fetch_page(self, page: int = 1) -> ShowPage | None:
        """Fetch one page of the most popular shows."""

        payload = await self._get_json(
            "/most-popular", params={"page": page}, context=f"page {page}"
        )
        if payload is None:
            return None
        try:
            result = ShowPage.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Malformed Episodate payload for page %s: %s", page, exc)
            return None
        logger.info(
            "Fetched Episodate page %s/%s with %s shows",
            page,
            result.pages,
            len(result.tv_shows),
        )
        return result

    async def fetch_detail(self, show_id: int) -> ExternalShowDetail | None:
        """Fetch the full record for a single show."""

        payload = await self._get_json(
            "/show-details", params={"q": show_id}, context=f"show {show_id}"
        )
        if payload is None:
            return None
        # Unknown ids come back as ``{"tvShow": []}``.
        record = payload.get("tvShow")
        if not isinstance(record, dict) or not record:
            logger.warning("Episodate returned no details for show %s", show_id)
            return None
        try:
            return ExternalShowDetail.model_validate(record)
        except ValidationError as exc:
            logger.warning("Malformed Episodate details for show %s: %s", show_id, exc)
            return None

    async def fetch_popular_shows(
        self,
        max_pages: int = 5,
        *,
        stop_event: asyncio.Event | None = None,
    ) -> list[ExternalShowSummary]:
        """Collect ranking pages until ``max_pages``, the last page or an empty page."""

        collected: list[ExternalShowSummary] = []
        pages_fetched = 0
        page_number = 1
        while page_number <= max_pages:
            result = await self.fetch_page(page_number)
            if result is None or not result.tv_shows:
                logger.warning("No shows found on Episodate page %s", page_number)
                break
            collected.extend(result.tv_shows)
            pages_fetched += 1
            if page_number >= result.pages:
                break
            if page_number == max_pages:
                break
            # Small delay to avoid overloading the provider between pages.
            if await self._pause(self._page_delay_seconds, stop_event):
                logger.info("Stop requested, ending page fetch after page %s", page_number)
                break
            page_number += 1

        logger.info(
            "Retrieved %s shows from %s Episodate page(s)", len(collected), pages_fetched
        )
        return collected

    async def check_connection(self) -> ConnectionReport | None:
        """Fetch the first ranking page and summarise it."""

        result = await self.fetch_page(1)
        if result is None:
            return None
        return ConnectionReport(
            total=result.total,
            page=result.page,
            pages=result.pages,
            shows_in_page=len(result.tv_shows),
        )

    async def _pause(self, seconds: float, stop_event: asyncio.Event | None) -> bool:
        return await interruptible_sleep(seconds, stop_event)

    async def _get_json(
        self, path: str, *, params: dict[str, Any], context: str
    ) -> dict[str, Any] | None:
        try:
            response = await self._client.get(
                path, params=params, headers=self._headers()
            )
        except httpx.TimeoutException as exc:
            logger.warning("Timed out fetching Episodate %s: %s", context, exc)
            return None
        except httpx.HTTPError as exc:
            logger.warning(
                "HTTP error fetching Episodate %s (%s): %s",
                context,
                exc.__class__.__name__,
                exc,
            )
            return None

        if response.status_code >= 400:
            logger.warning(
                "Episodate %s failed with status %s: %s",
                context,
                response.status_code,
                response.text[:200],
            )
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning(
                "Unexpected non-JSON Episodate response for %s (status %s)",
                context,
                response.status_code,
            )
            return None
        if not isinstance(data, dict):
            logger.warning(
                "Unexpected Episodate response structure for %s (status %s)",
                context,
                response.status_code,
            )
            return None
        return data
