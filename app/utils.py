"""Utility helpers for the ShowSync service."""

from __future__ import annotations

import asyncio


async def interruptible_sleep(
    seconds: float, stop_event: asyncio.Event | None = None
) -> bool:
    """Sleep for ``seconds`` unless ``stop_event`` is set first.

    Returns ``True`` when the wait ended because a stop was requested.
    """

    if stop_event is None:
        if seconds > 0:
            await asyncio.sleep(seconds)
        return False
    if stop_event.is_set():
        return True
    if seconds <= 0:
        return False
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True
