"""Periodic listing refresh for a dashboard view."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple

from config import settings_conf

logger = logging.getLogger(__name__)

class ListingRefresher:
    """Re-fetches listings on a fixed interval while a view is open.

    Each successful fetch replaces the held listings wholesale. A failed fetch
    is logged and the previous listings stay in place until the next tick.
    The task runs between start() and stop(), or for the body of an
    `async with` block.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Sequence[Any]]],
        interval: Optional[float] = None
    ):
        self.fetch = fetch
        self.interval = interval or settings_conf['refresh_interval']
        self.listings: Tuple[Any, ...] = ()
        self.refreshed_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> bool:
        """Fetch once. Returns whether the held listings were replaced."""
        try:
            listings = await self.fetch()
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Listing refresh failed, keeping previous listings: {e}")
            return False

        self.listings = tuple(listings)
        self.refreshed_at = datetime.now(timezone.utc)
        self.last_error = None
        return True

    async def _run(self) -> None:
        while not self._stop.is_set():
            await self.refresh()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Refreshing listings every {self.interval} seconds")

    async def stop(self) -> None:
        """Stop the task and wait for it to finish."""
        self._stop.set()
        if self._task:
            await self._task
            self._task = None

    async def __aenter__(self) -> 'ListingRefresher':
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
