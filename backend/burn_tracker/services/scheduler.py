"""Periodic background sync."""

import asyncio
import logging
from typing import Optional

from .sync import BurnSyncService

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Runs the sync service every ``interval_seconds`` in a background task."""

    def __init__(
        self,
        sync_service: BurnSyncService,
        interval_seconds: float = 300,
        run_immediately: bool = True,
    ):
        self.sync_service = sync_service
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background sync loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._sync_loop())
        logger.info(f"Sync scheduler started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Sync scheduler stopped")

    async def _sync_loop(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval_seconds)

        while self._running:
            try:
                result = await self.sync_service.sync()
                self.runs += 1
                if not result.success:
                    logger.warning(f"Scheduled sync failed: {result.error}")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Sync loop error: {e}")

            await asyncio.sleep(self.interval_seconds)
