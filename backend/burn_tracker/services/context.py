"""Process-wide tracker context.

Owns the database engine, the upstream clients (and with them the price
cache) and the sync service. Opened once at startup, closed at shutdown,
and handed to whatever needs it instead of living in module globals.
"""

import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from ..models import create_engine_for_url, create_session_maker, init_db
from .blockscout import BlockscoutFeedClient
from .config import TrackerSettings
from .logging_service import SyncLoggingService
from .price_oracle import PriceOracleClient
from .scheduler import SyncScheduler
from .sync import BurnSyncService

logger = logging.getLogger(__name__)


class TrackerContext:
    """Explicit lifecycle holder for store, clients and sync service."""

    def __init__(
        self,
        settings: Optional[TrackerSettings] = None,
        engine: Optional[AsyncEngine] = None,
        feed: Optional[BlockscoutFeedClient] = None,
        oracle: Optional[PriceOracleClient] = None,
        log_service: Optional[SyncLoggingService] = None,
    ):
        self.settings = settings or TrackerSettings()
        self.engine = engine
        self.feed = feed
        self.oracle = oracle
        self.log_service = log_service
        self.session_maker = None
        self.sync_service: Optional[BurnSyncService] = None
        self.scheduler: Optional[SyncScheduler] = None
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    async def open(self) -> "TrackerContext":
        """Create the engine and tables, build clients and the sync service."""
        if self._opened:
            return self

        settings = self.settings
        if self.engine is None:
            self.engine = create_engine_for_url(settings.database_url)
        await init_db(self.engine)
        self.session_maker = create_session_maker(self.engine)

        retry_policy = settings.retry_policy()
        if self.feed is None:
            self.feed = BlockscoutFeedClient(
                base_url=settings.blockscout_url,
                token_address=settings.token_address,
                tracked_address=settings.dead_address,
                token_decimals=settings.token_decimals,
                retry_policy=retry_policy,
                page_delay_seconds=settings.page_delay_seconds,
                timeout_seconds=settings.blockscout_timeout_seconds,
            )
        if self.oracle is None:
            self.oracle = PriceOracleClient(
                base_url=settings.coingecko_url,
                coin_id=settings.coin_id,
                exchange_rate_source=self.feed,
                retry_policy=retry_policy,
                historical_delay_seconds=settings.historical_delay_seconds,
                timeout_seconds=settings.coingecko_timeout_seconds,
            )
        if self.log_service is None and settings.log_dir:
            self.log_service = SyncLoggingService(settings.log_dir)

        self.sync_service = BurnSyncService(
            session_maker=self.session_maker,
            feed=self.feed,
            oracle=self.oracle,
            start_date=settings.start_date,
            log_service=self.log_service,
        )
        self._opened = True
        logger.info(f"Tracker context opened ({self.engine.url.render_as_string()})")
        return self

    async def start_scheduler(self) -> None:
        if not self.settings.auto_sync_enabled or self.sync_service is None:
            return
        self.scheduler = SyncScheduler(
            self.sync_service,
            interval_seconds=self.settings.sync_interval_seconds,
            run_immediately=self.settings.sync_on_startup,
        )
        await self.scheduler.start()

    async def close(self) -> None:
        """Stop background work, close HTTP sessions and dispose the engine."""
        if self.scheduler is not None:
            await self.scheduler.stop()
            self.scheduler = None
        if self.feed is not None:
            await self.feed.close()
        if self.oracle is not None:
            await self.oracle.close()
        if self.engine is not None:
            await self.engine.dispose()
        self._opened = False
        logger.info("Tracker context closed")


def get_context(request: Request) -> TrackerContext:
    """Dependency returning the application's tracker context."""
    return request.app.state.context
