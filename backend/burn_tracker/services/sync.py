"""Burn sync orchestrator.

One run moves through:

    FETCHING_NEW -> PRICING_NEW -> PERSISTING_NEW -> RECOMPUTING_ROLLUPS -> DONE
                                                         (any failure) -> FAILED

Rollups are rebuilt from the *entire* transaction history on every run rather
than patched incrementally. That costs O(total transactions) per sync and in
exchange any earlier inconsistency heals on the next successful run.

Both writes are idempotent (ON CONFLICT on tx_hash, upsert on date), so a run
that fails part-way can simply be retried.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models import DailyBurn
from .blockscout import BlockscoutFeedClient, FeedIncompleteError, format_timestamp
from .burn_store import DailyRollupStore, TransactionStore
from .logging_service import SyncLogEntry, SyncLoggingService
from .price_oracle import PriceOracleClient

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """Orchestrator state."""
    IDLE = "idle"
    FETCHING_NEW = "fetching_new"
    PRICING_NEW = "pricing_new"
    PERSISTING_NEW = "persisting_new"
    RECOMPUTING_ROLLUPS = "recomputing_rollups"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Outcome of one sync run."""
    success: bool
    new_transaction_count: int
    total_burned: float
    current_price: Optional[float]
    last_updated: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "newTransactionCount": self.new_transaction_count,
            "totalBurned": self.total_burned,
            "currentPrice": self.current_price,
            "lastUpdated": self.last_updated,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def group_by_date(transactions: Iterable) -> "OrderedDict[str, List]":
    """Group transactions by UTC date, dates ascending."""
    grouped: Dict[str, List] = {}
    for tx in transactions:
        grouped.setdefault(tx.date, []).append(tx)
    return OrderedDict(sorted(grouped.items()))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BurnSyncService:
    """Pulls new burns, prices and stores them, then rebuilds daily rollups.

    Concurrent ``sync()`` calls share a single in-flight run.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker,
        feed: BlockscoutFeedClient,
        oracle: PriceOracleClient,
        start_date: str,
        log_service: Optional[SyncLoggingService] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session_maker = session_maker
        self.feed = feed
        self.oracle = oracle
        self.start_date = start_date
        self.log_service = log_service
        self.clock = clock

        self.state = SyncState.IDLE
        self.last_result: Optional[SyncResult] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def sync(self) -> SyncResult:
        """Run a sync, or join the one already in progress."""
        if not self.is_running:
            self._inflight = asyncio.ensure_future(self._run())
        return await asyncio.shield(self._inflight)

    def _enter(self, state: SyncState) -> None:
        logger.debug(f"Sync state: {self.state.value} -> {state.value}")
        self.state = state

    async def _run(self) -> SyncResult:
        now = self.clock()
        now_iso = format_timestamp(now)
        today = now.strftime("%Y-%m-%d")

        try:
            async with self.session_maker() as session:
                transactions = TransactionStore(session)
                rollups = DailyRollupStore(session)

                self._enter(SyncState.FETCHING_NEW)
                latest = await transactions.latest_by_block()
                resume_after = latest.block_number if latest else None
                try:
                    new_transfers = await self.feed.fetch_transfers_since(
                        self.start_date, resume_after
                    )
                except FeedIncompleteError as e:
                    # Pages arrive newest first; storing a partial scan would move the
                    # resume block past the transfers that were never fetched.
                    logger.warning(
                        f"Discarding {len(e.transactions)} transfers from incomplete fetch"
                    )
                    raise

                self._enter(SyncState.PRICING_NEW)
                current_price = await self.oracle.get_current_price()
                if current_price is not None:
                    for transfer in new_transfers:
                        transfer.apply_price(current_price)
                elif new_transfers:
                    logger.warning(
                        f"No current price; storing {len(new_transfers)} transfers unpriced"
                    )

                self._enter(SyncState.PERSISTING_NEW)
                if new_transfers:
                    await transactions.insert_batch(new_transfers)
                    await session.commit()

                self._enter(SyncState.RECOMPUTING_ROLLUPS)
                all_transactions = await transactions.list_all()
                total_burned = await self._recompute_rollups(
                    rollups, all_transactions, current_price, today, now_iso
                )
                await session.commit()

            if not all_transactions:
                await self._log_tracked_balance()

            self._enter(SyncState.DONE)
            result = SyncResult(
                success=True,
                new_transaction_count=len(new_transfers),
                total_burned=total_burned,
                current_price=current_price,
                last_updated=now_iso,
            )
            logger.info(
                f"Sync complete: {result.new_transaction_count} new, "
                f"total burned {result.total_burned:.4f}, price {result.current_price}"
            )

        except Exception as e:
            self._enter(SyncState.FAILED)
            logger.error(f"Sync failed: {e}", exc_info=True)
            result = SyncResult(
                success=False,
                new_transaction_count=0,
                total_burned=0.0,
                current_price=None,
                last_updated=now_iso,
                error=str(e) or type(e).__name__,
            )

        self.last_result = result
        self._record(result)
        return result

    async def _recompute_rollups(
        self,
        rollups: DailyRollupStore,
        transactions,
        current_price: Optional[float],
        today: str,
        updated_at: str,
    ) -> float:
        """Rebuild every DailyBurn row. Returns the cumulative burn total."""
        cumulative_uni = 0.0
        cumulative_usd = 0.0

        for date, day_transactions in group_by_date(transactions).items():
            daily_uni = sum(tx.uni_amount for tx in day_transactions)
            cumulative_uni += daily_uni

            price = current_price
            if date != today:
                historical = await self.oracle.get_historical_price_cached(date, current_price)
                if historical is not None:
                    price = historical

            daily_usd = daily_uni * price if price is not None else None
            cumulative_usd += daily_usd or 0.0

            await rollups.upsert(DailyBurn(
                date=date,
                cumulative_uni=cumulative_uni,
                daily_uni=daily_uni,
                uni_price_usd=price,
                daily_usd_value=daily_usd,
                cumulative_usd_value=cumulative_usd,
                updated_at=updated_at,
            ))

        return cumulative_uni

    async def _log_tracked_balance(self) -> None:
        """Diagnostic only: nothing stored yet, see what the address holds."""
        try:
            balance = await self.feed.get_tracked_balance()
        except Exception as e:
            logger.warning(f"Tracked balance check failed: {e}")
            return
        if balance:
            logger.info(
                f"No burns stored yet but the tracked address holds {balance:.4f} tokens"
            )

    def _record(self, result: SyncResult) -> None:
        if self.log_service is None:
            return
        self.log_service.log_run(SyncLogEntry(
            timestamp=result.last_updated,
            success=result.success,
            new_transactions=result.new_transaction_count,
            total_burned=result.total_burned,
            current_price=result.current_price,
            error=result.error,
        ))
        if result.success:
            self.log_service.log_activity(
                f"Synced {result.new_transaction_count} new burns, total {result.total_burned:.4f}"
            )
        else:
            self.log_service.log_activity(f"Sync failed: {result.error}", level="ERROR")
