"""Persistence for burn transactions and daily rollups.

Neither store commits: callers own the transaction boundary so a whole
batch (or a whole rollup recompute) lands in one commit or not at all.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import BurnTransaction, DailyBurn

logger = logging.getLogger(__name__)

# Keeps multi-row inserts under SQLite's bound-parameter limit
INSERT_CHUNK_SIZE = 500


def _next_date(date: str) -> str:
    return (datetime.strptime(date, "%Y-%m-%d") + timedelta(days=1)).strftime("%Y-%m-%d")


def _dialect_insert(session: AsyncSession):
    """Dialect-specific INSERT supporting ON CONFLICT."""
    if session.bind.dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


class TransactionStore:
    """Append-only, hash-deduplicated store of burn transactions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, tx) -> None:
        """Insert one transaction; an existing tx_hash is left untouched."""
        await self.insert_batch([tx])

    async def insert_batch(self, txs: Iterable) -> int:
        """Insert transactions, ignoring hashes already stored.

        Accepts ``BurnTransfer`` records or plain row dicts.

        Returns:
            Number of rows submitted.

        Note:
            Caller must commit the session.
        """
        rows = [tx if isinstance(tx, dict) else tx.to_row() for tx in txs]
        if not rows:
            return 0

        insert = _dialect_insert(self.session)
        for start in range(0, len(rows), INSERT_CHUNK_SIZE):
            chunk = rows[start:start + INSERT_CHUNK_SIZE]
            stmt = insert(BurnTransaction).values(chunk).on_conflict_do_nothing(
                index_elements=["tx_hash"]
            )
            await self.session.execute(stmt)

        logger.debug(f"Submitted {len(rows)} burn transactions for insert")
        return len(rows)

    async def list_all(self) -> Sequence[BurnTransaction]:
        """All transactions, newest first."""
        result = await self.session.execute(
            select(BurnTransaction).order_by(
                BurnTransaction.timestamp.desc(), BurnTransaction.tx_hash
            )
        )
        return result.scalars().all()

    async def latest_by_block(self) -> Optional[BurnTransaction]:
        result = await self.session.execute(
            select(BurnTransaction).order_by(BurnTransaction.block_number.desc()).limit(1)
        )
        return result.scalars().first()

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(BurnTransaction.tx_hash)))
        return result.scalar() or 0

    async def sum_amount_since(self, date: str) -> float:
        result = await self.session.execute(
            select(func.sum(BurnTransaction.uni_amount)).where(BurnTransaction.timestamp >= date)
        )
        return result.scalar() or 0.0

    async def sum_amount_on_date(self, date: str) -> float:
        result = await self.session.execute(
            select(func.sum(BurnTransaction.uni_amount)).where(
                BurnTransaction.timestamp >= date,
                BurnTransaction.timestamp < _next_date(date),
            )
        )
        return result.scalar() or 0.0

    async def sum_usd_value_since(self, date: str) -> float:
        """Sum of known USD values since a date; unpriced rows count as 0."""
        result = await self.session.execute(
            select(func.sum(BurnTransaction.usd_value)).where(
                BurnTransaction.usd_value.is_not(None),
                BurnTransaction.timestamp >= date,
            )
        )
        return result.scalar() or 0.0


class DailyRollupStore:
    """One DailyBurn row per UTC date, overwritten on every recompute."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(self, record: DailyBurn) -> None:
        """Insert or fully overwrite the row for ``record.date``.

        Note:
            Caller must commit the session.
        """
        values = record.to_dict()
        insert = _dialect_insert(self.session)
        stmt = insert(DailyBurn).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["date"],
            set_={key: stmt.excluded[key] for key in values if key != "date"},
        )
        await self.session.execute(stmt)

    async def list_from(self, date: str) -> List[DailyBurn]:
        result = await self.session.execute(
            select(DailyBurn)
            .where(DailyBurn.date >= date)
            .order_by(DailyBurn.date.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def latest(self) -> Optional[DailyBurn]:
        result = await self.session.execute(
            select(DailyBurn)
            .order_by(DailyBurn.date.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get(self, date: str) -> Optional[DailyBurn]:
        return await self.session.get(DailyBurn, date, populate_existing=True)
