"""Read models served to the dashboard: daily series and summary."""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .blockscout import format_timestamp
from .burn_store import DailyRollupStore, TransactionStore

logger = logging.getLogger(__name__)


@dataclass
class DailySeriesPoint:
    """One point of the cumulative burn chart."""
    date: str
    display_date: str
    cumulative_uni: float
    daily_uni: float
    usd_value: Optional[float]  # cumulative USD, what the chart plots
    cumulative_usd_value: Optional[float]
    daily_usd_value: Optional[float]
    uni_price_usd: Optional[float]
    is_live: bool = False


@dataclass
class BurnSummary:
    """Headline numbers for the stat cards."""
    total_uni_burned: float
    current_usd_value: Optional[float]
    historical_usd_value: Optional[float]
    today_burns: float
    current_uni_price: Optional[float]
    last_updated: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def display_date(date: str) -> str:
    """YYYY-MM-DD -> "Dec 29"."""
    dt = datetime.strptime(date, "%Y-%m-%d")
    return f"{dt.strftime('%b')} {dt.day}"


class BurnReportService:
    """Builds dashboard read models from the stores."""

    def __init__(self, session: AsyncSession, start_date: str):
        self.session = session
        self.start_date = start_date
        self.transactions = TransactionStore(session)
        self.rollups = DailyRollupStore(session)

    async def get_daily_series(self, today: Optional[str] = None) -> List[DailySeriesPoint]:
        """Daily rollups from the start date, oldest first."""
        today = today or datetime.now(timezone.utc).strftime("%Y-%m-%d")
        rows = await self.rollups.list_from(self.start_date)

        points = []
        for index, row in enumerate(rows):
            points.append(DailySeriesPoint(
                date=row.date,
                display_date=display_date(row.date),
                cumulative_uni=row.cumulative_uni,
                daily_uni=row.daily_uni,
                usd_value=row.cumulative_usd_value,
                cumulative_usd_value=row.cumulative_usd_value,
                daily_usd_value=row.daily_usd_value,
                uni_price_usd=row.uni_price_usd,
                is_live=index == len(rows) - 1 and row.date == today,
            ))
        return points

    async def get_summary(
        self,
        current_price: Optional[float],
        today: Optional[str] = None,
    ) -> BurnSummary:
        """Summary stats; ``current_price`` is the live price or None."""
        now = datetime.now(timezone.utc)
        today = today or now.strftime("%Y-%m-%d")

        total_burned = await self.transactions.sum_amount_since(self.start_date)
        today_burns = await self.transactions.sum_amount_on_date(today)
        historical_usd = await self.transactions.sum_usd_value_since(self.start_date)
        latest = await self.rollups.latest()

        return BurnSummary(
            total_uni_burned=total_burned,
            current_usd_value=total_burned * current_price if current_price is not None else None,
            historical_usd_value=historical_usd or None,
            today_burns=today_burns,
            current_uni_price=current_price,
            last_updated=latest.updated_at if latest else format_timestamp(now),
        )
