"""UNI price oracle.

Current price comes from the Blockscout token ``exchange_rate`` with CoinGecko
as a second source; historical daily prices come from CoinGecko. No method
here raises: an unavailable price is ``None`` and callers carry on without
USD enrichment.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Dict, Optional

from .api_client import BaseApiClient
from .errors import RateLimitedError, UpstreamError
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

COINGECKO_API_URL = "https://api.coingecko.com/api/v3"
UNI_COIN_ID = "uniswap"


def to_coingecko_date(date: str) -> str:
    """YYYY-MM-DD -> dd-mm-yyyy."""
    year, month, day = date.split("-")
    return f"{day}-{month}-{year}"


class PriceOracleClient(BaseApiClient):
    """CoinGecko-backed price lookups with an in-process historical cache.

    The cache lives as long as the client and only holds successful
    lookups; a past day's price never changes once published.
    """

    name = "coingecko"

    def __init__(
        self,
        base_url: str = COINGECKO_API_URL,
        coin_id: str = UNI_COIN_ID,
        exchange_rate_source=None,
        retry_policy: Optional[RetryPolicy] = None,
        historical_delay_seconds: float = 1.0,
        timeout_seconds: float = 30.0,
        session=None,
    ):
        # CoinGecko's free tier 429s for a long while; fall back instead of waiting it out
        policy = replace(retry_policy or RetryPolicy(), give_up_on=(RateLimitedError,))
        super().__init__(base_url, policy, timeout_seconds, session)
        self.coin_id = coin_id
        self.exchange_rate_source = exchange_rate_source
        self.historical_delay_seconds = historical_delay_seconds
        self._cache: Dict[str, float] = {}

    async def get_current_price(self) -> Optional[float]:
        """Current USD price, or None when no source has one."""
        if self.exchange_rate_source is not None:
            try:
                price = await self.exchange_rate_source.get_exchange_rate()
            except Exception as e:
                logger.warning(f"Exchange rate source failed: {e}")
                price = None
            if price is not None:
                return price

        try:
            data = await self.get_json(
                "/simple/price", {"ids": self.coin_id, "vs_currencies": "usd"}
            )
        except UpstreamError as e:
            logger.error(f"Error fetching current {self.coin_id} price: {e}")
            return None

        try:
            price = data[self.coin_id]["usd"]
        except (KeyError, TypeError):
            return None
        return float(price) if price is not None else None

    async def get_historical_price(self, date: str) -> Optional[float]:
        """USD price for a YYYY-MM-DD date, uncached."""
        params = {"date": to_coingecko_date(date), "localization": "false"}
        try:
            data = await self.get_json(f"/coins/{self.coin_id}/history", params)
        except RateLimitedError:
            logger.warning(f"CoinGecko rate limit hit fetching price for {date}")
            return None
        except UpstreamError as e:
            logger.error(f"Error fetching historical price for {date}: {e}")
            return None

        try:
            price = data["market_data"]["current_price"]["usd"]
        except (KeyError, TypeError):
            logger.info(f"No historical price published for {date}")
            return None
        return float(price) if price is not None else None

    async def get_historical_price_cached(
        self,
        date: str,
        fallback_price: Optional[float] = None,
    ) -> Optional[float]:
        """Historical price with caching and a fallback.

        Waits ``historical_delay_seconds`` before every uncached lookup.
        Returns ``fallback_price`` when the lookup yields nothing; the
        fallback is not cached.
        """
        if date in self._cache:
            return self._cache[date]

        await asyncio.sleep(self.historical_delay_seconds)

        price = await self.get_historical_price(date)
        if price is not None:
            self._cache[date] = price
            return price

        return fallback_price

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cached_dates(self):
        return sorted(self._cache)
