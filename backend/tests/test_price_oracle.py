"""Tests for the price oracle."""

import pytest
from unittest.mock import AsyncMock, patch

from burn_tracker.services.errors import (
    PermanentUpstreamError,
    RateLimitedError,
    TransientUpstreamError,
)
from burn_tracker.services.price_oracle import PriceOracleClient, to_coingecko_date

from conftest import coingecko_history


class TestCurrentPrice:
    """Exchange rate first, CoinGecko second."""

    @pytest.mark.asyncio
    async def test_uses_exchange_rate_source(self, oracle, coingecko_api):
        assert await oracle.get_current_price() == 4.0
        coingecko_api.assert_not_called()

    @pytest.mark.asyncio
    async def test_falls_back_to_simple_price(self, oracle, blockscout_api, coingecko_api):
        blockscout_api.exchange_rate = None
        coingecko_api.return_value = {"uniswap": {"usd": 7.5}}

        assert await oracle.get_current_price() == 7.5
        coingecko_api.assert_awaited_once_with(
            "/simple/price", {"ids": "uniswap", "vs_currencies": "usd"}
        )

    @pytest.mark.asyncio
    async def test_none_when_every_source_fails(self, oracle, blockscout_api, coingecko_api):
        blockscout_api.exchange_rate = None
        coingecko_api.side_effect = PermanentUpstreamError("403", status=403)

        assert await oracle.get_current_price() is None

    @pytest.mark.asyncio
    async def test_without_exchange_rate_source(self, fast_retry):
        client = PriceOracleClient(retry_policy=fast_retry, historical_delay_seconds=0)
        client._request_json = AsyncMock(return_value={"uniswap": {"usd": 6.0}})

        assert await client.get_current_price() == 6.0

    @pytest.mark.asyncio
    async def test_missing_coin_in_payload(self, oracle, blockscout_api, coingecko_api):
        blockscout_api.exchange_rate = None
        coingecko_api.return_value = {}

        assert await oracle.get_current_price() is None


class TestHistoricalPrice:
    """Uncached CoinGecko history lookups."""

    def test_date_format(self):
        assert to_coingecko_date("2025-12-29") == "29-12-2025"

    @pytest.mark.asyncio
    async def test_requests_history_for_date(self, oracle, coingecko_api):
        coingecko_api.return_value = coingecko_history(5.25)

        assert await oracle.get_historical_price("2026-01-02") == 5.25
        coingecko_api.assert_awaited_once_with(
            "/coins/uniswap/history", {"date": "02-01-2026", "localization": "false"}
        )

    @pytest.mark.asyncio
    async def test_no_market_data(self, oracle, coingecko_api):
        coingecko_api.return_value = coingecko_history(None)
        assert await oracle.get_historical_price("2025-12-29") is None

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_retried(self, oracle, coingecko_api):
        coingecko_api.side_effect = RateLimitedError("429", status=429)

        assert await oracle.get_historical_price("2025-12-29") is None
        assert coingecko_api.await_count == 1

    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, oracle, coingecko_api):
        coingecko_api.side_effect = [
            TransientUpstreamError("502", status=502),
            coingecko_history(3.5),
        ]

        assert await oracle.get_historical_price("2025-12-29") == 3.5
        assert coingecko_api.await_count == 2


class TestHistoricalCache:
    """Cached lookups with a caller-supplied fallback."""

    @pytest.mark.asyncio
    async def test_second_lookup_hits_cache(self, oracle, coingecko_api):
        assert await oracle.get_historical_price_cached("2025-12-29") == 4.0
        assert await oracle.get_historical_price_cached("2025-12-29") == 4.0

        assert coingecko_api.await_count == 1
        assert oracle.cached_dates == ["2025-12-29"]

    @pytest.mark.asyncio
    async def test_fallback_returned_and_not_cached(self, oracle, coingecko_api):
        coingecko_api.side_effect = RateLimitedError("429", status=429)

        price = await oracle.get_historical_price_cached("2025-12-29", fallback_price=5.0)

        assert price == 5.0
        assert oracle.cached_dates == []

        coingecko_api.side_effect = None
        coingecko_api.return_value = coingecko_history(4.2)
        assert await oracle.get_historical_price_cached("2025-12-29", fallback_price=5.0) == 4.2

    @pytest.mark.asyncio
    async def test_no_fallback_gives_none(self, oracle, coingecko_api):
        coingecko_api.return_value = coingecko_history(None)
        assert await oracle.get_historical_price_cached("2025-12-29") is None

    @pytest.mark.asyncio
    async def test_delay_only_before_uncached_lookups(self, fast_retry, coingecko_api):
        client = PriceOracleClient(retry_policy=fast_retry, historical_delay_seconds=1.0)
        client._request_json = coingecko_api

        with patch("burn_tracker.services.price_oracle.asyncio.sleep",
                   new_callable=AsyncMock) as mock_sleep:
            await client.get_historical_price_cached("2025-12-29")
            await client.get_historical_price_cached("2025-12-29")
            await client.get_historical_price_cached("2025-12-30")

        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_clear_cache(self, oracle, coingecko_api):
        await oracle.get_historical_price_cached("2025-12-29")
        oracle.clear_cache()
        await oracle.get_historical_price_cached("2025-12-29")

        assert coingecko_api.await_count == 2


class TestRetryPolicyOverride:

    def test_oracle_gives_up_on_rate_limit(self, fast_retry):
        client = PriceOracleClient(retry_policy=fast_retry)

        assert client.retry_policy.give_up_on == (RateLimitedError,)
        assert client.retry_policy.max_attempts == fast_retry.max_attempts
        assert fast_retry.give_up_on == ()
