"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient, ASGITransport

from burn_tracker.main import app
from burn_tracker.models import create_engine_for_url, create_session_maker, init_db
from burn_tracker.services.blockscout import (
    BlockscoutFeedClient,
    DEAD_ADDRESS,
    UNI_TOKEN_ADDRESS,
)
from burn_tracker.services.config import TrackerSettings
from burn_tracker.services.context import TrackerContext
from burn_tracker.services.price_oracle import PriceOracleClient
from burn_tracker.services.retry import RetryPolicy
from burn_tracker.services.sync import BurnSyncService


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

START_DATE = "2025-12-29"
OTHER_TOKEN = "0x6B175474E89094C44Da98b954EedeAC495271d0F"


def make_transfer_item(
    tx_hash: str,
    block_number: int,
    timestamp: str,
    amount: float,
    token_address: str = UNI_TOKEN_ADDRESS,
    decimals: int = 18,
    from_address: str = "0xabc0000000000000000000000000000000000001",
) -> dict:
    """Create a Blockscout token-transfer item."""
    raw_value = str(int(Decimal(str(amount)) * (Decimal(10) ** decimals)))
    return {
        "block_number": block_number,
        "timestamp": timestamp,
        "transaction_hash": tx_hash,
        "from": {"hash": from_address},
        "to": {"hash": DEAD_ADDRESS},
        "token": {"address": token_address, "symbol": "UNI", "decimals": str(decimals)},
        "total": {"value": raw_value, "decimals": str(decimals)},
    }


def scenario_pages() -> List[List[dict]]:
    """Two burns (10 + 5) on 2025-12-29 and one (3) on 2025-12-30, newest first."""
    return [
        [
            make_transfer_item("0xccc", 103, "2025-12-30T09:00:00.000000Z", 3),
            make_transfer_item("0xdai", 102, "2025-12-29T20:00:00.000000Z", 99,
                               token_address=OTHER_TOKEN),
            make_transfer_item("0xbbb", 102, "2025-12-29T18:00:00.000000Z", 5),
        ],
        [
            make_transfer_item("0xaaa", 101, "2025-12-29T08:00:00.000000Z", 10),
            make_transfer_item("0xold", 50, "2025-12-28T23:59:59.000000Z", 1),
        ],
    ]


class FakeBlockscoutApi:
    """Stand-in for ``BlockscoutFeedClient._request_json``.

    Serves ``pages`` through ``next_page_params`` cursors whose ``index``
    is the page number. ``failures`` maps a page number to exceptions
    raised (in order) before that page is served.
    """

    def __init__(
        self,
        pages: Optional[List[List[dict]]] = None,
        exchange_rate: Optional[str] = "4.0",
        balance: Optional[str] = None,
        failures: Optional[Dict[int, List[Exception]]] = None,
        balance_payload=None,
    ):
        self.pages = pages if pages is not None else scenario_pages()
        self.exchange_rate = exchange_rate
        self.balance = balance
        self.failures = failures or {}
        self.balance_payload = balance_payload
        self.calls = []

    def transfer_calls(self):
        return [c for c in self.calls if c[0].endswith("/token-transfers")]

    async def __call__(self, path, params=None):
        self.calls.append((path, dict(params or {})))

        if path.endswith("/token-transfers"):
            page = int((params or {}).get("index", 0))
            pending = self.failures.get(page)
            if pending:
                raise pending.pop(0)
            items = self.pages[page] if page < len(self.pages) else []
            next_page = None
            if page + 1 < len(self.pages):
                next_page = {"block_number": 1000 - page, "index": page + 1, "items_count": 50}
            return {"items": items, "next_page_params": next_page}

        if path.startswith("/tokens/"):
            return {"address": UNI_TOKEN_ADDRESS, "exchange_rate": self.exchange_rate}

        if path.endswith("/token-balances"):
            if self.balance_payload is not None:
                return self.balance_payload
            if self.balance is None:
                return []
            return [{
                "token": {"address": UNI_TOKEN_ADDRESS.lower(), "decimals": "18"},
                "value": self.balance,
            }]

        raise AssertionError(f"Unexpected path {path}")


def coingecko_history(price: Optional[float]) -> dict:
    if price is None:
        return {"id": "uniswap"}
    return {"id": "uniswap", "market_data": {"current_price": {"usd": price}}}


@pytest.fixture
def fast_retry():
    """Retry policy without real delays."""
    return RetryPolicy(max_attempts=3, base_delay=0, multiplier=2)


@pytest.fixture
def blockscout_api():
    return FakeBlockscoutApi()


@pytest.fixture
def coingecko_api():
    """Stand-in for ``PriceOracleClient._request_json``; every history lookup returns 4.0."""
    return AsyncMock(return_value=coingecko_history(4.0))


@pytest.fixture
def feed(fast_retry, blockscout_api):
    client = BlockscoutFeedClient(retry_policy=fast_retry, page_delay_seconds=0)
    client._request_json = blockscout_api
    return client


@pytest.fixture
def oracle(fast_retry, feed, coingecko_api):
    client = PriceOracleClient(
        exchange_rate_source=feed,
        retry_policy=fast_retry,
        historical_delay_seconds=0,
    )
    client._request_json = coingecko_api
    return client


@pytest.fixture(scope="function")
async def test_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_engine_for_url(TEST_DATABASE_URL)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(test_engine):
    return create_session_maker(test_engine)


@pytest.fixture(scope="function")
async def test_db(session_maker):
    """A session on the test database."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2026, 1, 5, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sync_service(session_maker, feed, oracle, fixed_clock):
    return BurnSyncService(
        session_maker=session_maker,
        feed=feed,
        oracle=oracle,
        start_date=START_DATE,
        clock=fixed_clock,
    )


@pytest.fixture(scope="function")
async def tracker_context(test_engine, feed, oracle):
    """Opened tracker context wired to the test database and fake upstreams."""
    settings = TrackerSettings(start_date=START_DATE, auto_sync_enabled=False)
    context = TrackerContext(settings, engine=test_engine, feed=feed, oracle=oracle)
    await context.open()
    yield context
    await context.close()


@pytest.fixture(scope="function")
async def client(tracker_context):
    """Create test client bound to the test tracker context."""
    app.state.context = tracker_context

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
