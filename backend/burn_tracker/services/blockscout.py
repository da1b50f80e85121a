"""Blockscout transfer feed client.

Pulls ERC-20 transfers into the dead address from the Blockscout v2 API and
turns the tracked token's transfers into ``BurnTransfer`` records.

Precondition: Blockscout returns transfers newest first (descending block
order), page after page. The early stop on an older timestamp or an already
ingested block relies on that ordering; out-of-order pages would truncate the
result.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .api_client import BaseApiClient
from .errors import MalformedPayloadError, UpstreamError
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

DEAD_ADDRESS = "0x000000000000000000000000000000000000dEaD"
UNI_TOKEN_ADDRESS = "0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984"
UNI_DECIMALS = 18
BLOCKSCOUT_BASE_URL = "https://eth.blockscout.com/api/v2"


@dataclass
class BurnTransfer:
    """A burn transfer as observed on the feed, before persistence."""
    tx_hash: str
    block_number: int
    timestamp: str  # ISO-8601 UTC, "YYYY-MM-DDTHH:MM:SS.ffffffZ"
    uni_amount: float
    from_address: str
    uni_price_usd: Optional[float] = None
    usd_value: Optional[float] = None

    @property
    def date(self) -> str:
        return self.timestamp[:10]

    def apply_price(self, price: float) -> None:
        """Stamp the transfer with a unit price and its USD value."""
        self.uni_price_usd = price
        self.usd_value = self.uni_amount * price

    def to_row(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "timestamp": self.timestamp,
            "uni_amount": self.uni_amount,
            "uni_price_usd": self.uni_price_usd,
            "usd_value": self.usd_value,
            "from_address": self.from_address,
        }


@dataclass
class PageCursor:
    """Blockscout ``next_page_params`` cursor."""
    block_number: int
    index: int
    items_count: int

    @classmethod
    def from_payload(cls, data: Optional[Dict[str, Any]]) -> Optional["PageCursor"]:
        if not data:
            return None
        try:
            return cls(
                block_number=int(data["block_number"]),
                index=int(data["index"]),
                items_count=int(data["items_count"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedPayloadError(f"Invalid next_page_params {data!r}: {e}")

    def to_params(self) -> Dict[str, str]:
        return {
            "block_number": str(self.block_number),
            "index": str(self.index),
            "items_count": str(self.items_count),
        }


class FeedIncompleteError(UpstreamError):
    """A page fetch failed after earlier pages were collected.

    ``transactions`` holds everything gathered before the failure.
    """

    def __init__(self, transactions: List[BurnTransfer], cause: Exception):
        self.transactions = transactions
        self.cause = cause
        super().__init__(
            f"Transfer feed aborted after {len(transactions)} transfers: {cause}",
            status=getattr(cause, "status", None),
        )


def scale_amount(raw_value: str, decimals: int) -> float:
    """Convert a raw integer token amount to a human amount.

    Integer division by an exact power of ten keeps large raw values
    correctly rounded.
    """
    return int(raw_value) / (10 ** decimals)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def start_of_day(date: str) -> datetime:
    """UTC midnight for a YYYY-MM-DD date."""
    return datetime.strptime(date, "%Y-%m-%d").replace(tzinfo=timezone.utc)


class BlockscoutFeedClient(BaseApiClient):
    """Client for the Blockscout v2 REST API."""

    name = "blockscout"

    def __init__(
        self,
        base_url: str = BLOCKSCOUT_BASE_URL,
        token_address: str = UNI_TOKEN_ADDRESS,
        tracked_address: str = DEAD_ADDRESS,
        token_decimals: int = UNI_DECIMALS,
        retry_policy: Optional[RetryPolicy] = None,
        page_delay_seconds: float = 0.2,
        timeout_seconds: float = 30.0,
        session=None,
    ):
        super().__init__(base_url, retry_policy, timeout_seconds, session)
        self.token_address = token_address
        self.tracked_address = tracked_address
        self.token_decimals = token_decimals
        self.page_delay_seconds = page_delay_seconds

    def _is_tracked_token(self, address: Optional[str]) -> bool:
        return bool(address) and address.lower() == self.token_address.lower()

    def _parse_transfer(self, item: Dict[str, Any]) -> BurnTransfer:
        try:
            total = item["total"]
            decimals = total.get("decimals") or item["token"].get("decimals") or self.token_decimals
            return BurnTransfer(
                tx_hash=item["transaction_hash"],
                block_number=int(item["block_number"]),
                timestamp=format_timestamp(parse_timestamp(item["timestamp"])),
                uni_amount=scale_amount(total["value"], int(decimals)),
                from_address=item["from"]["hash"],
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedPayloadError(
                f"Malformed transfer item {item.get('transaction_hash', '?')}: {e!r}"
            )

    async def fetch_transfers_since(
        self,
        start_date: str,
        resume_after_block: Optional[int] = None,
    ) -> List[BurnTransfer]:
        """Fetch tracked-token transfers into the tracked address.

        Args:
            start_date: YYYY-MM-DD; transfers before UTC midnight of this date
                end the scan.
            resume_after_block: When given, transfers at or below this block
                are already stored and end the scan.

        Returns:
            Transfers newest first.

        Raises:
            FeedIncompleteError: a page failed after retries; carries the
                transfers collected so far.
        """
        start = start_of_day(start_date)
        path = f"/addresses/{self.tracked_address}/token-transfers"
        transfers: List[BurnTransfer] = []
        cursor: Optional[PageCursor] = None
        pages = 0

        while True:
            params = {"type": "ERC-20", "filter": "to"}
            if cursor:
                params.update(cursor.to_params())

            try:
                payload = await self.get_json(path, params)
                items = payload.get("items") if isinstance(payload, dict) else None
                if not isinstance(items, list):
                    raise MalformedPayloadError("Transfer page has no 'items' list")
                next_cursor = PageCursor.from_payload(payload.get("next_page_params"))
            except UpstreamError as e:
                logger.error(f"Transfer feed failed on page {pages + 1}: {e}")
                raise FeedIncompleteError(transfers, e) from e

            pages += 1
            reached_end = False

            for item in items:
                token = item.get("token") or {}
                if not self._is_tracked_token(token.get("address")):
                    continue

                try:
                    transfer = self._parse_transfer(item)
                except MalformedPayloadError as e:
                    raise FeedIncompleteError(transfers, e) from e

                if parse_timestamp(transfer.timestamp) < start:
                    reached_end = True
                    break

                if resume_after_block is not None and transfer.block_number <= resume_after_block:
                    reached_end = True
                    break

                transfers.append(transfer)

            cursor = next_cursor
            if reached_end or cursor is None:
                break

            await asyncio.sleep(self.page_delay_seconds)

        logger.info(
            f"Fetched {len(transfers)} new transfers over {pages} page(s) "
            f"(start={start_date}, resume_after_block={resume_after_block})"
        )
        return transfers

    async def get_token_info(self) -> Optional[Dict[str, Any]]:
        """Get token metadata for the tracked token, or None on failure."""
        try:
            return await self.get_json(f"/tokens/{self.token_address}")
        except UpstreamError as e:
            logger.error(f"Error fetching token info: {e}")
            return None

    async def get_exchange_rate(self) -> Optional[float]:
        """Current USD exchange rate from token metadata, if published."""
        info = await self.get_token_info()
        if not info or not isinstance(info, dict):
            return None
        rate = info.get("exchange_rate")
        if rate in (None, ""):
            return None
        try:
            return float(rate)
        except (TypeError, ValueError):
            logger.warning(f"Unparseable exchange_rate {rate!r}")
            return None

    async def get_tracked_balance(self) -> Optional[float]:
        """Tracked token balance held by the tracked address, or None."""
        path = f"/addresses/{self.tracked_address}/token-balances"
        try:
            balances = await self.get_json(path)
        except UpstreamError as e:
            logger.error(f"Error fetching tracked address balance: {e}")
            return None

        if not isinstance(balances, list):
            logger.warning(f"Unexpected token balance payload: {type(balances).__name__}")
            return None

        for entry in balances:
            if not isinstance(entry, dict):
                continue
            token = entry.get("token") or {}
            if not isinstance(token, dict):
                continue
            if self._is_tracked_token(token.get("address")):
                try:
                    decimals = int(token.get("decimals") or self.token_decimals)
                    return scale_amount(entry["value"], decimals)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Malformed token balance entry: {e!r}")
                    return None
        return None
