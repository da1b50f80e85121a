"""Shared HTTP plumbing for upstream JSON APIs."""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from .errors import (
    MalformedPayloadError,
    PermanentUpstreamError,
    RateLimitedError,
    TransientUpstreamError,
)
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class BaseApiClient:
    """Base class for JSON-over-HTTP upstream clients.

    Holds one aiohttp session for the lifetime of the client; the owner
    must call ``close()``.
    """

    name = "upstream"

    def __init__(
        self,
        base_url: str,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_seconds: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Perform a single GET request and decode the JSON body.

        Raises:
            UpstreamError subclass describing the failure.
        """
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().get(url, params=params) as resp:
                if resp.status == 429:
                    raise RateLimitedError(f"{self.name} rate limited: {url}", status=429)
                if resp.status >= 500:
                    raise TransientUpstreamError(
                        f"{self.name} returned {resp.status} for {url}", status=resp.status
                    )
                if resp.status != 200:
                    raise PermanentUpstreamError(
                        f"{self.name} returned {resp.status} for {url}", status=resp.status
                    )
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise MalformedPayloadError(f"{self.name} returned invalid JSON for {url}: {e}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientUpstreamError(f"{self.name} request failed for {url}: {e!r}") from e

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a JSON document, applying the retry policy."""
        logger.debug(f"{self.name}: GET {path} {params or ''}")
        return await self.retry_policy.run(self._request_json, path, params)
