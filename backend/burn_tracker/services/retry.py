"""Retry policy for upstream API calls.

One policy object is shared by every network-calling client so the backoff
schedule can be configured and tested without any network code.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from .errors import TransientUpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff policy.

    Attempt ``n`` (1-based) that fails with a retryable error waits
    ``base_delay * multiplier ** (n - 1)`` seconds, capped at ``max_delay``,
    before attempt ``n + 1``. After ``max_attempts`` the last error is
    re-raised.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: Optional[float] = None
    retry_on: Tuple[Type[BaseException], ...] = (TransientUpstreamError,)
    # Subclasses of retry_on that should still fail on the first occurrence
    give_up_on: Tuple[Type[BaseException], ...] = field(default_factory=tuple)

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given failed attempt (1-based)."""
        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def is_retryable(self, error: BaseException) -> bool:
        if self.give_up_on and isinstance(error, self.give_up_on):
            return False
        return isinstance(error, self.retry_on)

    async def run(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Execute ``func`` with retry logic.

        Raises:
            The last exception if all attempts fail, or the first
            non-retryable exception immediately.
        """
        attempts = max(1, self.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if not self.is_retryable(e) or attempt >= attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{type(e).__name__}: {e} - retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{attempts})"
                )
                await asyncio.sleep(delay)
