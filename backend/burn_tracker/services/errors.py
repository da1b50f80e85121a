"""Upstream error taxonomy.

- TransientUpstreamError: network failures, timeouts, 5xx. Retried.
- RateLimitedError: HTTP 429. Retried with backoff unless a client opts out.
- PermanentUpstreamError: other 4xx. Never retried.
- MalformedPayloadError: undecodable or structurally wrong payloads.
"""

from typing import Optional


class UpstreamError(Exception):
    """Base class for failures talking to an upstream API."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class TransientUpstreamError(UpstreamError):
    """A failure that may succeed on retry."""


class RateLimitedError(TransientUpstreamError):
    """Upstream answered 429 Too Many Requests."""


class PermanentUpstreamError(UpstreamError):
    """A failure that will not go away by retrying."""


class MalformedPayloadError(PermanentUpstreamError):
    """Upstream returned something we cannot interpret."""
