# Business Logic Services

from .errors import (
    UpstreamError,
    TransientUpstreamError,
    RateLimitedError,
    PermanentUpstreamError,
    MalformedPayloadError,
)
from .retry import RetryPolicy
from .blockscout import (
    BlockscoutFeedClient,
    BurnTransfer,
    FeedIncompleteError,
    scale_amount,
)
from .price_oracle import PriceOracleClient
from .burn_store import TransactionStore, DailyRollupStore
from .sync import BurnSyncService, SyncResult, SyncState
from .scheduler import SyncScheduler
from .burn_report import BurnReportService, BurnSummary, DailySeriesPoint
from .config import (
    ConfigService,
    config_service,
    ConfigValidationException,
    ConfigValidationError,
    TrackerSettings,
)
from .logging_service import (
    SyncLoggingService,
    SyncLogEntry,
    configure_logging,
)
from .context import TrackerContext, get_context

__all__ = [
    # Errors
    "UpstreamError",
    "TransientUpstreamError",
    "RateLimitedError",
    "PermanentUpstreamError",
    "MalformedPayloadError",
    # Retry
    "RetryPolicy",
    # Feed
    "BlockscoutFeedClient",
    "BurnTransfer",
    "FeedIncompleteError",
    "scale_amount",
    # Prices
    "PriceOracleClient",
    # Stores
    "TransactionStore",
    "DailyRollupStore",
    # Sync
    "BurnSyncService",
    "SyncResult",
    "SyncState",
    "SyncScheduler",
    # Reporting
    "BurnReportService",
    "BurnSummary",
    "DailySeriesPoint",
    # Config
    "ConfigService",
    "config_service",
    "ConfigValidationException",
    "ConfigValidationError",
    "TrackerSettings",
    # Logging
    "SyncLoggingService",
    "SyncLogEntry",
    "configure_logging",
    # Context
    "TrackerContext",
    "get_context",
]
