# Database Models

from .database import (
    Base,
    DEFAULT_DATABASE_URL,
    create_engine_for_url,
    create_session_maker,
    get_session,
    init_db,
)
from .burn_transaction import BurnTransaction
from .daily_burn import DailyBurn

__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "create_engine_for_url",
    "create_session_maker",
    "get_session",
    "init_db",
    "BurnTransaction",
    "DailyBurn",
]
