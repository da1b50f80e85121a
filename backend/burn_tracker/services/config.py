"""Configuration management and validation service."""

import os
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass

import yaml

from ..models.database import DEFAULT_DATABASE_URL
from .blockscout import BLOCKSCOUT_BASE_URL, DEAD_ADDRESS, UNI_DECIMALS, UNI_TOKEN_ADDRESS
from .price_oracle import COINGECKO_API_URL, UNI_COIN_ID
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "BURN_TRACKER_CONFIG"
START_DATE = "2025-12-29"


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    path: str
    message: str


class ConfigValidationException(Exception):
    """Raised when config validation fails."""

    def __init__(self, errors: List[ConfigValidationError]):
        self.errors = errors
        messages = [f"{e.path}: {e.message}" for e in errors]
        super().__init__("Configuration validation failed:\n" + "\n".join(messages))


CONFIG_SCHEMA = {
    "database": {
        "type": "dict",
        "properties": {
            "url": {"type": "str"},
        }
    },
    "tracker": {
        "type": "dict",
        "properties": {
            "token_address": {"type": "str"},
            "dead_address": {"type": "str"},
            "start_date": {"type": "date"},
            "token_decimals": {"type": "int", "min": 0, "max": 36},
        }
    },
    "blockscout": {
        "type": "dict",
        "properties": {
            "base_url": {"type": "str"},
            "page_delay_seconds": {"type": "float", "min": 0},
            "timeout_seconds": {"type": "float", "min": 1},
        }
    },
    "coingecko": {
        "type": "dict",
        "properties": {
            "base_url": {"type": "str"},
            "coin_id": {"type": "str"},
            "historical_delay_seconds": {"type": "float", "min": 0},
            "timeout_seconds": {"type": "float", "min": 1},
        }
    },
    "retry": {
        "type": "dict",
        "properties": {
            "max_attempts": {"type": "int", "min": 1, "max": 10},
            "base_delay_seconds": {"type": "float", "min": 0},
            "multiplier": {"type": "float", "min": 1},
            "max_delay_seconds": {"type": "float", "min": 0},
        }
    },
    "sync": {
        "type": "dict",
        "properties": {
            "auto_sync_enabled": {"type": "bool"},
            "interval_seconds": {"type": "int", "min": 10},
            "sync_on_startup": {"type": "bool"},
        }
    },
    "logging": {
        "type": "dict",
        "properties": {
            "level": {"type": "str", "options": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
            "format": {"type": "str"},
            "log_dir": {"type": "str"},
        }
    },
}


class ConfigService:
    """Service for loading and validating configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config service.

        Args:
            config_path: Path to config file. Defaults to $BURN_TRACKER_CONFIG,
                then backend/config.yaml.
        """
        if config_path is None:
            config_path = os.environ.get(CONFIG_PATH_ENV)
        if config_path is None:
            backend_dir = Path(__file__).parent.parent.parent
            config_path = str(backend_dir / "config.yaml")

        self.config_path = config_path
        self._config: Dict[str, Any] = {}

    def load_and_validate(self) -> Dict[str, Any]:
        """Load and validate the configuration file.

        A missing file is not an error: every setting has a default.

        Raises:
            ConfigValidationException: If validation fails.
        """
        if not os.path.exists(self.config_path):
            logger.warning(f"Config file not found at {self.config_path}, using defaults")
            self._config = {}
            return self._config

        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationException([
                ConfigValidationError(path="", message=f"Invalid YAML syntax: {str(e)}")
            ])

        return self.load_dict(config)

    def load_dict(self, config: Any) -> Dict[str, Any]:
        """Validate an already-parsed configuration mapping and adopt it."""
        if config is None:
            config = {}

        if not isinstance(config, dict):
            raise ConfigValidationException([
                ConfigValidationError(
                    path="",
                    message=f"Config must be a dictionary, got {type(config).__name__}"
                )
            ])

        errors = self._validate_dict(config, CONFIG_SCHEMA, "")
        if errors:
            raise ConfigValidationException(errors)

        self._config = config
        logger.info(f"Configuration loaded and validated from {self.config_path}")
        return config

    def _validate_dict(
        self,
        data: Dict[str, Any],
        schema: Dict[str, Any],
        path: str
    ) -> List[ConfigValidationError]:
        errors = []

        for key in data:
            if key not in schema:
                errors.append(ConfigValidationError(
                    path=f"{path}.{key}" if path else key,
                    message=f"Unknown configuration key '{key}'"
                ))

        for key, prop_schema in schema.items():
            current_path = f"{path}.{key}" if path else key
            if key not in data:
                if prop_schema.get("required", False):
                    errors.append(ConfigValidationError(
                        path=current_path,
                        message="Required field missing"
                    ))
                continue
            errors.extend(self._validate_value(data[key], prop_schema, current_path))

        return errors

    def _validate_value(
        self,
        value: Any,
        schema: Dict[str, Any],
        path: str
    ) -> List[ConfigValidationError]:
        """Validate a single value against its schema entry."""
        errors = []
        expected_type = schema.get("type")

        type_map = {
            "str": str,
            "int": int,
            "float": (int, float),
            "bool": bool,
            "list": list,
            "dict": dict,
        }

        if expected_type == "dict":
            if not isinstance(value, dict):
                return [ConfigValidationError(
                    path=path,
                    message=f"Expected dict, got {type(value).__name__}"
                )]
            if "properties" in schema:
                errors.extend(self._validate_dict(value, schema["properties"], path))

        elif expected_type == "date":
            # YAML turns an unquoted 2025-12-29 into a date object
            text = value.isoformat() if hasattr(value, "isoformat") else value
            if not isinstance(text, str) or not _is_iso_date(text):
                errors.append(ConfigValidationError(
                    path=path,
                    message=f"Expected a YYYY-MM-DD date, got {value!r}"
                ))

        elif expected_type in type_map:
            expected = type_map[expected_type]
            # bool is an int subclass; a flag is never a valid number here
            if not isinstance(value, expected) or (
                expected_type in ("int", "float") and isinstance(value, bool)
            ):
                return [ConfigValidationError(
                    path=path,
                    message=f"Expected {expected_type}, got {type(value).__name__}"
                )]

            if expected_type in ("int", "float"):
                if "min" in schema and value < schema["min"]:
                    errors.append(ConfigValidationError(
                        path=path,
                        message=f"Value {value} is below minimum {schema['min']}"
                    ))
                if "max" in schema and value > schema["max"]:
                    errors.append(ConfigValidationError(
                        path=path,
                        message=f"Value {value} is above maximum {schema['max']}"
                    ))

            if "options" in schema and value not in schema["options"]:
                errors.append(ConfigValidationError(
                    path=path,
                    message=f"Value '{value}' not in allowed options: {schema['options']}"
                ))

        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: Dot-notation key (e.g., "sync.interval_seconds")
            default: Default value if not found
        """
        value = self._config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value


def _is_iso_date(text: str) -> bool:
    try:
        datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        return False
    return True


@dataclass
class TrackerSettings:
    """Resolved runtime settings for the burn tracker."""
    database_url: str = DEFAULT_DATABASE_URL
    token_address: str = UNI_TOKEN_ADDRESS
    dead_address: str = DEAD_ADDRESS
    start_date: str = START_DATE
    token_decimals: int = UNI_DECIMALS
    blockscout_url: str = BLOCKSCOUT_BASE_URL
    page_delay_seconds: float = 0.2
    blockscout_timeout_seconds: float = 30.0
    coingecko_url: str = COINGECKO_API_URL
    coin_id: str = UNI_COIN_ID
    historical_delay_seconds: float = 1.0
    coingecko_timeout_seconds: float = 30.0
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_multiplier: float = 2.0
    retry_max_delay_seconds: Optional[float] = None
    auto_sync_enabled: bool = True
    sync_interval_seconds: int = 300
    sync_on_startup: bool = True
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_dir: Optional[str] = None

    @classmethod
    def from_config(cls, config: ConfigService) -> "TrackerSettings":
        """Build settings from a loaded ConfigService, falling back to defaults."""
        defaults = cls()
        start_date = config.get("tracker.start_date", defaults.start_date)
        if hasattr(start_date, "isoformat"):
            start_date = start_date.isoformat()

        return cls(
            database_url=config.get("database.url", defaults.database_url),
            token_address=config.get("tracker.token_address", defaults.token_address),
            dead_address=config.get("tracker.dead_address", defaults.dead_address),
            start_date=start_date,
            token_decimals=config.get("tracker.token_decimals", defaults.token_decimals),
            blockscout_url=config.get("blockscout.base_url", defaults.blockscout_url),
            page_delay_seconds=config.get("blockscout.page_delay_seconds", defaults.page_delay_seconds),
            blockscout_timeout_seconds=config.get(
                "blockscout.timeout_seconds", defaults.blockscout_timeout_seconds
            ),
            coingecko_url=config.get("coingecko.base_url", defaults.coingecko_url),
            coin_id=config.get("coingecko.coin_id", defaults.coin_id),
            historical_delay_seconds=config.get(
                "coingecko.historical_delay_seconds", defaults.historical_delay_seconds
            ),
            coingecko_timeout_seconds=config.get(
                "coingecko.timeout_seconds", defaults.coingecko_timeout_seconds
            ),
            retry_max_attempts=config.get("retry.max_attempts", defaults.retry_max_attempts),
            retry_base_delay_seconds=config.get("retry.base_delay_seconds", defaults.retry_base_delay_seconds),
            retry_multiplier=config.get("retry.multiplier", defaults.retry_multiplier),
            retry_max_delay_seconds=config.get("retry.max_delay_seconds", defaults.retry_max_delay_seconds),
            auto_sync_enabled=config.get("sync.auto_sync_enabled", defaults.auto_sync_enabled),
            sync_interval_seconds=config.get("sync.interval_seconds", defaults.sync_interval_seconds),
            sync_on_startup=config.get("sync.sync_on_startup", defaults.sync_on_startup),
            log_level=config.get("logging.level", defaults.log_level),
            log_format=config.get("logging.format", defaults.log_format),
            log_dir=config.get("logging.log_dir", defaults.log_dir),
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_seconds,
            multiplier=self.retry_multiplier,
            max_delay=self.retry_max_delay_seconds,
        )


# Global config service instance
config_service = ConfigService()
