# bvengine/config.py
"""
Configuration management for the BV compensation engine.
Loads from .env, exposes static keys with sane defaults.
"""
import os
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Configuration error exception."""
    pass


class Config:
    """
    Configuration manager with static and dynamic values.

    Usage:
        # Load from .env
        Config.initialize_from_env()

        # Get value
        url = Config.get(Config.DATABASE_URL)

        # Override at runtime (tests, scripts)
        Config.set(Config.PLACEMENT_MAX_ATTEMPTS, 3)
    """

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION KEYS
    # ═══════════════════════════════════════════════════════════════════════

    # Database
    DATABASE_URL = "DATABASE_URL"
    SQLITE_BUSY_TIMEOUT = "SQLITE_BUSY_TIMEOUT"

    # Compensation
    DEFAULT_BASE_PERCENTAGE = "DEFAULT_BASE_PERCENTAGE"
    DEFAULT_DECAY_ENABLED = "DEFAULT_DECAY_ENABLED"
    CURRENCY_MINOR_UNIT = "CURRENCY_MINOR_UNIT"

    # Binary placement
    PLACEMENT_MAX_VISITS = "PLACEMENT_MAX_VISITS"
    PLACEMENT_MAX_ATTEMPTS = "PLACEMENT_MAX_ATTEMPTS"

    # Members
    REFERRAL_CODE_LENGTH = "REFERRAL_CODE_LENGTH"

    # System
    LOG_LEVEL = "LOG_LEVEL"

    # ═══════════════════════════════════════════════════════════════════════
    # CRITICAL KEYS (must be present)
    # ═══════════════════════════════════════════════════════════════════════

    CRITICAL_KEYS = [
        DATABASE_URL,
    ]

    # ═══════════════════════════════════════════════════════════════════════
    # STORAGE
    # ═══════════════════════════════════════════════════════════════════════

    _config: Dict[str, Any] = {}
    _initialized: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # METHODS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def initialize_from_env(cls) -> None:
        """
        Load configuration from .env file and process environment.

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        load_dotenv()

        logger.info("Loading configuration from environment...")

        try:
            # Database
            cls._config[cls.DATABASE_URL] = os.getenv(
                "DATABASE_URL",
                "sqlite:///bvengine.db"
            )
            cls._config[cls.SQLITE_BUSY_TIMEOUT] = float(
                os.getenv("SQLITE_BUSY_TIMEOUT", "30")
            )

            # Compensation
            cls._config[cls.DEFAULT_BASE_PERCENTAGE] = Decimal(
                os.getenv("DEFAULT_BASE_PERCENTAGE", "0.10")
            )
            cls._config[cls.DEFAULT_DECAY_ENABLED] = os.getenv(
                "DEFAULT_DECAY_ENABLED", "true"
            ).lower() == "true"
            cls._config[cls.CURRENCY_MINOR_UNIT] = Decimal(
                os.getenv("CURRENCY_MINOR_UNIT", "0.01")
            )

            # Binary placement
            cls._config[cls.PLACEMENT_MAX_VISITS] = int(
                os.getenv("PLACEMENT_MAX_VISITS", "200000")
            )
            cls._config[cls.PLACEMENT_MAX_ATTEMPTS] = int(
                os.getenv("PLACEMENT_MAX_ATTEMPTS", "5")
            )

            # Members
            cls._config[cls.REFERRAL_CODE_LENGTH] = int(
                os.getenv("REFERRAL_CODE_LENGTH", "8")
            )

            # System
            cls._config[cls.LOG_LEVEL] = os.getenv("LOG_LEVEL", "INFO").upper()

            cls._initialized = True
            logger.info("Configuration loaded from environment successfully")

        except (ValueError, InvalidOperation) as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}")

    @classmethod
    def validate_critical_keys(cls) -> None:
        """
        Validate that all critical configuration keys are present.

        Raises:
            ConfigurationError: If any critical key is missing
        """
        missing = []
        for key in cls.CRITICAL_KEYS:
            if not cls.get(key):
                missing.append(key)

        if missing:
            error_msg = f"Missing critical configuration keys: {', '.join(missing)}"
            logger.critical(error_msg)
            raise ConfigurationError(error_msg)

        logger.info("All critical configuration keys validated")

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return cls._config.get(key, default)

    @classmethod
    def set(cls, key: str, value: Any, source: str = "runtime") -> None:
        """
        Set configuration value (for dynamic updates).

        Args:
            key: Configuration key
            value: New value
            source: Source of the update (for logging)
        """
        cls._config[key] = value
        logger.debug(f"Config updated: {key} = {value} (source: {source})")

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        """
        Get all configuration values.

        Returns:
            Copy of configuration dictionary
        """
        return cls._config.copy()

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._initialized
