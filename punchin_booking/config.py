"""
Centralized configuration with environment variable overrides.

Booking rules (duration bounds, currency, fallback time zone) and document
decode defaults are configurable here. Nothing is hardcoded in the
scheduling or booking logic.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from punchin_booking.logging_context import RequestIdFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BookingRulesConfig:
    """Validation bounds and defaults applied by the booking pipeline."""

    min_duration_minutes: int = _safe_int("PUNCHIN_MIN_DURATION_MINUTES", "30")
    max_duration_minutes: int = _safe_int("PUNCHIN_MAX_DURATION_MINUTES", "720")
    currency: str = os.getenv("PUNCHIN_CURRENCY", "USD")
    default_timezone: str = os.getenv("PUNCHIN_DEFAULT_TIMEZONE", "UTC")
    default_session_minutes: int = _safe_int("PUNCHIN_DEFAULT_SESSION_MINUTES", "120")
    fallback_duration_minutes: int = _safe_int("PUNCHIN_FALLBACK_DURATION_MINUTES", "60")
    price_precision: int = _safe_int("PUNCHIN_PRICE_PRECISION", "2")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    booking: BookingRulesConfig = field(default_factory=BookingRulesConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "punchin-booking")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    rules = config.booking
    if rules.min_duration_minutes < 1:
        raise ValueError(
            f"PUNCHIN_MIN_DURATION_MINUTES must be >= 1, got {rules.min_duration_minutes}"
        )
    if rules.max_duration_minutes < rules.min_duration_minutes:
        raise ValueError(
            "PUNCHIN_MAX_DURATION_MINUTES must be >= PUNCHIN_MIN_DURATION_MINUTES, "
            f"got {rules.max_duration_minutes} < {rules.min_duration_minutes}"
        )
    if len(rules.currency) != 3 or not rules.currency.isalpha():
        raise ValueError(
            f"PUNCHIN_CURRENCY must be a three-letter code, got {rules.currency!r}"
        )
    if rules.default_session_minutes < 1:
        raise ValueError(
            f"PUNCHIN_DEFAULT_SESSION_MINUTES must be >= 1, got {rules.default_session_minutes}"
        )
    if rules.fallback_duration_minutes < 1:
        raise ValueError(
            "PUNCHIN_FALLBACK_DURATION_MINUTES must be >= 1, "
            f"got {rules.fallback_duration_minutes}"
        )
    if rules.price_precision < 0:
        raise ValueError(
            f"PUNCHIN_PRICE_PRECISION must be >= 0, got {rules.price_precision}"
        )
    try:
        ZoneInfo(rules.default_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"PUNCHIN_DEFAULT_TIMEZONE is not a known time zone: {rules.default_timezone!r}"
        ) from None


LOG_FORMAT = "%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def build_log_handler() -> logging.Handler:
    """Stream handler whose records always carry a ``request_id``."""
    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    return handler


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[build_log_handler()],
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
