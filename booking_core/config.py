"""
Centralized configuration with environment variable overrides.

Scheduling rules and display settings live here so the state machine,
aggregator, and slot search never hardcode them.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

TIME_FORMAT_CHOICES = ("24h", "12h")
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag such as ``true``/``false`` or ``1``/``0``."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class SchedulingConfig:
    """Rules applied when searching for slots and validating new bookings."""

    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "30")
    min_duration_minutes: int = _safe_int("MIN_BOOKING_MINUTES", "30")
    max_duration_minutes: int = _safe_int("MAX_BOOKING_MINUTES", "720")
    allow_adjacent_bookings: bool = _safe_bool("ALLOW_ADJACENT_BOOKINGS", "true")


@dataclass(frozen=True)
class DisplayConfig:
    """Presentation settings for schedule items."""

    time_format: str = os.getenv("TIME_FORMAT", "24h")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "service-booking-core")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.scheduling.slot_step_minutes < 1:
        raise ValueError(
            f"SLOT_STEP_MINUTES must be >= 1, got {config.scheduling.slot_step_minutes}"
        )
    if config.scheduling.min_duration_minutes < 1:
        raise ValueError(
            f"MIN_BOOKING_MINUTES must be >= 1, got {config.scheduling.min_duration_minutes}"
        )
    if config.scheduling.max_duration_minutes < config.scheduling.min_duration_minutes:
        raise ValueError(
            f"MAX_BOOKING_MINUTES must be >= MIN_BOOKING_MINUTES "
            f"({config.scheduling.min_duration_minutes}), "
            f"got {config.scheduling.max_duration_minutes}"
        )
    if config.display.time_format not in TIME_FORMAT_CHOICES:
        raise ValueError(
            f"TIME_FORMAT must be one of {TIME_FORMAT_CHOICES}, "
            f"got {config.display.time_format!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
