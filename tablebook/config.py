"""
Centralized configuration with environment variable overrides.

Slot window, booking durations, confirmation-code policy and hold timeouts
are configurable here. Nothing is hardcoded in scheduling or booking logic.
"""

import logging
import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class SlotConfig:
    """Operating window and granularity used to generate candidate slots."""

    window_start: str = os.getenv("SLOT_WINDOW_START", "12:00")
    window_end: str = os.getenv("SLOT_WINDOW_END", "23:00")
    granularity_minutes: int = _safe_int("SLOT_GRANULARITY_MINUTES", "30")


@dataclass(frozen=True)
class BookingConfig:
    """Booking admission and lifecycle policy."""

    default_duration_minutes: int = _safe_int("DEFAULT_BOOKING_DURATION", "120")
    confirmation_code_length: int = _safe_int("CONFIRMATION_CODE_LENGTH", "6")
    confirmation_code_max_attempts: int = _safe_int("CONFIRMATION_CODE_MAX_ATTEMPTS", "10")
    hold_timeout_minutes: int = _safe_int("HOLD_TIMEOUT_MINUTES", "10")
    cancellable_hours: int = _safe_int("CANCELLABLE_HOURS", "1")
    editable_hours: int = _safe_int("EDITABLE_HOURS", "2")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    slots: SlotConfig = field(default_factory=SlotConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "tablebook")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    for name, value in [
        ("SLOT_WINDOW_START", config.slots.window_start),
        ("SLOT_WINDOW_END", config.slots.window_end),
    ]:
        if not _CLOCK_RE.match(value):
            raise ValueError(f"{name} must be HH:MM, got {value!r}")
    if not 1 <= config.slots.granularity_minutes <= 24 * 60:
        raise ValueError(
            "SLOT_GRANULARITY_MINUTES must be between 1 and 1440, "
            f"got {config.slots.granularity_minutes}"
        )
    if not 1 <= config.booking.default_duration_minutes < 24 * 60:
        raise ValueError(
            "DEFAULT_BOOKING_DURATION must be between 1 and 1439, "
            f"got {config.booking.default_duration_minutes}"
        )
    if config.booking.confirmation_code_length < 4:
        raise ValueError(
            "CONFIRMATION_CODE_LENGTH must be >= 4, "
            f"got {config.booking.confirmation_code_length}"
        )
    if config.booking.confirmation_code_max_attempts < 1:
        raise ValueError(
            "CONFIRMATION_CODE_MAX_ATTEMPTS must be >= 1, "
            f"got {config.booking.confirmation_code_max_attempts}"
        )
    if config.booking.hold_timeout_minutes < 1:
        raise ValueError(
            f"HOLD_TIMEOUT_MINUTES must be >= 1, got {config.booking.hold_timeout_minutes}"
        )

    for name, value in [
        ("CANCELLABLE_HOURS", config.booking.cancellable_hours),
        ("EDITABLE_HOURS", config.booking.editable_hours),
    ]:
        if value < 0:
            raise ValueError(f"{name} must be >= 0, got {value}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded for '%s' (slots %s-%s every %d min)",
        config.service_name,
        config.slots.window_start,
        config.slots.window_end,
        config.slots.granularity_minutes,
    )
    return config


# Singleton instance
settings = load_config()
