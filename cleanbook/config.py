"""
Centralized configuration with environment variable overrides.

Business constants, slot times, backend credentials and integration
endpoints are configurable here. Nothing is hardcoded in cart, wizard
or availability logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from cleanbook.logging_context import LOG_FORMAT, install_session_filter

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
class BusinessConfig:
    """Business-specific settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "Valais Clean Services")
    currency: str = os.getenv("BUSINESS_CURRENCY", "CHF")


@dataclass(frozen=True)
class ScheduleConfig:
    """Half-day slot definitions and booking window."""

    morning_time: str = os.getenv("MORNING_TIME", "09:00")
    afternoon_time: str = os.getenv("AFTERNOON_TIME", "14:00")
    morning_label: str = os.getenv("MORNING_LABEL", "09h00-12h00")
    afternoon_label: str = os.getenv("AFTERNOON_LABEL", "14h00-17h00")
    slot_duration_minutes: int = _safe_int("SLOT_DURATION_MINUTES", "120")
    booking_window_days: int = _safe_int("BOOKING_WINDOW_DAYS", "14")
    booking_horizon_days: int = _safe_int("BOOKING_HORIZON_DAYS", "30")
    poll_interval_sec: float = _safe_float("SLOT_POLL_INTERVAL", "10.0")


@dataclass(frozen=True)
class BackendConfig:
    """Hosted relational backend (PostgREST-style API)."""

    url: str = os.getenv("BACKEND_URL", "")
    key: str = os.getenv("BACKEND_KEY", "")
    timeout_sec: float = _safe_float("BACKEND_TIMEOUT", "10.0")
    realtime_heartbeat_sec: float = _safe_float("REALTIME_HEARTBEAT", "25.0")
    realtime_reconnect_sec: float = _safe_float("REALTIME_RECONNECT", "5.0")


@dataclass(frozen=True)
class GeocodingConfig:
    """Address search settings, biased toward the business area."""

    base_url: str = os.getenv(
        "GEOCODING_BASE_URL", "https://api.mapbox.com/geocoding/v5/mapbox.places"
    )
    token: str = os.getenv("MAPBOX_TOKEN", "")
    country: str = os.getenv("GEOCODING_COUNTRY", "CH")
    language: str = os.getenv("GEOCODING_LANGUAGE", "fr")
    proximity: str = os.getenv("GEOCODING_PROXIMITY", "7.3603,46.2044")
    bbox: str = os.getenv("GEOCODING_BBOX", "5.9559,45.8179,10.4921,47.8084")
    timeout_sec: float = _safe_float("GEOCODING_TIMEOUT", "8.0")


@dataclass(frozen=True)
class NotificationConfig:
    """Outbound form-notification endpoint. Empty URL disables it."""

    url: str = os.getenv("NOTIFICATION_URL", "")
    form_name: str = os.getenv("NOTIFICATION_FORM_NAME", "notification")
    timeout_sec: float = _safe_float("NOTIFICATION_TIMEOUT", "5.0")


@dataclass(frozen=True)
class StorageConfig:
    """Where the in-progress cart is kept between runs."""

    directory: str = os.getenv("CART_STORAGE_DIR", ".cleanbook")
    cart_key: str = os.getenv("CART_STORAGE_KEY", "reservationCart")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    geocoding: GeocodingConfig = field(default_factory=GeocodingConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _parse_hour(value: str) -> int:
    try:
        return int(value.split(":")[0])
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid clock time: {value!r}") from None


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    schedule = config.schedule
    if _parse_hour(schedule.morning_time) >= 12:
        raise ValueError(
            f"MORNING_TIME must be before noon, got {schedule.morning_time}"
        )
    if _parse_hour(schedule.afternoon_time) < 12:
        raise ValueError(
            f"AFTERNOON_TIME must be noon or later, got {schedule.afternoon_time}"
        )
    if schedule.slot_duration_minutes < 1:
        raise ValueError(
            f"SLOT_DURATION_MINUTES must be >= 1, got {schedule.slot_duration_minutes}"
        )
    if schedule.booking_window_days < 1:
        raise ValueError(
            f"BOOKING_WINDOW_DAYS must be >= 1, got {schedule.booking_window_days}"
        )
    if schedule.booking_horizon_days < schedule.booking_window_days:
        raise ValueError(
            "BOOKING_HORIZON_DAYS must be >= BOOKING_WINDOW_DAYS, "
            f"got {schedule.booking_horizon_days}"
        )
    if schedule.poll_interval_sec <= 0:
        raise ValueError(
            f"SLOT_POLL_INTERVAL must be > 0, got {schedule.poll_interval_sec}"
        )

    for name, value in [
        ("BACKEND_TIMEOUT", config.backend.timeout_sec),
        ("REALTIME_HEARTBEAT", config.backend.realtime_heartbeat_sec),
        ("REALTIME_RECONNECT", config.backend.realtime_reconnect_sec),
        ("GEOCODING_TIMEOUT", config.geocoding.timeout_sec),
        ("NOTIFICATION_TIMEOUT", config.notifications.timeout_sec),
    ]:
        if value <= 0:
            raise ValueError(f"{name} must be > 0, got {value}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_session_filter(logging.getLogger().handlers)
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
