"""
Centralized configuration with environment variable overrides.

Salon-specific values, scheduling granularity, weekly working hours and
I/O timeouts are configurable here. Nothing is hardcoded in the
scheduling or workflow logic.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from salon_booking.scheduling.clock import to_minutes

load_dotenv()

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
)

CLOSED_MARKER = "closed"


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


def _weekday_hours(day: str, default: str) -> str:
    return os.getenv(f"WORKING_HOURS_{day.upper()}", default).strip().lower()


@dataclass(frozen=True)
class SalonConfig:
    """Salon identity and scheduling granularity."""

    name: str = os.getenv("SALON_NAME", "Beauty Studio")
    timezone: str = os.getenv("SALON_TIMEZONE", "Europe/Sofia")
    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "30")
    min_bookable_minutes: int = _safe_int("MIN_BOOKABLE_MINUTES", "30")
    min_appointment_minutes: int = _safe_int("MIN_APPOINTMENT_MINUTES", "15")
    lookahead_days: int = _safe_int("LOOKAHEAD_DAYS", "30")
    max_free_blocks: int = _safe_int("MAX_FREE_BLOCKS", "10")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class WorkingHoursConfig:
    """Default weekly calendar as ``HH:MM-HH:MM`` or ``closed`` per weekday."""

    monday: str = _weekday_hours("monday", "09:00-18:00")
    tuesday: str = _weekday_hours("tuesday", "09:00-18:00")
    wednesday: str = _weekday_hours("wednesday", "09:00-18:00")
    thursday: str = _weekday_hours("thursday", "09:00-18:00")
    friday: str = _weekday_hours("friday", "09:00-18:00")
    saturday: str = _weekday_hours("saturday", "10:00-14:00")
    sunday: str = _weekday_hours("sunday", CLOSED_MARKER)

    def as_dict(self) -> dict[str, str]:
        return {day: getattr(self, day) for day in WEEKDAYS}


@dataclass(frozen=True)
class TimeoutConfig:
    """Upper bounds for calls to the store and the notification sink."""

    store_timeout_sec: float = _safe_float("STORE_TIMEOUT_SEC", "10.0")
    notify_timeout_sec: float = _safe_float("NOTIFY_TIMEOUT_SEC", "5.0")


@dataclass(frozen=True)
class SupabaseConfig:
    """Credentials for the hosted Postgres backend."""

    url: str = os.getenv("SUPABASE_URL", "")
    key: str = os.getenv("SUPABASE_KEY", "")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    salon: SalonConfig = field(default_factory=SalonConfig)
    working_hours: WorkingHoursConfig = field(default_factory=WorkingHoursConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def parse_hours_entry(entry: str) -> Optional[tuple[str, str]]:
    """Split ``HH:MM-HH:MM`` into its two halves. ``closed`` yields None.

    Examples:
        >>> parse_hours_entry("09:00-18:00")
        ('09:00', '18:00')
        >>> parse_hours_entry("closed") is None
        True
    """
    entry = entry.strip().lower()
    if entry == CLOSED_MARKER:
        return None
    start, sep, end = entry.partition("-")
    if not sep or not start.strip() or not end.strip():
        raise ValueError(f"Working hours must look like 'HH:MM-HH:MM' or 'closed', got {entry!r}")
    return start.strip(), end.strip()


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    salon = config.salon
    if salon.slot_step_minutes < 5 or 60 % salon.slot_step_minutes != 0:
        raise ValueError(
            f"SLOT_STEP_MINUTES must be >= 5 and divide 60, got {salon.slot_step_minutes}"
        )
    if salon.min_appointment_minutes < 1:
        raise ValueError(
            f"MIN_APPOINTMENT_MINUTES must be >= 1, got {salon.min_appointment_minutes}"
        )
    if salon.min_bookable_minutes < salon.min_appointment_minutes:
        raise ValueError(
            "MIN_BOOKABLE_MINUTES must be >= MIN_APPOINTMENT_MINUTES, "
            f"got {salon.min_bookable_minutes}"
        )
    if salon.lookahead_days < 1:
        raise ValueError(f"LOOKAHEAD_DAYS must be >= 1, got {salon.lookahead_days}")
    if salon.max_free_blocks < 1:
        raise ValueError(f"MAX_FREE_BLOCKS must be >= 1, got {salon.max_free_blocks}")
    try:
        ZoneInfo(salon.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"SALON_TIMEZONE is not a known timezone: {salon.timezone!r}") from None

    if config.timeouts.store_timeout_sec <= 0:
        raise ValueError(
            f"STORE_TIMEOUT_SEC must be > 0, got {config.timeouts.store_timeout_sec}"
        )
    if config.timeouts.notify_timeout_sec <= 0:
        raise ValueError(
            f"NOTIFY_TIMEOUT_SEC must be > 0, got {config.timeouts.notify_timeout_sec}"
        )

    for day, entry in config.working_hours.as_dict().items():
        try:
            hours = parse_hours_entry(entry)
            if hours is not None and to_minutes(hours[0]) >= to_minutes(hours[1]):
                raise ValueError(f"start must be before end, got {entry!r}")
        except ValueError as exc:
            raise ValueError(f"WORKING_HOURS_{day.upper()} is invalid: {exc}") from None

def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.salon.name)
    return config


# Singleton instance
settings = load_config()
