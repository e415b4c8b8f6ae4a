"""
Centralized configuration with environment variable overrides.

Business constants (payout share, credit floor, home city, flash lead time)
live here so pricing and matching stay deterministic given fixed inputs.
"""

import logging
import os
import re
from dataclasses import dataclass, field

from dotenv import load_dotenv

from shootmatch.logging_context import install_request_id

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


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


def _csv(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class PricingConfig:
    """Payout, wallet and upsell settings."""

    payout_share: float = _safe_float("PAYOUT_SHARE", "0.6")
    negative_balance_limit: float = _safe_float("NEGATIVE_BALANCE_LIMIT", "100")
    retention_discount: float = _safe_float("RETENTION_DISCOUNT", "0.5")
    currency: str = os.getenv("CURRENCY", "BRL")


@dataclass(frozen=True)
class MatchingConfig:
    """Geographic and ranking settings for photographer matching."""

    home_city: str = os.getenv("HOME_CITY", "Curitiba")
    flash_lead_minutes: int = _safe_int("FLASH_LEAD_MINUTES", "0")
    balance_weight_km: float = _safe_float("BALANCE_WEIGHT_KM", "5")
    route_swap_min_saving_km: float = _safe_float("ROUTE_SWAP_MIN_SAVING_KM", "5")


@dataclass(frozen=True)
class ScheduleConfig:
    """Weekly template used when a photographer re-enables a day off."""

    default_day_template: tuple[str, ...] = _csv(
        "DEFAULT_DAY_TEMPLATE", "08:00,09:30,11:00,13:30,15:00,16:30"
    )


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    pricing: PricingConfig = field(default_factory=PricingConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.pricing.payout_share <= 1.0:
        raise ValueError(
            f"PAYOUT_SHARE must be between 0.0 and 1.0, got {config.pricing.payout_share}"
        )
    if config.pricing.negative_balance_limit < 0:
        raise ValueError(
            "NEGATIVE_BALANCE_LIMIT must be >= 0, "
            f"got {config.pricing.negative_balance_limit}"
        )
    if not 0.0 <= config.pricing.retention_discount <= 1.0:
        raise ValueError(
            "RETENTION_DISCOUNT must be between 0.0 and 1.0, "
            f"got {config.pricing.retention_discount}"
        )
    if not config.matching.home_city.strip():
        raise ValueError("HOME_CITY must not be empty")
    if config.matching.flash_lead_minutes < 0:
        raise ValueError(
            f"FLASH_LEAD_MINUTES must be >= 0, got {config.matching.flash_lead_minutes}"
        )
    if config.matching.balance_weight_km < 0:
        raise ValueError(
            f"BALANCE_WEIGHT_KM must be >= 0, got {config.matching.balance_weight_km}"
        )
    if config.matching.route_swap_min_saving_km < 0:
        raise ValueError(
            "ROUTE_SWAP_MIN_SAVING_KM must be >= 0, "
            f"got {config.matching.route_swap_min_saving_km}"
        )

    template = config.schedule.default_day_template
    bad = [slot for slot in template if not _HHMM.match(slot)]
    if bad:
        raise ValueError(f"DEFAULT_DAY_TEMPLATE has malformed times: {bad}")
    if list(template) != sorted(set(template)):
        raise ValueError("DEFAULT_DAY_TEMPLATE must be ascending with no duplicates")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        install_request_id(handler)
    logger.info("Configuration loaded (home city '%s')", config.matching.home_city)
    return config


# Singleton instance
settings = load_config()
