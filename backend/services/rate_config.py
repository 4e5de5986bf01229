"""
Rate configuration snapshot.

The rates live in a single `app_settings` record in the settings table.
Each scan batch, unlock run or report run reads it ONCE and passes the
resulting RateConfig around explicitly, so an admin editing the record
mid-batch never alters deltas that were already applied.
"""

import logging
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

import config
from services.errors import InvalidConfiguration

logger = logging.getLogger(__name__)

SETTINGS_KEY = "app_settings"


class RateConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    payout_rate_per_1000: Decimal = Field(ge=0)
    default_premium_share_percent: Decimal = Field(ge=0, le=100)
    lock_period_days: int = Field(ge=0)
    minimum_withdrawal: Decimal = Field(default=Decimal("0"), ge=0)

    def premium_share_for(self, override: Optional[Decimal]) -> Decimal:
        """Per-video override wins over the platform default."""
        if override is None:
            return self.default_premium_share_percent
        return override


def load_rate_config(store) -> RateConfig:
    """
    Read and validate the rate record.

    Raises:
        InvalidConfiguration: record missing or malformed
        PersistenceUnavailable: settings table unreachable
    """
    raw = store.read_settings(SETTINGS_KEY)
    if raw is None:
        raise InvalidConfiguration(f"rate configuration '{SETTINGS_KEY}' not found")

    try:
        rates = RateConfig.model_validate(raw)
    except ValidationError as e:
        raise InvalidConfiguration(f"rate configuration is malformed: {e}") from e

    logger.debug(f"Rate config loaded: {rates}")
    return rates


def default_rate_config() -> RateConfig:
    return RateConfig(
        payout_rate_per_1000=Decimal(config.DEFAULT_PAYOUT_RATE_PER_1000),
        default_premium_share_percent=Decimal(config.DEFAULT_PREMIUM_SHARE_PERCENT),
        lock_period_days=config.DEFAULT_LOCK_PERIOD_DAYS,
        minimum_withdrawal=Decimal(config.DEFAULT_MINIMUM_WITHDRAWAL),
    )


def save_rate_config(store, rates: RateConfig) -> None:
    store.write_settings(SETTINGS_KEY, rates.model_dump(mode="json"))


def seed_rate_config(store) -> bool:
    """Write the env defaults when no rate record exists. Returns True if seeded."""
    if store.read_settings(SETTINGS_KEY) is not None:
        return False
    rates = default_rate_config()
    save_rate_config(store, rates)
    logger.info(f"Seeded rate configuration from environment: {rates}")
    return True
