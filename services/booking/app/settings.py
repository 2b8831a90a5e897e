from __future__ import annotations

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from services.booking.app.models import PricingRules


class BookingSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid")

    database_url: str
    log_level: str = "info"
    admin_token: str = "dev-admin"
    otlp_endpoint: str | None = None

    # Fallback pricing when a night has no override price.
    weekend_surcharge_pct: Decimal = Field(default=Decimal(15), ge=0)
    weekend_days: list[int] = [4, 5]

    min_stay: int = Field(default=1, ge=1)
    max_rooms_per_cart: int = 10
    history_depth: int = 50
    currency: str = Field(default="BRL", min_length=3, max_length=3)

    def pricing_rules(self) -> PricingRules:
        return PricingRules(weekend_surcharge_pct=self.weekend_surcharge_pct, weekend_days=frozenset(self.weekend_days))


SETTINGS = BookingSettings()
