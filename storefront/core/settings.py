# storefront/core/settings.py
import os
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === Algemene app settings ===
    app_env: str = "local"  # local | development | production

    # === Logging ===
    log_level: str = "INFO"

    # === Pricing guards ===
    min_price: Decimal = Field(Decimal("1"), description="Global price floor (per unit)")
    max_price: Decimal = Field(Decimal("100000"), description="Global price ceiling (per unit)")
    max_product_discount_pct: Decimal = Decimal("90")
    max_bulk_discount_pct: Decimal = Decimal("100")
    min_margin_warning_pct: Decimal = Decimal("10")

    # === Offer catalog ===
    # None = packaged storefront/pricing/rules/offer_catalog.yaml
    offer_catalog_path: Optional[str] = None

    # === Mock store ===
    store_latency_ms: int = 10

    # === Metrics ===
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance with simple env overrides."""
    s = Settings()

    env = os.getenv("ENVIRONMENT", s.app_env).lower()
    if env == "production":
        s.log_level = "WARNING"
    elif env == "development":
        s.log_level = "DEBUG"
        s.store_latency_ms = 0

    return s


settings = get_settings()
