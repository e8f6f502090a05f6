"""
Application configuration using pydantic-settings.
Loads environment variables from .env file.

Nested config groups (StripeConfig, RentalConfig, SubscriptionConfig) are
env-overridable via the double-underscore delimiter, e.g.:
    STRIPE__SECRET_KEY=sk_live_...
    RENTAL__ALLOW_SAME_DAY_RENTAL=true
    SUBSCRIPTION__VERIFY_WITH_PROVIDER=false
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.models.rental import DepositMethod


class StripeConfig(BaseModel):
    """Stripe credentials. An empty secret key means payments are unconfigured."""

    secret_key: str = ""
    webhook_secret: str = ""
    api_version: str = ""
    currency: str = "eur"

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)


class RentalConfig(BaseModel):
    """Booking rules."""

    # Product decision: a same-day rental counts as one day when enabled
    allow_same_day_rental: bool = False
    default_deposit_method: DepositMethod = DepositMethod.CREDIT_CARD


class SubscriptionConfig(BaseModel):
    """Premium agency plan."""

    # Existing recurring Stripe price; created on first use when empty
    price_id: str = ""
    product_name: str = "Carivoo Premium"
    unit_amount: int = 2999  # minor units
    interval: str = "month"
    # Re-fetch the subscription from Stripe before activating it
    verify_with_provider: bool = True


class TableConfig(BaseModel):
    """Supabase table names."""

    reservations: str = "reservations"
    vehicles: str = "vehicles"
    agencies: str = "agencies"
    subscriptions: str = "subscriptions"
    user_accounts: str = "user_accounts"
    users: str = "users"
    webhook_events: str = "stripe_webhook_events"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # App Settings
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:5000", "http://localhost:3000"]

    # Nested config groups (env-overridable via SECTION__KEY format)
    stripe: StripeConfig = Field(default_factory=StripeConfig)
    rental: RentalConfig = Field(default_factory=RentalConfig)
    subscription: SubscriptionConfig = Field(default_factory=SubscriptionConfig)
    tables: TableConfig = Field(default_factory=TableConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
