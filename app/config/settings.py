"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.config.business_constants import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_MINIMUM_PAYOUT_CENTS,
)
from clearance import CLEARANCE_DAYS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str | None = None

    # Public URLs (referral links, onboarding return/refresh)
    public_base_url: str = "https://probaly.app"

    # Stripe Connect (payout destinations and transfers)
    stripe_secret_key: str | None = None
    payout_currency: str = Field(
        default="usd",
        min_length=3,
        max_length=3,
        description="The single currency commissions are earned and paid in",
    )

    # Affiliate program
    affiliate_commission_rate: int = Field(
        default=DEFAULT_COMMISSION_RATE,
        ge=0,
        le=100,
        description="Commission percentage assigned at registration",
    )
    minimum_payout_cents: int = Field(
        default=DEFAULT_MINIMUM_PAYOUT_CENTS,
        gt=0,
        description="Minimum cleared balance for a payout request (cents)",
    )
    clearance_business_days: int = Field(
        default=CLEARANCE_DAYS,
        gt=0,
        description="Business days before a commission can be paid out",
    )

    # Redis (Dramatiq broker)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("public_base_url")
    @classmethod
    def validate_public_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                "PUBLIC_BASE_URL must start with http:// or https://"
            )
        return v.rstrip("/")

    @field_validator("payout_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Store currency codes lower-case, as Stripe expects them."""
        return v.lower()

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.is_production:
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )
            if not self.stripe_secret_key:
                raise ValueError(
                    "STRIPE_SECRET_KEY is required in production. "
                    "Payout destinations and transfers cannot work without it."
                )
            if self.stripe_secret_key.startswith("sk_test_"):
                logger.warning(
                    "STRIPE_SECRET_KEY is a test-mode key in production environment"
                )
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


# Global settings instance
settings = Settings()
