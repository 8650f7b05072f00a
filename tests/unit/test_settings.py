"""
Tests for application settings validation.
"""

import pytest
from loguru import logger
from pydantic import ValidationError

from app.config.logging import setup_logging
from app.config.settings import Settings


DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class TestSettings:
    """Tests for Settings validators."""

    def test_defaults(self) -> None:
        settings = Settings(database_url=DATABASE_URL, environment="test")

        assert settings.affiliate_commission_rate == 40
        assert settings.minimum_payout_cents == 1000
        assert settings.clearance_business_days == 14
        assert settings.payout_currency == "usd"
        assert settings.is_production is False

    def test_public_base_url_trailing_slash_stripped(self) -> None:
        settings = Settings(
            database_url=DATABASE_URL,
            environment="test",
            public_base_url="https://example.com/",
        )
        assert settings.public_base_url == "https://example.com"

    def test_public_base_url_requires_http(self) -> None:
        with pytest.raises(ValidationError):
            Settings(
                database_url=DATABASE_URL,
                environment="test",
                public_base_url="ftp://example.com",
            )

    def test_currency_lower_cased(self) -> None:
        settings = Settings(
            database_url=DATABASE_URL, environment="test", payout_currency="USD"
        )
        assert settings.payout_currency == "usd"

    @pytest.mark.parametrize("rate", [-1, 101])
    def test_commission_rate_range(self, rate: int) -> None:
        with pytest.raises(ValidationError):
            Settings(
                database_url=DATABASE_URL,
                environment="test",
                affiliate_commission_rate=rate,
            )

    def test_minimum_payout_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(
                database_url=DATABASE_URL,
                environment="test",
                minimum_payout_cents=0,
            )

    def test_production_requires_stripe_key(self) -> None:
        with pytest.raises(ValidationError, match="STRIPE_SECRET_KEY"):
            Settings(
                database_url=DATABASE_URL,
                environment="production",
                stripe_secret_key=None,
            )

    def test_production_rejects_debug(self) -> None:
        with pytest.raises(ValidationError, match="DEBUG"):
            Settings(
                database_url=DATABASE_URL,
                environment="production",
                debug=True,
                stripe_secret_key="sk_live_x",
            )

    def test_production_valid(self) -> None:
        settings = Settings(
            database_url=DATABASE_URL,
            environment="production",
            stripe_secret_key="sk_live_x",
        )
        assert settings.is_production is True


class TestLogging:
    """Tests for loguru sink configuration."""

    def test_file_sink_written(self, tmp_path) -> None:
        log_file = tmp_path / "affiliates.log"
        settings = Settings(
            database_url=DATABASE_URL,
            environment="test",
            log_level="DEBUG",
            log_file=str(log_file),
        )

        setup_logging(settings)

        assert log_file.exists()
        assert "Logging configured" in log_file.read_text(encoding="utf-8")
        logger.remove()
