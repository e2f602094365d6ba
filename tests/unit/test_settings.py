"""Tests for application settings."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.config.settings import Settings
from compensation.core.models import CommissionType


class TestSettings:
    """Test settings validation and derived values."""

    def test_rejects_non_postgres_url(self):
        with pytest.raises(ValidationError):
            Settings(database_url="mysql://user@localhost/db")

    def test_async_driver_added(self):
        settings = Settings(database_url="postgresql://user@localhost/db")

        assert settings.database_url_async == "postgresql+asyncpg://user@localhost/db"

    @pytest.mark.parametrize("value", ["0", "1.5", "-0.1"])
    def test_rates_must_be_fractions(self, value):
        with pytest.raises(ValidationError):
            Settings(
                database_url="postgresql://user@localhost/db",
                global_payout_ratio=Decimal(value),
            )

    def test_debug_forbidden_in_production(self):
        with pytest.raises(ValidationError):
            Settings(
                database_url="postgresql://user@localhost/db",
                environment="production",
                debug=True,
            )

    def test_compensation_config_from_settings(self):
        settings = Settings(
            database_url="postgresql://user@localhost/db",
            pool_rate_binary=Decimal("0.15"),
            payout_token_decimals=18,
        )

        config = settings.compensation_config()

        assert config.pool_rates[CommissionType.BINARY] == Decimal("0.15")
        assert config.token_decimals == 18
        assert config.global_payout_ratio == settings.global_payout_ratio
