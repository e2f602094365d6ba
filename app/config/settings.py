"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from decimal import Decimal

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from compensation.constants import (
    GHOST_VOLUME_TTL_DAYS,
    GLOBAL_PAYOUT_RATIO,
    HARD_CAP_USD,
    PAYOUT_TOKEN_DECIMALS,
    POOL_RATE_BINARY,
    POOL_RATE_DIRECT,
    POOL_RATE_OVERRIDE,
    VOLUME_FLUSH_DAYS,
)
from compensation.core.config import CompensationConfig
from compensation.core.models import CommissionType


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False
    snapshot_isolation_level: str = Field(
        default="REPEATABLE READ",
        description="Isolation level of the calculation read snapshot",
    )

    # Redis (for Dramatiq and period locks)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0

    # Application
    environment: str = "production"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/payouts.log"

    # Run coordination
    period_lock_timeout: int = Field(
        default=900, gt=0, description="TTL of a period run lock in seconds"
    )
    period_lock_wait: int = Field(
        default=30, ge=0, description="Seconds to wait for a held period lock"
    )
    persist_chunk_size: int = Field(
        default=500, gt=0, description="Settlements persisted per flush chunk"
    )

    # Settlement token
    payout_token_decimals: int = Field(
        default=PAYOUT_TOKEN_DECIMALS,
        ge=0,
        le=18,
        description="Payout token decimals used for Merkle leaf amounts",
    )

    # Budgets and caps
    hard_cap_usd: Decimal = Field(
        default=HARD_CAP_USD, gt=0, description="Absolute per-user weekly cap"
    )
    global_payout_ratio: Decimal = Field(
        default=GLOBAL_PAYOUT_RATIO,
        description="Ceiling of total payouts relative to sales volume",
    )
    pool_rate_direct: Decimal = POOL_RATE_DIRECT
    pool_rate_binary: Decimal = POOL_RATE_BINARY
    pool_rate_override: Decimal = POOL_RATE_OVERRIDE

    # Safety valve
    ghost_volume_ttl_days: int = Field(default=GHOST_VOLUME_TTL_DAYS, gt=0)
    volume_flush_days: int = Field(default=VOLUME_FLUSH_DAYS, gt=0)
    audit_trailing_periods: int = Field(default=4, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(('postgresql://', 'postgresql+asyncpg://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql:// '
                'or postgresql+asyncpg://'
            )
        return v

    @field_validator(
        'global_payout_ratio',
        'pool_rate_direct',
        'pool_rate_binary',
        'pool_rate_override',
    )
    @classmethod
    def validate_rate(cls, v: Decimal) -> Decimal:
        """Rates are fractions in (0, 1]."""
        if not Decimal('0') < v <= Decimal('1'):
            raise ValueError(f'Rate must be within (0, 1], got {v}')
        return v

    @model_validator(mode='after')
    def validate_production(self) -> 'Settings':
        """Validate production-specific requirements."""
        if self.environment == 'production' and self.debug:
            raise ValueError(
                'DEBUG must be False in production environment. '
                'Set DEBUG=false in your .env file.'
            )
        return self

    @model_validator(mode='after')
    def warn_rate_drift(self) -> 'Settings':
        """Pool rates above the global ratio make the global clamp active."""
        pool_total = (
            self.pool_rate_direct + self.pool_rate_binary + self.pool_rate_override
        )
        if pool_total > self.global_payout_ratio:
            logger.warning(
                f'Pool rates sum to {pool_total}, above GLOBAL_PAYOUT_RATIO '
                f'{self.global_payout_ratio}. The global clamp will scale payouts.'
            )
        return self

    @property
    def database_url_async(self) -> str:
        """Database URL with the asyncpg driver."""
        if self.database_url.startswith('postgresql://'):
            return self.database_url.replace(
                'postgresql://', 'postgresql+asyncpg://', 1
            )
        return self.database_url

    def compensation_config(self) -> CompensationConfig:
        """Frozen engine configuration for the pure compensation package."""
        return CompensationConfig(
            pool_rates={
                CommissionType.DIRECT: self.pool_rate_direct,
                CommissionType.BINARY: self.pool_rate_binary,
                CommissionType.OVERRIDE: self.pool_rate_override,
            },
            global_payout_ratio=self.global_payout_ratio,
            hard_cap_usd=self.hard_cap_usd,
            token_decimals=self.payout_token_decimals,
        )


# Global settings instance
settings = Settings()
