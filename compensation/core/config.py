"""Rate and cap configuration for the compensation engine."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from compensation.constants import (
    BINARY_RATE,
    DIRECT_RATES,
    GLOBAL_PAYOUT_RATIO,
    HARD_CAP_USD,
    MAX_DEPTH,
    OVERRIDE_RATES,
    PAYOUT_TOKEN_DECIMALS,
    POOL_RATE_BINARY,
    POOL_RATE_DIRECT,
    POOL_RATE_OVERRIDE,
)
from compensation.core.models import CommissionType


class CompensationConfig(BaseModel):
    """
    Immutable engine configuration.

    Built from application settings so the pure engine never reads the
    environment itself. Defaults match the production rate card.
    """

    model_config = ConfigDict(frozen=True)

    direct_rates: dict[int, Decimal] = Field(default_factory=lambda: dict(DIRECT_RATES))
    binary_rate: Decimal = Field(default=BINARY_RATE, ge=0, le=1)
    override_rates: dict[int, Decimal] = Field(default_factory=lambda: dict(OVERRIDE_RATES))
    max_depth: int = Field(default=MAX_DEPTH, ge=1)
    pool_rates: dict[CommissionType, Decimal] = Field(
        default_factory=lambda: {
            CommissionType.DIRECT: POOL_RATE_DIRECT,
            CommissionType.BINARY: POOL_RATE_BINARY,
            CommissionType.OVERRIDE: POOL_RATE_OVERRIDE,
        }
    )
    global_payout_ratio: Decimal = Field(default=GLOBAL_PAYOUT_RATIO, gt=0, le=1)
    hard_cap_usd: Decimal = Field(default=HARD_CAP_USD, gt=0)
    token_decimals: int = Field(default=PAYOUT_TOKEN_DECIMALS, ge=0, le=18)

    @field_validator("direct_rates", "override_rates")
    @classmethod
    def validate_tier_rates(cls, v: dict[int, Decimal]) -> dict[int, Decimal]:
        """Tier keys start at 1 and rates are fractions."""
        for tier, rate in v.items():
            if tier < 1:
                raise ValueError(f"Tier numbers start at 1, got {tier}")
            if not Decimal("0") <= rate <= Decimal("1"):
                raise ValueError(f"Rate for tier {tier} must be within [0, 1]")
        return v

    @field_validator("pool_rates")
    @classmethod
    def validate_pool_rates(
        cls, v: dict[CommissionType, Decimal]
    ) -> dict[CommissionType, Decimal]:
        """Every commission type needs a budget rate in (0, 1]."""
        missing = set(CommissionType) - set(v)
        if missing:
            raise ValueError(f"Missing pool rates for: {sorted(missing)}")
        for pool, rate in v.items():
            if not Decimal("0") < rate <= Decimal("1"):
                raise ValueError(f"Pool rate for {pool} must be within (0, 1]")
        return v

    @property
    def pool_rate_total(self) -> Decimal:
        """Sum of the per-pool budget rates."""
        return sum(self.pool_rates.values(), Decimal("0"))

    @property
    def global_clamp_redundant(self) -> bool:
        """True when pool budgets alone already respect the global ceiling."""
        return self.pool_rate_total <= self.global_payout_ratio
