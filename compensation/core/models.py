"""Pydantic models for the compensation engine.

Snapshot models are the read-only inputs of a calculation run; result
models are produced by the calculators and the pool scaling normalizer.
All of them are frozen so passes can run concurrently over shared data.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class CommissionType(StrEnum):
    """Commission pool / record type."""

    DIRECT = "direct"
    BINARY = "binary"
    OVERRIDE = "override"


class BinaryPosition(StrEnum):
    """Side of the binary parent a participant is placed on."""

    LEFT = "left"
    RIGHT = "right"


_FROZEN = ConfigDict(frozen=True, arbitrary_types_allowed=True)


# === Snapshot (input) models ===


class ParticipantNode(BaseModel):
    """Participant as seen by the engine: graph links, wallet and rank."""

    model_config = _FROZEN

    id: int
    sponsor_id: int | None = None
    binary_parent_id: int | None = None
    binary_position: str | None = None
    wallet_address: str | None = None
    rank: str | None = None


class LedgerEntry(BaseModel):
    """One transaction from the append-only ledger."""

    model_config = _FROZEN

    id: int
    user_id: int
    amount: Decimal
    period_key: str
    eligible: bool = True


class BinaryNode(BaseModel):
    """Binary tree volumes for a participant, as of the snapshot."""

    model_config = _FROZEN

    user_id: int
    left_leg_id: int | None = None
    right_leg_id: int | None = None
    left_volume: Decimal = Decimal("0")
    right_volume: Decimal = Decimal("0")


class PeriodSnapshot(BaseModel):
    """Consistent read of everything one calculation run needs."""

    model_config = _FROZEN

    period_key: str
    period_start: date
    as_of: datetime
    participants: dict[int, ParticipantNode] = Field(default_factory=dict)
    transactions: tuple[LedgerEntry, ...] = ()
    binary_nodes: dict[int, BinaryNode] = Field(default_factory=dict)


# === Result models ===


class CommissionLine(BaseModel):
    """
    Unscaled commission for one (user, type, tier).

    Attributes:
        user_id: Earner
        commission_type: Pool the amount is drawn from
        tier: Sponsor hop (direct), downline level (override), 1 for binary
        basis: Amount the rate applies to (buyer SV, weak leg, downline binary)
        rate: Tier rate
        base_amount: basis * rate
        source_user_id: Originating participant when there is exactly one
        source_count: Number of participants that contributed
    """

    model_config = _FROZEN

    user_id: int
    commission_type: CommissionType
    tier: int = Field(..., ge=1)
    basis: Decimal
    rate: Decimal
    base_amount: Decimal
    source_user_id: int | None = None
    source_count: int = 1

    @property
    def key(self) -> tuple[int, CommissionType, int]:
        """Idempotency key within a period."""
        return (self.user_id, self.commission_type, self.tier)


class SkippedParticipant(BaseModel):
    """Participant left out of a run because its data is malformed."""

    model_config = _FROZEN

    user_id: int
    reason: str


class CalculationPass(BaseModel):
    """Pass 1 output: base amounts for every earner plus the skip list."""

    model_config = _FROZEN

    period_key: str
    sales_volume: Decimal
    lines: tuple[CommissionLine, ...] = ()
    skipped: tuple[SkippedParticipant, ...] = ()
    participants_processed: int = 0


class PoolTotals(BaseModel):
    """Amounts per commission pool."""

    model_config = _FROZEN

    direct: Decimal = Decimal("0")
    binary: Decimal = Decimal("0")
    override: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.direct + self.binary + self.override

    def get(self, pool: CommissionType) -> Decimal:
        return getattr(self, pool.value)

    def add(self, pool: CommissionType, amount: Decimal) -> "PoolTotals":
        """Return a copy with ``amount`` added to ``pool``."""
        return self.model_copy(update={pool.value: self.get(pool) + amount})


class ScaleFactors(BaseModel):
    """Pool clamps and the global clamp for one period, each in (0, 1]."""

    model_config = _FROZEN

    direct: Decimal = Decimal("1")
    binary: Decimal = Decimal("1")
    override: Decimal = Decimal("1")
    global_factor: Decimal = Decimal("1")

    def pool(self, pool: CommissionType) -> Decimal:
        return getattr(self, pool.value)


class ScaledCommission(BaseModel):
    """A commission line with both clamps applied."""

    model_config = _FROZEN

    line: CommissionLine
    pool_factor: Decimal
    global_factor: Decimal
    scaled_amount: Decimal


class SettlementRollup(BaseModel):
    """Per-user totals for the period, written as a pending settlement."""

    model_config = _FROZEN

    user_id: int
    direct_total: Decimal = Decimal("0")
    binary_total: Decimal = Decimal("0")
    override_total: Decimal = Decimal("0")

    @property
    def grand_total(self) -> Decimal:
        return self.direct_total + self.binary_total + self.override_total


class ScalingResult(BaseModel):
    """Pass 2 output: factors, scaled records and settlement rollups."""

    model_config = _FROZEN

    period_key: str
    sales_volume: Decimal
    budgets: PoolTotals
    global_cap: Decimal
    unscaled: PoolTotals
    scaled: PoolTotals
    factors: ScaleFactors
    commissions: tuple[ScaledCommission, ...] = ()
    settlements: tuple[SettlementRollup, ...] = ()
