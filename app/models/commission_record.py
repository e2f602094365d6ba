"""
CommissionRecord model.

One scaled commission per (user, period, type, tier). Re-running the
calculation for a period overwrites these rows in place.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import CommissionStatus
from app.models.types import FactorType, MoneyType, RateType


class CommissionRecord(Base):
    """
    CommissionRecord entity.

    Attributes:
        id: Primary key
        user_id: Earner
        source_user_id: Originating participant (single contributor only)
        source_count: Number of contributing participants
        period_key: Settlement week (Monday, YYYY-MM-DD)
        commission_type: direct/binary/override
        tier: Sponsor hop or downline level, 1 for binary
        basis: Amount the rate applied to
        rate: Tier rate
        base_amount: Unscaled amount
        pool_factor: Pool clamp applied
        global_factor: Global clamp applied
        scaled_amount: Final amount
        status: pending/finalized
    """

    __tablename__ = "commission_records"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "period_key",
            "commission_type",
            "tier",
            name="uq_commission_records_user_period_type_tier",
        ),
        Index("idx_commission_records_period", "period_key"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("participants.id"),
        nullable=False,
        index=True,
    )
    source_user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("participants.id"), nullable=True
    )
    source_count: Mapped[int] = mapped_column(
        Integer, default=1, nullable=False
    )
    period_key: Mapped[str] = mapped_column(String(10), nullable=False)
    commission_type: Mapped[str] = mapped_column(String(20), nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False)

    basis: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    rate: Mapped[Decimal] = mapped_column(RateType, nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Unscaled amount (basis * rate)",
    )
    pool_factor: Mapped[Decimal] = mapped_column(
        FactorType, default=Decimal("1"), nullable=False
    )
    global_factor: Mapped[Decimal] = mapped_column(
        FactorType, default=Decimal("1"), nullable=False
    )
    scaled_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="base_amount * pool_factor * global_factor",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=CommissionStatus.PENDING.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CommissionRecord(user_id={self.user_id}, period={self.period_key}, "
            f"type={self.commission_type}, tier={self.tier}, "
            f"scaled={self.scaled_amount})>"
        )

    @property
    def key(self) -> tuple[int, str, int]:
        """Idempotency key within a period."""
        return (self.user_id, self.commission_type, self.tier)
