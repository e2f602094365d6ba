"""
WeeklySettlement model.

Per-user rollup of a period's scaled commissions. Written as pending by
the calculation run, receives its Merkle proof at finalize, and is marked
paid by the claim flow.
"""

from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import SettlementStatus
from app.models.types import FactorType, MoneyType


class WeeklySettlement(Base):
    """
    WeeklySettlement entity.

    Attributes:
        id: Primary key
        user_id: Earner
        period_key: Settlement week (Monday, YYYY-MM-DD)
        period_end: Sunday closing the week
        direct_total / binary_total / override_total: Scaled pool totals
        grand_total: Amount payable
        direct_factor / binary_factor / override_factor: Pool clamps applied
        global_factor: Global clamp applied
        cap_applied: Whether the hard-cap backstop clamped grand_total
        uncapped_total: grand_total before the backstop, when clamped
        status: pending/ready_to_claim/paid
        wallet_address: Wallet committed in the Merkle leaf
        leaf_hash: Merkle leaf (0x hex)
        merkle_proof: Sibling path to the root (list of 0x hex)
        claimed_at: When the claim was paid
    """

    __tablename__ = "weekly_settlements"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "period_key", name="uq_weekly_settlements_user_period"
        ),
        Index("idx_weekly_settlements_period_status", "period_key", "status"),
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
    period_key: Mapped[str] = mapped_column(String(10), nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    direct_total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    binary_total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    override_total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    grand_total: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    direct_factor: Mapped[Decimal] = mapped_column(
        FactorType, default=Decimal("1"), nullable=False
    )
    binary_factor: Mapped[Decimal] = mapped_column(
        FactorType, default=Decimal("1"), nullable=False
    )
    override_factor: Mapped[Decimal] = mapped_column(
        FactorType, default=Decimal("1"), nullable=False
    )
    global_factor: Mapped[Decimal] = mapped_column(
        FactorType, default=Decimal("1"), nullable=False
    )

    cap_applied: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    uncapped_total: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True, comment="grand_total before the hard-cap backstop"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=SettlementStatus.PENDING.value,
        nullable=False,
    )
    wallet_address: Mapped[str | None] = mapped_column(String(42), nullable=True)
    leaf_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    merkle_proof: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

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
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<WeeklySettlement(user_id={self.user_id}, period={self.period_key}, "
            f"grand_total={self.grand_total}, status={self.status})>"
        )

    @property
    def is_pending(self) -> bool:
        return self.status == SettlementStatus.PENDING.value
