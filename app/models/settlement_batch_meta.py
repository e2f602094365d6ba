"""
SettlementBatchMeta model.

One row per finalized period: the published Merkle root and batch totals.
Written once at finalize and never replaced.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import ContractStatus
from app.models.types import MoneyType


class SettlementBatchMeta(Base):
    """
    SettlementBatchMeta entity.

    Attributes:
        id: Primary key
        period_key: Finalized week (unique)
        merkle_root: Root over the period's leaves (0x hex)
        total_users: Settlements published (users sharing a wallet share a leaf)
        total_amount: Sum of committed grand totals
        token_decimals: Decimals used for leaf amounts
        period_timestamp: Unix seconds committed in every leaf
        contract_status: ready/funded/published
        created_at: Finalize time
    """

    __tablename__ = "settlement_batch_meta"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    period_key: Mapped[str] = mapped_column(
        String(10), unique=True, nullable=False
    )
    merkle_root: Mapped[str] = mapped_column(String(66), nullable=False)
    total_users: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    token_decimals: Mapped[int] = mapped_column(Integer, nullable=False)
    period_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    contract_status: Mapped[str] = mapped_column(
        String(20),
        default=ContractStatus.READY.value,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<SettlementBatchMeta(period={self.period_key}, "
            f"root={self.merkle_root}, users={self.total_users})>"
        )
