"""
LedgerTransaction model.

Append-only sales ledger. Rows are created by the payment flow; the
payout engine only reads eligible rows of a period.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class LedgerTransaction(Base):
    """
    LedgerTransaction entity.

    Attributes:
        id: Primary key
        user_id: Buyer
        amount: Sale amount in USDT
        period_key: Monday of the settlement week (YYYY-MM-DD)
        is_eligible: Whether the sale counts towards SV
        created_at: When the sale was recorded
    """

    __tablename__ = "ledger_transactions"
    __table_args__ = (
        Index("idx_ledger_transactions_period", "period_key", "is_eligible"),
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
    amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    period_key: Mapped[str] = mapped_column(
        String(10), nullable=False
    )
    is_eligible: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<LedgerTransaction(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, period={self.period_key})>"
        )
