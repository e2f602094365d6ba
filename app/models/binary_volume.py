"""
BinaryVolume model.

Weekly per-leg volume records with carry-forward. The safety valve zeroes
the carry-forward of records older than the aging horizon.
"""

from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class BinaryVolume(Base):
    """
    BinaryVolume entity.

    Attributes:
        id: Primary key
        user_id: Participant
        leg: left/right
        week_start: Monday of the week
        volume: New volume in the week
        carry_in: Volume carried from the previous week
        carry_out: Volume carried to the next week
        total_volume: volume + carry_in
        updated_at: Last change
    """

    __tablename__ = "binary_volumes"
    __table_args__ = (
        Index("idx_binary_volumes_week_start", "week_start"),
        Index("idx_binary_volumes_user_leg", "user_id", "leg"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
    )
    leg: Mapped[str] = mapped_column(String(10), nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    carry_in: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    carry_out: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
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
            f"<BinaryVolume(id={self.id}, user_id={self.user_id}, leg={self.leg}, "
            f"week={self.week_start}, carry_out={self.carry_out})>"
        )
