"""
BinaryTree model.

Accumulated left/right leg volumes per participant. Updated continuously
by the purchase flow; the safety valve subtracts expired ghost volume.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class BinaryTree(Base):
    """
    BinaryTree entity.

    Attributes:
        user_id: Participant (primary key)
        left_leg_id: First participant placed on the left
        right_leg_id: First participant placed on the right
        left_volume: Accumulated left leg volume
        right_volume: Accumulated right leg volume
        updated_at: Last volume change
    """

    __tablename__ = "binary_tree"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("participants.id", ondelete="CASCADE"),
        primary_key=True,
    )
    left_leg_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("participants.id"), nullable=True
    )
    right_leg_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("participants.id"), nullable=True
    )
    left_volume: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    right_volume: Mapped[Decimal] = mapped_column(
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
            f"<BinaryTree(user_id={self.user_id}, left={self.left_volume}, "
            f"right={self.right_volume})>"
        )
