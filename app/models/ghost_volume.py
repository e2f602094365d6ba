"""
GhostVolume model.

Promotional volume injected into one leg of a participant's binary tree
for a fixed window. It counts only while ``created_at <= now < expires_at``;
the safety valve marks it expired and removes it from the leg volume.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import GhostVolumeStatus
from app.models.types import MoneyType


class GhostVolume(Base):
    """
    GhostVolume entity.

    Attributes:
        id: Primary key
        user_id: Participant whose tree received the volume
        pay_leg: Leg the volume was added to (left/right)
        amount: Injected volume
        created_at: Start of the active window
        expires_at: End of the active window (exclusive)
        status: active/expired
        expired_at: When the safety valve flushed it
    """

    __tablename__ = "ghost_volumes"
    __table_args__ = (
        Index("idx_ghost_volumes_status_expires", "status", "expires_at"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pay_leg: Mapped[str] = mapped_column(
        String(10), nullable=False, default="left"
    )
    amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=GhostVolumeStatus.ACTIVE.value,
        nullable=False,
    )
    expired_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<GhostVolume(id={self.id}, user_id={self.user_id}, "
            f"leg={self.pay_leg}, amount={self.amount}, status={self.status})>"
        )

    def is_active_at(self, moment: datetime) -> bool:
        """Whether the volume counts at ``moment``."""
        return self.created_at <= moment < self.expires_at
