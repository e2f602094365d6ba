"""
Participant model.

Read-only view of the participant graph. Identity, sponsorship,
placement and rank are owned by the onboarding and rank services.
"""

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class Participant(Base):
    """
    Participant entity.

    Attributes:
        id: Primary key
        sponsor_id: Referring participant (referral tree)
        binary_parent_id: Placement parent (binary tree)
        binary_position: Side under the binary parent (left/right)
        wallet_address: Payout wallet, None until linked
        rank: Current rank name, used for weekly caps
    """

    __tablename__ = "participants"
    __table_args__ = (
        Index("idx_participants_binary_parent", "binary_parent_id"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    sponsor_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("participants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    binary_parent_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("participants.id", ondelete="SET NULL"),
        nullable=True,
    )
    binary_position: Mapped[str | None] = mapped_column(
        String(10), nullable=True
    )
    wallet_address: Mapped[str | None] = mapped_column(
        String(42), nullable=True
    )
    rank: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Participant(id={self.id}, sponsor_id={self.sponsor_id}, "
            f"binary_parent_id={self.binary_parent_id})>"
        )
