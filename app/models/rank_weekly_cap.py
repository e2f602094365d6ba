"""
RankWeeklyCap model.

Per-rank weekly earning limits. Maintained by the rank service.
"""

from decimal import Decimal

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class RankWeeklyCap(Base):
    """
    RankWeeklyCap entity.

    Attributes:
        id: Primary key
        rank_name: Rank the caps apply to
        weekly_cap_usd: Maximum weekly earnings for the rank
        hard_cap_usd: Per-position hard cap for the rank
    """

    __tablename__ = "rank_weekly_caps"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    rank_name: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False
    )
    weekly_cap_usd: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    hard_cap_usd: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<RankWeeklyCap(rank={self.rank_name}, weekly={self.weekly_cap_usd})>"
