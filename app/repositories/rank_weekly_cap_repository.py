"""
RankWeeklyCap repository.

Data access layer for per-rank weekly caps.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.rank_weekly_cap import RankWeeklyCap
from app.repositories.base import BaseRepository


class RankWeeklyCapRepository(BaseRepository[RankWeeklyCap]):
    """Repository for rank caps."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(RankWeeklyCap, session)

    async def get_caps_by_rank(self) -> dict[str, Decimal]:
        """
        Effective cap per rank name.

        Returns:
            Rank name mapped to min(weekly cap, rank hard cap)
        """
        result = await self.session.execute(select(RankWeeklyCap))
        caps = {}
        for row in result.scalars().all():
            cap = row.weekly_cap_usd
            if row.hard_cap_usd is not None:
                cap = min(cap, row.hard_cap_usd)
            caps[row.rank_name] = cap
        return caps
