"""
Participant repository.

Data access layer for the read-only participant graph.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.participant import Participant
from app.repositories.base import BaseRepository


class ParticipantRepository(BaseRepository[Participant]):
    """Repository for participant graph reads."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(Participant, session)

    async def get_all_ordered(self) -> list[Participant]:
        """All participants ordered by id."""
        result = await self.session.execute(
            select(Participant).order_by(Participant.id)
        )
        return list(result.scalars().all())

    async def get_ranks(self, user_ids: list[int]) -> dict[int, str | None]:
        """Rank name per participant id."""
        if not user_ids:
            return {}
        result = await self.session.execute(
            select(Participant.id, Participant.rank).where(
                Participant.id.in_(user_ids)
            )
        )
        return {row.id: row.rank for row in result.all()}

    async def get_wallets(self, user_ids: list[int]) -> dict[int, str | None]:
        """Wallet address per participant id."""
        if not user_ids:
            return {}
        result = await self.session.execute(
            select(Participant.id, Participant.wallet_address).where(
                Participant.id.in_(user_ids)
            )
        )
        return {row.id: row.wallet_address for row in result.all()}
