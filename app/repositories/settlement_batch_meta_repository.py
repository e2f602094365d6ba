"""
SettlementBatchMeta repository.

Data access layer for published settlement batches.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.settlement_batch_meta import SettlementBatchMeta
from app.repositories.base import BaseRepository


class SettlementBatchMetaRepository(BaseRepository[SettlementBatchMeta]):
    """Repository for settlement batch metadata."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(SettlementBatchMeta, session)

    async def get_by_period(self, period_key: str) -> SettlementBatchMeta | None:
        """Batch of a period, if finalized."""
        return await self.get_by(period_key=period_key)

    async def is_finalized(self, period_key: str) -> bool:
        """Whether a root was already published for the period."""
        return await self.exists(period_key=period_key)
