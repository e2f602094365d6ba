"""
BinaryVolume repository.

Data access layer for weekly leg volume records.
"""

from datetime import date, datetime

from sqlalchemy import and_, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.binary_volume import BinaryVolume
from app.repositories.base import BaseRepository


class BinaryVolumeRepository(BaseRepository[BinaryVolume]):
    """Repository for binary volume aging."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(BinaryVolume, session)

    async def flush_carry_forward(self, before: date, now: datetime) -> int:
        """
        Zero the carry-forward of records older than ``before``.

        Args:
            before: Weeks starting before this date are flushed
            now: Update timestamp

        Returns:
            Number of records flushed
        """
        stmt = (
            update(BinaryVolume)
            .where(
                and_(
                    BinaryVolume.week_start < before,
                    BinaryVolume.carry_out > 0,
                )
            )
            .values(carry_out=0, updated_at=now)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
