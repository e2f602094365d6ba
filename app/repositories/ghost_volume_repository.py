"""
GhostVolume repository.

Data access layer for promotional ghost volume.
"""

from datetime import datetime, timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import GhostVolumeStatus
from app.models.ghost_volume import GhostVolume
from app.repositories.base import BaseRepository
from compensation.constants import GHOST_VOLUME_TTL_DAYS


class GhostVolumeRepository(BaseRepository[GhostVolume]):
    """Repository for ghost volume operations."""

    def __init__(
        self, session: AsyncSession, ttl_days: int = GHOST_VOLUME_TTL_DAYS
    ) -> None:
        """
        Initialize repository.

        Args:
            session: Async database session
            ttl_days: Maximum lifetime, applied even if expires_at is later
        """
        super().__init__(GhostVolume, session)
        self.ttl = timedelta(days=ttl_days)

    def _closed_at(self, moment: datetime):
        """Window closed at ``moment``: past expires_at or past the TTL."""
        return or_(
            GhostVolume.expires_at <= moment,
            GhostVolume.created_at <= moment - self.ttl,
        )

    async def get_inactive_unflushed(self, as_of: datetime) -> list[GhostVolume]:
        """
        Rows still counted in tree volumes but not active at ``as_of``.

        Covers ghost volume created after ``as_of`` and volume that has
        expired but was not yet flushed by the safety valve.

        Args:
            as_of: Snapshot time

        Returns:
            Ghost volume rows with status active
        """
        query = select(GhostVolume).where(
            and_(
                GhostVolume.status == GhostVolumeStatus.ACTIVE.value,
                or_(
                    GhostVolume.created_at > as_of,
                    self._closed_at(as_of),
                ),
            )
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_expired_active(self, now: datetime) -> list[GhostVolume]:
        """
        Active rows whose window has closed, locked for flushing.

        Args:
            now: Current datetime

        Returns:
            Ghost volume rows to expire
        """
        query = (
            select(GhostVolume)
            .where(
                and_(
                    GhostVolume.status == GhostVolumeStatus.ACTIVE.value,
                    self._closed_at(now),
                )
            )
            .order_by(GhostVolume.id)
            .with_for_update()
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
