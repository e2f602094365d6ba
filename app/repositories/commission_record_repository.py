"""
CommissionRecord repository.

Data access layer for scaled commission records.
"""

from collections.abc import Iterable

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.commission_record import CommissionRecord
from app.models.enums import CommissionStatus
from app.repositories.base import BaseRepository


class CommissionRecordRepository(BaseRepository[CommissionRecord]):
    """Repository for commission record operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(CommissionRecord, session)

    async def get_by_period(
        self, period_key: str, for_update: bool = False
    ) -> dict[tuple[int, str, int], CommissionRecord]:
        """
        Period records indexed by (user_id, commission_type, tier).

        Args:
            period_key: Settlement week
            for_update: Lock the rows for an upsert pass

        Returns:
            Records by idempotency key
        """
        query = select(CommissionRecord).where(
            CommissionRecord.period_key == period_key
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return {record.key: record for record in result.scalars().all()}

    async def delete_ids(self, ids: Iterable[int]) -> int:
        """
        Delete records by id.

        Args:
            ids: Record ids

        Returns:
            Number of deleted records
        """
        ids = list(ids)
        if not ids:
            return 0
        result = await self.session.execute(
            delete(CommissionRecord).where(CommissionRecord.id.in_(ids))
        )
        return result.rowcount or 0

    async def mark_finalized(self, period_key: str) -> int:
        """
        Move a period's records to finalized.

        Args:
            period_key: Settlement week

        Returns:
            Number of updated records
        """
        result = await self.session.execute(
            update(CommissionRecord)
            .where(
                and_(
                    CommissionRecord.period_key == period_key,
                    CommissionRecord.status == CommissionStatus.PENDING.value,
                )
            )
            .values(status=CommissionStatus.FINALIZED.value)
        )
        return result.rowcount or 0
