"""
WeeklySettlement repository.

Data access layer for per-user weekly settlements.
"""

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import SettlementStatus
from app.models.weekly_settlement import WeeklySettlement
from app.repositories.base import BaseRepository


class WeeklySettlementRepository(BaseRepository[WeeklySettlement]):
    """Repository for weekly settlement operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(WeeklySettlement, session)

    async def get_by_period(
        self, period_key: str, for_update: bool = False
    ) -> dict[int, WeeklySettlement]:
        """
        Period settlements indexed by user id.

        Args:
            period_key: Settlement week
            for_update: Lock the rows

        Returns:
            Settlements by user id
        """
        query = (
            select(WeeklySettlement)
            .where(WeeklySettlement.period_key == period_key)
            .order_by(WeeklySettlement.user_id)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return {row.user_id: row for row in result.scalars().all()}

    async def get_by_wallet(
        self, period_key: str, wallet_address: str
    ) -> list[WeeklySettlement]:
        """
        Settlements of the period published under one wallet leaf.

        Args:
            period_key: Settlement week
            wallet_address: Lowercased leaf wallet

        Returns:
            Settlements ordered by user id
        """
        query = (
            select(WeeklySettlement)
            .where(
                and_(
                    WeeklySettlement.period_key == period_key,
                    WeeklySettlement.wallet_address == wallet_address,
                )
            )
            .order_by(WeeklySettlement.user_id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def has_non_pending(self, period_key: str) -> bool:
        """
        Whether any settlement of the period left pending.

        Args:
            period_key: Settlement week

        Returns:
            True once the period was finalized (or partly claimed)
        """
        query = (
            select(func.count())
            .select_from(WeeklySettlement)
            .where(
                and_(
                    WeeklySettlement.period_key == period_key,
                    WeeklySettlement.status != SettlementStatus.PENDING.value,
                )
            )
        )
        result = await self.session.execute(query)
        return (result.scalar() or 0) > 0

    async def delete_ids(self, ids: Iterable[int]) -> int:
        """
        Delete settlements by id.

        Args:
            ids: Settlement ids

        Returns:
            Number of deleted settlements
        """
        ids = list(ids)
        if not ids:
            return 0
        result = await self.session.execute(
            delete(WeeklySettlement).where(WeeklySettlement.id.in_(ids))
        )
        return result.rowcount or 0

    async def get_pending_above(
        self, threshold: Decimal
    ) -> list[WeeklySettlement]:
        """
        Pending settlements with grand_total above ``threshold``, locked.

        Args:
            threshold: Lowest cap that could be breached

        Returns:
            Candidate settlements for the cap backstop
        """
        query = (
            select(WeeklySettlement)
            .where(
                and_(
                    WeeklySettlement.status == SettlementStatus.PENDING.value,
                    WeeklySettlement.grand_total > threshold,
                )
            )
            .order_by(WeeklySettlement.period_key, WeeklySettlement.user_id)
            .with_for_update()
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_total_payouts(self, period_keys: list[str]) -> Decimal:
        """
        Sum of grand totals over the given periods.

        Args:
            period_keys: Settlement weeks

        Returns:
            Total payouts
        """
        if not period_keys:
            return Decimal("0")
        query = select(func.coalesce(func.sum(WeeklySettlement.grand_total), 0)).where(
            WeeklySettlement.period_key.in_(period_keys)
        )
        result = await self.session.execute(query)
        return Decimal(result.scalar() or 0)
