"""
LedgerTransaction repository.

Data access layer for the append-only sales ledger.
"""

from decimal import Decimal

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.ledger_transaction import LedgerTransaction
from app.repositories.base import BaseRepository


class LedgerTransactionRepository(BaseRepository[LedgerTransaction]):
    """Repository for ledger reads."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(LedgerTransaction, session)

    async def get_by_period(self, period_key: str) -> list[LedgerTransaction]:
        """
        All transactions of a period, eligible or not.

        Args:
            period_key: Settlement week

        Returns:
            Transactions ordered by id
        """
        query = (
            select(LedgerTransaction)
            .where(LedgerTransaction.period_key == period_key)
            .order_by(LedgerTransaction.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_sales_volume(self, period_keys: list[str]) -> Decimal:
        """
        Sum of eligible amounts over the given periods.

        Args:
            period_keys: Settlement weeks

        Returns:
            Total eligible sales volume
        """
        if not period_keys:
            return Decimal("0")
        query = select(func.coalesce(func.sum(LedgerTransaction.amount), 0)).where(
            and_(
                LedgerTransaction.period_key.in_(period_keys),
                LedgerTransaction.is_eligible == True,  # noqa: E712
            )
        )
        result = await self.session.execute(query)
        return Decimal(result.scalar() or 0)
