"""
Settlement persister.

Writes a period's scaled commissions and per-user settlement rollups.
Every row is keyed by its idempotency key, so re-running a period updates
rows in place and removes rows the new run no longer produces.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import CommissionStatus, SettlementStatus
from app.repositories.commission_record_repository import (
    CommissionRecordRepository,
)
from app.repositories.settlement_batch_meta_repository import (
    SettlementBatchMetaRepository,
)
from app.repositories.weekly_settlement_repository import (
    WeeklySettlementRepository,
)
from app.services.base_service import BaseService, transaction
from app.utils.datetime_utils import parse_period_key, period_end
from compensation.core.models import ScalingResult
from compensation.exceptions import AlreadyFinalizedError


T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 500


@dataclass
class PersistResult:
    """Row counts written by one persist pass."""

    records_written: int = 0
    records_deleted: int = 0
    settlements_written: int = 0
    settlements_deleted: int = 0


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Consecutive slices of at most ``size`` items."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


class SettlementPersister(BaseService):
    """Idempotent writer for commission records and weekly settlements."""

    def __init__(
        self,
        session: AsyncSession,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        **kwargs,
    ) -> None:
        """
        Initialize persister.

        Args:
            session: Async database session
            chunk_size: Rows staged between flushes
        """
        super().__init__(session, **kwargs)
        self.chunk_size = chunk_size
        self.commission_repo = CommissionRecordRepository(session)
        self.settlement_repo = WeeklySettlementRepository(session)
        self.batch_repo = SettlementBatchMetaRepository(session)

    @transaction
    async def persist(self, result: ScalingResult) -> PersistResult:
        """
        Upsert the period's records and settlements, then commit.

        Args:
            result: Scaled period result

        Returns:
            Row counts

        Raises:
            AlreadyFinalizedError: The period has a published root
        """
        period_key = result.period_key
        period_start = parse_period_key(period_key)

        if await self.batch_repo.is_finalized(period_key) or (
            await self.settlement_repo.has_non_pending(period_key)
        ):
            raise AlreadyFinalizedError(period_key)

        counts = PersistResult()
        await self._persist_commissions(result, counts)
        await self._persist_settlements(result, period_end(period_start), counts)

        self.logger.info(
            f"Persisted {period_key}: {counts.records_written} records "
            f"({counts.records_deleted} stale removed), "
            f"{counts.settlements_written} settlements "
            f"({counts.settlements_deleted} stale removed)",
            extra={"period_key": period_key},
        )
        return counts

    async def _persist_commissions(
        self, result: ScalingResult, counts: PersistResult
    ) -> None:
        existing = await self.commission_repo.get_by_period(
            result.period_key, for_update=True
        )
        produced = set()

        for chunk in chunked(result.commissions, self.chunk_size):
            for commission in chunk:
                line = commission.line
                key = (line.user_id, line.commission_type.value, line.tier)
                produced.add(key)
                values = {
                    "source_user_id": line.source_user_id,
                    "source_count": line.source_count,
                    "basis": line.basis,
                    "rate": line.rate,
                    "base_amount": line.base_amount,
                    "pool_factor": commission.pool_factor,
                    "global_factor": commission.global_factor,
                    "scaled_amount": commission.scaled_amount,
                    "status": CommissionStatus.PENDING.value,
                }
                record = existing.get(key)
                if record is None:
                    self.commission_repo.add(
                        user_id=line.user_id,
                        period_key=result.period_key,
                        commission_type=line.commission_type.value,
                        tier=line.tier,
                        **values,
                    )
                else:
                    for field_name, value in values.items():
                        setattr(record, field_name, value)
                counts.records_written += 1
            await self.session.flush()

        stale = [record.id for key, record in existing.items() if key not in produced]
        counts.records_deleted = await self.commission_repo.delete_ids(stale)

    async def _persist_settlements(
        self, result: ScalingResult, end, counts: PersistResult
    ) -> None:
        existing = await self.settlement_repo.get_by_period(
            result.period_key, for_update=True
        )
        factors = result.factors
        produced = set()

        for chunk in chunked(result.settlements, self.chunk_size):
            for rollup in chunk:
                produced.add(rollup.user_id)
                values = {
                    "period_end": end,
                    "direct_total": rollup.direct_total,
                    "binary_total": rollup.binary_total,
                    "override_total": rollup.override_total,
                    "grand_total": rollup.grand_total,
                    "direct_factor": factors.direct,
                    "binary_factor": factors.binary,
                    "override_factor": factors.override,
                    "global_factor": factors.global_factor,
                    "cap_applied": False,
                    "uncapped_total": None,
                    "status": SettlementStatus.PENDING.value,
                    "wallet_address": None,
                    "leaf_hash": None,
                    "merkle_proof": None,
                }
                settlement = existing.get(rollup.user_id)
                if settlement is None:
                    self.settlement_repo.add(
                        user_id=rollup.user_id,
                        period_key=result.period_key,
                        **values,
                    )
                else:
                    for field_name, value in values.items():
                        setattr(settlement, field_name, value)
                counts.settlements_written += 1
            await self.session.flush()

        stale = [s.id for user_id, s in existing.items() if user_id not in produced]
        counts.settlements_deleted = await self.settlement_repo.delete_ids(stale)
