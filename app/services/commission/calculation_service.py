"""
Commission calculation service.

Runs the ``calculate`` action for one period:

1. validate the period key (nothing is written on failure)
2. take the period run lock
3. read one consistent snapshot
4. pass 1: direct, binary and override base amounts with a skip list
5. pass 2: pool and global clamps
6. persist records and pending settlements idempotently

Safe to re-run until the period is finalized.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.settlement_batch_meta_repository import (
    SettlementBatchMetaRepository,
)
from app.repositories.weekly_settlement_repository import (
    WeeklySettlementRepository,
)
from app.services.base_service import BaseService, log_operation
from app.services.commission.settlement_persister import (
    DEFAULT_CHUNK_SIZE,
    SettlementPersister,
)
from app.services.commission.snapshot_reader import SnapshotReader
from app.utils.datetime_utils import parse_period_key
from compensation.constants import GHOST_VOLUME_TTL_DAYS
from compensation.core.calculators import CommissionCalculator
from compensation.core.config import CompensationConfig
from compensation.core.models import PoolTotals, ScaleFactors, ScalingResult
from compensation.core.scaling import PoolScalingNormalizer
from compensation.exceptions import AlreadyFinalizedError
from compensation.utils.formatters import format_scaling_result


def _pools(totals: PoolTotals | ScaleFactors) -> dict[str, Decimal]:
    return {"direct": totals.direct, "binary": totals.binary, "override": totals.override}


@dataclass
class RunSummary:
    """Operator-facing result of a calculation run."""

    period_key: str
    sales_volume: Decimal
    global_cap: Decimal
    budgets: dict[str, Decimal]
    unscaled: dict[str, Decimal]
    scaled: dict[str, Decimal]
    factors: dict[str, Decimal]
    participants_processed: int = 0
    settlements_written: int = 0
    records_written: int = 0
    records_deleted: int = 0
    skipped: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        """True when at least one participant was skipped."""
        return bool(self.skipped)

    @property
    def total_paid(self) -> Decimal:
        return sum(self.scaled.values(), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation (decimals as strings)."""
        return _stringify(asdict(self) | {"partial": self.is_partial})


def _stringify(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _stringify(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_stringify(v) for v in value]
    return value


class CommissionCalculationService(BaseService):
    """
    Period commission calculation.

    Example:
        >>> service = CommissionCalculationService(session)
        >>> summary = await service.calculate("2025-01-06")
        >>> summary.factors["direct"], summary.skipped
    """

    def __init__(
        self,
        session: AsyncSession,
        snapshot_session: AsyncSession | None = None,
        config: CompensationConfig | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        ghost_ttl_days: int = GHOST_VOLUME_TTL_DAYS,
        **kwargs,
    ) -> None:
        """
        Initialize calculation service.

        Args:
            session: Read-write session for persistence
            snapshot_session: Session at snapshot isolation for the read
                (defaults to ``session``)
            config: Engine configuration
            chunk_size: Persist chunk size
            ghost_ttl_days: Maximum ghost volume lifetime
            **kwargs: Lock options for :class:`BaseService`
        """
        super().__init__(session, **kwargs)
        self.config = config or CompensationConfig()
        self.reader = SnapshotReader(snapshot_session or session, ghost_ttl_days)
        self.calculator = CommissionCalculator(self.config)
        self.normalizer = PoolScalingNormalizer(self.config)
        self.persister = SettlementPersister(
            session, chunk_size=chunk_size, lock=self.lock
        )
        self.settlement_repo = WeeklySettlementRepository(session)
        self.batch_repo = SettlementBatchMetaRepository(session)

    @log_operation
    async def calculate(
        self, period_key: str, as_of: datetime | None = None
    ) -> RunSummary:
        """
        Calculate and persist a period.

        Args:
            period_key: Settlement week (Monday, YYYY-MM-DD)
            as_of: Ghost volume reference time (defaults to now)

        Returns:
            Run summary with the skip list

        Raises:
            ValidationError: Malformed period key or snapshot
            AlreadyFinalizedError: Period already finalized
            PeriodLockedError: Another run holds the period
        """
        parse_period_key(period_key)

        async with self.period_lock(period_key):
            if await self.batch_repo.is_finalized(period_key) or (
                await self.settlement_repo.has_non_pending(period_key)
            ):
                self.logger.warning(f"Refusing to recalculate finalized period {period_key}")
                raise AlreadyFinalizedError(period_key)

            snapshot = await self.reader.read(period_key, as_of)
            calculation = self.calculator.run(snapshot)

            for skipped in calculation.skipped:
                self.logger.bind(
                    period_key=period_key, user_id=skipped.user_id
                ).warning(f"Skipped participant {skipped.user_id}: {skipped.reason}")

            result = self.normalizer.apply(calculation)
            self._log_scaling(result)

            counts = await self.persister.persist(result)

        summary = RunSummary(
            period_key=period_key,
            sales_volume=result.sales_volume,
            global_cap=result.global_cap,
            budgets=_pools(result.budgets),
            unscaled=_pools(result.unscaled),
            scaled=_pools(result.scaled),
            factors=_pools(result.factors) | {"global": result.factors.global_factor},
            participants_processed=calculation.participants_processed,
            settlements_written=counts.settlements_written,
            records_written=counts.records_written,
            records_deleted=counts.records_deleted,
            skipped=[
                {"user_id": s.user_id, "reason": s.reason} for s in calculation.skipped
            ],
        )
        self.logger.info(
            f"Run summary for {period_key}: SV={summary.sales_volume}, "
            f"paid={summary.total_paid}, users={summary.settlements_written}, "
            f"skipped={len(summary.skipped)}",
            extra={"summary": summary.to_dict()},
        )
        return summary

    def _log_scaling(self, result: ScalingResult) -> None:
        self.logger.info(
            f"Pool budgets for {result.period_key}: {_pools(result.budgets)}"
        )
        self.logger.info(
            f"Unscaled totals for {result.period_key}: {_pools(result.unscaled)}"
        )
        self.logger.info(
            f"Scale factors for {result.period_key}: {_pools(result.factors)}, "
            f"global={result.factors.global_factor}"
        )
        self.logger.debug("\n" + format_scaling_result(result))
