"""
Safety valve service.

Periodic maintenance of the long-term payout invariants:

a. ghost volume expiry (removes expired promotional volume from legs)
b. volume aging flush (zeroes old carry-forward)
c. hard-cap backstop (clamps pending settlements above their cap)
d. global ratio audit (alerts when trailing payouts exceed the ratio)

Each sub-task runs in its own transaction; a failure is logged and
reported without blocking the others. Volume-mutating work holds the run
locks of the current and previous periods, so it never changes volumes
under a calculation in flight.
"""

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import GhostVolumeStatus
from app.repositories.binary_tree_repository import BinaryTreeRepository
from app.repositories.binary_volume_repository import BinaryVolumeRepository
from app.repositories.ghost_volume_repository import GhostVolumeRepository
from app.repositories.ledger_transaction_repository import (
    LedgerTransactionRepository,
)
from app.repositories.participant_repository import ParticipantRepository
from app.repositories.rank_weekly_cap_repository import RankWeeklyCapRepository
from app.repositories.settlement_batch_meta_repository import (
    SettlementBatchMetaRepository,
)
from app.repositories.weekly_settlement_repository import (
    WeeklySettlementRepository,
)
from app.services.base_service import BaseService, log_operation
from app.utils.datetime_utils import (
    period_key_for,
    previous_period_key,
    trailing_period_keys,
    utc_now,
)
from compensation.constants import (
    GHOST_VOLUME_TTL_DAYS,
    GLOBAL_PAYOUT_RATIO,
    HARD_CAP_USD,
    VOLUME_FLUSH_DAYS,
)
from compensation.core.models import SettlementRollup
from compensation.core.scaling import cap_settlement
from compensation.exceptions import CapBreachDetected


T = TypeVar("T")

GHOST_VOLUME_EXPIRY = "ghost_volume_expiry"
VOLUME_AGING_FLUSH = "volume_aging_flush"
HARD_CAP_BACKSTOP = "hard_cap_backstop"
GLOBAL_RATIO_AUDIT = "global_ratio_audit"


@dataclass
class SafetyValveReport:
    """Outcome of one safety valve run."""

    started_at: datetime
    ghost_volumes_expired: int = 0
    ghost_volume_removed: Decimal = Decimal("0")
    volume_records_flushed: int = 0
    cap_breaches: list[CapBreachDetected] = field(default_factory=list)
    audit_periods: list[str] = field(default_factory=list)
    audit_volume: Decimal = Decimal("0")
    audit_payouts: Decimal = Decimal("0")
    audit_ratio: Decimal = Decimal("0")
    ratio_alert: bool = False
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """True when every sub-task completed."""
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "ghost_volumes_expired": self.ghost_volumes_expired,
            "ghost_volume_removed": str(self.ghost_volume_removed),
            "volume_records_flushed": self.volume_records_flushed,
            "cap_breaches": [
                {
                    "user_id": b.user_id,
                    "period_key": b.period_key,
                    "grand_total": str(b.grand_total),
                    "cap": str(b.cap),
                }
                for b in self.cap_breaches
            ],
            "audit": {
                "periods": self.audit_periods,
                "volume": str(self.audit_volume),
                "payouts": str(self.audit_payouts),
                "ratio": str(self.audit_ratio),
                "alert": self.ratio_alert,
            },
            "errors": self.errors,
            "success": self.success,
        }


class SafetyValveService(BaseService):
    """
    Invariant maintenance job.

    Example:
        >>> service = SafetyValveService(session)
        >>> report = await service.run()
        >>> report.cap_breaches, report.ratio_alert
    """

    def __init__(
        self,
        session: AsyncSession,
        hard_cap_usd: Decimal = HARD_CAP_USD,
        global_payout_ratio: Decimal = GLOBAL_PAYOUT_RATIO,
        ghost_ttl_days: int = GHOST_VOLUME_TTL_DAYS,
        volume_flush_days: int = VOLUME_FLUSH_DAYS,
        audit_trailing_periods: int = 4,
        **kwargs,
    ) -> None:
        """
        Initialize safety valve.

        Args:
            session: Async database session
            hard_cap_usd: Absolute per-user weekly cap
            global_payout_ratio: Alert threshold of the ratio audit
            ghost_ttl_days: Maximum ghost volume lifetime
            volume_flush_days: Carry-forward aging horizon
            audit_trailing_periods: Periods covered by the ratio audit
            **kwargs: Lock options for :class:`BaseService`
        """
        super().__init__(session, **kwargs)
        self.hard_cap_usd = hard_cap_usd
        self.global_payout_ratio = global_payout_ratio
        self.volume_flush_days = volume_flush_days
        self.audit_trailing_periods = audit_trailing_periods

        self.ghost_repo = GhostVolumeRepository(session, ttl_days=ghost_ttl_days)
        self.tree_repo = BinaryTreeRepository(session)
        self.volume_repo = BinaryVolumeRepository(session)
        self.settlement_repo = WeeklySettlementRepository(session)
        self.batch_repo = SettlementBatchMetaRepository(session)
        self.rank_cap_repo = RankWeeklyCapRepository(session)
        self.participant_repo = ParticipantRepository(session)
        self.ledger_repo = LedgerTransactionRepository(session)

    @log_operation
    async def run(
        self,
        now: datetime | None = None,
        excluded_periods: Iterable[str] = (),
    ) -> SafetyValveReport:
        """
        Run all four sub-tasks.

        Args:
            now: Reference time (defaults to now)
            excluded_periods: In-flight periods left out of the cap
                backstop and the ratio audit

        Returns:
            Report with per-subtask results and errors

        Raises:
            PeriodLockedError: A current or previous period run is in flight
        """
        now = now or utc_now()
        excluded = set(excluded_periods)
        report = SafetyValveReport(started_at=now)

        current = period_key_for(now)
        previous = previous_period_key(current)

        async with self.period_lock(current, previous):
            expired = await self._run_subtask(
                report, GHOST_VOLUME_EXPIRY, self.expire_ghost_volumes, now
            )
            if expired is not None:
                report.ghost_volumes_expired, report.ghost_volume_removed = expired

            flushed = await self._run_subtask(
                report, VOLUME_AGING_FLUSH, self.flush_aged_volume, now
            )
            if flushed is not None:
                report.volume_records_flushed = flushed

            breaches = await self._run_subtask(
                report, HARD_CAP_BACKSTOP, self.enforce_hard_caps, excluded
            )
            if breaches is not None:
                report.cap_breaches = breaches

        audit = await self._run_subtask(
            report, GLOBAL_RATIO_AUDIT, self.audit_global_ratio, current, excluded
        )
        if audit is not None:
            (
                report.audit_periods,
                report.audit_volume,
                report.audit_payouts,
                report.audit_ratio,
                report.ratio_alert,
            ) = audit

        self.logger.info(
            f"Safety valve done: {report.ghost_volumes_expired} ghost expired, "
            f"{report.volume_records_flushed} volume records flushed, "
            f"{len(report.cap_breaches)} cap breaches, "
            f"ratio {report.audit_ratio}, errors: {sorted(report.errors)}"
        )
        return report

    async def _run_subtask(
        self,
        report: SafetyValveReport,
        name: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T | None:
        """Run one sub-task in its own transaction; record failure instead of raising."""
        try:
            result = await func(*args)
            await self.commit()
            return result
        except Exception as e:
            await self.rollback()
            self.logger.exception(f"Safety valve sub-task {name} failed: {e}")
            report.errors[name] = f"{type(e).__name__}: {e}"
            return None

    # === a. Ghost volume expiry ===

    async def expire_ghost_volumes(self, now: datetime) -> tuple[int, Decimal]:
        """
        Expire closed ghost volume windows and remove them from leg volumes.

        Returns:
            (rows expired, total volume removed)
        """
        rows = await self.ghost_repo.get_expired_active(now)
        removed = Decimal("0")

        for ghost in rows:
            node = await self.tree_repo.subtract_leg_volume(
                ghost.user_id, ghost.pay_leg, ghost.amount
            )
            if node is None:
                self.logger.warning(
                    f"Ghost volume {ghost.id}: user {ghost.user_id} has no binary tree row"
                )
            ghost.status = GhostVolumeStatus.EXPIRED.value
            ghost.expired_at = now
            removed += ghost.amount

        await self.session.flush()
        self.logger.info(f"Expired {len(rows)} ghost volume rows ({removed} volume)")
        return len(rows), removed

    # === b. Volume aging flush ===

    async def flush_aged_volume(self, now: datetime) -> int:
        """
        Zero carry-forward on volume records past the aging horizon.

        Settled commissions are not touched.

        Returns:
            Number of records flushed
        """
        cutoff = (now - timedelta(days=self.volume_flush_days)).date()
        flushed = await self.volume_repo.flush_carry_forward(cutoff, now)
        self.logger.info(f"Flushed carry-forward on {flushed} records older than {cutoff}")
        return flushed

    # === c. Hard-cap backstop ===

    async def enforce_hard_caps(
        self, excluded_periods: set[str]
    ) -> list[CapBreachDetected]:
        """
        Clamp pending settlements above their cap and flag them.

        The cap of a user is min(rank cap, absolute hard cap). Settlements
        of finalized or excluded periods are never modified.

        Returns:
            One breach per clamped settlement
        """
        rank_caps = await self.rank_cap_repo.get_caps_by_rank()
        threshold = min([self.hard_cap_usd, *rank_caps.values()])

        candidates = [
            s
            for s in await self.settlement_repo.get_pending_above(threshold)
            if s.period_key not in excluded_periods
        ]
        if not candidates:
            return []

        finalized = {
            key
            for key in {s.period_key for s in candidates}
            if await self.batch_repo.is_finalized(key)
        }
        ranks = await self.participant_repo.get_ranks([s.user_id for s in candidates])

        breaches = []
        for settlement in candidates:
            if settlement.period_key in finalized:
                continue
            cap = min(
                self.hard_cap_usd,
                rank_caps.get(ranks.get(settlement.user_id), self.hard_cap_usd),
            )
            if settlement.grand_total <= cap:
                continue

            breach = CapBreachDetected(
                settlement.user_id, settlement.period_key, settlement.grand_total, cap
            )
            capped = cap_settlement(
                SettlementRollup(
                    user_id=settlement.user_id,
                    direct_total=settlement.direct_total,
                    binary_total=settlement.binary_total,
                    override_total=settlement.override_total,
                ),
                cap,
            )
            settlement.uncapped_total = settlement.grand_total
            settlement.direct_total = capped.direct_total
            settlement.binary_total = capped.binary_total
            settlement.override_total = capped.override_total
            settlement.grand_total = capped.grand_total
            settlement.cap_applied = True

            self.logger.warning(str(breach))
            breaches.append(breach)

        await self.session.flush()
        return breaches

    # === d. Global ratio audit ===

    async def audit_global_ratio(
        self, current_period: str, excluded_periods: set[str]
    ) -> tuple[list[str], Decimal, Decimal, Decimal, bool]:
        """
        Trailing payout / volume ratio against the global ceiling.

        Detective only: nothing is modified.

        Returns:
            (periods, volume, payouts, ratio, alert)
        """
        periods = [
            key
            for key in trailing_period_keys(current_period, self.audit_trailing_periods)
            if key not in excluded_periods
        ]
        volume = await self.ledger_repo.get_sales_volume(periods)
        payouts = await self.settlement_repo.get_total_payouts(periods)
        ratio = payouts / volume if volume > 0 else Decimal("0")
        alert = ratio > self.global_payout_ratio

        if alert:
            self.logger.bind(alert="global_payout_ratio").critical(
                f"Payout ratio {ratio:.4f} over {periods} exceeds "
                f"{self.global_payout_ratio}: payouts {payouts}, volume {volume}"
            )
        else:
            self.logger.info(f"Payout ratio {ratio:.4f} within {self.global_payout_ratio}")
        return periods, volume, payouts, ratio, alert
