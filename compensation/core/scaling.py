"""
Pool scaling normalizer (pass 2).

Aggregates every participant's unscaled amounts per pool, then applies
two independent clamps: a per-pool factor against each pool budget and a
global factor against the aggregate payout ceiling.

All arithmetic runs in a floor-rounding decimal context and final amounts
are truncated to money precision, so rounding can never push a total over
its budget.
"""

from collections import defaultdict
from collections.abc import Iterable
from decimal import ROUND_DOWN, ROUND_FLOOR, Decimal, localcontext
from functools import reduce

from compensation.constants import MONEY_QUANTUM
from compensation.core.config import CompensationConfig
from compensation.core.models import (
    CalculationPass,
    CommissionLine,
    CommissionType,
    PoolTotals,
    ScaledCommission,
    ScaleFactors,
    ScalingResult,
    SettlementRollup,
)


_ZERO = Decimal("0")
_ONE = Decimal("1")
_PRECISION = 50


def _clamp_factor(limit: Decimal, total: Decimal) -> Decimal:
    """min(1, limit / total); 1 when there is nothing to scale."""
    if total <= 0:
        return _ONE
    return min(_ONE, limit / total)


class PoolScalingNormalizer:
    """
    Two-layer proportional clamp over a period's commissions.

    Example:
        >>> normalizer = PoolScalingNormalizer()
        >>> result = normalizer.apply(calculation_pass)
        >>> result.factors.direct, result.factors.global_factor
    """

    def __init__(self, config: CompensationConfig | None = None) -> None:
        self.config = config or CompensationConfig()

    def budgets(self, sales_volume: Decimal) -> PoolTotals:
        """Per-pool budget = pool rate x SV."""
        return PoolTotals(
            **{
                pool.value: sales_volume * self.config.pool_rates[pool]
                for pool in CommissionType
            }
        )

    def global_cap(self, sales_volume: Decimal) -> Decimal:
        """Aggregate ceiling = global payout ratio x SV."""
        return sales_volume * self.config.global_payout_ratio

    @staticmethod
    def aggregate(lines: Iterable[CommissionLine]) -> PoolTotals:
        """Sum unscaled base amounts per pool (a fold, no shared state)."""
        return reduce(
            lambda totals, line: totals.add(line.commission_type, line.base_amount),
            lines,
            PoolTotals(),
        )

    def compute_factors(
        self, sales_volume: Decimal, unscaled: PoolTotals
    ) -> ScaleFactors:
        """
        Pool factors first, then the global factor over post-pool totals.

        With zero SV there is no budget: factors stay at 1 and
        :meth:`apply` pays nothing.
        """
        if sales_volume <= 0:
            return ScaleFactors()

        budgets = self.budgets(sales_volume)
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            ctx.rounding = ROUND_FLOOR

            pool_factors = {
                pool: _clamp_factor(budgets.get(pool), unscaled.get(pool))
                for pool in CommissionType
            }
            post_pool_total = sum(
                (unscaled.get(pool) * pool_factors[pool] for pool in CommissionType),
                _ZERO,
            )
            global_factor = _clamp_factor(
                self.global_cap(sales_volume), post_pool_total
            )

        return ScaleFactors(
            direct=pool_factors[CommissionType.DIRECT],
            binary=pool_factors[CommissionType.BINARY],
            override=pool_factors[CommissionType.OVERRIDE],
            global_factor=global_factor,
        )

    def scale_line(
        self, line: CommissionLine, factors: ScaleFactors, pays_out: bool = True
    ) -> ScaledCommission:
        """base x pool factor x global factor, truncated to money precision."""
        pool_factor = factors.pool(line.commission_type)
        if not pays_out:
            scaled = _ZERO
        else:
            with localcontext() as ctx:
                ctx.prec = _PRECISION
                ctx.rounding = ROUND_FLOOR
                scaled = (line.base_amount * pool_factor * factors.global_factor).quantize(
                    MONEY_QUANTUM, rounding=ROUND_DOWN
                )
        return ScaledCommission(
            line=line,
            pool_factor=pool_factor,
            global_factor=factors.global_factor,
            scaled_amount=scaled,
        )

    def apply(self, calculation: CalculationPass) -> ScalingResult:
        """
        Scale every line of pass 1 and roll the results up per user.

        This is the synchronization point of a run: it needs the complete
        set of base amounts for the period.
        """
        sales_volume = calculation.sales_volume
        unscaled = self.aggregate(calculation.lines)
        factors = self.compute_factors(sales_volume, unscaled)
        pays_out = sales_volume > 0

        commissions = tuple(
            self.scale_line(line, factors, pays_out) for line in calculation.lines
        )
        scaled = reduce(
            lambda totals, c: totals.add(c.line.commission_type, c.scaled_amount),
            commissions,
            PoolTotals(),
        )

        return ScalingResult(
            period_key=calculation.period_key,
            sales_volume=sales_volume,
            budgets=self.budgets(sales_volume),
            global_cap=self.global_cap(sales_volume),
            unscaled=unscaled,
            scaled=scaled,
            factors=factors,
            commissions=commissions,
            settlements=tuple(rollup_settlements(commissions)),
        )


def cap_settlement(rollup: SettlementRollup, cap: Decimal) -> SettlementRollup:
    """
    Scale a rollup down so its grand total does not exceed ``cap``.

    Pool totals shrink proportionally and are truncated, so the capped
    grand total may land a few units below ``cap`` but never above it.
    """
    total = rollup.grand_total
    if total <= cap:
        return rollup

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        ctx.rounding = ROUND_FLOOR
        factor = cap / total
        capped = {
            name: (getattr(rollup, name) * factor).quantize(
                MONEY_QUANTUM, rounding=ROUND_DOWN
            )
            for name in ("direct_total", "binary_total", "override_total")
        }
    return rollup.model_copy(update=capped)


def rollup_settlements(
    commissions: Iterable[ScaledCommission],
) -> list[SettlementRollup]:
    """Per-user direct/binary/override totals, ordered by user id."""
    totals: dict[int, PoolTotals] = defaultdict(PoolTotals)
    for commission in commissions:
        line = commission.line
        totals[line.user_id] = totals[line.user_id].add(
            line.commission_type, commission.scaled_amount
        )

    return [
        SettlementRollup(
            user_id=user_id,
            direct_total=pool_totals.direct,
            binary_total=pool_totals.binary,
            override_total=pool_totals.override,
        )
        for user_id, pool_totals in sorted(totals.items())
    ]
