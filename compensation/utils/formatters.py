"""
Formatting utilities for payout audit output.

Money and factors are formatted from Decimal without going through float,
so operator logs show exactly what was persisted.
"""

from decimal import ROUND_DOWN, Decimal
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from compensation.core.models import ScalingResult


def format_currency(
    amount: Decimal | int,
    currency: str = "USDT",
    decimals: int = 2,
) -> str:
    """
    Format an amount with thousands separators.

    Example:
        >>> format_currency(Decimal("1234.567"))
        '1,234.56 USDT'
        >>> format_currency(1000, currency="$", decimals=0)
        '$1,000'
    """
    quantum = Decimal(1).scaleb(-decimals)
    formatted = f"{Decimal(amount).quantize(quantum, rounding=ROUND_DOWN):,}"

    if currency.startswith("$"):
        return f"{currency}{formatted}"
    return f"{formatted} {currency}"


def format_percentage(value: Decimal, decimals: int = 2) -> str:
    """
    Format a fraction as a percentage.

    Example:
        >>> format_percentage(Decimal("0.17"))
        '17.00%'
    """
    quantum = Decimal(1).scaleb(-decimals)
    return f"{(Decimal(value) * 100).quantize(quantum, rounding=ROUND_DOWN)}%"


def format_factor(value: Decimal, decimals: int = 6) -> str:
    """Scale factor truncated for display (1 stays '1.000000')."""
    quantum = Decimal(1).scaleb(-decimals)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_DOWN))


def format_scaling_result(
    result: "ScalingResult",
    currency: str = "USDT",
) -> str:
    """
    Multi-line operator report for a period's pool scaling.

    Args:
        result: Pass 2 output
        currency: Currency label

    Returns:
        Report text
    """
    lines = [
        f"Period {result.period_key}",
        f"  Sales volume: {format_currency(result.sales_volume, currency)}",
        f"  Global cap:   {format_currency(result.global_cap, currency)}",
        "",
        f"  {'pool':<10}{'budget':>22}{'unscaled':>22}{'scaled':>22}{'factor':>12}",
    ]
    for pool in ("direct", "binary", "override"):
        lines.append(
            f"  {pool:<10}"
            f"{format_currency(getattr(result.budgets, pool), currency):>22}"
            f"{format_currency(getattr(result.unscaled, pool), currency):>22}"
            f"{format_currency(getattr(result.scaled, pool), currency):>22}"
            f"{format_factor(getattr(result.factors, pool)):>12}"
        )
    lines += [
        "",
        f"  Global factor: {format_factor(result.factors.global_factor)}",
        f"  Total paid:    {format_currency(result.scaled.total, currency)}",
        f"  Users:         {len(result.settlements)}",
    ]
    return "\n".join(lines)
