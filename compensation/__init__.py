"""
Weekly compensation engine.

Standalone package with the pure payout computation: commission
calculators, pool scaling and the Merkle settlement builder. Nothing here
touches the database or the environment.

Example:
    >>> from compensation import CommissionCalculator, PoolScalingNormalizer
    >>>
    >>> calculation = CommissionCalculator().run(snapshot)
    >>> result = PoolScalingNormalizer().apply(calculation)
    >>> print(result.factors.direct)
    0.8
"""

from compensation.core import (
    CalculationPass,
    CommissionCalculator,
    CommissionLine,
    CommissionType,
    CompensationConfig,
    MerkleTree,
    PeriodSnapshot,
    PoolScalingNormalizer,
    ScaleFactors,
    ScalingResult,
    SettlementRollup,
)
from compensation.exceptions import (
    AlreadyFinalizedError,
    CapBreachDetected,
    CompensationError,
    ConsistencyError,
    PartialComputeError,
    ValidationError,
)
from compensation.utils import format_currency, format_percentage, format_scaling_result


__version__ = "1.0.0"
__all__ = [
    # Core
    "CommissionCalculator",
    "PoolScalingNormalizer",
    "MerkleTree",
    "CompensationConfig",
    # Models
    "CalculationPass",
    "CommissionLine",
    "CommissionType",
    "PeriodSnapshot",
    "ScaleFactors",
    "ScalingResult",
    "SettlementRollup",
    # Errors
    "CompensationError",
    "ValidationError",
    "AlreadyFinalizedError",
    "PartialComputeError",
    "ConsistencyError",
    "CapBreachDetected",
    # Formatters
    "format_currency",
    "format_percentage",
    "format_scaling_result",
]
