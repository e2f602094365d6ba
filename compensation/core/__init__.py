"""
Core compensation functionality.

Calculators, pool scaling and the Merkle settlement builder, plus the
models they exchange.
"""

from compensation.core.models import (
    BinaryNode,
    BinaryPosition,
    CalculationPass,
    CommissionLine,
    CommissionType,
    LedgerEntry,
    ParticipantNode,
    PeriodSnapshot,
    PoolTotals,
    ScaledCommission,
    ScaleFactors,
    ScalingResult,
    SettlementRollup,
    SkippedParticipant,
)
from compensation.core.config import CompensationConfig
from compensation.core.calculators import CommissionCalculator, consolidate_lines
from compensation.core.scaling import (
    PoolScalingNormalizer,
    cap_settlement,
    rollup_settlements,
)
from compensation.core.merkle import (
    MerkleTree,
    SettlementLeaf,
    hash_leaf,
    hash_pair,
    verify_proof,
)

__all__ = [
    "CommissionCalculator",
    "PoolScalingNormalizer",
    "MerkleTree",
    "CompensationConfig",
    "BinaryNode",
    "BinaryPosition",
    "CalculationPass",
    "CommissionLine",
    "CommissionType",
    "LedgerEntry",
    "ParticipantNode",
    "PeriodSnapshot",
    "PoolTotals",
    "ScaledCommission",
    "ScaleFactors",
    "ScalingResult",
    "SettlementLeaf",
    "SettlementRollup",
    "SkippedParticipant",
    "consolidate_lines",
    "rollup_settlements",
    "cap_settlement",
    "hash_leaf",
    "hash_pair",
    "verify_proof",
]
