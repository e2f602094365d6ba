"""
Commission calculation services.

Snapshot reading, the calculation run and idempotent persistence.
"""

from app.services.commission.calculation_service import (
    CommissionCalculationService,
    RunSummary,
)
from app.services.commission.settlement_persister import (
    PersistResult,
    SettlementPersister,
)
from app.services.commission.snapshot_reader import SnapshotReader

__all__ = [
    "CommissionCalculationService",
    "RunSummary",
    "SettlementPersister",
    "PersistResult",
    "SnapshotReader",
]
