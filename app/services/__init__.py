"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from app.services.base_service import BaseService, log_operation, transaction

# Calculation
from app.services.commission import (
    CommissionCalculationService,
    PersistResult,
    RunSummary,
    SettlementPersister,
    SnapshotReader,
)

# Maintenance
from app.services.safety_valve_service import (
    SafetyValveReport,
    SafetyValveService,
)

# Settlement
from app.services.settlement import (
    ClaimVerification,
    FinalizeResult,
    SettlementFinalizationService,
)


__all__ = [
    # Base
    "BaseService",
    "log_operation",
    "transaction",
    # Calculation
    "CommissionCalculationService",
    "PersistResult",
    "RunSummary",
    "SettlementPersister",
    "SnapshotReader",
    # Settlement
    "ClaimVerification",
    "FinalizeResult",
    "SettlementFinalizationService",
    # Maintenance
    "SafetyValveReport",
    "SafetyValveService",
]
