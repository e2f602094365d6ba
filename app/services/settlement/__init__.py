"""
Settlement services.

Merkle finalization of weekly settlements and claim verification.
"""

from app.services.settlement.finalization_service import (
    ClaimVerification,
    FinalizeResult,
    SettlementFinalizationService,
)

__all__ = [
    "SettlementFinalizationService",
    "FinalizeResult",
    "ClaimVerification",
]
