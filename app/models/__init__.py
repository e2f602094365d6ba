"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base

# Read-only graph and ledger
from app.models.binary_tree import BinaryTree
from app.models.ledger_transaction import LedgerTransaction
from app.models.participant import Participant
from app.models.rank_weekly_cap import RankWeeklyCap

# Volumes maintained by the safety valve
from app.models.binary_volume import BinaryVolume
from app.models.ghost_volume import GhostVolume

# Payout records
from app.models.commission_record import CommissionRecord
from app.models.settlement_batch_meta import SettlementBatchMeta
from app.models.weekly_settlement import WeeklySettlement

from app.models.enums import (
    CommissionStatus,
    ContractStatus,
    GhostVolumeStatus,
    SettlementStatus,
)


__all__ = [
    "Base",
    "BinaryTree",
    "LedgerTransaction",
    "Participant",
    "RankWeeklyCap",
    "BinaryVolume",
    "GhostVolume",
    "CommissionRecord",
    "SettlementBatchMeta",
    "WeeklySettlement",
    "CommissionStatus",
    "ContractStatus",
    "GhostVolumeStatus",
    "SettlementStatus",
]
