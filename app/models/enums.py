"""
Enums for payout models.
"""

from enum import StrEnum


class SettlementStatus(StrEnum):
    """Weekly settlement lifecycle."""

    PENDING = "pending"  # Written by calculate, may be overwritten
    READY_TO_CLAIM = "ready_to_claim"  # Merkle proof attached at finalize
    PAID = "paid"  # Claimed on-chain


class CommissionStatus(StrEnum):
    """Commission record status, follows its settlement."""

    PENDING = "pending"
    FINALIZED = "finalized"


class GhostVolumeStatus(StrEnum):
    """Ghost volume lifecycle."""

    ACTIVE = "active"
    EXPIRED = "expired"


class ContractStatus(StrEnum):
    """Settlement batch state as seen by the funding step."""

    READY = "ready"  # Root computed, not funded yet
    FUNDED = "funded"
    PUBLISHED = "published"
