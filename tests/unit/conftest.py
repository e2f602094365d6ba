"""
Shared fixtures for unit tests.

This module provides common fixtures used across multiple test modules:
- Engine configuration and calculator/normalizer instances
- A small participant graph snapshot builder
- Wallet addresses for Merkle leaves
"""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from compensation.core.calculators import CommissionCalculator
from compensation.core.config import CompensationConfig
from compensation.core.models import (
    BinaryNode,
    LedgerEntry,
    ParticipantNode,
    PeriodSnapshot,
)
from compensation.core.scaling import PoolScalingNormalizer


PERIOD_KEY = "2025-01-06"


def make_snapshot(
    participants: list[ParticipantNode],
    sales: dict[int, str] | None = None,
    binary: dict[int, tuple[str, str]] | None = None,
    period_key: str = PERIOD_KEY,
) -> PeriodSnapshot:
    """
    Build a snapshot from plain values.

    Args:
        participants: Participant nodes
        sales: Buyer id mapped to eligible sale amount
        binary: User id mapped to (left volume, right volume)
        period_key: Period of the snapshot
    """
    transactions = tuple(
        LedgerEntry(id=i, user_id=user_id, amount=Decimal(amount), period_key=period_key)
        for i, (user_id, amount) in enumerate(sorted((sales or {}).items()), start=1)
    )
    binary_nodes = {
        user_id: BinaryNode(
            user_id=user_id,
            left_volume=Decimal(left),
            right_volume=Decimal(right),
        )
        for user_id, (left, right) in (binary or {}).items()
    }
    return PeriodSnapshot(
        period_key=period_key,
        period_start=date.fromisoformat(period_key),
        as_of=datetime(2025, 1, 13, tzinfo=UTC),
        participants={p.id: p for p in participants},
        transactions=transactions,
        binary_nodes=binary_nodes,
    )


@pytest.fixture
def snapshot_factory():
    """Snapshot builder, see :func:`make_snapshot`."""
    return make_snapshot


@pytest.fixture
def config():
    """Default production rate card."""
    return CompensationConfig()


@pytest.fixture
def calculator(config):
    """
    Create CommissionCalculator with the default rate card.

    Returns:
        CommissionCalculator: Calculator instance for testing
    """
    return CommissionCalculator(config)


@pytest.fixture
def normalizer(config):
    """Create PoolScalingNormalizer with the default rate card."""
    return PoolScalingNormalizer(config)


@pytest.fixture
def sponsor_chain():
    """
    Linear sponsor chain 1 <- 2 <- 3 <- 4 <- 5.

    Participant 5 is the buyer; 4 is its direct sponsor.
    """
    return [
        ParticipantNode(id=1),
        ParticipantNode(id=2, sponsor_id=1),
        ParticipantNode(id=3, sponsor_id=2),
        ParticipantNode(id=4, sponsor_id=3),
        ParticipantNode(id=5, sponsor_id=4),
    ]


@pytest.fixture
def binary_downline():
    """
    Binary placement tree.

        1
       / \\
      2   3
     /
    4

    Every participant is also sponsored by its binary parent.
    """
    return [
        ParticipantNode(id=1),
        ParticipantNode(id=2, sponsor_id=1, binary_parent_id=1, binary_position="left"),
        ParticipantNode(id=3, sponsor_id=1, binary_parent_id=1, binary_position="right"),
        ParticipantNode(id=4, sponsor_id=2, binary_parent_id=2, binary_position="left"),
    ]


@pytest.fixture
def wallets():
    """Three checksummed-case wallet addresses."""
    return [
        "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0",
        "0x55d398326f99059fF775485246999027B3197955",
        "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4",
    ]
