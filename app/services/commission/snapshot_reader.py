"""
Period snapshot reader.

Reads ledger, participant graph and binary volumes for one calculation
run and converts them into immutable engine models. Ghost volume that is
not active at the snapshot time is taken out of the leg volumes, so the
result does not depend on when the safety valve last ran.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.binary_tree_repository import BinaryTreeRepository
from app.repositories.ghost_volume_repository import GhostVolumeRepository
from app.repositories.ledger_transaction_repository import (
    LedgerTransactionRepository,
)
from app.repositories.participant_repository import ParticipantRepository
from app.utils.datetime_utils import parse_period_key, utc_now
from compensation.constants import GHOST_VOLUME_TTL_DAYS
from compensation.core.models import (
    BinaryNode,
    LedgerEntry,
    ParticipantNode,
    PeriodSnapshot,
)


_ZERO = Decimal("0")


class SnapshotReader:
    """
    Single consistent read of everything a calculation run needs.

    The session should be opened at REPEATABLE READ (or stricter) so all
    queries of :meth:`read` see the same database state.
    """

    def __init__(
        self, session: AsyncSession, ghost_ttl_days: int = GHOST_VOLUME_TTL_DAYS
    ) -> None:
        """
        Initialize snapshot reader.

        Args:
            session: Snapshot session
            ghost_ttl_days: Maximum ghost volume lifetime
        """
        self.session = session
        self.participant_repo = ParticipantRepository(session)
        self.ledger_repo = LedgerTransactionRepository(session)
        self.tree_repo = BinaryTreeRepository(session)
        self.ghost_repo = GhostVolumeRepository(session, ttl_days=ghost_ttl_days)
        self.logger = logger.bind(service=self.__class__.__name__)

    async def read(
        self, period_key: str, as_of: datetime | None = None
    ) -> PeriodSnapshot:
        """
        Read the period snapshot.

        Args:
            period_key: Settlement week (Monday, YYYY-MM-DD)
            as_of: Ghost volume reference time (defaults to now)

        Returns:
            Immutable snapshot

        Raises:
            ValidationError: Malformed period key
        """
        period_start = parse_period_key(period_key)
        as_of = as_of or utc_now()

        participants = await self.participant_repo.get_all_ordered()
        transactions = await self.ledger_repo.get_by_period(period_key)
        tree_rows = await self.tree_repo.get_all_ordered()
        ghost_rows = await self.ghost_repo.get_inactive_unflushed(as_of)

        ghost_adjustments: dict[tuple[int, str], Decimal] = defaultdict(lambda: _ZERO)
        for ghost in ghost_rows:
            leg = "right" if ghost.pay_leg == "right" else "left"
            ghost_adjustments[(ghost.user_id, leg)] += ghost.amount

        binary_nodes = {}
        for row in tree_rows:
            left = row.left_volume - ghost_adjustments.get((row.user_id, "left"), _ZERO)
            right = row.right_volume - ghost_adjustments.get((row.user_id, "right"), _ZERO)
            binary_nodes[row.user_id] = BinaryNode(
                user_id=row.user_id,
                left_leg_id=row.left_leg_id,
                right_leg_id=row.right_leg_id,
                # Negative stored volume is kept so the calculator can skip it
                left_volume=max(_ZERO, left) if row.left_volume >= 0 else row.left_volume,
                right_volume=max(_ZERO, right) if row.right_volume >= 0 else row.right_volume,
            )

        snapshot = PeriodSnapshot(
            period_key=period_key,
            period_start=period_start,
            as_of=as_of,
            participants={
                p.id: ParticipantNode(
                    id=p.id,
                    sponsor_id=p.sponsor_id,
                    binary_parent_id=p.binary_parent_id,
                    binary_position=p.binary_position,
                    wallet_address=p.wallet_address,
                    rank=p.rank,
                )
                for p in participants
            },
            transactions=tuple(
                LedgerEntry(
                    id=tx.id,
                    user_id=tx.user_id,
                    amount=tx.amount,
                    period_key=tx.period_key,
                    eligible=tx.is_eligible,
                )
                for tx in transactions
            ),
            binary_nodes=binary_nodes,
        )

        self.logger.info(
            f"Snapshot for {period_key}: {len(snapshot.participants)} participants, "
            f"{len(snapshot.transactions)} transactions, "
            f"{len(binary_nodes)} binary nodes, "
            f"{len(ghost_rows)} inactive ghost volume rows excluded",
            extra={"period_key": period_key, "as_of": as_of.isoformat()},
        )
        return snapshot
