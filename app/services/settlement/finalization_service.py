"""
Settlement finalization service.

Publishes a period's settlements as a Merkle root. This is irreversible:
once proofs are distributed a root cannot be replaced, so finalize runs
at most once per period and writes nothing unless the tree was rebuilt
identically and every proof verified.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ContractStatus, SettlementStatus
from app.models.weekly_settlement import WeeklySettlement
from app.repositories.commission_record_repository import (
    CommissionRecordRepository,
)
from app.repositories.participant_repository import ParticipantRepository
from app.repositories.settlement_batch_meta_repository import (
    SettlementBatchMetaRepository,
)
from app.repositories.weekly_settlement_repository import (
    WeeklySettlementRepository,
)
from app.services.base_service import BaseService, log_operation, transaction
from app.utils.datetime_utils import parse_period_key
from compensation.constants import PAYOUT_TOKEN_DECIMALS
from compensation.core.merkle import (
    MerkleTree,
    SettlementLeaf,
    from_hex,
    from_smallest_unit,
    hash_leaf,
    period_timestamp,
    to_hex,
    to_smallest_unit,
    verify_proof,
)
from compensation.exceptions import (
    AlreadyFinalizedError,
    ConsistencyError,
    ValidationError,
)


@dataclass
class FinalizeResult:
    """Published batch."""

    period_key: str
    merkle_root: str
    total_users: int
    total_leaves: int
    total_amount: Decimal
    period_timestamp: int
    token_decimals: int
    excluded: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_amount"] = str(self.total_amount)
        return data


@dataclass
class ClaimVerification:
    """Result of re-checking a stored proof against the published root."""

    period_key: str
    user_id: int
    valid: bool
    wallet_address: str | None = None
    amount: int = 0
    leaf_hash: str | None = None
    merkle_root: str | None = None
    proof: list[str] = field(default_factory=list)
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SettlementFinalizationService(BaseService):
    """
    Merkle settlement finalization and claim verification.

    Example:
        >>> service = SettlementFinalizationService(session)
        >>> result = await service.finalize("2025-01-06")
        >>> result.merkle_root
        '0x...'
    """

    def __init__(
        self,
        session: AsyncSession,
        token_decimals: int = PAYOUT_TOKEN_DECIMALS,
        **kwargs,
    ) -> None:
        """
        Initialize finalization service.

        Args:
            session: Async database session
            token_decimals: Smallest-unit scaling of leaf amounts
            **kwargs: Lock options for :class:`BaseService`
        """
        super().__init__(session, **kwargs)
        self.token_decimals = token_decimals
        self.settlement_repo = WeeklySettlementRepository(session)
        self.commission_repo = CommissionRecordRepository(session)
        self.batch_repo = SettlementBatchMetaRepository(session)
        self.participant_repo = ParticipantRepository(session)

    @log_operation
    async def finalize(self, period_key: str) -> FinalizeResult:
        """
        Build, verify and publish the period's Merkle root.

        Args:
            period_key: Settlement week (Monday, YYYY-MM-DD)

        Returns:
            Published batch

        Raises:
            ValidationError: Malformed key or nothing to finalize
            AlreadyFinalizedError: A root was already published
            ConsistencyError: Leaves or proofs failed verification
            PeriodLockedError: Another run holds the period
        """
        parse_period_key(period_key)

        async with self.period_lock(period_key):
            return await self._finalize_locked(period_key)

    @transaction
    async def _finalize_locked(self, period_key: str) -> FinalizeResult:
        if await self.batch_repo.is_finalized(period_key) or (
            await self.settlement_repo.has_non_pending(period_key)
        ):
            self.logger.warning(f"Rejected re-finalization of {period_key}")
            raise AlreadyFinalizedError(period_key)

        settlements = await self.settlement_repo.get_by_period(period_key, for_update=True)
        if not settlements:
            raise ValidationError(f"No settlements for {period_key}; run calculate first")

        wallets = await self.participant_repo.get_wallets(list(settlements))
        ts = period_timestamp(parse_period_key(period_key))

        try:
            leaves, excluded = self.build_leaves(settlements.values(), wallets, ts)
            if not leaves:
                raise ValidationError(
                    f"No payable settlements with a wallet for {period_key}"
                )
            tree, proofs = self.build_verified_tree(leaves)
        except ConsistencyError as e:
            self.logger.error(f"Consistency failure finalizing {period_key}: {e}")
            raise

        paid_users = 0
        for leaf in leaves:
            for user_id in leaf.user_ids:
                settlement = settlements[user_id]
                settlement.wallet_address = leaf.wallet_address
                settlement.leaf_hash = to_hex(leaf.leaf)
                settlement.merkle_proof = proofs[leaf.wallet_address]
                settlement.status = SettlementStatus.READY_TO_CLAIM.value
                paid_users += 1

        # Funded amount is what the leaves commit, not the unrounded totals
        total_amount = from_smallest_unit(
            sum(leaf.amount for leaf in leaves), self.token_decimals
        )

        self.batch_repo.add(
            period_key=period_key,
            merkle_root=tree.root_hex,
            total_users=paid_users,
            total_amount=total_amount,
            token_decimals=self.token_decimals,
            period_timestamp=ts,
            contract_status=ContractStatus.READY.value,
        )
        await self.commission_repo.mark_finalized(period_key)
        await self.session.flush()

        self.logger.info(
            f"Finalized {period_key}: {len(leaves)} leaves for {paid_users} users, "
            f"root {tree.root_hex}, total {total_amount}, {len(excluded)} excluded"
        )
        return FinalizeResult(
            period_key=period_key,
            merkle_root=tree.root_hex,
            total_users=paid_users,
            total_leaves=len(leaves),
            total_amount=total_amount,
            period_timestamp=ts,
            token_decimals=self.token_decimals,
            excluded=excluded,
        )

    def build_leaves(
        self,
        settlements,
        wallets: dict[int, str | None],
        ts: int,
    ) -> tuple[list[SettlementLeaf], list[dict[str, Any]]]:
        """
        Encode one leaf per wallet with payable settlements.

        Settlements with a zero total, no wallet, or an amount below one
        token unit are left out and reported. Participants sharing a wallet
        get a single leaf with the sum of their amounts, since a wallet can
        claim a period only once.

        Raises:
            ConsistencyError: A wallet or amount cannot be encoded
        """
        by_wallet: dict[str, list[tuple[int, int]]] = {}
        excluded = []
        for settlement in sorted(settlements, key=lambda s: s.user_id):
            wallet = wallets.get(settlement.user_id)
            if settlement.grand_total <= 0:
                excluded.append({"user_id": settlement.user_id, "reason": "zero total"})
                continue
            if not wallet:
                excluded.append({"user_id": settlement.user_id, "reason": "no wallet address"})
                continue

            amount = to_smallest_unit(settlement.grand_total, self.token_decimals)
            if amount <= 0:
                excluded.append(
                    {"user_id": settlement.user_id, "reason": "below token precision"}
                )
                continue

            by_wallet.setdefault(wallet.lower(), []).append((settlement.user_id, amount))

        leaves = []
        for wallet, shares in by_wallet.items():
            amount = sum(share for _, share in shares)
            if len(shares) > 1:
                self.logger.info(
                    f"Merged {len(shares)} settlements into one leaf for wallet {wallet}"
                )
            leaves.append(
                SettlementLeaf(
                    user_ids=tuple(user_id for user_id, _ in shares),
                    wallet_address=wallet,
                    period_timestamp=ts,
                    amount=amount,
                    leaf=hash_leaf(wallet, ts, amount),
                )
            )
        return leaves, excluded

    @staticmethod
    def build_verified_tree(
        leaves: list[SettlementLeaf],
    ) -> tuple[MerkleTree, dict[str, list[str]]]:
        """
        Build the tree twice from different input orders and check proofs.

        Returns:
            The tree and hex proofs by wallet address

        Raises:
            ConsistencyError: Roots differ or a proof does not verify
        """
        tree = MerkleTree(leaf.leaf for leaf in leaves)
        rebuilt = MerkleTree(leaf.leaf for leaf in reversed(leaves))
        if rebuilt.root != tree.root:
            raise ConsistencyError(
                f"Merkle root is not reproducible: {tree.root_hex} != {rebuilt.root_hex}"
            )

        proofs = {}
        for leaf in leaves:
            proof = tree.proof(leaf.leaf)
            if not verify_proof(leaf.leaf, proof, tree.root):
                raise ConsistencyError(
                    f"Proof for wallet {leaf.wallet_address} does not verify "
                    f"against {tree.root_hex}"
                )
            proofs[leaf.wallet_address] = [to_hex(node) for node in proof]
        return tree, proofs

    async def verify_claim(self, period_key: str, user_id: int) -> ClaimVerification:
        """
        Re-encode a user's leaf and verify the stored proof.

        The leaf amount is rebuilt from every settlement of the period
        published under the user's wallet.

        Args:
            period_key: Finalized settlement week
            user_id: Claimant

        Returns:
            Verification outcome

        Raises:
            ValidationError: Period not finalized or no claimable settlement
        """
        parse_period_key(period_key)

        batch = await self.batch_repo.get_by_period(period_key)
        if batch is None:
            raise ValidationError(f"Period {period_key} is not finalized")

        settlement: WeeklySettlement | None = await self.settlement_repo.get_by(
            user_id=user_id, period_key=period_key
        )
        if settlement is None or settlement.merkle_proof is None:
            raise ValidationError(
                f"User {user_id} has no claimable settlement for {period_key}"
            )

        shared = await self.settlement_repo.get_by_wallet(
            period_key, settlement.wallet_address
        )
        amount = sum(
            to_smallest_unit(s.grand_total, batch.token_decimals) for s in shared
        )
        leaf = hash_leaf(settlement.wallet_address, batch.period_timestamp, amount)
        result = ClaimVerification(
            period_key=period_key,
            user_id=user_id,
            valid=False,
            wallet_address=settlement.wallet_address,
            amount=amount,
            leaf_hash=to_hex(leaf),
            merkle_root=batch.merkle_root,
            proof=list(settlement.merkle_proof),
        )

        if settlement.leaf_hash != to_hex(leaf):
            result.reason = "stored leaf does not match settlement data"
        elif not verify_proof(
            leaf,
            [from_hex(node) for node in settlement.merkle_proof],
            from_hex(batch.merkle_root),
        ):
            result.reason = "proof does not reconstruct the published root"
        else:
            result.valid = True

        if not result.valid:
            self.logger.warning(
                f"Claim check failed for user {user_id} in {period_key}: {result.reason}"
            )
        return result
