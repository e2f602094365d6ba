"""
Service-level tests with mocked sessions and repositories.

Tests cover:
- Idempotent persistence (update in place, stale rows removed)
- Calculation run orchestration and period locking
- Finalization: leaves, proofs, rejection of re-finalization, no root
  written on a consistency failure, claim verification
- Safety valve: each sub-task isolated, cap backstop, ratio audit
- Snapshot reader ghost volume adjustment
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.enums import GhostVolumeStatus, SettlementStatus
from app.services.commission import (
    CommissionCalculationService,
    PersistResult,
    SettlementPersister,
    SnapshotReader,
)
from app.services.safety_valve_service import (
    GHOST_VOLUME_EXPIRY,
    SafetyValveService,
)
from app.services.settlement import SettlementFinalizationService
from app.utils.distributed_lock import (
    DistributedLock,
    PeriodLockedError,
    period_lock_key,
)
from compensation.core.merkle import from_hex, verify_proof
from compensation.core.models import (
    CalculationPass,
    CommissionLine,
    CommissionType,
    LedgerEntry,
    ParticipantNode,
    PeriodSnapshot,
)
from compensation.core.scaling import PoolScalingNormalizer
from compensation.exceptions import (
    AlreadyFinalizedError,
    ConsistencyError,
    ValidationError,
)


PERIOD_KEY = "2025-01-06"
WALLET_A = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
WALLET_B = "0x55d398326f99059fF775485246999027B3197955"

LOCK_OPTIONS = {"lock_timeout": 60, "lock_wait": 0}


def _scaling_result():
    """Scaled result for two earners: user 1 direct+binary, user 2 direct."""
    lines = (
        CommissionLine(
            user_id=1,
            commission_type=CommissionType.DIRECT,
            tier=1,
            basis=Decimal("1000"),
            rate=Decimal("0.10"),
            base_amount=Decimal("100"),
            source_user_id=3,
        ),
        CommissionLine(
            user_id=1,
            commission_type=CommissionType.BINARY,
            tier=1,
            basis=Decimal("400"),
            rate=Decimal("0.10"),
            base_amount=Decimal("40"),
            source_user_id=1,
        ),
        CommissionLine(
            user_id=2,
            commission_type=CommissionType.DIRECT,
            tier=2,
            basis=Decimal("1000"),
            rate=Decimal("0.05"),
            base_amount=Decimal("50"),
            source_user_id=3,
        ),
    )
    return PoolScalingNormalizer().apply(
        CalculationPass(period_key=PERIOD_KEY, sales_volume=Decimal("10000"), lines=lines)
    )


def _settlement(user_id, grand_total, period_key=PERIOD_KEY, **extra):
    values = {
        "id": user_id * 10,
        "user_id": user_id,
        "period_key": period_key,
        "direct_total": grand_total,
        "binary_total": Decimal("0"),
        "override_total": Decimal("0"),
        "grand_total": grand_total,
        "status": SettlementStatus.PENDING.value,
        "cap_applied": False,
        "uncapped_total": None,
        "wallet_address": None,
        "leaf_hash": None,
        "merkle_proof": None,
    }
    values.update(extra)
    return SimpleNamespace(**values)


def _open_period_repos(service):
    """Period has no published root and every settlement is pending."""
    service.batch_repo = MagicMock()
    service.batch_repo.is_finalized = AsyncMock(return_value=False)
    service.batch_repo.get_by_period = AsyncMock(return_value=None)
    service.settlement_repo = MagicMock()
    service.settlement_repo.has_non_pending = AsyncMock(return_value=False)


# === Settlement persister ===


class TestSettlementPersister:
    """Test idempotent upsert of records and settlements."""

    @pytest.fixture
    def persister(self, mock_session):
        persister = SettlementPersister(mock_session, chunk_size=2)
        _open_period_repos(persister)
        persister.settlement_repo.get_by_period = AsyncMock(return_value={})
        persister.settlement_repo.delete_ids = AsyncMock(return_value=0)
        persister.commission_repo = MagicMock()
        persister.commission_repo.get_by_period = AsyncMock(return_value={})
        persister.commission_repo.delete_ids = AsyncMock(return_value=0)
        return persister

    @pytest.mark.asyncio
    async def test_first_run_inserts(self, persister, mock_session):
        counts = await persister.persist(_scaling_result())

        assert counts == PersistResult(records_written=3, settlements_written=2)
        assert persister.commission_repo.add.call_count == 3
        assert persister.settlement_repo.add.call_count == 2
        first = persister.settlement_repo.add.call_args_list[0].kwargs
        assert first["user_id"] == 1
        assert first["grand_total"] == Decimal("140")
        assert first["period_end"] == date(2025, 1, 12)
        assert first["status"] == SettlementStatus.PENDING.value
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rerun_updates_in_place_and_removes_stale(self, persister):
        existing_record = SimpleNamespace(id=11, scaled_amount=Decimal("999"))
        stale_record = SimpleNamespace(id=12)
        persister.commission_repo.get_by_period = AsyncMock(
            return_value={
                (1, "direct", 1): existing_record,
                (1, "override", 1): stale_record,
            }
        )
        existing_settlement = _settlement(1, Decimal("999"), cap_applied=True)
        stale_settlement = _settlement(5, Decimal("10"))
        persister.settlement_repo.get_by_period = AsyncMock(
            return_value={1: existing_settlement, 5: stale_settlement}
        )
        persister.commission_repo.delete_ids = AsyncMock(return_value=1)
        persister.settlement_repo.delete_ids = AsyncMock(return_value=1)

        counts = await persister.persist(_scaling_result())

        assert existing_record.scaled_amount == Decimal("100")
        assert persister.commission_repo.add.call_count == 2
        persister.commission_repo.delete_ids.assert_awaited_once_with([12])
        assert existing_settlement.grand_total == Decimal("140")
        assert existing_settlement.cap_applied is False
        persister.settlement_repo.delete_ids.assert_awaited_once_with([50])
        assert counts.records_deleted == 1
        assert counts.settlements_deleted == 1

    @pytest.mark.asyncio
    async def test_finalized_period_rejected(self, persister, mock_session):
        persister.batch_repo.is_finalized = AsyncMock(return_value=True)

        with pytest.raises(AlreadyFinalizedError):
            await persister.persist(_scaling_result())

        persister.commission_repo.add.assert_not_called()
        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()


# === Calculation run ===


class TestCommissionCalculationService:
    """Test the calculate action."""

    @pytest.fixture
    def snapshot(self):
        return PeriodSnapshot(
            period_key=PERIOD_KEY,
            period_start=date(2025, 1, 6),
            as_of=datetime(2025, 1, 13, tzinfo=UTC),
            participants={
                1: ParticipantNode(id=1),
                2: ParticipantNode(id=2, sponsor_id=1),
                3: ParticipantNode(id=3, sponsor_id=3),
            },
            transactions=(
                LedgerEntry(id=1, user_id=2, amount=Decimal("1000"), period_key=PERIOD_KEY),
            ),
        )

    @pytest.fixture
    def service(self, mock_session, snapshot):
        service = CommissionCalculationService(mock_session, **LOCK_OPTIONS)
        _open_period_repos(service)
        service.reader = MagicMock()
        service.reader.read = AsyncMock(return_value=snapshot)
        service.persister = MagicMock()
        service.persister.persist = AsyncMock(
            return_value=PersistResult(records_written=1, settlements_written=1)
        )
        return service

    @pytest.mark.asyncio
    async def test_run_summary(self, service):
        summary = await service.calculate(PERIOD_KEY)

        assert summary.sales_volume == Decimal("1000")
        assert summary.budgets["direct"] == Decimal("200")
        assert summary.unscaled["direct"] == Decimal("100")
        assert summary.scaled["direct"] == Decimal("100")
        assert summary.factors["global"] == Decimal("1")
        assert summary.skipped == [{"user_id": 3, "reason": "participant sponsors itself"}]
        assert summary.is_partial
        assert summary.settlements_written == 1
        assert summary.to_dict()["sales_volume"] == "1000"

    @pytest.mark.asyncio
    async def test_malformed_key_rejected_before_reads(self, service):
        with pytest.raises(ValidationError):
            await service.calculate("2025-01-07")

        service.reader.read.assert_not_awaited()
        service.persister.persist.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_finalized_period_rejected(self, service):
        service.batch_repo.is_finalized = AsyncMock(return_value=True)

        with pytest.raises(AlreadyFinalizedError):
            await service.calculate(PERIOD_KEY)

        service.persister.persist.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_run_for_same_period_rejected(self, service):
        other_run = DistributedLock()
        token = await other_run.acquire(period_lock_key(PERIOD_KEY), timeout=60)

        with pytest.raises(PeriodLockedError):
            await service.calculate(PERIOD_KEY)

        service.reader.read.assert_not_awaited()
        await other_run.release(period_lock_key(PERIOD_KEY), token)

    @pytest.mark.asyncio
    async def test_lock_released_after_run(self, service):
        await service.calculate(PERIOD_KEY)

        assert await DistributedLock().acquire(period_lock_key(PERIOD_KEY), timeout=1)


# === Finalization ===


def _publish(service, result):
    """Make the finalized batch visible to claim verification."""
    service.batch_repo.get_by_period = AsyncMock(
        return_value=SimpleNamespace(
            merkle_root=result.merkle_root,
            token_decimals=6,
            period_timestamp=result.period_timestamp,
        )
    )


class TestSettlementFinalizationService:
    """Test Merkle finalization and claim verification."""

    @pytest.fixture
    def settlements(self):
        return {
            1: _settlement(1, Decimal("9600")),
            2: _settlement(2, Decimal("10400.12345678")),
            3: _settlement(3, Decimal("50")),  # no wallet
            4: _settlement(4, Decimal("0")),
        }

    @pytest.fixture
    def service(self, mock_session, settlements):
        service = SettlementFinalizationService(mock_session, token_decimals=6, **LOCK_OPTIONS)
        _open_period_repos(service)
        service.settlement_repo.get_by_period = AsyncMock(return_value=settlements)
        service.participant_repo = MagicMock()
        service.participant_repo.get_wallets = AsyncMock(
            return_value={1: WALLET_A, 2: WALLET_B, 3: None, 4: WALLET_A}
        )
        service.commission_repo = MagicMock()
        service.commission_repo.mark_finalized = AsyncMock(return_value=3)
        return service

    @pytest.mark.asyncio
    async def test_finalize_publishes_root_and_proofs(self, service, settlements, mock_session):
        result = await service.finalize(PERIOD_KEY)

        assert result.total_users == 2
        assert result.total_leaves == 2
        assert result.total_amount == Decimal("20000.123456")
        assert result.period_timestamp == 1736121600
        assert {e["user_id"] for e in result.excluded} == {3, 4}

        root = from_hex(result.merkle_root)
        for user_id in (1, 2):
            settlement = settlements[user_id]
            assert settlement.status == SettlementStatus.READY_TO_CLAIM.value
            proof = [from_hex(node) for node in settlement.merkle_proof]
            assert verify_proof(from_hex(settlement.leaf_hash), proof, root)
        assert settlements[1].wallet_address == WALLET_A.lower()
        assert settlements[3].status == SettlementStatus.PENDING.value

        meta = service.batch_repo.add.call_args.kwargs
        assert meta["merkle_root"] == result.merkle_root
        assert meta["contract_status"] == "ready"
        service.commission_repo.mark_finalized.assert_awaited_once_with(PERIOD_KEY)
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_batch_total_matches_leaf_amounts(self, service, settlements):
        settlements.clear()
        settlements.update(
            {
                1: _settlement(1, Decimal("1.23456789")),
                2: _settlement(2, Decimal("2.00000099")),
            }
        )

        result = await service.finalize(PERIOD_KEY)

        # 1234567 + 2000000 smallest units
        assert result.total_amount == Decimal("3.234567")
        assert service.batch_repo.add.call_args.kwargs["total_amount"] == Decimal("3.234567")

    @pytest.mark.asyncio
    async def test_shared_wallet_gets_one_leaf(self, service, settlements):
        settlements[5] = _settlement(5, Decimal("9600"))
        service.participant_repo.get_wallets = AsyncMock(
            return_value={1: WALLET_A, 2: WALLET_B, 5: WALLET_A}
        )

        result = await service.finalize(PERIOD_KEY)

        assert result.total_leaves == 2
        assert result.total_users == 3
        assert result.total_amount == Decimal("29600.123456")
        assert settlements[1].leaf_hash == settlements[5].leaf_hash
        assert settlements[1].merkle_proof == settlements[5].merkle_proof
        assert settlements[5].status == SettlementStatus.READY_TO_CLAIM.value

        _publish(service, result)
        service.settlement_repo.get_by = AsyncMock(return_value=settlements[5])
        service.settlement_repo.get_by_wallet = AsyncMock(
            return_value=[settlements[1], settlements[5]]
        )

        verification = await service.verify_claim(PERIOD_KEY, 5)

        assert verification.valid
        assert verification.amount == 19_200_000_000
        service.settlement_repo.get_by_wallet.assert_awaited_once_with(
            PERIOD_KEY, WALLET_A.lower()
        )

    @pytest.mark.asyncio
    async def test_second_finalize_rejected(self, service):
        service.batch_repo.is_finalized = AsyncMock(return_value=True)

        with pytest.raises(AlreadyFinalizedError):
            await service.finalize(PERIOD_KEY)

        service.batch_repo.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_wallet_writes_no_root(self, service, settlements, mock_session):
        service.participant_repo.get_wallets = AsyncMock(
            return_value={1: WALLET_A, 2: "0xnot-a-wallet"}
        )

        with pytest.raises(ConsistencyError):
            await service.finalize(PERIOD_KEY)

        service.batch_repo.add.assert_not_called()
        service.commission_repo.mark_finalized.assert_not_awaited()
        assert all(s.status == SettlementStatus.PENDING.value for s in settlements.values())
        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nothing_to_finalize(self, service):
        service.settlement_repo.get_by_period = AsyncMock(return_value={})

        with pytest.raises(ValidationError):
            await service.finalize(PERIOD_KEY)

    @pytest.mark.asyncio
    async def test_verify_claim(self, service, settlements):
        result = await service.finalize(PERIOD_KEY)
        _publish(service, result)
        service.settlement_repo.get_by = AsyncMock(return_value=settlements[2])
        service.settlement_repo.get_by_wallet = AsyncMock(return_value=[settlements[2]])

        verification = await service.verify_claim(PERIOD_KEY, 2)

        assert verification.valid
        assert verification.amount == 10_400_123_456

    @pytest.mark.asyncio
    async def test_verify_claim_detects_changed_amount(self, service, settlements):
        result = await service.finalize(PERIOD_KEY)
        _publish(service, result)
        settlements[1].grand_total = Decimal("9601")
        service.settlement_repo.get_by = AsyncMock(return_value=settlements[1])
        service.settlement_repo.get_by_wallet = AsyncMock(return_value=[settlements[1]])

        verification = await service.verify_claim(PERIOD_KEY, 1)

        assert not verification.valid
        assert verification.reason == "stored leaf does not match settlement data"

    @pytest.mark.asyncio
    async def test_verify_claim_requires_finalized_period(self, service):
        with pytest.raises(ValidationError):
            await service.verify_claim(PERIOD_KEY, 1)


# === Safety valve ===


NOW = datetime(2025, 1, 15, 3, 0, tzinfo=UTC)  # week of 2025-01-13


class TestSafetyValveService:
    """Test the four maintenance sub-tasks."""

    @pytest.fixture
    def service(self, mock_session):
        service = SafetyValveService(
            mock_session,
            hard_cap_usd=Decimal("40000"),
            global_payout_ratio=Decimal("0.40"),
            volume_flush_days=180,
            audit_trailing_periods=4,
            **LOCK_OPTIONS,
        )
        service.ghost_repo = MagicMock()
        service.ghost_repo.get_expired_active = AsyncMock(return_value=[])
        service.tree_repo = MagicMock()
        service.tree_repo.subtract_leg_volume = AsyncMock(return_value=SimpleNamespace())
        service.volume_repo = MagicMock()
        service.volume_repo.flush_carry_forward = AsyncMock(return_value=3)
        service.settlement_repo = MagicMock()
        service.settlement_repo.get_pending_above = AsyncMock(return_value=[])
        service.settlement_repo.get_total_payouts = AsyncMock(return_value=Decimal("300"))
        service.batch_repo = MagicMock()
        service.batch_repo.is_finalized = AsyncMock(return_value=False)
        service.rank_cap_repo = MagicMock()
        service.rank_cap_repo.get_caps_by_rank = AsyncMock(return_value={})
        service.participant_repo = MagicMock()
        service.participant_repo.get_ranks = AsyncMock(return_value={})
        service.ledger_repo = MagicMock()
        service.ledger_repo.get_sales_volume = AsyncMock(return_value=Decimal("1000"))
        return service

    @pytest.mark.asyncio
    async def test_failed_subtask_does_not_block_others(self, service, mock_session):
        service.ghost_repo.get_expired_active = AsyncMock(side_effect=RuntimeError("db down"))

        report = await service.run(now=NOW)

        assert list(report.errors) == [GHOST_VOLUME_EXPIRY]
        assert "db down" in report.errors[GHOST_VOLUME_EXPIRY]
        assert report.volume_records_flushed == 3
        assert report.audit_ratio == Decimal("0.3")
        assert not report.success
        mock_session.rollback.assert_awaited_once()
        assert mock_session.commit.await_count == 3

    @pytest.mark.asyncio
    async def test_ghost_volume_expired_and_removed(self, service):
        rows = [
            SimpleNamespace(id=1, user_id=7, pay_leg="left", amount=Decimal("500"), status="active", expired_at=None),
            SimpleNamespace(id=2, user_id=8, pay_leg="right", amount=Decimal("250"), status="active", expired_at=None),
        ]
        service.ghost_repo.get_expired_active = AsyncMock(return_value=rows)

        report = await service.run(now=NOW)

        assert report.ghost_volumes_expired == 2
        assert report.ghost_volume_removed == Decimal("750")
        service.tree_repo.subtract_leg_volume.assert_any_await(8, "right", Decimal("250"))
        assert all(r.status == GhostVolumeStatus.EXPIRED.value for r in rows)
        assert rows[0].expired_at == NOW

    @pytest.mark.asyncio
    async def test_flush_cutoff(self, service):
        await service.run(now=NOW)

        cutoff, now = service.volume_repo.flush_carry_forward.await_args.args
        assert cutoff == (NOW - timedelta(days=180)).date()
        assert now == NOW

    @pytest.mark.asyncio
    async def test_hard_cap_backstop(self, service):
        over_rank_cap = _settlement(
            1, Decimal("1500"), direct_total=Decimal("1000"), binary_total=Decimal("500")
        )
        within_hard_cap = _settlement(2, Decimal("1200"))
        finalized = _settlement(3, Decimal("5000"), period_key="2024-12-30")
        in_flight = _settlement(4, Decimal("5000"), period_key="2025-01-13")
        service.settlement_repo.get_pending_above = AsyncMock(
            return_value=[over_rank_cap, within_hard_cap, finalized, in_flight]
        )
        service.rank_cap_repo.get_caps_by_rank = AsyncMock(return_value={"gold": Decimal("1000")})
        service.participant_repo.get_ranks = AsyncMock(
            return_value={1: "gold", 2: None, 3: "gold", 4: "gold"}
        )
        service.batch_repo.is_finalized = AsyncMock(side_effect=lambda key: key == "2024-12-30")

        report = await service.run(now=NOW, excluded_periods=["2025-01-13"])

        assert [b.user_id for b in report.cap_breaches] == [1]
        assert over_rank_cap.cap_applied is True
        assert over_rank_cap.uncapped_total == Decimal("1500")
        assert over_rank_cap.grand_total <= Decimal("1000")
        assert over_rank_cap.grand_total == (
            over_rank_cap.direct_total + over_rank_cap.binary_total + over_rank_cap.override_total
        )
        assert within_hard_cap.cap_applied is False
        assert finalized.grand_total == Decimal("5000")
        assert in_flight.grand_total == Decimal("5000")
        service.settlement_repo.get_pending_above.assert_awaited_once_with(Decimal("1000"))

    @pytest.mark.asyncio
    async def test_ratio_alert(self, service):
        service.settlement_repo.get_total_payouts = AsyncMock(return_value=Decimal("500"))

        report = await service.run(now=NOW, excluded_periods=["2025-01-13"])

        assert report.ratio_alert
        assert report.audit_ratio == Decimal("0.5")
        assert report.audit_periods == ["2024-12-23", "2024-12-30", "2025-01-06"]

    @pytest.mark.asyncio
    async def test_zero_volume_no_alert(self, service):
        service.ledger_repo.get_sales_volume = AsyncMock(return_value=Decimal("0"))

        report = await service.run(now=NOW)

        assert report.audit_ratio == Decimal("0")
        assert not report.ratio_alert

    @pytest.mark.asyncio
    async def test_in_flight_previous_period_blocks_run(self, service):
        other_run = DistributedLock()
        token = await other_run.acquire(period_lock_key("2025-01-06"), timeout=60)

        with pytest.raises(PeriodLockedError):
            await service.run(now=NOW)

        service.volume_repo.flush_carry_forward.assert_not_awaited()
        await other_run.release(period_lock_key("2025-01-06"), token)

    @pytest.mark.asyncio
    async def test_report_to_dict(self, service):
        report = await service.run(now=NOW)

        data = report.to_dict()

        assert data["success"] is True
        assert data["audit"]["ratio"] == "0.3"


# === Snapshot reader ===


class TestSnapshotReader:
    """Test the consistent period read."""

    @pytest.fixture
    def reader(self, mock_session):
        reader = SnapshotReader(mock_session)
        reader.participant_repo = MagicMock()
        reader.participant_repo.get_all_ordered = AsyncMock(
            return_value=[
                SimpleNamespace(
                    id=1,
                    sponsor_id=None,
                    binary_parent_id=None,
                    binary_position=None,
                    wallet_address=WALLET_A,
                    rank="gold",
                )
            ]
        )
        reader.ledger_repo = MagicMock()
        reader.ledger_repo.get_by_period = AsyncMock(
            return_value=[
                SimpleNamespace(
                    id=1, user_id=1, amount=Decimal("100"), period_key=PERIOD_KEY, is_eligible=True
                )
            ]
        )
        reader.tree_repo = MagicMock()
        reader.tree_repo.get_all_ordered = AsyncMock(
            return_value=[
                SimpleNamespace(
                    user_id=1,
                    left_leg_id=None,
                    right_leg_id=None,
                    left_volume=Decimal("1000"),
                    right_volume=Decimal("500"),
                ),
                SimpleNamespace(
                    user_id=2,
                    left_leg_id=None,
                    right_leg_id=None,
                    left_volume=Decimal("-10"),
                    right_volume=Decimal("500"),
                ),
            ]
        )
        reader.ghost_repo = MagicMock()
        reader.ghost_repo.get_inactive_unflushed = AsyncMock(
            return_value=[
                SimpleNamespace(user_id=1, pay_leg="right", amount=Decimal("200")),
                SimpleNamespace(user_id=1, pay_leg="left", amount=Decimal("5000")),
            ]
        )
        return reader

    @pytest.mark.asyncio
    async def test_inactive_ghost_volume_removed(self, reader):
        snapshot = await reader.read(PERIOD_KEY, as_of=datetime(2025, 1, 13, tzinfo=UTC))

        node = snapshot.binary_nodes[1]
        assert node.left_volume == Decimal("0")
        assert node.right_volume == Decimal("300")
        reader.ghost_repo.get_inactive_unflushed.assert_awaited_once_with(
            datetime(2025, 1, 13, tzinfo=UTC)
        )

    @pytest.mark.asyncio
    async def test_negative_stored_volume_kept(self, reader):
        snapshot = await reader.read(PERIOD_KEY)

        assert snapshot.binary_nodes[2].left_volume == Decimal("-10")

    @pytest.mark.asyncio
    async def test_snapshot_contents(self, reader):
        snapshot = await reader.read(PERIOD_KEY)

        assert snapshot.period_start == date(2025, 1, 6)
        assert snapshot.participants[1].rank == "gold"
        assert snapshot.transactions[0].eligible is True

    @pytest.mark.asyncio
    async def test_malformed_key(self, reader):
        with pytest.raises(ValidationError):
            await reader.read("not-a-period")
