"""
Commission calculators (pass 1).

Pure business logic: takes a period snapshot and produces unscaled
commission lines. No database, ORM or settings access. Each participant is
computed independently; a participant with malformed graph data is skipped
and reported instead of failing the whole run.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from decimal import ROUND_DOWN, Decimal

from compensation.constants import MONEY_QUANTUM
from compensation.core.config import CompensationConfig
from compensation.core.models import (
    BinaryNode,
    BinaryPosition,
    CalculationPass,
    CommissionLine,
    CommissionType,
    ParticipantNode,
    PeriodSnapshot,
    SkippedParticipant,
)
from compensation.core.traversal import walk_downline, walk_upline
from compensation.exceptions import PartialComputeError, ValidationError


_ZERO = Decimal("0")
_BINARY_POSITIONS = {position.value for position in BinaryPosition}


def _money(amount: Decimal) -> Decimal:
    """Truncate to stored money precision."""
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_DOWN)


class CommissionCalculator:
    """
    Direct, binary matching and override calculators.

    Example:
        >>> calc = CommissionCalculator()
        >>> result = calc.run(snapshot)
        >>> result.sales_volume, len(result.lines), result.skipped
    """

    def __init__(self, config: CompensationConfig | None = None) -> None:
        self.config = config or CompensationConfig()

    # === Ledger aggregation ===

    def eligible_transactions(self, snapshot: PeriodSnapshot) -> list:
        """Eligible ledger entries of the snapshot's period."""
        foreign = [tx.id for tx in snapshot.transactions if tx.period_key != snapshot.period_key]
        if foreign:
            raise ValidationError(
                f"Snapshot for {snapshot.period_key} contains transactions "
                f"from other periods: {foreign[:10]}"
            )
        return [tx for tx in snapshot.transactions if tx.eligible]

    def sales_volume(self, snapshot: PeriodSnapshot) -> Decimal:
        """Period SV: sum of eligible transaction amounts."""
        return sum(
            (tx.amount for tx in self.eligible_transactions(snapshot)), _ZERO
        )

    def user_sales_volumes(self, snapshot: PeriodSnapshot) -> dict[int, Decimal]:
        """Eligible transaction amount per buyer."""
        volumes: dict[int, Decimal] = defaultdict(lambda: _ZERO)
        for tx in self.eligible_transactions(snapshot):
            volumes[tx.user_id] += tx.amount
        return dict(volumes)

    # === Direct ===

    def calculate_direct(
        self,
        participant: ParticipantNode,
        user_sv: Decimal,
        sponsors: Mapping[int, int | None],
    ) -> list[CommissionLine]:
        """
        Direct commission on a buyer's SV, paid up the sponsor chain.

        Args:
            participant: The buyer
            user_sv: Buyer's eligible SV for the period
            sponsors: Participant id mapped to sponsor id

        Returns:
            One line per sponsor hop (at most ``max_depth``)
        """
        if user_sv <= 0:
            return []

        lines = []
        for tier, sponsor_id in walk_upline(
            participant.id, sponsors, self.config.max_depth
        ):
            rate = self.config.direct_rates.get(tier, _ZERO)
            if rate <= 0:
                continue
            lines.append(
                CommissionLine(
                    user_id=sponsor_id,
                    commission_type=CommissionType.DIRECT,
                    tier=tier,
                    basis=user_sv,
                    rate=rate,
                    base_amount=_money(user_sv * rate),
                    source_user_id=participant.id,
                )
            )
        return lines

    # === Binary ===

    def binary_base(self, node: BinaryNode) -> tuple[Decimal, Decimal]:
        """
        Weak-leg volume and binary base amount for one node.

        Raises:
            PartialComputeError: Negative or self-referencing volumes
        """
        if node.left_volume < 0 or node.right_volume < 0:
            raise PartialComputeError(node.user_id, "negative binary volume")
        if node.user_id in (node.left_leg_id, node.right_leg_id):
            raise PartialComputeError(node.user_id, "binary leg points to itself")

        weak = min(node.left_volume, node.right_volume)
        return weak, _money(weak * self.config.binary_rate)

    def calculate_binary(self, node: BinaryNode | None) -> CommissionLine | None:
        """Binary matching commission; None when the weak leg is empty."""
        if node is None:
            return None

        weak, base = self.binary_base(node)
        if weak <= 0:
            return None

        return CommissionLine(
            user_id=node.user_id,
            commission_type=CommissionType.BINARY,
            tier=1,
            basis=weak,
            rate=self.config.binary_rate,
            base_amount=base,
            source_user_id=node.user_id,
        )

    # === Override ===

    def calculate_override(
        self,
        user_id: int,
        children: Mapping[int, Sequence[int]],
        binary_bases: Mapping[int, Decimal],
    ) -> list[CommissionLine]:
        """
        Leadership override on binary-downline binary earnings.

        Downline follows binary-parent links. Level N sums the unscaled
        binary base of every node N placements below ``user_id``.
        """
        lines = []
        levels = walk_downline(user_id, children, self.config.max_depth)

        for level, node_ids in sorted(levels.items()):
            rate = self.config.override_rates.get(level, _ZERO)
            if rate <= 0:
                continue
            contributors = [n for n in node_ids if binary_bases.get(n, _ZERO) > 0]
            if not contributors:
                continue
            downline_binary = sum((binary_bases[n] for n in contributors), _ZERO)
            lines.append(
                CommissionLine(
                    user_id=user_id,
                    commission_type=CommissionType.OVERRIDE,
                    tier=level,
                    basis=downline_binary,
                    rate=rate,
                    base_amount=_money(downline_binary * rate),
                    source_user_id=contributors[0] if len(contributors) == 1 else None,
                    source_count=len(contributors),
                )
            )
        return lines

    # === Whole run ===

    def run(self, snapshot: PeriodSnapshot) -> CalculationPass:
        """
        Pass 1 over every participant in the snapshot.

        Raises:
            ValidationError: Snapshot does not belong to its period
        """
        sales_volume = self.sales_volume(snapshot)
        user_volumes = self.user_sales_volumes(snapshot)
        participants = snapshot.participants

        skipped: dict[int, str] = {}

        for user_id in sorted(set(user_volumes) - set(participants)):
            skipped[user_id] = "transactions from unknown participant"
        for user_id in sorted(set(snapshot.binary_nodes) - set(participants)):
            skipped.setdefault(user_id, "binary node without participant record")

        for user_id in sorted(participants):
            try:
                self._validate_participant(
                    participants[user_id], user_volumes.get(user_id, _ZERO)
                )
                node = snapshot.binary_nodes.get(user_id)
                if node is not None:
                    self.binary_base(node)
            except PartialComputeError as e:
                skipped[user_id] = e.reason

        sponsors = {p.id: p.sponsor_id for p in participants.values()}
        children = self._binary_children(participants.values())
        binary_bases = {
            user_id: self.binary_base(node)[1]
            for user_id, node in snapshot.binary_nodes.items()
            if user_id in participants and user_id not in skipped
        }

        lines: list[CommissionLine] = []
        processed = 0
        for user_id in sorted(participants):
            if user_id in skipped:
                continue
            lines.extend(
                self._calculate_participant(
                    participants[user_id],
                    user_volumes.get(user_id, _ZERO),
                    snapshot.binary_nodes.get(user_id),
                    sponsors,
                    children,
                    binary_bases,
                )
            )
            processed += 1

        # Skipped participants neither pay out nor earn; a sponsor chain
        # still passes through them so tier numbering is unchanged.
        lines = [line for line in lines if line.user_id not in skipped]

        return CalculationPass(
            period_key=snapshot.period_key,
            sales_volume=sales_volume,
            lines=tuple(consolidate_lines(lines)),
            skipped=tuple(
                SkippedParticipant(user_id=uid, reason=reason)
                for uid, reason in sorted(skipped.items())
            ),
            participants_processed=processed,
        )

    def _calculate_participant(
        self,
        participant: ParticipantNode,
        user_sv: Decimal,
        node: BinaryNode | None,
        sponsors: Mapping[int, int | None],
        children: Mapping[int, Sequence[int]],
        binary_bases: Mapping[int, Decimal],
    ) -> list[CommissionLine]:
        lines = self.calculate_direct(participant, user_sv, sponsors)
        binary_line = self.calculate_binary(node)
        if binary_line is not None:
            lines.append(binary_line)
        lines.extend(self.calculate_override(participant.id, children, binary_bases))
        return lines

    @staticmethod
    def _validate_participant(participant: ParticipantNode, user_sv: Decimal) -> None:
        if user_sv < 0:
            raise PartialComputeError(participant.id, "negative net sales volume")
        if participant.sponsor_id == participant.id:
            raise PartialComputeError(participant.id, "participant sponsors itself")
        if participant.binary_parent_id == participant.id:
            raise PartialComputeError(participant.id, "participant is its own binary parent")
        if (
            participant.binary_parent_id is not None
            and participant.binary_position not in _BINARY_POSITIONS
        ):
            raise PartialComputeError(
                participant.id,
                f"invalid binary position {participant.binary_position!r}",
            )

    @staticmethod
    def _binary_children(
        participants: Iterable[ParticipantNode],
    ) -> dict[int, list[int]]:
        children: dict[int, list[int]] = defaultdict(list)
        for p in sorted(participants, key=lambda p: p.id):
            if p.binary_parent_id is not None and p.binary_parent_id != p.id:
                children[p.binary_parent_id].append(p.id)
        return dict(children)


def consolidate_lines(lines: Iterable[CommissionLine]) -> list[CommissionLine]:
    """
    Merge lines sharing an idempotency key (user, type, tier).

    A sponsor paid tier 1 by several buyers gets one record whose basis and
    base amount are the sums; ``source_user_id`` is kept only when a single
    participant contributed.
    """
    grouped: dict[tuple, list[CommissionLine]] = defaultdict(list)
    for line in lines:
        grouped[line.key].append(line)

    merged = []
    for key in sorted(grouped, key=lambda k: (k[0], k[1].value, k[2])):
        group = grouped[key]
        if len(group) == 1:
            merged.append(group[0])
            continue
        sources = {line.source_user_id for line in group}
        source_count = sum(line.source_count for line in group)
        merged.append(
            group[0].model_copy(
                update={
                    "basis": sum((line.basis for line in group), _ZERO),
                    "base_amount": sum((line.base_amount for line in group), _ZERO),
                    "source_user_id": (
                        next(iter(sources)) if len(sources) == 1 and None not in sources else None
                    ),
                    "source_count": source_count,
                }
            )
        )
    return merged
