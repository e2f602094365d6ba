"""
Error taxonomy for payout computation and settlement finalization.

Calculation-stage errors are recoverable and end up in the run summary.
Finalize-stage errors are fatal and must prevent any root from being
published.
"""


class CompensationError(Exception):
    """Base class for all payout engine errors."""


class ValidationError(CompensationError):
    """Missing or malformed period key or snapshot. Raised before any write."""


class AlreadyFinalizedError(ValidationError):
    """The period already has a published settlement batch."""

    def __init__(self, period_key: str) -> None:
        self.period_key = period_key
        super().__init__(f"Period {period_key} is already finalized")


class PartialComputeError(CompensationError):
    """One participant's graph data is malformed; only that participant is skipped."""

    def __init__(self, user_id: int, reason: str) -> None:
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"Participant {user_id}: {reason}")


class ConsistencyError(CompensationError):
    """Leaf encoding mismatch or non-reproducible root. Blocks finalize."""


class CapBreachDetected(CompensationError):
    """
    A settlement exceeded its per-user cap and was clamped.

    Non-fatal: instances are collected into the safety valve report
    instead of being raised.
    """

    def __init__(
        self,
        user_id: int,
        period_key: str,
        grand_total,
        cap,
    ) -> None:
        self.user_id = user_id
        self.period_key = period_key
        self.grand_total = grand_total
        self.cap = cap
        super().__init__(
            f"Settlement for user {user_id} in {period_key} "
            f"({grand_total}) exceeds cap {cap}"
        )
