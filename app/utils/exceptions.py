"""
Exception handling utilities.

Groups payout errors by handling strategy.
"""

from sqlalchemy.exc import OperationalError

from app.utils.distributed_lock import PeriodLockedError
from compensation.exceptions import (
    ConsistencyError,
    PartialComputeError,
    ValidationError,
)


# Exception categories based on handling strategy

# Recoverable - log, report and continue (or retry)
RECOVERABLE = (
    PartialComputeError,  # One participant skipped, run continues
    OperationalError,     # Database connectivity, retried by the worker
    PeriodLockedError,    # Another run holds the period, retried with backoff
)

# Fatal - abort without writing, never retried
FATAL = (
    ValidationError,   # Bad period key or snapshot, already finalized
    ConsistencyError,  # Root cannot be trusted, nothing is published
)


def is_recoverable(exc: Exception) -> bool:
    """
    Check if exception leaves the run in a retryable state.

    Args:
        exc: Exception to check

    Returns:
        True if the operation may be retried or continued
    """
    return isinstance(exc, RECOVERABLE)


def is_fatal(exc: Exception) -> bool:
    """
    Check if exception must abort the operation.

    Args:
        exc: Exception to check

    Returns:
        True if the operation must stop without writing
    """
    return isinstance(exc, FATAL)


def should_retry(retries_so_far: int, exc: Exception, max_retries: int = 3) -> bool:
    """dramatiq ``retry_when`` predicate: only lock contention is retried."""
    return isinstance(exc, PeriodLockedError) and retries_so_far < max_retries
