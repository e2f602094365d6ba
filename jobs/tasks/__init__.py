"""
Payout tasks.

Importing this package registers the actors on the Redis broker.
"""

from jobs.tasks.commission_calculation import calculate_period
from jobs.tasks.safety_valve import run_safety_valve
from jobs.tasks.settlement_finalization import finalize_period

__all__ = [
    "calculate_period",
    "finalize_period",
    "run_safety_valve",
]
