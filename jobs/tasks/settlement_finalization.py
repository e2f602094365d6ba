"""
Settlement finalization task.

Publishes a calculated period as a Merkle root. Finalization is
irreversible; a second send for the same period is rejected.
"""

import dramatiq
from loguru import logger

from app.config.settings import settings
from app.services.settlement import SettlementFinalizationService
from app.utils.distributed_lock import PeriodLockedError
from jobs.async_runner import run_async, task_context
from jobs.broker import broker


@dramatiq.actor(broker=broker, max_retries=3, time_limit=600_000)  # 10 min
def finalize_period(period_key: str) -> None:
    """
    Finalize a period's settlements.

    Args:
        period_key: Settlement week (Monday, YYYY-MM-DD)
    """
    logger.info(f"Starting settlement finalization for {period_key}...")

    try:
        result = run_async(_finalize_period_async(period_key))
    except PeriodLockedError:
        logger.warning(f"Period {period_key} is locked by another run, will retry")
        raise
    except Exception as e:
        logger.exception(f"Settlement finalization for {period_key} failed: {e}")
        raise

    logger.info(
        f"Settlement finalization for {period_key} complete: "
        f"root {result['merkle_root']}, {result['total_users']} users, "
        f"total {result['total_amount']}"
    )


async def _finalize_period_async(period_key: str) -> dict:
    """Async implementation of finalization."""
    async with task_context() as ctx:
        service = SettlementFinalizationService(
            ctx.session,
            token_decimals=settings.payout_token_decimals,
            lock=ctx.lock,
            lock_timeout=settings.period_lock_timeout,
            lock_wait=settings.period_lock_wait,
        )
        result = await service.finalize(period_key)
        return result.to_dict()
