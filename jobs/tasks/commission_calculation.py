"""
Commission calculation task.

Runs the ``calculate`` action for one settlement week: reads the period
snapshot, computes and scales all commissions and writes pending
settlements. Safe to re-send until the period is finalized.
"""

import dramatiq
from loguru import logger

from app.config.settings import settings
from app.services.commission import CommissionCalculationService
from app.utils.distributed_lock import PeriodLockedError
from jobs.async_runner import run_async, task_context
from jobs.broker import broker


@dramatiq.actor(broker=broker, max_retries=3, time_limit=1_800_000)  # 30 min
def calculate_period(period_key: str) -> None:
    """
    Calculate commissions for a period.

    Args:
        period_key: Settlement week (Monday, YYYY-MM-DD)
    """
    logger.info(f"Starting commission calculation for {period_key}...")

    try:
        summary = run_async(_calculate_period_async(period_key))
    except PeriodLockedError:
        logger.warning(f"Period {period_key} is locked by another run, will retry")
        raise
    except Exception as e:
        logger.exception(f"Commission calculation for {period_key} failed: {e}")
        raise

    logger.info(
        f"Commission calculation for {period_key} complete: "
        f"{summary['settlements_written']} settlements, "
        f"{len(summary['skipped'])} skipped"
    )


async def _calculate_period_async(period_key: str) -> dict:
    """Async implementation of the calculation run."""
    async with task_context() as ctx:
        service = CommissionCalculationService(
            ctx.session,
            snapshot_session=ctx.snapshot_session,
            config=settings.compensation_config(),
            chunk_size=settings.persist_chunk_size,
            ghost_ttl_days=settings.ghost_volume_ttl_days,
            lock=ctx.lock,
            lock_timeout=settings.period_lock_timeout,
            lock_wait=settings.period_lock_wait,
        )
        summary = await service.calculate(period_key)
        return summary.to_dict()
