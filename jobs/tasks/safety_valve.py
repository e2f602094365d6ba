"""
Safety valve task.

Periodic maintenance: ghost volume expiry, carry-forward aging flush,
hard-cap backstop and the global payout ratio audit.
"""

import dramatiq
from loguru import logger

from app.config.settings import settings
from app.services.safety_valve_service import SafetyValveService
from app.utils.distributed_lock import PeriodLockedError
from jobs.async_runner import run_async, task_context
from jobs.broker import broker


@dramatiq.actor(broker=broker, max_retries=3, time_limit=900_000)  # 15 min
def run_safety_valve(excluded_periods: list[str] | None = None) -> None:
    """
    Run the safety valve.

    Args:
        excluded_periods: In-flight periods to leave out of the cap
            backstop and ratio audit
    """
    logger.info("Starting safety valve...")

    try:
        report = run_async(_run_safety_valve_async(excluded_periods or []))
    except PeriodLockedError:
        logger.warning("Current or previous period is locked by a run, will retry")
        raise
    except Exception as e:
        logger.exception(f"Safety valve failed: {e}")
        raise

    if report["success"]:
        logger.info(
            f"Safety valve complete: {report['ghost_volumes_expired']} ghost expired, "
            f"{report['volume_records_flushed']} flushed, "
            f"{len(report['cap_breaches'])} cap breaches"
        )
    else:
        logger.error(f"Safety valve finished with failed sub-tasks: {sorted(report['errors'])}")


async def _run_safety_valve_async(excluded_periods: list[str]) -> dict:
    """Async implementation of the safety valve."""
    async with task_context() as ctx:
        service = SafetyValveService(
            ctx.session,
            hard_cap_usd=settings.hard_cap_usd,
            global_payout_ratio=settings.global_payout_ratio,
            ghost_ttl_days=settings.ghost_volume_ttl_days,
            volume_flush_days=settings.volume_flush_days,
            audit_trailing_periods=settings.audit_trailing_periods,
            lock=ctx.lock,
            lock_timeout=settings.period_lock_timeout,
            lock_wait=settings.period_lock_wait,
        )
        report = await service.run(excluded_periods=excluded_periods)
        return report.to_dict()
