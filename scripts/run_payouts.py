"""
Operator CLI for the weekly payout run.

Usage:
    python scripts/run_payouts.py calculate --period 2025-01-06
    python scripts/run_payouts.py finalize --period 2025-01-06
    python scripts/run_payouts.py safety-valve [--exclude 2025-01-13]
    python scripts/run_payouts.py verify --period 2025-01-06 --user 42

``calculate``, ``finalize`` and ``safety-valve`` run in-process by
default; with ``--enqueue`` they are sent to the dramatiq workers instead.
The JSON result is printed to stdout, logs go to stderr.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from app.config.database import async_engine, async_session_maker, snapshot_session_maker
from app.config.logging import setup_logging
from app.config.settings import settings
from app.services.commission import CommissionCalculationService
from app.services.safety_valve_service import SafetyValveService
from app.services.settlement import SettlementFinalizationService
from app.utils.distributed_lock import DistributedLock, PeriodLockedError
from app.utils.redis_utils import get_redis_client
from compensation.exceptions import CompensationError


setup_logging()


def _lock_options(lock: DistributedLock) -> dict:
    return {
        "lock": lock,
        "lock_timeout": settings.period_lock_timeout,
        "lock_wait": settings.period_lock_wait,
    }


async def calculate(period_key: str, lock: DistributedLock) -> dict:
    async with async_session_maker() as session, snapshot_session_maker() as snapshot:
        service = CommissionCalculationService(
            session,
            snapshot_session=snapshot,
            config=settings.compensation_config(),
            chunk_size=settings.persist_chunk_size,
            ghost_ttl_days=settings.ghost_volume_ttl_days,
            **_lock_options(lock),
        )
        return (await service.calculate(period_key)).to_dict()


async def finalize(period_key: str, lock: DistributedLock) -> dict:
    async with async_session_maker() as session:
        service = SettlementFinalizationService(
            session,
            token_decimals=settings.payout_token_decimals,
            **_lock_options(lock),
        )
        return (await service.finalize(period_key)).to_dict()


async def safety_valve(excluded: list[str], lock: DistributedLock) -> dict:
    async with async_session_maker() as session:
        service = SafetyValveService(
            session,
            hard_cap_usd=settings.hard_cap_usd,
            global_payout_ratio=settings.global_payout_ratio,
            ghost_ttl_days=settings.ghost_volume_ttl_days,
            volume_flush_days=settings.volume_flush_days,
            audit_trailing_periods=settings.audit_trailing_periods,
            **_lock_options(lock),
        )
        return (await service.run(excluded_periods=excluded)).to_dict()


async def verify(period_key: str, user_id: int) -> dict:
    async with async_session_maker() as session:
        service = SettlementFinalizationService(session)
        return (await service.verify_claim(period_key, user_id)).to_dict()


async def run(args: argparse.Namespace) -> dict:
    redis_client = get_redis_client()
    lock = DistributedLock(redis_client=redis_client)
    try:
        if args.command == "calculate":
            return await calculate(args.period, lock)
        if args.command == "finalize":
            return await finalize(args.period, lock)
        if args.command == "safety-valve":
            return await safety_valve(args.exclude, lock)
        return await verify(args.period, args.user)
    finally:
        await redis_client.aclose()
        await async_engine.dispose()


def enqueue(args: argparse.Namespace) -> dict:
    from jobs.tasks import calculate_period, finalize_period, run_safety_valve

    if args.command == "calculate":
        message = calculate_period.send(args.period)
    elif args.command == "finalize":
        message = finalize_period.send(args.period)
    else:
        message = run_safety_valve.send(args.exclude)
    return {"enqueued": message.actor_name, "message_id": message.message_id}


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Weekly payout operations")
    parser.add_argument(
        "command",
        choices=["calculate", "finalize", "safety-valve", "verify"],
    )
    parser.add_argument("--period", help="Settlement week, Monday as YYYY-MM-DD")
    parser.add_argument("--user", type=int, help="User id (verify only)")
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PERIOD",
        help="In-flight period to leave out of the safety valve (repeatable)",
    )
    parser.add_argument(
        "--enqueue",
        action="store_true",
        help="Send to the dramatiq workers instead of running in-process",
    )
    args = parser.parse_args()

    if args.command in ("calculate", "finalize", "verify") and not args.period:
        parser.error(f"{args.command} requires --period")
    if args.command == "verify" and args.user is None:
        parser.error("verify requires --user")
    if args.enqueue and args.command == "verify":
        parser.error("verify cannot be enqueued")

    try:
        result = enqueue(args) if args.enqueue else asyncio.run(run(args))
    except PeriodLockedError as e:
        logger.error(f"Period is busy: {e}")
        sys.exit(2)
    except CompensationError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)

    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
