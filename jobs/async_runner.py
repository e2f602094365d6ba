"""
Async runner for dramatiq tasks.

Provides a thread-safe way to run async code in dramatiq actors and the
per-task resources a payout run needs (sessions and the period lock).
"""

import asyncio
import threading
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config.settings import settings
from app.utils.distributed_lock import DistributedLock
from app.utils.redis_utils import get_redis_client


T = TypeVar("T")

# Thread-local storage for event loops
_thread_local = threading.local()


def get_event_loop() -> asyncio.AbstractEventLoop:
    """
    Get or create event loop for current thread.

    Creates a new event loop for each worker thread and reuses it.
    This prevents "Future attached to a different loop" errors.
    """
    loop = getattr(_thread_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.loop = loop
        logger.debug(f"Created new event loop for thread {threading.current_thread().name}")
    return loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run async coroutine in the thread's event loop.

    This is the recommended way to run async code in dramatiq actors.

    Args:
        coro: Async coroutine to run

    Returns:
        Result of the coroutine
    """
    return get_event_loop().run_until_complete(coro)


@dataclass
class TaskContext:
    """Resources of one payout task."""

    session: AsyncSession
    snapshot_session: AsyncSession
    lock: DistributedLock


@asynccontextmanager
async def task_context() -> AsyncIterator[TaskContext]:
    """
    Open sessions and the Redis-backed lock for the current event loop.

    Engines use NullPool to avoid sharing pooled connections between
    worker threads. The snapshot session runs at the configured snapshot
    isolation level.

    Usage:
        async with task_context() as ctx:
            service = CommissionCalculationService(ctx.session, lock=ctx.lock)

    Yields:
        TaskContext bound to the current event loop
    """
    engine = create_async_engine(
        settings.database_url_async,
        echo=False,
        poolclass=NullPool,
    )
    snapshot_engine = engine.execution_options(
        isolation_level=settings.snapshot_isolation_level,
    )
    session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    snapshot_maker = async_sessionmaker(
        snapshot_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    redis_client = get_redis_client()

    try:
        async with session_maker() as session, snapshot_maker() as snapshot_session:
            yield TaskContext(
                session=session,
                snapshot_session=snapshot_session,
                lock=DistributedLock(redis_client=redis_client),
            )
    finally:
        await redis_client.aclose()
        await engine.dispose()
