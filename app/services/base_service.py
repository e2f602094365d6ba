"""
Base service class.

Provides common functionality for payout services: session management,
logging with bound service context, the period run lock and helper
decorators.
"""

import functools
import time
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.distributed_lock import DistributedLock, period_lock_key


# Type variable for generic decorator return types
T = TypeVar("T")

DEFAULT_LOCK_TIMEOUT = 900
DEFAULT_LOCK_WAIT = 30


class BaseService:
    """
    Base service class.

    Provides common functionality for all service classes:
    - Session management
    - Logging with bound service context
    - Period-scoped run locks
    """

    def __init__(
        self,
        session: AsyncSession,
        lock: DistributedLock | None = None,
        lock_timeout: int = DEFAULT_LOCK_TIMEOUT,
        lock_wait: float = DEFAULT_LOCK_WAIT,
    ) -> None:
        """
        Initialize base service.

        Args:
            session: Async database session
            lock: Distributed lock (process-local when omitted)
            lock_timeout: Period lock TTL in seconds
            lock_wait: Seconds to wait for a held period lock
        """
        self.session = session
        self.lock = lock or DistributedLock()
        self.lock_timeout = lock_timeout
        self.lock_wait = lock_wait
        self.logger = logger.bind(service=self.__class__.__name__)

    async def commit(self) -> None:
        """Commit current transaction."""
        await self.session.commit()

    async def rollback(self) -> None:
        """Rollback current transaction."""
        await self.session.rollback()

    @asynccontextmanager
    async def period_lock(self, *period_keys: str) -> AsyncIterator[None]:
        """
        Hold the run lock of every given period.

        Raises:
            PeriodLockedError: A period is being processed by another run
        """
        keys: Iterable[str] = (period_lock_key(key) for key in period_keys)
        async with self.lock.lock_many(keys, self.lock_timeout, self.lock_wait):
            yield


def transaction(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to wrap method in transaction with automatic commit/rollback.

    Commits on success, rolls back on exception.

    Usage:
        @transaction
        async def persist(self, ...):
            ...

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        try:
            result = await func(self, *args, **kwargs)
            await self.commit()
            return result
        except Exception as e:
            await self.rollback()
            self.logger.error(
                f"Transaction failed in {func.__name__}",
                extra={
                    "error": str(e),
                    "function": func.__name__,
                },
            )
            raise

    return wrapper


def log_operation(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator to log method entry/exit with timing.

    Usage:
        @log_operation
        async def calculate(self, period_key: str):
            ...

    Args:
        func: Async method to wrap

    Returns:
        Wrapped async method
    """
    @functools.wraps(func)
    async def wrapper(self: BaseService, *args: Any, **kwargs: Any) -> Any:
        start_time = time.time()

        self.logger.info(
            f"Starting {func.__name__}",
            extra={
                "function": func.__name__,
                "args": [str(a) for a in args],
            },
        )

        try:
            result = await func(self, *args, **kwargs)
            duration = time.time() - start_time

            self.logger.info(
                f"Completed {func.__name__} in {duration:.3f}s",
                extra={
                    "function": func.__name__,
                    "duration_seconds": round(duration, 3),
                    "success": True,
                },
            )

            return result

        except Exception as e:
            duration = time.time() - start_time

            self.logger.error(
                f"Failed {func.__name__}: {type(e).__name__}",
                extra={
                    "function": func.__name__,
                    "duration_seconds": round(duration, 3),
                    "error": str(e),
                    "success": False,
                },
            )

            raise

    return wrapper
