"""
Distributed lock.

Redis locks go through redis-py's :class:`redis.asyncio.lock.Lock`
(``SET NX PX`` with an owner token, released only by its owner). Without
a Redis client it falls back to a process-local lock table, which is
enough for a single worker and for tests.
"""

import asyncio
import threading
import time
import uuid
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

import redis.asyncio as redis
from loguru import logger
from redis.asyncio.lock import Lock as RedisLock
from redis.exceptions import RedisError


PERIOD_LOCK_PREFIX = "payouts:period:"

# Seconds between attempts while a lock is held
RETRY_INTERVAL = 0.2

# key -> (token, expires at monotonic seconds)
_local_locks: dict[str, tuple[str, float]] = {}
_local_guard = threading.Lock()


class PeriodLockedError(Exception):
    """A lock is held by another run and could not be acquired in time."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Lock {key} is held by another run")


def period_lock_key(period_key: str) -> str:
    """Lock key shared by calculate, finalize and the safety valve."""
    return f"{PERIOD_LOCK_PREFIX}{period_key}"


class DistributedLock:
    """
    Named mutual exclusion across workers.

    Example:
        >>> lock = DistributedLock(redis_client=redis_client)
        >>> async with lock.lock(period_lock_key("2025-01-06"), timeout=900):
        ...     await run_period()
    """

    def __init__(self, redis_client: "redis.Redis | None" = None) -> None:
        self.redis_client = redis_client
        # Redis locks held by this instance: key -> (token, lock)
        self._held: dict[str, tuple[str, RedisLock]] = {}

    async def acquire(
        self, key: str, timeout: int, blocking_timeout: float = 0
    ) -> str | None:
        """
        Try to take ``key`` for ``timeout`` seconds.

        Args:
            key: Lock name
            timeout: Lock TTL in seconds
            blocking_timeout: Seconds to keep retrying while held

        Returns:
            Owner token, or None if the lock stayed held
        """
        token = uuid.uuid4().hex
        if self.redis_client is not None:
            acquired = await self._acquire_redis(key, token, timeout, blocking_timeout)
        else:
            acquired = await self._acquire_local(key, token, timeout, blocking_timeout)

        if not acquired:
            return None
        logger.debug(f"Lock acquired: {key}")
        return token

    async def release(self, key: str, token: str) -> None:
        """Release ``key`` if ``token`` still owns it."""
        if self.redis_client is not None:
            held = self._held.get(key)
            if held is None or held[0] != token:
                return
            del self._held[key]
            try:
                await held[1].release()
            except RedisError as e:
                # Expired or taken over; nothing left to release
                logger.warning(f"Failed to release Redis lock {key}: {e}")
                return
            logger.debug(f"Lock released: {key}")
            return

        with _local_guard:
            held = _local_locks.get(key)
            if held and held[0] == token:
                del _local_locks[key]
        logger.debug(f"Lock released: {key}")

    async def _acquire_redis(
        self, key: str, token: str, timeout: int, blocking_timeout: float
    ) -> bool:
        redis_lock = self.redis_client.lock(
            key,
            timeout=timeout,
            sleep=RETRY_INTERVAL,
            blocking=True,
            blocking_timeout=blocking_timeout,
        )
        if not await redis_lock.acquire(token=token):
            return False
        self._held[key] = (token, redis_lock)
        return True

    async def _acquire_local(
        self, key: str, token: str, timeout: int, blocking_timeout: float
    ) -> bool:
        deadline = time.monotonic() + blocking_timeout
        while True:
            now = time.monotonic()
            with _local_guard:
                held = _local_locks.get(key)
                if not held or held[1] <= now:
                    _local_locks[key] = (token, now + timeout)
                    return True
            if now >= deadline:
                return False
            await asyncio.sleep(RETRY_INTERVAL)

    @asynccontextmanager
    async def lock(
        self, key: str, timeout: int = 300, blocking_timeout: float = 0
    ) -> AsyncIterator[str]:
        """
        Hold ``key`` for the duration of the block.

        Raises:
            PeriodLockedError: Lock still held after ``blocking_timeout``
        """
        async with self.lock_many([key], timeout, blocking_timeout) as tokens:
            yield tokens[key]

    @asynccontextmanager
    async def lock_many(
        self,
        keys: Iterable[str],
        timeout: int = 300,
        blocking_timeout: float = 0,
    ) -> AsyncIterator[dict[str, str]]:
        """
        Hold several keys at once, taken in sorted order.

        Raises:
            PeriodLockedError: One of the keys stayed held; none are kept
        """
        tokens: dict[str, str] = {}
        try:
            for key in sorted(set(keys)):
                token = await self.acquire(key, timeout, blocking_timeout)
                if token is None:
                    logger.warning(f"Lock {key} is held, giving up")
                    raise PeriodLockedError(key)
                tokens[key] = token
            yield tokens
        finally:
            for key, token in tokens.items():
                await self.release(key, token)
