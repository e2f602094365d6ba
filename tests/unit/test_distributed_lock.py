"""
Tests for the distributed period lock.

Covers the process-local fallback and the Redis code path, which hands
the work to a mocked redis-py lock.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import LockNotOwnedError

from app.utils.distributed_lock import (
    DistributedLock,
    PeriodLockedError,
    period_lock_key,
)


class TestLocalLock:
    """Test the process-local fallback."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self):
        lock = DistributedLock()

        token = await lock.acquire("k", timeout=60)
        assert token is not None
        assert await lock.acquire("k", timeout=60) is None

        await lock.release("k", token)
        assert await lock.acquire("k", timeout=60) is not None

    @pytest.mark.asyncio
    async def test_release_with_foreign_token_keeps_lock(self):
        lock = DistributedLock()
        await lock.acquire("k", timeout=60)

        await lock.release("k", "not-the-owner")

        assert await lock.acquire("k", timeout=60) is None

    @pytest.mark.asyncio
    async def test_expired_lock_can_be_taken(self):
        lock = DistributedLock()
        await lock.acquire("k", timeout=0)

        assert await lock.acquire("k", timeout=60) is not None

    @pytest.mark.asyncio
    async def test_context_manager_raises_when_held(self):
        lock = DistributedLock()
        key = period_lock_key("2025-01-06")

        async with lock.lock(key, timeout=60):
            with pytest.raises(PeriodLockedError) as exc_info:
                async with lock.lock(key, timeout=60):
                    pass

        assert exc_info.value.key == key
        # Released after the block
        async with lock.lock(key, timeout=60):
            pass

    @pytest.mark.asyncio
    async def test_lock_many_releases_taken_keys_on_failure(self):
        lock = DistributedLock()
        held = await lock.acquire("b", timeout=60)

        with pytest.raises(PeriodLockedError):
            async with lock.lock_many(["a", "b"], timeout=60):
                pass

        assert await lock.acquire("a", timeout=60) is not None
        await lock.release("b", held)

    @pytest.mark.asyncio
    async def test_lock_many_yields_all_tokens(self):
        lock = DistributedLock()

        async with lock.lock_many(["b", "a", "a"], timeout=60) as tokens:
            assert sorted(tokens) == ["a", "b"]


class TestRedisLock:
    """Test the Redis code path."""

    @pytest.fixture
    def redis_lock(self):
        redis_lock = MagicMock()
        redis_lock.acquire = AsyncMock(return_value=True)
        redis_lock.release = AsyncMock()
        return redis_lock

    @pytest.fixture
    def redis_client(self, redis_lock):
        client = MagicMock()
        client.lock = MagicMock(return_value=redis_lock)
        return client

    @pytest.mark.asyncio
    async def test_acquire_uses_library_lock(self, redis_client, redis_lock):
        lock = DistributedLock(redis_client=redis_client)

        token = await lock.acquire("payouts:period:2025-01-06", timeout=900)

        assert token is not None
        redis_client.lock.assert_called_once_with(
            "payouts:period:2025-01-06",
            timeout=900,
            sleep=0.2,
            blocking=True,
            blocking_timeout=0,
        )
        redis_lock.acquire.assert_awaited_once_with(token=token)

    @pytest.mark.asyncio
    async def test_context_manager_releases(self, redis_client, redis_lock):
        lock = DistributedLock(redis_client=redis_client)

        async with lock.lock("k", timeout=10):
            redis_lock.release.assert_not_awaited()

        redis_lock.release.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_held_key_raises(self, redis_client, redis_lock):
        redis_lock.acquire = AsyncMock(return_value=False)
        lock = DistributedLock(redis_client=redis_client)

        with pytest.raises(PeriodLockedError):
            async with lock.lock("k", timeout=10):
                pass

        redis_lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_release_with_foreign_token_is_ignored(self, redis_client, redis_lock):
        lock = DistributedLock(redis_client=redis_client)
        await lock.acquire("k", timeout=10)

        await lock.release("k", "not-the-owner")

        redis_lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lost_lock_is_logged_not_raised(self, redis_client, redis_lock):
        redis_lock.release = AsyncMock(side_effect=LockNotOwnedError("expired"))
        lock = DistributedLock(redis_client=redis_client)

        async with lock.lock("k", timeout=10):
            pass

        redis_lock.release.assert_awaited_once()


def test_period_lock_key():
    assert period_lock_key("2025-01-06") == "payouts:period:2025-01-06"
