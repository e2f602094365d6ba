"""
Ghost volume window queries against real rows.

Ghost volume counts only while ``created_at <= now < expires_at`` and never
longer than the TTL. The repository queries run on an in-memory SQLite
database so the boundaries are checked on actual SQL, not on mocks.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.models.base import Base
from app.models.enums import GhostVolumeStatus
from app.models.ghost_volume import GhostVolume
from app.models.participant import Participant
from app.repositories.ghost_volume_repository import GhostVolumeRepository


AS_OF = datetime(2025, 1, 13, tzinfo=UTC)


def _ghost(id, created_at, expires_at, status=GhostVolumeStatus.ACTIVE.value):
    return GhostVolume(
        id=id,
        user_id=1,
        pay_leg="left",
        amount=Decimal("100"),
        created_at=created_at,
        expires_at=expires_at,
        status=status,
    )


@pytest.fixture
def db_session():
    """Sync in-memory database holding one row per window edge case."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine, tables=[Participant.__table__, GhostVolume.__table__])
    Session = sessionmaker(bind=engine)
    session = Session()
    session.add(Participant(id=1))
    session.add_all(
        [
            # Starts exactly at as_of: active
            _ghost(1, AS_OF, AS_OF + timedelta(days=10)),
            # Ends exactly at as_of: inactive
            _ghost(2, AS_OF - timedelta(days=10), AS_OF),
            # Not started yet
            _ghost(3, AS_OF + timedelta(seconds=1), AS_OF + timedelta(days=10)),
            # expires_at beyond the TTL, still inside it
            _ghost(4, AS_OF - timedelta(days=5), AS_OF + timedelta(days=30)),
            # expires_at beyond the TTL, TTL reached
            _ghost(5, AS_OF - timedelta(days=10), AS_OF + timedelta(days=30)),
            # Already flushed
            _ghost(
                6,
                AS_OF - timedelta(days=20),
                AS_OF - timedelta(days=10),
                status=GhostVolumeStatus.EXPIRED.value,
            ),
        ]
    )
    session.commit()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def session(mock_session, db_session):
    """Async session facade that runs statements on the SQLite session."""
    mock_session.execute = AsyncMock(side_effect=db_session.execute)
    return mock_session


class TestGhostVolumeWindow:
    """Test the active window and TTL predicates."""

    @pytest.mark.asyncio
    async def test_inactive_rows_at_snapshot_time(self, session):
        repo = GhostVolumeRepository(session, ttl_days=10)

        rows = await repo.get_inactive_unflushed(AS_OF)

        assert sorted(row.id for row in rows) == [2, 3, 5]

    @pytest.mark.asyncio
    async def test_window_start_is_inclusive(self, session):
        repo = GhostVolumeRepository(session, ttl_days=10)

        inactive = {row.id for row in await repo.get_inactive_unflushed(AS_OF)}
        expired = {row.id for row in await repo.get_expired_active(AS_OF)}

        assert 1 not in inactive
        assert 1 not in expired

    @pytest.mark.asyncio
    async def test_window_end_is_exclusive(self, session):
        repo = GhostVolumeRepository(session, ttl_days=10)

        just_before = {
            row.id
            for row in await repo.get_expired_active(AS_OF - timedelta(microseconds=1))
        }
        at_end = {row.id for row in await repo.get_expired_active(AS_OF)}

        assert 2 not in just_before
        assert 2 in at_end

    @pytest.mark.asyncio
    async def test_expired_active_excludes_future_and_flushed(self, session):
        repo = GhostVolumeRepository(session, ttl_days=10)

        rows = await repo.get_expired_active(AS_OF)

        assert [row.id for row in rows] == [2, 5]

    @pytest.mark.asyncio
    async def test_longer_ttl_keeps_stored_expiry(self, session):
        repo = GhostVolumeRepository(session, ttl_days=30)

        inactive = await repo.get_inactive_unflushed(AS_OF)
        expired = await repo.get_expired_active(AS_OF)

        assert sorted(row.id for row in inactive) == [2, 3]
        assert [row.id for row in expired] == [2]
