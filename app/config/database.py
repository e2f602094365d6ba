"""
Database engine and session factories.

``async_session_maker`` serves regular read-write work. The snapshot
session maker opens connections at the configured isolation level so a
calculation run reads ledger, graph and volumes from one consistent view.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config.settings import settings


async_engine = create_async_engine(
    settings.database_url_async,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

snapshot_engine = async_engine.execution_options(
    isolation_level=settings.snapshot_isolation_level,
)

snapshot_session_maker = async_sessionmaker(
    snapshot_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)
