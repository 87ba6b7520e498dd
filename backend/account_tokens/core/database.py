"""Async database engine and session management.

Builds the SQLAlchemy async engine and the session factory the token
services open their transactions from. Every service takes the factory as a
constructor argument; nothing here is a process-wide singleton.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from account_tokens.core.config import settings


def build_engine(url: str | None = None) -> AsyncEngine:
    """Create an async engine for the configured (or given) database URL.

    Args:
        url: SQLAlchemy URL. Defaults to ``settings.database_url``.

    Returns:
        AsyncEngine with connection liveness checks enabled.
    """
    return create_async_engine(
        url or settings.database_url,
        echo=settings.environment == "development" and settings.log_level == "DEBUG",
        pool_pre_ping=True,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to ``bind``.

    ``expire_on_commit=False`` keeps returned records readable after the
    issuing transaction has committed.
    """
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )
