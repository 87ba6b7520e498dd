import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from account_tokens.core.clock import FixedClock
from account_tokens.core.database import build_session_factory
from account_tokens.models import Base, User

# Test user ID (consistent across tests for predictable assertions)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "test@example.com"

# Second user for cross-user isolation tests
OTHER_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")

# Start time for the fixed clock; every test begins here
TEST_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    """Turn on FK enforcement (off by default in SQLite) for ON DELETE CASCADE."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine on a temporary SQLite file.

    A file (not :memory:) so separate connections share state, which the
    concurrency tests rely on. The busy timeout serializes competing writers.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tokens.db'}",
        echo=False,
        connect_args={"timeout": 30},
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory handed to the services under test."""
    return build_session_factory(db_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session.

    Commit setup data explicitly: an uncommitted write holds SQLite's write
    lock and would block the services' own sessions.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FixedClock:
    """Manually driven clock starting at TEST_NOW."""
    return FixedClock(TEST_NOW)


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create the primary test user (verified, with a credential)."""
    user = User(
        id=TEST_USER_ID,
        email=TEST_USER_EMAIL,
        password_hash="old-hash",
        is_verified=True,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    """Create a second user for isolation tests."""
    user = User(id=OTHER_USER_ID, email="other@example.com")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user
