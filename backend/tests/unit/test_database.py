"""Tests for engine and session factory construction."""

from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.core.database import build_engine, build_session_factory


class TestBuildEngine:
    """build_engine() honours an explicit URL."""

    async def test_uses_given_url(self, tmp_path):
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
        try:
            assert engine.url.drivername == "sqlite+aiosqlite"
        finally:
            await engine.dispose()


class TestBuildSessionFactory:
    """Sessions keep loaded state readable after commit."""

    async def test_sessions_do_not_expire_on_commit(self, db_engine):
        factory = build_session_factory(db_engine)
        assert factory.kw["expire_on_commit"] is False
        async with factory() as session:
            assert isinstance(session, AsyncSession)
