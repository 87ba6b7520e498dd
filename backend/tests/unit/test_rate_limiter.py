"""Tests for the sliding-window issuance limiter and its request log."""

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.core.clock import FixedClock
from account_tokens.repositories.request_log_repository import RequestLogRepository
from account_tokens.services.rate_limiter import RateLimiter
from tests.conftest import TEST_NOW, TEST_USER_ID

_ACTION = "email_verification"


async def _log(db: AsyncSession, minutes_ago: float, action: str = _ACTION) -> None:
    await RequestLogRepository.record(
        db,
        user_id=TEST_USER_ID,
        action_type=action,
        request_time=TEST_NOW - timedelta(minutes=minutes_ago),
    )


class TestConstruction:
    """RateLimiter defaults and argument validation."""

    def test_defaults_from_settings(self):
        limiter = RateLimiter()
        assert limiter.max_requests == 3
        assert limiter.window == timedelta(minutes=60)

    def test_rejects_non_positive_budget(self):
        with pytest.raises(ValueError, match="max_requests"):
            RateLimiter(max_requests=0)

    def test_rejects_non_positive_window(self):
        with pytest.raises(ValueError, match="window"):
            RateLimiter(window=timedelta(seconds=-1))


class TestIsAllowed:
    """Test RateLimiter.is_allowed()."""

    async def test_allows_first_request(
        self, db_session: AsyncSession, clock: FixedClock
    ):
        limiter = RateLimiter(clock=clock)
        assert await limiter.is_allowed(db_session, TEST_USER_ID, _ACTION) is True

    async def test_denies_when_budget_spent(
        self, db_session: AsyncSession, clock: FixedClock
    ):
        """Three issuances in the last hour exhaust the budget."""
        for minutes_ago in (50, 20, 1):
            await _log(db_session, minutes_ago)
        limiter = RateLimiter(clock=clock)
        assert await limiter.is_allowed(db_session, TEST_USER_ID, _ACTION) is False
        assert await limiter.remaining(db_session, TEST_USER_ID, _ACTION) == 0

    async def test_old_requests_fall_out_of_window(
        self, db_session: AsyncSession, clock: FixedClock
    ):
        for minutes_ago in (61, 20, 1):
            await _log(db_session, minutes_ago)
        limiter = RateLimiter(clock=clock)
        assert await limiter.count_recent(db_session, TEST_USER_ID, _ACTION) == 2
        assert await limiter.is_allowed(db_session, TEST_USER_ID, _ACTION) is True

    async def test_window_start_is_inclusive(
        self, db_session: AsyncSession, clock: FixedClock
    ):
        """A request exactly one window ago still counts."""
        await _log(db_session, 60)
        limiter = RateLimiter(clock=clock)
        assert await limiter.count_recent(db_session, TEST_USER_ID, _ACTION) == 1

    async def test_actions_are_counted_separately(
        self, db_session: AsyncSession, clock: FixedClock
    ):
        for minutes_ago in (3, 2, 1):
            await _log(db_session, minutes_ago, action="password_reset")
        limiter = RateLimiter(clock=clock)
        assert await limiter.is_allowed(db_session, TEST_USER_ID, _ACTION) is True
        assert await limiter.remaining(db_session, TEST_USER_ID, _ACTION) == 3

    async def test_budget_returns_as_clock_advances(
        self, db_session: AsyncSession, clock: FixedClock
    ):
        for minutes_ago in (30, 20, 10):
            await _log(db_session, minutes_ago)
        limiter = RateLimiter(clock=clock)
        assert await limiter.is_allowed(db_session, TEST_USER_ID, _ACTION) is False

        clock.advance(timedelta(minutes=31))
        assert await limiter.remaining(db_session, TEST_USER_ID, _ACTION) == 1


class TestRequestLogCleanup:
    """Test RequestLogRepository.delete_older_than()."""

    async def test_deletes_strictly_older_rows(self, db_session: AsyncSession):
        for minutes_ago in (3 * 24 * 60, 2 * 24 * 60, 60):
            await _log(db_session, minutes_ago)
        deleted = await RequestLogRepository.delete_older_than(
            db_session, cutoff=TEST_NOW - timedelta(days=2)
        )
        assert deleted == 1
        count = await RequestLogRepository.count_since(
            db_session,
            user_id=TEST_USER_ID,
            action_type=_ACTION,
            since=TEST_NOW - timedelta(days=30),
        )
        assert count == 2
