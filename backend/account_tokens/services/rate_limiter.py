"""Issuance throttle backed by the request log.

Counts successful issuances per (user, action) inside a sliding window.
Reads only; the issuer writes the request log row in its own transaction.

A concurrent burst may let one extra issuance through the window; no lock
is taken.
"""

import uuid
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.core.clock import Clock, SystemClock
from account_tokens.core.config import settings
from account_tokens.repositories.request_log_repository import RequestLogRepository


class RateLimiter:
    """Sliding-window issuance limiter.

    Args:
        max_requests: Issuances allowed per window. Defaults to
            ``settings.rate_limit_max_requests``.
        window: Window length. Defaults to
            ``settings.rate_limit_window_minutes``.
        clock: Time source. Defaults to the system clock.
    """

    def __init__(
        self,
        *,
        max_requests: int | None = None,
        window: timedelta | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.max_requests = (
            settings.rate_limit_max_requests if max_requests is None else max_requests
        )
        self.window = window or timedelta(minutes=settings.rate_limit_window_minutes)
        if self.max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if self.window <= timedelta(0):
            raise ValueError("window must be positive")
        self._clock = clock or SystemClock()

    async def count_recent(
        self, db: AsyncSession, user_id: uuid.UUID, action_type: str
    ) -> int:
        """Number of issuances inside the current window."""
        since = self._clock.now() - self.window
        return await RequestLogRepository.count_since(
            db,
            user_id=user_id,
            action_type=action_type,
            since=since,
        )

    async def is_allowed(
        self, db: AsyncSession, user_id: uuid.UUID, action_type: str
    ) -> bool:
        """Whether another issuance is allowed right now.

        Args:
            db: Async database session.
            user_id: User requesting a token.
            action_type: Token kind.

        Returns:
            True iff fewer than ``max_requests`` issuances fall in the window.
        """
        return await self.count_recent(db, user_id, action_type) < self.max_requests

    async def remaining(
        self, db: AsyncSession, user_id: uuid.UUID, action_type: str
    ) -> int:
        """Issuances still available in the current window (never negative)."""
        used = await self.count_recent(db, user_id, action_type)
        return max(0, self.max_requests - used)
