"""Repository for the issuance request log (rate-limit history)."""

import uuid
from datetime import datetime
from typing import Any, cast

from sqlalchemy import delete, func, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.models.request_log import RateLimitRecord


class RequestLogRepository:
    """Stateless repository for request_log rows.

    All methods are static; no instance state.
    """

    @staticmethod
    async def record(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        action_type: str,
        request_time: datetime,
    ) -> RateLimitRecord:
        """Log one successful issuance.

        Args:
            db: Async database session.
            user_id: User the token was issued for.
            action_type: Token kind.
            request_time: Issuance time.

        Returns:
            Created RateLimitRecord.
        """
        entry = RateLimitRecord(
            user_id=user_id,
            action_type=action_type,
            request_time=request_time,
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def count_since(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        action_type: str,
        since: datetime,
    ) -> int:
        """Count issuances for a user+action at or after ``since``.

        Args:
            db: Async database session.
            user_id: User to count for.
            action_type: Token kind.
            since: Window start (inclusive).

        Returns:
            Number of matching rows.
        """
        stmt = select(func.count(RateLimitRecord.id)).where(
            RateLimitRecord.user_id == user_id,
            RateLimitRecord.action_type == action_type,
            RateLimitRecord.request_time >= since,
        )
        result = await db.execute(stmt)
        return int(result.scalar_one())

    @staticmethod
    async def delete_older_than(db: AsyncSession, *, cutoff: datetime) -> int:
        """Delete rows logged before ``cutoff`` (periodic cleanup).

        Args:
            db: Async database session.
            cutoff: Rows with request_time strictly before this are removed.

        Returns:
            Number of deleted rows.
        """
        stmt = (
            delete(RateLimitRecord)
            .where(RateLimitRecord.request_time < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count
