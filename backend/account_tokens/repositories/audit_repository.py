"""Repository for the append-only audit log."""

import uuid
from datetime import datetime
from typing import Any, cast

from sqlalchemy import delete, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.models.audit import AuditEntry


class AuditRepository:
    """Stateless repository for audit_log rows.

    All methods are static; no instance state. There is no update method:
    entries are never mutated once written.
    """

    @staticmethod
    async def append(
        db: AsyncSession,
        *,
        user_id: uuid.UUID | None,
        action_type: str,
        description: str,
        action_time: datetime,
    ) -> AuditEntry:
        """Append one audit entry.

        Args:
            db: Async database session.
            user_id: Subject of the event (None if unknown).
            action_type: Token kind the event belongs to.
            description: Event text. Must not contain token values.
            action_time: Event time.

        Returns:
            Created AuditEntry.
        """
        entry = AuditEntry(
            user_id=user_id,
            action_type=action_type,
            description=description,
            action_time=action_time,
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        action_type: str | None = None,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        """Return a user's audit trail in chronological order.

        Ties on action_time are broken by insertion order (id).

        Args:
            db: Async database session.
            user_id: Subject to list events for.
            action_type: Optional filter on token kind.
            limit: Optional maximum number of entries.

        Returns:
            Entries ordered oldest first.
        """
        stmt = select(AuditEntry).where(AuditEntry.user_id == user_id)
        if action_type is not None:
            stmt = stmt.where(AuditEntry.action_type == action_type)
        stmt = stmt.order_by(AuditEntry.action_time.asc(), AuditEntry.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def delete_older_than(db: AsyncSession, *, cutoff: datetime) -> int:
        """Delete entries older than ``cutoff`` (opt-in retention only).

        Args:
            db: Async database session.
            cutoff: Entries with action_time strictly before this are removed.

        Returns:
            Number of deleted rows.
        """
        stmt = (
            delete(AuditEntry)
            .where(AuditEntry.action_time < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count
