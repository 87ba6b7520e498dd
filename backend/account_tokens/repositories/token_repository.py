"""Repository for token record operations (both token kinds).

Tokens are stored as SHA-256 hashes with an expiry time and a use budget.
Consumption is a single conditional UPDATE so concurrent consumers of the
same token can never both pass the validity check.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast

from sqlalchemy import delete, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.models.token import TokenKind, TokenRecord, token_model_for


@dataclass(frozen=True)
class ConsumedToken:
    """Row state right after a successful conditional consume.

    Attributes:
        token_id: Primary key of the token record.
        user_id: Owner of the token.
        use_count: Use count after the increment.
        is_used: Whether this consume spent the last use.
    """

    token_id: int
    user_id: uuid.UUID
    use_count: int
    is_used: bool


class TokenRepository:
    """Stateless repository for the token tables.

    All methods are static; no instance state. ``kind`` selects the table.
    Time is always passed in by the caller (injected clock).
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        kind: TokenKind,
        user_id: uuid.UUID,
        token_hash: str,
        expiry_time: datetime,
        max_uses: int,
        created_at: datetime,
    ) -> TokenRecord:
        """Store a new token record.

        Args:
            db: Async database session.
            kind: Token kind (selects the table).
            user_id: Owner of the token.
            token_hash: SHA-256 hash of the plain token.
            expiry_time: Token expiry timestamp.
            max_uses: Number of successful consumptions allowed.
            created_at: Issuance timestamp.

        Returns:
            Created token record with its id populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If the hash already exists or the
                user does not exist (foreign key enforcement permitting).
        """
        model = token_model_for(kind)
        record = model(
            user_id=user_id,
            token_hash=token_hash,
            expiry_time=expiry_time,
            use_count=0,
            max_uses=max_uses,
            is_used=False,
            created_at=created_at,
        )
        db.add(record)
        await db.flush()
        return record

    @staticmethod
    async def get_by_hash(
        db: AsyncSession,
        *,
        kind: TokenKind,
        token_hash: str,
    ) -> TokenRecord | None:
        """Look up a token record by hash, regardless of validity.

        Args:
            db: Async database session.
            kind: Token kind (selects the table).
            token_hash: SHA-256 hash of the plain token.

        Returns:
            Token record if found, None otherwise.
        """
        model = token_model_for(kind)
        stmt = select(model).where(model.token_hash == token_hash)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def consume_valid(
        db: AsyncSession,
        *,
        kind: TokenKind,
        token_hash: str,
        now: datetime,
    ) -> ConsumedToken | None:
        """Atomically spend one use of a valid token.

        Increments ``use_count`` and sets ``is_used`` when the last use is
        spent, guarded by the full validity predicate in the WHERE clause.
        The affected row decides the outcome; no prior SELECT.

        Args:
            db: Async database session.
            kind: Token kind (selects the table).
            token_hash: SHA-256 hash of the plain token.
            now: Current time from the injected clock.

        Returns:
            ConsumedToken if a valid token was consumed, None otherwise.
        """
        model = token_model_for(kind)
        stmt = (
            update(model)
            .where(
                model.token_hash == token_hash,
                model.is_used.is_(False),
                model.expiry_time > now,
                model.use_count < model.max_uses,
            )
            .values(
                use_count=model.use_count + 1,
                is_used=(model.use_count + 1) >= model.max_uses,
            )
            .returning(model.id, model.user_id, model.use_count, model.is_used)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return ConsumedToken(
            token_id=row.id,
            user_id=row.user_id,
            use_count=row.use_count,
            is_used=bool(row.is_used),
        )

    @staticmethod
    async def invalidate(
        db: AsyncSession,
        *,
        kind: TokenKind,
        token_hash: str,
        now: datetime,
    ) -> ConsumedToken | None:
        """Mark a live token as used without spending a use.

        Args:
            db: Async database session.
            kind: Token kind (selects the table).
            token_hash: SHA-256 hash of the plain token.
            now: Current time from the injected clock.

        Returns:
            Row state if a live token was invalidated, None otherwise.
        """
        model = token_model_for(kind)
        stmt = (
            update(model)
            .where(
                model.token_hash == token_hash,
                model.is_used.is_(False),
                model.expiry_time > now,
            )
            .values(is_used=True)
            .returning(model.id, model.user_id, model.use_count, model.is_used)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return ConsumedToken(
            token_id=row.id,
            user_id=row.user_id,
            use_count=row.use_count,
            is_used=True,
        )

    @staticmethod
    async def invalidate_all_for_user(
        db: AsyncSession,
        *,
        kind: TokenKind,
        user_id: uuid.UUID,
        now: datetime,
        exclude_id: int | None = None,
    ) -> int:
        """Mark every live token of a user as used.

        Args:
            db: Async database session.
            kind: Token kind (selects the table).
            user_id: Owner whose tokens are invalidated.
            now: Current time from the injected clock.
            exclude_id: Token record id to leave untouched.

        Returns:
            Number of invalidated rows.
        """
        model = token_model_for(kind)
        stmt = (
            update(model)
            .where(
                model.user_id == user_id,
                model.is_used.is_(False),
                model.expiry_time > now,
            )
            .values(is_used=True)
            .execution_options(synchronize_session=False)
        )
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count

    @staticmethod
    async def delete_expired_unused(
        db: AsyncSession,
        *,
        kind: TokenKind,
        now: datetime,
    ) -> int:
        """Delete expired tokens that were never spent (periodic cleanup).

        Spent tokens (``is_used``) are kept even after expiry.

        Args:
            db: Async database session.
            kind: Token kind (selects the table).
            now: Current time from the injected clock.

        Returns:
            Number of deleted rows.
        """
        model = token_model_for(kind)
        stmt = (
            delete(model)
            .where(
                model.expiry_time < now,
                model.is_used.is_(False),
            )
            .execution_options(synchronize_session=False)
        )
        result = cast(CursorResult[Any], await db.execute(stmt))
        row_count: int = result.rowcount
        return row_count
