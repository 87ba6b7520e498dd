"""Token consumption and invalidation.

A consume spends one use of a valid token and applies its effect:
- email verification: mark the owner verified
- password reset: store the new (already hashed) credential

The use-count increment is one conditional UPDATE guarded by the validity
predicate, followed by the effect and the audit entry in the same
transaction. Two concurrent consumers of a single-use token therefore get
exactly one ``Applied``.

Unknown, expired, exhausted and invalidated tokens all produce the same
``INVALID`` value with no state change and no audit entry.
"""

import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from account_tokens.core.clock import Clock, SystemClock
from account_tokens.core.errors import (
    ConcurrencyConflictError,
    ValidationError,
    translate_storage_error,
)
from account_tokens.core.security import hash_token
from account_tokens.models.token import TokenKind, parse_token_kind
from account_tokens.repositories.token_repository import ConsumedToken, TokenRepository
from account_tokens.repositories.user_repository import UserRepository, UserStore
from account_tokens.services.audit_log import AuditLog

logger = structlog.get_logger()

# One retry after a serialization failure, then report the token invalid
_MAX_CONSUME_ATTEMPTS = 2


@dataclass(frozen=True)
class Applied:
    """A use was spent and the token's effect applied.

    Attributes:
        user_id: Owner of the token.
        token_id: Primary key of the token record.
        kind: Token kind.
        use_count: Use count after this consume.
        is_used: Whether this consume spent the last use.
    """

    user_id: uuid.UUID
    token_id: int
    kind: TokenKind
    use_count: int
    is_used: bool


@dataclass(frozen=True)
class Invalid:
    """Token rejected. Carries no reason on purpose."""


INVALID = Invalid()

ConsumeResult = Applied | Invalid


class TokenConsumer:
    """Validates, consumes and invalidates tokens.

    Args:
        session_factory: Async session factory; each call runs in its own
            transaction.
        clock: Time source. Defaults to the system clock.
        user_store: User operations. Defaults to ``UserRepository``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock | None = None,
        user_store: UserStore | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._users: UserStore = user_store or UserRepository()
        self._audit = AuditLog(self._clock)

    async def consume(
        self,
        token: str,
        kind: TokenKind | str,
        payload: str | None = None,
        *,
        revoke_siblings: bool = False,
    ) -> ConsumeResult:
        """Spend one use of ``token`` and apply its effect.

        Args:
            token: Plain token value as delivered to the user.
            kind: Token kind; selects the table and the effect.
            payload: New credential hash for password resets. The core stores
                it verbatim; hash before calling.
            revoke_siblings: Also invalidate the owner's other live tokens of
                the same kind, in the same transaction.

        Returns:
            Applied on success, INVALID otherwise.

        Raises:
            ValidationError: If ``kind`` is unknown or a password reset has no
                payload.
            StorageFailureError: If the store fails; nothing is written.
        """
        kind = parse_token_kind(kind)
        if kind is TokenKind.PASSWORD_RESET and not payload:
            raise ValidationError("Password reset requires a new credential hash")

        token_hash = hash_token(token)
        for attempt in range(1, _MAX_CONSUME_ATTEMPTS + 1):
            try:
                return await self._consume_once(
                    kind, token_hash, payload, revoke_siblings
                )
            except ConcurrencyConflictError:
                logger.warning(
                    "Token consume conflict", kind=kind.value, attempt=attempt
                )
        return INVALID

    async def verify_email(self, token: str) -> ConsumeResult:
        """Consume an email verification token."""
        return await self.consume(token, TokenKind.EMAIL_VERIFICATION)

    async def reset_password(
        self,
        token: str,
        new_password_hash: str,
        *,
        revoke_siblings: bool = False,
    ) -> ConsumeResult:
        """Consume a password reset token and store ``new_password_hash``.

        With ``revoke_siblings`` every other live reset token of the owner is
        invalidated in the same transaction as the credential change.
        """
        return await self.consume(
            token,
            TokenKind.PASSWORD_RESET,
            new_password_hash,
            revoke_siblings=revoke_siblings,
        )

    async def invalidate(self, token: str, kind: TokenKind | str) -> bool:
        """Permanently invalidate a live token without spending a use.

        Args:
            token: Plain token value.
            kind: Token kind.

        Returns:
            True if a live token was invalidated, False otherwise.

        Raises:
            ValidationError: If ``kind`` is unknown.
            StorageFailureError: If the store fails.
        """
        kind = parse_token_kind(kind)
        token_hash = hash_token(token)
        try:
            async with self._session_factory() as db, db.begin():
                invalidated = await TokenRepository.invalidate(
                    db, kind=kind, token_hash=token_hash, now=self._clock.now()
                )
                if invalidated is None:
                    return False
                await self._audit.record(
                    db,
                    invalidated.user_id,
                    kind.value,
                    f"Token #{invalidated.token_id} invalidated",
                )
        except SQLAlchemyError as exc:
            raise translate_storage_error(exc) from exc

        logger.info(
            "Token invalidated", kind=kind.value, token_id=invalidated.token_id
        )
        return True

    async def invalidate_all_for_user(
        self,
        user_id: uuid.UUID,
        kind: TokenKind | str,
        *,
        exclude_token_id: int | None = None,
    ) -> int:
        """Invalidate every live token of ``kind`` owned by a user.

        Args:
            user_id: Owner of the tokens.
            kind: Token kind.
            exclude_token_id: Token record to leave untouched.

        Returns:
            Number of invalidated tokens.

        Raises:
            ValidationError: If ``kind`` is unknown.
            StorageFailureError: If the store fails.
        """
        kind = parse_token_kind(kind)
        try:
            async with self._session_factory() as db, db.begin():
                count = await TokenRepository.invalidate_all_for_user(
                    db,
                    kind=kind,
                    user_id=user_id,
                    now=self._clock.now(),
                    exclude_id=exclude_token_id,
                )
                if count:
                    await self._audit.record(
                        db,
                        user_id,
                        kind.value,
                        f"{count} outstanding token(s) invalidated",
                    )
        except SQLAlchemyError as exc:
            raise translate_storage_error(exc) from exc
        return count

    async def _consume_once(
        self,
        kind: TokenKind,
        token_hash: str,
        payload: str | None,
        revoke_siblings: bool = False,
    ) -> ConsumeResult:
        try:
            async with self._session_factory() as db, db.begin():
                consumed = await TokenRepository.consume_valid(
                    db, kind=kind, token_hash=token_hash, now=self._clock.now()
                )
                if consumed is None:
                    return INVALID
                await self._apply_effect(db, kind, consumed, payload)
                if revoke_siblings:
                    await self._revoke_siblings(db, kind, consumed)
        except SQLAlchemyError as exc:
            raise translate_storage_error(exc) from exc

        logger.info(
            "Token consumed",
            kind=kind.value,
            user_id=str(consumed.user_id),
            token_id=consumed.token_id,
            use_count=consumed.use_count,
        )
        return Applied(
            user_id=consumed.user_id,
            token_id=consumed.token_id,
            kind=kind,
            use_count=consumed.use_count,
            is_used=consumed.is_used,
        )

    async def _apply_effect(
        self,
        db: AsyncSession,
        kind: TokenKind,
        consumed: ConsumedToken,
        payload: str | None,
    ) -> None:
        if kind is TokenKind.EMAIL_VERIFICATION:
            await self._users.set_verified(db, consumed.user_id, True)
            description = "Email verified"
        else:
            # payload presence checked in consume()
            await self._users.set_credential(db, consumed.user_id, payload or "")
            description = "Password reset"

        await self._audit.record(
            db,
            consumed.user_id,
            kind.value,
            f"{description} with token #{consumed.token_id} "
            f"(use {consumed.use_count})",
        )

    async def _revoke_siblings(
        self, db: AsyncSession, kind: TokenKind, consumed: ConsumedToken
    ) -> None:
        count = await TokenRepository.invalidate_all_for_user(
            db,
            kind=kind,
            user_id=consumed.user_id,
            now=self._clock.now(),
            exclude_id=consumed.token_id,
        )
        if count:
            await self._audit.record(
                db,
                consumed.user_id,
                kind.value,
                f"{count} outstanding token(s) invalidated",
            )
