"""Token issuance.

Generates a token, enforces the per-user issuance throttle and records the
issuance, all inside one transaction: the token row, the verification-flag
reset, the audit entry and the request log row commit together or not at all.

Security:
- Token values come from the OS CSPRNG (``secrets``) and only their SHA-256
  hash is stored. Audit entries reference the record id.
- A throttled request and a request for an unknown user both return the
  same ``DENIED`` value. Token generation, the user lookup and the throttle
  count run on every path; only the writes are skipped on a denial.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from account_tokens.core.clock import Clock, SystemClock
from account_tokens.core.config import settings
from account_tokens.core.errors import translate_storage_error
from account_tokens.core.security import MIN_TOKEN_BYTES, generate_token_pair
from account_tokens.models.token import TokenKind, parse_token_kind
from account_tokens.repositories.request_log_repository import RequestLogRepository
from account_tokens.repositories.token_repository import TokenRepository
from account_tokens.repositories.user_repository import UserRepository, UserStore
from account_tokens.services.audit_log import AuditLog
from account_tokens.services.rate_limiter import RateLimiter

logger = structlog.get_logger()

_KIND_LABELS: dict[TokenKind, str] = {
    TokenKind.EMAIL_VERIFICATION: "Verification",
    TokenKind.PASSWORD_RESET: "Password reset",
}


@dataclass(frozen=True)
class Issued:
    """A freshly issued token.

    Attributes:
        token: Plain token value to deliver to the user. Not stored anywhere.
        token_id: Primary key of the token record.
        user_id: Owner of the token.
        kind: Token kind.
        expiry_time: When the token stops being accepted.
        max_uses: Number of successful consumptions allowed.
    """

    token: str = field(repr=False)
    token_id: int
    user_id: uuid.UUID
    kind: TokenKind
    expiry_time: datetime
    max_uses: int


@dataclass(frozen=True)
class Denied:
    """Issuance refused. Carries no reason on purpose."""


DENIED = Denied()

IssueResult = Issued | Denied


class TokenIssuer:
    """Issues verification and reset tokens.

    Args:
        session_factory: Async session factory; each issuance runs in its
            own transaction.
        clock: Time source. Defaults to the system clock.
        rate_limiter: Issuance throttle. Defaults to one built from settings
            sharing ``clock``.
        user_store: User operations. Defaults to ``UserRepository``.
        ttl: Token lifetime. Defaults to ``settings.token_ttl_minutes``.
        max_uses: Use budget per token. Defaults to ``settings.token_max_uses``.
        token_bytes: Random bytes per token. Defaults to ``settings.token_bytes``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock | None = None,
        rate_limiter: RateLimiter | None = None,
        user_store: UserStore | None = None,
        ttl: timedelta | None = None,
        max_uses: int | None = None,
        token_bytes: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._rate_limiter = rate_limiter or RateLimiter(clock=self._clock)
        self._users: UserStore = user_store or UserRepository()
        self._audit = AuditLog(self._clock)
        self._ttl = ttl or timedelta(minutes=settings.token_ttl_minutes)
        self._max_uses = settings.token_max_uses if max_uses is None else max_uses
        self._token_bytes = (
            settings.token_bytes if token_bytes is None else token_bytes
        )
        if self._max_uses <= 0:
            raise ValueError("max_uses must be positive")
        if self._token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be at least {MIN_TOKEN_BYTES}")

    async def issue(self, user_id: uuid.UUID, kind: TokenKind | str) -> IssueResult:
        """Issue a token of ``kind`` for a user.

        Args:
            user_id: User the token is for.
            kind: ``email_verification`` or ``password_reset``.

        Returns:
            Issued with the plain token, or DENIED when the user is throttled
            or unknown.

        Raises:
            ValidationError: If ``kind`` is unknown.
            StorageFailureError: If the store fails; nothing is written.
            ConcurrencyConflictError: If the database aborted the transaction.
        """
        kind = parse_token_kind(kind)
        plain_token, token_hash = generate_token_pair(self._token_bytes)

        try:
            async with self._session_factory() as db, db.begin():
                result = await self._issue_in_transaction(
                    db, user_id, kind, plain_token, token_hash
                )
        except SQLAlchemyError as exc:
            logger.error(
                "Token issuance failed",
                kind=kind.value,
                user_id=str(user_id),
                error=type(exc).__name__,
            )
            raise translate_storage_error(exc) from exc

        if isinstance(result, Issued):
            logger.info(
                "Token issued",
                kind=kind.value,
                user_id=str(user_id),
                token_id=result.token_id,
            )
        else:
            logger.info("Token issuance denied", kind=kind.value, user_id=str(user_id))
        return result

    async def _issue_in_transaction(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        kind: TokenKind,
        plain_token: str,
        token_hash: str,
    ) -> IssueResult:
        # Both queries run on every path
        user = await self._users.get_user(db, user_id)
        allowed = await self._rate_limiter.is_allowed(db, user_id, kind.value)
        if user is None or not allowed:
            return DENIED

        now = self._clock.now()
        record = await TokenRepository.create(
            db,
            kind=kind,
            user_id=user_id,
            token_hash=token_hash,
            expiry_time=now + self._ttl,
            max_uses=self._max_uses,
            created_at=now,
        )

        # Re-verification: a new verification token re-opens the flow
        if kind is TokenKind.EMAIL_VERIFICATION:
            await self._users.set_verified(db, user_id, False)

        await self._audit.record(
            db,
            user_id,
            kind.value,
            f"{_KIND_LABELS[kind]} token #{record.id} issued "
            f"(max uses {record.max_uses}, expires {record.expiry_time.isoformat()})",
        )
        await RequestLogRepository.record(
            db,
            user_id=user_id,
            action_type=kind.value,
            request_time=now,
        )

        return Issued(
            token=plain_token,
            token_id=record.id,
            user_id=user_id,
            kind=kind,
            expiry_time=record.expiry_time,
            max_uses=record.max_uses,
        )
