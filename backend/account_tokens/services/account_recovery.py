"""Account recovery flows: email verification and password reset.

Wires the issuer, the consumer and an optional notification sender into the
four operations an application calls:

- request_email_verification / request_password_reset: issue, then deliver
- verify_email / reset_password: consume

Delivery runs after the issuance transaction has committed. A delivery
failure is logged and never rolls the token back; the user can request
another one within the throttle budget.
"""

import logging
import uuid
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from account_tokens.core.clock import Clock, SystemClock
from account_tokens.models.token import TokenKind
from account_tokens.models.user import User
from account_tokens.repositories.user_repository import UserRepository, UserStore
from account_tokens.services.token_consumer import ConsumeResult, TokenConsumer
from account_tokens.services.token_issuer import Issued, IssueResult, TokenIssuer

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    """Delivers a token to its owner (email, SMS, ...)."""

    async def send_token(self, user: User, kind: TokenKind, token: str) -> None: ...


class AccountRecoveryService:
    """Entry point for verification and password reset flows.

    Args:
        session_factory: Async session factory.
        clock: Time source shared by issuer and consumer.
        sender: Optional token delivery. Without it, callers deliver the
            token from the returned ``Issued`` themselves.
        issuer: Pre-built issuer (defaults to one sharing clock/user store).
        consumer: Pre-built consumer (defaults to one sharing clock/user store).
        user_store: User operations. Defaults to ``UserRepository``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock | None = None,
        sender: NotificationSender | None = None,
        issuer: TokenIssuer | None = None,
        consumer: TokenConsumer | None = None,
        user_store: UserStore | None = None,
    ) -> None:
        clock = clock or SystemClock()
        self._session_factory = session_factory
        self._users: UserStore = user_store or UserRepository()
        self._sender = sender
        self.issuer = issuer or TokenIssuer(
            session_factory, clock=clock, user_store=self._users
        )
        self.consumer = consumer or TokenConsumer(
            session_factory, clock=clock, user_store=self._users
        )

    async def request_email_verification(self, user_id: uuid.UUID) -> IssueResult:
        """Issue a verification token and hand it to the sender."""
        return await self._request(user_id, TokenKind.EMAIL_VERIFICATION)

    async def request_password_reset(self, user_id: uuid.UUID) -> IssueResult:
        """Issue a password reset token and hand it to the sender."""
        return await self._request(user_id, TokenKind.PASSWORD_RESET)

    async def verify_email(self, token: str) -> ConsumeResult:
        """Mark the token owner's email as verified."""
        return await self.consumer.verify_email(token)

    async def reset_password(self, token: str, new_password_hash: str) -> ConsumeResult:
        """Store a new credential hash for the token owner.

        The credential change and the invalidation of the user's other live
        reset tokens commit together. The token just used is left alone and
        keeps any remaining uses until it expires.
        """
        return await self.consumer.reset_password(
            token, new_password_hash, revoke_siblings=True
        )

    async def _request(self, user_id: uuid.UUID, kind: TokenKind) -> IssueResult:
        result = await self.issuer.issue(user_id, kind)
        if isinstance(result, Issued) and self._sender is not None:
            await self._deliver(self._sender, result)
        return result

    async def _deliver(self, sender: NotificationSender, issued: Issued) -> None:
        async with self._session_factory() as db:
            user = await self._users.get_user(db, issued.user_id)
        if user is None:
            logger.warning("Token owner %s vanished before delivery", issued.user_id)
            return
        try:
            await sender.send_token(user, issued.kind, issued.token)
        except Exception:
            logger.warning(
                "Failed to deliver %s token #%d",
                issued.kind.value,
                issued.token_id,
                exc_info=True,
            )
