"""Token record models - email verification and password reset tokens.

Both kinds share one column layout (TokenRecordMixin) and live in separate
tables. Tokens are limited-use and time-limited; only the SHA-256 hash of the
token value is stored.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String, Uuid, false
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from account_tokens.core.errors import ValidationError
from account_tokens.models.base import Base, UTCDateTime


class TokenKind(enum.StrEnum):
    """Token purpose. Doubles as the audit/rate-limit ``action_type``."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class TokenRecordMixin:
    """Columns shared by every token table.

    Invariants: ``use_count <= max_uses``; ``is_used`` is true once
    ``use_count`` reaches ``max_uses`` or the token was explicitly
    invalidated. A token is valid iff it is not used, not expired and has
    uses left.

    Attributes:
        id: Integer primary key (referenced from audit entries).
        user_id: Owner of the token.
        token_hash: SHA-256 hex digest of the token value. Unique.
        expiry_time: Instant after which the token is no longer accepted.
        use_count: Successful consumptions so far.
        max_uses: Upper bound on successful consumptions.
        is_used: Permanently spent or invalidated.
        created_at: Issuance timestamp.
    """

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    @declared_attr
    def user_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid(),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    expiry_time: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        index=True,
    )
    use_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    max_uses: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default="1",
    )
    is_used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    def is_valid_at(self, now: datetime) -> bool:
        """Check the validity predicate against an in-memory record."""
        return (
            not self.is_used
            and self.expiry_time > now
            and self.use_count < self.max_uses
        )


class EmailVerificationToken(Base, TokenRecordMixin):
    """Token proving control of a user's email address."""

    __tablename__ = "email_verification_tokens"


class PasswordResetToken(Base, TokenRecordMixin):
    """Token authorizing a single credential replacement flow."""

    __tablename__ = "password_reset_tokens"


TokenRecord = EmailVerificationToken | PasswordResetToken

TokenModel = type[EmailVerificationToken] | type[PasswordResetToken]

TOKEN_MODELS: dict[TokenKind, TokenModel] = {
    TokenKind.EMAIL_VERIFICATION: EmailVerificationToken,
    TokenKind.PASSWORD_RESET: PasswordResetToken,
}


def token_model_for(kind: TokenKind | str) -> TokenModel:
    """Return the mapped class holding tokens of ``kind``.

    Raises:
        ValueError: If ``kind`` is not a known token kind.
    """
    return TOKEN_MODELS[TokenKind(kind)]


def parse_token_kind(value: TokenKind | str) -> TokenKind:
    """Coerce ``value`` to a TokenKind.

    Raises:
        ValidationError: If ``value`` names no known token kind.
    """
    try:
        return TokenKind(value)
    except ValueError as exc:
        msg = f"Unknown token kind: {value!r}"
        raise ValidationError(msg) from exc
