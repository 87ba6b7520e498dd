"""SQLAlchemy ORM models for the account token engine.

All models are exported from this module for convenient imports:
    from account_tokens.models import User, EmailVerificationToken, ...

Models are organized by table:
- user.py: User (owned by the surrounding application)
- token.py: EmailVerificationToken, PasswordResetToken (shared TokenRecordMixin)
- request_log.py: RateLimitRecord (issuance throttling history)
- audit.py: AuditEntry (append-only event trail)
"""

from account_tokens.models.audit import AuditEntry
from account_tokens.models.base import Base, TimestampMixin, UTCDateTime
from account_tokens.models.request_log import RateLimitRecord
from account_tokens.models.token import (
    TOKEN_MODELS,
    EmailVerificationToken,
    PasswordResetToken,
    TokenKind,
    TokenRecord,
    TokenRecordMixin,
    parse_token_kind,
    token_model_for,
)
from account_tokens.models.user import User

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    # Users
    "User",
    # Tokens
    "TokenKind",
    "TokenRecord",
    "TokenRecordMixin",
    "EmailVerificationToken",
    "PasswordResetToken",
    "TOKEN_MODELS",
    "token_model_for",
    "parse_token_kind",
    # Throttling / audit
    "RateLimitRecord",
    "AuditEntry",
]
