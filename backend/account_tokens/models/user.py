"""User model - owner of verification and reset tokens.

Owned by the surrounding application. The token engine only reads ``id`` and
flips ``is_verified`` / replaces ``password_hash``.
"""

import uuid

from sqlalchemy import Boolean, String, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column

from account_tokens.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """User account.

    Attributes:
        id: UUID primary key.
        email: Unique email address (stored lowercase).
        password_hash: Credential secret, already hashed by the caller.
            NULL for accounts without a password.
        is_verified: Whether the email address has been confirmed.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=false(),
        default=False,
    )
