"""Repository for User reads and the two mutations the token engine needs.

The user table belongs to the surrounding application. Token flows only
look users up, flip the verification flag and store a new credential hash.
"""

import uuid
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.models.user import User


class UserStore(Protocol):
    """User operations the token engine depends on.

    Every call receives the caller's session so user effects commit in the
    same transaction as the token update and audit entry.
    """

    async def get_user(self, db: AsyncSession, user_id: uuid.UUID) -> User | None: ...

    async def set_verified(
        self, db: AsyncSession, user_id: uuid.UUID, verified: bool
    ) -> User | None: ...

    async def set_credential(
        self, db: AsyncSession, user_id: uuid.UUID, secret: str
    ) -> User | None: ...


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static; no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    Satisfies the ``UserStore`` protocol.
    """

    @staticmethod
    async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str | None = None,
        is_verified: bool = False,
    ) -> User:
        """Create a new user.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: User email address.
            password_hash: Already-hashed credential (None for no password).
            is_verified: Initial verification state.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(
            email=email.strip().lower(),
            password_hash=password_hash,
            is_verified=is_verified,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def set_verified(
        db: AsyncSession, user_id: uuid.UUID, verified: bool
    ) -> User | None:
        """Set the email verification flag.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            verified: New flag value.

        Returns:
            Updated User if found, None if user does not exist.
        """
        user = await db.get(User, user_id)
        if user is None:
            return None
        user.is_verified = verified
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def set_credential(
        db: AsyncSession, user_id: uuid.UUID, secret: str
    ) -> User | None:
        """Replace the stored credential.

        Security: ``secret`` must already be hashed by the caller. It is
        stored verbatim.

        Args:
            db: Async database session.
            user_id: UUID of the user.
            secret: Hashed credential.

        Returns:
            Updated User if found, None if user does not exist.
        """
        user = await db.get(User, user_id)
        if user is None:
            return None
        user.password_hash = secret
        await db.flush()
        await db.refresh(user)
        return user
