"""Tests for UserRepository.

Tests cover lookups, creation with email normalization, uniqueness and the
two mutations the token flows perform.
"""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.repositories.user_repository import UserRepository, UserStore

_MISSING_UUID = uuid.UUID("99999999-9999-9999-9999-999999999999")
_TEST_EMAIL = "test@example.com"


class TestGetUser:
    """Test UserRepository.get_user()."""

    async def test_returns_user_when_found(self, db_session: AsyncSession, test_user):
        """Existing user is returned by ID."""
        user = await UserRepository.get_user(db_session, test_user.id)
        assert user is not None
        assert user.id == test_user.id
        assert user.email == test_user.email

    async def test_returns_none_when_not_found(self, db_session: AsyncSession):
        """Non-existent ID returns None."""
        user = await UserRepository.get_user(db_session, _MISSING_UUID)
        assert user is None


class TestGetByEmail:
    """Test UserRepository.get_by_email()."""

    async def test_email_lookup_is_case_insensitive(
        self, db_session: AsyncSession, test_user
    ):
        """Email lookup ignores case and surrounding whitespace."""
        user = await UserRepository.get_by_email(db_session, "  TEST@EXAMPLE.COM ")
        assert user is not None
        assert user.id == test_user.id

    async def test_returns_none_when_not_found(self, db_session: AsyncSession):
        user = await UserRepository.get_by_email(db_session, "nobody@example.com")
        assert user is None


class TestCreate:
    """Test UserRepository.create()."""

    async def test_creates_unverified_user_with_lowercase_email(
        self, db_session: AsyncSession
    ):
        """New users start unverified with a normalized email."""
        user = await UserRepository.create(db_session, email="New@Example.COM")
        assert user.id is not None
        assert user.email == "new@example.com"
        assert user.is_verified is False
        assert user.password_hash is None
        assert user.created_at is not None

    async def test_duplicate_email_raises(self, db_session: AsyncSession, test_user):
        """Email is unique across users."""
        with pytest.raises(IntegrityError):
            await UserRepository.create(db_session, email=test_user.email.upper())


class TestSetVerified:
    """Test UserRepository.set_verified()."""

    async def test_flips_flag(self, db_session: AsyncSession, test_user):
        user = await UserRepository.set_verified(db_session, test_user.id, False)
        assert user is not None
        assert user.is_verified is False

        user = await UserRepository.set_verified(db_session, test_user.id, True)
        assert user is not None
        assert user.is_verified is True

    async def test_returns_none_for_missing_user(self, db_session: AsyncSession):
        user = await UserRepository.set_verified(db_session, _MISSING_UUID, True)
        assert user is None


class TestSetCredential:
    """Test UserRepository.set_credential()."""

    async def test_stores_secret_verbatim(self, db_session: AsyncSession, test_user):
        """The hash is stored exactly as passed in."""
        user = await UserRepository.set_credential(
            db_session, test_user.id, "$argon2id$v=19$new-hash"
        )
        assert user is not None
        assert user.password_hash == "$argon2id$v=19$new-hash"

    async def test_returns_none_for_missing_user(self, db_session: AsyncSession):
        assert (
            await UserRepository.set_credential(db_session, _MISSING_UUID, "x") is None
        )


class TestUserStoreProtocol:
    """UserRepository is usable wherever a UserStore is expected."""

    def test_repository_instance_satisfies_protocol(self):
        store: UserStore = UserRepository()
        assert callable(store.get_user)
        assert callable(store.set_verified)
        assert callable(store.set_credential)
