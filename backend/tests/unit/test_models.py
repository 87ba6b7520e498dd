"""Tests for model helpers: UTC datetime column, token kinds, validity."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import StatementError
from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.core.errors import ValidationError
from account_tokens.models import (
    AuditEntry,
    EmailVerificationToken,
    TokenKind,
    parse_token_kind,
)
from tests.conftest import TEST_NOW, TEST_USER_ID


class TestParseTokenKind:
    """parse_token_kind() accepts enum members and their string values."""

    def test_accepts_member_and_value(self):
        assert parse_token_kind(TokenKind.PASSWORD_RESET) is TokenKind.PASSWORD_RESET
        assert parse_token_kind("email_verification") is TokenKind.EMAIL_VERIFICATION

    def test_rejects_unknown_value(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_token_kind("EMAIL_VERIFICATION")
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_kind_value_is_action_type(self):
        assert str(TokenKind.EMAIL_VERIFICATION) == "email_verification"


class TestIsValidAt:
    """In-memory validity predicate mirrors the consume WHERE clause."""

    def _token(self, **overrides) -> EmailVerificationToken:
        values = {
            "user_id": TEST_USER_ID,
            "token_hash": "0" * 64,
            "expiry_time": TEST_NOW + timedelta(minutes=30),
            "use_count": 0,
            "max_uses": 3,
            "is_used": False,
            "created_at": TEST_NOW,
        }
        values.update(overrides)
        return EmailVerificationToken(**values)

    def test_fresh_token_is_valid(self):
        assert self._token().is_valid_at(TEST_NOW) is True

    @pytest.mark.parametrize(
        "overrides",
        [
            {"is_used": True},
            {"use_count": 3},
            {"expiry_time": TEST_NOW},
            {"expiry_time": TEST_NOW - timedelta(seconds=1)},
        ],
    )
    def test_invalid_states(self, overrides):
        assert self._token(**overrides).is_valid_at(TEST_NOW) is False


class TestUTCDateTime:
    """Datetimes round-trip as aware UTC values."""

    async def test_round_trip_is_utc_aware(self, db_session: AsyncSession):
        entry = AuditEntry(
            user_id=None,
            action_type="email_verification",
            description="round trip",
            action_time=datetime(2026, 3, 1, 14, 0, tzinfo=UTC),
        )
        db_session.add(entry)
        await db_session.commit()
        await db_session.refresh(entry)

        assert entry.action_time.tzinfo is not None
        assert entry.action_time == datetime(2026, 3, 1, 14, 0, tzinfo=UTC)

    async def test_naive_datetime_rejected(self, db_session: AsyncSession):
        db_session.add(
            AuditEntry(
                user_id=None,
                action_type="email_verification",
                description="naive",
                action_time=datetime(2026, 3, 1, 14, 0),
            )
        )
        with pytest.raises(StatementError, match="Naive datetimes"):
            await db_session.flush()
