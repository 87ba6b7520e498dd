"""Tests for service error classes and storage error translation."""

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from account_tokens.core.errors import (
    ConcurrencyConflictError,
    ServiceError,
    StorageFailureError,
    ValidationError,
    is_concurrency_conflict,
    translate_storage_error,
)


def _driver_error(**attrs: str) -> OperationalError:
    """Build a SQLAlchemy error wrapping a fake driver exception."""
    orig = SimpleNamespace(**attrs)
    return OperationalError("UPDATE email_verification_tokens ...", {}, orig)


class TestErrorCodes:
    """Each error class carries a stable machine-readable code."""

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (ValidationError("bad kind"), "VALIDATION_ERROR"),
            (StorageFailureError(), "STORAGE_FAILURE"),
            (ConcurrencyConflictError(), "CONCURRENCY_CONFLICT"),
        ],
    )
    def test_code(self, error: ServiceError, code: str):
        assert isinstance(error, ServiceError)
        assert error.code == code

    def test_message_is_exception_text(self):
        error = ValidationError("Unknown token kind: 'sms'")
        assert error.message == "Unknown token kind: 'sms'"
        assert str(error) == "Unknown token kind: 'sms'"


class TestIsConcurrencyConflict:
    """Driver errors from competing transactions are recognized."""

    @pytest.mark.parametrize("sqlstate", ["40001", "40P01", "55P03"])
    def test_postgres_conflict_sqlstates(self, sqlstate: str):
        assert is_concurrency_conflict(_driver_error(sqlstate=sqlstate)) is True

    def test_psycopg_style_pgcode(self):
        assert is_concurrency_conflict(_driver_error(pgcode="40001")) is True

    def test_sqlite_database_is_locked(self):
        exc = OperationalError("UPDATE ...", {}, Exception("database is locked"))
        assert is_concurrency_conflict(exc) is True

    def test_other_sqlstate_is_not_a_conflict(self):
        assert is_concurrency_conflict(_driver_error(sqlstate="23505")) is False

    def test_error_without_driver_cause(self):
        assert is_concurrency_conflict(RuntimeError("boom")) is False


class TestTranslateStorageError:
    """SQLAlchemy errors map onto the service error taxonomy."""

    def test_conflict_becomes_concurrency_conflict(self):
        result = translate_storage_error(_driver_error(sqlstate="40P01"))
        assert isinstance(result, ConcurrencyConflictError)

    def test_anything_else_becomes_storage_failure(self):
        exc = OperationalError("SELECT 1", {}, Exception("connection refused"))
        result = translate_storage_error(exc)
        assert isinstance(result, StorageFailureError)
        assert result.message == "Token store unavailable"
