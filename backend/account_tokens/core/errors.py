"""Service error classes.

Business-rule outcomes (a denied issuance, an invalid token) are ordinary
return values and never raised. The classes here cover failures the caller
cannot branch around (storage problems, lock conflicts, programming errors).
Callers such as an HTTP layer map ``code`` to their own responses.
"""


class ServiceError(Exception):
    """Base class for service errors.

    Attributes:
        code: Machine-readable error code (e.g., "STORAGE_FAILURE").
        message: Human-readable error message.
    """

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class ValidationError(ServiceError):
    """Invalid argument passed by the caller.

    Use for unknown token kinds, a password reset without a new credential,
    and similar programming errors. Raised before any database work.
    """

    def __init__(self, message: str) -> None:
        super().__init__(code="VALIDATION_ERROR", message=message)


class StorageFailureError(ServiceError):
    """The underlying store failed or is unavailable.

    The surrounding transaction has been rolled back; nothing was written.
    The original SQLAlchemy exception is chained as ``__cause__``.
    """

    def __init__(self, message: str = "Token store unavailable") -> None:
        super().__init__(code="STORAGE_FAILURE", message=message)


class ConcurrencyConflictError(ServiceError):
    """The database aborted a transaction because of a competing writer.

    Raised for serialization failures, deadlocks and lock timeouts. Token
    consumption retries once and then reports the token as invalid.
    """

    def __init__(self, message: str = "Concurrent update conflict") -> None:
        super().__init__(code="CONCURRENCY_CONFLICT", message=message)


# SQLSTATEs reported for serialization failures, deadlocks and lock timeouts
_CONFLICT_SQLSTATES: frozenset[str] = frozenset({"40001", "40P01", "55P03"})


def is_concurrency_conflict(exc: BaseException) -> bool:
    """Check whether a driver error came from a competing transaction.

    Args:
        exc: SQLAlchemy exception (``DBAPIError`` wraps the driver error as
            ``orig``).

    Returns:
        True for serialization failures, deadlocks, lock timeouts and
        SQLite's "database is locked".
    """
    orig = getattr(exc, "orig", None)
    if orig is None:
        return False
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(orig)


def translate_storage_error(exc: BaseException) -> ServiceError:
    """Map a SQLAlchemy exception onto the service error taxonomy.

    Callers raise the result ``from exc`` so the driver error stays chained.
    """
    if is_concurrency_conflict(exc):
        return ConcurrencyConflictError()
    return StorageFailureError()
