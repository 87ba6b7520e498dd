"""Periodic cleanup of expired tokens and stale throttling history.

Runs as an asyncio background task, independent of request handling.
Each sweep:
- deletes expired, never-spent tokens of both kinds
- deletes request log rows older than the retention window (2 days)
- deletes audit entries older than AUDIT_RETENTION_DAYS, only when set

Each deletion commits on its own; a failure in one does not undo the
others. Deletions use the token validity predicate, so a live token is
never removed.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from account_tokens.core.clock import Clock, SystemClock
from account_tokens.core.config import settings
from account_tokens.core.errors import ServiceError
from account_tokens.models.token import TokenKind
from account_tokens.repositories.audit_repository import AuditRepository
from account_tokens.repositories.request_log_repository import RequestLogRepository
from account_tokens.repositories.token_repository import TokenRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    """Result of one cleanup sweep.

    Attributes:
        expired_email_verification_tokens: Unspent verification tokens deleted.
        expired_password_reset_tokens: Unspent reset tokens deleted.
        request_log_entries: Request log rows deleted.
        audit_entries: Audit entries deleted (0 unless retention is set).
        finished_at: Clock time the sweep ran at.
    """

    expired_email_verification_tokens: int
    expired_password_reset_tokens: int
    request_log_entries: int
    audit_entries: int
    finished_at: datetime

    @property
    def total_deleted(self) -> int:
        """Rows deleted across all tables."""
        return (
            self.expired_email_verification_tokens
            + self.expired_password_reset_tokens
            + self.request_log_entries
            + self.audit_entries
        )


class CleanupError(ServiceError):
    """Raised when a cleanup operation fails at the database level."""

    def __init__(self, message: str) -> None:
        super().__init__(code="CLEANUP_ERROR", message=message)


async def delete_expired_tokens(
    db: AsyncSession, kind: TokenKind, *, now: datetime
) -> int:
    """Delete expired, unspent tokens of one kind and commit.

    Args:
        db: Database session.
        kind: Token kind (selects the table).
        now: Current time.

    Returns:
        Number of tokens deleted.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        deleted = await TokenRepository.delete_expired_unused(db, kind=kind, now=now)
        await db.commit()
        return deleted
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Expired %s token cleanup failed: %s", kind.value, exc)
        raise CleanupError(f"Expired {kind.value} token cleanup failed") from exc


async def delete_stale_request_log(
    db: AsyncSession, *, now: datetime, retention: timedelta
) -> int:
    """Delete request log rows older than ``retention`` and commit.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        deleted = await RequestLogRepository.delete_older_than(
            db, cutoff=now - retention
        )
        await db.commit()
        return deleted
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Request log cleanup failed: %s", exc)
        raise CleanupError("Request log cleanup failed") from exc


async def delete_old_audit_entries(
    db: AsyncSession, *, now: datetime, retention: timedelta
) -> int:
    """Delete audit entries older than ``retention`` and commit.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        deleted = await AuditRepository.delete_older_than(db, cutoff=now - retention)
        await db.commit()
        return deleted
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Audit log cleanup failed: %s", exc)
        raise CleanupError("Audit log cleanup failed") from exc


async def run_sweep(
    db: AsyncSession,
    *,
    now: datetime,
    request_log_retention: timedelta,
    audit_retention: timedelta | None = None,
) -> SweepResult:
    """Run every cleanup step once.

    Args:
        db: Database session.
        now: Current time.
        request_log_retention: Age after which request log rows go.
        audit_retention: Age after which audit entries go; None keeps them.

    Returns:
        SweepResult with counts from all cleanup categories.

    Raises:
        CleanupError: If a database operation fails. Steps that already ran
            stay committed.
    """
    verification = await delete_expired_tokens(
        db, TokenKind.EMAIL_VERIFICATION, now=now
    )
    reset = await delete_expired_tokens(db, TokenKind.PASSWORD_RESET, now=now)
    request_log = await delete_stale_request_log(
        db, now=now, retention=request_log_retention
    )
    audit = 0
    if audit_retention is not None:
        audit = await delete_old_audit_entries(db, now=now, retention=audit_retention)

    return SweepResult(
        expired_email_verification_tokens=verification,
        expired_password_reset_tokens=reset,
        request_log_entries=request_log,
        audit_entries=audit,
        finished_at=now,
    )


class Janitor:
    """Background worker that periodically runs the cleanup sweep.

    Lifecycle:
    - start() creates an asyncio task that runs the sweep loop.
    - stop() cancels the task and waits for it to finish.
    - run_once() executes a single sweep (for testing and cron-style use).

    Args:
        session_factory: Async session factory for DB access.
        clock: Time source. Defaults to the system clock.
        interval_seconds: Seconds between sweeps.
        request_log_retention: Request log retention window.
        audit_retention: Audit retention window; None keeps the audit trail.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: Clock | None = None,
        interval_seconds: float | None = None,
        request_log_retention: timedelta | None = None,
        audit_retention: timedelta | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._interval_seconds = (
            settings.janitor_interval_seconds
            if interval_seconds is None
            else interval_seconds
        )
        self._request_log_retention = request_log_retention or timedelta(
            days=settings.request_log_retention_days
        )
        if audit_retention is None and settings.audit_retention_days is not None:
            audit_retention = timedelta(days=settings.audit_retention_days)
        self._audit_retention = audit_retention
        self._task: asyncio.Task[None] | None = None
        self._last_result: SweepResult | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the background task is currently active."""
        return self._running and self._task is not None and not self._task.done()

    @property
    def last_result(self) -> SweepResult | None:
        """Result of the most recent completed sweep."""
        return self._last_result

    def start(self) -> None:
        """Start the background sweep loop.

        Creates an asyncio task. No-op if already running.
        Must be called from an async context (running event loop).
        """
        if self.is_running:
            logger.warning("Janitor already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Janitor started (interval=%ss)", self._interval_seconds)

    async def stop(self) -> None:
        """Stop the background sweep loop.

        Cancels the task and waits for it to finish.
        """
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Janitor stopped")

    async def run_once(self) -> SweepResult:
        """Execute a single sweep.

        Returns:
            SweepResult with deletion counts.

        Raises:
            CleanupError: If a database operation fails.
        """
        async with self._session_factory() as db:
            result = await run_sweep(
                db,
                now=self._clock.now(),
                request_log_retention=self._request_log_retention,
                audit_retention=self._audit_retention,
            )
        self._last_result = result
        return result

    async def _run_loop(self) -> None:
        """Background loop: run_once → sleep → repeat."""
        try:
            while self._running:
                try:
                    result = await self.run_once()
                    logger.info(
                        "Janitor sweep: %d verification, %d reset tokens, "
                        "%d request log, %d audit rows deleted",
                        result.expired_email_verification_tokens,
                        result.expired_password_reset_tokens,
                        result.request_log_entries,
                        result.audit_entries,
                    )
                except Exception:  # noqa: BLE001
                    logger.exception("Error in janitor sweep")
                await asyncio.sleep(self._interval_seconds)
        except asyncio.CancelledError:
            logger.debug("Janitor loop cancelled")
            raise
