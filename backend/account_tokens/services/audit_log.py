"""Audit trail writer.

Append-only sink for token lifecycle events. Entries are written inside the
caller's transaction so an event is recorded iff the change it describes
commits.
"""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from account_tokens.core.clock import Clock, SystemClock
from account_tokens.models.audit import AuditEntry
from account_tokens.repositories.audit_repository import AuditRepository


class AuditLog:
    """Stamps events with the injected clock and appends them.

    Args:
        clock: Time source. Defaults to the system clock.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()

    async def record(
        self,
        db: AsyncSession,
        user_id: uuid.UUID | None,
        action_type: str,
        description: str,
    ) -> AuditEntry:
        """Append one event.

        Args:
            db: Session of the transaction the event belongs to.
            user_id: Subject of the event.
            action_type: Token kind.
            description: Event text. Never include a token value.

        Returns:
            The stored AuditEntry.
        """
        return await AuditRepository.append(
            db,
            user_id=user_id,
            action_type=action_type,
            description=description,
            action_time=self._clock.now(),
        )
