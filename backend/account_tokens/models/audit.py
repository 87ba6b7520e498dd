"""Audit log model - append-only lifecycle events."""

import uuid
from datetime import datetime

from sqlalchemy import Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from account_tokens.models.base import Base, UTCDateTime


class AuditEntry(Base):
    """Security-relevant event (issuance, consumption, invalidation).

    Never mutated. Descriptions reference token record ids, never token
    values.

    Attributes:
        id: Integer primary key; breaks ties between equal action_times.
        user_id: Subject of the event. NULL when the user is unknown.
        action_type: Token kind the event belongs to.
        description: Human-readable event text.
        action_time: When the event happened.
    """

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )
    action_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
    )
    action_time: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        index=True,
    )
