"""Request log model - one row per successful token issuance.

Feeds the sliding-window issuance throttle. Rows are pruned by the janitor
after the retention window.
"""

import uuid
from datetime import datetime

from sqlalchemy import Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from account_tokens.models.base import Base, UTCDateTime


class RateLimitRecord(Base):
    """Issuance attempt that was allowed and committed.

    No foreign key to users: throttling history is kept even when the
    account row goes away, until the janitor ages it out.

    Attributes:
        id: Integer primary key.
        user_id: User the token was issued for.
        action_type: Token kind (``email_verification`` / ``password_reset``).
        request_time: When the issuance happened.
    """

    __tablename__ = "request_log"
    __table_args__ = (
        Index(
            "ix_request_log_user_action_time",
            "user_id",
            "action_type",
            "request_time",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
    )
    action_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    request_time: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )
