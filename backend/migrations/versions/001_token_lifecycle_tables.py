"""Create users, token, request log and audit log tables.

Revision ID: 001_token_lifecycle_tables
Revises:
Create Date: 2026-10-18

- users: account owner, verification flag and credential hash
- email_verification_tokens / password_reset_tokens: hashed tokens with
  expiry and use budget
- request_log: issuance history for the sliding-window throttle
- audit_log: append-only lifecycle events
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_token_lifecycle_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_TOKEN_TABLES: tuple[str, ...] = (
    "email_verification_tokens",
    "password_reset_tokens",
)


def _create_token_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expiry_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("use_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("max_uses", sa.Integer(), server_default="1", nullable=False),
        sa.Column("is_used", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("token_hash", name=f"uq_{name}_token_hash"),
    )
    op.create_index(f"ix_{name}_user_id", name, ["user_id"])
    op.create_index(f"ix_{name}_expiry_time", name, ["expiry_time"])


def upgrade() -> None:
    # =========================================================================
    # users
    # =========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column(
            "is_verified", sa.Boolean(), server_default=sa.false(), nullable=False
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # =========================================================================
    # Token tables (identical shape)
    # =========================================================================
    for name in _TOKEN_TABLES:
        _create_token_table(name)

    # =========================================================================
    # request_log (no FK: history outlives the account row)
    # =========================================================================
    op.create_table(
        "request_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("request_time", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_request_log_user_action_time",
        "request_log",
        ["user_id", "action_type", "request_time"],
    )

    # =========================================================================
    # audit_log
    # =========================================================================
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("action_time", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_log_user_id", "audit_log", ["user_id"])
    op.create_index("ix_audit_log_action_time", "audit_log", ["action_time"])


def downgrade() -> None:
    # Reverse order of creation
    op.drop_index("ix_audit_log_action_time", table_name="audit_log")
    op.drop_index("ix_audit_log_user_id", table_name="audit_log")
    op.drop_table("audit_log")

    op.drop_index("ix_request_log_user_action_time", table_name="request_log")
    op.drop_table("request_log")

    for name in reversed(_TOKEN_TABLES):
        op.drop_index(f"ix_{name}_expiry_time", table_name=name)
        op.drop_index(f"ix_{name}_user_id", table_name=name)
        op.drop_table(name)

    op.drop_table("users")
