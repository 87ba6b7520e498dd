"""Token lifecycle services.

    from account_tokens.services import TokenIssuer, TokenConsumer, Janitor
"""

from account_tokens.services.account_recovery import (
    AccountRecoveryService,
    NotificationSender,
)
from account_tokens.services.audit_log import AuditLog
from account_tokens.services.janitor import (
    CleanupError,
    Janitor,
    SweepResult,
    run_sweep,
)
from account_tokens.services.rate_limiter import RateLimiter
from account_tokens.services.token_consumer import (
    INVALID,
    Applied,
    ConsumeResult,
    Invalid,
    TokenConsumer,
)
from account_tokens.services.token_issuer import (
    DENIED,
    Denied,
    Issued,
    IssueResult,
    TokenIssuer,
)

__all__ = [
    "AccountRecoveryService",
    "NotificationSender",
    "AuditLog",
    "RateLimiter",
    # Issuance
    "TokenIssuer",
    "Issued",
    "Denied",
    "DENIED",
    "IssueResult",
    # Consumption
    "TokenConsumer",
    "Applied",
    "Invalid",
    "INVALID",
    "ConsumeResult",
    # Cleanup
    "Janitor",
    "SweepResult",
    "CleanupError",
    "run_sweep",
]
