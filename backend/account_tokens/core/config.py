"""Application configuration loaded from environment variables.

Settings for the database, token lifetime, issuance throttling and the
periodic cleanup job. Uses pydantic-settings for validation and .env file
support.
"""

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from account_tokens.core.security import MIN_TOKEN_BYTES

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "account_tokens_dev_password"  # nosec B105

# Fields that must be strictly positive in every environment
_POSITIVE_FIELDS: tuple[str, ...] = (
    "token_ttl_minutes",
    "token_max_uses",
    "rate_limit_max_requests",
    "rate_limit_window_minutes",
    "janitor_interval_seconds",
    "request_log_retention_days",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "account_tokens"
    database_user: str = "account_tokens_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # DATABASE_URL: full SQLAlchemy URL, overrides the fields above
    database_url_override: str = Field(
        default="",
        validation_alias=AliasChoices("DATABASE_URL", "database_url_override"),
    )

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Tokens
    token_ttl_minutes: int = 30
    token_max_uses: int = 3
    token_bytes: int = 32

    # Issuance throttling (per user + action)
    rate_limit_max_requests: int = 3
    rate_limit_window_minutes: int = 60

    # Janitor
    janitor_interval_seconds: int = 60 * 60
    request_log_retention_days: int = 2
    # None keeps the audit trail forever
    audit_retention_days: int | None = None

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants.

        Checks:
        - Token, throttling and janitor parameters must be positive
        - Token length must carry at least 128 bits of entropy
        - Audit retention, when set, must be positive
        - Database password must not be the default in production
        """
        for name in _POSITIVE_FIELDS:
            value = getattr(self, name)
            if value <= 0:
                msg = f"{name.upper()} must be positive. Got: {value}"
                raise ValueError(msg)

        if self.token_bytes < MIN_TOKEN_BYTES:
            msg = (
                f"TOKEN_BYTES must be at least {MIN_TOKEN_BYTES} "
                f"(128 bits). Got: {self.token_bytes}"
            )
            raise ValueError(msg)

        if self.audit_retention_days is not None and self.audit_retention_days <= 0:
            msg = (
                "AUDIT_RETENTION_DAYS must be positive when set. "
                f"Got: {self.audit_retention_days}"
            )
            raise ValueError(msg)

        if (
            self.environment == "production"
            and not self.database_url_override
            and self.database_password == _INSECURE_DEFAULT_PASSWORD
        ):
            msg = (
                "Cannot use default database password in production. "
                "Set DATABASE_PASSWORD environment variable to a secure value."
            )
            raise ValueError(msg)

        return self


settings = Settings()
