"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing for the requested operation."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Database
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/licensecheck",
        description="Async SQLAlchemy connection URL",
    )
    database_pool_size: int = Field(default=3, ge=1, description="Connections kept open per process")
    database_max_overflow: int = Field(default=5, ge=0, description="Extra connections allowed under load")
    database_statement_cache_size: Optional[int] = Field(
        default=None,
        description="asyncpg prepared statement cache size; 0 behind a transaction-mode pooler",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the dramatiq broker",
    )

    # Scheduler trigger
    cron_secret: str = Field(
        default="",
        description="Shared secret expected as 'Authorization: Bearer <secret>' on the cron trigger",
    )

    # Sentry
    sentry_dsn: str = Field(default="", description="Sentry DSN for error tracking")

    # Lookups
    lookup_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        description="User agent sent to licensing board sites",
    )
    lookup_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound for a single license lookup",
    )
    verification_concurrency: int = Field(
        default=5,
        ge=1,
        description="Maximum simultaneous lookups across all jurisdictions",
    )
    jurisdiction_concurrency: dict[str, int] = Field(
        default_factory=dict,
        description="Per-jurisdiction lookup limits for rate-sensitive sources, e.g. {\"TX\": 1}",
    )

    # Job policy
    recheck_after_days: int = Field(
        default=30,
        description="Licenses verified more recently than this are skipped",
    )
    job_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Global timeout for one verification job (None = unbounded)",
    )
    max_error_details: int = Field(
        default=50,
        description="Cap on individual errors kept in a job summary",
    )

    # Fallback tasks
    task_due_days: int = Field(default=14, description="Days until a manual review task is due")
    expiring_soon_days: int = Field(
        default=30,
        description="Licenses expiring within this window get elevated task priority",
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
