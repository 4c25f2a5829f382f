# app/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at startup.
Fail fast with clear error messages if required config is missing.
"""

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field(
        default="sqlite:///./reports.db",
        description="SQLAlchemy connection URL (PostgreSQL in production)",
    )

    # Authentication
    ADMIN_API_KEY: str | None = Field(
        default=None,
        description="API key granting the superadmin capability (manual reclamation, operator endpoints)",
    )

    # Application
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )
    REPORT_STORE: str = Field(
        default="sql",
        description="Report store provider: sql, memory",
    )

    # Lifecycle windows
    RECOVERY_WINDOW_HOURS: int = Field(
        default=48,
        description="Hours a soft-deleted report stays recoverable before it is hard-deleted",
    )
    STALE_DRAFT_DAYS: int = Field(
        default=30,
        description="Days without an edit after which an unfinished report is auto soft-deleted",
    )

    # Reclamation job
    RECLAMATION_BATCH_SIZE: int = Field(
        default=100,
        description="Documents written per batch",
    )
    RECLAMATION_MAX_PER_RUN: int = Field(
        default=1000,
        description="Maximum documents evaluated per run; the rest wait for the next run",
    )
    RECLAMATION_INTERVAL_HOURS: float = Field(
        default=24,
        description="Hours between scheduled reclamation runs",
    )
    RECLAMATION_SCHEDULER_ENABLED: bool = Field(
        default=False,
        description="Run the in-process reclamation scheduler (disable when an external cron calls the API)",
    )

    # Logging
    LOG_JSON: bool = Field(
        default=True,
        description="Emit single-line JSON logs (False = human-readable)",
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level",
    )

    @field_validator(
        "RECOVERY_WINDOW_HOURS",
        "STALE_DRAFT_DAYS",
        "RECLAMATION_BATCH_SIZE",
        "RECLAMATION_MAX_PER_RUN",
        "RECLAMATION_INTERVAL_HOURS",
    )
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("REPORT_STORE")
    @classmethod
    def known_store(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("sql", "memory"):
            raise ValueError(f"Unknown report store: {v}. Available: sql, memory")
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Railway provides postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        return v

    @model_validator(mode="after")
    def batch_fits_in_run(self) -> "Settings":
        if self.RECLAMATION_BATCH_SIZE > self.RECLAMATION_MAX_PER_RUN:
            raise ValueError("RECLAMATION_BATCH_SIZE cannot exceed RECLAMATION_MAX_PER_RUN")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()
