# educonnect/core/config.py
import logging
import os
from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")

    # Database
    database_url: str = Field(
        default="sqlite:///./educonnect.db",
        description="SQLAlchemy URL of the shared slot/booking store",
    )
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=10, ge=0)
    # Fail fast when the pool is exhausted so callers see StoreUnavailable quickly
    db_pool_timeout: int = Field(default=2, ge=1)
    db_retry_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for transient store failures on read phases (never after a write)",
    )
    sqlite_busy_timeout_seconds: float = Field(default=30.0, gt=0)
    sql_echo: bool = False

    # Logging
    log_level: str = Field(default="INFO")

    # Booking behaviour
    meeting_link_base_url: str = Field(
        default="https://meet.educonnect.app/session",
        description="Prefix for generated meeting references; booking id is appended",
    )
    provider_cancellation_min_notice_minutes: int = Field(default=0)
    requester_cancellation_min_notice_minutes: int = Field(default=0)

    # Notifications
    notification_max_workers: int = Field(default=4, ge=1)

    # Monitoring
    slow_operation_threshold_seconds: float = Field(default=1.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> str:
        if value is None:
            return "INFO"
        normalized = str(value).strip().upper()
        if normalized == "WARN":
            normalized = "WARNING"
        if normalized not in _VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}")
        return normalized

    @field_validator("meeting_link_base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _check_notice_windows(self) -> "Settings":
        if self.provider_cancellation_min_notice_minutes < 0:
            raise ValueError("provider_cancellation_min_notice_minutes must be >= 0")
        if self.requester_cancellation_min_notice_minutes < 0:
            raise ValueError("requester_cancellation_min_notice_minutes must be >= 0")
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.lower().startswith("sqlite")

    @property
    def provider_cancellation_min_notice(self) -> timedelta:
        return timedelta(minutes=self.provider_cancellation_min_notice_minutes)

    @property
    def requester_cancellation_min_notice(self) -> timedelta:
        return timedelta(minutes=self.requester_cancellation_min_notice_minutes)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


settings = get_settings()
