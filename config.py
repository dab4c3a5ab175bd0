"""
Configuration settings for the solved-sync service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///./solved_sync.db",
        description="SQLAlchemy connection string (SQLite or PostgreSQL)",
    )

    # ========================================
    # Question Catalog Feed
    # ========================================
    question_feed_url: str = Field(
        default="https://zerotrac.github.io/leetcode_problem_rating/data.json",
        description="Public JSON feed of rated practice questions",
    )
    problem_url_template: str = Field(
        default="https://leetcode.com/problems/{slug}/description/",
        description="Problem link pattern, {slug} is replaced by the title slug",
    )

    # ========================================
    # Flashcard Service
    # ========================================
    flashcard_api_url: str = Field(
        default="https://app.mochi.cards/api/cards",
        description="Card listing endpoint of the flashcard service",
    )
    flashcard_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("flashcard_api_key", "mochi_api_key"),
        description="API key for the flashcard service (Basic auth user, empty password)",
    )
    flashcard_page_limit: int = Field(
        default=100,
        ge=1,
        description="Cards requested per sync (only the first page is read)",
    )

    # ========================================
    # HTTP
    # ========================================
    http_timeout_seconds: float | None = Field(
        default=30.0,
        description="Timeout for feed requests (None waits indefinitely)",
    )

    # ========================================
    # Sync Behavior
    # ========================================
    catalog_refresh_interval_hours: float = Field(
        default=24 * 7,
        gt=0,
        description="Interval between question catalog refreshes",
    )
    flashcard_sync_interval_minutes: float = Field(
        default=24 * 60,
        gt=0,
        description="Interval between flashcard syncs (1 minute to 1 day in practice)",
    )
    reconcile_delay_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Settling delay between flashcard ingestion and reconciliation",
    )

    # ========================================
    # Task Scheduler
    # ========================================
    scheduler_enabled: bool = Field(
        default=True,
        description="Register the periodic catalog and flashcard jobs with the API server",
    )
    scheduler_workers: int = Field(
        default=2,
        ge=1,
        description="Worker threads draining deferred tasks",
    )
    task_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per deferred task before it is dropped",
    )
    task_retry_backoff_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Delay multiplier between attempts of a failed task",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/solved_sync.log",
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # API Server
    # ========================================
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def has_flashcard_credentials(self) -> bool:
        """Check if the flashcard API key is configured."""
        return bool(self.flashcard_api_key and self.flashcard_api_key.get_secret_value())

    def get_sync_config(self) -> dict[str, float | int | bool]:
        """Get scheduling configuration as a dictionary."""
        return {
            "catalog_refresh_interval_hours": self.catalog_refresh_interval_hours,
            "flashcard_sync_interval_minutes": self.flashcard_sync_interval_minutes,
            "reconcile_delay_seconds": self.reconcile_delay_seconds,
            "scheduler_enabled": self.scheduler_enabled,
            "scheduler_workers": self.scheduler_workers,
            "task_max_attempts": self.task_max_attempts,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
