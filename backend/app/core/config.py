"""
Configuration management using Pydantic Settings.
All environment variables are loaded and validated here.
"""

from typing import List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Bounds for the two runtime knobs
THROTTLE_LEVEL_MIN = 1
THROTTLE_LEVEL_MAX = 9
THREAD_COUNT_MIN = 1
THREAD_COUNT_MAX = 8


def clamp(value: int, low: int, high: int) -> int:
    """Clamp an integer into the inclusive range [low, high]."""
    return max(low, min(high, value))


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ================================
    # Application Configuration
    # ================================
    APP_NAME: str = "cazzmachine"
    APP_ENV: Literal["development", "testing", "production"] = "development"
    DEBUG: bool = True

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: str = "http://localhost:1420,tauri://localhost"

    @field_validator("ALLOWED_ORIGINS")
    @classmethod
    def parse_origins(cls, v: str) -> List[str]:
        """Parse comma-separated origins into list."""
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # ================================
    # Database Configuration
    # ================================
    # Embedded SQLite through the aiosqlite driver
    DATABASE_URL: str = "sqlite+aiosqlite:///./cazzmachine.db"
    DB_ECHO: bool = False

    # ================================
    # Crawling
    # ================================
    CRAWL_LOW_WATER_MARK: int = 20  # Skip crawling while this many items are pending
    CRAWL_INITIAL_DELAY_SECONDS: float = 0.0
    HTTP_REQUEST_TIMEOUT_SECONDS: float = 15.0
    HTTP_USER_AGENT: str = "cazzmachine/0.2.0"
    PROVIDER_MAX_ITEMS: int = 8
    DESCRIPTION_MAX_CHARS: int = 200
    DOWNLOAD_THUMBNAILS: bool = True

    # ================================
    # Throttle Knobs (initial values)
    # ================================
    DEFAULT_THROTTLE_LEVEL: int = 5
    DEFAULT_THREAD_COUNT: int = 1

    @field_validator("DEFAULT_THROTTLE_LEVEL")
    @classmethod
    def clamp_throttle_level(cls, v: int) -> int:
        """Out-of-range levels are clamped, not rejected."""
        return clamp(v, THROTTLE_LEVEL_MIN, THROTTLE_LEVEL_MAX)

    @field_validator("DEFAULT_THREAD_COUNT")
    @classmethod
    def clamp_thread_count(cls, v: int) -> int:
        """Out-of-range thread counts are clamped, not rejected."""
        return clamp(v, THREAD_COUNT_MIN, THREAD_COUNT_MAX)

    # ================================
    # Notifications
    # ================================
    ENABLE_NOTIFICATIONS: bool = True
    NOTIFICATION_FIRST_DELAY_SECONDS: float = 10.0

    # ================================
    # Maintenance
    # ================================
    ENABLE_BACKGROUND_LOOPS: bool = True
    PRUNE_ON_STARTUP: bool = True
    DIAGNOSTICS_RETENTION_DAYS: int = 7

    # ================================
    # Celery Configuration
    # ================================
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    # Celery accept content as comma-separated string, we'll parse it
    CELERY_ACCEPT_CONTENT: str = "json"
    # Beat runs in this zone; session days follow the host's local date
    CELERY_TIMEZONE: str = "UTC"
    CELERY_ENABLE_UTC: bool = True

    @property
    def celery_accept_content_list(self) -> List[str]:
        """Parse CELERY_ACCEPT_CONTENT into a list."""
        return [item.strip() for item in self.CELERY_ACCEPT_CONTENT.split(",")]

    # ================================
    # Logging Configuration
    # ================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "text"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.APP_ENV == "production"


# Global settings instance
settings = Settings()
