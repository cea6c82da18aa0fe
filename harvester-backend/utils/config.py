"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to all environment variables with validation.

Usage:
    from utils.config import settings

    batch_size = settings.BATCH_SIZE
    db_path = settings.SQLITE_PATH
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Remote API Configuration
    PLAYLINER_API_BASE: str = Field(default="https://backend.playliner.com/api/news")
    PLAYLINER_REFERER: str = Field(default="https://saas.playliner.com/")
    BEARER_TOKEN: str = Field(default="")
    API_LANG: str = Field(default="en")
    API_TIMEOUT: int = Field(default=30, ge=1)

    # Harvest Scheduler Configuration
    SCRAPE_SCHEDULE_CRON: str = Field(default="*/10 * * * *")
    BATCH_SIZE: int = Field(default=10, ge=1)
    API_DELAY_MS: int = Field(default=1000, ge=0)
    MAX_ITEM_ATTEMPTS: int = Field(default=0, ge=0)
    CHECKPOINT_ENABLED: bool = Field(default=True)

    # Id Source
    IDS_FILE: str = Field(default="/app/data/data.json")
    DEDUPE_IDS: bool = Field(default=False)

    # Database Configuration
    SQLITE_PATH: str = Field(default="/app/data/db/harvester.db")

    # Redis Configuration
    REDIS_URL: str = Field(default="redis://redis:6379/0")
    REDIS_MAX_CONNECTIONS: int = Field(default=10)
    REDIS_CHANNEL_BATCHES: str = Field(default="harvester.batches")
    PUBLISH_BATCH_EVENTS: bool = Field(default=False)

    # Backend API Configuration
    API_PORT: int = Field(default=3000)
    API_HOST: str = Field(default="0.0.0.0")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")

    # Application Metadata
    ENVIRONMENT: str = Field(default="production")
    APP_NAME: str = Field(default="playliner-harvester")
    APP_VERSION: str = Field(default="1.0.0")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Only 'json' and 'text' formatters exist."""
        v = v.lower().strip()
        if v not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
