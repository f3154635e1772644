# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.BIGTABLE_INSTANCE_ID)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
#
# The Settings class validates all values at startup, catching configuration
# errors early rather than at runtime.
# =============================================================================

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class RetrySettings:
    """Backoff parameters handed to the storage client, in seconds."""
    initial_delay: float
    max_delay: float
    multiplier: float
    deadline: float
    max_retries: int


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Bigtable Instance
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    BIGTABLE_PROJECT_ID: str = Field(
        ...,
        min_length=1,
        description="Google Cloud project that owns the Bigtable instance"
    )

    BIGTABLE_INSTANCE_ID: str = Field(
        ...,
        min_length=1,
        description="Bigtable instance ID"
    )

    BIGTABLE_CREDENTIALS_PATH: str | None = Field(
        default=None,
        description="Path to a service account JSON file (falls back to application default credentials)"
    )

    BIGTABLE_EMULATOR_HOST: str | None = Field(
        default=None,
        description="host:port of a local Bigtable emulator"
    )

    # -------------------------------------------------------------------------
    # Connection Pool
    # -------------------------------------------------------------------------

    BIGTABLE_CHANNELS_PER_CPU: int = Field(
        default=4,
        ge=1,
        description="gRPC channels per CPU"
    )

    BIGTABLE_MAX_REQUESTS_PER_CHANNEL: int = Field(
        default=100,
        ge=1,
        description="Max concurrent requests multiplexed on one channel"
    )

    BIGTABLE_TIMEOUT_MS: int = Field(
        default=60000,
        ge=1,
        description="Overall deadline for a single storage operation"
    )

    # -------------------------------------------------------------------------
    # Retry Policy
    # -------------------------------------------------------------------------

    BIGTABLE_MAX_RETRIES: int = Field(
        default=10,
        ge=0,
        description="Retry attempts after the first failed attempt"
    )

    BIGTABLE_INITIAL_RETRY_DELAY_MS: int = Field(
        default=250,
        ge=1,
        description="Delay before the first retry"
    )

    BIGTABLE_MAX_RETRY_DELAY_MS: int = Field(
        default=60000,
        ge=1,
        description="Upper bound for the delay between retries"
    )

    BIGTABLE_RETRY_DELAY_MULTIPLIER: float = Field(
        default=2.0,
        ge=1.0,
        description="Backoff multiplier applied after every retry"
    )

    # -------------------------------------------------------------------------
    # Worker Pool
    # -------------------------------------------------------------------------
    # Blocking SDK calls run on this pool so request handlers never block

    WORKER_POOL_SIZE: int | None = Field(
        default=None,
        ge=1,
        description="Worker threads for storage calls (default: 2 x CPU count)"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        # Load from .env file in project root
        env_file=".env",
        env_file_encoding="utf-8",
        # Don't fail if .env doesn't exist (useful for production where
        # env vars are set directly)
        env_ignore_empty=True,
        # Case-sensitive environment variable names
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def timeout_seconds(self) -> float:
        """Operation deadline in seconds."""
        return self.BIGTABLE_TIMEOUT_MS / 1000

    @property
    def worker_pool_size(self) -> int:
        """
        Resolve the worker pool size.

        Defaults to twice the number of available processors.
        """
        if self.WORKER_POOL_SIZE:
            return self.WORKER_POOL_SIZE
        return (os.cpu_count() or 1) * 2

    @property
    def retry_settings(self) -> RetrySettings:
        """Retry policy converted to seconds."""
        return RetrySettings(
            initial_delay=self.BIGTABLE_INITIAL_RETRY_DELAY_MS / 1000,
            max_delay=self.BIGTABLE_MAX_RETRY_DELAY_MS / 1000,
            multiplier=self.BIGTABLE_RETRY_DELAY_MULTIPLIER,
            deadline=self.timeout_seconds,
            max_retries=self.BIGTABLE_MAX_RETRIES,
        )

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Handles comma-separated values and strips whitespace.
        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
