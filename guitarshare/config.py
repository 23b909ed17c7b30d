# guitarshare/config.py
"""
Centralized application configuration using pydantic-settings.

All settings are read from environment variables or .env file.
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Priority: environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )

    # --- Server ---
    HOST: str = Field(default="0.0.0.0", description="Bind address")
    PORT: int = Field(default=8000, description="HTTP port")

    # --- Record store ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for share and guitar records"
    )

    # --- Blob storage ---
    S3_BUCKET_IMAGES: str = Field(
        default="guitar-collection-images",
        description="Bucket holding original images and share derivatives"
    )
    AWS_REGION: Optional[str] = Field(default=None, description="AWS region for S3")
    S3_ENDPOINT_URL: Optional[str] = Field(
        default=None,
        description="Override endpoint for S3-compatible storage"
    )
    CDN_DOMAIN: Optional[str] = Field(
        default=None,
        description="Public host serving the bucket (e.g. CloudFront domain)"
    )

    # --- Public links ---
    FRONTEND_URL: str = Field(
        default="https://guitarhelp.click",
        description="Base URL used to build public share links"
    )

    # --- Share constraints ---
    SHARE_MAX_IMAGES: int = Field(default=10, ge=0)
    IMAGE_MAX_WIDTH: int = Field(default=1200, gt=0)
    WEBP_QUALITY: int = Field(default=80, ge=1, le=100)
    MAX_VIEW_ENTRIES: int = Field(default=1000, gt=0)
    IMAGE_PROCESS_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="Seconds allowed for one image before it counts as failed"
    )
    PUBLIC_FALLBACK_TO_ORIGINALS: bool = Field(
        default=True,
        description="Serve unwatermarked originals when no derivatives exist"
    )

    # --- Watermark ---
    WATERMARK_PATH: Optional[str] = Field(
        default=None,
        description="PNG brand mark; a text mark is rendered when unset"
    )
    WATERMARK_TEXT: str = Field(default="guitarhelp.click")

    # --- Debug / Logging ---
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    LOG_TO_FILE: bool = Field(
        default=False,
        description="Also write access.log / error.log under LOGS_PATH"
    )

    # --- Tracing ---
    OTEL_ENABLED: bool = Field(default=False)
    SERVICE_NAME: str = Field(default="guitarshare")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v_upper

    @field_validator("FRONTEND_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings()


# --- Singleton instance for easy import ---
settings = get_settings()


# --- Paths (computed, not from env) ---
PROJECT_ROOT: str = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
LOGS_PATH: str = os.path.join(PROJECT_ROOT, "logs")
