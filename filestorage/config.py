"""
Configuration management for the file storage service.
Uses pydantic-settings for environment-based configuration.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # API Settings
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "File Storage"
    DEBUG: bool = False

    # Storage Backend Selection
    STORAGE_BACKEND: Literal["local", "s3"] = "local"

    # Root prefix applied to every path, for either backend
    STORAGE_PREFIX: str = ""

    # Defaults applied by the facade when a call does not say otherwise
    DEFAULT_VISIBILITY: Literal["public", "private"] | None = None
    DEFAULT_DIRECTORY_VISIBILITY: Literal["public", "private"] | None = None

    # Local Storage Settings
    LOCAL_STORAGE_PATH: str = "./storage"
    LOCAL_PUBLIC_URL_BASE: str | None = "http://localhost:8000/api/v1/public"
    LOCAL_TEMPORARY_URL_BASE: str | None = "http://localhost:8000/api/v1/temporary"
    # Temporary URLs are disabled for local storage until a key is set
    LOCAL_URL_SIGNING_KEY: str | None = None

    # S3/MinIO Settings
    S3_ENDPOINT_URL: str | None = None
    S3_ACCESS_KEY: str | None = None
    S3_SECRET_KEY: str | None = None
    S3_BUCKET_NAME: str = "file-storage"
    S3_REGION: str | None = "us-east-1"
    S3_FORCE_PATH_STYLE: bool = False
    S3_PUBLIC_URL_BASE: str | None = None
    S3_DEFAULT_CHECKSUM_ALGO: Literal["SHA1", "SHA256", "CRC32", "CRC32C", "ETAG"] | None = None
    S3_CREATE_BUCKET: bool = False

    # File Upload Limits
    MAX_UPLOAD_SIZE: int = 500 * 1024 * 1024  # 500MB

    # Logging
    LOG_LEVEL: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.
    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
