"""
Configuration Management
========================
Loads and validates environment variables using Pydantic Settings.
Provides type-safe access to configuration throughout the application.

Enhanced features:
- Storage backend selection (Backblaze B2 native API or S3-compatible)
- Credential and signed URL lifetimes
- Secret masking
- Safe export for debugging
"""

from functools import lru_cache
from typing import List, Optional, Dict, Any
import json

from pydantic import Field, field_validator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application Settings

    All settings are loaded from environment variables or .env file.
    Pydantic validates types and required fields automatically.
    """

    # ========================================================================
    # APPLICATION
    # ========================================================================
    APP_NAME: str = "Song Library API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # ========================================================================
    # API SERVER
    # ========================================================================
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=3000)
    API_WORKERS: int = Field(default=4)
    API_PREFIX: str = Field(default="")

    # ========================================================================
    # STORAGE BACKEND
    # ========================================================================
    STORAGE_BACKEND: str = Field(default="b2")

    # Backblaze B2 native API
    B2_APPLICATION_KEY_ID: Optional[str] = Field(default=None)
    B2_APPLICATION_KEY: Optional[str] = Field(default=None)
    B2_BUCKET_ID: Optional[str] = Field(default=None)
    B2_BUCKET_NAME: Optional[str] = Field(default=None)
    B2_AUTH_URL: str = Field(
        default="https://api.backblazeb2.com/b2api/v2/b2_authorize_account"
    )

    # S3-compatible (AWS, Cloudflare R2, GCS interoperability with HMAC keys)
    S3_ENDPOINT_URL: Optional[str] = Field(default=None)
    S3_ACCESS_KEY_ID: Optional[str] = Field(default=None)
    S3_SECRET_ACCESS_KEY: Optional[str] = Field(default=None)
    S3_BUCKET_NAME: Optional[str] = Field(default=None)
    S3_REGION: str = Field(default="auto")
    S3_PUBLIC_URL: Optional[str] = Field(default=None)

    @field_validator("STORAGE_BACKEND")
    def validate_storage_backend(cls, v):
        """Only the two supported backends are accepted"""
        v = v.strip().lower()
        if v not in ("b2", "s3"):
            raise ValueError("STORAGE_BACKEND must be 'b2' or 's3'")
        return v

    # ========================================================================
    # CREDENTIALS & STREAMING
    # ========================================================================
    CREDENTIAL_TTL_SECONDS: int = Field(default=23 * 60 * 60, ge=60)
    STREAM_URL_TTL_SECONDS: int = Field(default=3600, ge=1)
    MAX_STREAM_URL_TTL_SECONDS: int = Field(default=7 * 24 * 60 * 60, ge=1)

    # ========================================================================
    # UPSTREAM CALLS
    # ========================================================================
    UPSTREAM_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    UPSTREAM_RETRIES: int = Field(default=3, ge=1, le=10)
    UPSTREAM_RETRY_BACKOFF_SECONDS: float = Field(default=0.5, ge=0)

    # ========================================================================
    # LIBRARY
    # ========================================================================
    ROOT_FOLDER_LABEL: str = Field(default="All Songs")
    MAX_UPLOAD_SIZE_MB: int = Field(default=10, ge=1)
    ALLOW_OVERWRITE: bool = Field(default=False)

    # ========================================================================
    # REDIS (listing cache)
    # ========================================================================
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REDIS_PASSWORD: Optional[str] = Field(default=None)
    REDIS_ENABLE: bool = Field(default=False)
    REDIS_MAX_CONNECTIONS: int = Field(default=20)
    REDIS_DECODE_RESPONSES: bool = Field(default=True)

    ENABLE_CACHING: bool = Field(default=False)
    LISTING_CACHE_TTL_SECONDS: int = Field(default=60, ge=1)

    # ========================================================================
    # CORS
    # ========================================================================
    CORS_ORIGINS: str = Field(
        default='["http://localhost:5173","http://localhost:3000"]'
    )

    @field_validator("CORS_ORIGINS")
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from JSON string to list"""
        if isinstance(v, str):
            return json.loads(v)
        return v

    # ========================================================================
    # PYDANTIC CONFIGURATION
    # ========================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra fields in .env
    )

    # ========================================================================
    # COMPUTED PROPERTIES
    # ========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT.lower() == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @computed_field
    @property
    def redis_connection_url(self) -> str:
        """
        Get Redis connection URL with password if configured

        Returns:
            str: Complete Redis connection URL
        """
        if self.REDIS_PASSWORD:
            # Format: redis://localhost:6379/0
            parts = self.REDIS_URL.replace("redis://", "").split("/")
            host_port = parts[0]
            db = parts[1] if len(parts) > 1 else "0"
            return f"redis://:{self.REDIS_PASSWORD}@{host_port}/{db}"
        return self.REDIS_URL

    @computed_field
    @property
    def b2_configured(self) -> bool:
        """Check if the Backblaze B2 native API is fully configured"""
        return all([
            self.B2_APPLICATION_KEY_ID,
            self.B2_APPLICATION_KEY,
            self.B2_BUCKET_ID,
            self.B2_BUCKET_NAME,
        ])

    @computed_field
    @property
    def s3_configured(self) -> bool:
        """Check if the S3-compatible backend is fully configured"""
        return all([
            self.S3_ENDPOINT_URL,
            self.S3_ACCESS_KEY_ID,
            self.S3_SECRET_ACCESS_KEY,
            self.S3_BUCKET_NAME,
        ])

    @computed_field
    @property
    def storage_configured(self) -> bool:
        """Check if the selected storage backend is configured"""
        if self.STORAGE_BACKEND == "s3":
            return self.s3_configured
        return self.b2_configured

    @computed_field
    @property
    def caching_enabled(self) -> bool:
        """Listing cache needs both Redis and the caching flag"""
        return self.REDIS_ENABLE and self.ENABLE_CACHING

    # ========================================================================
    # VALIDATION METHODS
    # ========================================================================

    def validate_required_for_production(self) -> List[str]:
        """
        Validate that all required settings for production are configured

        Returns:
            List[str]: List of missing required settings
        """
        if not self.is_production:
            return []

        missing = []

        if not self.storage_configured:
            missing.append(
                f"Storage backend '{self.STORAGE_BACKEND}' must be fully configured for production"
            )

        if self.STREAM_URL_TTL_SECONDS > self.MAX_STREAM_URL_TTL_SECONDS:
            missing.append("STREAM_URL_TTL_SECONDS must not exceed MAX_STREAM_URL_TTL_SECONDS")

        if self.REDIS_ENABLE and "localhost" in self.REDIS_URL:
            missing.append("Production should not use localhost Redis")

        return missing

    def mask_secret(self, secret: Optional[str], show_chars: int = 4) -> str:
        """
        Mask a secret for safe logging

        Args:
            secret: The secret to mask
            show_chars: Number of characters to show at the start

        Returns:
            str: Masked secret
        """
        if not secret:
            return "NOT_SET"

        if len(secret) <= show_chars:
            return "*" * len(secret)

        return secret[:show_chars] + "*" * (len(secret) - show_chars)

    def to_safe_dict(self) -> Dict[str, Any]:
        """
        Export configuration as dictionary with secrets masked

        Returns:
            Dict[str, Any]: Safe configuration dictionary
        """
        config = self.model_dump()

        sensitive_fields = [
            "B2_APPLICATION_KEY_ID",
            "B2_APPLICATION_KEY",
            "S3_ACCESS_KEY_ID",
            "S3_SECRET_ACCESS_KEY",
            "REDIS_PASSWORD",
        ]

        for field in sensitive_fields:
            if field in config:
                config[field] = self.mask_secret(config[field])

        return config

    def get_storage_config(self) -> Dict[str, Any]:
        """
        Get storage configuration without secrets

        Returns:
            Dict[str, Any]: Storage configuration
        """
        if self.STORAGE_BACKEND == "s3":
            return {
                "backend": "s3",
                "configured": self.s3_configured,
                "endpoint": self.S3_ENDPOINT_URL,
                "bucket": self.S3_BUCKET_NAME,
                "region": self.S3_REGION,
            }
        return {
            "backend": "b2",
            "configured": self.b2_configured,
            "bucket": self.B2_BUCKET_NAME,
            "bucket_id": self.B2_BUCKET_ID,
        }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance

    Uses lru_cache to ensure settings are loaded only once.

    Returns:
        Settings: Validated settings instance
    """
    return Settings()


# Convenience: Create a global settings instance
settings = get_settings()


# ============================================================================
# CONFIGURATION VALIDATION ON IMPORT
# ============================================================================

def validate_configuration():
    """
    Validate configuration on module import

    Raises:
        ValueError: If production configuration is invalid
    """
    if settings.is_production:
        missing = settings.validate_required_for_production()
        if missing:
            error_msg = "Production configuration validation failed:\n" + "\n".join(f"  - {m}" for m in missing)
            raise ValueError(error_msg)


# Run validation on import (will only raise in production)
validate_configuration()
