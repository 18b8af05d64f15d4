# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Supabase credentials are required. Every other external service
    (S3, Resend, Lemon Squeezy, Google Sheets) has a default so the API can
    boot in development; the features that need them fail with a clear
    error when they are left unconfigured.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key (used for auth flows)"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    SUPABASE_JWT_SECRET: str = Field(
        default="",
        description="Legacy HS256 JWT secret for verifying Supabase access tokens"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (Celery broker + rate limit storage)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery and rate limiting"
    )

    # -------------------------------------------------------------------------
    # AWS S3 Configuration (delivery file bodies)
    # -------------------------------------------------------------------------

    AWS_S3_REGION: str = Field(
        default="us-east-1",
        description="Region of the delivery bucket"
    )

    AWS_ACCESS_KEY_ID: str = Field(default="", description="AWS access key id")

    AWS_SECRET_ACCESS_KEY: str = Field(default="", description="AWS secret access key")

    AWS_S3_BUCKET: str = Field(
        default="",
        description="Bucket holding delivery files"
    )

    AWS_S3_SSE: Literal["AES256", "aws:kms"] = Field(
        default="AES256",
        description="Server-side encryption applied to uploaded objects"
    )

    S3_ENDPOINT_URL: str | None = Field(
        default=None,
        description="Optional S3-compatible endpoint (MinIO, R2, ...)"
    )

    # -------------------------------------------------------------------------
    # Email (Resend)
    # -------------------------------------------------------------------------

    RESEND_API_KEY: str = Field(default="", description="Resend API key")

    EMAIL_FROM: str = Field(
        default="Sealdrop <noreply@sealdrop.xyz>",
        description="From header for transactional email"
    )

    EMAIL_REPLY_TO: str = Field(
        default="support@sealdrop.xyz",
        description="Reply-To header for transactional email"
    )

    # -------------------------------------------------------------------------
    # Billing (Lemon Squeezy)
    # -------------------------------------------------------------------------

    LEMONSQUEEZY_API_KEY: str = Field(default="", description="Lemon Squeezy API key")

    LEMONSQUEEZY_STORE_ID: str = Field(default="", description="Lemon Squeezy store id")

    LEMONSQUEEZY_STARTER_VARIANT_ID: str = Field(default="")
    LEMONSQUEEZY_PRO_VARIANT_ID: str = Field(default="")
    LEMONSQUEEZY_ENTERPRISE_VARIANT_ID: str = Field(default="")

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging)"
    )

    APP_URL: str = Field(
        default="http://localhost:3000",
        description="Public URL of the web app (used in emails and redirects)"
    )

    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    MAX_UPLOAD_SIZE_MB: int = Field(
        default=100,
        ge=1,
        le=2048,
        description="Hard upper bound on a single uploaded file, in MB"
    )

    RATE_LIMIT_ENABLED: bool = Field(
        default=True,
        description="Toggle the per-client rate limiter"
    )

    CRON_SECRET: str = Field(
        default="",
        description="If set, GET /api/cronjobs requires 'Authorization: Bearer <secret>'"
    )

    GOOGLE_SHEETS_WEBHOOK_URL: str = Field(
        default="",
        description="Apps Script webhook receiving waitlist sign-ups"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://sealdrop.xyz" -> ["http://localhost:3000", "https://sealdrop.xyz"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def plan_variant_ids(self) -> dict[str, str]:
        """Map of billable plan name to Lemon Squeezy variant id."""
        return {
            "starter": self.LEMONSQUEEZY_STARTER_VARIANT_ID,
            "pro": self.LEMONSQUEEZY_PRO_VARIANT_ID,
            "enterprise": self.LEMONSQUEEZY_ENTERPRISE_VARIANT_ID,
        }

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
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
