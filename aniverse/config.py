"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations: bool = False

    # Object storage (Supabase Storage)
    supabase_url: str = ""
    supabase_service_role: str = ""
    storage_bucket: str = "aniverse-images"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=3333, validation_alias=AliasChoices("port", "api_port"))
    api_title: str = "AniVerse AI"
    api_version: str = "0.1.0"
    api_description: str = "Credit-metered anime portrait generation backend"

    # Generative AI provider (Gemini)
    gemini_api_key: str = ""
    text_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"

    # Deadline applied to every outbound provider call
    provider_timeout_seconds: float = 120.0

    # Payment Provider - Razorpay
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_webhook_secret: str = ""
    order_currency: str = "INR"

    # Credits
    signup_credits: int = 2
    demo_image_url: str = "https://images.unsplash.com/photo-1544005313-94ddf0286df2"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability
    metrics_enabled: bool = True
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "aniverse-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start without its ledger store.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if not self.supabase_url or not self.supabase_service_role:
            errors.append("SUPABASE_URL and SUPABASE_SERVICE_ROLE are required")

        if self.signup_credits < 0:
            errors.append(f"SIGNUP_CREDITS must be >= 0, got: {self.signup_credits}")

        if self.provider_timeout_seconds <= 0:
            errors.append("PROVIDER_TIMEOUT_SECONDS must be positive")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
