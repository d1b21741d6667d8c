"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
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

    # Apple receipt verification (legacy verifyReceipt endpoint)
    apple_shared_secret: str = ""
    apple_production_verify_url: str = "https://buy.itunes.apple.com/verifyReceipt"
    apple_sandbox_verify_url: str = "https://sandbox.itunes.apple.com/verifyReceipt"
    apple_verify_timeout_seconds: float = 30.0

    # Chapter pricing
    chapter_cost: int = 50
    free_chapter_threshold: int = 6  # Chapters below this number are free

    # Credits granted when a verified user profile is first created
    new_user_credits: int = 1250

    # Lock account rows (SELECT FOR UPDATE) on read-then-write paths
    ledger_lock_rows: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    service_name: str = "credit-ledger"
    api_version: str = "0.1.0"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The ledger MUST NOT start against a missing or non-PostgreSQL database,
        and pricing values must keep balances non-negative.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if self.chapter_cost <= 0:
            errors.append(f"CHAPTER_COST must be positive, got: {self.chapter_cost}")

        if self.free_chapter_threshold < 0:
            errors.append(
                f"FREE_CHAPTER_THRESHOLD cannot be negative, got: {self.free_chapter_threshold}"
            )

        if self.new_user_credits < 0:
            errors.append(f"NEW_USER_CREDITS cannot be negative, got: {self.new_user_credits}")

        if self.apple_verify_timeout_seconds <= 0:
            errors.append("APPLE_VERIFY_TIMEOUT_SECONDS must be positive")

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
