"""Configuration management for the exam parser.

This module uses Pydantic Settings to load configuration from environment
variables (or a .env file). The heuristic extraction path works without any
configuration; a Gemini API key is only needed for AI-assisted
categorization and AI structured extraction.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Gemini API Configuration
    gemini_api_key: Optional[str] = Field(
        default=None,
        description="Google Gemini API key used for AI categorization and extraction"
    )

    # AI Model Configuration
    categorization_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model used to re-categorize questions into sections"
    )
    extraction_model: str = Field(
        default="gemini-2.0-flash",
        description="Gemini model used for AI structured extraction"
    )

    # AI categorization behaviour
    enable_ai_categorization: bool = Field(
        default=True,
        description="Re-categorize degenerate section distributions with Gemini"
    )
    ai_batch_size: int = Field(
        default=3,
        ge=1,
        description="Questions sent to Gemini per categorization request"
    )
    ai_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single categorization request"
    )
    ai_batch_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Pause between categorization batches (rate-limit courtesy)"
    )

    # AI structured extraction
    ai_extraction_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Timeout for a single structured extraction request"
    )
    ai_extraction_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts made by the structured extraction path before failing"
    )
    ai_extraction_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Fixed wait between structured extraction attempts"
    )

    # Response cache
    ai_cache_dir: Optional[str] = Field(
        default=None,
        description="Directory for cached Gemini responses (disabled when unset)"
    )

    # Extraction limits
    min_text_length: int = Field(
        default=100,
        ge=0,
        description="Minimum characters for a document to be treated as an exam"
    )
    max_upload_size_mb: int = Field(
        default=25,
        ge=1,
        description="Maximum accepted upload size for the HTTP API"
    )

    # Service
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )
    parse_rate_limit: str = Field(
        default="10/minute",
        description="slowapi rate limit applied to POST /api/parse"
    )
    trusted_proxies: str = Field(
        default="",
        description="Comma-separated proxy IPs allowed to set X-Forwarded-For"
    )

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("gemini_api_key")
    @classmethod
    def validate_gemini_api_key(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty or whitespace-only key as not configured."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that LOG_LEVEL names a standard logging level."""
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(
                "LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL "
                f"(got: {v})"
            )
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance.

    Settings are loaded once and reused across the application lifetime.
    Tests call ``get_settings.cache_clear()`` after changing the environment.

    Returns:
        Settings: Validated application settings
    """
    return Settings()
