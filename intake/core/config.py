"""Application configuration using Pydantic Settings."""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    """Redis connection URL for the engagement store and idempotency keys."""

    # Error Tracking
    sentry_dsn: str | None = None
    """Sentry DSN for error tracking. Optional."""

    # Environment
    environment: str = "development"
    """Current environment (development, staging, production)."""

    debug: bool = False
    """Enable debug mode."""

    log_format: str | None = None
    """Logging format override (json or console). Defaults by environment."""

    cron_secret: str | None = None
    """Bearer secret required by the scheduled polling endpoints."""

    # Storage providers
    dropbox_access_token: str | None = None
    """OAuth access token for the Dropbox API."""

    google_access_token: str | None = None
    """OAuth access token for the Google Drive API (drive.readonly scope)."""

    graph_access_token: str | None = None
    """OAuth access token for Microsoft Graph (SharePoint / OneDrive)."""

    http_timeout_seconds: float = 60.0
    """Timeout applied to every outbound provider and OCR request."""

    # Extraction
    mistral_api_key: str | None = None
    """Mistral API key for OCR extraction."""

    mistral_ocr_url: str = "https://api.mistral.ai/v1/ocr"
    """Mistral OCR endpoint."""

    mistral_ocr_model: str = "mistral-ocr-latest"
    """OCR model name sent with every extraction request."""

    extraction_max_attempts: int = 3
    """Maximum attempts for one extraction call, including the first."""

    extraction_initial_delay_ms: int = 1000
    """Initial backoff delay between extraction attempts."""

    extraction_max_delay_ms: int = 10000
    """Backoff ceiling between extraction attempts."""

    # Classification
    anthropic_api_key: str | None = None
    """Anthropic API key for document classification."""

    classifier_model: str = "claude-sonnet-4-5"
    """Model used to classify extracted document text."""

    # Polling
    stuck_document_minutes: int = 5
    """Minutes a document may sit in a working state before it is retried."""

    reminder_after_days: int = 3
    """Days of inactivity before an engagement receives a reminder."""

    max_reminders: int = 5
    """Reminders sent before an engagement stops being nudged."""

    @field_validator(
        "extraction_max_attempts",
        "stuck_document_minutes",
        "reminder_after_days",
    )
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Reject zero or negative counts."""
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("extraction_initial_delay_ms", "extraction_max_delay_ms")
    @classmethod
    def validate_delay(cls, value: int) -> int:
        """Reject negative delays."""
        if value < 0:
            raise ValueError("delay cannot be negative")
        return value


try:
    settings = Settings()
except Exception as exc:
    env_file = Path(".env")
    raise RuntimeError(
        "Failed to initialize application settings. "
        f"Check environment variables in {env_file.resolve() if env_file.exists() else '.env'}.\n"
        + f"Error: {exc}\n"
        + "EXTRACTION_MAX_ATTEMPTS, STUCK_DOCUMENT_MINUTES and REMINDER_AFTER_DAYS "
        + "must be positive integers."
    ) from exc
