"""Application settings using Pydantic BaseSettings for environment variable management."""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Attributes:
        gemini_api_key: Google Gemini API key for stance judgment (optional)
        gemini_model: Default Gemini model to use
        max_rpm: Maximum reasoning requests per minute
        max_tpm: Maximum reasoning tokens per minute
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        news_api_key: NewsAPI.org API key (optional)
        serper_api_key: Serper.dev API key for academic/government search (optional)
        importance_threshold: Minimum claim importance (1-10) that gets verified
        flag_confidence_threshold: Verdicts below this confidence are flagged
        provider_timeout_seconds: Per-provider search timeout
        gateway_max_concurrency: Global cap on outbound provider calls
        session_max_workers: Concurrent claim checks per session
        source_limit: Maximum sources consulted per claim
        live_grace_timeout_seconds: How long ending a live session waits for in-flight checks
        persistence_retry_attempts: Attempts before a persistence failure is fatal
        persistence_backoff_seconds: Base delay for persistence retry backoff
        verification_store_path: Optional JSON file backing the verification store
    """

    gemini_api_key: str | None = Field(
        default=None,
        description="Google Gemini API key"
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Default Gemini model identifier"
    )
    max_rpm: int = Field(
        default=15,
        description="Maximum requests per minute (free tier limit)"
    )
    max_tpm: int = Field(
        default=1_000_000,
        description="Maximum tokens per minute"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )
    news_api_key: str | None = Field(
        default=None,
        description="NewsAPI.org API key for news search"
    )
    serper_api_key: str | None = Field(
        default=None,
        description="Serper.dev API key for academic and government search"
    )
    importance_threshold: int = Field(
        default=6,
        ge=1,
        le=10,
        description="Claims at or above this importance are verified"
    )
    flag_confidence_threshold: int = Field(
        default=70,
        ge=0,
        le=100,
        description="Verdict confidence below this value is flagged"
    )
    provider_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Timeout for a single search provider call"
    )
    gateway_max_concurrency: int = Field(
        default=8,
        ge=1,
        description="Global cap on concurrent outbound provider calls"
    )
    session_max_workers: int = Field(
        default=4,
        ge=1,
        description="Concurrent claim checks within one session"
    )
    source_limit: int = Field(
        default=10,
        ge=1,
        description="Maximum sources consulted per claim"
    )
    live_grace_timeout_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Grace period for in-flight checks when a live session ends"
    )
    persistence_retry_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts for a persistence write before the session fails"
    )
    persistence_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Base delay for exponential persistence retry backoff"
    )
    verification_store_path: str | None = Field(
        default=None,
        description="Optional JSON file for verification store persistence"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance - read by the service factory and the CLI only
settings = Settings()
