"""
Configuration management for the Socratic tutoring backend.

Centralizes all configuration using Pydantic settings with environment variable support.
"""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )

    # LLM Configuration
    llm_provider: Literal["openai", "anthropic"] = Field(
        default="openai",
        description="Language-model provider: openai or anthropic"
    )
    llm_model: str = Field(
        default="gpt-4o",
        description="Model id passed to the provider"
    )
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key (required when llm_provider=openai)"
    )
    anthropic_api_key: str = Field(
        default="",
        description="Anthropic API key (required when llm_provider=anthropic)"
    )
    llm_timeout_seconds: int = Field(
        default=60,
        description="Per-request provider timeout in seconds"
    )
    llm_max_retries: int = Field(
        default=3,
        description="Attempts for retryable provider failures (rate limit, timeout)"
    )
    llm_retry_delay_seconds: float = Field(
        default=1.0,
        description="Initial backoff delay, doubled after every retry"
    )
    llm_temperature: float = Field(
        default=0.7,
        description="Sampling temperature for tutor replies"
    )
    llm_max_tokens: int = Field(
        default=250,
        description="Upper bound on tokens per tutor reply"
    )

    # Session Configuration
    session_ttl_minutes: int = Field(
        default=30,
        description="Idle time after which a session is evicted"
    )
    session_reap_interval_seconds: int = Field(
        default=60,
        description="How often the reaper sweeps idle sessions"
    )
    max_message_length: int = Field(
        default=2000,
        description="Maximum characters accepted in a single user message"
    )

    # Tutoring Thresholds
    completion_score_threshold: int = Field(
        default=70,
        description="Minimum completion score for a problem to count as solved"
    )
    mastery_threshold: int = Field(
        default=70,
        description="Mastery level at which a learning-path step counts as done"
    )

    # Application Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    environment: str = Field(
        default="development",
        description="Environment: development, staging, production"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Returns:
        Settings: Application settings
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Reset the global settings instance (useful for testing)."""
    global _settings
    _settings = None


def validate_required_settings():
    """
    Validate that the API key for the configured provider is present.

    Should be called after settings are loaded but before application starts.
    Raises ValueError if required settings are missing.
    """
    settings = get_settings()

    if settings.llm_provider == "openai" and not settings.openai_api_key:
        raise ValueError(
            "OPENAI_API_KEY environment variable is required when LLM_PROVIDER=openai."
        )

    if settings.llm_provider == "anthropic" and not settings.anthropic_api_key:
        raise ValueError(
            "ANTHROPIC_API_KEY environment variable is required when LLM_PROVIDER=anthropic."
        )

    if settings.max_message_length <= 0:
        raise ValueError("MAX_MESSAGE_LENGTH must be positive")

    return True
