"""
Configuration management for the WriteWise coach core.

Centralizes all configuration using Pydantic settings with environment variable support.
"""

import logging
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from writewise.exceptions import ConfigurationError


PROVIDER_DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-5-20250929",
    "google": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # LLM Configuration
    llm_provider: Literal["anthropic", "google", "openai"] = Field(
        default="anthropic",
        description="Generator provider: anthropic, google or openai"
    )
    llm_model: str = Field(
        default="",
        description="Model ID (empty means the provider default)"
    )
    anthropic_api_key: str = Field(
        default="",
        description="Anthropic API key (required when provider is anthropic)"
    )
    google_ai_api_key: str = Field(
        default="",
        description="Google AI API key (required when provider is google)"
    )
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key (required when provider is openai)"
    )
    llm_max_tokens: int = Field(
        default=1024,
        description="Maximum output tokens per generator call"
    )
    llm_timeout_seconds: int = Field(
        default=60,
        description="Per-request timeout passed to the provider SDK"
    )
    llm_max_retries: int = Field(
        default=3,
        description="Attempts for transient generator failures"
    )
    llm_initial_retry_delay: float = Field(
        default=1.0,
        description="First backoff delay in seconds, doubled after each retry"
    )
    turn_timeout_seconds: float = Field(
        default=90.0,
        description="Upper bound for one coach turn including retries"
    )

    # Lesson flow
    max_instruction_turns: int = Field(
        default=12,
        description="Instruction turns before the session is moved to guided practice"
    )
    max_guided_attempts: int = Field(
        default=8,
        description="Guided practice attempts before assessment is unlocked"
    )
    max_revisions: int = Field(
        default=2,
        description="Scored revisions allowed after feedback"
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

    @property
    def resolved_model(self) -> str:
        return self.llm_model or PROVIDER_DEFAULT_MODELS[self.llm_provider]

    @property
    def active_api_key(self) -> str:
        return {
            "anthropic": self.anthropic_api_key,
            "google": self.google_ai_api_key,
            "openai": self.openai_api_key,
        }[self.llm_provider]


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
    Validate that the active provider has credentials.

    Raises ConfigurationError if the API key for the configured provider is missing.
    """
    settings = get_settings()

    if not settings.active_api_key:
        key_name = f"{settings.llm_provider.upper()}_API_KEY"
        if settings.llm_provider == "google":
            key_name = "GOOGLE_AI_API_KEY"
        raise ConfigurationError(key_name, f"required when LLM_PROVIDER={settings.llm_provider}")

    return True


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the configured log level to the writewise logger tree."""
    resolved = (level or get_settings().log_level).upper()
    logging.getLogger("writewise").setLevel(resolved)
