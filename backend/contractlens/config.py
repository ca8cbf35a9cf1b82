"""
Configuration module for the ContractLens backend.

Settings are read from the environment (or a local .env file) once per
process. Constants hold values that are not meant to be tuned per deployment.

Author: ContractLens Team
Version: 1.0.0
"""

from typing import Optional
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Deployment settings. Field names map to upper-case environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "ContractLens"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    # Database settings
    database_url: Optional[str] = None
    database_echo: bool = False

    # Security settings (tokens are issued by the identity provider)
    secret_key: str = "your-super-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440  # 24 hours
    allowed_hosts: list = ["localhost", "127.0.0.1"]

    # LLM settings (OpenAI-compatible chat completions endpoint)
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://api.openai.com/v1/chat/completions"
    llm_model: str = "gpt-4o-mini"
    llm_large_model: str = "gpt-4o"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 16384
    llm_timeout_seconds: float = 120.0

    # Analysis settings
    relocation_strategy: str = "first_occurrence"
    relocation_prefix_length: int = 30
    max_document_tokens: int = 120000
    analysis_timeout_seconds: int = 300  # 5 minutes

    # Chat settings
    chat_model: str = "gpt-4o-mini"
    chat_temperature: float = 0.3
    chat_max_tokens: int = 1000
    chat_context_chars: int = 8000

    # File upload settings
    upload_dir: str = "uploads"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    min_file_size: int = 100
    allowed_file_types: list = [
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain"
    ]

    # CORS settings
    cors_origins: list = ["*"]  # Configure properly for production
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v):
        """Validate and set default database URL if not provided."""
        if not v:
            return "sqlite:///./contractlens.db"
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_environments = ["development", "staging", "production"]
        if v not in allowed_environments:
            raise ValueError(f"Environment must be one of: {allowed_environments}")
        return v

    @field_validator("relocation_strategy")
    @classmethod
    def validate_relocation_strategy(cls, v):
        """Validate the highlight relocation strategy name."""
        allowed_strategies = ["first_occurrence", "nearest_to_hint"]
        if v not in allowed_strategies:
            raise ValueError(f"Relocation strategy must be one of: {allowed_strategies}")
        return v

    @field_validator("cors_origins", "allowed_hosts", mode="before")
    @classmethod
    def split_comma_separated(cls, v):
        """Accept a comma-separated string for list settings."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


@lru_cache()
def get_settings() -> Settings:
    """
    Build the settings once and return the cached instance.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Application constants
class Constants:
    """Application-wide constants."""

    # Analysis complexity thresholds (word counts)
    LOW_COMPLEXITY_WORDS = 2000
    MEDIUM_COMPLEXITY_WORDS = 8000

    # Document handling
    PREVIEW_LENGTH = 500  # Characters for content preview
    CHARS_PER_TOKEN = 4

    # Chat streaming
    STREAM_DONE_SENTINEL = "[DONE]"


# Export settings instance for easy importing
settings = get_settings()
