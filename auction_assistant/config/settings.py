"""
Application settings and configuration management.

This module handles all environment variables, API keys, and model
configuration using Pydantic settings management for type safety and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The API key is stored as SecretStr to prevent accidental logging.
    Settings are validated on load and cached for performance.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # API Keys
    anthropic_api_key: SecretStr = Field(..., alias="ANTHROPIC_API_KEY")

    # Application Configuration
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL"
    )

    # Vision Model
    vision_model: str = Field(
        default="claude-sonnet-4-20250514",
        alias="VISION_MODEL"
    )
    vision_max_tokens: int = Field(default=1500, alias="VISION_MAX_TOKENS")
    vision_temperature: float = Field(default=0.3, alias="VISION_TEMPERATURE")

    # Post Generation Model
    post_model: str = Field(
        default="claude-sonnet-4-20250514",
        alias="POST_MODEL"
    )
    post_max_tokens: int = Field(default=1000, alias="POST_MAX_TOKENS")
    post_temperature: float = Field(default=0.7, alias="POST_TEMPERATURE")

    # Request Handling
    request_timeout_seconds: int = Field(default=60, alias="REQUEST_TIMEOUT_SECONDS")
    max_retries: int = Field(default=3, alias="MAX_RETRIES")
    max_concurrent_analyses: int = Field(default=3, alias="MAX_CONCURRENT_ANALYSES")

    # Output Settings
    output_dir: Path = Field(default=Path("outputs/listings"), alias="OUTPUT_DIR")
    log_dir: Path = Field(default=Path("logs"), alias="LOG_DIR")
    report_format: Literal["json", "markdown", "html"] = Field(
        default="markdown",
        alias="REPORT_FORMAT"
    )

    # Validation
    min_confidence_threshold: int = Field(default=50, alias="MIN_CONFIDENCE_THRESHOLD")
    max_upload_size_bytes: int = Field(default=10 * 1024 * 1024, alias="MAX_UPLOAD_SIZE_BYTES")

    @field_validator("output_dir", "log_dir", mode="before")
    @classmethod
    def validate_directories(cls, v: str | Path) -> Path:
        """Ensure directories exist."""
        path = Path(v)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("anthropic_api_key", mode="before")
    @classmethod
    def validate_anthropic_key(cls, v: str) -> str:
        """Validate Anthropic API key format."""
        if not v or not v.startswith("sk-"):
            raise ValueError("Invalid Anthropic API key format")
        return v

    @field_validator("min_confidence_threshold")
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError("MIN_CONFIDENCE_THRESHOLD must be between 0 and 100")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
