"""
Application settings and configuration management.

This module handles all environment variables, API keys, and application
configuration using Pydantic settings management for type safety and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values are stored as SecretStr to prevent accidental logging.
    Settings are validated on load and cached for performance.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # API Keys
    # Optional: a missing key means the AI provider cannot be initialized and
    # generation falls back to rule-based reports when allowed.
    anthropic_api_key: Optional[SecretStr] = Field(default=None, alias="ANTHROPIC_API_KEY")

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
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Model Configuration
    claude_model: str = Field(
        default="claude-sonnet-4-20250514",
        alias="CLAUDE_MODEL"
    )
    claude_max_tokens: int = Field(default=4000, alias="CLAUDE_MAX_TOKENS")
    analysis_temperature: float = Field(default=0.7, alias="ANALYSIS_TEMPERATURE")

    # Rate Limits
    max_requests_per_minute: int = Field(default=20, alias="MAX_REQUESTS_PER_MINUTE")
    max_retries: int = Field(default=3, alias="MAX_RETRIES")

    # Generation budgets
    ai_analysis_timeout_seconds: float = Field(default=90.0, gt=0, alias="AI_ANALYSIS_TIMEOUT_SECONDS")
    generation_timeout_seconds: float = Field(default=120.0, gt=0, alias="GENERATION_TIMEOUT_SECONDS")
    min_data_completeness: float = Field(default=50.0, ge=0, le=100, alias="MIN_DATA_COMPLETENESS")
    snapshot_excerpt_chars: int = Field(default=500, ge=0, alias="SNAPSHOT_EXCERPT_CHARS")

    # AI circuit breaker
    ai_failure_threshold: int = Field(default=5, ge=1, alias="AI_FAILURE_THRESHOLD")
    ai_recovery_seconds: int = Field(default=60, ge=0, alias="AI_RECOVERY_SECONDS")

    # Storage
    reports_dir: Path = Field(default=Path("reports"), alias="REPORTS_DIR")
    log_dir: Path = Field(default=Path("logs"), alias="LOG_DIR")
    database_url: str = Field(
        default="sqlite+aiosqlite:///reports.db",
        alias="DATABASE_URL",
    )

    @field_validator("reports_dir", "log_dir", mode="before")
    @classmethod
    def validate_directories(cls, v: str | Path) -> Path:
        """Ensure directories exist."""
        path = Path(v)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("anthropic_api_key", mode="before")
    @classmethod
    def validate_anthropic_key(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank keys as unset."""
        if v is None:
            return None
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def has_ai_credentials(self) -> bool:
        """Whether an Anthropic key in the expected format is configured."""
        if self.anthropic_api_key is None:
            return False
        return self.anthropic_api_key.get_secret_value().startswith("sk-")


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
