"""Configuration management for the repository risk profiler."""

import tempfile
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .core.constants import (
    DEFAULT_ANALYSIS_TIMEOUT,
    DEFAULT_CLONE_TIMEOUT,
    DEFAULT_GITHUB_API_URL,
    MAX_STORED_CONTENT_CHARS,
)


class DatabaseConfig(BaseSettings):
    """Persistence backend settings."""

    # Supabase Configuration
    supabase_url: Optional[str] = Field(default=None, alias="SUPABASE_URL")
    supabase_service_key: Optional[str] = Field(default=None, alias="SUPABASE_SERVICE_KEY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    @property
    def supabase_configured(self) -> bool:
        """Whether both Supabase credentials are present."""
        return bool(self.supabase_url and self.supabase_service_key)


class LimitsConfig(BaseSettings):
    """Resource limits applied while ingesting and analyzing repositories."""

    # Repository analysis limits
    max_repo_size_mb: int = Field(default=500, alias="MAX_REPO_SIZE_MB", gt=0)
    max_files_per_repo: int = Field(default=1000, alias="MAX_FILES_PER_REPO", gt=0)
    max_file_size_bytes: int = Field(default=100 * 1024, alias="MAX_FILE_SIZE_BYTES", gt=0)
    max_stored_content_chars: int = Field(
        default=MAX_STORED_CONTENT_CHARS, alias="MAX_STORED_CONTENT_CHARS", gt=0
    )

    # Timeouts (seconds)
    clone_timeout_seconds: float = Field(default=DEFAULT_CLONE_TIMEOUT, alias="CLONE_TIMEOUT_SECONDS", gt=0)
    analysis_timeout_seconds: float = Field(
        default=DEFAULT_ANALYSIS_TIMEOUT, alias="ANALYSIS_TIMEOUT_SECONDS", gt=0
    )

    # Concurrent job limits
    max_concurrent_clones: int = Field(default=3, alias="MAX_CONCURRENT_CLONES", gt=0, le=64)
    max_concurrent_analyses: int = Field(default=5, alias="MAX_CONCURRENT_ANALYSES", gt=0, le=64)
    analysis_file_workers: int = Field(default=4, alias="ANALYSIS_FILE_WORKERS", gt=0, le=32)

    # Retry policy
    ingestion_max_attempts: int = Field(default=3, alias="INGESTION_MAX_ATTEMPTS", gt=0)
    analysis_max_attempts: int = Field(default=2, alias="ANALYSIS_MAX_ATTEMPTS", gt=0)
    retry_backoff_seconds: float = Field(default=5.0, alias="RETRY_BACKOFF_SECONDS", ge=0)

    # Storage limits
    max_findings_per_repo: int = Field(default=1000, alias="MAX_FINDINGS_PER_REPO", gt=0)
    max_entities_per_repo: int = Field(default=10000, alias="MAX_ENTITIES_PER_REPO", gt=0)
    max_clone_age_seconds: int = Field(default=3600, alias="MAX_CLONE_AGE_SECONDS", gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True
    )


class GitConfig(BaseSettings):
    """Clone and GitHub access settings."""

    clone_dir: Path = Field(
        default=Path(tempfile.gettempdir()) / "code-risk-clones", alias="CLONE_DIR"
    )
    clone_depth: Optional[int] = Field(default=1, alias="CLONE_DEPTH")
    github_token: Optional[str] = Field(default=None, alias="GITHUB_TOKEN")
    github_api_url: str = Field(default=DEFAULT_GITHUB_API_URL, alias="GITHUB_API_URL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True
    )

    @field_validator('clone_depth')
    @classmethod
    def validate_clone_depth(cls, v):
        """Reject non-positive clone depths; None means full history."""
        if v is not None and v < 1:
            raise ConfigurationError("CLONE_DEPTH must be a positive integer")
        return v

    @field_validator('github_api_url')
    @classmethod
    def validate_github_api_url(cls, v):
        """Normalize the GitHub API base URL."""
        if not v.startswith(("http://", "https://")):
            raise ConfigurationError("GITHUB_API_URL must be an http(s) URL")
        return v.rstrip("/")


class AppConfig(BaseSettings):
    """Application configuration settings."""

    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Only json and console renderers are available."""
        if v.lower() not in ("json", "console"):
            raise ConfigurationError("LOG_FORMAT must be 'json' or 'console'")
        return v.lower()


class Config:
    """Main configuration class."""

    def __init__(self) -> None:
        self.app = AppConfig()
        self.limits = LimitsConfig()
        self.git = GitConfig()
        self.database = DatabaseConfig()

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment and .env file."""
        return cls()


# Global configuration instance
config = Config.load()
