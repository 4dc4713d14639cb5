"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Annotated, Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

ENV_FILE = ".env"


class SectionConfig(BaseSettings):
    """Base for configuration sections; each reads the environment and .env."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class AppConfig(SectionConfig):
    """Application configuration."""

    env: Literal["development", "production", "testing"] = Field(default="development", alias="APP_ENV")
    debug: bool = Field(default=False, alias="APP_DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(default="json", alias="LOG_FORMAT")


class GmailConfig(SectionConfig):
    """Gmail API configuration."""

    credentials_path: Path = Field(alias="GMAIL_CREDENTIALS_PATH")
    token_path: Path = Field(alias="GMAIL_TOKEN_PATH")
    inbox_label: str = Field(default="Purchase Agreements", alias="GMAIL_INBOX_LABEL")
    processed_label: str = Field(
        default="Purchase Agreements/Processed", alias="GMAIL_PROCESSED_LABEL"
    )
    # Caps a single run so it finishes inside the scheduler's time budget
    max_threads: int = Field(default=10, ge=1, alias="GMAIL_MAX_THREADS")
    max_attachment_size_mb: int = Field(default=20, ge=1, alias="GMAIL_MAX_ATTACHMENT_SIZE_MB")
    poll_interval_seconds: int = Field(default=900, ge=1, alias="GMAIL_POLL_INTERVAL")

    @field_validator("credentials_path", "token_path", mode="before")
    @classmethod
    def validate_path(cls, v: str | Path) -> Path:
        """Convert string to Path."""
        return Path(v) if isinstance(v, str) else v

    @property
    def max_attachment_size_bytes(self) -> int:
        """Attachment ceiling in bytes (MiB based)."""
        return self.max_attachment_size_mb * 1024 * 1024


class AnthropicConfig(SectionConfig):
    """Document-analysis endpoint configuration."""

    api_key: SecretStr = Field(alias="ANTHROPIC_API_KEY")
    api_url: str = Field(default="https://api.anthropic.com", alias="ANTHROPIC_API_URL")
    api_version: str = Field(default="2023-06-01", alias="ANTHROPIC_VERSION")
    model: str = Field(default="claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")
    max_tokens: int = Field(default=4096, ge=1, alias="ANTHROPIC_MAX_TOKENS")
    timeout_seconds: float = Field(default=120.0, alias="ANTHROPIC_TIMEOUT")
    max_attempts: int = Field(default=3, ge=1, alias="EXTRACTION_MAX_ATTEMPTS")
    initial_backoff_seconds: float = Field(default=5.0, ge=0, alias="EXTRACTION_INITIAL_BACKOFF")


class SheetsConfig(SectionConfig):
    """Google Sheets configuration."""

    credentials_path: Path = Field(alias="SHEETS_CREDENTIALS_PATH")
    spreadsheet_id: str = Field(alias="SHEETS_SPREADSHEET_ID")
    worksheet_name: str = Field(default="Contracts", alias="SHEETS_WORKSHEET")

    @field_validator("credentials_path", mode="before")
    @classmethod
    def validate_path(cls, v: str | Path) -> Path:
        """Convert string to Path."""
        return Path(v) if isinstance(v, str) else v


class NotificationConfig(SectionConfig):
    """Run summary notification configuration."""

    notify_email: Optional[str] = Field(default=None, alias="NOTIFY_EMAIL")
    subject_prefix: str = Field(default="[Contract Intake]", alias="NOTIFY_SUBJECT_PREFIX")

    @field_validator("notify_email", mode="before")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty address as not configured."""
        if v is None or not str(v).strip():
            return None
        return str(v).strip()


class AdminConfig(SectionConfig):
    """HTTP adapter configuration."""

    api_key: SecretStr = Field(alias="ADMIN_API_KEY")
    port: int = Field(default=8080, alias="ADMIN_PORT")
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        alias="ADMIN_CORS_ORIGINS",
    )
    poller_enabled: bool = Field(default=False, alias="POLLER_ENABLED")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_origins(cls, v: str | list[str]) -> list[str]:
        """Parse comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


class Settings(BaseSettings):
    """Master settings combining all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    app: AppConfig = Field(default_factory=AppConfig)
    gmail: GmailConfig = Field(default_factory=GmailConfig)
    anthropic: AnthropicConfig = Field(default_factory=AnthropicConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    admin: AdminConfig = Field(default_factory=AdminConfig)


def load_settings() -> Settings:
    """Build a fresh settings object from the environment.

    Called once per pipeline invocation; nothing is cached between runs.
    """
    return Settings()
