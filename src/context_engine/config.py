"""
Context Engine Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables.
"""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for Context Engine logs.

    Follows XDG Base Directory Specification:
    - Uses $XDG_STATE_HOME/context-engine if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/context-engine if not set
    - Returns relative path ./logs if HOME not available (dev/testing)

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "context-engine" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "context-engine" / "logs")

    # Fallback for development/testing environments without HOME
    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    postgres_db: str = "context_engine"
    postgres_user: str = "context_engine"
    postgres_password: str = "context_engine_dev_password"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    # Connection pool (per process)
    db_pool_size: int = 5
    db_pool_max_overflow: int = 5
    db_pool_timeout: int = 30  # Seconds to wait for a pooled connection
    db_pool_recycle: int = 1800  # Recycle connections after 30 minutes

    @property
    def database_url(self) -> str:
        """Construct database URL from components unless DATABASE_URL is set."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Session engine
    save_max_attempts: int = 3  # Retries on version uniqueness conflicts
    fuzzy_match_limit: int = 10  # Candidates returned by fuzzy resume
    key_file_max_chars: int = 10_000  # Key-file excerpt length in snapshots
    synthetic_conversation_tail: int = 10  # Messages embedded in synthesized files

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False

    # Application
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True  # Enable console (stdout/stderr) logging
    log_file_enabled: bool = True  # Enable file-based logging
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5  # Keep 5 backup files

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())


# Global settings instance
settings = Settings()
