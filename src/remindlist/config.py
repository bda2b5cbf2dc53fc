"""Configuration settings for remindlist."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="REMINDLIST_", env_file=".env", env_file_encoding="utf-8"
    )

    # Storage settings
    data_dir: Path = Path("./data")  # One <key>.json file per storage key
    storage_key: str = "reminders"
    store_max_bytes: int = 5 * 1024 * 1024  # 5 MB per stored value

    # Query defaults
    upcoming_days: int = 7

    # Logging settings
    log_level: str = "INFO"
    log_dir: Path | None = None  # Directory for log files (None = stdout only)
    log_max_bytes: int = 10 * 1024 * 1024  # 10 MB max per log file
    log_backup_count: int = 5  # Keep 5 rotated log files


@lru_cache
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return Settings()
