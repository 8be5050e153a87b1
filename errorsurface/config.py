"""error-surface configuration system using Pydantic Settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ErrorSurfaceConfig(BaseSettings):
    """Main configuration class. Loads from .env file and ERRORSURFACE_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="ERRORSURFACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "error-surface"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8470

    # Logging
    log_dir: str = "logs"
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # Event store
    database_path: str = "~/.local/share/error-surface/events.db"
    db_wal_mode: bool = True
    db_busy_timeout: int = 5000  # milliseconds
    db_synchronous: str = "NORMAL"
    retention_days: int = 30

    # Scan worker
    lookback_days: int = 7
    scan_interval: int = 0  # seconds between rescans, 0 = on demand only
    scan_on_start: bool = True

    # Live monitor
    live_enabled: bool = True
    live_window_minutes: int = 60
    live_poll_interval: int = 5  # seconds

    # Journal source
    journal_command: str = "journalctl"
    journal_max_entries: int = 10_000
    live_journal_max_entries: int = 5_000
    journal_timeout: int = 60

    # Kernel ring buffer source
    kernel_log_command: str = "dmesg"
    kernel_log_use_sudo: bool = True
    kernel_log_timeout: int = 15

    # Retention maintenance
    purge_on_start: bool = True
    purge_interval: int = 3600  # seconds, 0 disables the periodic purge

    @field_validator("retention_days", "lookback_days", "live_window_minutes", "live_poll_interval")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("db_synchronous")
    @classmethod
    def validate_synchronous(cls, v: str) -> str:
        allowed = {"OFF", "NORMAL", "FULL", "EXTRA"}
        if v.upper() not in allowed:
            raise ValueError(f"db_synchronous must be one of {allowed}")
        return v.upper()

    @property
    def database_file(self) -> Path:
        return Path(self.database_path).expanduser()


def get_config() -> ErrorSurfaceConfig:
    """Factory function to create config instance."""
    return ErrorSurfaceConfig()
