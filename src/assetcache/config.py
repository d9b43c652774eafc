"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
A Settings instance is passed explicitly to AssetCache; get_settings()
exists for entry points such as the CLI.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_SIZE_BYTES = 1024 * 1024 * 1024


def _default_cache_dir() -> Path:
    return Path.cwd() / "tmp"


class Settings(BaseSettings):
    """Asset cache settings loaded from environment variables.

    Optional:
        CACHE_DIR: Root of the sharded storage (default: ./tmp)
        MAX_SIZE_BYTES: Eviction threshold in bytes (default: 1 GiB)
        FETCH_TIMEOUT: Fetch timeout in seconds
        FETCH_MAX_RETRIES: Retry attempts after the first fetch
        USER_AGENT: User-Agent header sent by the fetcher
        LOG_LEVEL: Logging level
        LOG_FILE: JSON-lines log file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    CACHE_DIR: Path = Field(
        default_factory=_default_cache_dir, description="Root of sharded storage"
    )
    MAX_SIZE_BYTES: int = Field(
        default=DEFAULT_MAX_SIZE_BYTES, ge=1, description="Eviction threshold in bytes"
    )

    FETCH_TIMEOUT: float = Field(default=30.0, gt=0.0, description="Fetch timeout in seconds")
    FETCH_MAX_RETRIES: int = Field(
        default=2, ge=0, le=10, description="Retry attempts after the first fetch"
    )
    USER_AGENT: str = Field(
        default="AssetCache/0.3 (+https://github.com/asset-cache)",
        description="User-Agent header for fetches",
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON-lines log file")

    @field_validator("CACHE_DIR")
    @classmethod
    def validate_cache_dir(cls, v: Path) -> Path:
        """Reject a cache directory that points at an existing regular file."""
        if v.exists() and not v.is_dir():
            raise ValueError(f"CACHE_DIR {v} exists and is not a directory")
        return v

    @property
    def cache_dir(self) -> Path:
        """Get cache directory (lowercase alias)."""
        return self.CACHE_DIR

    @property
    def max_size_bytes(self) -> int:
        """Get eviction threshold (lowercase alias)."""
        return self.MAX_SIZE_BYTES

    def ensure_directories(self) -> None:
        """Create the cache root if it doesn't exist."""
        self.CACHE_DIR.mkdir(parents=True, exist_ok=True)

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return settings for display."""
        return {
            "CACHE_DIR": str(self.CACHE_DIR),
            "MAX_SIZE_BYTES": self.MAX_SIZE_BYTES,
            "FETCH_TIMEOUT": self.FETCH_TIMEOUT,
            "FETCH_MAX_RETRIES": self.FETCH_MAX_RETRIES,
            "USER_AGENT": self.USER_AGENT,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
