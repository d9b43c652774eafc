"""
Tests for configuration module.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from assetcache.config import Settings, clear_settings_cache, get_settings


class TestSettingsDefaults:
    """Defaults apply when nothing is configured."""

    def test_defaults(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(temp_dir)
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.CACHE_DIR == temp_dir / "tmp"
        assert settings.MAX_SIZE_BYTES == 1024 * 1024 * 1024
        assert settings.FETCH_MAX_RETRIES == 2
        assert settings.LOG_LEVEL == "INFO"
        assert settings.LOG_FILE is None


class TestSettingsValidation:
    """Tests for Settings validation."""

    def test_settings_loads_from_env(
        self, mock_env_vars: dict[str, str], cache_dir: Path
    ) -> None:
        settings = get_settings()

        assert settings.CACHE_DIR == cache_dir
        assert settings.cache_dir == cache_dir
        assert settings.MAX_SIZE_BYTES == 4096
        assert settings.max_size_bytes == 4096
        assert settings.FETCH_TIMEOUT == 5.0
        assert settings.FETCH_MAX_RETRIES == 1
        assert settings.LOG_LEVEL == "DEBUG"

    @pytest.mark.parametrize("value", ["0", "-5", "lots"])
    def test_max_size_must_be_positive_integer(self, value: str) -> None:
        with patch.dict(os.environ, {"MAX_SIZE_BYTES": value}, clear=False):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_cache_dir_cannot_be_a_file(self, temp_dir: Path) -> None:
        not_a_dir = temp_dir / "file"
        not_a_dir.write_text("x")

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None, CACHE_DIR=not_a_dir)

        assert "not a directory" in str(exc_info.value)

    def test_invalid_log_level(self) -> None:
        with patch.dict(os.environ, {"LOG_LEVEL": "CHATTY"}, clear=False):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_ensure_directories(self, cache_dir: Path) -> None:
        settings = Settings(_env_file=None, CACHE_DIR=cache_dir)
        settings.ensure_directories()
        assert cache_dir.is_dir()

    def test_redacted_display(self, mock_env_vars: dict[str, str], cache_dir: Path) -> None:
        display = get_settings().redacted_display()

        assert display["CACHE_DIR"] == str(cache_dir)
        assert display["MAX_SIZE_BYTES"] == 4096
        assert display["LOG_FILE"] is None


class TestSettingsCache:
    """get_settings is a cached singleton."""

    def test_get_settings_is_cached(self, mock_env_vars: dict[str, str]) -> None:
        assert get_settings() is get_settings()

    def test_clear_settings_cache(self, mock_env_vars: dict[str, str]) -> None:
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first
