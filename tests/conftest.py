"""
Pytest configuration and fixtures for asset cache tests.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any, Generator
from unittest.mock import patch

import pytest

from assetcache.cache.store import AssetStore
from assetcache.config import Settings, clear_settings_cache
from assetcache.exceptions import RetrievalError
from assetcache.middleware import AssetCache
from assetcache.types import FetchedAsset


class FakeFetcher:
    """In-memory fetcher that records every call."""

    def __init__(
        self,
        payload: bytes = b"\x89PNG fake image bytes",
        content_type: str = "image/png",
        delay: float = 0.0,
    ) -> None:
        self.payload = payload
        self.content_type = content_type
        self.delay = delay
        self.calls: list[tuple[str, dict[str, Any] | None]] = []
        self.error: Exception | None = None

    async def fetch(self, url: str, options: dict[str, Any] | None = None) -> FetchedAsset:
        self.calls.append((url, options))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return FetchedAsset(
            content_type=self.content_type,
            content_length=len(self.payload),
            payload=self.payload,
        )

    def fail_with(self, message: str = "upstream unavailable") -> None:
        self.error = RetrievalError(message, context={"status_code": 503})


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def cache_dir(temp_dir: Path) -> Path:
    """Root directory of the cache under test (not created up front)."""
    return temp_dir / "cache"


@pytest.fixture
def mock_env_vars(cache_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide environment variables for settings tests."""
    env_vars = {
        "CACHE_DIR": str(cache_dir),
        "MAX_SIZE_BYTES": "4096",
        "FETCH_TIMEOUT": "5.0",
        "FETCH_MAX_RETRIES": "1",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def settings(cache_dir: Path) -> Settings:
    """Settings with a small budget rooted in the temp directory."""
    return Settings(
        _env_file=None,
        CACHE_DIR=cache_dir,
        MAX_SIZE_BYTES=1024 * 1024,
        FETCH_MAX_RETRIES=0,
    )


@pytest.fixture
def store(cache_dir: Path) -> AssetStore:
    return AssetStore(cache_dir)


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
async def asset_cache(settings: Settings, fake_fetcher: FakeFetcher) -> AssetCache:
    """AssetCache wired to the fake fetcher."""
    cache = AssetCache(settings, fetcher=fake_fetcher)
    yield cache
    await cache.close()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def make_fetcher() -> type[FakeFetcher]:
    """The FakeFetcher class, for tests that need a custom payload or delay."""
    return FakeFetcher
