"""
Core types for the asset cache.

This module defines the data structures shared across the cache:
- Frozen dataclasses for immutable values (ShardPath, AssetRecord, FetchedAsset)
- Eviction results (LruCandidate, EvictionReport)
- The request-pipeline context (RequestContext) and resolved asset (CachedAsset)
- generate_id() for time-ordered IDs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from uuid6 import uuid7


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "req", "tmp")

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


@dataclass(frozen=True)
class ShardPath:
    """Location of a cache key on disk.

    The leaf directory is nested as <cache_dir>/<bucket1_hex>/<bucket2_hex>/<content_hash>.
    """

    bucket1_hex: str
    bucket2_hex: str
    content_hash: str  # SHA-256 hex digest of the cache key
    path: Path  # Leaf directory

    @property
    def parts(self) -> tuple[str, str, str]:
        """Directory names below the cache root, outermost first."""
        return (self.bucket1_hex, self.bucket2_hex, self.content_hash)


@dataclass(frozen=True)
class AssetRecord:
    """A cached asset as read back from disk."""

    content_type: str
    content_length: int
    payload: bytes
    path: Path | None = None  # File the record was read from


@dataclass(frozen=True)
class FetchedAsset:
    """An asset returned by a fetcher."""

    content_type: str
    content_length: int
    payload: bytes


@dataclass(frozen=True)
class LruCandidate:
    """The least recently used file found by a scan."""

    path: Path
    atime: float


@dataclass
class EvictionReport:
    """Outcome of a single eviction pass."""

    evicted: list[Path] = field(default_factory=list)
    freed_bytes: int = 0
    final_size: int = 0
    halted: str | None = None  # Error text if the pass stopped on a failure

    @property
    def count(self) -> int:
        """Number of files deleted during the pass."""
        return len(self.evicted)


@dataclass(frozen=True)
class CachedAsset:
    """Result of resolving a URL through the cache."""

    cache_key: str | bytes
    content_type: str
    content_length: int
    buffer: bytes
    hit: bool
    elapsed_ms: float = 0.0


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time view of the cache directory."""

    cache_dir: Path
    entries: int
    total_bytes: int
    max_size_bytes: int

    @property
    def utilization(self) -> float:
        """Fraction of the size budget in use."""
        if self.max_size_bytes <= 0:
            return 0.0
        return self.total_bytes / self.max_size_bytes


@dataclass
class RequestContext:
    """Mutable per-request state handed through the cache stage.

    Callers fill in fetch_url (and optionally cache_key / fetch_options);
    the cache stage fills in the asset fields or a failure status.
    """

    fetch_url: str
    cache_key: str | bytes | None = None
    fetch_options: dict[str, Any] | None = None

    # Populated by the cache stage
    buffer: bytes | None = None
    content_type: str | None = None
    content_length: int | None = None
    cache_hit: bool | None = None
    status: int | None = None
    error: str | None = None

    @property
    def effective_key(self) -> str | bytes:
        """The cache key, falling back to the fetch URL."""
        return self.cache_key or self.fetch_url

    @property
    def ok(self) -> bool:
        """Whether the cache stage completed successfully."""
        return self.status == 200
