"""
Deterministic mapping from cache keys to shard directories.

A key is hashed with SHA-256; the hex digest is folded into a small integer
which picks two bucket directories of at most 4096 entries each:

    <cache_dir>/<bucket1_hex>/<bucket2_hex>/<sha256_hex>

The layout must stay bit-for-bit stable: existing caches depend on it.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from assetcache.types import ShardPath

FOLD_SEED = 7
FOLD_MULTIPLIER = 31
FOLD_MODULUS = 982451653

BUCKET_COUNT = 0x1000


def hash_cache_key(cache_key: str | bytes) -> str:
    """Return the lowercase SHA-256 hex digest of a cache key."""
    if isinstance(cache_key, str):
        cache_key = cache_key.encode("utf-8")
    return hashlib.sha256(cache_key).hexdigest()


def fold_hash(value: str) -> int:
    """Fold a string into [0, FOLD_MODULUS) with a multiplicative rolling hash."""
    acc = FOLD_SEED
    for char in value:
        acc = (acc * FOLD_MULTIPLIER * ord(char)) % FOLD_MODULUS
    return acc


def compute_shard_path(cache_dir: str | Path, cache_key: str | bytes) -> ShardPath:
    """Compute the leaf directory for a cache key.

    Args:
        cache_dir: Root of the cache.
        cache_key: Opaque key; str keys are UTF-8 encoded before hashing.

    Returns:
        ShardPath with both bucket names, the content hash and the leaf path.
    """
    content_hash = hash_cache_key(cache_key)
    folded = fold_hash(content_hash)

    bucket1 = folded % BUCKET_COUNT
    bucket2 = (folded // BUCKET_COUNT) % BUCKET_COUNT
    bucket1_hex = format(bucket1, "x")
    bucket2_hex = format(bucket2, "x")

    return ShardPath(
        bucket1_hex=bucket1_hex,
        bucket2_hex=bucket2_hex,
        content_hash=content_hash,
        path=Path(cache_dir) / bucket1_hex / bucket2_hex / content_hash,
    )
