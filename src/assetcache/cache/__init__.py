"""
On-disk cache layout and maintenance.

- paths.py: Key to shard directory mapping
- names.py: Metadata-carrying asset file names
- store.py: AssetStore get/put/touch over the shard layout
- evictor.py: Size accounting, LRU selection and background eviction
- locks.py: Per-key locks for the request stage
"""

from assetcache.cache.evictor import (
    EvictionScheduler,
    Evictor,
    compute_size,
    find_least_recently_used,
)
from assetcache.cache.names import decode_asset_name, encode_asset_name
from assetcache.cache.paths import compute_shard_path, fold_hash
from assetcache.cache.store import AssetStore

__all__ = [
    "AssetStore",
    "EvictionScheduler",
    "Evictor",
    "compute_shard_path",
    "compute_size",
    "decode_asset_name",
    "encode_asset_name",
    "find_least_recently_used",
    "fold_hash",
]
