"""
asset-cache: a disk-backed LRU cache for fetched binary assets.

Assets are stored under a path derived from their cache key:

    <cache_dir>/<bucket1>/<bucket2>/<sha256(key)>/<base64("<type>:<length>")>

and total disk usage is bounded by evicting least recently used files.
"""

__version__ = "0.3.0"

from assetcache.cache.evictor import EvictionScheduler, Evictor
from assetcache.cache.store import AssetStore
from assetcache.config import Settings, get_settings
from assetcache.middleware import AssetCache

__all__ = [
    "AssetCache",
    "AssetStore",
    "EvictionScheduler",
    "Evictor",
    "Settings",
    "get_settings",
    "__version__",
]
