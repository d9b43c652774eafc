"""
Asset retrieval for cache misses.

- AssetFetcher: httpx-based fetcher with retries
- Fetcher: Protocol for injecting other fetchers
"""

from assetcache.retrieval.fetch import AssetFetcher, Fetcher

__all__ = [
    "AssetFetcher",
    "Fetcher",
]
