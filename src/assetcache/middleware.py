"""
Request-pipeline stage for the asset cache.

AssetCache resolves a URL to its bytes: a hit is served from disk and its
recency refreshed; a miss is fetched, stored and followed by a background
eviction pass. handle() adapts this to a mutable RequestContext for
pipelines that read the result back from the context.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from pathlib import Path
from typing import Any

from assetcache.cache.evictor import EvictionScheduler, Evictor, compute_size, count_files
from assetcache.cache.locks import KeyedLock
from assetcache.cache.names import DELIMITER, MAX_NAME_LENGTH, encode_asset_name
from assetcache.cache.store import AssetStore
from assetcache.config import Settings
from assetcache.exceptions import AssetCacheError, CorruptEntryError
from assetcache.logging import ContextLogger, LogSink, SinkLogger, get_logger, log_context
from assetcache.retrieval.fetch import AssetFetcher, Fetcher
from assetcache.types import (
    CachedAsset,
    CacheStats,
    EvictionReport,
    RequestContext,
    generate_id,
)

_default_logger = get_logger(__name__)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class AssetCache:
    """Disk-backed LRU cache in front of a fetcher.

    Usage:
        async with AssetCache(settings) as cache:
            asset = await cache.resolve("https://example.org/logo.png")
    """

    def __init__(
        self,
        settings: Settings,
        fetcher: Fetcher | None = None,
        store: AssetStore | None = None,
        scheduler: EvictionScheduler | None = None,
        logger: logging.Logger | ContextLogger | LogSink | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            settings: Cache directory, size budget and fetch settings.
            fetcher: Fetcher used on misses. Defaults to an AssetFetcher
                built from settings, which this cache then owns and closes.
            store: Store override (defaults to one rooted at settings.CACHE_DIR).
            scheduler: Eviction scheduler override. Its evictor is also the
                one used by evict_now() and stats().
            logger: Optional logger. A logging.Logger is wrapped in a
                ContextLogger; any other object only needs debug, info and
                error methods taking a message string.
        """
        self.settings = settings
        self.store = store or AssetStore(settings.CACHE_DIR)
        self.scheduler = scheduler or EvictionScheduler(
            Evictor(self.store.cache_dir, settings.MAX_SIZE_BYTES)
        )
        self.evictor = self.scheduler.evictor

        self._owns_fetcher = fetcher is None
        self.fetcher: Fetcher = fetcher or AssetFetcher(
            timeout=settings.FETCH_TIMEOUT,
            max_retries=settings.FETCH_MAX_RETRIES,
            user_agent=settings.USER_AGENT,
        )

        if isinstance(logger, logging.Logger):
            logger = ContextLogger(logger)
        elif logger is not None and not isinstance(logger, ContextLogger):
            logger = SinkLogger(logger)
        self.logger = logger or _default_logger

        self._locks = KeyedLock()

    async def __aenter__(self) -> AssetCache:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Cancel background eviction and close an owned fetcher."""
        await self.scheduler.aclose()
        if self._owns_fetcher and isinstance(self.fetcher, AssetFetcher):
            await self.fetcher.close()

    async def resolve(
        self,
        fetch_url: str,
        cache_key: str | bytes | None = None,
        fetch_options: dict[str, Any] | None = None,
    ) -> CachedAsset:
        """Return the asset for a URL, from disk when possible.

        Args:
            fetch_url: URL to fetch on a miss.
            cache_key: Identity of the asset; defaults to fetch_url.
            fetch_options: Passed verbatim to the fetcher.

        Returns:
            CachedAsset with the payload and whether it was a hit.

        Raises:
            RetrievalError: If the fetcher fails on a miss.
            FilesystemError: If reading or writing the cache fails.
        """
        key = cache_key or fetch_url
        shard = self.store.leaf_path(key)
        start = time.perf_counter()

        async with self._locks.acquire(shard.content_hash):
            try:
                record = await self.store.get(key)
            except CorruptEntryError as e:
                self.logger.warning("Discarding corrupt cache entry", error=str(e))
                await self.store.discard(key)
                record = None

            if record is not None:
                elapsed = _elapsed_ms(start)
                self.logger.info(
                    f"Read buffer from path {record.path} in {elapsed:.3f} ms",
                    hit=True,
                )
                return CachedAsset(
                    cache_key=key,
                    content_type=record.content_type,
                    content_length=record.content_length,
                    buffer=record.payload,
                    hit=True,
                    elapsed_ms=elapsed,
                )

            fetched = await self.fetcher.fetch(fetch_url, fetch_options)

            if fetched.content_length != len(fetched.payload):
                # e.g. a fetcher reporting the wire Content-Length of a
                # compressed response
                self.logger.warning(
                    "Fetched length disagrees with payload, using payload size",
                    url=fetch_url,
                    reported=fetched.content_length,
                    actual=len(fetched.payload),
                )
                fetched = dataclasses.replace(fetched, content_length=len(fetched.payload))

            if DELIMITER in fetched.content_type:
                self.logger.warning(
                    "Content type cannot be encoded in a file name, not caching",
                    url=fetch_url,
                    content_type=fetched.content_type,
                )
            elif (
                len(encode_asset_name(fetched.content_type, fetched.content_length))
                > MAX_NAME_LENGTH
            ):
                self.logger.warning(
                    "Encoded file name is too long, not caching",
                    url=fetch_url,
                    content_type=fetched.content_type,
                )
            else:
                path = await self.store.put(
                    key,
                    fetched.payload,
                    fetched.content_type,
                    fetched.content_length,
                )
                self.scheduler.schedule()
                self.logger.info(
                    f"Wrote buffer to path {path} in {_elapsed_ms(start):.3f} ms",
                    hit=False,
                )

        return CachedAsset(
            cache_key=key,
            content_type=fetched.content_type,
            content_length=fetched.content_length,
            buffer=fetched.payload,
            hit=False,
            elapsed_ms=_elapsed_ms(start),
        )

    async def handle(self, context: RequestContext) -> RequestContext:
        """Run the cache stage for a request context.

        Fills buffer, content_type, content_length and cache_hit with status
        200 on success. A cache or fetch failure sets status 500 and the
        error message instead of raising.
        """
        key = context.effective_key
        with log_context(request_id=generate_id("req"), cache_key=key):
            try:
                asset = await self.resolve(
                    context.fetch_url,
                    cache_key=key,
                    fetch_options=context.fetch_options,
                )
            except AssetCacheError as e:
                self.logger.error(
                    f"Caching asset at {self.store.leaf_path(key).path} failed with error: {e.message}",
                    **e.context,
                )
                context.status = 500
                context.error = e.message
                return context

        context.buffer = asset.buffer
        context.content_type = asset.content_type
        context.content_length = asset.content_length
        context.cache_hit = asset.hit
        context.status = 200
        context.error = None
        return context

    async def evict_now(self) -> EvictionReport:
        """Run an eviction pass and wait for it."""
        return await self.evictor.evict_async()

    def stats(self) -> CacheStats:
        """Snapshot of entry count and size on disk."""
        cache_dir: Path = self.store.cache_dir
        return CacheStats(
            cache_dir=cache_dir,
            entries=count_files(cache_dir),
            total_bytes=compute_size(cache_dir),
            max_size_bytes=self.evictor.max_size_bytes,
        )
