"""
Sharded on-disk store for cached assets.

Each cache key owns one leaf directory (see paths.py) holding exactly one
committed file whose name encodes the asset's content type and length
(see names.py). Writes go to a temporary file in the leaf and are renamed
into place, so a reader never sees a truncated payload.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path

from assetcache.cache.names import (
    TEMP_PREFIX,
    decode_asset_name,
    encode_asset_name,
    is_temporary_name,
)
from assetcache.cache.paths import compute_shard_path
from assetcache.exceptions import CorruptEntryError, FilesystemError, StoreWriteError
from assetcache.logging import get_logger
from assetcache.types import AssetRecord, ShardPath, generate_id

logger = get_logger(__name__)

# A racing eviction pass may delete the temporary file or prune the fresh
# leaf directory mid-write; one retry recreates both.
_WRITE_ATTEMPTS = 2


class AssetStore:
    """Get/put access to the sharded cache layout.

    The public coroutines run their filesystem work in a worker thread so
    request handling never blocks the event loop. The *_sync variants are
    used by those threads and by tests.
    """

    def __init__(self, cache_dir: str | Path) -> None:
        """Initialize the store.

        Args:
            cache_dir: Root directory of the cache. Created lazily on first put.
        """
        self.cache_dir = Path(cache_dir)

    def leaf_path(self, cache_key: str | bytes) -> ShardPath:
        """Get the shard location for a cache key."""
        return compute_shard_path(self.cache_dir, cache_key)

    async def get(self, cache_key: str | bytes) -> AssetRecord | None:
        """Read the asset stored for a key and mark it as recently used.

        Returns:
            AssetRecord on a hit, None on a miss.

        Raises:
            CorruptEntryError: If the leaf is empty, its file name cannot be
                decoded, or the payload length disagrees with the name.
            FilesystemError: If the leaf cannot be read.
        """
        return await asyncio.to_thread(self.get_sync, cache_key)

    async def put(
        self,
        cache_key: str | bytes,
        payload: bytes,
        content_type: str,
        content_length: int,
    ) -> Path:
        """Store an asset, replacing whatever the key held before.

        Returns:
            Path of the committed file.

        Raises:
            StoreWriteError: If any directory or file operation fails. No
                partial file is left behind.
        """
        return await asyncio.to_thread(
            self.put_sync, cache_key, payload, content_type, content_length
        )

    async def touch(self, path: str | Path) -> bool:
        """Mark a file as used now. See touch_sync."""
        return await asyncio.to_thread(self.touch_sync, path)

    async def discard(self, cache_key: str | bytes) -> bool:
        """Remove a key's leaf directory. See discard_sync."""
        return await asyncio.to_thread(self.discard_sync, cache_key)

    def get_sync(self, cache_key: str | bytes) -> AssetRecord | None:
        shard = self.leaf_path(cache_key)
        leaf = shard.path

        try:
            names = [entry.name for entry in os.scandir(leaf)]
        except FileNotFoundError:
            return None
        except NotADirectoryError as e:
            raise CorruptEntryError(
                "Leaf path is not a directory",
                context={"path": str(leaf)},
            ) from e
        except OSError as e:
            raise FilesystemError(
                "Failed to list leaf directory",
                context={"path": str(leaf), "error": str(e)},
            ) from e

        committed = [name for name in names if not is_temporary_name(name)]
        if not committed:
            if names:
                # Another writer is mid-put; nothing is committed yet.
                return None
            raise CorruptEntryError("Leaf directory is empty", context={"path": str(leaf)})

        # put() leaves a single committed entry, so the first one is the entry.
        name = committed[0]
        content_type, content_length = decode_asset_name(name)
        asset_path = leaf / name

        try:
            payload = asset_path.read_bytes()
        except FileNotFoundError:
            logger.debug("Asset vanished before read", path=str(asset_path))
            return None
        except OSError as e:
            raise FilesystemError(
                "Failed to read cached asset",
                context={"path": str(asset_path), "error": str(e)},
            ) from e

        if len(payload) != content_length:
            raise CorruptEntryError(
                "Cached payload length does not match its name",
                context={
                    "path": str(asset_path),
                    "expected": content_length,
                    "actual": len(payload),
                },
            )

        self.touch_sync(asset_path)

        return AssetRecord(
            content_type=content_type,
            content_length=content_length,
            payload=payload,
            path=asset_path,
        )

    def put_sync(
        self,
        cache_key: str | bytes,
        payload: bytes,
        content_type: str,
        content_length: int,
    ) -> Path:
        if content_length != len(payload):
            raise ValueError(
                f"content_length {content_length} does not match payload size {len(payload)}"
            )

        shard = self.leaf_path(cache_key)
        leaf = shard.path
        name = encode_asset_name(content_type, content_length)
        final_path = leaf / name
        tmp_path = leaf / f"{TEMP_PREFIX}{generate_id('tmp')}"

        for attempt in range(_WRITE_ATTEMPTS):
            try:
                leaf.mkdir(parents=True, exist_ok=True)
                with open(tmp_path, "wb") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, final_path)
                break
            except FileNotFoundError as e:
                self._remove_quietly(tmp_path)
                if attempt + 1 < _WRITE_ATTEMPTS:
                    continue
                self._remove_empty_leaf(leaf)
                raise StoreWriteError(
                    "Cache directory disappeared during write",
                    context={"path": str(final_path), "error": str(e)},
                ) from e
            except OSError as e:
                self._remove_quietly(tmp_path)
                self._remove_empty_leaf(leaf)
                raise StoreWriteError(
                    "Failed to write cached asset",
                    context={"path": str(final_path), "error": str(e)},
                ) from e

        self._remove_stale(leaf, keep=name)

        logger.debug(
            "Stored asset",
            path=str(final_path),
            content_type=content_type,
            size=len(payload),
        )
        return final_path

    def touch_sync(self, path: str | Path) -> bool:
        """Set a file's access and modification times to now.

        A failure (typically the file was evicted in the meantime) is logged
        and reported as False. The file is never recreated.
        """
        try:
            os.utime(path, None)
        except OSError as e:
            logger.warning("Could not update access time", path=str(path), error=str(e))
            return False
        return True

    def discard_sync(self, cache_key: str | bytes) -> bool:
        """Remove the leaf directory of a key, including any files in it.

        Returns:
            True if something was removed, False if the key was absent.
        """
        leaf = self.leaf_path(cache_key).path
        try:
            shutil.rmtree(leaf)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FilesystemError(
                "Failed to discard cache entry",
                context={"path": str(leaf), "error": str(e)},
            ) from e
        logger.info("Discarded cache entry", path=str(leaf))
        return True

    def _remove_stale(self, leaf: Path, keep: str) -> None:
        """Delete committed entries other than the one just written."""
        try:
            entries = list(os.scandir(leaf))
        except OSError as e:
            logger.warning("Could not list leaf for cleanup", path=str(leaf), error=str(e))
            return

        for entry in entries:
            if entry.name == keep or is_temporary_name(entry.name):
                continue
            logger.debug("Removing stale entry", path=entry.path)
            self._remove_quietly(Path(entry.path))

    @staticmethod
    def _remove_quietly(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove file", path=str(path), error=str(e))

    @staticmethod
    def _remove_empty_leaf(leaf: Path) -> None:
        try:
            leaf.rmdir()
        except OSError:
            # Missing, or it still holds a previous committed entry.
            pass
