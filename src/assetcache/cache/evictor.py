"""
Size accounting and least-recently-used eviction.

Recency is the file's last-access time, which AssetStore refreshes on every
hit. Each eviction step rescans the tree for the total size and for the
oldest file, so draining N files costs O(N x entries). Symlinks are not
followed, so traversal is bounded by the real directory depth.
"""

from __future__ import annotations

import asyncio
import os
import threading
from pathlib import Path
from typing import Iterator

from assetcache.exceptions import ConfigurationError, EvictionError
from assetcache.logging import get_logger
from assetcache.types import EvictionReport, LruCandidate

logger = get_logger(__name__)


def _iter_files(directory: Path) -> Iterator[os.DirEntry]:
    """Yield regular files depth-first in directory listing order."""
    try:
        entries = list(os.scandir(directory))
    except FileNotFoundError:
        return

    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                yield from _iter_files(Path(entry.path))
            elif entry.is_file(follow_symlinks=False):
                yield entry
        except FileNotFoundError:
            # Removed by a concurrent pass between listing and stat.
            continue


def compute_size(cache_dir: str | Path) -> int:
    """Total size in bytes of all files below cache_dir."""
    total = 0
    for entry in _iter_files(Path(cache_dir)):
        try:
            total += entry.stat(follow_symlinks=False).st_size
        except FileNotFoundError:
            continue
    return total


def count_files(cache_dir: str | Path) -> int:
    """Number of files below cache_dir."""
    return sum(1 for _ in _iter_files(Path(cache_dir)))


def find_least_recently_used(cache_dir: str | Path) -> LruCandidate | None:
    """Find the file with the oldest access time.

    Ties go to the file encountered first in traversal order.

    Returns:
        The candidate, or None if the tree holds no files.
    """
    oldest: LruCandidate | None = None
    for entry in _iter_files(Path(cache_dir)):
        try:
            atime = entry.stat(follow_symlinks=False).st_atime
        except FileNotFoundError:
            continue
        if oldest is None or atime < oldest.atime:
            oldest = LruCandidate(path=Path(entry.path), atime=atime)
    return oldest


class Evictor:
    """Deletes least recently used files until the cache fits its budget."""

    def __init__(self, cache_dir: str | Path, max_size_bytes: int) -> None:
        """Initialize the evictor.

        Args:
            cache_dir: Root of the cache.
            max_size_bytes: A pass stops once the total size is below this.
        """
        if max_size_bytes <= 0:
            raise ConfigurationError(
                "max_size_bytes must be positive",
                context={"max_size_bytes": max_size_bytes},
            )
        self.cache_dir = Path(cache_dir)
        self.max_size_bytes = max_size_bytes

    def compute_size(self) -> int:
        return compute_size(self.cache_dir)

    def find_least_recently_used(self) -> LruCandidate | None:
        return find_least_recently_used(self.cache_dir)

    def evict(self, stop_event: threading.Event | None = None) -> EvictionReport:
        """Run one eviction pass.

        A failed deletion is logged and ends the pass; it is recorded in the
        report rather than raised. Files that are already gone are skipped.

        Args:
            stop_event: Checked between steps; setting it ends the pass early.

        Returns:
            EvictionReport describing what was deleted.
        """
        report = EvictionReport()

        while True:
            size = self.compute_size()
            report.final_size = size
            if size < self.max_size_bytes:
                break
            if stop_event is not None and stop_event.is_set():
                logger.debug("Eviction pass stopped", cache_dir=str(self.cache_dir))
                break

            candidate = self.find_least_recently_used()
            if candidate is None:
                break

            try:
                freed = self._delete(candidate.path)
            except OSError as e:
                report.halted = str(e)
                logger.error(
                    "Eviction pass halted",
                    path=str(candidate.path),
                    error=str(e),
                )
                break

            if freed is None:
                continue

            report.evicted.append(candidate.path)
            report.freed_bytes += freed
            logger.info(
                "Evicted asset from cache",
                path=str(candidate.path),
                size=freed,
            )
            self._prune_empty_parents(candidate.path.parent)

        return report

    async def evict_async(self, stop_event: threading.Event | None = None) -> EvictionReport:
        """Run one eviction pass in a worker thread."""
        return await asyncio.to_thread(self.evict, stop_event)

    @staticmethod
    def _delete(path: Path) -> int | None:
        """Unlink a file, returning its size, or None if it was already gone."""
        try:
            size = path.stat().st_size
            path.unlink()
        except FileNotFoundError:
            return None
        return size

    def _prune_empty_parents(self, directory: Path) -> None:
        """Remove now-empty directories from the leaf up to the cache root.

        Removal only succeeds on empty directories; anything else (siblings
        remain, already removed) stops the walk.
        """
        root = self.cache_dir.resolve()
        current = directory
        while True:
            try:
                resolved = current.resolve()
            except OSError:
                return
            if resolved == root or root not in resolved.parents:
                return
            try:
                current.rmdir()
            except OSError:
                return
            current = current.parent


class EvictionScheduler:
    """Supervises background eviction passes.

    schedule() never blocks and never raises: it starts a pass if none is
    running, otherwise it marks one more pass as pending so bursts of puts
    coalesce into at most one follow-up pass.
    """

    def __init__(self, evictor: Evictor) -> None:
        self.evictor = evictor
        self._task: asyncio.Task[None] | None = None
        self._pending = False
        self._closed = False
        self._stop_event = threading.Event()
        self.last_report: EvictionReport | None = None

    @property
    def running(self) -> bool:
        """Whether a pass is in flight."""
        return self._task is not None and not self._task.done()

    def schedule(self) -> None:
        """Request an eviction pass."""
        if self._closed:
            return
        if self.running:
            self._pending = True
            return
        self._task = asyncio.create_task(self._run(), name="assetcache-eviction")

    async def _run(self) -> None:
        while True:
            self._pending = False
            try:
                self.last_report = await self.evictor.evict_async(self._stop_event)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = EvictionError(
                    "Background eviction failed",
                    context={"cache_dir": str(self.evictor.cache_dir), "error": str(e)},
                )
                logger.error(str(error), exc_info=True)
                return
            if not self._pending or self._closed:
                return

    async def wait_idle(self) -> None:
        """Wait until no pass is running or pending."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def aclose(self) -> None:
        """Stop accepting work and cancel the running pass."""
        self._closed = True
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
