"""
Tests for per-key locking.
"""

from __future__ import annotations

import asyncio

from assetcache.cache.locks import KeyedLock


async def test_same_key_is_serialized() -> None:
    locks = KeyedLock()
    order: list[str] = []

    async def worker(name: str) -> None:
        async with locks.acquire("k"):
            order.append(f"{name}-start")
            await asyncio.sleep(0.01)
            order.append(f"{name}-end")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a-start", "a-end", "b-start", "b-end"]


async def test_different_keys_run_concurrently() -> None:
    locks = KeyedLock()
    inside = asyncio.Event()

    async def holder() -> None:
        async with locks.acquire("one"):
            await asyncio.wait_for(inside.wait(), timeout=1)

    async def other() -> None:
        async with locks.acquire("two"):
            inside.set()

    await asyncio.gather(holder(), other())


async def test_locks_are_dropped_when_released() -> None:
    locks = KeyedLock()

    async with locks.acquire("k"):
        assert locks.locked("k")
        assert len(locks) == 1

    assert not locks.locked("k")
    assert len(locks) == 0


async def test_lock_released_on_error() -> None:
    locks = KeyedLock()

    try:
        async with locks.acquire("k"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert len(locks) == 0
    async with locks.acquire("k"):
        assert locks.locked("k")
