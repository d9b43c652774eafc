"""
Tests for the HTTP asset fetcher.
"""

from __future__ import annotations

import httpx
import pytest

from assetcache.exceptions import RetrievalError
from assetcache.retrieval.fetch import AssetFetcher


def _fetcher(handler, max_retries: int = 2) -> AssetFetcher:
    return AssetFetcher(
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
        backoff_max=0,
    )


class TestAssetFetcher:
    """Test fetching with httpx.MockTransport."""

    @pytest.mark.asyncio
    async def test_fetch_returns_payload_and_metadata(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=b"\x89PNG...", headers={"Content-Type": "image/png"}
            )

        fetcher = _fetcher(handler)
        asset = await fetcher.fetch("https://cdn.example.com/logo.png")
        await fetcher.close()

        assert asset.payload == b"\x89PNG..."
        assert asset.content_type == "image/png"
        assert asset.content_length == len(b"\x89PNG...")

    @pytest.mark.asyncio
    async def test_missing_content_type_is_empty(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, content=b"raw"))
        asset = await fetcher.fetch("https://cdn.example.com/blob")
        await fetcher.close()

        assert asset.content_type == ""
        assert asset.content_length == 3

    @pytest.mark.asyncio
    async def test_options_are_forwarded(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"ok")

        fetcher = _fetcher(handler)
        await fetcher.fetch(
            "https://cdn.example.com/a",
            {"headers": {"Authorization": "Bearer t0k"}, "params": {"w": "64"}},
        )
        await fetcher.close()

        assert seen[0].headers["Authorization"] == "Bearer t0k"
        assert seen[0].url.params["w"] == "64"
        assert seen[0].headers["User-Agent"].startswith("AssetCache/")

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404)

        fetcher = _fetcher(handler)
        with pytest.raises(RetrievalError) as exc_info:
            await fetcher.fetch("https://cdn.example.com/missing")
        await fetcher.close()

        assert len(calls) == 1
        assert exc_info.value.context["status_code"] == 404
        assert exc_info.value.context["url"] == "https://cdn.example.com/missing"

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self) -> None:
        responses = [httpx.Response(503), httpx.Response(200, content=b"finally")]

        def handler(request: httpx.Request) -> httpx.Response:
            return responses.pop(0)

        fetcher = _fetcher(handler)
        asset = await fetcher.fetch("https://cdn.example.com/flaky")
        await fetcher.close()

        assert asset.payload == b"finally"
        assert responses == []

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        fetcher = _fetcher(handler, max_retries=2)
        with pytest.raises(RetrievalError) as exc_info:
            await fetcher.fetch("https://cdn.example.com/down")
        await fetcher.close()

        assert len(calls) == 3
        assert exc_info.value.context["status_code"] == 500

    @pytest.mark.asyncio
    async def test_connection_error_becomes_retrieval_error(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = _fetcher(handler, max_retries=1)
        with pytest.raises(RetrievalError) as exc_info:
            await fetcher.fetch("https://unreachable.example.com/a")
        await fetcher.close()

        assert len(calls) == 2
        assert "connection refused" in exc_info.value.context["error"]

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200))
        await fetcher.fetch("https://cdn.example.com/a")
        await fetcher.close()
        await fetcher.close()
        assert fetcher._client is None
