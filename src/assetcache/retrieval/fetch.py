"""
HTTP fetcher for cache misses.

Fetches a URL with httpx, retrying transient failures with tenacity, and
returns the raw payload with its content type and byte length.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from assetcache.exceptions import RetrievalError
from assetcache.logging import get_logger
from assetcache.types import FetchedAsset

logger = get_logger(__name__)

USER_AGENT = "AssetCache/0.3 (+https://github.com/asset-cache)"

REQUEST_TIMEOUT = 30.0


class Fetcher(Protocol):
    """Anything that can retrieve an asset for a cache miss."""

    async def fetch(self, url: str, options: dict[str, Any] | None = None) -> FetchedAsset:
        ...


def _is_transient(exc: BaseException) -> bool:
    """Timeouts, connection errors and 5xx responses are worth retrying."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


class AssetFetcher:
    """Fetches binary assets over HTTP.

    Features:
    - Lazily created AsyncClient shared across fetches
    - Exponential backoff on timeouts, transport errors and 5xx responses
    - Per-request options forwarded verbatim to httpx
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = 2,
        user_agent: str = USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_max: float = 10.0,
    ) -> None:
        """Initialize the fetcher.

        Args:
            timeout: Request timeout in seconds.
            max_retries: Number of retry attempts after the first failure.
            user_agent: User-Agent header value.
            transport: Optional httpx transport (tests use httpx.MockTransport).
            backoff_max: Upper bound on the wait between attempts, in seconds.
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent
        self.backoff_max = backoff_max
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get(self, url: str, options: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        response = await client.get(url, **options)
        response.raise_for_status()
        return response

    async def fetch(self, url: str, options: dict[str, Any] | None = None) -> FetchedAsset:
        """Fetch a URL.

        Args:
            url: URL to fetch.
            options: Keyword arguments passed through to httpx (headers,
                params, cookies, ...).

        Returns:
            FetchedAsset with the raw payload.

        Raises:
            RetrievalError: If the asset could not be fetched.
        """
        options = dict(options or {})

        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=0.5, min=0, max=self.backoff_max),
            before_sleep=lambda state: logger.warning(
                "Fetch attempt failed, retrying",
                url=url,
                attempt=state.attempt_number,
                error=str(state.outcome.exception()) if state.outcome else None,
            ),
            reraise=True,
        )

        try:
            response = await retrying(self._get, url, options)
        except httpx.HTTPStatusError as e:
            logger.error("Fetch failed", url=url, status_code=e.response.status_code)
            raise RetrievalError(
                f"Failed to fetch {url}",
                context={"url": url, "status_code": e.response.status_code},
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Fetch failed", url=url, error=str(e))
            raise RetrievalError(
                f"Failed to fetch {url}",
                context={"url": url, "error": str(e)},
            ) from e

        payload = response.content
        content_type = response.headers.get("content-type", "")

        logger.debug(
            "Fetched asset",
            url=url,
            content_type=content_type,
            size=len(payload),
        )

        return FetchedAsset(
            content_type=content_type,
            content_length=len(payload),
            payload=payload,
        )
