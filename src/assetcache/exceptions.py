"""
Custom exception hierarchy for the asset cache.

All exceptions inherit from AssetCacheError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class AssetCacheError(Exception):
    """Base exception for all asset cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(AssetCacheError):
    """Raised when configuration is invalid or missing."""

    pass


class RetrievalError(AssetCacheError):
    """Raised when the fetcher cannot obtain an asset.

    Context should include:
        - url: The URL that was being fetched
        - status_code: HTTP status code if applicable
        - error: Underlying error text
    """

    pass


class FilesystemError(AssetCacheError):
    """Raised when a directory or file operation on the cache fails.

    Context should include:
        - path: The path being operated on
        - error: Underlying OS error text
    """

    pass


class StoreWriteError(FilesystemError):
    """Raised when writing an asset fails.

    The partially written file has already been removed when this is raised.
    """

    pass


class CorruptEntryError(AssetCacheError):
    """Raised when a leaf directory is empty or its file name is undecodable.

    Callers treat this like a miss: discard the entry and refetch.
    """

    pass


class EvictionError(AssetCacheError):
    """Raised inside a background eviction pass.

    Never propagated to a request; the scheduler logs it and halts the pass.
    """

    pass
