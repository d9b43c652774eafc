"""
Structured logging for the asset cache.

Provides:
- Context variables for request_id and cache_key (using contextvars)
- JSONFormatter for machine-readable logs to file
- RichHandler subclass for console output with the request prefix
- ContextLogger wrapper that attaches context and keyword fields to log calls
- SinkLogger adapter for caller-supplied loggers that only take a string
- setup_logging() that configures both file and console handlers
- log_context() for scoped context
- get_logger() factory
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Protocol

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

ROOT_LOGGER_NAME = "assetcache"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
_cache_key_var: ContextVar[str | None] = ContextVar("cache_key", default=None)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return _request_id_var.get()


def get_cache_key() -> str | None:
    """Get the current (display form of the) cache key from context."""
    return _cache_key_var.get()


@contextmanager
def log_context(
    request_id: str | None = None,
    cache_key: str | bytes | None = None,
) -> Generator[None, None, None]:
    """Context manager for scoped logging context.

    Args:
        request_id: Request ID to set in context.
        cache_key: Cache key being resolved; bytes keys are shown decoded.

    Yields:
        None. Context variables are set for the duration of the context.
    """
    request_token = _request_id_var.set(request_id) if request_id is not None else None
    key_token = None
    if cache_key is not None:
        if isinstance(cache_key, bytes):
            cache_key = cache_key.decode("utf-8", errors="replace")
        key_token = _cache_key_var.set(cache_key)

    try:
        yield
    finally:
        if key_token is not None:
            _cache_key_var.reset(key_token)
        if request_token is not None:
            _request_id_var.reset(request_token)


class JSONFormatter(logging.Formatter):
    """JSON formatter for machine-readable log files.

    Produces JSON Lines format with structured context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = get_request_id()
        cache_key = get_cache_key()
        if request_id:
            log_obj["request_id"] = request_id
        if cache_key:
            log_obj["cache_key"] = cache_key

        if hasattr(record, "extra"):
            log_obj["extra"] = record.extra

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextRichHandler(RichHandler):
    """Rich handler that prefixes console output with the request ID."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        """Override to add context prefix."""
        level_text = super().get_level_text(record)

        request_id = get_request_id()
        if request_id:
            short_id = request_id.split("_")[-1][-8:]
            return Text.from_markup(f"{level_text} [dim]{short_id}[/dim]")

        return level_text

    def render_message(self, record: logging.LogRecord, message: str):
        """Append structured fields to the console message."""
        fields = getattr(record, "extra", None)
        if fields:
            rendered = " ".join(f"{k}={v}" for k, v in fields.items())
            message = f"{message} [dim]{rendered}[/dim]"
        return super().render_message(record, message)


class ContextLogger:
    """Logger wrapper that automatically attaches context to log calls.

    Keyword arguments other than the standard logging ones become
    structured fields on the record.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        """Get the logger name."""
        return self._logger.name

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        """Internal logging method that adds context."""
        extra = kwargs.pop("extra", {})

        request_id = get_request_id()
        cache_key = get_cache_key()
        if request_id:
            extra["request_id"] = request_id
        if cache_key:
            extra["cache_key"] = cache_key

        for key in list(kwargs.keys()):
            if key not in ("stack_info", "stacklevel"):
                extra[key] = kwargs.pop(key)

        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"extra": extra})

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, msg, *args, exc_info=True, **kwargs)


class LogSink(Protocol):
    """Minimal logger a caller may hand to AssetCache."""

    def debug(self, msg: str) -> Any: ...

    def info(self, msg: str) -> Any: ...

    def error(self, msg: str) -> Any: ...


class SinkLogger:
    """Adapts a LogSink to the ContextLogger call signature.

    Keyword fields are folded into the message text, since a sink only
    takes a string. Warnings go to the sink's warning() if it has one,
    otherwise to error().
    """

    def __init__(self, sink: LogSink) -> None:
        self._sink = sink

    @property
    def name(self) -> str:
        """Get the sink name."""
        return getattr(self._sink, "name", type(self._sink).__name__)

    @staticmethod
    def _format(msg: str, fields: dict[str, Any]) -> str:
        if not fields:
            return msg
        rendered = " ".join(f"{k}={v}" for k, v in fields.items())
        return f"{msg} {rendered}"

    def debug(self, msg: str, **fields: Any) -> None:
        self._sink.debug(self._format(msg, fields))

    def info(self, msg: str, **fields: Any) -> None:
        self._sink.info(self._format(msg, fields))

    def warning(self, msg: str, **fields: Any) -> None:
        emit = getattr(self._sink, "warning", self._sink.error)
        emit(self._format(msg, fields))

    def error(self, msg: str, exc_info: bool = False, **fields: Any) -> None:
        self._sink.error(self._format(msg, fields))

    def exception(self, msg: str, **fields: Any) -> None:
        self._sink.error(self._format(msg, fields))


_console: Console | None = None
_setup_done: bool = False


def get_console() -> Console:
    """Get the global rich console."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Set up logging with JSON file handler and rich console handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, only console logging is enabled.
        console_output: Whether to enable console output.
    """
    global _setup_done

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    if console_output:
        rich_handler = ContextRichHandler(
            console=get_console(),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=True,
        )
        rich_handler.setLevel(getattr(logging, log_level.upper()))
        root_logger.addHandler(rich_handler)

    root_logger.propagate = False

    for noisy_logger in ["httpx", "httpcore", "asyncio"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name (usually __name__).

    Returns:
        ContextLogger wrapper around the standard logger.
    """
    if not _setup_done:
        setup_logging()

    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"

    return ContextLogger(logging.getLogger(name))
