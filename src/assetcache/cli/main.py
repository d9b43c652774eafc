"""
CLI for the asset cache.

Commands:
    assetcache fetch URL - Resolve a URL through the cache
    assetcache stats - Show cache size and entry count
    assetcache evict - Run one eviction pass
    assetcache config - Show current configuration
    assetcache version - Print version
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from assetcache import __version__
from assetcache.cache.evictor import Evictor
from assetcache.config import Settings, clear_settings_cache, get_settings
from assetcache.exceptions import AssetCacheError, ConfigurationError
from assetcache.logging import setup_logging
from assetcache.middleware import AssetCache

app = typer.Typer(
    name="assetcache",
    help="Asset Cache - disk-backed LRU cache for fetched binary assets",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def _load_settings(cache_dir: Path | None = None) -> Settings:
    """Load settings, applying a CLI cache directory override."""
    try:
        clear_settings_cache()
        settings = get_settings()
    except ValidationError as e:
        error = ConfigurationError(
            "Configuration is invalid",
            context={"errors": [err["msg"] for err in e.errors()]},
        )
        error_console.print(f"[red]Error:[/red] {error}")
        raise typer.Exit(1)

    if cache_dir is not None:
        settings = settings.model_copy(update={"CACHE_DIR": cache_dir})

    setup_logging(settings.LOG_LEVEL, log_file=settings.LOG_FILE)
    return settings


def _format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KiB", "MiB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


CacheDirOption = Annotated[
    Optional[Path],
    typer.Option("--cache-dir", "-d", help="Cache directory (overrides CACHE_DIR)"),
]


@app.command()
def fetch(
    url: Annotated[str, typer.Argument(help="URL of the asset")],
    key: Annotated[
        Optional[str],
        typer.Option("--key", "-k", help="Cache key (defaults to the URL)"),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the payload to this file"),
    ] = None,
    cache_dir: CacheDirOption = None,
) -> None:
    """Resolve a URL through the cache, fetching it on a miss."""
    settings = _load_settings(cache_dir)

    async def _run():
        async with AssetCache(settings) as cache:
            asset = await cache.resolve(url, cache_key=key)
            # Let the eviction pass triggered by a miss finish before exit.
            await cache.scheduler.wait_idle()
            return asset

    try:
        asset = asyncio.run(_run())
    except AssetCacheError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    status = "[green]hit[/green]" if asset.hit else "[yellow]miss[/yellow]"
    console.print(
        Panel(
            f"[bold]Cache:[/bold] {status}\n"
            f"[bold]Content-Type:[/bold] {asset.content_type or '[dim]unknown[/dim]'}\n"
            f"[bold]Length:[/bold] {asset.content_length} bytes\n"
            f"[bold]Elapsed:[/bold] {asset.elapsed_ms:.1f} ms",
            title=f"[bold cyan]{url}[/bold cyan]",
            border_style="cyan",
        )
    )

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(asset.buffer)
        console.print(f"[dim]Payload written to:[/dim] {output}")


@app.command()
def stats(cache_dir: CacheDirOption = None) -> None:
    """Show entry count and disk usage."""
    settings = _load_settings(cache_dir)
    snapshot = AssetCache(settings).stats()

    table = Table(title="Cache", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Directory", str(snapshot.cache_dir))
    table.add_row("Entries", str(snapshot.entries))
    table.add_row("Size", _format_bytes(snapshot.total_bytes))
    table.add_row("Budget", _format_bytes(snapshot.max_size_bytes))
    table.add_row("Utilization", f"{snapshot.utilization:.1%}")

    console.print(table)


@app.command()
def evict(
    max_size: Annotated[
        Optional[int],
        typer.Option("--max-size", "-m", help="Size budget in bytes (overrides MAX_SIZE_BYTES)"),
    ] = None,
    cache_dir: CacheDirOption = None,
) -> None:
    """Evict least recently used assets until the cache fits its budget."""
    settings = _load_settings(cache_dir)
    budget = max_size if max_size is not None else settings.MAX_SIZE_BYTES
    try:
        evictor = Evictor(settings.CACHE_DIR, budget)
    except ConfigurationError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    report = evictor.evict()

    console.print(
        f"Evicted [bold]{report.count}[/bold] files, "
        f"freed {_format_bytes(report.freed_bytes)}, "
        f"cache now {_format_bytes(report.final_size)}"
    )
    if report.halted:
        error_console.print(f"[red]Eviction halted:[/red] {report.halted}")
        raise typer.Exit(1)


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _load_settings()

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for name, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(name, display_value)

    console.print(table)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"asset-cache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
