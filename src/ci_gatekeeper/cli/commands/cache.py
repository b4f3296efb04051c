# src/ci_gatekeeper/cli/commands/cache.py
"""
Commands for the local artifact cache.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ci_gatekeeper.cli.common import CONFIG_OPTION_HELP, load_or_exit
from ci_gatekeeper.provision.cache import LocalCacheBackend

app = typer.Typer(help="Inspect the artifact cache")
console = Console()


def _backend(config_path: Optional[Path], directory: Optional[Path]) -> LocalCacheBackend:
    if directory is None:
        directory = load_or_exit(config_path).cache.directory
    return LocalCacheBackend(directory.expanduser())


@app.command("list")
def list_entries(
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Cache directory"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """List published cache entries."""
    backend = _backend(config_path, directory)
    entries = backend.list_entries()
    if not entries:
        console.print(f"[yellow]No cache entries in {backend.root}[/yellow]")
        return

    table = Table(title=f"Cache entries ({backend.root})")
    table.add_column("Key", style="cyan")
    table.add_column("Paths")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    for entry in entries:
        table.add_row(
            entry.key,
            ", ".join(entry.paths),
            f"{entry.size_bytes / (1024 * 1024):.1f} MiB",
            entry.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command("prune")
def prune(
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Cache directory"),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """Remove leftovers of interrupted cache writes."""
    backend = _backend(config_path, directory)
    removed = backend.prune_staging()
    console.print(f"[green]Removed {removed} incomplete entr{'y' if removed == 1 else 'ies'}[/green]")
