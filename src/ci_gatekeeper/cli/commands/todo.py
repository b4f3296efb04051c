# src/ci_gatekeeper/cli/commands/todo.py
"""
`gatekeeper todo scan` - list TODO markers.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ci_gatekeeper.gates.todo import DEFAULT_MARKERS, scan_todos

app = typer.Typer(help="Scan for TODO markers")
console = Console()


@app.command("scan")
def scan(
    paths: Optional[list[Path]] = typer.Argument(None, help="Files or directories"),
    marker: Optional[list[str]] = typer.Option(
        None, "--marker", "-m", help="Marker word (default: TODO, FIXME)"
    ),
    include: Optional[list[str]] = typer.Option(
        None, "--include", "-i", help="Only scan files matching these globs"
    ),
) -> None:
    """Print every marker found; exit 1 if there are any."""
    hits = scan_todos(
        list(paths or [Path(".")]),
        list(marker or DEFAULT_MARKERS),
        list(include or []),
    )
    for hit in hits:
        console.print(f"[cyan]{hit.path}[/cyan]:{hit.line}: {hit.text}", highlight=False)

    if hits:
        console.print(f"\n[yellow]{len(hits)} marker(s) found[/yellow]")
        raise typer.Exit(1)
    console.print("[green]✓ No markers found[/green]")
