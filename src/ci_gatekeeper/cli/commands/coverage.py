# src/ci_gatekeeper/cli/commands/coverage.py
"""
`gatekeeper coverage check` - threshold-check a JSON coverage report.

Usage:
    gatekeeper coverage check lcov.json --minimum 80 \\
        --exclude core/src/rpc/clementine.rs
"""

import json as json_lib
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ci_gatekeeper.errors import ReportParseFailure
from ci_gatekeeper.gates.coverage import load_report, summarize

app = typer.Typer(help="Check coverage reports")
console = Console()


@app.command("check")
def check(
    report: Path = typer.Argument(..., help="JSON coverage report"),
    minimum: float = typer.Option(80.0, "--minimum", "-m", min=0, max=100,
                                  help="Minimum line coverage percent"),
    exclude: Optional[list[str]] = typer.Option(
        None, "--exclude", "-e", help="File, glob or re:<regex> to leave out"
    ),
    show_files: bool = typer.Option(False, "--files", help="Show per-file coverage"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Fail (exit 1) when line coverage is below the minimum."""
    try:
        summary = summarize(load_report(report), list(exclude or []))
    except ReportParseFailure as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    passed = summary.meets(minimum)

    if json_output:
        console.print(json_lib.dumps(
            {**summary.to_dict(), "minimum": minimum, "passed": passed}, indent=2
        ))
        raise typer.Exit(0 if passed else 1)

    if show_files:
        table = Table(title="Line coverage")
        table.add_column("File", style="cyan")
        table.add_column("Covered", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("%", justify="right")
        for entry in sorted(summary.files, key=lambda e: e.percent):
            table.add_row(entry.file, str(entry.covered), str(entry.total), f"{entry.percent:.1f}")
        console.print(table)

    if summary.excluded:
        console.print(f"[dim]Excluded: {', '.join(summary.excluded)}[/dim]")

    style = "green" if passed else "red"
    console.print(
        f"[{style}]{'✓' if passed else '✗'} Coverage {summary.percent:.2f}% "
        f"({summary.covered}/{summary.total} lines), minimum {minimum:.2f}%[/{style}]"
    )
    if not passed:
        raise typer.Exit(1)
