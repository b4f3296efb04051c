# src/ci_gatekeeper/cli/commands/provision.py
"""
`gatekeeper provision` - ensure artifacts through the cache.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ci_gatekeeper.cli.common import CONFIG_OPTION_HELP, load_or_exit
from ci_gatekeeper.errors import ProvisionFailure
from ci_gatekeeper.pipeline import Pipeline

console = Console()


def provision_command(
    artifact: Optional[list[str]] = typer.Option(
        None, "--artifact", "-a", help="Artifact name(s) to ensure (default: all)"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """Download, unpack and cache artifacts, skipping cache hits."""
    config = load_or_exit(config_path)
    names = list(artifact) if artifact else None
    if names:
        known = {a.name for a in config.artifacts}
        unknown = [n for n in names if n not in known]
        if unknown:
            console.print(f"[red]Unknown artifact(s): {', '.join(unknown)}[/red]")
            raise typer.Exit(2)

    pipeline = Pipeline(config)
    try:
        paths = pipeline.provision(names)
    except ProvisionFailure as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)
    finally:
        pipeline.close()

    table = Table(title="Provisioned Artifacts")
    table.add_column("Artifact", style="cyan")
    table.add_column("Cache Key")
    table.add_column("Path", style="green")
    for name, path in paths.items():
        table.add_row(name, config.artifact(name).cache_key, str(path))
    console.print(table)

    stats = pipeline.provisioner.stats
    console.print(f"\n[dim]{stats.hits} cache hit(s), {stats.misses} miss(es)[/dim]")
