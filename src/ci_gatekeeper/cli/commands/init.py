# src/ci_gatekeeper/cli/commands/init.py
# Implementation of `gatekeeper init` command.
"""
Creates a local pipeline configuration file (.gatekeeper.yaml).

The default config provisions Bitcoin Core, the BitVM cache blobs and the
RISC Zero toolchain, starts Postgres for the coverage run, and defines the
fmt / clippy / udeps / coverage / todo gates.
"""

from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.table import Table

from ci_gatekeeper.core.config import CONFIG_FILENAME, parse_config
from ci_gatekeeper.core.defaults import default_config

console = Console()


def init_command(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
    path: Path = typer.Option(
        Path(CONFIG_FILENAME), "--path", "-p", help="Config file path"
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Write the config with caching disabled"
    ),
) -> None:
    """Write a default gate pipeline configuration."""

    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}[/yellow]")
        console.print("Use --force to overwrite")
        raise typer.Exit(1)

    data = default_config()
    if no_cache:
        data["cache"]["enabled"] = False

    # Validate before writing so a broken default never reaches disk
    config = parse_config(data)

    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]✓ Created config at {path}[/green]\n")

    table = Table(title="Gates")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Policy")
    table.add_column("Needs")
    for gate in config.gates:
        table.add_row(
            gate.id,
            gate.policy.value,
            ", ".join(gate.artifacts + gate.services) or "−",
        )
    console.print(table)

    console.print("\n[bold]Next steps:[/bold]")
    console.print("  1. Run [cyan]gatekeeper provision[/cyan] to warm the artifact cache")
    console.print("  2. Run [cyan]gatekeeper gate run --all[/cyan] to run every gate")
