# src/ci_gatekeeper/cli/commands/services.py
"""
Commands for service containers.

Usage:
    gatekeeper services up               # Start all services and wait until ready
    gatekeeper services up -s postgres   # Start one service
    gatekeeper services down             # Remove service containers
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ci_gatekeeper.cli.common import CONFIG_OPTION_HELP, load_or_exit
from ci_gatekeeper.errors import ServiceStartFailure
from ci_gatekeeper.services.manager import ServiceManager, subprocess_runner

app = typer.Typer(help="Start and stop service containers")
console = Console()


def _select(config, names: Optional[list[str]]):
    if not names:
        return config.services
    known = {s.name for s in config.services}
    unknown = [n for n in names if n not in known]
    if unknown:
        console.print(f"[red]Unknown service(s): {', '.join(unknown)}[/red]")
        raise typer.Exit(2)
    return [config.service(n) for n in names]


@app.command("up")
def services_up(
    service: Optional[list[str]] = typer.Option(
        None, "--service", "-s", help="Service name(s) (default: all)"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Readiness timeout in seconds (default: probe budget)"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """Start services and wait for their readiness probes."""
    config = load_or_exit(config_path)
    manager = ServiceManager()
    failed = False

    for spec in _select(config, service):
        try:
            handle = manager.start(spec)
        except ServiceStartFailure as e:
            console.print(f"[red]✗ {e}[/red]")
            failed = True
            continue
        with console.status(f"[bold blue]Waiting for {spec.name}...[/bold blue]"):
            result = manager.await_ready(handle, timeout)
        if result.ready:
            console.print(f"[green]✓ {spec.name}[/green] ready ({handle.container_id[:12]})")
        else:
            console.print(
                f"[red]✗ {spec.name}[/red] not ready after {result.attempts} probe(s)"
            )
            failed = True

    if failed:
        raise typer.Exit(1)


@app.command("down")
def services_down(
    service: Optional[list[str]] = typer.Option(
        None, "--service", "-s", help="Service name(s) (default: all)"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """Remove service containers started by `services up`."""
    config = load_or_exit(config_path)
    for spec in _select(config, service):
        result = subprocess_runner(["docker", "rm", "-f", spec.name], 120.0)
        if result.returncode == 0:
            console.print(f"[green]✓ Removed {spec.name}[/green]")
        else:
            console.print(f"[yellow]− {spec.name}: {result.stderr.strip()}[/yellow]")
