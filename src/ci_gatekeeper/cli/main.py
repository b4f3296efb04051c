# src/ci_gatekeeper/cli/main.py
# Main CLI entrypoint for gatekeeper.
"""
Main Typer application with all sub-commands.

Usage:
    gatekeeper init                        # Write a default .gatekeeper.yaml
    gatekeeper provision                   # Ensure all artifacts are present
    gatekeeper gate list                   # List configured gates
    gatekeeper gate run --all              # Run every gate
    gatekeeper gate report                 # Show the latest report
    gatekeeper coverage check lcov.json    # Threshold-check a coverage report
    gatekeeper todo scan src               # List TODO markers
    gatekeeper services up / down          # Manage service containers
    gatekeeper cache list / prune          # Inspect the artifact cache
"""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from ci_gatekeeper import __version__
from ci_gatekeeper.cli.commands import cache, coverage, gate, init, provision, services, todo

app = typer.Typer(
    name="gatekeeper",
    help="gatekeeper - provision a CI environment and run quality gates",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

# Register sub-commands
app.add_typer(gate.app, name="gate", help="Run quality gates and show reports")
app.add_typer(services.app, name="services", help="Start and stop service containers")
app.add_typer(cache.app, name="cache", help="Inspect the artifact cache")
app.add_typer(coverage.app, name="coverage", help="Check coverage reports")
app.add_typer(todo.app, name="todo", help="Scan for TODO markers")
app.command("init")(init.init_command)
app.command("provision")(provision.provision_command)


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route library logging through rich."""
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only warnings and errors"),
) -> None:
    """gatekeeper - CI gate pipeline."""
    if version:
        console.print(f"[bold]gatekeeper[/bold] version {__version__}")
        raise typer.Exit()
    configure_logging(verbose=verbose, quiet=quiet)
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


if __name__ == "__main__":
    app()
