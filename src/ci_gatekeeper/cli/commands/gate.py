# src/ci_gatekeeper/cli/commands/gate.py
"""
Commands for running quality gates.

Usage:
    gatekeeper gate list                    # List configured gates
    gatekeeper gate run --all               # Run all gates
    gatekeeper gate run --gate fmt          # Run specific gate
    gatekeeper gate report                  # Show latest report
"""

import json as json_lib
import logging
import signal
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ci_gatekeeper.cli.common import CONFIG_OPTION_HELP, load_or_exit, status_icon, status_style
from ci_gatekeeper.core.config import load_config
from ci_gatekeeper.errors import ConfigError
from ci_gatekeeper.gates.models import GateStatus
from ci_gatekeeper.gates.reporter import ReportGenerator
from ci_gatekeeper.models import GatePolicy
from ci_gatekeeper.pipeline import Pipeline

app = typer.Typer(help="Run quality gates and show reports")
console = Console()
logger = logging.getLogger(__name__)


@contextmanager
def _abort_on_signal(pipeline: Pipeline) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a pipeline abort for the duration of a run."""
    def handler(signum, frame):
        console.print(f"[red]Received signal {signum}, aborting run[/red]")
        pipeline.abort()

    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


@app.command("list")
def list_gates(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """List all configured gates."""
    config = load_or_exit(config_path)

    table = Table(title="Configured Gates")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Kind")
    table.add_column("Policy", justify="center")
    table.add_column("Artifacts / Services")

    for gate in config.gates:
        table.add_row(
            gate.id,
            gate.name,
            gate.kind.value,
            gate.policy.value,
            ", ".join(gate.artifacts + gate.services) or "−",
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(config.gates)} gates[/dim]")


@app.command("run")
def run_gates(
    all_gates: bool = typer.Option(
        False, "--all", "-a", help="Run all gates"
    ),
    gate: Optional[list[str]] = typer.Option(
        None, "--gate", "-g", help="Specific gate ID(s) to run"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output directory for reports"
    ),
    json_only: bool = typer.Option(
        False, "--json", help="Output JSON only, no console"
    ),
    fail_fast: bool = typer.Option(
        False, "--fail-fast", help="Abort the run on the first fatal failure"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Maximum gates running at once"
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Ignore the artifact cache for this run"
    ),
) -> None:
    """
    Run gates and generate reports.

    Exit status is 0 iff every fatal gate passed.

    Examples:
        gatekeeper gate run --all                   # Run all gates
        gatekeeper gate run --gate fmt --gate clippy
        gatekeeper gate run --all --fail-fast
    """
    if not all_gates and not gate:
        console.print("[red]Error: Specify --all or --gate <id>[/red]")
        raise typer.Exit(1)

    config = load_or_exit(config_path)
    updates = {}
    if workers:
        updates["max_workers"] = workers
    if no_cache:
        updates["cache"] = config.cache.model_copy(update={"enabled": False})
    if updates:
        config = config.model_copy(update=updates)

    gate_ids = None if all_gates else list(gate)
    known = {g.id for g in config.gates}
    unknown = [g for g in gate_ids or [] if g not in known]
    if unknown:
        console.print(f"[red]Unknown gate(s): {', '.join(unknown)}[/red]")
        raise typer.Exit(2)

    pipeline = Pipeline(config)

    if not json_only:
        console.print(Panel(
            f"[bold]Running Quality Gates[/bold]\n"
            f"Gates: {'all' if all_gates else ', '.join(gate_ids or [])}\n"
            f"Cache: {'enabled' if config.cache.enabled else 'disabled'}",
            title="Gate Runner",
        ))
        console.print()

    status = console.status("[bold blue]Running gates...[/bold blue]") if not json_only else nullcontext()
    with _abort_on_signal(pipeline), status:
        report = pipeline.run(gate_ids=gate_ids, fail_fast=fail_fast)

    reporter = ReportGenerator(output_dir=output_dir or config.reports_dir)
    json_path, md_path = reporter.save_all(report)

    if json_only:
        console.print(json_lib.dumps(report.to_dict(), indent=2))
        raise typer.Exit(report.exit_code)

    for result in report.gates:
        style = status_style(result.status, result.policy)
        icon = status_icon(result.status)
        label = " [dim](tolerated)[/dim]" if result.policy == GatePolicy.TOLERATED else ""

        tree = Tree(f"[{style}]{icon} {result.gate_name}[/{style}] ({result.gate_id}){label}")
        tree.add(f"{result.message[:100]}")
        if result.score is not None and result.threshold is not None:
            tree.add(f"score {result.score:.2f} / minimum {result.threshold:.2f}")
        if not result.passed and result.output:
            tree.add(f"[dim]{result.output[-300:]}[/dim]")

        console.print(tree)
        console.print()

    overall_style = status_style(report.overall_status)
    overall_icon = status_icon(report.overall_status)

    console.print(Panel(
        f"[{overall_style} bold]{overall_icon} {report.overall_status.value.upper()}[/{overall_style} bold]\n\n"
        f"Gates: {report.passed_gates} passed, {report.failed_gates} failed "
        f"({report.tolerated_failures} tolerated)\n"
        f"Duration: {report.total_duration_ms:.0f}ms\n\n"
        f"Reports saved:\n"
        f"  JSON: {json_path}\n"
        f"  Markdown: {md_path}",
        title="Gate Results",
    ))

    if report.overall_status != GateStatus.PASSED:
        raise typer.Exit(1)


@app.command("report")
def show_report(
    output_dir: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Reports directory"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output as JSON"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help=CONFIG_OPTION_HELP
    ),
) -> None:
    """Show the latest gate report (from the config's reports_dir by default)."""
    if output_dir is None:
        if config_path is not None:
            output_dir = load_or_exit(config_path).reports_dir
        else:
            try:
                output_dir = load_config().reports_dir
            except ConfigError:
                logger.debug("No pipeline config; using the default reports directory")
    reporter = ReportGenerator(output_dir=output_dir)
    data = reporter.load_latest()

    if data is None:
        console.print("[yellow]No reports found. Run 'gatekeeper gate run --all' first.[/yellow]")
        raise typer.Exit(1)

    if json_output:
        console.print(json_lib.dumps(data, indent=2))
        return

    status = data.get("overall_status", "unknown")
    summary = data.get("summary", {})
    style = {"passed": "green", "failed": "red"}.get(status, "white")

    console.print(Panel(
        f"[{style} bold]{status.upper()}[/{style} bold]\n\n"
        f"Timestamp: {data.get('timestamp', 'unknown')}\n"
        f"Gates: {summary.get('passed', 0)} passed, {summary.get('failed', 0)} failed "
        f"({summary.get('tolerated_failures', 0)} tolerated)\n"
        f"Duration: {summary.get('total_duration_ms', 0):.0f}ms",
        title="Latest Gate Report",
    ))

    for result in data.get("gates", []):
        gate_status = result.get("status", "unknown")
        tolerated = result.get("policy") == GatePolicy.TOLERATED.value
        gate_style = "green" if gate_status == "passed" else "yellow" if tolerated else "red"
        console.print(f"[{gate_style}]● {result.get('gate_name')}[/{gate_style}]: "
                      f"{gate_status} - {result.get('message', '')}")
