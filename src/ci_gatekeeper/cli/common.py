# src/ci_gatekeeper/cli/common.py
"""Helpers shared by CLI commands."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ci_gatekeeper.core.config import PipelineConfig, load_config
from ci_gatekeeper.errors import ConfigError
from ci_gatekeeper.gates.models import GateStatus
from ci_gatekeeper.models import GatePolicy

console = Console()

CONFIG_OPTION_HELP = "Pipeline config file (default: .gatekeeper.yaml)"


def load_or_exit(path: Optional[Path]) -> PipelineConfig:
    """Load the config or exit with status 2."""
    try:
        return load_config(path)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(2)


def status_style(status: GateStatus, policy: GatePolicy = GatePolicy.FATAL) -> str:
    """Get rich style for status."""
    if status != GateStatus.PASSED and policy == GatePolicy.TOLERATED:
        return "yellow"
    return {
        GateStatus.PASSED: "green",
        GateStatus.FAILED: "red",
        GateStatus.ERROR: "red bold",
    }.get(status, "white")


def status_icon(status: GateStatus) -> str:
    """Get icon for status."""
    return {
        GateStatus.PASSED: "✓",
        GateStatus.FAILED: "✗",
        GateStatus.ERROR: "⚠",
    }.get(status, "?")
