"""CLI sub-commands."""

from ci_gatekeeper.cli.commands import cache, coverage, gate, init, provision, services, todo

__all__ = ["cache", "coverage", "gate", "init", "provision", "services", "todo"]
