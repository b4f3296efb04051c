# CLI package for gatekeeper.
"""
CLI module providing the `gatekeeper` command-line interface.

Commands:
- gatekeeper init: Write a default pipeline config
- gatekeeper provision: Ensure artifacts through the cache
- gatekeeper gate list/run/report: Run quality gates
- gatekeeper coverage check: Threshold-check a coverage report
- gatekeeper todo scan: List TODO markers
- gatekeeper services up/down: Manage service containers
- gatekeeper cache list/prune: Inspect the artifact cache
"""

from ci_gatekeeper.cli.main import app

__all__ = ["app"]
