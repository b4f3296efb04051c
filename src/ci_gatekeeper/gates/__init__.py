# src/ci_gatekeeper/gates/__init__.py
"""
Quality Gates Module.

Gate kinds:
1. Command gate - formatting, linting, unused dependencies, ...
2. Coverage gate - line coverage threshold with an exclusion list
3. TODO gate - marker scan, usually tolerated
"""

from ci_gatekeeper.gates.models import (
    Gate,
    GateContext,
    GateResult,
    GateStatus,
    GateReport,
    aggregate,
)
from ci_gatekeeper.gates.definitions import (
    CommandGate,
    CoverageGate,
    TodoGate,
    build_gate,
)
from ci_gatekeeper.gates.runner import GateRunner
from ci_gatekeeper.gates.reporter import ReportGenerator

__all__ = [
    "Gate",
    "GateContext",
    "GateResult",
    "GateStatus",
    "GateReport",
    "aggregate",
    "CommandGate",
    "CoverageGate",
    "TodoGate",
    "build_gate",
    "GateRunner",
    "ReportGenerator",
]
