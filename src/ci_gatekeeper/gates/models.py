# src/ci_gatekeeper/gates/models.py
"""
Data models for quality gates.
"""

import subprocess
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ci_gatekeeper.core.environment import Environment
from ci_gatekeeper.models import GatePolicy


class GateStatus(str, Enum):
    """Status of a gate."""
    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"  # could not run: provisioning, service or abort


class ProcessRegistry:
    """In-flight gate processes, so an abort can terminate them."""

    def __init__(self) -> None:
        self._procs: set[subprocess.Popen] = set()
        self._lock = threading.Lock()

    def add(self, proc: subprocess.Popen) -> None:
        with self._lock:
            self._procs.add(proc)

    def discard(self, proc: subprocess.Popen) -> None:
        with self._lock:
            self._procs.discard(proc)

    def __len__(self) -> int:
        with self._lock:
            return len(self._procs)

    def terminate_all(self) -> int:
        with self._lock:
            procs = list(self._procs)
        for proc in procs:
            if proc.poll() is None:
                proc.terminate()
        return len(procs)


@dataclass
class GateContext:
    """What a gate needs from the run it belongs to."""
    environment: Environment
    abort_event: threading.Event = field(default_factory=threading.Event)
    processes: ProcessRegistry = field(default_factory=ProcessRegistry)

    @property
    def aborted(self) -> bool:
        return self.abort_event.is_set()


@dataclass
class GateResult:
    """Result of running a gate."""
    gate_id: str
    gate_name: str
    status: GateStatus
    policy: GatePolicy = GatePolicy.FATAL
    executed: bool = True
    score: Optional[float] = None
    threshold: Optional[float] = None
    message: str = ""
    output: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == GateStatus.PASSED

    @property
    def blocking(self) -> bool:
        """True if this result makes the overall result fail."""
        return self.policy == GatePolicy.FATAL and not self.passed

    def to_dict(self) -> dict[str, Any]:
        return {
            "gate_id": self.gate_id,
            "gate_name": self.gate_name,
            "status": self.status.value,
            "policy": self.policy.value,
            "executed": self.executed,
            "score": self.score,
            "threshold": self.threshold,
            "message": self.message,
            "output": self.output,
            "details": self.details,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


@dataclass
class GateReport:
    """Complete report from running a set of gates."""
    timestamp: datetime
    overall_status: GateStatus
    gates: list[GateResult] = field(default_factory=list)
    total_duration_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.overall_status == GateStatus.PASSED

    @property
    def exit_code(self) -> int:
        return 0 if self.passed else 1

    @property
    def passed_gates(self) -> int:
        return sum(1 for g in self.gates if g.passed)

    @property
    def failed_gates(self) -> int:
        return sum(1 for g in self.gates if not g.passed)

    @property
    def tolerated_failures(self) -> int:
        return sum(
            1 for g in self.gates if not g.passed and g.policy == GatePolicy.TOLERATED
        )

    def get(self, gate_id: str) -> Optional[GateResult]:
        for result in self.gates:
            if result.gate_id == gate_id:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "overall_status": self.overall_status.value,
            "summary": {
                "total_gates": len(self.gates),
                "passed": self.passed_gates,
                "failed": self.failed_gates,
                "tolerated_failures": self.tolerated_failures,
                "total_duration_ms": self.total_duration_ms,
            },
            "gates": [g.to_dict() for g in self.gates],
            "metadata": self.metadata,
        }


def aggregate(results: list[GateResult]) -> GateStatus:
    """Overall status: failed iff any fatal gate did not pass."""
    if any(r.blocking for r in results):
        return GateStatus.FAILED
    return GateStatus.PASSED


@dataclass
class Gate:
    """Base gate definition."""
    id: str
    name: str
    description: str = ""
    policy: GatePolicy = GatePolicy.FATAL
    artifacts: list[str] = field(default_factory=list)
    services: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    cwd: Optional[Path] = None
    timeout_seconds: float = 3600.0

    def run(self, context: GateContext) -> GateResult:
        """Execute the gate. Override in subclasses."""
        raise NotImplementedError("Subclasses must implement run()")

    def result(self, status: GateStatus, **kwargs: Any) -> GateResult:
        return GateResult(
            gate_id=self.id,
            gate_name=self.name,
            status=status,
            policy=self.policy,
            **kwargs,
        )
