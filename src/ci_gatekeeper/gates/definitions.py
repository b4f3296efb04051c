# src/ci_gatekeeper/gates/definitions.py
"""
Concrete gate definitions.

Gate kinds:
1. CommandGate - opaque command; exit status 0 passes
2. CoverageGate - threshold check over a structured coverage report
3. TodoGate - fails when TODO markers are present in the tree
"""

import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from ci_gatekeeper.errors import ReportParseFailure
from ci_gatekeeper.gates.coverage import load_report, summarize
from ci_gatekeeper.gates.models import Gate, GateContext, GateResult, GateStatus
from ci_gatekeeper.gates.todo import DEFAULT_MARKERS, scan_todos
from ci_gatekeeper.models import GateKind, GateSpec

OUTPUT_TAIL = 2000

Command = Union[list[str], str]


def _tail(text: str, limit: int = OUTPUT_TAIL) -> str:
    return text[-limit:] if len(text) > limit else text


def run_command(
    command: Command,
    context: GateContext,
    env: Optional[dict[str, str]] = None,
    cwd: Optional[Path] = None,
    timeout: float = 3600.0,
) -> tuple[int, str]:
    """
    Run a gate command against the provisioned environment.

    Returns (exit status, combined output). Launch failures map to 127 and
    timeouts to 124, so callers only ever see a status.
    """
    shell = isinstance(command, str)
    try:
        proc = subprocess.Popen(
            command,
            shell=shell,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            cwd=cwd,
            env=context.environment.as_dict(env),
        )
    except (FileNotFoundError, PermissionError) as e:
        return 127, str(e)

    context.processes.add(proc)
    try:
        output, _ = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        output, _ = proc.communicate()
        return 124, (output or "") + f"\nTimed out after {timeout}s"
    finally:
        context.processes.discard(proc)
    return proc.returncode, output or ""


@dataclass
class CommandGate(Gate):
    """Runs a black-box command; exit status 0 means pass."""
    command: Command = field(default_factory=list)

    def run(self, context: GateContext) -> GateResult:
        start = time.perf_counter()
        code, output = run_command(
            self.command, context, self.env, self.cwd, self.timeout_seconds
        )
        status = GateStatus.PASSED if code == 0 else GateStatus.FAILED
        return self.result(
            status,
            message="Command succeeded" if code == 0 else f"Command exited with status {code}",
            output=_tail(output),
            details={"exit_code": code},
            duration_ms=(time.perf_counter() - start) * 1000,
        )


@dataclass
class CoverageGate(Gate):
    """
    Threshold check: passes iff measured line coverage >= minimum.

    If a command is configured it runs first and must succeed; it is
    expected to (re)write the report.
    """
    report: Path = Path("coverage.json")
    minimum: float = 80.0
    exclude: list[str] = field(default_factory=list)
    command: Optional[Command] = None

    def evaluate(self) -> GateResult:
        """Parse the report and compare against the minimum."""
        report = self.report
        if self.cwd is not None and not report.is_absolute():
            report = self.cwd / report
        try:
            summary = summarize(load_report(report), self.exclude)
        except ReportParseFailure as e:
            return self.result(
                GateStatus.FAILED,
                threshold=self.minimum,
                message=str(e),
                error=str(e),
            )
        score = round(summary.percent, 2)
        passed = summary.meets(self.minimum)
        return self.result(
            GateStatus.PASSED if passed else GateStatus.FAILED,
            score=score,
            threshold=self.minimum,
            message=(
                f"Coverage {score:.2f}% "
                f"{'meets' if passed else 'is below'} minimum {self.minimum:.2f}%"
            ),
            details=summary.to_dict(),
        )

    def run(self, context: GateContext) -> GateResult:
        start = time.perf_counter()
        output = ""
        if self.command:
            code, output = run_command(
                self.command, context, self.env, self.cwd, self.timeout_seconds
            )
            if code != 0:
                return self.result(
                    GateStatus.FAILED,
                    threshold=self.minimum,
                    message=f"Coverage command exited with status {code}",
                    output=_tail(output),
                    details={"exit_code": code},
                    duration_ms=(time.perf_counter() - start) * 1000,
                )
        result = self.evaluate()
        result.output = _tail(output)
        result.duration_ms = (time.perf_counter() - start) * 1000
        return result


@dataclass
class TodoGate(Gate):
    """Fails when any TODO marker is found."""
    paths: list[Path] = field(default_factory=lambda: [Path(".")])
    markers: list[str] = field(default_factory=lambda: list(DEFAULT_MARKERS))
    include: list[str] = field(default_factory=list)

    def run(self, context: GateContext) -> GateResult:
        start = time.perf_counter()
        base = self.cwd or Path.cwd()
        roots = [p if p.is_absolute() else base / p for p in self.paths]
        hits = scan_todos(roots, self.markers, self.include)
        lines = [str(h) for h in hits]
        return self.result(
            GateStatus.FAILED if hits else GateStatus.PASSED,
            score=float(len(hits)),
            message=f"{len(hits)} marker(s) found" if hits else "No markers found",
            output=_tail("\n".join(lines)),
            details={"count": len(hits), "markers": self.markers},
            duration_ms=(time.perf_counter() - start) * 1000,
        )


def build_gate(spec: GateSpec) -> Gate:
    """Instantiate a gate from its configuration."""
    common: dict[str, Any] = {
        "id": spec.id,
        "name": spec.name,
        "description": spec.description,
        "policy": spec.policy,
        "artifacts": list(spec.artifacts),
        "services": list(spec.services),
        "env": dict(spec.env),
        "cwd": spec.cwd,
        "timeout_seconds": spec.timeout_seconds,
    }
    if spec.kind == GateKind.COVERAGE:
        return CoverageGate(
            **common,
            report=spec.report,
            minimum=spec.minimum,
            exclude=list(spec.exclude),
            command=spec.command,
        )
    if spec.kind == GateKind.TODO:
        return TodoGate(
            **common,
            paths=list(spec.paths),
            markers=list(spec.markers),
            include=list(spec.include),
        )
    return CommandGate(**common, command=spec.command)
