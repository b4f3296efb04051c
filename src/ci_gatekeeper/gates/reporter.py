# src/ci_gatekeeper/gates/reporter.py
"""
Report generators for gate results.

Produces:
- JSON reports under .gatekeeper/reports/<timestamp>.json (+ latest.json)
- A Markdown summary at .gatekeeper/reports/latest.md, also appended to
  $GITHUB_STEP_SUMMARY when that variable is set
"""

import json
import os
from pathlib import Path
from typing import Optional

from ci_gatekeeper.gates.models import GateReport, GateStatus
from ci_gatekeeper.models import GatePolicy


class ReportGenerator:
    """Generates JSON and Markdown reports from gate results."""

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = output_dir or Path(".gatekeeper/reports")

    def ensure_output_dir(self) -> None:
        """Create output directory if it doesn't exist."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def save_json(self, report: GateReport) -> Path:
        """
        Save report as JSON.

        Returns path to the saved file.
        """
        self.ensure_output_dir()

        ts = report.timestamp.strftime("%Y%m%d_%H%M%S")
        filepath = self.output_dir / f"{ts}.json"

        with open(filepath, "w") as f:
            json.dump(report.to_dict(), f, indent=2)

        latest = self.output_dir / "latest.json"
        with open(latest, "w") as f:
            json.dump(report.to_dict(), f, indent=2)

        return filepath

    def _status_icon(self, status: GateStatus, policy: GatePolicy) -> str:
        if status == GateStatus.PASSED:
            return "✅"
        if policy == GatePolicy.TOLERATED:
            return "⚠️"
        return "❌"

    def render_markdown(self, report: GateReport) -> str:
        """Render a Markdown summary table."""
        lines = [
            f"## Gate report: {report.overall_status.value.upper()}",
            "",
            f"{report.passed_gates} passed, {report.failed_gates} failed "
            f"({report.tolerated_failures} tolerated) in {report.total_duration_ms / 1000:.1f}s",
            "",
            "| | Gate | Policy | Status | Score | Message |",
            "|---|---|---|---|---|---|",
        ]
        for gate in report.gates:
            score = ""
            if gate.score is not None and gate.threshold is not None:
                score = f"{gate.score:.2f} / {gate.threshold:.2f}"
            message = gate.message.replace("|", "\\|").replace("\n", " ")[:120]
            lines.append(
                f"| {self._status_icon(gate.status, gate.policy)} | {gate.gate_name} "
                f"| {gate.policy.value} | {gate.status.value} | {score} | {message} |"
            )
        return "\n".join(lines) + "\n"

    def save_markdown(self, report: GateReport) -> Path:
        """
        Save the Markdown summary.

        Returns path to the saved file.
        """
        self.ensure_output_dir()
        markdown = self.render_markdown(report)
        filepath = self.output_dir / "latest.md"
        filepath.write_text(markdown)

        step_summary = os.environ.get("GITHUB_STEP_SUMMARY")
        if step_summary:
            with open(step_summary, "a") as f:
                f.write(markdown)

        return filepath

    def save_all(self, report: GateReport) -> tuple[Path, Path]:
        """
        Save both JSON and Markdown reports.

        Returns tuple of (json_path, markdown_path).
        """
        json_path = self.save_json(report)
        md_path = self.save_markdown(report)
        return json_path, md_path

    def load_latest(self) -> Optional[dict]:
        """Load latest.json, or None if no run has been recorded."""
        latest = self.output_dir / "latest.json"
        if not latest.exists():
            return None
        with open(latest) as f:
            return json.load(f)
