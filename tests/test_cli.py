# tests/test_cli.py
"""
Tests for the gatekeeper command line.
"""

import json
import sys

import pytest
import yaml
from typer.testing import CliRunner

from ci_gatekeeper import __version__
from ci_gatekeeper.cli.main import app
from ci_gatekeeper.core.config import load_config
from ci_gatekeeper.provision.cache import STAGING_PREFIX, LocalCacheBackend

runner = CliRunner()


@pytest.fixture
def pipeline_file(tmp_path):
    """Write a config whose gates are plain interpreter invocations."""
    def _write(gates):
        data = {
            "cache": {"enabled": True, "directory": str(tmp_path / "cache")},
            "reports_dir": str(tmp_path / "reports"),
            "gates": gates,
        }
        path = tmp_path / "pipeline.yaml"
        path.write_text(yaml.safe_dump(data))
        return path
    return _write


def _gate(gate_id, code, **extra):
    command = [sys.executable, "-c", f"import sys; sys.exit({code})"]
    return {"id": gate_id, "command": command, **extra}


class TestMain:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "gate" in result.output


class TestInit:
    def test_writes_loadable_config(self, tmp_path):
        path = tmp_path / ".gatekeeper.yaml"
        result = runner.invoke(app, ["init", "--path", str(path)])
        assert result.exit_code == 0
        assert path.exists()
        config = load_config(path)
        assert [g.id for g in config.gates] == ["fmt", "clippy", "udeps", "coverage", "todo"]

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / ".gatekeeper.yaml"
        path.write_text("version: '1.0'\n")
        result = runner.invoke(app, ["init", "--path", str(path)])
        assert result.exit_code == 1
        assert path.read_text() == "version: '1.0'\n"

    def test_force_and_no_cache(self, tmp_path):
        path = tmp_path / ".gatekeeper.yaml"
        path.write_text("version: '1.0'\n")
        result = runner.invoke(app, ["init", "--path", str(path), "--force", "--no-cache"])
        assert result.exit_code == 0
        assert yaml.safe_load(path.read_text())["cache"]["enabled"] is False


class TestCoverageCheck:
    def test_passes_with_exclusion(self, coverage_report):
        result = runner.invoke(app, [
            "coverage", "check", str(coverage_report),
            "--minimum", "80", "--exclude", "core/src/rpc/clementine.rs",
        ])
        assert result.exit_code == 0
        assert "82.00%" in result.output

    def test_fails_without_exclusion(self, coverage_report):
        result = runner.invoke(app, ["coverage", "check", str(coverage_report), "-m", "80"])
        assert result.exit_code == 1
        assert "16.40%" in result.output

    def test_parse_failure(self, tmp_path):
        report = tmp_path / "bad.json"
        report.write_text("[]")
        result = runner.invoke(app, ["coverage", "check", str(report)])
        assert result.exit_code == 1

    def test_json_output(self, coverage_report):
        result = runner.invoke(app, [
            "coverage", "check", str(coverage_report), "--json",
            "--exclude", "re:clementine",
        ])
        assert result.exit_code == 0
        assert '"passed": true' in result.output


class TestTodoScan:
    def test_markers_found(self, tmp_path):
        (tmp_path / "lib.rs").write_text("// TODO: later\n")
        result = runner.invoke(app, ["todo", "scan", str(tmp_path)])
        assert result.exit_code == 1
        assert "1 marker(s) found" in result.output

    def test_clean(self, tmp_path):
        (tmp_path / "lib.rs").write_text("fn main() {}\n")
        result = runner.invoke(app, ["todo", "scan", str(tmp_path), "--include", "*.rs"])
        assert result.exit_code == 0


class TestGateCommands:
    def test_list(self, pipeline_file):
        path = pipeline_file([_gate("fmt", 0), _gate("clippy", 0)])
        result = runner.invoke(app, ["gate", "list", "--config", str(path)])
        assert result.exit_code == 0
        assert "fmt" in result.output
        assert "clippy" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["gate", "list", "--config", str(tmp_path / "none.yaml")])
        assert result.exit_code == 2

    def test_run_requires_selection(self, pipeline_file):
        path = pipeline_file([_gate("fmt", 0)])
        result = runner.invoke(app, ["gate", "run", "--config", str(path)])
        assert result.exit_code == 1

    def test_run_unknown_gate(self, pipeline_file):
        path = pipeline_file([_gate("fmt", 0)])
        result = runner.invoke(app, ["gate", "run", "--gate", "nope", "--config", str(path)])
        assert result.exit_code == 2

    def test_run_all_passing_with_tolerated_failure(self, pipeline_file, tmp_path):
        path = pipeline_file([_gate("fmt", 0), _gate("todo", 1, policy="tolerated")])
        result = runner.invoke(app, ["gate", "run", "--all", "--config", str(path)])
        assert result.exit_code == 0, result.output

        latest = json.loads((tmp_path / "reports" / "latest.json").read_text())
        assert latest["overall_status"] == "passed"
        assert latest["summary"]["tolerated_failures"] == 1
        assert (tmp_path / "reports" / "latest.md").exists()

    def test_run_fatal_failure(self, pipeline_file):
        path = pipeline_file([_gate("fmt", 0), _gate("clippy", 101)])
        result = runner.invoke(app, ["gate", "run", "--all", "--config", str(path)])
        assert result.exit_code == 1

    def test_run_single_gate_json(self, pipeline_file):
        path = pipeline_file([_gate("fmt", 0), _gate("clippy", 101)])
        result = runner.invoke(app, [
            "gate", "run", "--gate", "fmt", "--json", "--config", str(path),
        ])
        assert result.exit_code == 0
        assert '"overall_status": "passed"' in result.output

    def test_step_summary(self, pipeline_file, tmp_path, monkeypatch):
        summary = tmp_path / "step_summary.md"
        monkeypatch.setenv("GITHUB_STEP_SUMMARY", str(summary))
        path = pipeline_file([_gate("fmt", 0)])
        runner.invoke(app, ["gate", "run", "--all", "--config", str(path)])
        assert "| fmt |" in summary.read_text()

    def test_report(self, pipeline_file, tmp_path):
        path = pipeline_file([_gate("fmt", 0)])
        runner.invoke(app, ["gate", "run", "--all", "--config", str(path)])
        result = runner.invoke(app, ["gate", "report", "--output", str(tmp_path / "reports")])
        assert result.exit_code == 0
        assert "PASSED" in result.output

    def test_report_uses_configured_reports_dir(self, pipeline_file):
        path = pipeline_file([_gate("fmt", 0)])
        runner.invoke(app, ["gate", "run", "--all", "--config", str(path)])
        result = runner.invoke(app, ["gate", "report", "--config", str(path), "--json"])
        assert result.exit_code == 0, result.output
        assert '"overall_status": "passed"' in result.output

    def test_report_missing(self, tmp_path):
        result = runner.invoke(app, ["gate", "report", "--output", str(tmp_path / "none")])
        assert result.exit_code == 1


class TestCacheCommands:
    def test_list_and_prune(self, tmp_path):
        source = tmp_path / "src"
        source.mkdir()
        (source / "bitvm_cache.bin").write_bytes(b"abc")
        backend = LocalCacheBackend(tmp_path / "cache")
        backend.publish("bitvm-cache-v3", source, ["bitvm_cache.bin"])
        (backend.root / f"{STAGING_PREFIX}partial").mkdir()

        result = runner.invoke(app, ["cache", "list", "--dir", str(backend.root)])
        assert result.exit_code == 0
        assert "bitvm-cache-v3" in result.output

        result = runner.invoke(app, ["cache", "prune", "--dir", str(backend.root)])
        assert result.exit_code == 0
        assert "Removed 1" in result.output
        assert backend.lookup("bitvm-cache-v3") is not None
