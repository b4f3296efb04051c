# tests/test_models.py
# Tests for Pydantic models in ci-gatekeeper.

"""
Unit tests for configuration models.

Tests cover:
- Model validation
- Default values
- Derived properties
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from ci_gatekeeper.models import (
    ArtifactSpec,
    CacheEntry,
    GateKind,
    GatePolicy,
    GateSpec,
    ReadinessProbe,
    ServiceSpec,
    UnpackFormat,
)


class TestGatePolicy:
    """Tests for GatePolicy enum."""

    def test_policy_values(self):
        assert GatePolicy.FATAL == "fatal"
        assert GatePolicy.TOLERATED == "tolerated"

    def test_policy_from_string(self):
        assert GatePolicy("tolerated") == GatePolicy.TOLERATED


class TestArtifactSpec:
    """Tests for ArtifactSpec model."""

    def test_url_artifact(self, tmp_path):
        spec = ArtifactSpec(
            name="bitcoin-core",
            cache_key="bitcoin-29.0-x86_64-linux-gnu",
            url="https://bitcoincore.org/bin/bitcoin-core-29.0/bitcoin-29.0-x86_64-linux-gnu.tar.gz",
            unpack="tar.gz",
            target=tmp_path,
        )
        assert spec.unpack == UnpackFormat.TAR_GZ
        assert spec.local_filename == "bitcoin-29.0-x86_64-linux-gnu.tar.gz"
        assert spec.search_path is None
        assert spec.timeout_seconds == 600.0

    def test_explicit_filename(self, tmp_path):
        spec = ArtifactSpec(
            name="bitvm-cache",
            cache_key="bitvm-cache-v3",
            url="https://example.com/dl?id=1",
            filename="bitvm_cache.bin",
            target=tmp_path,
        )
        assert spec.local_filename == "bitvm_cache.bin"

    def test_query_string_dropped_from_filename(self, tmp_path):
        spec = ArtifactSpec(
            name="blob", cache_key="blob-v1",
            url="https://example.com/files/blob.bin?token=abc", target=tmp_path,
        )
        assert spec.local_filename == "blob.bin"

    def test_search_path(self, tmp_path):
        spec = ArtifactSpec(
            name="bitcoin-core", cache_key="k", url="https://x/y.tar.gz",
            target=tmp_path, bin_dir="bitcoin-29.0/bin",
        )
        assert spec.search_path == (tmp_path / "bitcoin-29.0" / "bin").resolve()

    def test_requires_a_source(self, tmp_path):
        with pytest.raises(ValidationError, match="exactly one"):
            ArtifactSpec(name="x", cache_key="k", target=tmp_path)

    def test_rejects_url_and_installer(self, tmp_path):
        with pytest.raises(ValidationError):
            ArtifactSpec(
                name="x", cache_key="k", target=tmp_path,
                url="https://a/b", installer="https://a/install",
            )

    def test_missing_key(self, tmp_path):
        with pytest.raises(ValidationError):
            ArtifactSpec(name="x", url="https://a/b", target=tmp_path)


class TestReadinessProbe:
    """Tests for ReadinessProbe model."""

    def test_default_timeout_is_interval_times_retries(self):
        probe = ReadinessProbe(command=["pg_isready"], interval=2, retries=10)
        assert probe.timeout == 20

    def test_explicit_start_timeout(self):
        probe = ReadinessProbe(command=["pg_isready"], start_timeout=5)
        assert probe.timeout == 5

    def test_empty_command_rejected(self):
        with pytest.raises(ValidationError):
            ReadinessProbe(command=[])

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            ReadinessProbe(command=["true"], interval=0)


class TestServiceSpec:
    """Tests for ServiceSpec model."""

    def test_defaults(self):
        spec = ServiceSpec(name="postgres", image="postgres:latest")
        assert spec.env == {}
        assert spec.ports == []
        assert spec.restart == "no"
        assert spec.exclusive is False
        assert spec.probe is None


class TestGateSpec:
    """Tests for GateSpec model."""

    def test_command_gate(self):
        spec = GateSpec(id="fmt", command=["cargo", "fmt", "--check"])
        assert spec.name == "fmt"  # defaults to id
        assert spec.kind == GateKind.COMMAND
        assert spec.policy == GatePolicy.FATAL

    def test_command_gate_needs_command(self):
        with pytest.raises(ValidationError, match="requires a 'command'"):
            GateSpec(id="fmt")

    def test_coverage_gate_needs_report_and_minimum(self):
        with pytest.raises(ValidationError, match="'report' and 'minimum'"):
            GateSpec(id="coverage", kind="coverage", report="lcov.json")

    def test_coverage_minimum_range(self):
        with pytest.raises(ValidationError):
            GateSpec(id="coverage", kind="coverage", report="lcov.json", minimum=120)

    def test_todo_gate_defaults(self):
        spec = GateSpec(id="todo", kind="todo", policy="tolerated")
        assert spec.paths == [Path(".")]
        assert spec.markers == ["TODO", "FIXME"]
        assert spec.policy == GatePolicy.TOLERATED

    def test_summary(self):
        spec = GateSpec(id="todo", name="TODO check", kind="todo", policy="tolerated")
        assert spec.summary() == {
            "id": "todo",
            "name": "TODO check",
            "kind": "todo",
            "policy": "tolerated",
            "description": "",
        }


class TestCacheEntry:
    """Tests for CacheEntry model."""

    def test_json_roundtrip(self):
        entry = CacheEntry(key="bitvm-cache-v3", paths=["bitvm_cache.bin"], size_bytes=12)
        restored = CacheEntry.model_validate_json(entry.model_dump_json())
        assert restored == entry
