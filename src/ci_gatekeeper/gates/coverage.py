# src/ci_gatekeeper/gates/coverage.py
"""
Coverage report parsing and threshold checking.

Two report shapes are understood:

- a flat mapping ``{"<file>": {"covered": n, "total": m}}``
- the JSON written by ``llvm-cov export`` / ``cargo llvm-cov --json``,
  where each file carries ``summary.lines.count`` and ``summary.lines.covered``

Excluded entries are removed from both the numerator and the denominator
before the percentage is computed.
"""

import fnmatch
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ci_gatekeeper.errors import ReportParseFailure


@dataclass
class CoverageEntry:
    """Line coverage of a single file."""
    file: str
    covered: int
    total: int

    @property
    def percent(self) -> float:
        return 100.0 * self.covered / self.total if self.total else 100.0


@dataclass
class CoverageSummary:
    """Aggregate line coverage after exclusions."""
    covered: int
    total: int
    files: list[CoverageEntry] = field(default_factory=list)
    excluded: list[str] = field(default_factory=list)

    @property
    def percent(self) -> float:
        return 100.0 * self.covered / self.total

    def meets(self, minimum: float) -> bool:
        return self.percent >= minimum

    def to_dict(self) -> dict[str, Any]:
        return {
            "covered": self.covered,
            "total": self.total,
            "percent": round(self.percent, 2),
            "files": len(self.files),
            "excluded": self.excluded,
        }


def _as_count(value: Any, what: str, file: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ReportParseFailure(f"Invalid {what} for '{file}': {value!r}")
    return int(value)


def _parse_llvm_cov(data: dict[str, Any]) -> list[CoverageEntry]:
    entries = []
    for export in data.get("data") or []:
        for item in export.get("files") or []:
            name = item.get("filename")
            lines = (item.get("summary") or {}).get("lines")
            if not name or not isinstance(lines, dict):
                raise ReportParseFailure("llvm-cov file entry without filename/summary.lines")
            entries.append(CoverageEntry(
                file=name,
                covered=_as_count(lines.get("covered"), "covered lines", name),
                total=_as_count(lines.get("count"), "total lines", name),
            ))
    return entries


def _parse_mapping(data: dict[str, Any]) -> list[CoverageEntry]:
    entries = []
    for name, item in data.items():
        if not isinstance(item, dict):
            raise ReportParseFailure(f"Coverage entry for '{name}' is not an object")
        covered = item.get("covered", item.get("lines_covered"))
        total = item.get("total", item.get("lines_total"))
        entries.append(CoverageEntry(
            file=name,
            covered=_as_count(covered, "covered lines", name),
            total=_as_count(total, "total lines", name),
        ))
    return entries


def parse_report(data: Any) -> list[CoverageEntry]:
    """Parse a decoded report into per-file entries."""
    if not isinstance(data, dict):
        raise ReportParseFailure("Coverage report must be a JSON object")
    if data.get("type") == "llvm.coverage.json.export" or "data" in data:
        entries = _parse_llvm_cov(data)
    else:
        entries = _parse_mapping(data)
    for entry in entries:
        if entry.covered > entry.total:
            raise ReportParseFailure(
                f"'{entry.file}' covers {entry.covered} of {entry.total} lines"
            )
    return entries


def load_report(path: Path) -> list[CoverageEntry]:
    """Read and parse a JSON coverage report."""
    try:
        data = json.loads(Path(path).read_text())
    except FileNotFoundError as e:
        raise ReportParseFailure(f"Coverage report not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ReportParseFailure(f"Coverage report {path} is not valid JSON: {e}") from e
    return parse_report(data)


def is_excluded(file: str, patterns: list[str]) -> bool:
    """
    Match a report entry against the exclusion list.

    Patterns are exact identifiers, path suffixes (``core/src/x.rs`` matches
    ``/abs/path/core/src/x.rs``), fnmatch globs, or ``re:<regex>``.
    """
    normalized = file.replace("\\", "/")
    for pattern in patterns:
        if pattern.startswith("re:"):
            if re.search(pattern[3:], normalized):
                return True
            continue
        if normalized == pattern or normalized.endswith("/" + pattern.lstrip("/")):
            return True
        if fnmatch.fnmatch(normalized, pattern) or fnmatch.fnmatch(normalized, "*/" + pattern):
            return True
    return False


def summarize(entries: list[CoverageEntry], exclude: list[str] | None = None) -> CoverageSummary:
    """Aggregate entries, dropping excluded files from both sides of the ratio."""
    exclude = exclude or []
    kept, dropped = [], []
    for entry in entries:
        (dropped if is_excluded(entry.file, exclude) else kept).append(entry)

    total = sum(e.total for e in kept)
    if total == 0:
        raise ReportParseFailure("Coverage report has no measurable lines after exclusions")
    return CoverageSummary(
        covered=sum(e.covered for e in kept),
        total=total,
        files=kept,
        excluded=[e.file for e in dropped],
    )
