# src/ci_gatekeeper/gates/todo.py
"""
TODO-marker scanning.
"""

import fnmatch
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

SKIP_DIRS = {".git", "target", "node_modules", ".venv", "__pycache__", ".gatekeeper"}
DEFAULT_MARKERS = ["TODO", "FIXME"]


@dataclass
class TodoHit:
    path: Path
    line: int
    marker: str
    text: str

    def __str__(self) -> str:
        return f"{self.path}:{self.line}: {self.text}"


def _iter_files(root: Path) -> Iterator[Path]:
    if root.is_file():
        yield root
        return
    for path in sorted(root.rglob("*")):
        if any(part in SKIP_DIRS for part in path.relative_to(root).parts):
            continue
        if path.is_file():
            yield path


def _matches(path: Path, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatch(path.name, p) or fnmatch.fnmatch(str(path), p) for p in patterns)


def scan_todos(
    paths: list[Path],
    markers: Optional[list[str]] = None,
    include: Optional[list[str]] = None,
    exclude: Optional[list[str]] = None,
) -> list[TodoHit]:
    """Find marker words in text files under paths."""
    markers = markers or DEFAULT_MARKERS
    pattern = re.compile(r"\b(" + "|".join(re.escape(m) for m in markers) + r")\b")
    hits = []
    for root in paths:
        for path in _iter_files(Path(root)):
            if include and not _matches(path, include):
                continue
            if exclude and _matches(path, exclude):
                continue
            try:
                raw = path.read_bytes()
            except OSError:
                continue
            if b"\0" in raw[:1024]:
                continue
            text = raw.decode("utf-8", errors="replace")
            for number, line in enumerate(text.splitlines(), start=1):
                match = pattern.search(line)
                if match:
                    hits.append(TodoHit(path, number, match.group(1), line.strip()))
    return hits
