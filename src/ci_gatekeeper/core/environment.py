# src/ci_gatekeeper/core/environment.py
"""
Execution environment shared by every gate command.

Provisioned artifacts prepend their executable directory to PATH here, so
later commands resolve them without further indirection.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


class Environment:
    """Thread-safe environment-variable mapping with a managed search path."""

    def __init__(
        self,
        base: Optional[Mapping[str, str]] = None,
        github_path: Optional[Path] = None,
    ):
        self._vars: dict[str, str] = dict(os.environ if base is None else base)
        self._lock = threading.Lock()
        self.github_path = github_path

    @property
    def search_path(self) -> list[str]:
        with self._lock:
            return [p for p in self._vars.get("PATH", "").split(os.pathsep) if p]

    def prepend_path(self, directory: Path) -> None:
        """Put directory first on PATH (no duplicates)."""
        entry = str(directory)
        with self._lock:
            current = [p for p in self._vars.get("PATH", "").split(os.pathsep) if p]
            if current and current[0] == entry:
                return
            current = [p for p in current if p != entry]
            self._vars["PATH"] = os.pathsep.join([entry, *current])
            if self.github_path is not None:
                with open(self.github_path, "a") as f:
                    f.write(entry + "\n")
        logger.debug("Prepended %s to PATH", entry)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._vars[key] = value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._lock:
            return self._vars.get(key, default)

    def as_dict(self, overrides: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        """Snapshot for a subprocess, with per-gate overrides applied."""
        with self._lock:
            env = dict(self._vars)
        if overrides:
            env.update(overrides)
        return env
