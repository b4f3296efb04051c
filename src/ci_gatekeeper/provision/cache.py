# src/ci_gatekeeper/provision/cache.py
"""
Cache backends for provisioned artifacts.

A cache entry is identified by its key and holds one or more paths. Entries
are immutable once published: a new artifact version must use a new key.

Publishing is two-phase. Files are copied into a hidden staging directory,
the metadata file is written last, and the staging directory is renamed
into place. Only a directory carrying the metadata file counts as a hit,
so an interrupted publish never shows up as a valid entry.
"""

import hashlib
import json
import logging
import os
import re
import shutil
import uuid
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from ci_gatekeeper.errors import CacheUnavailable
from ci_gatekeeper.models import CacheEntry

logger = logging.getLogger(__name__)

ENTRY_FILE = "entry.json"
DATA_DIR = "data"
STAGING_PREFIX = ".staging-"


def build_cache_key(name: str, version: str, platform: Optional[str] = None) -> str:
    """
    Build a cache key like ``bitcoin-29.0-x86_64-linux-gnu``.

    The key is the sole hit/miss discriminant, so every input that changes
    the artifact bytes must be part of it.
    """
    parts = [name, version]
    if platform:
        parts.append(platform)
    return "-".join(p.strip() for p in parts if p.strip())


def _safe_dirname(key: str) -> str:
    safe = re.sub(r"[^A-Za-z0-9._-]", "_", key)[:80]
    if safe == key:
        return safe
    # Keep distinct keys distinct after sanitising
    return f"{safe}-{hashlib.sha256(key.encode()).hexdigest()[:8]}"


def _tree_size(path: Path) -> int:
    if path.is_file():
        return path.stat().st_size
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file())


def _copy_path(src: Path, dest: Path) -> None:
    if src.is_dir():
        shutil.copytree(src, dest, symlinks=True, dirs_exist_ok=True)
    else:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)


class CacheBackend(Protocol):
    """Key -> paths store with lookup / restore / publish semantics."""

    def lookup(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for key, or None on a miss."""
        ...

    def restore(self, key: str, target: Path) -> CacheEntry:
        """Copy the entry's paths into target."""
        ...

    def publish(self, key: str, source: Path, paths: list[str]) -> Optional[CacheEntry]:
        """Store paths (relative to source) under key, if not already present."""
        ...


class NullCacheBackend:
    """Caching disabled: every lookup misses and publishing does nothing."""

    def lookup(self, key: str) -> Optional[CacheEntry]:
        return None

    def restore(self, key: str, target: Path) -> CacheEntry:
        raise CacheUnavailable(f"Caching is disabled; no entry for '{key}'")

    def publish(self, key: str, source: Path, paths: list[str]) -> Optional[CacheEntry]:
        return None

    def list_entries(self) -> list[CacheEntry]:
        return []


class LocalCacheBackend:
    """Directory-per-key cache rooted at a local directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def entry_dir(self, key: str) -> Path:
        return self.root / _safe_dirname(key)

    def _read_entry(self, entry_dir: Path) -> Optional[CacheEntry]:
        meta = entry_dir / ENTRY_FILE
        if not meta.is_file():
            return None
        try:
            return CacheEntry.model_validate_json(meta.read_text())
        except ValidationError:
            logger.warning("Ignoring corrupt cache metadata at %s", meta)
            return None

    def lookup(self, key: str) -> Optional[CacheEntry]:
        try:
            entry = self._read_entry(self.entry_dir(key))
        except OSError as e:
            raise CacheUnavailable(f"Cannot read cache at {self.root}: {e}") from e
        if entry is not None and entry.key != key:
            return None
        return entry

    def restore(self, key: str, target: Path) -> CacheEntry:
        entry = self.lookup(key)
        if entry is None:
            raise CacheUnavailable(f"No cache entry for '{key}'")
        data = self.entry_dir(key) / DATA_DIR
        try:
            target.mkdir(parents=True, exist_ok=True)
            for rel in entry.paths:
                _copy_path(data / rel, target / rel)
        except OSError as e:
            raise CacheUnavailable(f"Cannot restore '{key}': {e}") from e
        logger.info("Restored cache entry %s (%d paths)", key, len(entry.paths))
        return entry

    def publish(self, key: str, source: Path, paths: list[str]) -> Optional[CacheEntry]:
        existing = self.lookup(key)
        if existing is not None:
            logger.debug("Cache entry %s already published", key)
            return existing

        rel_paths = paths or sorted(p.name for p in source.iterdir())
        staging = self.root / f"{STAGING_PREFIX}{_safe_dirname(key)}-{uuid.uuid4().hex[:8]}"
        final = self.entry_dir(key)
        try:
            (staging / DATA_DIR).mkdir(parents=True)
            for rel in rel_paths:
                src = source / rel
                if not src.exists():
                    raise CacheUnavailable(f"Cannot publish '{key}': missing path {rel}")
                _copy_path(src, staging / DATA_DIR / rel)
            entry = CacheEntry(
                key=key,
                paths=list(rel_paths),
                size_bytes=_tree_size(staging / DATA_DIR),
            )
            # Metadata last: its presence is what makes the entry a hit
            (staging / ENTRY_FILE).write_text(entry.model_dump_json(indent=2))
            try:
                os.rename(staging, final)
            except OSError:
                # Another writer won the race; entries are immutable
                if self.lookup(key) is None:
                    raise
                shutil.rmtree(staging, ignore_errors=True)
                return self.lookup(key)
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise CacheUnavailable(f"Cannot publish '{key}': {e}") from e
        except CacheUnavailable:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info("Published cache entry %s (%d bytes)", key, entry.size_bytes)
        return entry

    def list_entries(self) -> list[CacheEntry]:
        if not self.root.exists():
            return []
        entries = []
        for child in sorted(self.root.iterdir()):
            if child.name.startswith(STAGING_PREFIX) or not child.is_dir():
                continue
            entry = self._read_entry(child)
            if entry is not None:
                entries.append(entry)
        return entries

    def prune_staging(self) -> int:
        """Remove leftovers of interrupted publishes. Returns the count removed."""
        if not self.root.exists():
            return 0
        removed = 0
        for child in self.root.iterdir():
            if child.name.startswith(STAGING_PREFIX):
                shutil.rmtree(child, ignore_errors=True)
                removed += 1
        return removed
