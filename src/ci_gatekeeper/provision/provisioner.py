# src/ci_gatekeeper/provision/provisioner.py
"""
Provisioner - acquires external artifacts through the cache.

ensure(spec) looks the cache key up first. On a hit the cached paths are
restored and no network I/O happens. On a miss the artifact is fetched,
verified, unpacked, made executable, moved into its target and published
under its key. Either way its executable directory ends up on the
environment's search path.

Calls are idempotent within a run: the same key is materialised at most
once and always yields the same path. Concurrent callers for the same key
serialize on a per-key lock.
"""

import logging
import os
import shutil
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ci_gatekeeper.core.environment import Environment
from ci_gatekeeper.errors import CacheUnavailable, ProvisionFailure
from ci_gatekeeper.models import ArtifactSpec, UnpackFormat
from ci_gatekeeper.provision.cache import CacheBackend, NullCacheBackend
from ci_gatekeeper.provision.fetcher import Fetcher, run_shell
from ci_gatekeeper.provision.unpack import make_executable, unpack

logger = logging.getLogger(__name__)


@dataclass
class ProvisionStats:
    """Counters for a single run."""
    hits: int = 0
    misses: int = 0
    fetches: int = 0
    keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "fetches": self.fetches,
            "keys": list(self.keys),
        }


class Provisioner:
    """Ensures artifacts are present locally and on the search path."""

    def __init__(
        self,
        cache: Optional[CacheBackend] = None,
        environment: Optional[Environment] = None,
        fetcher: Optional[Fetcher] = None,
    ):
        self.cache = cache or NullCacheBackend()
        self.environment = environment or Environment()
        self.fetcher = fetcher or Fetcher()
        self.stats = ProvisionStats()
        self._ensured: dict[str, Path] = {}
        self._failed: dict[str, ProvisionFailure] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _key_lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def ensure(self, spec: ArtifactSpec) -> Path:
        """
        Make the artifact available locally and return its target path.

        Raises ProvisionFailure if fetching, unpacking or installing fails,
        including filesystem errors while moving files into place. A key
        that failed is not retried within the run.
        """
        key = spec.cache_key
        with self._key_lock(key):
            if key in self._ensured:
                return self._ensured[key]
            if key in self._failed:
                raise ProvisionFailure(spec.name, self._failed[key].reason)

            try:
                target = self._ensure(spec)
            except ProvisionFailure as e:
                self._failed[key] = e
                raise
            except OSError as e:
                failure = ProvisionFailure(spec.name, str(e))
                self._failed[key] = failure
                raise failure from e

            self._ensured[key] = target
            self.stats.keys.append(key)
            return target

    def _ensure(self, spec: ArtifactSpec) -> Path:
        target = spec.target.expanduser().resolve()
        if self._restore(spec, target):
            self.stats.hits += 1
        else:
            self.stats.misses += 1
            produced = self._materialise(spec, target)
            self._publish(spec, target, spec.paths or produced)

        if spec.executables:
            make_executable(target, spec.executables)
        if spec.search_path is not None:
            self.environment.prepend_path(spec.search_path)
        return target

    def ensure_all(self, specs: list[ArtifactSpec]) -> dict[str, Path]:
        return {spec.name: self.ensure(spec) for spec in specs}

    def _restore(self, spec: ArtifactSpec, target: Path) -> bool:
        try:
            entry = self.cache.lookup(spec.cache_key)
            if entry is None:
                logger.info("Cache miss for %s (%s)", spec.name, spec.cache_key)
                return False
            self.cache.restore(spec.cache_key, target)
        except CacheUnavailable as e:
            logger.warning("Cache unavailable for %s, fetching instead: %s", spec.name, e)
            return False
        logger.info("Cache hit for %s (%s)", spec.name, spec.cache_key)
        return True

    def _publish(self, spec: ArtifactSpec, target: Path, paths: list[str]) -> None:
        try:
            self.cache.publish(spec.cache_key, target, paths)
        except CacheUnavailable as e:
            logger.warning("Could not cache %s: %s", spec.name, e)

    def _materialise(self, spec: ArtifactSpec, target: Path) -> list[str]:
        """Fetch into a staging directory, then move the results into target.

        Returns the names now present in target that came from this fetch.
        """
        if spec.installer:
            staging = Path(tempfile.mkdtemp(prefix=f"gatekeeper-{spec.name}-"))
        else:
            # Same filesystem as target so the final moves are renames
            target.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".staging-{spec.name}-", dir=target))
        try:
            self.stats.fetches += 1
            if spec.installer:
                self._install(spec, target, staging)
                if not target.exists():
                    raise ProvisionFailure(
                        spec.name, f"installer did not create {target}"
                    )
                return []
            # Only the contents of tree/ end up in target; an archive stays behind
            tree = staging / "tree"
            tree.mkdir()
            if spec.unpack == UnpackFormat.NONE:
                self.fetcher.download(spec.name, spec.url, tree / spec.local_filename)
            else:
                archive = self.fetcher.download(
                    spec.name, spec.url, staging / spec.local_filename
                )
                unpack(spec.name, archive, tree, spec.unpack)
            return self._move_into(tree, target)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _install(self, spec: ArtifactSpec, target: Path, staging: Path) -> None:
        script = self.fetcher.download(spec.name, spec.installer, staging / "install.sh")
        env = self.environment.as_dict()
        if spec.search_path is not None:
            env["PATH"] = os.pathsep.join([str(spec.search_path), env.get("PATH", "")])
        lines = [f"bash {script}", *spec.installer_args]
        run_shell(spec.name, "\n".join(lines), staging, env, spec.timeout_seconds)

    @staticmethod
    def _move_into(staging: Path, target: Path) -> list[str]:
        target.mkdir(parents=True, exist_ok=True)
        moved = []
        for child in staging.iterdir():
            dest = target / child.name
            if dest.is_dir() and not dest.is_symlink():
                shutil.rmtree(dest)
            elif dest.exists() or dest.is_symlink():
                dest.unlink()
            shutil.move(str(child), str(dest))
            moved.append(child.name)
        return sorted(moved)
