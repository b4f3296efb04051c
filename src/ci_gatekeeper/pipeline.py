# src/ci_gatekeeper/pipeline.py
"""
Pipeline - wires a PipelineConfig into provisioner, services and runner.

Services are started lazily by the gates that need them and are always
released when the run ends, including on abort.
"""

import logging
from typing import Optional

from ci_gatekeeper.core.config import PipelineConfig
from ci_gatekeeper.core.environment import Environment
from ci_gatekeeper.gates.definitions import build_gate
from ci_gatekeeper.gates.models import GateReport
from ci_gatekeeper.gates.runner import GateRunner
from ci_gatekeeper.provision.cache import CacheBackend, LocalCacheBackend, NullCacheBackend
from ci_gatekeeper.provision.fetcher import Fetcher
from ci_gatekeeper.provision.provisioner import Provisioner
from ci_gatekeeper.services.manager import ServiceManager

logger = logging.getLogger(__name__)


def make_cache(config: PipelineConfig) -> CacheBackend:
    if not config.cache.enabled:
        logger.info("Caching disabled")
        return NullCacheBackend()
    return LocalCacheBackend(config.cache.directory.expanduser())


class Pipeline:
    """A single pipeline run."""

    def __init__(
        self,
        config: PipelineConfig,
        environment: Optional[Environment] = None,
        cache: Optional[CacheBackend] = None,
        fetcher: Optional[Fetcher] = None,
        services: Optional[ServiceManager] = None,
    ):
        self.config = config
        self.environment = environment or Environment(github_path=config.github_path)
        for key, value in config.env.items():
            self.environment.set(key, value)
        self.cache = cache if cache is not None else make_cache(config)
        self.fetcher = fetcher or Fetcher()
        self.provisioner = Provisioner(self.cache, self.environment, self.fetcher)
        self.services = services or ServiceManager()
        self.runner = GateRunner(
            gates=[build_gate(spec) for spec in config.gates],
            provisioner=self.provisioner,
            services=self.services,
            artifacts={a.name: a for a in config.artifacts},
            service_specs={s.name: s for s in config.services},
            environment=self.environment,
            max_workers=config.max_workers,
        )

    def provision(self, names: Optional[list[str]] = None) -> dict:
        """Ensure the named artifacts (default: all) outside of any gate."""
        specs = self.config.artifacts
        if names:
            specs = [self.config.artifact(n) for n in names]
        return self.provisioner.ensure_all(specs)

    def run(self, gate_ids: Optional[list[str]] = None, fail_fast: bool = False) -> GateReport:
        try:
            return self.runner.run_all(gate_ids=gate_ids, fail_fast=fail_fast)
        finally:
            self.close()

    def abort(self) -> None:
        self.runner.abort()

    def close(self) -> None:
        stopped = self.services.stop_all()
        if stopped:
            logger.info("Released services: %s", ", ".join(stopped))
        self.fetcher.close()
