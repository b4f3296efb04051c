# src/ci_gatekeeper/__init__.py
# Main package init - exports public API for gatekeeper.

"""
gatekeeper: a continuous-integration gate pipeline.

Provisions a reproducible build/test environment (toolchains, large binary
blobs, service containers) through a keyed artifact cache, then runs a set
of independent quality gates and aggregates their outcomes into a single
pass/fail verdict.

CLI Usage:
    gatekeeper init                 # Write a default .gatekeeper.yaml
    gatekeeper provision            # Warm the artifact cache
    gatekeeper gate run --all       # Run every gate
    gatekeeper coverage check FILE  # Threshold-check a coverage report
"""

from ci_gatekeeper.errors import (
    CacheUnavailable,
    ConfigError,
    GatekeeperError,
    GateFailure,
    ProvisionFailure,
    ReportParseFailure,
    RunAborted,
    ServiceError,
    ServiceStartFailure,
    ServiceTimeout,
)
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
from ci_gatekeeper.core.config import PipelineConfig, load_config
from ci_gatekeeper.core.environment import Environment
from ci_gatekeeper.provision import LocalCacheBackend, NullCacheBackend, Provisioner
from ci_gatekeeper.services import ReadyResult, ReadyStatus, ServiceManager
from ci_gatekeeper.gates import GateReport, GateResult, GateRunner, GateStatus
from ci_gatekeeper.pipeline import Pipeline

__version__ = "0.1.0"
__all__ = [
    # Errors
    "CacheUnavailable",
    "ConfigError",
    "GatekeeperError",
    "GateFailure",
    "ProvisionFailure",
    "ReportParseFailure",
    "RunAborted",
    "ServiceError",
    "ServiceStartFailure",
    "ServiceTimeout",
    # Models
    "ArtifactSpec",
    "CacheEntry",
    "GateKind",
    "GatePolicy",
    "GateSpec",
    "ReadinessProbe",
    "ServiceSpec",
    "UnpackFormat",
    # Configuration
    "Environment",
    "PipelineConfig",
    "load_config",
    # Provisioning
    "LocalCacheBackend",
    "NullCacheBackend",
    "Provisioner",
    # Services
    "ReadyResult",
    "ReadyStatus",
    "ServiceManager",
    # Gates
    "GateReport",
    "GateResult",
    "GateRunner",
    "GateStatus",
    "Pipeline",
]
