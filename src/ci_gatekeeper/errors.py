# src/ci_gatekeeper/errors.py
# Exception hierarchy for provisioning, services, gates and configuration.
"""
All gatekeeper errors derive from GatekeeperError.

Failures are local to the gate that produced them: the runner converts
them into GateResults instead of letting them abort sibling gates.
"""


class GatekeeperError(Exception):
    """Base class for all gatekeeper errors."""


class ConfigError(GatekeeperError):
    """Pipeline configuration is missing or invalid."""


class ProvisionFailure(GatekeeperError):
    """Fetching, unpacking or installing an artifact failed."""

    def __init__(self, artifact: str, reason: str):
        self.artifact = artifact
        self.reason = reason
        super().__init__(f"Failed to provision '{artifact}': {reason}")


class CacheUnavailable(GatekeeperError):
    """The cache backend could not be read or written."""


class ServiceError(GatekeeperError):
    """Base class for service dependency errors."""

    def __init__(self, service: str, reason: str):
        self.service = service
        self.reason = reason
        super().__init__(f"Service '{service}': {reason}")


class ServiceStartFailure(ServiceError):
    """The service container could not be started."""


class ServiceTimeout(ServiceError):
    """The readiness probe never succeeded within the start timeout."""


class GateFailure(GatekeeperError):
    """A gate command failed or its threshold was not met."""


class ReportParseFailure(GateFailure):
    """A structured report was missing, malformed or empty."""


class RunAborted(GatekeeperError):
    """The run was aborted before the gate could start."""
