"""
Service dependencies (databases, blockchain nodes) started as containers
and health-checked before dependent gates run.
"""

from ci_gatekeeper.services.manager import (
    CommandResult,
    ReadyResult,
    ReadyStatus,
    ServiceHandle,
    ServiceManager,
    subprocess_runner,
)

__all__ = [
    "CommandResult",
    "ReadyResult",
    "ReadyStatus",
    "ServiceHandle",
    "ServiceManager",
    "subprocess_runner",
]
