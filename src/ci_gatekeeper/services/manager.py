# src/ci_gatekeeper/services/manager.py
"""
Service dependency manager - starts containers and waits for readiness.

Containers are started with ``docker run -d``. Their environment, ports,
volumes and command come straight from the ServiceSpec and are passed
through verbatim. Readiness is established by polling the ServiceSpec's probe at a
fixed interval until it succeeds or runs out of attempts; retries and the
start timeout both bound the wait.
"""

import logging
import subprocess
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Protocol

from ci_gatekeeper.errors import ServiceStartFailure, ServiceTimeout
from ci_gatekeeper.models import ServiceSpec

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


class CommandRunner(Protocol):
    def __call__(self, argv: list[str], timeout: float) -> CommandResult:
        ...


def subprocess_runner(argv: list[str], timeout: float) -> CommandResult:
    """Run argv, mapping launch failures and timeouts to non-zero results."""
    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(returncode=124, stderr=f"timed out after {timeout}s")
    except FileNotFoundError:
        return CommandResult(returncode=127, stderr=f"{argv[0]}: command not found")
    return CommandResult(result.returncode, result.stdout, result.stderr)


class ReadyStatus(str, Enum):
    READY = "ready"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"


@dataclass
class ReadyResult:
    """Outcome of awaiting a service's readiness probe."""
    service: str
    status: ReadyStatus
    attempts: int = 0
    elapsed: float = 0.0
    output: str = ""

    @property
    def ready(self) -> bool:
        return self.status == ReadyStatus.READY


@dataclass
class ServiceHandle:
    """A started service container."""
    name: str
    container_id: str
    spec: ServiceSpec
    started_at: datetime = field(default_factory=datetime.now)
    ready: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    # serializes gates when the service is exclusive
    usage_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class ServiceManager:
    """Starts, health-checks and stops service containers."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        docker: str = "docker",
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        command_timeout: float = 120.0,
    ):
        self.runner = runner or subprocess_runner
        self.docker = docker
        self.sleep = sleep
        self.clock = clock
        self.command_timeout = command_timeout
        self._handles: dict[str, ServiceHandle] = {}
        self._guard = threading.Lock()

    def __enter__(self) -> "ServiceManager":
        return self

    def __exit__(self, *args) -> None:
        self.stop_all()

    @property
    def handles(self) -> dict[str, ServiceHandle]:
        with self._guard:
            return dict(self._handles)

    def run_args(self, spec: ServiceSpec) -> list[str]:
        """Build the ``docker run`` argv for a spec."""
        argv = [self.docker, "run", "-d", "--name", spec.name]
        for key, value in spec.env.items():
            argv.extend(["-e", f"{key}={value}"])
        for port in spec.ports:
            argv.extend(["-p", port])
        for volume in spec.volumes:
            argv.extend(["-v", volume])
        if spec.restart and spec.restart != "no":
            argv.extend(["--restart", spec.restart])
        argv.append(spec.image)
        argv.extend(spec.command)
        return argv

    def start(self, spec: ServiceSpec) -> ServiceHandle:
        """
        Start the service container (once per manager) and return its handle.

        Raises ServiceStartFailure if docker reports an error.
        """
        with self._guard:
            if spec.name in self._handles:
                return self._handles[spec.name]

            logger.info("Starting service %s (%s)", spec.name, spec.image)
            result = self.runner(self.run_args(spec), self.command_timeout)
            if result.returncode != 0:
                raise ServiceStartFailure(
                    spec.name, result.stderr.strip() or f"exit status {result.returncode}"
                )
            lines = result.stdout.strip().splitlines()
            container_id = lines[-1] if lines else spec.name
            handle = ServiceHandle(name=spec.name, container_id=container_id, spec=spec)
            self._handles[spec.name] = handle
            return handle

    def probe_args(self, handle: ServiceHandle) -> Optional[list[str]]:
        probe = handle.spec.probe
        if probe is None:
            return None
        if probe.host:
            return list(probe.command)
        return [self.docker, "exec", handle.container_id, *probe.command]

    def await_ready(
        self,
        handle: ServiceHandle,
        timeout: Optional[float] = None,
        abort: Optional[threading.Event] = None,
    ) -> ReadyResult:
        """
        Poll the readiness probe until it succeeds or runs out of attempts.

        Never raises for a failing probe; returns a TIMED_OUT result instead.
        Setting `abort` stops polling with an ABORTED result.
        """
        with handle._lock:
            if handle.ready:
                return ReadyResult(handle.name, ReadyStatus.READY)

            argv = self.probe_args(handle)
            if argv is None:
                handle.ready = True
                return ReadyResult(handle.name, ReadyStatus.READY)

            probe = handle.spec.probe
            budget = probe.timeout if timeout is None else timeout
            start = self.clock()
            deadline = start + budget
            attempts = 0
            output = ""

            while True:
                if abort is not None and abort.is_set():
                    logger.info("Stopped waiting for %s: run aborted", handle.name)
                    return ReadyResult(
                        handle.name, ReadyStatus.ABORTED, attempts, self.clock() - start, output
                    )
                attempts += 1
                result = self.runner(argv, max(probe.interval, 1.0))
                output = result.output
                if result.returncode == 0:
                    handle.ready = True
                    elapsed = self.clock() - start
                    logger.info(
                        "Service %s ready after %d attempt(s) (%.1fs)",
                        handle.name, attempts, elapsed,
                    )
                    return ReadyResult(handle.name, ReadyStatus.READY, attempts, elapsed, output)
                if attempts >= probe.retries or self.clock() + probe.interval >= deadline:
                    break
                logger.debug("Service %s not ready (attempt %d)", handle.name, attempts)
                self.sleep(probe.interval)

            elapsed = self.clock() - start
            logger.warning(
                "Service %s not ready after %d attempt(s) (%.1fs)",
                handle.name, attempts, elapsed,
            )
            return ReadyResult(handle.name, ReadyStatus.TIMED_OUT, attempts, elapsed, output)

    def ensure_ready(self, spec: ServiceSpec, timeout: Optional[float] = None) -> ServiceHandle:
        """Start if needed and await readiness. Raises ServiceTimeout otherwise."""
        handle = self.start(spec)
        result = self.await_ready(handle, timeout)
        if not result.ready:
            raise ServiceTimeout(
                spec.name,
                f"not ready after {result.attempts} probe(s) in {result.elapsed:.1f}s",
            )
        return handle

    def stop(self, handle: ServiceHandle) -> bool:
        """Remove the container. Returns True on success."""
        logger.info("Stopping service %s", handle.name)
        result = self.runner([self.docker, "rm", "-f", handle.container_id], self.command_timeout)
        with self._guard:
            self._handles.pop(handle.name, None)
        if result.returncode != 0:
            logger.warning("Failed to stop %s: %s", handle.name, result.stderr.strip())
            return False
        return True

    def stop_all(self) -> list[str]:
        """Stop every service started by this manager. Returns names stopped."""
        stopped = []
        for handle in list(self.handles.values()):
            if self.stop(handle):
                stopped.append(handle.name)
        return stopped
