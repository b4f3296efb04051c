# src/ci_gatekeeper/gates/runner.py
"""
Gate runner - executes gates concurrently and aggregates their results.

Each gate first ensures the artifacts it declares and waits for the
services it depends on, then runs its own command. A provisioning failure
or a service that never becomes ready marks only that gate as ERROR; its
siblings still run and the report always covers every gate.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from datetime import datetime
from typing import Optional

from ci_gatekeeper.core.environment import Environment
from ci_gatekeeper.errors import (
    ProvisionFailure,
    RunAborted,
    ServiceError,
    ServiceStartFailure,
    ServiceTimeout,
)
from ci_gatekeeper.gates.models import (
    Gate,
    GateContext,
    GateReport,
    GateResult,
    GateStatus,
    aggregate,
)
from ci_gatekeeper.models import ArtifactSpec, ServiceSpec
from ci_gatekeeper.provision.provisioner import Provisioner
from ci_gatekeeper.services.manager import ReadyStatus, ServiceManager

logger = logging.getLogger(__name__)


class GateRunner:
    """Runs gates and produces a report."""

    def __init__(
        self,
        gates: Optional[list[Gate]] = None,
        provisioner: Optional[Provisioner] = None,
        services: Optional[ServiceManager] = None,
        artifacts: Optional[dict[str, ArtifactSpec]] = None,
        service_specs: Optional[dict[str, ServiceSpec]] = None,
        environment: Optional[Environment] = None,
        max_workers: Optional[int] = None,
    ):
        self.gates = gates or []
        self.environment = environment or (
            provisioner.environment if provisioner else Environment()
        )
        self.provisioner = provisioner or Provisioner(environment=self.environment)
        self.services = services or ServiceManager()
        self.artifacts = artifacts or {}
        self.service_specs = service_specs or {}
        self.max_workers = max_workers
        self.context = GateContext(environment=self.environment)
        self._abort_lock = threading.Lock()

    def abort(self) -> None:
        """Stop the run: terminate in-flight gate processes and release services."""
        with self._abort_lock:
            if self.context.aborted:
                return
            self.context.abort_event.set()
        killed = self.context.processes.terminate_all()
        logger.warning("Run aborted; terminated %d gate process(es)", killed)
        self.services.stop_all()

    def _check_aborted(self) -> None:
        if self.context.aborted:
            raise RunAborted("Run aborted")

    def _prepare(self, gate: Gate, stack: ExitStack) -> None:
        """Ensure artifacts and ready services; may raise."""
        for name in gate.artifacts:
            self._check_aborted()
            if name not in self.artifacts:
                raise ProvisionFailure(name, "artifact is not configured")
            self.provisioner.ensure(self.artifacts[name])

        handles = []
        for name in gate.services:
            self._check_aborted()
            if name not in self.service_specs:
                raise ServiceStartFailure(name, "service is not configured")
            handle = self.services.start(self.service_specs[name])
            result = self.services.await_ready(handle, abort=self.context.abort_event)
            if result.status == ReadyStatus.ABORTED:
                raise RunAborted("Run aborted")
            if not result.ready:
                raise ServiceTimeout(
                    name,
                    f"not ready after {result.attempts} probe(s) in {result.elapsed:.1f}s",
                )
            handles.append(handle)

        # Sorted acquisition so two gates sharing services cannot deadlock
        for handle in sorted(handles, key=lambda h: h.name):
            if handle.spec.exclusive:
                stack.enter_context(handle.usage_lock)

    def run_gate(self, gate: Gate) -> GateResult:
        """Run a single gate, converting every failure into a result."""
        start = time.perf_counter()
        if self.context.aborted:
            return gate.result(GateStatus.ERROR, executed=False, message="Run aborted",
                               error="aborted")

        with ExitStack() as stack:
            try:
                self._prepare(gate, stack)
            except RunAborted:
                return gate.result(GateStatus.ERROR, executed=False, message="Run aborted",
                                   error="aborted",
                                   duration_ms=(time.perf_counter() - start) * 1000)
            except (ProvisionFailure, ServiceError) as e:
                logger.error("Gate %s not run: %s", gate.id, e)
                return gate.result(
                    GateStatus.ERROR,
                    executed=False,
                    message=str(e),
                    error=type(e).__name__,
                    duration_ms=(time.perf_counter() - start) * 1000,
                )
            except Exception as e:
                logger.exception("Preparing gate %s crashed", gate.id)
                return gate.result(
                    GateStatus.ERROR,
                    executed=False,
                    message=str(e),
                    error=type(e).__name__,
                    duration_ms=(time.perf_counter() - start) * 1000,
                )

            if self.context.aborted:
                return gate.result(GateStatus.ERROR, executed=False, message="Run aborted",
                                   error="aborted")

            logger.info("Running gate %s", gate.id)
            try:
                result = gate.run(self.context)
            except Exception as e:
                logger.exception("Gate %s crashed", gate.id)
                result = gate.result(GateStatus.ERROR, message=str(e), error=type(e).__name__)

        if self.context.aborted and not result.passed:
            result.status = GateStatus.ERROR
            result.error = result.error or "aborted"
        result.duration_ms = (time.perf_counter() - start) * 1000
        logger.info("Gate %s %s (%s)", gate.id, result.status.value, gate.policy.value)
        return result

    def run(self, gates: Optional[list[Gate]] = None, fail_fast: bool = False) -> GateReport:
        """
        Run gates concurrently and aggregate the outcomes.

        Args:
            gates: Gates to run (defaults to all configured gates).
            fail_fast: Abort the run when a fatal gate fails.

        Returns:
            GateReport with one result per gate, in the given order.
        """
        gates = self.gates if gates is None else gates
        start = time.perf_counter()
        timestamp = datetime.now()

        def execute(gate: Gate) -> GateResult:
            result = self.run_gate(gate)
            if fail_fast and result.blocking and not self.context.aborted:
                self.abort()
            return result

        results: list[GateResult] = []
        if gates:
            workers = self.max_workers or len(gates)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gate") as pool:
                results = list(pool.map(execute, gates))

        if self.context.aborted:
            # a gate may have started a service while the abort was in progress
            self.services.stop_all()

        return GateReport(
            timestamp=timestamp,
            overall_status=aggregate(results),
            gates=results,
            total_duration_ms=(time.perf_counter() - start) * 1000,
            metadata={
                "gates_requested": [g.id for g in gates],
                "fail_fast": fail_fast,
                "aborted": self.context.aborted,
                "provisioning": self.provisioner.stats.to_dict(),
            },
        )

    def run_all(
        self,
        gate_ids: Optional[list[str]] = None,
        fail_fast: bool = False,
    ) -> GateReport:
        """Run all gates (or the given subset, by ID)."""
        gates_to_run = self.gates
        if gate_ids:
            unknown = set(gate_ids) - {g.id for g in self.gates}
            if unknown:
                raise KeyError(f"Unknown gate(s): {', '.join(sorted(unknown))}")
            gates_to_run = [g for g in self.gates if g.id in gate_ids]
        return self.run(gates_to_run, fail_fast=fail_fast)

    def run_single(self, gate_id: str) -> GateResult:
        """Run a single gate by ID."""
        for gate in self.gates:
            if gate.id == gate_id:
                return self.run_gate(gate)

        return GateResult(
            gate_id=gate_id,
            gate_name="Unknown",
            status=GateStatus.ERROR,
            executed=False,
            error=f"Gate not found: {gate_id}",
        )

    def available_gates(self) -> list[dict[str, str]]:
        """List configured gates."""
        return [
            {
                "id": g.id,
                "name": g.name,
                "description": g.description,
                "policy": g.policy.value,
            }
            for g in self.gates
        ]
