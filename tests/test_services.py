# tests/test_services.py
"""
Tests for the service dependency manager.

Docker is replaced by a recording runner and time by a fake clock, so the
readiness loop is exercised without containers or real sleeps.
"""

import threading

import pytest

from conftest import FakeRunner
from ci_gatekeeper.errors import ServiceStartFailure, ServiceTimeout
from ci_gatekeeper.models import ReadinessProbe, ServiceSpec
from ci_gatekeeper.services.manager import ReadyStatus, ServiceManager, subprocess_runner


class TestRunArgs:
    def test_passes_config_through_verbatim(self, postgres_spec):
        argv = ServiceManager(runner=FakeRunner()).run_args(postgres_spec)
        assert argv[:5] == ["docker", "run", "-d", "--name", "postgres"]
        assert "POSTGRES_USER=clementine" in argv
        assert argv[argv.index("-p") + 1] == "5432:5432"
        assert argv[-1] == "postgres:latest"
        assert "--restart" not in argv

    def test_command_and_restart(self):
        spec = ServiceSpec(
            name="bitcoind", image="bitcoin/bitcoin:29", restart="always",
            volumes=["/data:/data"], command=["-regtest", "-rpcport=18443"],
        )
        argv = ServiceManager(runner=FakeRunner()).run_args(spec)
        assert argv[-3:] == ["bitcoin/bitcoin:29", "-regtest", "-rpcport=18443"]
        assert argv[argv.index("--restart") + 1] == "always"
        assert argv[argv.index("-v") + 1] == "/data:/data"


class TestStart:
    def test_start_is_idempotent(self, make_manager, postgres_spec):
        runner = FakeRunner()
        manager = make_manager(runner)
        first = manager.start(postgres_spec)
        second = manager.start(postgres_spec)
        assert first is second
        assert first.container_id == "c0ffee1234567890"
        assert sum(1 for c in runner.calls if c[1] == "run") == 1

    def test_start_failure(self, make_manager, postgres_spec):
        manager = make_manager(FakeRunner(start_code=125))
        with pytest.raises(ServiceStartFailure, match="image not found"):
            manager.start(postgres_spec)
        assert manager.handles == {}


class TestAwaitReady:
    """Readiness polling is bounded by interval * retries."""

    def test_ready_after_n_probes(self, make_manager, postgres_spec, fake_clock):
        runner = FakeRunner(ready_after=3)
        manager = make_manager(runner)
        handle = manager.start(postgres_spec)

        result = manager.await_ready(handle)
        assert result.status == ReadyStatus.READY
        assert result.attempts == 3
        assert result.elapsed == 4.0  # two sleeps of the 2s interval
        assert handle.ready
        assert runner.calls[-1] == ["docker", "exec", "c0ffee1234567890", "pg_isready"]

    def test_times_out(self, make_manager, postgres_spec, fake_clock):
        runner = FakeRunner(ready_after=None)
        manager = make_manager(runner)
        handle = manager.start(postgres_spec)

        result = manager.await_ready(handle)
        assert result.status == ReadyStatus.TIMED_OUT
        assert not result.ready
        assert result.attempts == 10
        assert fake_clock.now <= postgres_spec.probe.timeout
        assert "no response" in result.output

    def test_explicit_timeout(self, make_manager, postgres_spec, fake_clock):
        manager = make_manager(FakeRunner(ready_after=None))
        result = manager.await_ready(manager.start(postgres_spec), timeout=5)
        assert result.attempts == 3
        assert fake_clock.now == 4.0

    def test_retries_cap_a_longer_start_timeout(self, make_manager, fake_clock):
        spec = ServiceSpec(
            name="postgres", image="postgres:latest",
            probe=ReadinessProbe(command=["pg_isready"], interval=2, retries=10,
                                 start_timeout=100),
        )
        manager = make_manager(FakeRunner(ready_after=None))
        result = manager.await_ready(manager.start(spec))
        assert result.status == ReadyStatus.TIMED_OUT
        assert result.attempts == 10
        assert fake_clock.now == 18.0

    def test_abort_stops_polling(self, postgres_spec, fake_clock):
        abort = threading.Event()
        runner = FakeRunner(ready_after=None)

        def sleep(seconds):
            fake_clock.sleep(seconds)
            abort.set()

        manager = ServiceManager(runner=runner, sleep=sleep, clock=fake_clock)
        result = manager.await_ready(manager.start(postgres_spec), abort=abort)
        assert result.status == ReadyStatus.ABORTED
        assert result.attempts == 1
        assert runner.probes == 1

    def test_already_ready_skips_probe(self, make_manager, postgres_spec):
        runner = FakeRunner()
        manager = make_manager(runner)
        handle = manager.start(postgres_spec)
        manager.await_ready(handle)
        probes = runner.probes
        assert manager.await_ready(handle).ready
        assert runner.probes == probes

    def test_no_probe_is_ready(self, make_manager):
        runner = FakeRunner(ready_after=None)
        manager = make_manager(runner)
        handle = manager.start(ServiceSpec(name="redis", image="redis:7"))
        assert manager.await_ready(handle).ready
        assert runner.probes == 0

    def test_host_probe(self, make_manager):
        runner = FakeRunner()
        manager = make_manager(runner)
        spec = ServiceSpec(
            name="postgres", image="postgres:latest",
            probe=ReadinessProbe(command=["pg_isready", "-h", "localhost"], host=True),
        )
        manager.await_ready(manager.start(spec))
        assert runner.calls[-1] == ["pg_isready", "-h", "localhost"]

    def test_ensure_ready_raises_on_timeout(self, make_manager, postgres_spec):
        manager = make_manager(FakeRunner(ready_after=None))
        with pytest.raises(ServiceTimeout, match="not ready after 10 probe"):
            manager.ensure_ready(postgres_spec)


class TestStop:
    def test_stop_all(self, make_manager, postgres_spec):
        runner = FakeRunner()
        manager = make_manager(runner)
        manager.start(postgres_spec)
        assert manager.stop_all() == ["postgres"]
        assert runner.calls[-1] == ["docker", "rm", "-f", "c0ffee1234567890"]
        assert manager.handles == {}
        assert manager.stop_all() == []

    def test_context_manager_stops(self, make_manager, postgres_spec):
        runner = FakeRunner()
        with make_manager(runner) as manager:
            manager.start(postgres_spec)
        assert runner.calls[-1][:3] == ["docker", "rm", "-f"]


class TestSubprocessRunner:
    def test_missing_binary(self):
        result = subprocess_runner(["gatekeeper-no-such-binary"], 5)
        assert result.returncode == 127
        assert "not found" in result.stderr
